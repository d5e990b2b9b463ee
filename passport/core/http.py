"""
File: passport/core/http.py
Description: 出站 HTTP 客户端管理 (httpx.AsyncClient)

本模块负责：
1. 创建全局 httpx.AsyncClient (复用连接池)
2. 提供依赖注入所需的客户端生成器 (测试中 override 为 MockTransport 客户端)
3. 在应用关闭时释放连接

仅用于调用第三方开放平台 (如微信 sns 接口)，不做自动重试：
第三方授权码一次性有效，失败后由用户重新发起扫码流程。

Author: jinmozhe
Created: 2026-03-02
"""

from collections.abc import AsyncGenerator

import httpx

from passport.core.config import settings

http_client: httpx.AsyncClient = httpx.AsyncClient(
    timeout=httpx.Timeout(settings.HTTP_CLIENT_TIMEOUT),
    headers={"User-Agent": f"{settings.PROJECT_NAME}/1.0"},
)


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """获取出站 HTTP 客户端依赖。"""
    yield http_client


async def close_http_client() -> None:
    """关闭出站 HTTP 客户端，应在 lifespan shutdown 中调用。"""
    await http_client.aclose()

"""
File: passport/core/middleware.py
Description: 中间件配置与实现

本模块负责：
1. 定义 RequestLogMiddleware：
   - 生成 UUID v7 request_id
   - 绑定 Loguru 上下文
   - 记录访问日志 (Access Log)，第三方回调的 code/state 参数脱敏后记录
   - 添加 X-Request-ID 响应头
2. 提供 register_middlewares 函数：统一注册 CORS、RequestLogMiddleware

Author: jinmozhe
Created: 2025-11-24
Updated: 2026-03-02 (Mask OAuth callback query)
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from uuid6 import uuid7

from passport.core.config import settings
from passport.core.logging import logger
from passport.utils.masking import mask_query_params

# 跳过详细日志的路径（健康检查等高频低价值请求）
SKIP_LOG_PATHS: set[str] = {"/health", "/health/", "/favicon.ico"}


class RequestLogMiddleware(BaseHTTPMiddleware):
    """
    全局请求日志中间件

    职责：
    1. 为每个请求生成唯一 Request ID (UUID v7)
    2. 将 request_id 绑定到 Loguru 上下文，贯穿整个请求链路
    3. 记录请求处理耗时、最终状态码与脱敏后的查询参数
    4. 在响应头中回传 X-Request-ID
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = str(uuid7())
        request.state.request_id = request_id

        skip_log = request.url.path in SKIP_LOG_PATHS

        with logger.contextualize(request_id=request_id):
            start_time = time.perf_counter()

            try:
                response = await call_next(request)
                response.headers["X-Request-ID"] = request_id

                if not skip_log:
                    process_time = (time.perf_counter() - start_time) * 1000
                    logger.bind(
                        method=request.method,
                        path=request.url.path,
                        query=mask_query_params(request.query_params),
                        status_code=response.status_code,
                        duration_ms=round(process_time, 2),
                        client_ip=request.client.host if request.client else "unknown",
                        user_agent=request.headers.get("user-agent", ""),
                    ).info("Request finished")

                return response

            except Exception as exc:
                process_time = (time.perf_counter() - start_time) * 1000
                logger.bind(
                    method=request.method,
                    path=request.url.path,
                    duration_ms=round(process_time, 2),
                ).opt(exception=exc).error("Request failed with unhandled exception")
                raise


def register_middlewares(app: FastAPI) -> None:
    """
    统一注册所有中间件。
    注意：后注册的中间件先执行 (对于请求进入方向)。
    """
    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
            # 会话 Cookie 需要跨域携带
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_middleware(RequestLogMiddleware)

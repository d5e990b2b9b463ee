"""
File: passport/core/redis.py
Description: Redis 客户端管理 (Async)

本模块负责：
1. 创建全局 Redis 连接池 (基于 redis-py 的 asyncio 扩展)
2. 提供依赖注入所需的 Redis 客户端生成器
3. 管理连接生命周期 (初始化与关闭)

Redis 在本服务中仅承担会话 Refresh Token 的存储；
激活码与第三方绑定的一致性全部依赖数据库条件更新，不使用 Redis 锁。

Author: jinmozhe
Created: 2025-12-05
"""

from collections.abc import AsyncGenerator

from redis.asyncio import Redis, from_url

from passport.core.config import settings

# redis-py 内部维护连接池，全局单例即可
redis_client: Redis = from_url(
    settings.REDIS_URL,
    encoding="utf-8",
    decode_responses=True,
)


async def get_redis() -> AsyncGenerator[Redis, None]:
    """
    获取 Redis 客户端依赖。

    封装为依赖注入便于在测试中 override 为内存替身。
    """
    yield redis_client


async def close_redis() -> None:
    """
    关闭 Redis 连接池。
    应在 FastAPI 应用的 lifespan shutdown 事件中调用。
    """
    await redis_client.aclose()

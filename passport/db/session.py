"""
File: passport/db/session.py
Description: 数据库会话管理 (Async SQLAlchemy)

本模块负责：
1. 创建全局唯一的 AsyncEngine (生产: postgresql+asyncpg，本地/测试: sqlite+aiosqlite)
2. 配置连接池参数 (pool_pre_ping, pool_size 等)，从 Settings 读取
3. 创建 AsyncSession 工厂 (AsyncSessionLocal)
4. 集成 orjson 用于高性能 JSON 字段序列化
5. 提供引擎关闭函数用于优雅退出

Author: jinmozhe
Created: 2025-11-24
Updated: 2026-03-02 (SQLite engine kwargs)
"""

from typing import Any

import orjson
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from passport.core.config import settings


def _orjson_serializer(obj: Any) -> str:
    """
    使用 orjson 替代标准库 json.dumps。
    orjson 返回 bytes，SQLAlchemy 需要 str，因此需 decode。
    """
    return orjson.dumps(obj).decode("utf-8")


def _orjson_deserializer(obj: str | bytes) -> Any:
    return orjson.loads(obj)


def _engine_options() -> dict[str, Any]:
    """
    根据数据库方言构造引擎参数。
    SQLite 不支持连接池尺寸参数，也不接受 asyncpg 的 ssl 参数。
    """
    options: dict[str, Any] = {
        "echo": settings.is_debug,
        "json_serializer": _orjson_serializer,
        "json_deserializer": _orjson_deserializer,
    }
    if settings.is_sqlite:
        options["connect_args"] = {"check_same_thread": False}
        return options

    options.update(
        pool_pre_ping=settings.DB_POOL_PRE_PING,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        connect_args={"ssl": False},
    )
    return options


# 1. 创建异步引擎
engine: AsyncEngine = create_async_engine(
    str(settings.SQLALCHEMY_DATABASE_URI), **_engine_options()
)

# 2. 创建异步会话工厂
# expire_on_commit=False 是 AsyncSession 的强制要求
# 避免在 commit 后访问属性时触发隐式 IO (Async 模式下不支持)
AsyncSessionLocal: async_sessionmaker[AsyncSession] = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


async def close_engine() -> None:
    """
    关闭数据库引擎，释放连接池资源。
    应在应用 shutdown 事件中调用。
    """
    await engine.dispose()

"""
File: tests/conftest.py
Description: Pytest 全局 Fixtures 配置 (Async + 内存 SQLite)

说明：
1. 必须在导入 passport 之前写入环境变量 (Settings 在导入时实例化)
2. 每个测试函数独享一个内存 SQLite 引擎 (StaticPool 保证同一连接)
3. Redis 使用内存替身，微信开放平台使用 httpx.MockTransport 模拟
4. pyproject.toml 中 asyncio_default_fixture_loop_scope = "function"

Author: jinmozhe
Created: 2025-11-26
Updated: 2026-03-02 (SQLite, Redis double, WeChat mock)
"""

import asyncio
import os
import sys
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

# ------------------------------------------------------------------------------
# Windows 平台特定修复 (必须在任何 async 操作之前)
# ------------------------------------------------------------------------------
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# ------------------------------------------------------------------------------
# 1. 环境配置覆写 (导入 passport 之前)
# ------------------------------------------------------------------------------
os.environ["SECRET_KEY"] = "test-secret-key-for-passport-service-0123456789"
os.environ["SQLALCHEMY_DATABASE_URI"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "local"
os.environ["WECHAT_APP_ID"] = "wx-test-app"
os.environ["WECHAT_APP_SECRET"] = "wx-test-secret"
os.environ["RETURN_URL_ALLOWED_HOSTS"] = '["app.example.com", "localhost"]'

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from passport.api.deps import get_db, get_session_factory
from passport.core.http import get_http_client
from passport.core.redis import get_redis
from passport.core.security import create_access_token, get_password_hash
from passport.db.models import Base
from passport.db.models.user import User
from passport.main import app

TEST_PASSWORD = "correct-horse-1"

# ------------------------------------------------------------------------------
# 2. 替身 (Test Doubles)
# ------------------------------------------------------------------------------


class DummyRedis:
    """内存 Redis 替身 (仅实现 AuthService 用到的命令)"""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.fail = False

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def setex(self, key: str, ttl: timedelta | int, value: str) -> bool:
        if self.fail:
            raise RedisConnectionError("redis unavailable")
        self.store[key] = value
        return True

    async def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self.store.pop(key, None) is not None)

    async def aclose(self) -> None:
        return None


@dataclass
class FakeWeChat:
    """
    微信开放平台模拟。
    修改字段即可控制下一次 exchange_code 的返回。
    """

    open_id: str = "openid-001"
    union_id: str | None = "unionid-001"
    nickname: str = "微信用户"
    head_image: str = "https://thirdwx.qlogo.cn/head/001"
    token_error: dict[str, Any] | None = None
    status_code: int = 200
    calls: list[str] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request.url.path)
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="bad gateway")

        if request.url.path.endswith("/sns/oauth2/access_token"):
            if self.token_error is not None:
                return httpx.Response(200, json=self.token_error)
            payload: dict[str, Any] = {
                "access_token": "ACCESS_TOKEN",
                "expires_in": 7200,
                "refresh_token": "REFRESH_TOKEN",
                "openid": self.open_id,
                "scope": "snsapi_login",
            }
            if self.union_id:
                payload["unionid"] = self.union_id
            return httpx.Response(200, json=payload)

        if request.url.path.endswith("/sns/userinfo"):
            payload = {
                "openid": self.open_id,
                "nickname": self.nickname,
                "headimgurl": self.head_image,
            }
            if self.union_id:
                payload["unionid"] = self.union_id
            return httpx.Response(200, json=payload)

        return httpx.Response(404, json={"errcode": 404})


# ------------------------------------------------------------------------------
# 3. 数据库 Fixtures
# ------------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """每个测试独享的内存数据库"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def redis() -> DummyRedis:
    return DummyRedis()


@pytest.fixture
def wechat() -> FakeWeChat:
    return FakeWeChat()


@pytest_asyncio.fixture
async def wechat_http_client(wechat: FakeWeChat) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(wechat.handler)) as c:
        yield c


# ------------------------------------------------------------------------------
# 4. 用户 Fixtures
# ------------------------------------------------------------------------------


async def make_user(
    session: AsyncSession,
    username: str,
    *,
    is_superuser: bool = False,
    email: str | None = None,
    phone_number: str | None = None,
    password: str = TEST_PASSWORD,
) -> User:
    user = User(
        username=username,
        email=email,
        phone_number=phone_number,
        hashed_password=get_password_hash(password),
        is_superuser=is_superuser,
    )
    session.add(user)
    await session.commit()
    return user


def auth_headers_for(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(subject=str(user.id))}"}


@pytest.fixture
def password() -> str:
    """测试用户的明文密码"""
    return TEST_PASSWORD


@pytest.fixture
def create_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """用户工厂: await create_user("bob", email=...)"""

    async def _create(username: str, **kwargs: Any) -> User:
        return await make_user(db_session, username, **kwargs)

    return _create


@pytest.fixture
def headers_for() -> Callable[[User], dict[str, str]]:
    return auth_headers_for


@pytest_asyncio.fixture
async def user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "alice", email="alice@example.com")


@pytest_asyncio.fixture
async def superuser(db_session: AsyncSession) -> User:
    return await make_user(db_session, "admin", is_superuser=True)


@pytest.fixture
def auth_headers(user: User) -> dict[str, str]:
    return auth_headers_for(user)


@pytest.fixture
def admin_headers(superuser: User) -> dict[str, str]:
    return auth_headers_for(superuser)


# ------------------------------------------------------------------------------
# 5. HTTP 客户端
# ------------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    redis: DummyRedis,
    wechat_http_client: httpx.AsyncClient,
) -> AsyncGenerator[AsyncClient, None]:
    """
    获取异步 HTTP 客户端。
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_get_redis() -> AsyncGenerator[DummyRedis, None]:
        yield redis

    async def override_get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
        yield wechat_http_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_http_client] = override_get_http_client
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"  # type: ignore
    ) as ac:
        yield ac

    app.dependency_overrides.clear()

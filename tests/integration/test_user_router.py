"""
File: tests/integration/test_user_router.py
Description: 用户领域 HTTP 接口集成测试

本模块使用 httpx.AsyncClient 对 API 进行端到端测试，验证：
1. 路由挂载与 URL 路径 (/api/v1/users, /api/v1/auth)
2. 统一响应信封结构 (ResponseModel)
3. 中间件行为 (X-Request-ID)
4. 注册 -> 登录 -> 查看资料 的完整流程

Author: jinmozhe
Created: 2025-11-26
Updated: 2026-03-02 (Register / login / me)
"""

from typing import Any

import pytest
from httpx import AsyncClient

from passport.core.config import settings
from passport.db.models.user import User

# ------------------------------------------------------------------------------
# Integration Tests
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_user_api(client: AsyncClient) -> None:
    """
    测试：POST /users 注册接口
    验证：
    1. 状态码 201
    2. 响应包含统一信封 (code=success, request_id)
    3. 返回数据包含 id, created_at，且不含 password
    """
    payload = {
        "username": "api_user",
        "phone_number": "+8613800000010",
        "password": "strongpassword",
        "email": "api@example.com",
    }

    response = await client.post(f"{settings.API_V1_STR}/users", json=payload)

    assert response.status_code == 201

    body = response.json()
    assert body["code"] == "success"
    assert body["message"] == "注册成功"
    assert body["request_id"] is not None
    assert response.headers.get("X-Request-ID") == body["request_id"]

    user_data = body["data"]
    assert user_data["username"] == payload["username"]
    assert user_data["phone_number"] == payload["phone_number"]
    assert user_data["user_type"] == 0
    assert "id" in user_data
    assert "created_at" in user_data
    assert "password" not in user_data
    assert "hashed_password" not in user_data


@pytest.mark.asyncio
async def test_create_user_duplicate_username_api(
    client: AsyncClient, user: User
) -> None:
    response = await client.post(
        f"{settings.API_V1_STR}/users",
        json={"username": "alice", "password": "strongpassword"},
    )

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "users.username_exist"
    assert body["message"] == "该用户名已被占用"


@pytest.mark.asyncio
async def test_create_user_invalid_phone_api(client: AsyncClient) -> None:
    response = await client.post(
        f"{settings.API_V1_STR}/users",
        json={"username": "bad_phone", "password": "strongpassword", "phone_number": "138"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "system.invalid_params"


@pytest.mark.asyncio
async def test_login_then_read_me(client: AsyncClient, user: User, password: str) -> None:
    login_res = await client.post(
        f"{settings.API_V1_STR}/auth/login",
        json={"login_name": "alice@example.com", "password": password},
    )
    assert login_res.status_code == 200
    token = login_res.json()["data"]["access_token"]

    me_res = await client.get(
        f"{settings.API_V1_STR}/users/me",
        headers={"Authorization": f"Bearer {token}"},
    )

    assert me_res.status_code == 200
    data = me_res.json()["data"]
    assert data["id"] == str(user.id)
    assert data["username"] == "alice"


@pytest.mark.asyncio
async def test_login_wrong_password_api(client: AsyncClient, user: User) -> None:
    response = await client.post(
        f"{settings.API_V1_STR}/auth/login",
        json={"login_name": "alice", "password": "wrong-password"},
    )

    assert response.status_code == 403
    assert response.json()["code"] == "auth.invalid_credentials"


@pytest.mark.asyncio
async def test_login_when_session_store_down(
    client: AsyncClient, user: User, password: str, redis: Any
) -> None:
    redis.fail = True

    response = await client.post(
        f"{settings.API_V1_STR}/auth/login",
        json={"login_name": "alice", "password": password},
    )

    assert response.status_code == 503
    assert response.json()["code"] == "system.session_store_unavailable"


@pytest.mark.asyncio
async def test_me_requires_token(client: AsyncClient) -> None:
    response = await client.get(f"{settings.API_V1_STR}/users/me")

    assert response.status_code == 401
    body = response.json()
    assert body["code"] == "system.unauthorized"
    assert body["request_id"] == response.headers.get("X-Request-ID")

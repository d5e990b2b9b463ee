"""
File: passport/api/deps.py
Description: 全局依赖注入定义 (DB Session + Authentication)

本模块负责：
1. 数据库会话管理 (get_db / DBSession, get_session_factory / SessionFactory)
2. JWT 鉴权与用户身份提取 (get_current_user / CurrentUser)
3. 可选登录态 (get_optional_user / OptionalUser)：浏览器跳转回调场景从 Cookie 读取会话
4. 权限控制 (get_current_superuser / SuperUser)

Author: jinmozhe
Created: 2025-12-05
Updated: 2026-03-02 (OptionalUser via session cookie)
"""

import uuid
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Cookie, Depends, Header
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from passport.core.config import settings
from passport.core.exceptions import PermissionException, UnauthorizedException
from passport.db.models.user import User
from passport.db.session import AsyncSessionLocal

# ------------------------------------------------------------------------------
# 1. Database Dependencies
# ------------------------------------------------------------------------------


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    获取异步数据库会话依赖。
    使用 async with 确保请求结束时自动关闭 session。
    """
    async with AsyncSessionLocal() as session:
        yield session


DBSession = Annotated[AsyncSession, Depends(get_db)]


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    获取会话工厂。
    供响应发送后才执行的后台任务自行开启会话 (请求级会话此时已关闭)。
    """
    return AsyncSessionLocal


SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


# ------------------------------------------------------------------------------
# 2. Authentication Dependencies (JWT 鉴权)
# ------------------------------------------------------------------------------


def _extract_bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, param = authorization.partition(" ")
    if scheme.lower() != "bearer" or not param:
        return None
    return param


async def get_token_from_header(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """
    从 Authorization Header 提取 Bearer Token。
    格式要求: Authorization: Bearer <token>
    """
    if not authorization:
        raise UnauthorizedException(message="Missing Authorization Header")

    token = _extract_bearer(authorization)
    if token is None:
        raise UnauthorizedException(message="Invalid Authentication Scheme")
    return token


async def _resolve_user(token: str, session: AsyncSession) -> User:
    """
    解析 JWT 并查库校验用户状态。

    流程:
    1. 校验 JWT 签名与有效期 (jose.jwt.decode)
    2. 提取 sub (user_id)
    3. 查库校验用户是否存在、是否激活、是否软删除
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,  # type: ignore[arg-type]
            algorithms=[settings.ALGORITHM],
        )
        subject: str | None = payload.get("sub")
        if subject is None:
            raise UnauthorizedException(message="Invalid Token: missing sub")
        user_id = uuid.UUID(subject)
    except (JWTError, ValueError):
        # 使用 from None 截断异常链，避免暴露底层 jose 异常细节
        raise UnauthorizedException(message="Invalid Token or Expired") from None

    # 即使 Token 未过期，如果用户被封号或删除，也应拒绝访问
    user = await session.get(User, user_id)

    if not user:
        raise UnauthorizedException(message="User not found")

    if user.is_deleted:
        raise UnauthorizedException(message="User has been deleted")

    if not user.is_active:
        raise UnauthorizedException(message="User is inactive")

    return user


async def get_current_user(
    token: Annotated[str, Depends(get_token_from_header)],
    session: DBSession,
) -> User:
    """获取当前登录用户 (Bearer Token 必填)"""
    return await _resolve_user(token, session)


async def get_optional_user(
    session: DBSession,
    authorization: Annotated[str | None, Header()] = None,
    session_cookie: Annotated[
        str | None, Cookie(alias=settings.SESSION_COOKIE_NAME)
    ] = None,
) -> User | None:
    """
    获取可选的登录用户。

    第三方回调由浏览器重定向发起，无法携带 Authorization 头，
    因此优先读取 Bearer Token，其次读取会话 Cookie；
    无凭证或凭证无效时返回 None，由调用方决定跳转登录页。
    """
    token = _extract_bearer(authorization) or session_cookie
    if not token:
        return None
    try:
        return await _resolve_user(token, session)
    except UnauthorizedException:
        return None


# ------------------------------------------------------------------------------
# 3. Permission Dependencies (权限控制)
# ------------------------------------------------------------------------------

# 用法: async def endpoint(user: CurrentUser): ...
CurrentUser = Annotated[User, Depends(get_current_user)]

OptionalUser = Annotated[User | None, Depends(get_optional_user)]


async def get_current_superuser(current_user: CurrentUser) -> User:
    """
    超级管理员权限校验。
    """
    if not current_user.is_superuser:
        raise PermissionException(message="Not enough privileges")
    return current_user


SuperUser = Annotated[User, Depends(get_current_superuser)]

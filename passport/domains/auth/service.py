"""
File: passport/domains/auth/service.py
Description: 认证领域服务 (Service)

本模块封装认证核心业务逻辑：
1. 登录校验: 验证登录名与密码，签发双 Token。
2. 会话签发: issue_session 供第三方登录/绑定流程复用。
3. 密码复核: verify_user_password 用于绑定/解绑前的二次认证。
4. 刷新令牌: 验证 Redis 中的 Refresh Token，执行旋转策略 (Rotation)。
5. 用户登出: 销毁 Refresh Token。

Author: jinmozhe
Created: 2025-12-05
Updated: 2026-03-02 (issue_session / verify_user_password)
"""

import secrets
import uuid
from datetime import timedelta

from redis.asyncio import Redis

from passport.core.config import settings
from passport.core.exceptions import AppException
from passport.core.logging import logger
from passport.core.security import create_access_token, verify_password_async
from passport.db.models.user import User
from passport.domains.auth.constants import REFRESH_TOKEN_KEY, AuthError
from passport.domains.auth.schemas import LoginRequest, Token
from passport.domains.users.repository import UserRepository
from passport.utils.masking import mask_login_name


class AuthService:
    """
    认证服务类。
    """

    def __init__(self, user_repo: UserRepository, redis: Redis):
        self.user_repo = user_repo
        self.redis = redis

    async def login(self, login_data: LoginRequest) -> Token:
        """
        用户登录流程。

        流程:
        1. 按登录名查库 (Fail Fast)
        2. 验证密码哈希 (异步)
        3. 检查用户激活状态
        4. 生成 Access Token (JWT) + Refresh Token (Redis)
        """
        user = await self.authenticate(login_data.login_name, login_data.password)
        return await self.issue_session(user)

    async def authenticate(self, login_name: str, password: str) -> User:
        """
        按登录名 + 密码认证用户。
        用户不存在与密码错误抛出同一错误，防止枚举攻击。
        """
        user = await self.user_repo.get_by_login_name(login_name)
        if not user:
            logger.bind(login_name=mask_login_name(login_name)).info(
                "Authentication failed"
            )
            raise AppException(AuthError.INVALID_CREDENTIALS)

        await self.verify_user_password(user, password)

        if not user.is_active:
            raise AppException(AuthError.ACCOUNT_LOCKED)
        return user

    async def verify_user_password(self, user: User, password: str) -> None:
        """密码复核，失败抛出通用凭证错误"""
        if not await verify_password_async(password, user.hashed_password):
            logger.bind(user_id=str(user.id)).info("Password verification failed")
            raise AppException(AuthError.INVALID_CREDENTIALS)

    async def issue_session(self, user: User) -> Token:
        """为用户签发会话 (双 Token)"""
        token = await self._create_tokens(user_id=str(user.id))
        logger.bind(user_id=str(user.id)).info("Session issued")
        return token

    async def refresh_token(self, refresh_token: str) -> Token:
        """
        使用 Refresh Token 换取新 Token (Token Rotation)。

        流程:
        1. 查 Redis 确认 token 有效性
        2. 销毁旧 Token (防重放)
        3. 查库确认用户未被冻结/删除
        4. 签发全新的一对 Access + Refresh Token
        """
        redis_key = REFRESH_TOKEN_KEY.format(token=refresh_token)
        user_id = await self.redis.get(redis_key)

        if not user_id:
            raise AppException(AuthError.REFRESH_TOKEN_INVALID)

        # 一次性使用策略
        await self.redis.delete(redis_key)

        user = await self.user_repo.get(uuid.UUID(user_id))
        if not user or user.is_deleted or not user.is_active:
            raise AppException(AuthError.REFRESH_TOKEN_INVALID)

        return await self._create_tokens(user_id=user_id)

    async def logout(self, refresh_token: str) -> None:
        await self.redis.delete(REFRESH_TOKEN_KEY.format(token=refresh_token))

    async def _create_tokens(self, user_id: str) -> Token:
        """
        [内部方法] 构造 Token 响应并持久化 Refresh Token。
        """
        access_token = create_access_token(subject=user_id)

        # 高熵随机串
        refresh_token = secrets.token_urlsafe(32)

        await self.redis.setex(
            REFRESH_TOKEN_KEY.format(token=refresh_token),
            timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
            user_id,
        )

        return Token(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            token_type="bearer",
        )

"""
File: passport/domains/auth/dependencies.py
Description: 认证领域依赖注入 (DI)

依赖链：
UserRepoDep + Redis → AuthService → AuthServiceDep

AuthService 同时作为第三方登录流程的会话签发器。

Author: jinmozhe
Created: 2026-03-02
"""

from typing import Annotated

from fastapi import Depends
from redis.asyncio import Redis

from passport.core.redis import get_redis
from passport.domains.auth.service import AuthService
from passport.domains.users.dependencies import UserRepoDep


async def get_auth_service(
    user_repo: UserRepoDep,
    redis: Annotated[Redis, Depends(get_redis)],
) -> AuthService:
    """
    构造 AuthService 实例。
    自动注入用户仓储与 Redis 客户端。
    """
    return AuthService(user_repo=user_repo, redis=redis)


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]

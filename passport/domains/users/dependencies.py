"""
File: passport/domains/users/dependencies.py
Description: 用户领域依赖注入 (DI)

依赖链：
DBSession → UserRepository → UserService → UserServiceDep

UserRepoDep 同时被 auth / activation_codes / third_party 领域复用 (用户目录)。

Author: jinmozhe
Created: 2025-11-26
"""

from typing import Annotated

from fastapi import Depends

from passport.api.deps import DBSession
from passport.db.models.user import User
from passport.domains.users.repository import UserRepository
from passport.domains.users.service import UserService


async def get_user_repository(session: DBSession) -> UserRepository:
    """
    获取用户仓储实例 (UserRepository)。
    """
    return UserRepository(model=User, session=session)


UserRepoDep = Annotated[UserRepository, Depends(get_user_repository)]


async def get_user_service(repo: UserRepoDep) -> UserService:
    return UserService(repo=repo)


# Router 中只需写: service: UserServiceDep
UserServiceDep = Annotated[UserService, Depends(get_user_service)]

"""
File: passport/domains/users/repository.py
Description: 用户领域仓储层 (Repository)

本模块负责用户数据的数据库访问，继承自通用 BaseRepository。
扩展功能：
1. get_by_phone_number / get_by_email / get_by_username: 按凭证查询 (自动过滤软删除)
2. get_by_login_name: 按登录名格式自动选择凭证字段
3. add_user_type: 原子地为用户追加类型位标记

Author: jinmozhe
Created: 2025-11-25
Updated: 2026-03-02 (login name resolution, user_type flags)
"""

from uuid import UUID

from sqlalchemy import select, update

from passport.db.models.user import User, UserType
from passport.db.repositories.base import BaseRepository
from passport.domains.users.schemas import E164_PATTERN, UserCreate


class UserRepository(BaseRepository[User, UserCreate, UserCreate]):
    """
    用户仓储类。

    注意：
    本类中的查询方法默认都会过滤掉软删除的数据 (is_deleted=True)。
    """

    async def get_by_phone_number(self, phone_number: str) -> User | None:
        stmt = select(User).where(
            User.phone_number == phone_number, User.is_deleted.is_(False)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email, User.is_deleted.is_(False))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> User | None:
        stmt = select(User).where(User.username == username, User.is_deleted.is_(False))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_login_name(self, login_name: str) -> User | None:
        """
        按登录名查询有效用户。
        规则: 含 @ 视为邮箱，E.164 格式视为手机号，其余视为用户名。
        """
        if "@" in login_name:
            return await self.get_by_email(login_name)
        if E164_PATTERN.match(login_name):
            return await self.get_by_phone_number(login_name)
        return await self.get_by_username(login_name)

    async def add_user_type(self, user_id: UUID, flag: UserType) -> None:
        """
        原子追加用户类型位 (user_type = user_type | flag)。
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(user_type=User.user_type.op("|")(int(flag)))
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

"""
File: passport/domains/users/service.py
Description: 用户领域服务 (业务逻辑层)

本模块封装用户管理的核心业务逻辑：
1. 用户注册 (创建)：校验唯一性、哈希密码、写入数据库。
2. 用户查询：通过 ID 获取用户 (自动过滤软删除)。
3. 默认头像：注册后由旁路任务补齐 (失败不影响注册结果)。

注意：
- 所有数据库写操作的事务提交 (Commit) 由本层负责。
- 密码哈希使用异步版本函数，避免阻塞事件循环。

Author: jinmozhe
Created: 2025-11-25
Updated: 2026-03-02 (Error codes, default avatar side task)
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from passport.core.config import settings
from passport.core.exceptions import AppException
from passport.core.logging import logger
from passport.core.security import get_password_hash_async
from passport.db.models.user import User
from passport.domains.users.constants import UserErrorCode
from passport.domains.users.repository import UserRepository
from passport.domains.users.schemas import UserCreate
from passport.utils.masking import mask_login_name


class UserService:
    """
    用户领域服务。

    职责：
    - 编排业务流程
    - 执行业务规则校验 (如：用户名是否重复)
    - 调用 Repository 进行数据持久化
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    async def create(
        self, obj_in: UserCreate, *, avatar: str | None = None, commit: bool = True
    ) -> User:
        """
        创建新用户 (注册)。

        Args:
            obj_in: 注册参数
            avatar: 初始头像 (第三方注册时使用三方头像)
            commit: 是否立即提交；第三方注册需与绑定写入同一事务时传 False
        """
        # 1. 唯一性校验 (Fail Fast)
        if await self.repo.get_by_username(obj_in.username):
            raise AppException(UserErrorCode.USERNAME_EXIST)

        if obj_in.phone_number and await self.repo.get_by_phone_number(
            obj_in.phone_number
        ):
            raise AppException(UserErrorCode.PHONE_EXIST)

        if obj_in.email and await self.repo.get_by_email(obj_in.email):
            raise AppException(UserErrorCode.EMAIL_EXIST)

        # 2. 密码加密
        hashed_password = await get_password_hash_async(obj_in.password)

        # 3. 准备数据
        user_data = obj_in.model_dump(exclude={"password"}, exclude_unset=True)
        user = await self.repo.create(
            {**user_data, "hashed_password": hashed_password, "avatar": avatar}
        )

        if commit:
            await self.repo.session.commit()

        logger.bind(
            user_id=str(user.id), username=mask_login_name(user.username)
        ).info("User created successfully")

        return user

    async def get(self, user_id: UUID) -> User:
        """
        获取用户详情。
        如果用户不存在或已被软删除，抛出 USER_NOT_FOUND。
        """
        user = await self.repo.get(user_id)

        # 业务层要把"软删除"视为"不存在"
        if not user or user.is_deleted:
            raise AppException(UserErrorCode.USER_NOT_FOUND)
        return user

    async def assign_default_avatar(self, user_id: UUID) -> str | None:
        """
        为尚无头像的用户生成默认头像。
        已有头像 (例如第三方头像) 时保持不变，返回 None。
        """
        user = await self.get(user_id)
        if user.avatar:
            return None

        avatar = settings.DEFAULT_HEAD_IMAGE_TEMPLATE.format(seed=user.id.hex)
        await self.repo.update(user, {"avatar": avatar})
        await self.repo.session.commit()

        logger.bind(user_id=str(user_id)).info("Default avatar assigned")
        return avatar


async def assign_default_avatar_task(
    session_factory: async_sessionmaker[AsyncSession], user_id: UUID
) -> None:
    """
    旁路任务入口：在独立会话中为新用户补齐默认头像。
    """
    async with session_factory() as session:
        service = UserService(repo=UserRepository(model=User, session=session))
        await service.assign_default_avatar(user_id)

"""
File: passport/domains/third_party/repository.py
Description: 第三方身份仓储层

扩展功能：
1. get_by_subject: 按第三方主体查询 (优先 UnionID，其次 OpenID)
2. bind_user: 条件 UPDATE 原子绑定 (仅当 user_id 为空时成功)
3. 按用户查询 / 删除绑定关系

Author: jinmozhe
Created: 2026-03-02
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import delete, select, update

from passport.db.models.third_party_identity import (
    IDENTITY_STATUS_ACTIVE,
    ThirdPartyIdentity,
)
from passport.db.repositories.base import BaseRepository
from passport.domains.third_party.schemas import WeChatInfoRead


class ThirdPartyIdentityRepository(
    BaseRepository[ThirdPartyIdentity, WeChatInfoRead, WeChatInfoRead]
):
    """第三方身份仓储"""

    async def get_by_subject(
        self, third_party_type: str, open_id: str, union_id: str | None
    ) -> ThirdPartyIdentity | None:
        """
        查询第三方身份。
        同一 UnionID 可能对应多个 OpenID (多个应用)，取最早创建的一行。
        """
        if union_id:
            stmt = (
                select(ThirdPartyIdentity)
                .where(
                    ThirdPartyIdentity.third_party_type == third_party_type,
                    ThirdPartyIdentity.union_id == union_id,
                )
                .order_by(ThirdPartyIdentity.created_at, ThirdPartyIdentity.id)
                .limit(1)
                .execution_options(populate_existing=True)
            )
            identity = (await self.session.execute(stmt)).scalars().first()
            if identity is not None:
                return identity

        stmt = (
            select(ThirdPartyIdentity)
            .where(
                ThirdPartyIdentity.third_party_type == third_party_type,
                ThirdPartyIdentity.open_id == open_id,
            )
            .execution_options(populate_existing=True)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def get_fresh(self, identity_id: UUID) -> ThirdPartyIdentity | None:
        """绕过会话缓存重新读取"""
        return await self.session.get(
            ThirdPartyIdentity, identity_id, populate_existing=True
        )

    async def get_by_user(
        self, user_id: UUID, third_party_type: str
    ) -> ThirdPartyIdentity | None:
        stmt = select(ThirdPartyIdentity).where(
            ThirdPartyIdentity.user_id == user_id,
            ThirdPartyIdentity.third_party_type == third_party_type,
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def get_by_union_id(
        self, union_id: str, third_party_type: str
    ) -> ThirdPartyIdentity | None:
        stmt = (
            select(ThirdPartyIdentity)
            .where(
                ThirdPartyIdentity.union_id == union_id,
                ThirdPartyIdentity.third_party_type == third_party_type,
            )
            .order_by(ThirdPartyIdentity.created_at, ThirdPartyIdentity.id)
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalars().first()

    async def list_by_user(self, user_id: UUID) -> list[ThirdPartyIdentity]:
        stmt = (
            select(ThirdPartyIdentity)
            .where(ThirdPartyIdentity.user_id == user_id)
            .order_by(ThirdPartyIdentity.third_party_type)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def has_active_link(self, user_id: UUID, third_party_type: str) -> bool:
        stmt = select(ThirdPartyIdentity.id).where(
            ThirdPartyIdentity.user_id == user_id,
            ThirdPartyIdentity.third_party_type == third_party_type,
            ThirdPartyIdentity.status == IDENTITY_STATUS_ACTIVE,
        )
        return (await self.session.execute(stmt)).first() is not None

    async def bind_user(self, identity_id: UUID, user_id: UUID) -> bool:
        """
        原子绑定：UPDATE ... WHERE id = ? AND user_id IS NULL。
        影响 0 行说明已被绑定 (包括并发请求抢先绑定)。
        """
        stmt = (
            update(ThirdPartyIdentity)
            .where(
                ThirdPartyIdentity.id == identity_id,
                ThirdPartyIdentity.user_id.is_(None),
            )
            .values(user_id=user_id, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def delete_by_user(self, user_id: UUID, third_party_type: str) -> int:
        stmt = (
            delete(ThirdPartyIdentity)
            .where(
                ThirdPartyIdentity.user_id == user_id,
                ThirdPartyIdentity.third_party_type == third_party_type,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount  # type: ignore[attr-defined]

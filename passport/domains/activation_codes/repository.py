"""
File: passport/domains/activation_codes/repository.py
Description: 激活码领域仓储层 (Repository)

本模块负责激活码与使用记录的数据库访问：
1. ActivationCodeRepository
   - consume_one: 单条条件 UPDATE 原子扣减 (WHERE limit_count > 0 写入时复核)
   - increment_limit: 有符号原子增量
   - bulk_update_status: 批量改状态
   - find_interval_list: 过滤 + 分页 + 排序
2. UsageRecordRepository
   - 只追加的使用记录与分页查询

并发约定：
所有计数变更都是单语句条件更新，绝不在应用层读-改-写。
唯一性以数据库 UNIQUE 约束为准，存在性查询仅作为优化。

Author: jinmozhe
Created: 2026-03-02
"""

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, case, or_, select, update

from passport.db.models.activation_code import (
    ActivationCode,
    ActivationCodeStatus,
    ActivationCodeUsageRecord,
)
from passport.db.repositories.base import BaseRepository
from passport.domains.activation_codes.schemas import (
    ActivationCodeQuery,
    BatchCreateRequest,
    BatchUpdateRequest,
    UsageRecordQuery,
)


class ActivationCodeRepository(
    BaseRepository[ActivationCode, BatchCreateRequest, BatchUpdateRequest]
):
    """
    激活码仓储类。
    """

    # --------------------------------------------------------------------------
    # 查询
    # --------------------------------------------------------------------------

    async def get_by_code(self, code: str) -> ActivationCode | None:
        # 条件 UPDATE 不同步会话内对象，查询时强制以数据库为准
        stmt = (
            select(ActivationCode)
            .where(ActivationCode.code == code)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_owner(self, user_id: UUID) -> ActivationCode | None:
        stmt = (
            select(ActivationCode)
            .where(ActivationCode.owner_user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def code_exists(self, code: str) -> bool:
        stmt = select(ActivationCode.id).where(ActivationCode.code == code).limit(1)
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def find_interval_list(
        self, query: ActivationCodeQuery
    ) -> tuple[list[ActivationCode], int]:
        stmt = select(ActivationCode)

        if query.status is not None:
            stmt = stmt.where(ActivationCode.status == query.status)
        if query.keywords:
            stmt = stmt.where(
                or_(
                    ActivationCode.code == query.keywords,
                    ActivationCode.owner_username.icontains(
                        query.keywords, autoescape=True
                    ),
                )
            )
        if query.begin_create_date:
            stmt = stmt.where(ActivationCode.created_at >= query.begin_create_date)
        if query.end_create_date:
            stmt = stmt.where(ActivationCode.created_at <= query.end_create_date)

        stmt = stmt.order_by(self.sort_clause(query.sort), ActivationCode.id)
        return await self.paginate(stmt, skip=query.skip, limit=query.limit)

    # --------------------------------------------------------------------------
    # 原子写操作
    # --------------------------------------------------------------------------

    async def consume_one(self, code: str, now: datetime) -> bool:
        """
        原子扣减一次可用次数。

        WHERE 子句在写入时复核全部兑换条件 (状态、剩余次数、生效窗口)，
        扣减到 0 时同一语句内将状态置为 USED。

        Returns:
            bool: 是否扣减成功 (并发竞争失败返回 False)
        """
        stmt = (
            update(ActivationCode)
            .where(
                ActivationCode.code == code,
                ActivationCode.status == ActivationCodeStatus.UNUSED,
                ActivationCode.limit_count > 0,
                or_(
                    ActivationCode.start_effective_date.is_(None),
                    ActivationCode.start_effective_date <= now,
                ),
                or_(
                    ActivationCode.end_effective_date.is_(None),
                    ActivationCode.end_effective_date >= now,
                ),
            )
            .values(
                limit_count=ActivationCode.limit_count - 1,
                status=case(
                    (
                        ActivationCode.limit_count == 1,
                        int(ActivationCodeStatus.USED),
                    ),
                    else_=ActivationCode.status,
                ),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def increment_limit(self, code: str, delta: int, now: datetime) -> bool:
        """
        有符号原子增量 (limit_count = limit_count + delta)。
        已用完 (USED) 的激活码在增量后剩余次数大于 0 时恢复为 UNUSED；
        已停用 (DISABLED) 的激活码保持停用。

        Returns:
            bool: 是否匹配到记录
        """
        new_limit = ActivationCode.limit_count + delta
        stmt = (
            update(ActivationCode)
            .where(ActivationCode.code == code)
            .values(
                limit_count=new_limit,
                status=case(
                    (
                        and_(
                            ActivationCode.status == ActivationCodeStatus.USED,
                            new_limit > 0,
                        ),
                        int(ActivationCodeStatus.UNUSED),
                    ),
                    else_=ActivationCode.status,
                ),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def bulk_update_status(
        self,
        codes: Iterable[str],
        status: ActivationCodeStatus,
        remark: str | None,
        now: datetime,
    ) -> int:
        """批量更新状态 (不存在的激活码静默忽略)，返回匹配行数"""
        values: dict[str, object] = {"status": int(status), "updated_at": now}
        if remark is not None:
            values["remark"] = remark

        stmt = (
            update(ActivationCode)
            .where(ActivationCode.code.in_(list(codes)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount


class UsageRecordRepository(
    BaseRepository[ActivationCodeUsageRecord, BatchCreateRequest, BatchUpdateRequest]
):
    """
    激活码使用记录仓储类 (只追加)。
    """

    async def find_interval_list(
        self, query: UsageRecordQuery
    ) -> tuple[list[ActivationCodeUsageRecord], int]:
        stmt = select(ActivationCodeUsageRecord)

        if query.code:
            stmt = stmt.where(ActivationCodeUsageRecord.code == query.code)
        if query.keywords:
            stmt = stmt.where(
                ActivationCodeUsageRecord.username.icontains(
                    query.keywords, autoescape=True
                )
            )
        if query.begin_create_date:
            stmt = stmt.where(
                ActivationCodeUsageRecord.created_at >= query.begin_create_date
            )
        if query.end_create_date:
            stmt = stmt.where(
                ActivationCodeUsageRecord.created_at <= query.end_create_date
            )

        stmt = stmt.order_by(self.sort_clause(query.sort), ActivationCodeUsageRecord.id)
        return await self.paginate(stmt, skip=query.skip, limit=query.limit)

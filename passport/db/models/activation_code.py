"""
File: passport/db/models/activation_code.py
Description: 激活码模型与使用记录模型

ActivationCode:
- code 全局唯一 (数据库 UNIQUE 约束为唯一性的最终依据)，创建后不可变更
- limit_count 为剩余可用次数，只允许通过条件 UPDATE 原子增减
- status 停用即软删除，激活码行永不物理删除
- owner_user_id 唯一：每个用户至多拥有一个邀请码 (并发 find-or-create 的裁决点)

ActivationCodeUsageRecord:
- 每次成功兑换追加一条，只追加不修改

Author: jinmozhe
Created: 2026-03-02
"""

import uuid
from datetime import datetime
from enum import IntEnum

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from passport.db.models.base import UTCDateTime, UUIDBase, UUIDModel, utc_now


class ActivationCodeStatus(IntEnum):
    """激活码状态 (数值为对外契约，禁止调整)"""

    UNUSED = 0
    USED = 1
    DISABLED = 2


class ActivationCode(UUIDModel):
    """
    激活码表
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "activation_codes"

    __table_args__ = (
        CheckConstraint("length(code) = 8", name="code_length"),
        CheckConstraint("status IN (0, 1, 2)", name="status_valid"),
    )

    code: Mapped[str] = mapped_column(
        String(8), unique=True, index=True, nullable=False, comment="激活码 (8位)"
    )

    status: Mapped[int] = mapped_column(
        Integer,
        default=ActivationCodeStatus.UNUSED,
        server_default=text("0"),
        nullable=False,
        index=True,
        comment="状态 (0:未使用 1:已使用 2:已停用)",
    )

    limit_count: Mapped[int] = mapped_column(
        Integer,
        default=1,
        server_default=text("1"),
        nullable=False,
        comment="剩余可用次数",
    )

    start_effective_date: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True, comment="生效开始时间 (为空表示不限)"
    )

    end_effective_date: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True, comment="生效结束时间 (为空表示不限)"
    )

    remark: Mapped[str | None] = mapped_column(
        String(255), nullable=True, comment="备注"
    )

    # --------------------------------------------------------------------------
    # 用户邀请码归属 (批量创建的激活码为空)
    # --------------------------------------------------------------------------

    owner_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        unique=True,
        nullable=True,
        comment="邀请码所属用户",
    )

    owner_username: Mapped[str | None] = mapped_column(
        String(50), nullable=True, index=True, comment="邀请码所属用户名"
    )

    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), nullable=True, comment="创建人用户ID"
    )


class ActivationCodeUsageRecord(UUIDBase):
    """
    激活码使用记录 (只追加)
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "activation_code_usage_records"

    code: Mapped[str] = mapped_column(
        String(8), nullable=False, index=True, comment="被兑换的激活码"
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
        comment="兑换用户ID",
    )

    username: Mapped[str] = mapped_column(
        String(50), nullable=False, comment="兑换用户名 (快照)"
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, nullable=False, comment="兑换时间 (UTC)"
    )

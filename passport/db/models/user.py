"""
File: passport/db/models/user.py
Description: 用户核心账号模型

本模型定义了用户核心数据结构。
继承自 UUIDModel 和 SoftDeleteMixin，自动拥有：
1. UUID v7 主键
2. created_at / updated_at (UTC)
3. is_deleted / deleted_at (软删除支持)

登录凭证：
- username 必填且唯一 (第三方注册/绑定流程以登录名定位账号)
- phone_number / email 可选，唯一

user_type 为位标记 (bit flags)，由 UserType 定义各位含义。

Author: jinmozhe
Created: 2025-11-25
Updated: 2026-03-02 (username as primary credential, user_type flags)
"""

from enum import IntFlag

from sqlalchemy import Boolean, CheckConstraint, Integer, String, text
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from passport.db.models.base import SoftDeleteMixin, UUIDModel


class UserType(IntFlag):
    """用户类型位标记"""

    NORMAL = 0
    # 已获得内测资格 (通过激活码激活)
    TEST_QUALIFIED = 1


class User(UUIDModel, SoftDeleteMixin):
    """
    用户模型 (账号域)
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "users"

    __table_args__ = (
        CheckConstraint(
            "length(trim(username)) > 0", name="username_not_empty"
        ),
        CheckConstraint(
            "length(hashed_password) > 0", name="password_not_empty"
        ),
    )

    # --------------------------------------------------------------------------
    # 核心凭证
    # --------------------------------------------------------------------------

    username: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, comment="用户名 (核心登录凭证)"
    )

    phone_number: Mapped[str | None] = mapped_column(
        String(20), unique=True, nullable=True, comment="手机号 (E.164格式)"
    )

    email: Mapped[str | None] = mapped_column(
        String(255), unique=True, nullable=True, comment="用户邮箱"
    )

    # 密码：存储 Argon2id 哈希值
    hashed_password: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="密码哈希值"
    )

    # --------------------------------------------------------------------------
    # 基础资料
    # --------------------------------------------------------------------------

    nickname: Mapped[str | None] = mapped_column(
        String(50), nullable=True, comment="用户昵称 (显示用)"
    )

    # 头像：第三方注册时取三方头像，否则由异步任务生成默认头像
    avatar: Mapped[str | None] = mapped_column(
        String(512), nullable=True, comment="头像URL"
    )

    # --------------------------------------------------------------------------
    # 状态与权限
    # --------------------------------------------------------------------------

    user_type: Mapped[int] = mapped_column(
        Integer,
        default=UserType.NORMAL,
        server_default=text("0"),
        nullable=False,
        comment="用户类型位标记 (1: 内测资格)",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        server_default=text("true"),
        nullable=False,
        comment="是否激活",
    )

    is_superuser: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default=text("false"),
        nullable=False,
        comment="是否超级管理员",
    )

    def has_user_type(self, flag: UserType) -> bool:
        """判断是否具备某一用户类型位"""
        return bool(self.user_type & flag)

"""
File: passport/db/models/__init__.py
Description: ORM 模型注册表

本模块负责：
1. 导入所有业务模型 (User, ActivationCode, ActivationCodeUsageRecord, ThirdPartyIdentity)
2. 导入基类 (Base, UUIDModel, Mixins)
3. 导出它们供 Alembic (env.py) 与测试 create_all 自动发现 metadata

注意：
每当新增一个 Model 文件，必须在此处导入，
否则 Alembic autogenerate 无法检测到新表。

Author: jinmozhe
Created: 2025-11-25
Updated: 2026-03-02 (Activation Code & Third Party Identity)
"""

# 1. 导入基类与组件
from passport.db.models.base import (
    Base,
    SoftDeleteMixin,
    TimestampMixin,
    UUIDBase,
    UUIDModel,
)

# 2. 导入业务模型
from passport.db.models.activation_code import (
    ActivationCode,
    ActivationCodeStatus,
    ActivationCodeUsageRecord,
)
from passport.db.models.third_party_identity import ThirdPartyIdentity
from passport.db.models.user import User, UserType

# 3. 显式导出
__all__ = [
    # 基类
    "Base",
    "UUIDBase",
    "UUIDModel",
    "TimestampMixin",
    "SoftDeleteMixin",
    # 业务模型
    "User",
    "UserType",
    "ActivationCode",
    "ActivationCodeStatus",
    "ActivationCodeUsageRecord",
    "ThirdPartyIdentity",
]

"""
File: passport/domains/users/schemas.py
Description: 用户领域 Pydantic 模型 (Schema)

本模块定义了用户相关的输入/输出数据结构：
1. UserCreate: 用户注册参数 (包含密码明文)
2. UserRead: 用户信息响应 (包含 ID, 时间戳, 屏蔽密码)

规范：
- 用户名为核心登录凭证，手机号/邮箱可选
- 手机号强制 E.164 格式校验
- 响应模型开启 from_attributes=True 以支持 ORM 转换

Author: jinmozhe
Created: 2025-11-25
Updated: 2026-03-02 (username as primary credential)
"""

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

# ------------------------------------------------------------------------------
# Constants (常量定义)
# ------------------------------------------------------------------------------

# E.164 手机号正则：以 + 开头，后接 8-15 位数字
E164_PATTERN = re.compile(r"^\+\d{8,15}$")
E164_ERROR_MESSAGE = "手机号必须符合 E.164 格式 (例如 +8613800000000)"

# 用户名：字母开头，字母/数字/下划线
USERNAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]{2,49}$")
USERNAME_ERROR_MESSAGE = "用户名须以字母开头，仅包含字母、数字、下划线，长度 3-50"

NICKNAME_MAX_LENGTH = 50


def _validate_phone(v: str | None) -> str | None:
    if v is None:
        return None
    if not E164_PATTERN.match(v):
        raise ValueError(E164_ERROR_MESSAGE)
    return v


# ------------------------------------------------------------------------------
# Input Schemas (输入模型)
# ------------------------------------------------------------------------------


class UserCreate(BaseModel):
    """
    用户创建模型 (注册)。
    """

    username: str = Field(..., description="用户名 (唯一)", examples=["alice_01"])
    password: str = Field(..., min_length=6, max_length=128, description="明文密码")
    phone_number: str | None = Field(
        default=None, description="手机号 (E.164格式, 可选)"
    )
    email: EmailStr | None = Field(default=None, description="邮箱 (可选, 唯一)")
    nickname: str | None = Field(
        default=None, max_length=NICKNAME_MAX_LENGTH, description="昵称"
    )

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if not USERNAME_PATTERN.match(v):
            raise ValueError(USERNAME_ERROR_MESSAGE)
        return v

    @field_validator("phone_number")
    @classmethod
    def validate_e164(cls, v: str | None) -> str | None:
        return _validate_phone(v)


# ------------------------------------------------------------------------------
# Output Schemas (输出/响应模型)
# ------------------------------------------------------------------------------


class UserRead(BaseModel):
    """
    用户读取模型 (响应)。
    屏蔽了 password 字段。
    """

    id: UUID = Field(..., description="用户 ID (UUID v7)")
    username: str
    phone_number: str | None = None
    email: str | None = None
    nickname: str | None = None
    avatar: str | None = Field(default=None, description="头像URL")
    user_type: int = Field(..., description="用户类型位标记 (1: 内测资格)")
    is_active: bool = Field(..., description="账号状态")
    is_superuser: bool = Field(..., description="是否超级管理员")
    created_at: datetime = Field(..., description="创建时间 (UTC)")
    updated_at: datetime = Field(..., description="更新时间 (UTC)")

    model_config = ConfigDict(from_attributes=True)

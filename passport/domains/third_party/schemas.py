"""
File: passport/domains/third_party/schemas.py
Description: 第三方登录/绑定领域 Pydantic 模型

1. RegisterOrBindRequest: 扫码后未绑定用户提交的 "注册或绑定" 参数
2. BindStateRequest / BindStateRead: 已登录用户发起绑定前的密码复核与授权地址
3. UnbindRequest: 解绑参数 (需密码复核)
4. ThirdPartyLinkRead / WeChatInfoRead: 绑定关系与第三方资料响应

Author: jinmozhe
Created: 2026-03-02
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, validate_email

from passport.domains.auth.schemas import Token
from passport.domains.third_party.constants import ThirdPartyType
from passport.domains.users.schemas import E164_PATTERN, USERNAME_PATTERN

LOGIN_NAME_ERROR_MESSAGE = "登录名须为用户名、E.164 手机号或邮箱"


class RegisterOrBindRequest(BaseModel):
    """
    注册或绑定。
    login_name 已存在时校验密码后绑定，不存在时以该登录名注册新账号并绑定。
    """

    identity_id: UUID = Field(..., description="回调跳转时携带的第三方身份 ID")
    login_name: str = Field(
        ..., min_length=3, max_length=254, description="用户名 / 手机号 / 邮箱"
    )
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("login_name")
    @classmethod
    def validate_login_name(cls, v: str) -> str:
        v = v.strip()
        if "@" in v:
            # 与 UserCreate.email (EmailStr) 同一校验规则
            _, normalized = validate_email(v)
            return normalized
        if E164_PATTERN.match(v) or USERNAME_PATTERN.match(v):
            return v
        raise ValueError(LOGIN_NAME_ERROR_MESSAGE)


class BindStateRequest(BaseModel):
    password: str = Field(..., min_length=1, max_length=128, description="当前密码")
    return_url: str | None = Field(default=None, description="绑定完成后的跳转地址")


class BindStateRead(BaseModel):
    state: str = Field(..., description="绑定状态令牌 (与当前用户绑定)")
    authorize_url: str = Field(..., description="微信扫码授权地址")


class AuthorizeUrlRead(BaseModel):
    authorize_url: str


class UnbindRequest(BaseModel):
    third_party_type: ThirdPartyType = Field(default=ThirdPartyType.WECHAT)
    password: str = Field(..., min_length=1, max_length=128, description="当前密码")


class ThirdPartyLinkRead(BaseModel):
    user_id: UUID
    name: str | None = None
    third_party_type: str

    model_config = ConfigDict(from_attributes=True)


class WeChatInfoRead(BaseModel):
    """微信资料 (不含原始快照)"""

    id: UUID
    user_id: UUID | None = None
    third_party_type: str
    open_id: str
    union_id: str | None = None
    name: str | None = None
    head_image: str | None = None
    status: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BindResultRead(BaseModel):
    """注册或绑定结果"""

    user_id: UUID
    user_created: bool = Field(..., description="是否为本次新注册的账号")
    token: Token | None = Field(
        default=None, description="会话签发失败时为空，需重新登录"
    )

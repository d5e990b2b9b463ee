"""
File: passport/domains/auth/schemas.py
Description: 认证领域 Pydantic 模型 (Schema)

本模块定义了认证相关的输入/输出数据结构：
1. Token: 登录/刷新成功后返回的双 Token 结构
2. LoginRequest: 登录名 (用户名/手机号/邮箱) + 密码
3. RefreshRequest: 刷新 Token 请求参数

Author: jinmozhe
Created: 2025-12-05
Updated: 2026-03-02 (login name)
"""

from pydantic import BaseModel, Field


class Token(BaseModel):
    """
    双 Token 响应结构 (Access + Refresh)。
    """

    access_token: str = Field(..., description="访问令牌 (JWT, 短效)")
    refresh_token: str = Field(..., description="刷新令牌 (随机串, 长效, 用于续期)")
    token_type: str = Field(default="bearer", description="令牌类型")
    expires_in: int = Field(..., description="Access Token 有效期 (秒)")


class LoginRequest(BaseModel):
    login_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="登录名 (用户名 / E.164 手机号 / 邮箱)",
        examples=["alice_01", "+8613800000000"],
    )
    password: str = Field(..., min_length=6, description="用户密码")


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., description="有效的刷新令牌")

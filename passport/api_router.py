"""
File: passport/api_router.py
Description: 根 API 路由聚合层

本模块负责：
1. 聚合所有业务领域的 Router (auth, users, activation_codes, third_party)
2. 统一设置路由前缀 (如 /auth, /activation-codes)
3. 统一设置标签 (Tags) 用于 OpenAPI 文档分组

Author: jinmozhe
Created: 2025-12-05
Updated: 2026-03-02 (Activation codes / third party domains)
"""

from fastapi import APIRouter

from passport.domains.activation_codes.router import router as activation_codes_router
from passport.domains.auth.router import router as auth_router
from passport.domains.third_party.router import router as third_party_router
from passport.domains.users.router import router as users_router

api_router = APIRouter()

# ------------------------------------------------------------------------------
# 注册领域路由
# ------------------------------------------------------------------------------

# 1. 认证模块 (Auth Domain)
api_router.include_router(auth_router, prefix="/auth", tags=["auth"])

# 2. 用户模块 (Users Domain)
api_router.include_router(users_router, prefix="/users", tags=["users"])

# 3. 激活码模块 (Activation Codes Domain)
api_router.include_router(
    activation_codes_router, prefix="/activation-codes", tags=["激活码"]
)

# 4. 第三方登录/绑定模块 (Third Party Domain)
api_router.include_router(
    third_party_router, prefix="/third-party", tags=["第三方账号"]
)

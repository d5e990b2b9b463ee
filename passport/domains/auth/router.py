"""
File: passport/domains/auth/router.py
Description: 认证领域 HTTP 路由层

本模块定义认证相关的 API 端点：
1. POST /login: 登录 (返回双 Token，同时写入会话 Cookie)
2. POST /refresh: 刷新 (旋转策略，返回新双 Token)
3. POST /logout: 登出 (销毁 Refresh Token，清除会话 Cookie)

Author: jinmozhe
Created: 2025-12-05
Updated: 2026-03-02 (Session cookie)
"""

from fastapi import APIRouter, Request, Response

from passport.core.response import ResponseModel
from passport.domains.auth.constants import AuthMsg
from passport.domains.auth.cookies import clear_session_cookie, set_session_cookie
from passport.domains.auth.dependencies import AuthServiceDep
from passport.domains.auth.schemas import LoginRequest, RefreshRequest, Token

router = APIRouter()


@router.post(
    "/login",
    response_model=ResponseModel[Token],
    summary="用户登录",
    description="使用登录名 (用户名/手机号/邮箱) + 密码登录，返回 Access Token 与 Refresh Token。",
)
async def login(
    request: Request,
    response: Response,
    login_data: LoginRequest,
    service: AuthServiceDep,
) -> ResponseModel[Token]:
    token = await service.login(login_data)
    set_session_cookie(response, token)

    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=token, message=AuthMsg.LOGIN_SUCCESS, request_id=req_id
    )


@router.post(
    "/refresh",
    response_model=ResponseModel[Token],
    summary="刷新令牌 (续期)",
    description="使用有效的 Refresh Token 换取新的一对 Token (Token Rotation 策略)。旧 Token 将失效。",
)
async def refresh_token(
    request: Request,
    response: Response,
    refresh_data: RefreshRequest,
    service: AuthServiceDep,
) -> ResponseModel[Token]:
    token = await service.refresh_token(refresh_data.refresh_token)
    set_session_cookie(response, token)

    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=token, message=AuthMsg.REFRESH_SUCCESS, request_id=req_id
    )


@router.post(
    "/logout",
    response_model=ResponseModel[None],
    summary="用户登出",
    description="销毁服务端存储的 Refresh Token，使该会话失效。",
)
async def logout(
    request: Request,
    response: Response,
    refresh_data: RefreshRequest,
    service: AuthServiceDep,
) -> ResponseModel[None]:
    await service.logout(refresh_data.refresh_token)
    clear_session_cookie(response)

    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=None, message=AuthMsg.LOGOUT_SUCCESS, request_id=req_id
    )

"""
File: passport/domains/auth/cookies.py
Description: 会话 Cookie 读写

浏览器重定向 (第三方回调) 无法携带 Authorization 头，
登录成功后同时将 Access Token 写入 HttpOnly Cookie，由 OptionalUser 依赖读取。

Author: jinmozhe
Created: 2026-03-02
"""

from starlette.responses import Response

from passport.core.config import settings
from passport.domains.auth.schemas import Token


def set_session_cookie(response: Response, token: Token) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token.access_token,
        max_age=token.expires_in,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )

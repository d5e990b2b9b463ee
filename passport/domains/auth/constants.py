"""
File: passport/domains/auth/constants.py
Description: 认证领域常量定义 (错误码 + 成功提示)
Namespace: auth.*

1. Error 定义: 继承 BaseErrorCode，包含 (HTTP状态, 业务码, 默认文案)
2. Msg 定义: 纯字符串常量，用于 Router 返回成功响应

Author: jinmozhe
Created: 2026-01-15
Updated: 2026-03-02 (login name credentials)
"""

from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from passport.core.error_code import BaseErrorCode


class AuthError(BaseErrorCode):
    """
    认证领域错误定义
    Tuple Structure: (HTTP_Status, Code_String, Default_Message)
    """

    # 登录/绑定/解绑的通用凭证错误 (安全掩码)
    # 账号不存在与密码错误返回完全一致的响应，防止枚举攻击
    INVALID_CREDENTIALS = (
        HTTP_403_FORBIDDEN,
        "auth.invalid_credentials",
        "账号或密码错误",
    )

    ACCOUNT_LOCKED = (HTTP_403_FORBIDDEN, "auth.account_locked", "账户已被冻结")

    REFRESH_TOKEN_INVALID = (
        HTTP_401_UNAUTHORIZED,
        "auth.refresh_token_invalid",
        "Refresh token 无效或已过期",
    )


class AuthMsg:
    """
    认证领域成功提示文案
    """

    LOGIN_SUCCESS = "登录成功"
    LOGOUT_SUCCESS = "已安全退出"
    REFRESH_SUCCESS = "令牌刷新成功"


# Redis Key 模板: refresh_token:{token} -> user_id
REFRESH_TOKEN_KEY = "refresh_token:{token}"

"""
File: passport/utils/masking.py
Description: PII 数据脱敏工具 (Data Masking)

本模块提供敏感信息脱敏功能，用于日志记录和异常上报时的隐私保护。

特性：
1. 针对性脱敏: 手机号、邮箱、登录名。
2. 递归脱敏: 深度遍历字典/列表，自动过滤敏感 Key (如 password, token)。
3. 回调参数脱敏: 第三方回调 URL 中的授权码 code 与 state 不得明文落盘。

Author: jinmozhe
Created: 2025-11-26
Updated: 2026-03-02 (login name & OAuth query masking)
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any

# ==============================================================================
# 1. 敏感字段黑名单 (大小写不敏感)
# ==============================================================================
SENSITIVE_KEYS = {
    "password",
    "passwd",
    "secret",
    "token",
    "access_token",
    "refresh_token",
    "api_key",
    "session_id",
    "client_secret",
    "app_secret",
}

# 第三方回调中需要脱敏的查询参数
OAUTH_QUERY_KEYS = frozenset({"code", "state"})

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")
_PHONE_PATTERN = re.compile(r"^\+?\d{7,15}$")

# ==============================================================================
# 2. 基础脱敏函数
# ==============================================================================


def mask_phone(phone: str | None) -> str:
    """
    手机号脱敏。
    规则: 保留前3位和后4位，中间用 * 替换。
    示例: 13800138000 -> 138****8000
    """
    if not phone or len(phone) < 7:
        return "******"
    return f"{phone[:3]}****{phone[-4:]}"


def mask_email(email: str | None) -> str:
    """
    邮箱脱敏。
    示例: jinmozhe@example.com -> j***@example.com
    """
    if not email or "@" not in email:
        return "******"

    user_part, domain_part = email.split("@", 1)
    if len(user_part) <= 1:
        masked_user = "*" * 4
    else:
        masked_user = f"{user_part[0]}***"
    return f"{masked_user}@{domain_part}"


def mask_login_name(login_name: str | None) -> str:
    """
    登录名脱敏 (手机号 / 邮箱按格式脱敏，用户名原样保留)。
    """
    if not login_name:
        return ""
    if _EMAIL_PATTERN.match(login_name):
        return mask_email(login_name)
    if _PHONE_PATTERN.match(login_name):
        return mask_phone(login_name)
    return login_name


def mask_secret(value: Any) -> str:
    """
    通用机密信息完全掩盖。
    用于密码、Token 等。
    """
    if value is None:
        return ""
    return "******"


def mask_query_params(
    params: Mapping[str, str], keys: Iterable[str] = OAUTH_QUERY_KEYS
) -> dict[str, str]:
    """
    对查询参数中的指定 Key 做完全掩盖，返回新字典。
    """
    masked_keys = {k.lower() for k in keys}
    return {
        k: mask_secret(v) if k.lower() in masked_keys else v for k, v in params.items()
    }


# ==============================================================================
# 3. 递归脱敏工具 (核心)
# ==============================================================================


def mask_sensitive_data(data: Any) -> Any:
    """
    递归遍历数据结构（字典、列表），自动对敏感字段进行脱敏。

    返回数据的浅拷贝副本，不修改原数据。
    """
    if isinstance(data, dict):
        new_data = {}
        for k, v in data.items():
            if isinstance(k, str) and k.lower() in SENSITIVE_KEYS:
                new_data[k] = mask_secret(v)
            else:
                new_data[k] = mask_sensitive_data(v)
        return new_data

    elif isinstance(data, list):
        return [mask_sensitive_data(item) for item in data]

    return data

"""
File: passport/domains/users/constants.py
Description: 用户领域常量定义 (错误码 + 成功提示)
Namespace: users.*

Author: jinmozhe
Created: 2025-11-26
Updated: 2026-03-02 (Adapt to BaseErrorCode)
"""

from starlette.status import HTTP_404_NOT_FOUND, HTTP_409_CONFLICT

from passport.core.error_code import BaseErrorCode


class UserErrorCode(BaseErrorCode):
    """用户领域错误码"""

    # 格式: (HTTP状态, 业务码, 默认文案)

    USER_NOT_FOUND = (HTTP_404_NOT_FOUND, "users.not_found", "用户不存在")

    PHONE_EXIST = (HTTP_409_CONFLICT, "users.phone_exist", "该手机号已被注册")
    EMAIL_EXIST = (HTTP_409_CONFLICT, "users.email_exist", "该邮箱已被注册")
    USERNAME_EXIST = (HTTP_409_CONFLICT, "users.username_exist", "该用户名已被占用")


class UserMsg:
    REGISTER_SUCCESS = "注册成功"


# 旁路任务名
TASK_ASSIGN_DEFAULT_AVATAR = "users.assign_default_avatar"

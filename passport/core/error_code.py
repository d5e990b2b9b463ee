"""
File: passport/core/error_code.py
Description: 全局错误码基类与系统级错误定义

定义结构 Tuple(http_status, code, message):
1. http_status: HTTP 响应状态码 (4xx/5xx)
2. code: 字符串业务码 (格式: domain.reason)
3. message: 默认的人类可读错误消息

各业务领域在自己的 constants.py 中继承 BaseErrorCode 定义错误码，
例如 activation_codes.ineligible / third_party.already_linked。

Author: jinmozhe
Created: 2026-01-15
Updated: 2026-03-02 (session store outage)
"""

from enum import Enum

from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_503_SERVICE_UNAVAILABLE,
)


class BaseErrorCode(Enum):
    """
    错误码枚举基类
    所有业务领域的错误码 Enum 必须继承此类。

    Value Tuple Definition:
    (http_status, code, msg)
    """

    @property
    def http_status(self) -> int:
        """获取映射的 HTTP 状态码"""
        return self.value[0]

    @property
    def code(self) -> str:
        """获取业务错误标识 (domain.reason)"""
        return self.value[1]

    @property
    def msg(self) -> str:
        """获取默认错误描述信息"""
        return self.value[2]


class SystemErrorCode(BaseErrorCode):
    """
    系统通用错误定义 (System Domain)
    包含: 参数校验、认证基础、资源缺失、依赖故障、系统故障
    """

    INVALID_PARAMS = (HTTP_400_BAD_REQUEST, "system.invalid_params", "参数校验失败")

    UNAUTHORIZED = (HTTP_401_UNAUTHORIZED, "system.unauthorized", "身份认证失败")

    FORBIDDEN = (HTTP_403_FORBIDDEN, "system.forbidden", "权限不足")

    NOT_FOUND = (HTTP_404_NOT_FOUND, "system.not_found", "资源不存在")

    # 会话存储 (Redis) 不可用：登录/刷新令牌无法完成，但不影响已提交的数据
    SESSION_STORE_UNAVAILABLE = (
        HTTP_503_SERVICE_UNAVAILABLE,
        "system.session_store_unavailable",
        "会话服务暂不可用，请稍后重试",
    )

    INTERNAL_ERROR = (
        HTTP_500_INTERNAL_SERVER_ERROR,
        "system.internal_error",
        "系统内部错误",
    )

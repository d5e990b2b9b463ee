"""
File: passport/domains/third_party/constants.py
Description: 第三方登录/绑定领域常量定义
Namespace: third_party.*

1. ThirdPartyType: 第三方平台标识 (持久化值)
2. BindStatus: 绑定回调跳转时附带的 status 参数 (前端契约，数值不可调整)
3. LinkFlowState: 一次第三方授权往返的状态机
4. ThirdPartyError: 错误码

Author: jinmozhe
Created: 2026-03-02
"""

from enum import IntEnum, StrEnum

from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from passport.core.error_code import BaseErrorCode


class ThirdPartyType(StrEnum):
    WECHAT = "weChat"
    WEIBO = "weibo"


class BindStatus(IntEnum):
    """绑定结果 (附加在跳转地址 status 参数中)"""

    SUCCESS = 1
    BAD_STATE = 2
    ALREADY_LINKED = 3


class LinkFlowState(StrEnum):
    """
    第三方授权往返状态机:
    INITIATED → CALLBACK_RECEIVED → IDENTITY_RESOLVED →
    {LOGGED_IN, BIND_REQUIRED, BIND_COMPLETED,
     BIND_REJECTED_ALREADY_LINKED, BIND_REJECTED_BAD_STATE}
    """

    INITIATED = "initiated"
    CALLBACK_RECEIVED = "callback_received"
    IDENTITY_RESOLVED = "identity_resolved"
    LOGGED_IN = "logged_in"
    BIND_REQUIRED = "bind_required"
    BIND_COMPLETED = "bind_completed"
    BIND_REJECTED_ALREADY_LINKED = "bind_rejected_already_linked"
    BIND_REJECTED_BAD_STATE = "bind_rejected_bad_state"


# 终态 → 跳转 status
BIND_STATUS_BY_STATE = {
    LinkFlowState.BIND_COMPLETED: BindStatus.SUCCESS,
    LinkFlowState.BIND_REJECTED_BAD_STATE: BindStatus.BAD_STATE,
    LinkFlowState.BIND_REJECTED_ALREADY_LINKED: BindStatus.ALREADY_LINKED,
}

# 跳转地址中的 type 参数
REDIRECT_TYPE_WECHAT = "wechat"


class ThirdPartyError(BaseErrorCode):
    """
    第三方领域错误定义
    Tuple Structure: (HTTP_Status, Code_String, Default_Message)
    """

    IDENTITY_NOT_FOUND = (
        HTTP_404_NOT_FOUND,
        "third_party.identity_not_found",
        "第三方账号信息不存在，请重新授权",
    )

    ALREADY_LINKED = (
        HTTP_409_CONFLICT,
        "third_party.already_linked",
        "该第三方账号已绑定其他用户",
    )

    INVALID_RETURN_URL = (
        HTTP_400_BAD_REQUEST,
        "third_party.invalid_return_url",
        "跳转地址不合法",
    )

    PROVIDER_ERROR = (
        HTTP_502_BAD_GATEWAY,
        "third_party.provider_error",
        "第三方授权失败，请重新扫码",
    )

    PROVIDER_NOT_CONFIGURED = (
        HTTP_503_SERVICE_UNAVAILABLE,
        "third_party.provider_not_configured",
        "第三方登录暂未开放",
    )


class ThirdPartyMsg:
    BIND_SUCCESS = "绑定成功"
    UNBIND_SUCCESS = "解绑成功"

"""
File: passport/domains/activation_codes/constants.py
Description: 激活码领域常量定义 (错误码 + 成功提示 + 查询排序白名单)
Namespace: activation_codes.*

安全说明：
激活码不存在、未生效、已过期、已用完、已停用、并发兑换失败，
统一返回 INELIGIBLE，避免泄露激活码状态与时序信息。

Author: jinmozhe
Created: 2026-03-02
"""

from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from passport.core.error_code import BaseErrorCode


class ActivationCodeError(BaseErrorCode):
    """
    激活码领域错误定义
    Tuple Structure: (HTTP_Status, Code_String, Default_Message)
    """

    NOT_FOUND = (HTTP_404_NOT_FOUND, "activation_codes.not_found", "激活码不存在")

    INELIGIBLE = (
        HTTP_403_FORBIDDEN,
        "activation_codes.ineligible",
        "激活码无效或已失效",
    )

    ALREADY_QUALIFIED = (
        HTTP_403_FORBIDDEN,
        "activation_codes.already_qualified",
        "当前账号已具备内测资格，无需重复激活",
    )

    INVALID_STATUS = (
        HTTP_400_BAD_REQUEST,
        "activation_codes.invalid_status",
        "仅支持将激活码设置为未使用或已停用",
    )

    BATCH_LIMIT = (
        HTTP_400_BAD_REQUEST,
        "activation_codes.batch_limit",
        "批量操作数量超出限制",
    )

    # 重试耗尽视为致命错误 (碰撞概率极低，出现即意味着字符集/长度配置异常)
    CODE_GENERATION_EXHAUSTED = (
        HTTP_500_INTERNAL_SERVER_ERROR,
        "activation_codes.generation_exhausted",
        "激活码生成失败，请稍后重试",
    )


class ActivationCodeMsg:
    BATCH_CREATE_SUCCESS = "激活码批量创建成功"
    BATCH_UPDATE_SUCCESS = "激活码批量更新成功"
    ACTIVATE_SUCCESS = "激活成功"
    LIMIT_COUNT_UPDATED = "可用次数已调整"


# 列表排序白名单 (前缀 - 表示倒序)
ACTIVATION_CODE_SORT_FIELDS = frozenset(
    {"created_at", "updated_at", "limit_count", "status", "code"}
)
USAGE_RECORD_SORT_FIELDS = frozenset({"created_at", "code", "username"})
DEFAULT_SORT = "-created_at"

# 批量插入遇到唯一约束冲突时整批重新生成的最大次数
BATCH_INSERT_ATTEMPTS = 3

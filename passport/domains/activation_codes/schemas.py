"""
File: passport/domains/activation_codes/schemas.py
Description: 激活码领域 Pydantic 模型 (Schema)

本模块定义了激活码相关的输入/输出数据结构：
1. BatchCreateRequest / BatchUpdateRequest: 管理端批量创建与批量改状态
2. ActivateRequest: 用户兑换激活码
3. LimitCountAdjustRequest: 调整指定用户邀请码的可用次数
4. ActivationCodeQuery / UsageRecordQuery: 显式的列表过滤条件 (一次校验，不在调用处拼装)
5. ActivationCodeRead / UsageRecordRead: 响应模型

Author: jinmozhe
Created: 2026-03-02
"""

from datetime import UTC, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from passport.core.config import settings
from passport.db.models.activation_code import ActivationCodeStatus
from passport.domains.activation_codes.constants import (
    ACTIVATION_CODE_SORT_FIELDS,
    DEFAULT_SORT,
    USAGE_RECORD_SORT_FIELDS,
)

CODE_LENGTH = settings.ACTIVATION_CODE_LENGTH


def _as_utc(v: datetime | None) -> datetime | None:
    """未携带时区的时间按 UTC 解释"""
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=UTC)
    return v


def _check_effective_window(
    start: datetime | None, end: datetime | None, label: str
) -> None:
    if start and end and start > end:
        raise ValueError(f"{label} 开始时间不能晚于结束时间")


def _check_sort(sort: str, allowed: frozenset[str]) -> str:
    field = sort.removeprefix("-")
    if field not in allowed:
        raise ValueError(f"不支持的排序字段: {field}")
    return sort


# ------------------------------------------------------------------------------
# Input Schemas (输入模型)
# ------------------------------------------------------------------------------


class BatchCreateRequest(BaseModel):
    quantity: int = Field(
        default=10,
        ge=1,
        le=settings.ACTIVATION_CODE_BATCH_CREATE_MAX,
        description="创建数量 (1-50)",
    )
    limit_count: int = Field(default=1, ge=0, description="每个激活码的可用次数")
    start_effective_date: datetime | None = Field(default=None, description="生效开始时间")
    end_effective_date: datetime | None = Field(default=None, description="生效结束时间")
    remark: str | None = Field(default=None, max_length=255, description="备注")

    normalize_dates = field_validator(
        "start_effective_date", "end_effective_date"
    )(_as_utc)

    @model_validator(mode="after")
    def validate_window(self) -> "BatchCreateRequest":
        _check_effective_window(
            self.start_effective_date, self.end_effective_date, "生效"
        )
        return self


class BatchUpdateRequest(BaseModel):
    codes: list[str] = Field(
        ...,
        min_length=1,
        max_length=settings.ACTIVATION_CODE_BATCH_UPDATE_MAX,
        description="激活码列表 (1-100)",
    )
    status: ActivationCodeStatus = Field(..., description="目标状态 (0:未使用 2:已停用)")
    remark: str | None = Field(default=None, max_length=255)

    @field_validator("codes")
    @classmethod
    def validate_codes(cls, v: list[str]) -> list[str]:
        for code in v:
            if len(code) != CODE_LENGTH or not code.isalnum():
                raise ValueError(f"激活码格式错误: {code}")
        # 去重并保持顺序
        return list(dict.fromkeys(v))


class ActivateRequest(BaseModel):
    code: str = Field(
        ..., min_length=CODE_LENGTH, max_length=CODE_LENGTH, description="激活码"
    )


class LimitCountAdjustRequest(BaseModel):
    user_id: UUID = Field(..., description="邀请码所属用户ID")
    incr_number: int = Field(..., description="增量 (可为负数)")


class ActivationCodeQuery(BaseModel):
    """
    激活码列表查询条件。
    keywords 同时匹配激活码 (精确) 与所属用户名 (包含)。
    """

    status: ActivationCodeStatus | None = None
    keywords: str | None = Field(default=None, max_length=50)
    begin_create_date: datetime | None = None
    end_create_date: datetime | None = None
    skip: int = Field(default=0, ge=0)
    limit: int = Field(default=10, ge=1, le=100)
    sort: str = Field(default=DEFAULT_SORT, description="排序字段，- 前缀表示倒序")

    normalize_dates = field_validator("begin_create_date", "end_create_date")(_as_utc)

    @field_validator("sort")
    @classmethod
    def validate_sort(cls, v: str) -> str:
        return _check_sort(v, ACTIVATION_CODE_SORT_FIELDS)

    @model_validator(mode="after")
    def validate_range(self) -> "ActivationCodeQuery":
        _check_effective_window(self.begin_create_date, self.end_create_date, "创建")
        return self


class UsageRecordQuery(BaseModel):
    """激活码使用记录查询条件。keywords 匹配兑换用户名 (包含)。"""

    code: str | None = Field(default=None, max_length=CODE_LENGTH)
    keywords: str | None = Field(default=None, max_length=50)
    begin_create_date: datetime | None = None
    end_create_date: datetime | None = None
    skip: int = Field(default=0, ge=0)
    limit: int = Field(default=10, ge=1, le=100)
    sort: str = Field(default=DEFAULT_SORT)

    normalize_dates = field_validator("begin_create_date", "end_create_date")(_as_utc)

    @field_validator("sort")
    @classmethod
    def validate_sort(cls, v: str) -> str:
        return _check_sort(v, USAGE_RECORD_SORT_FIELDS)

    @model_validator(mode="after")
    def validate_range(self) -> "UsageRecordQuery":
        _check_effective_window(self.begin_create_date, self.end_create_date, "创建")
        return self


# ------------------------------------------------------------------------------
# Output Schemas (输出/响应模型)
# ------------------------------------------------------------------------------


class ActivationCodeRead(BaseModel):
    id: UUID
    code: str
    status: ActivationCodeStatus
    limit_count: int = Field(..., description="剩余可用次数")
    start_effective_date: datetime | None = None
    end_effective_date: datetime | None = None
    remark: str | None = None
    owner_username: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UsageRecordRead(BaseModel):
    id: UUID
    code: str
    user_id: UUID
    username: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BatchUpdateResult(BaseModel):
    matched: int = Field(..., description="实际匹配并更新的激活码数量")

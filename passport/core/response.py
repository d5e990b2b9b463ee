"""
File: passport/core/response.py
Description: 统一响应信封（Unified Response Envelope）与分页结构

本模块定义了全站统一的 API 响应格式。
所有 HTTP 接口必须遵循此契约返回数据：
1. ResponseModel[T]: 成功/失败统一信封
2. PageResult[T]: 列表查询的分页载荷 (skip/limit/total_item/data_list)

Author: jinmozhe
Created: 2025-11-24
Updated: 2026-03-02 (PageResult for interval list queries)
"""

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar, cast

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ResponseBase(BaseModel):
    """
    响应基类
    """

    model_config = ConfigDict(from_attributes=True)

    code: str = Field(default="success", description="业务状态码")
    message: str = Field(default="Success", description="响应消息")
    request_id: str | None = Field(default=None, description="请求追踪ID")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="响应生成时间",
    )


class ResponseModel(ResponseBase, Generic[T]):
    """
    统一响应信封
    """

    data: T | None = Field(default=None, description="业务数据")

    @classmethod
    def success(
        cls,
        data: T | None = None,
        message: str = "Success",
        request_id: str | None = None,
    ) -> "ResponseModel[T]":
        """
        构造成功响应
        """
        # 强制将 Pydantic 模型转换为 JSON 安全的字典
        if hasattr(data, "model_dump"):
            data = cast(Any, data).model_dump(mode="json")

        return cls(
            code="success",
            message=message,
            data=data,
            request_id=request_id,
        )

    @classmethod
    def fail(
        cls,
        code: str,
        message: str,
        data: Any = None,
        request_id: str | None = None,
    ) -> "ResponseModel[Any]":
        """
        构造失败响应
        """
        return cls(
            code=code,
            message=message,
            data=data,
            request_id=request_id,
        )


class PageResult(BaseModel, Generic[T]):
    """
    分页载荷 (skip/limit 偏移分页)
    """

    skip: int = Field(..., ge=0, description="跳过条数")
    limit: int = Field(..., ge=1, description="每页条数")
    total_item: int = Field(..., ge=0, description="总条数")
    data_list: list[T] = Field(default_factory=list, description="当前页数据")

    @classmethod
    def build(
        cls, items: Sequence[Any], total: int, skip: int, limit: int
    ) -> "PageResult[T]":
        """由 ORM 结果构造分页载荷 (元素类型由泛型参数负责校验)"""
        return cls.model_validate(
            {
                "skip": skip,
                "limit": limit,
                "total_item": total,
                "data_list": list(items),
            },
            from_attributes=True,
        )

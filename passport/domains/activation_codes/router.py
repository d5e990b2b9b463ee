"""
File: passport/domains/activation_codes/router.py
Description: 激活码领域 HTTP 路由层

本模块定义激活码相关的 API 端点：
1. GET    ""              激活码列表 (管理员)
2. POST   /batch-create   批量创建 (管理员)
3. PUT    /batch-update   批量改状态 (管理员)
4. POST   /activate       兑换激活码，获得内测资格 (登录用户)
5. GET    /used-records   使用记录列表 (管理员)
6. GET    /user-code      我的邀请码 (登录用户，不存在则创建)
7. PUT    /limit-count    调整指定用户邀请码可用次数 (管理员)
8. GET    /{code}         激活码详情 (登录用户)

注意：静态路径必须声明在 /{code} 之前。

Author: jinmozhe
Created: 2026-03-02
"""

from typing import Annotated

from fastapi import APIRouter, Path, Query, Request, status

from passport.api.deps import CurrentUser, SuperUser
from passport.core.response import PageResult, ResponseModel
from passport.domains.activation_codes.constants import ActivationCodeMsg
from passport.domains.activation_codes.dependencies import ActivationCodeServiceDep
from passport.domains.activation_codes.schemas import (
    CODE_LENGTH,
    ActivateRequest,
    ActivationCodeQuery,
    ActivationCodeRead,
    BatchCreateRequest,
    BatchUpdateRequest,
    BatchUpdateResult,
    LimitCountAdjustRequest,
    UsageRecordQuery,
    UsageRecordRead,
)

router = APIRouter()


@router.get(
    "",
    response_model=ResponseModel[PageResult[ActivationCodeRead]],
    summary="激活码列表",
    description="按状态、关键字 (激活码/所属用户名)、创建时间区间过滤，默认按创建时间倒序。",
)
async def list_activation_codes(
    request: Request,
    query: Annotated[ActivationCodeQuery, Query()],
    _: SuperUser,
    service: ActivationCodeServiceDep,
) -> ResponseModel[PageResult[ActivationCodeRead]]:
    items, total = await service.find_interval_list(query)
    page = PageResult[ActivationCodeRead].build(
        items, total=total, skip=query.skip, limit=query.limit
    )
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(data=page, request_id=req_id)


@router.post(
    "/batch-create",
    response_model=ResponseModel[list[ActivationCodeRead]],
    status_code=status.HTTP_201_CREATED,
    summary="批量创建激活码",
)
async def batch_create(
    request: Request,
    obj_in: BatchCreateRequest,
    operator: SuperUser,
    service: ActivationCodeServiceDep,
) -> ResponseModel[list[ActivationCodeRead]]:
    operator_id = operator.id
    codes = await service.batch_create(obj_in, operator_id=operator_id)
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=[ActivationCodeRead.model_validate(c).model_dump(mode="json") for c in codes],
        message=ActivationCodeMsg.BATCH_CREATE_SUCCESS,
        request_id=req_id,
    )


@router.put(
    "/batch-update",
    response_model=ResponseModel[BatchUpdateResult],
    summary="批量修改激活码状态",
    description="仅允许设置为 0 (未使用) 或 2 (已停用)，不存在的激活码忽略。",
)
async def batch_update(
    request: Request,
    obj_in: BatchUpdateRequest,
    _: SuperUser,
    service: ActivationCodeServiceDep,
) -> ResponseModel[BatchUpdateResult]:
    matched = await service.batch_update(obj_in)
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=BatchUpdateResult(matched=matched),
        message=ActivationCodeMsg.BATCH_UPDATE_SUCCESS,
        request_id=req_id,
    )


@router.post(
    "/activate",
    response_model=ResponseModel[ActivationCodeRead],
    summary="兑换激活码",
    description="消耗一次激活码可用次数并为当前用户授予内测资格。",
)
async def activate(
    request: Request,
    obj_in: ActivateRequest,
    current_user: CurrentUser,
    service: ActivationCodeServiceDep,
) -> ResponseModel[ActivationCodeRead]:
    activation_code = await service.redeem(obj_in.code, current_user)
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=ActivationCodeRead.model_validate(activation_code),
        message=ActivationCodeMsg.ACTIVATE_SUCCESS,
        request_id=req_id,
    )


@router.get(
    "/used-records",
    response_model=ResponseModel[PageResult[UsageRecordRead]],
    summary="激活码使用记录",
)
async def list_used_records(
    request: Request,
    query: Annotated[UsageRecordQuery, Query()],
    _: SuperUser,
    service: ActivationCodeServiceDep,
) -> ResponseModel[PageResult[UsageRecordRead]]:
    items, total = await service.find_used_record_interval_list(query)
    page = PageResult[UsageRecordRead].build(
        items, total=total, skip=query.skip, limit=query.limit
    )
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(data=page, request_id=req_id)


@router.get(
    "/user-code",
    response_model=ResponseModel[ActivationCodeRead],
    summary="我的邀请码",
    description="获取当前用户的邀请码，首次调用时自动创建。",
)
async def get_user_code(
    request: Request,
    current_user: CurrentUser,
    service: ActivationCodeServiceDep,
) -> ResponseModel[ActivationCodeRead]:
    activation_code = await service.find_or_create_user_activation_code(current_user)
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=ActivationCodeRead.model_validate(activation_code), request_id=req_id
    )


@router.put(
    "/limit-count",
    response_model=ResponseModel[ActivationCodeRead],
    summary="调整用户邀请码可用次数",
    description="incr_number 可为负数；已用完的邀请码在次数恢复为正数后重新可用。",
)
async def adjust_limit_count(
    request: Request,
    obj_in: LimitCountAdjustRequest,
    _: SuperUser,
    service: ActivationCodeServiceDep,
) -> ResponseModel[ActivationCodeRead]:
    activation_code = await service.adjust_user_limit_count(
        obj_in.user_id, obj_in.incr_number
    )
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=ActivationCodeRead.model_validate(activation_code),
        message=ActivationCodeMsg.LIMIT_COUNT_UPDATED,
        request_id=req_id,
    )


@router.get(
    "/{code}",
    response_model=ResponseModel[ActivationCodeRead],
    summary="激活码详情",
)
async def show_activation_code(
    request: Request,
    code: Annotated[str, Path(min_length=CODE_LENGTH, max_length=CODE_LENGTH)],
    _: CurrentUser,
    service: ActivationCodeServiceDep,
) -> ResponseModel[ActivationCodeRead]:
    activation_code = await service.get_by_code(code)
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=ActivationCodeRead.model_validate(activation_code), request_id=req_id
    )

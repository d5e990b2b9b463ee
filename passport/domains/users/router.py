"""
File: passport/domains/users/router.py
Description: 用户领域 HTTP 路由层

本模块定义了用户管理的 API 端点：
1. 注册接口 (POST "") 保持公开，注册后异步补齐默认头像
2. 详情接口 (GET /me) 必须鉴权 (CurrentUser)

Author: jinmozhe
Created: 2025-12-05
Updated: 2026-03-02 (Default avatar side task)
"""

from functools import partial

from fastapi import APIRouter, BackgroundTasks, Request, status

from passport.api.deps import CurrentUser, SessionFactory
from passport.core.response import ResponseModel
from passport.domains.users.constants import TASK_ASSIGN_DEFAULT_AVATAR, UserMsg
from passport.domains.users.dependencies import UserServiceDep
from passport.domains.users.schemas import UserCreate, UserRead
from passport.domains.users.service import assign_default_avatar_task
from passport.utils.side_task import run_side_task

router = APIRouter()


@router.post(
    "",
    response_model=ResponseModel[UserRead],
    status_code=status.HTTP_201_CREATED,
    summary="注册新用户",
    description="创建新用户。用户名必须唯一，手机号/邮箱可选。无需登录。",
)
async def create_user(
    request: Request,
    user_in: UserCreate,
    service: UserServiceDep,
    background_tasks: BackgroundTasks,
    session_factory: SessionFactory,
) -> ResponseModel[UserRead]:
    """
    注册接口 (Public)
    """
    user = await service.create(user_in)

    # 默认头像生成失败不影响注册结果
    background_tasks.add_task(
        run_side_task,
        TASK_ASSIGN_DEFAULT_AVATAR,
        partial(assign_default_avatar_task, session_factory, user.id),
    )

    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=UserRead.model_validate(user),
        request_id=req_id,
        message=UserMsg.REGISTER_SUCCESS,
    )


@router.get(
    "/me",
    response_model=ResponseModel[UserRead],
    summary="获取我的个人资料",
)
async def read_user_me(
    request: Request,
    current_user: CurrentUser,
) -> ResponseModel[UserRead]:
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=UserRead.model_validate(current_user),
        request_id=req_id,
    )

"""
File: passport/domains/third_party/router.py
Description: 第三方登录/绑定 HTTP 路由层

1. GET  /wechat/authorize-url        扫码登录授权地址 (公开)
2. GET  /wechat/callback             扫码登录回调 (浏览器跳转，302)
3. POST /register-or-bind            注册或绑定 (公开，成功后写入会话 Cookie)
4. POST /bind-state                  已登录用户发起绑定 (复核密码，返回 state 与授权地址)
5. GET  /wechat/bind-callback        已登录用户扫码绑定回调 (浏览器跳转，302，读取会话 Cookie)
6. PUT  /unbind                      解绑 (复核密码)
7. GET  /list                        我的第三方绑定
8. GET  /is-bound                    按登录名查询是否已绑定 (公开)
9. GET  /wechat/info                 指定用户的微信资料 (管理员)
10. GET /wechat/info-by-union-id     按 UnionID 查询微信资料 (管理员)

Author: jinmozhe
Created: 2026-03-02
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import RedirectResponse
from starlette.status import HTTP_302_FOUND

from passport.api.deps import CurrentUser, OptionalUser, SuperUser
from passport.core.config import settings
from passport.core.response import ResponseModel
from passport.domains.auth.cookies import set_session_cookie
from passport.domains.third_party.constants import ThirdPartyMsg, ThirdPartyType
from passport.domains.third_party.dependencies import ThirdPartyServiceDep
from passport.domains.third_party.schemas import (
    AuthorizeUrlRead,
    BindResultRead,
    BindStateRead,
    BindStateRequest,
    RegisterOrBindRequest,
    ThirdPartyLinkRead,
    UnbindRequest,
    WeChatInfoRead,
)
from passport.domains.third_party.service import append_query

router = APIRouter()


@router.get(
    "/wechat/authorize-url",
    response_model=ResponseModel[AuthorizeUrlRead],
    summary="微信扫码登录授权地址",
)
async def wechat_authorize_url(
    request: Request,
    service: ThirdPartyServiceDep,
    return_url: Annotated[str | None, Query()] = None,
) -> ResponseModel[AuthorizeUrlRead]:
    target = service.check_return_url(return_url, settings.FRONTEND_LOGIN_URL)
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=AuthorizeUrlRead(authorize_url=service.login_authorize_url(target)),
        request_id=req_id,
    )


@router.get(
    "/wechat/callback",
    summary="微信扫码登录回调",
    description="已绑定则写入会话 Cookie 并跳转 return_url；未绑定跳转前端注册或绑定页。",
    response_class=RedirectResponse,
    status_code=HTTP_302_FOUND,
)
async def wechat_login_callback(
    code: Annotated[str, Query(min_length=1)],
    service: ThirdPartyServiceDep,
    return_url: Annotated[str | None, Query()] = None,
) -> RedirectResponse:
    target = service.check_return_url(return_url, settings.FRONTEND_LOGIN_URL)
    outcome = await service.handle_login_callback(code, target)

    response = RedirectResponse(outcome.redirect_url, status_code=HTTP_302_FOUND)
    if outcome.token is not None:
        set_session_cookie(response, outcome.token)
    return response


@router.post(
    "/register-or-bind",
    response_model=ResponseModel[BindResultRead],
    summary="注册或绑定",
    description="登录名已存在时复核密码后绑定；不存在时注册新账号并绑定。",
)
async def register_or_bind(
    request: Request,
    response: Response,
    obj_in: RegisterOrBindRequest,
    service: ThirdPartyServiceDep,
) -> ResponseModel[BindResultRead]:
    outcome = await service.complete_bind(
        obj_in.identity_id, obj_in.login_name, obj_in.password
    )
    if outcome.token is not None:
        set_session_cookie(response, outcome.token)

    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=BindResultRead(
            user_id=outcome.user_id,
            user_created=outcome.user_created,
            token=outcome.token,
        ),
        message=ThirdPartyMsg.BIND_SUCCESS,
        request_id=req_id,
    )


@router.post(
    "/bind-state",
    response_model=ResponseModel[BindStateRead],
    summary="发起微信绑定",
    description="复核当前密码，返回与当前用户绑定的 state 及扫码授权地址。",
)
async def create_bind_state(
    request: Request,
    obj_in: BindStateRequest,
    current_user: CurrentUser,
    service: ThirdPartyServiceDep,
) -> ResponseModel[BindStateRead]:
    target = service.check_return_url(obj_in.return_url, settings.FRONTEND_BIND_URL)
    state, authorize_url = await service.create_bind_state(
        current_user, obj_in.password, target
    )
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=BindStateRead(state=state, authorize_url=authorize_url),
        request_id=req_id,
    )


@router.get(
    "/wechat/bind-callback",
    summary="微信扫码绑定回调",
    description="跳转 return_url 并附带 type=wechat&status=1|2|3 (成功/状态校验失败/已被绑定)。",
    response_class=RedirectResponse,
    status_code=HTTP_302_FOUND,
)
async def wechat_bind_callback(
    code: Annotated[str, Query(min_length=1)],
    user: OptionalUser,
    service: ThirdPartyServiceDep,
    state: Annotated[str | None, Query()] = None,
    return_url: Annotated[str | None, Query()] = None,
) -> RedirectResponse:
    target = service.check_return_url(return_url, settings.FRONTEND_BIND_URL)
    if user is None:
        login_url = append_query(settings.FRONTEND_LOGIN_URL, {"returnUrl": target})
        return RedirectResponse(login_url, status_code=HTTP_302_FOUND)

    outcome = await service.bind_existing_login_user(user, code, state, target)
    return RedirectResponse(outcome.redirect_url, status_code=HTTP_302_FOUND)


@router.put(
    "/unbind",
    response_model=ResponseModel[bool],
    summary="解绑第三方账号",
    description="未绑定时同样返回成功。",
)
async def unbind(
    request: Request,
    obj_in: UnbindRequest,
    current_user: CurrentUser,
    service: ThirdPartyServiceDep,
) -> ResponseModel[bool]:
    await service.unbind(current_user, obj_in.third_party_type, obj_in.password)
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=True, message=ThirdPartyMsg.UNBIND_SUCCESS, request_id=req_id
    )


@router.get(
    "/list",
    response_model=ResponseModel[list[ThirdPartyLinkRead]],
    summary="我的第三方绑定",
)
async def list_links(
    request: Request,
    current_user: CurrentUser,
    service: ThirdPartyServiceDep,
) -> ResponseModel[list[ThirdPartyLinkRead]]:
    links = await service.list_links(current_user)
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=[ThirdPartyLinkRead.model_validate(link) for link in links],
        request_id=req_id,
    )


@router.get(
    "/is-bound",
    response_model=ResponseModel[bool],
    summary="登录名是否已绑定第三方",
)
async def is_bound(
    request: Request,
    login_name: Annotated[str, Query(min_length=1, max_length=254)],
    service: ThirdPartyServiceDep,
    third_party_type: Annotated[ThirdPartyType, Query()] = ThirdPartyType.WECHAT,
) -> ResponseModel[bool]:
    bound = await service.is_bound(login_name, third_party_type)
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(data=bound, request_id=req_id)


@router.get(
    "/wechat/info",
    response_model=ResponseModel[WeChatInfoRead],
    summary="用户微信资料",
)
async def wechat_info(
    request: Request,
    user_id: Annotated[UUID, Query()],
    _: SuperUser,
    service: ThirdPartyServiceDep,
) -> ResponseModel[WeChatInfoRead]:
    identity = await service.get_wechat_info(user_id)
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=WeChatInfoRead.model_validate(identity), request_id=req_id
    )


@router.get(
    "/wechat/info-by-union-id",
    response_model=ResponseModel[WeChatInfoRead],
    summary="按 UnionID 查询微信资料",
)
async def wechat_info_by_union_id(
    request: Request,
    union_id: Annotated[str, Query(min_length=1, max_length=128)],
    _: SuperUser,
    service: ThirdPartyServiceDep,
) -> ResponseModel[WeChatInfoRead]:
    identity = await service.get_wechat_info_by_union_id(union_id)
    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=WeChatInfoRead.model_validate(identity), request_id=req_id
    )

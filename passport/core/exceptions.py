"""
File: passport/core/exceptions.py
Description: 业务异常类与全局异常处理器

本模块遵循 v2.1 架构规范：
1. 业务异常基类（AppException）接受 BaseErrorCode 枚举
2. 常用语义异常 (NotFound / Unauthorized / Permission) 作为 AppException 的快捷子类
3. 全局异常处理器自动将异常映射为：语义化 HTTP 状态码 + 字符串业务码
4. 使用 ResponseModel.fail() 构造统一的失败响应信封

Author: jinmozhe
Created: 2025-11-24
Updated: 2026-03-02 (Semantic subclasses, masked validation logs, session store outage)
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from redis.exceptions import RedisError
from starlette.exceptions import HTTPException as StarletteHTTPException

from passport.core.error_code import BaseErrorCode, SystemErrorCode
from passport.core.logging import logger
from passport.core.response import ResponseModel
from passport.utils.masking import mask_sensitive_data

# ------------------------------------------------------------------------------
# 1. 自定义业务异常类
# ------------------------------------------------------------------------------


class AppException(Exception):
    """
    应用基础异常类。

    用法示例:
        raise AppException(AuthError.INVALID_CREDENTIALS)
        raise AppException(ActivationCodeError.INELIGIBLE, message="激活码已过期")
    """

    def __init__(
        self,
        error: BaseErrorCode,
        message: str = "",
        data: Any = None,
    ):
        self.error = error
        self.http_status = error.http_status
        self.code = error.code
        self.message = message or error.msg
        self.data = data
        super().__init__(self.message)


class NotFoundException(AppException):
    """资源不存在 (404)"""

    def __init__(self, message: str = "", data: Any = None):
        super().__init__(SystemErrorCode.NOT_FOUND, message=message, data=data)


class UnauthorizedException(AppException):
    """身份认证失败 (401)"""

    def __init__(self, message: str = "", data: Any = None):
        super().__init__(SystemErrorCode.UNAUTHORIZED, message=message, data=data)


class PermissionException(AppException):
    """权限不足 (403)"""

    def __init__(self, message: str = "", data: Any = None):
        super().__init__(SystemErrorCode.FORBIDDEN, message=message, data=data)


# ------------------------------------------------------------------------------
# 2. 辅助函数
# ------------------------------------------------------------------------------


def _get_request_id(request: Request) -> str:
    """尝试从 request.state 获取 request_id，如果不存在则返回 'unknown'"""
    return str(getattr(request.state, "request_id", "unknown"))


# ------------------------------------------------------------------------------
# 3. 全局异常处理器 (Handlers)
# ------------------------------------------------------------------------------


async def app_exception_handler(request: Request, exc: AppException) -> ORJSONResponse:
    """
    处理自定义业务异常 (AppException)
    直接映射为定义好的 HTTP 状态码和 Code
    """
    request_id = _get_request_id(request)

    logger.bind(
        request_id=request_id,
        code=exc.code,
        http_status=exc.http_status,
        message=exc.message,
    ).warning("Business exception occurred")

    response_model = ResponseModel.fail(
        code=exc.code,
        message=exc.message,
        data=exc.data,
        request_id=request_id,
    )

    return ORJSONResponse(
        status_code=exc.http_status,
        content=response_model.model_dump(mode="json"),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    """
    处理 Pydantic 校验异常 (FastAPI 默认抛出 422)
    映射目标: HTTP 400 Bad Request / Code: system.invalid_params

    注意：原始错误中的 input 可能包含密码明文，日志与响应中只保留 loc/msg/type。
    """
    request_id = _get_request_id(request)

    errors = exc.errors()
    first_error = errors[0] if errors else {}

    loc = first_error.get("loc", [])
    field_name = str(loc[-1]) if loc else "unknown"
    msg = first_error.get("msg", "Invalid parameter")

    readable_message = f"{field_name}: {msg}"

    safe_errors = [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg"),
            "type": error.get("type"),
        }
        for error in errors
    ]

    logger.bind(
        request_id=request_id,
        detail=readable_message,
        raw_errors=mask_sensitive_data(safe_errors),
    ).warning("Request validation failed")

    response_model = ResponseModel.fail(
        code=SystemErrorCode.INVALID_PARAMS.code,
        message=readable_message,
        data={"errors": safe_errors},
        request_id=request_id,
    )

    return ORJSONResponse(
        status_code=SystemErrorCode.INVALID_PARAMS.http_status,
        content=response_model.model_dump(mode="json"),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> ORJSONResponse:
    """
    处理框架层面的 HTTP 异常 (如 404 Not Found, 405 Method Not Allowed)
    """
    request_id = _get_request_id(request)

    code_str = "system.not_found" if exc.status_code == 404 else "system.http_error"

    logger.bind(
        request_id=request_id,
        status_code=exc.status_code,
        detail=str(exc.detail),
    ).warning("Framework HTTP exception occurred")

    response_model = ResponseModel.fail(
        code=code_str,
        message=str(exc.detail),
        request_id=request_id,
    )

    return ORJSONResponse(
        status_code=exc.status_code,
        content=response_model.model_dump(mode="json"),
    )


async def session_store_exception_handler(
    request: Request, exc: RedisError
) -> ORJSONResponse:
    """
    会话存储 (Redis) 故障映射为 503，便于前端提示稍后重试。
    """
    request_id = _get_request_id(request)

    logger.opt(exception=exc).bind(request_id=request_id).error(
        "Session store unavailable"
    )

    error = SystemErrorCode.SESSION_STORE_UNAVAILABLE
    response_model = ResponseModel.fail(
        code=error.code, message=error.msg, request_id=request_id
    )

    return ORJSONResponse(
        status_code=error.http_status,
        content=response_model.model_dump(mode="json"),
    )


async def general_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    """
    处理所有未捕获的异常 (500 Internal Server Error)
    这是最后的防线，防止服务器崩溃信息直接暴露给用户
    """
    request_id = _get_request_id(request)

    logger.opt(exception=exc).bind(request_id=request_id).error(
        "Unhandled system exception occurred"
    )

    response_model = ResponseModel.fail(
        code=SystemErrorCode.INTERNAL_ERROR.code,
        message=SystemErrorCode.INTERNAL_ERROR.msg,
        request_id=request_id,
    )

    return ORJSONResponse(
        status_code=SystemErrorCode.INTERNAL_ERROR.http_status,
        content=response_model.model_dump(mode="json"),
    )


# ------------------------------------------------------------------------------
# 4. 异常处理器注册函数
# ------------------------------------------------------------------------------


def register_exception_handlers(app: FastAPI) -> None:
    """
    统一注册所有异常处理器。
    应在 main.py 中调用。
    """
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore
    app.add_exception_handler(RedisError, session_store_exception_handler)  # type: ignore
    app.add_exception_handler(Exception, general_exception_handler)

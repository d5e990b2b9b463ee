"""
File: passport/main.py
Description: FastAPI 应用入口与工厂函数

本模块负责：
1. 创建 FastAPI 应用实例 (设置默认响应类为 ORJSONResponse)
2. 管理应用生命周期 (lifespan): 启动日志，关闭数据库、Redis 与出站 HTTP 连接
3. 组装全局组件：中间件、异常处理器、路由
4. 提供健康检查接口 (/health 供探针使用，{DOCS_PREFIX}/health 返回统一信封)
5. 暴露 Prometheus 指标 (/metrics)

Author: jinmozhe
Created: 2025-12-05
Updated: 2026-03-02 (Passport service, outbound http client, metrics)
"""

import asyncio
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

# ------------------------------------------------------------------------------
# [Fix for Windows] asyncpg 在 Windows 下必须使用 SelectorEventLoop
# 必须在任何 asyncio 循环启动前执行 (放在顶部)
# ------------------------------------------------------------------------------
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


from fastapi import FastAPI, Response
from fastapi.responses import ORJSONResponse

from passport.api_router import api_router
from passport.core.config import settings
from passport.core.exceptions import register_exception_handlers
from passport.core.http import close_http_client
from passport.core.logging import setup_logging
from passport.core.metrics import metrics_content
from passport.core.middleware import register_middlewares
from passport.core.redis import close_redis
from passport.core.response import ResponseModel
from passport.db.session import close_engine


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    应用生命周期管理器。
    """
    # 1. 启动时：初始化日志系统
    setup_logging()

    yield

    # 2. 关闭时：优雅释放资源
    await close_http_client()
    await close_redis()
    await close_engine()


def create_app() -> FastAPI:
    """应用工厂函数"""

    docs_prefix = settings.DOCS_PREFIX

    app = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{docs_prefix}/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
        docs_url=f"{docs_prefix}/docs",
        redoc_url=None,
    )

    # 1. 注册中间件 (CORS, RequestID, Logging)
    register_middlewares(app)

    # 2. 注册异常处理器
    register_exception_handlers(app)

    # 3. 挂载 API 路由
    app.include_router(api_router, prefix=settings.API_V1_STR)

    # 4. 健康检查
    @app.get("/health", tags=["health"], include_in_schema=False)
    async def probe() -> dict[str, str]:
        """K8s Liveness/Readiness Probe (无信封)"""
        return {"status": "ok"}

    @app.get(
        f"{docs_prefix}/health",
        tags=["health"],
        summary="健康检查",
        response_model=ResponseModel[dict[str, str]],
    )
    async def health_check():
        return ResponseModel.success(data={"status": "ok"})

    # 5. Prometheus 抓取端点 (无信封)
    @app.get("/metrics", tags=["metrics"], include_in_schema=False)
    async def metrics() -> Response:
        return Response(
            content=metrics_content(), media_type="text/plain; version=0.0.4"
        )

    # 6. 根路由
    @app.get(
        "/",
        tags=["root"],
        summary="系统入口",
        response_model=ResponseModel[dict[str, str]],
    )
    async def root():
        return ResponseModel.success(
            message=f"Welcome to {settings.PROJECT_NAME}",
            data={
                "status": "running",
                "docs_url": f"{docs_prefix}/docs",
                "health_url": f"{docs_prefix}/health",
            },
        )

    return app


# 暴露给 Uvicorn 运行的应用实例
app = create_app()

if __name__ == "__main__":
    # 本地调试入口
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

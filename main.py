# =============================================================================
# 模块: main.py
# 功能: NewsDesk 应用程序的主入口文件
# 架构角色: 作为整个 FastAPI 应用的启动和编排中心，负责：
#   1. 初始化日志系统
#   2. 管理应用生命周期（启动/关闭）
#   3. 注册所有路由（认证、编辑端、订阅端、管理端、公开端）
#   4. 配置中间件（CORS 跨域）
#   5. 注册业务异常处理器，把类型化异常转换为 HTTP 响应
#   6. 启动时按配置引导初始管理员账户
# =============================================================================
"""Main application entry point for NewsDesk."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

# 数据库相关：初始化、关闭、连接检查
from core.database import check_db_connection, close_db, get_session_factory, init_db
from core.exceptions import AuthenticationError, NewsletterError, StoreError
# 认证模块：路由和认证服务
from apps.auth import router as auth_router, AuthService
from apps.admin.api import router as admin_router
from apps.editor.api import router as editor_router
from apps.public.api import router as public_router
from apps.subscriber.api import router as subscriber_router
# 模型导入：确保所有表都注册到 Base.metadata
import apps.content.models  # noqa: F401
import apps.feedback.models  # noqa: F401
import apps.subscription.models  # noqa: F401
# 日志系统初始化
from common.logger import setup_logging
# 全局配置单例
from settings import settings

# 初始化日志系统，根据 settings.debug 决定日志级别
setup_logging("DEBUG" if settings.debug else "INFO")
logger = logging.getLogger(__name__)


async def bootstrap_admin() -> None:
    """Ensure the configured initial admin account exists.

    仅在配置了 BOOTSTRAP_ADMIN_PASSWORD 时执行；用户名或邮箱已存在时跳过。
    """
    if not settings.bootstrap_admin_enabled:
        return

    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            await AuthService.create_admin(
                session,
                username=settings.bootstrap_admin_username,
                email=settings.bootstrap_admin_email,
                password=settings.bootstrap_admin_password,
                full_name=settings.bootstrap_admin_full_name,
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # ======================== 启动阶段 ========================
    logger.info("Starting NewsDesk...")

    # 数据库不可达时直接阻止应用启动
    if not await check_db_connection():
        logger.error("Database connection failed")
        raise RuntimeError("Cannot connect to database")

    await init_db()
    logger.info("Database initialized")

    await bootstrap_admin()

    logger.info("NewsDesk started successfully")

    yield

    # ======================== 关闭阶段 ========================
    logger.info("Shutting down NewsDesk...")
    await close_db()
    logger.info("NewsDesk shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description="Role-based newsletter content management API",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS 中间件：allow_origins=["*"] 时不应启用 allow_credentials
_cors_origins = settings.cors_origins.split(",") if settings.cors_origins != "*" else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# 异常处理器
# 服务层抛出类型化异常，这里统一转换为 {"detail": message} 响应
# =============================================================================
@app.exception_handler(NewsletterError)
async def newsletter_error_handler(request: Request, exc: NewsletterError):
    if isinstance(exc, StoreError):
        # 存储错误只记录日志，不向调用方暴露细节
        logger.exception(f"Store error on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    content = {"detail": exc.message}
    if exc.details:
        content["details"] = exc.details
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # 请求体 / 查询参数格式错误视为 ValidationError，返回 400
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# 全局异常处理器
# 捕获所有未处理的异常，防止敏感错误信息泄露给客户端
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# =============================================================================
# 路由注册：所有业务路由统一挂载在 /api/v1 前缀下
# =============================================================================
app.include_router(auth_router, prefix="/api/v1")
app.include_router(editor_router, prefix="/api/v1")
app.include_router(subscriber_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")
app.include_router(public_router, prefix="/api/v1")


# 健康检查端点，用于容器编排和负载均衡器的健康探测
@app.get("/health")
async def health_check():
    """Health check endpoint with database status."""
    db_ok = await check_db_connection()
    return {
        "status": "healthy" if db_ok else "unhealthy",
        "components": {
            "database": "connected" if db_ok else "disconnected",
        },
    }


@app.get("/health/live")
async def liveness_check():
    """Liveness probe: the process is running."""
    return {"status": "alive"}


@app.get("/health/ready")
async def readiness_check():
    """Readiness probe: the database must be reachable."""
    if not await check_db_connection():
        raise HTTPException(status_code=503, detail="Database not ready")
    return {"status": "ready"}


def run() -> None:
    """Entry point for ``newsdesk`` console script (see pyproject.toml)."""
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Run NewsDesk server")
    parser.add_argument("--host", type=str, default=None, help="Host to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    args = parser.parse_args()

    # 优先使用命令行参数，其次使用 settings 配置
    host = args.host or settings.app_host
    port = args.port or settings.app_port
    reload = args.reload or settings.debug

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    run()

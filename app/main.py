"""
FastAPI应用入口点
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.services.ai import initialize_ai_services, shutdown_ai_services
from app.core import (
    setup_logging,
    RequestLoggingMiddleware,
    ExceptionHandlingMiddleware,
    TherapyNotesException,
    app_exception_handler,
    api_logger
)
from app.db.database import engine
from app.db.init_db import init_database


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    api_logger.info(f"Starting {settings.app_name}...")

    try:
        # 初始化数据库
        await init_database()
        api_logger.info("Database initialized successfully")

        # 初始化AI服务
        await initialize_ai_services(settings.ai_config)
        api_logger.info("AI service initialized successfully")

    except Exception as e:
        api_logger.error(f"Failed to initialize application: {e}")
        raise

    api_logger.info(f"{settings.app_name} started successfully")

    yield

    api_logger.info(f"Shutting down {settings.app_name}...")

    try:
        await shutdown_ai_services()
        api_logger.info("AI service shutdown successfully")
    except Exception as e:
        api_logger.error(f"Error shutting down AI service: {e}")

    try:
        await engine.dispose()
        api_logger.info("Database engine disposed")
    except Exception as e:
        api_logger.error(f"Error disposing database engine: {e}")

    api_logger.info(f"{settings.app_name} shutdown completed")


# 设置日志
setup_logging()

# 创建FastAPI应用实例
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Therapy session recording, transcription and semantic search API",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# 添加中间件（后添加的在外层）
app.add_middleware(ExceptionHandlingMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# 配置CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(TherapyNotesException, app_exception_handler)

# 本地存储的录音直接由应用提供
if settings.storage_backend == "local":
    app.mount("/files", StaticFiles(directory=settings.upload_dir), name="files")


@app.get("/")
async def root():
    """根路径"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs_url": "/docs" if settings.debug else None
    }


@app.get("/health")
async def health_check():
    """简单健康检查"""
    return {"status": "healthy", "version": settings.app_version}


@app.get("/health/detailed")
async def detailed_health_check():
    """检查数据库连接和AI服务状态"""
    import app.services.ai.ai_service as ai_module

    checks = {"storage_backend": settings.storage_backend}

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except (SQLAlchemyError, OSError) as e:
        api_logger.warning(f"Database health check failed: {e}")
        checks["database"] = "unavailable"

    checks["ai_service"] = "ok" if ai_module.ai_service is not None else "not_initialized"

    healthy = checks["database"] == "ok" and checks["ai_service"] == "ok"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "healthy" if healthy else "unhealthy", "checks": checks}
    )


# 导入路由
from app.api.v1.api import api_router
app.include_router(api_router, prefix=settings.api_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug"
    )

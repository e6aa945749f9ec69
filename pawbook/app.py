"""
Pawbook 预订引擎 - 主应用入口
宠物日托、寄宿、美容的可用性、容量、价格与预订生命周期 API

主要功能模块：
- 可用性查询（逐日 / 按时段）
- 预订创建与状态流转
- 员工日程与全馆看板
- 容量规则、容量例外、价格规则维护

技术栈：FastAPI + DuckDB + JWT认证
"""

import logging
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager

from .core.database import DatabaseManager, db_manager, get_db
from .core.exceptions import BaseApplicationError
from .core.error_handler import (
    application_error_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler
)
from .config.settings import settings
from .api import api_router

logger = logging.getLogger(__name__)


def configure_logging():
    """根日志级别和输出来自配置"""
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=handlers,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时初始化数据库
    db_manager.init_database()
    logger.info("%s %s started", settings.api_title, settings.api_version)

    yield

    db_manager.close()


def create_app() -> FastAPI:
    """创建FastAPI应用"""
    configure_logging()
    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="宠物日托/寄宿/美容预订引擎API",
        debug=settings.debug,
        lifespan=lifespan
    )

    # 添加中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册异常处理器
    app.add_exception_handler(BaseApplicationError, application_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # 注册路由
    app.include_router(api_router, prefix=settings.api_prefix)

    # 健康检查
    @app.get("/health")
    def health_check(db: DatabaseManager = Depends(get_db)):
        try:
            db.execute_one("SELECT 1")
            return {
                "status": "healthy",
                "version": settings.api_version,
                "database": "connected"
            }
        except BaseApplicationError as e:
            logger.error("Health check failed: %s", e.message)
            return {
                "status": "unhealthy",
                "version": settings.api_version,
                "database": f"error: {e.message}"
            }

    @app.get("/")
    async def root():
        return {
            "name": settings.api_title,
            "version": settings.api_version,
            "description": "宠物日托/寄宿/美容预订引擎API"
        }

    return app

# 应用实例
app = create_app()

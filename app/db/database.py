"""
数据库连接和会话管理
"""

from typing import AsyncGenerator, Optional

from sqlalchemy import MetaData
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

# 约束命名规则，alembic 自动生成迁移时依赖它
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}


class Base(DeclarativeBase):
    """数据库模型基类"""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def _engine_options(database_url: str) -> dict:
    backend = make_url(database_url).get_backend_name()

    if backend == "postgresql":
        return {
            "pool_size": settings.database_pool_size,
            "max_overflow": settings.database_max_overflow,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        }
    if backend == "sqlite":
        return {"connect_args": {"check_same_thread": False}}
    return {}


def create_database_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """按数据库类型创建异步引擎"""
    database_url = database_url or settings.database_url
    return create_async_engine(
        database_url,
        echo=settings.database_echo,
        **_engine_options(database_url)
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=bind, class_=AsyncSession, autoflush=False, expire_on_commit=False)


engine = create_database_engine()
AsyncSessionLocal = create_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """请求级数据库会话，异常时回滚"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise

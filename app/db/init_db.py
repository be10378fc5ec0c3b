"""
数据库初始化
"""

import asyncio
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.logging import db_logger
from app.db.database import Base, engine as default_engine


async def create_tables(engine: AsyncEngine):
    """创建pgvector扩展和所有表"""
    # 导入所有模型以确保它们被注册
    from app.models import session  # noqa: F401

    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(engine: AsyncEngine):
    """删除所有数据库表"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def init_database(engine: Optional[AsyncEngine] = None):
    """初始化数据库"""
    engine = engine or default_engine
    db_logger.info("开始初始化数据库...")
    await create_tables(engine)
    db_logger.info("数据库初始化完成")


if __name__ == "__main__":
    asyncio.run(init_database())

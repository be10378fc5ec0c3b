"""
治疗会话存储服务
"""

import uuid
from typing import Optional, Dict, Any, List, Sequence, Tuple

from fastapi import Depends
from sqlalchemy import select, Select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import DatabaseException, ResourceNotFoundException
from app.core.logging import db_logger
from app.db.database import get_db
from app.models.session import TherapySession


def serialize_session(session: TherapySession, similarity: Optional[float] = None) -> Dict[str, Any]:
    """把会话模型转换为响应字典"""
    embedding = session.embedding
    if embedding is not None and not isinstance(embedding, list):
        # pgvector读出的是numpy数组
        embedding = embedding.tolist()

    data = {
        "id": str(session.id),
        "raw_transcription": session.raw_transcription,
        "labelled_transcription": session.labelled_transcription,
        "ai_summary": session.ai_summary,
        "file_link": session.file_link,
        "embedding": [float(value) for value in (embedding or [])],
        "embedding_model": session.embedding_model,
        "metadata": session.session_metadata or {},
        "created_at": session.created_at,
        "updated_at": session.updated_at,
    }
    if similarity is not None:
        data["similarity"] = float(similarity)
    return data


def build_search_statement(query_embedding: Sequence[float], limit: int, threshold: float) -> Select:
    """
    构建余弦相似度搜索语句

    相似度 = 1 - 余弦距离，仅保留严格大于阈值的记录，按距离升序返回。
    """
    distance = TherapySession.embedding.cosine_distance(query_embedding)
    similarity = (1 - distance).label("similarity")

    return (
        select(TherapySession, similarity)
        .where(1 - distance > threshold)
        .order_by(distance, TherapySession.id)
        .limit(limit)
    )


class SessionService:
    """治疗会话存储服务"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_session_record(self, **fields) -> TherapySession:
        """
        插入一条完整的会话记录

        Args:
            **fields: TherapySession 的列值

        Returns:
            TherapySession: 已提交的会话
        """
        session = TherapySession(**fields)

        try:
            self.db.add(session)
            await self.db.commit()
            await self.db.refresh(session)
        except SQLAlchemyError as e:
            await self.db.rollback()
            db_logger.error(f"创建会话记录失败: {e}")
            raise DatabaseException(f"Failed to create session record: {e}") from e

        db_logger.info(f"会话记录已创建: {session.id}")
        return session

    async def list_sessions(self) -> List[TherapySession]:
        """按创建时间倒序获取所有会话"""
        try:
            result = await self.db.execute(
                select(TherapySession).order_by(TherapySession.created_at.desc())
            )
        except SQLAlchemyError as e:
            raise DatabaseException(f"Failed to fetch sessions: {e}") from e
        return list(result.scalars().all())

    async def get_session(self, session_id: str) -> TherapySession:
        """获取单个会话"""
        try:
            key = uuid.UUID(str(session_id))
        except ValueError:
            raise ResourceNotFoundException("Session")

        try:
            session = await self.db.get(TherapySession, key)
        except SQLAlchemyError as e:
            raise DatabaseException(f"Failed to fetch session: {e}") from e

        if session is None:
            raise ResourceNotFoundException("Session")
        return session

    async def semantic_search(
        self,
        query_embedding: Sequence[float],
        limit: int = None,
        threshold: float = None
    ) -> List[Tuple[TherapySession, float]]:
        """
        按余弦相似度检索会话

        排序完全交给数据库的向量运算符，这里不做二次排序。

        Returns:
            List[Tuple[TherapySession, float]]: (会话, 相似度)
        """
        limit = limit or settings.search_default_limit
        threshold = settings.search_match_threshold if threshold is None else threshold

        try:
            result = await self.db.execute(build_search_statement(query_embedding, limit, threshold))
        except SQLAlchemyError as e:
            raise DatabaseException(f"Semantic search failed: {e}") from e

        return [(row[0], row[1]) for row in result.all()]


def get_session_service(db: AsyncSession = Depends(get_db)) -> SessionService:
    """获取会话存储服务"""
    return SessionService(db)

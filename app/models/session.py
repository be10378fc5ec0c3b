"""
治疗会话数据模型
"""

import enum
import uuid

from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, String, Text, DateTime, Index, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from app.config import settings
from app.db.database import Base


class Sentiment(str, enum.Enum):
    """会话整体情绪"""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    MIXED = "mixed"


# Postgres上使用JSONB，其他数据库退化为JSON
MetadataType = JSON().with_variant(JSONB(), "postgresql")


class TherapySession(Base):
    """治疗会话模型

    每次上传对应一行，在流水线全部完成后一次性插入，之后不再修改。
    """
    __tablename__ = "sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, comment="会话ID")
    raw_transcription = Column(Text, nullable=False, comment="原始转录")
    labelled_transcription = Column(Text, nullable=False, comment="标注后的转录")
    ai_summary = Column(Text, nullable=False, comment="AI摘要")
    file_link = Column(Text, nullable=False, comment="录音公开URL")
    embedding = Column(Vector(settings.embedding_dimensions), nullable=False, comment="摘要向量")
    embedding_model = Column(String(100), nullable=False, comment="向量模型")
    session_metadata = Column("metadata", MetadataType, nullable=False, default=dict, comment="文件与摘要元数据")

    # 时间戳
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_sessions_created_at", "created_at"),
        Index(
            "ix_sessions_embedding_cosine",
            embedding,
            postgresql_using="hnsw",
            postgresql_ops={"embedding": "vector_cosine_ops"},
        ),
    )

    def __repr__(self) -> str:
        return f"<TherapySession id={self.id} file_link={self.file_link!r}>"

"""
测试配置和fixtures
"""

import pytest
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.main import app
from app.db.database import get_db, Base
from app.models.session import TherapySession
from app.core.storage import FileStorageManager, LocalStorageBackend, get_storage_manager
from app.services.ai.ai_service import AIService, get_ai_service
from app.services.ai.base import TranscriptionResult, EmbeddingResult


# 测试数据库URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

RAW_TRANSCRIPT = (
    "so how have you been since last week honestly better I started going "
    "for walks in the morning"
)
LABELED_TRANSCRIPT = (
    "Therapist: So, how have you been since last week?\n"
    "Client: Honestly, better. I started going for walks in the morning."
)
SUMMARY_PAYLOAD = {
    "summary": "The client reports improved mood after starting morning walks.",
    "keyTopics": ["exercise", "mood", "routine"],
    "sentiment": "Positive",
}


def make_vector(value: float = 0.1, dimensions: int = None) -> list:
    """生成固定维度的测试向量"""
    return [value] * (dimensions or settings.embedding_dimensions)


@pytest.fixture
async def test_engine():
    """每个测试使用独立的内存数据库"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """提供数据库会话"""
    factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def fake_providers():
    """OpenAI提供商的替身"""
    stt = MagicMock()
    stt.transcribe_audio = AsyncMock(
        return_value=TranscriptionResult(text=RAW_TRANSCRIPT, model="gpt-4o-transcribe-diarize")
    )

    llm = MagicMock()
    llm.label_transcription = AsyncMock(return_value=LABELED_TRANSCRIPT)
    llm.summarize_transcription = AsyncMock(return_value=dict(SUMMARY_PAYLOAD))

    embedding = MagicMock()
    embedding.create_embedding = AsyncMock(
        return_value=EmbeddingResult(
            vector=make_vector(),
            model="text-embedding-3-small",
            dimensions=settings.embedding_dimensions
        )
    )

    return SimpleNamespace(stt=stt, llm=llm, embedding=embedding)


@pytest.fixture
def ai_service(fake_providers) -> AIService:
    """使用替身提供商的AI服务"""
    return AIService(
        settings.ai_config,
        stt_provider=fake_providers.stt,
        llm_provider=fake_providers.llm,
        embedding_provider=fake_providers.embedding
    )


@pytest.fixture
def storage_manager(tmp_path) -> FileStorageManager:
    """写入临时目录的本地存储"""
    backend = LocalStorageBackend(str(tmp_path / "uploads"), public_base_url="http://test")
    return FileStorageManager(backends={"local": backend}, default_backend="local")


@pytest.fixture
def fixed_duration(monkeypatch) -> AsyncMock:
    """固定音频时长，避免依赖本机ffprobe"""
    mock = AsyncMock(return_value=42.0)
    monkeypatch.setattr("app.services.pipeline.get_audio_duration", mock)
    return mock


@pytest.fixture
async def client(db_session, ai_service, storage_manager, fixed_duration) -> AsyncGenerator[AsyncClient, None]:
    """提供测试客户端"""
    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_ai_service] = lambda: ai_service
    app.dependency_overrides[get_storage_manager] = lambda: storage_manager

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def session_factory(db_session):
    """插入测试会话"""
    async def _create(summary: str = "A calm session about sleep.", created_at: datetime = None, **kwargs):
        session = TherapySession(
            raw_transcription=kwargs.pop("raw_transcription", RAW_TRANSCRIPT),
            labelled_transcription=kwargs.pop("labelled_transcription", LABELED_TRANSCRIPT),
            ai_summary=summary,
            file_link=kwargs.pop("file_link", "http://test/files/public/session_1700000000000.mp3"),
            embedding=kwargs.pop("embedding", make_vector()),
            embedding_model="text-embedding-3-small",
            session_metadata=kwargs.pop("session_metadata", {
                "file_size": 2048,
                "original_filename": "session.mp3",
                "unique_filename": "session_1700000000000.mp3",
                "duration": 42.0,
                "key_topics": ["sleep"],
                "sentiment": "neutral",
                "mime_type": "audio/mpeg",
            }),
            created_at=created_at or datetime.now(timezone.utc),
            **kwargs
        )
        db_session.add(session)
        await db_session.commit()
        await db_session.refresh(session)
        return session

    return _create

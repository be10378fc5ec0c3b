"""
摄取流水线测试
"""

import asyncio
import pytest
from pathlib import Path
from sqlalchemy import select, func

from app.core.exceptions import (
    AIServiceException,
    PipelineStageError,
    StorageException,
    UploadTimeoutException,
    ValidationException
)
from app.models.session import TherapySession, Sentiment
from app.schemas.session import SessionSummary
from app.services.ai.base import TranscriptionResult
from app.core.storage import StoredObject
from app.services.pipeline import (
    IngestionPipeline,
    PipelineStage,
    RecordingUpload,
    build_session_fields
)
from app.services.session import SessionService
from app.tests.conftest import LABELED_TRANSCRIPT, RAW_TRANSCRIPT, make_vector


@pytest.fixture
def pipeline(ai_service, storage_manager, db_session, fixed_duration) -> IngestionPipeline:
    return IngestionPipeline(ai_service, storage_manager, SessionService(db_session))


@pytest.fixture
def recording() -> RecordingUpload:
    return RecordingUpload(content=b"\x00" * 1024, filename="intake.mp3", content_type="audio/mpeg")


async def count_sessions(db_session) -> int:
    result = await db_session.execute(select(func.count()).select_from(TherapySession))
    return result.scalar_one()


def stored_files(storage_manager) -> list:
    base = Path(storage_manager.get_backend().base_path)
    return [path for path in base.rglob("*") if path.is_file()]


class TestIngestionPipeline:
    """流水线执行测试"""

    async def test_run_persists_one_session(self, pipeline, recording, db_session, storage_manager):
        result = await pipeline.run(recording)

        assert result.labelled_transcription == LABELED_TRANSCRIPT
        assert result.raw_transcription == RAW_TRANSCRIPT
        assert result.duration == 42.0
        assert result.summary.sentiment == Sentiment.POSITIVE
        assert result.stored.key.startswith("public/intake_")

        assert await count_sessions(db_session) == 1
        assert result.session.id is not None
        assert result.session.embedding_model == "text-embedding-3-small"
        assert result.session.session_metadata["unique_filename"] == result.stored.unique_filename
        assert result.session.session_metadata["mime_type"] == "audio/mpeg"

        files = stored_files(storage_manager)
        assert len(files) == 1
        assert files[0].read_bytes() == recording.content

    async def test_stages_run_in_order(self, pipeline, recording, fake_providers):
        calls = []
        original_label = fake_providers.llm.label_transcription.return_value

        async def label(text):
            calls.append(("label", text))
            return original_label

        fake_providers.llm.label_transcription.side_effect = label

        await pipeline.run(recording)

        # 标注的输入是原始转录，摘要的输入是标注结果
        assert calls == [("label", RAW_TRANSCRIPT)]
        fake_providers.llm.summarize_transcription.assert_awaited_once_with(LABELED_TRANSCRIPT)

    async def test_validation_happens_before_upload(self, pipeline, db_session, storage_manager, fake_providers):
        empty = RecordingUpload(content=b"", filename="intake.mp3", content_type="audio/mpeg")

        with pytest.raises(ValidationException):
            await pipeline.run(empty)

        assert stored_files(storage_manager) == []
        fake_providers.stt.transcribe_audio.assert_not_awaited()
        assert await count_sessions(db_session) == 0

    async def test_transcription_failure_keeps_uploaded_blob(
        self, pipeline, recording, db_session, storage_manager, fake_providers
    ):
        fake_providers.stt.transcribe_audio.side_effect = AIServiceException("rate limited")

        with pytest.raises(PipelineStageError) as exc_info:
            await pipeline.run(recording)

        error = exc_info.value
        assert error.stage == PipelineStage.TRANSCRIBE.value
        assert error.code == "AI_SERVICE_ERROR"
        assert "rate limited" in error.message

        fake_providers.llm.label_transcription.assert_not_awaited()
        assert await count_sessions(db_session) == 0
        # 失败时不回滚已上传的文件
        assert len(stored_files(storage_manager)) == 1

    async def test_storage_failure(self, pipeline, recording, fake_providers, monkeypatch):
        async def broken_upload(*args, **kwargs):
            raise StorageException("bucket is read-only")

        monkeypatch.setattr(pipeline.storage, "upload_recording", broken_upload)

        with pytest.raises(PipelineStageError) as exc_info:
            await pipeline.run(recording)

        assert exc_info.value.stage == "upload"
        assert exc_info.value.code == "STORAGE_ERROR"
        fake_providers.stt.transcribe_audio.assert_not_awaited()

    async def test_timeout_writes_no_session(self, pipeline, recording, db_session, fake_providers):
        async def slow_transcribe(*args, **kwargs):
            await asyncio.sleep(0.5)
            return TranscriptionResult(text=RAW_TRANSCRIPT, model="gpt-4o-transcribe-diarize")

        fake_providers.stt.transcribe_audio.side_effect = slow_transcribe

        with pytest.raises(UploadTimeoutException) as exc_info:
            await pipeline.run(recording, timeout=0.05)

        assert exc_info.value.code == "UPLOAD_TIMEOUT"
        assert exc_info.value.message == "Upload processing exceeded 0.05 seconds"

        # 被取消的阶段不会在之后继续执行
        await asyncio.sleep(0.6)
        fake_providers.llm.label_transcription.assert_not_awaited()
        assert await count_sessions(db_session) == 0

    async def test_timeout_not_reached(self, pipeline, recording, db_session):
        result = await pipeline.run(recording, timeout=5)

        assert result.session.id is not None
        assert await count_sessions(db_session) == 1

    async def test_malformed_summary(self, pipeline, recording, db_session, fake_providers):
        fake_providers.llm.summarize_transcription.return_value = {
            "summary": "Session summary",
            "keyTopics": ["work"],
            "sentiment": "ecstatic",
        }

        with pytest.raises(PipelineStageError) as exc_info:
            await pipeline.run(recording)

        assert exc_info.value.stage == "summarize"
        assert exc_info.value.code == "AI_SERVICE_ERROR"
        fake_providers.embedding.create_embedding.assert_not_awaited()
        assert await count_sessions(db_session) == 0

    async def test_unexpected_error_is_wrapped(self, pipeline, recording, fake_providers):
        fake_providers.llm.label_transcription.side_effect = RuntimeError("connection reset")

        with pytest.raises(PipelineStageError) as exc_info:
            await pipeline.run(recording)

        assert exc_info.value.stage == "label"
        assert exc_info.value.code == "PIPELINE_ERROR"
        assert isinstance(exc_info.value.cause, RuntimeError)


class TestBuildSessionFields:
    """会话字段组装测试"""

    def test_fields(self):
        recording = RecordingUpload(content=b"abc", filename="couple.wav", content_type="audio/wav")
        stored = StoredObject(
            key="public/couple_1700000000000.wav",
            unique_filename="couple_1700000000000.wav",
            public_url="https://cdn.example.com/public/couple_1700000000000.wav",
            size=3
        )
        summary = SessionSummary(summary="Summary", keyTopics=["conflict"], sentiment="mixed")

        fields = build_session_fields(
            recording=recording,
            stored=stored,
            duration=12.5,
            raw_transcription="raw",
            labelled_transcription="Therapist: hi",
            summary=summary,
            embedding=make_vector(),
            embedding_model="text-embedding-3-small"
        )

        assert fields["ai_summary"] == "Summary"
        assert fields["file_link"] == stored.public_url
        assert fields["session_metadata"] == {
            "file_size": 3,
            "original_filename": "couple.wav",
            "unique_filename": "couple_1700000000000.wav",
            "duration": 12.5,
            "key_topics": ["conflict"],
            "sentiment": "mixed",
            "mime_type": "audio/wav",
        }

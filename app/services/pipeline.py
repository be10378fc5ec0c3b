"""
录音摄取流水线

上传 -> 时长探测 -> 转录 -> 标注 -> 摘要 -> 向量 -> 入库，严格按顺序执行。
每一步都是独立的阶段，失败时抛出带阶段名的 PipelineStageError，
会话记录只在最后一步一次性写入。
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import Depends

from app.config import settings
from app.core.exceptions import PipelineStageError, UploadTimeoutException
from app.core.logging import service_logger
from app.core.storage import FileStorageManager, StoredObject, get_storage_manager
from app.models.session import TherapySession
from app.schemas.session import SessionMetadata, SessionSummary
from app.services.ai.ai_service import AIService, get_ai_service
from app.services.session import SessionService, get_session_service, serialize_session
from app.utils.audio_utils import get_audio_duration, validate_audio_upload


class PipelineStage(str, Enum):
    """流水线阶段"""
    VALIDATE = "validate"
    UPLOAD = "upload"
    DURATION = "duration"
    TRANSCRIBE = "transcribe"
    LABEL = "label"
    SUMMARIZE = "summarize"
    EMBED = "embed"
    PERSIST = "persist"


@dataclass
class RecordingUpload:
    """客户端上传的录音"""
    content: bytes
    filename: str
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class IngestionResult:
    """流水线执行结果"""
    session: TherapySession
    stored: StoredObject
    duration: float
    raw_transcription: str
    labelled_transcription: str
    summary: SessionSummary
    embedding: List[float]


def build_session_fields(
    recording: RecordingUpload,
    stored: StoredObject,
    duration: float,
    raw_transcription: str,
    labelled_transcription: str,
    summary: SessionSummary,
    embedding: List[float],
    embedding_model: str
) -> Dict[str, Any]:
    """组装会话记录的列值"""
    metadata = SessionMetadata(
        file_size=recording.size,
        original_filename=recording.filename,
        unique_filename=stored.unique_filename,
        duration=duration,
        key_topics=summary.key_topics,
        sentiment=summary.sentiment,
        mime_type=recording.content_type
    )

    return {
        "raw_transcription": raw_transcription,
        "labelled_transcription": labelled_transcription,
        "ai_summary": summary.summary,
        "file_link": stored.public_url,
        "embedding": embedding,
        "embedding_model": embedding_model,
        "session_metadata": metadata.model_dump(mode="json"),
    }


class IngestionPipeline:
    """录音摄取流水线"""

    def __init__(
        self,
        ai_service: AIService,
        storage: FileStorageManager,
        sessions: SessionService
    ):
        self.ai_service = ai_service
        self.storage = storage
        self.sessions = sessions

    async def _run_stage(self, stage: PipelineStage, func: Callable[..., Awaitable[Any]], *args) -> Any:
        """执行单个阶段，记录耗时并包装异常"""
        start_time = time.time()
        service_logger.info(f"[{stage.value}] 开始")

        try:
            result = await func(*args)
        except Exception as e:
            service_logger.error(
                f"[{stage.value}] 失败 ({time.time() - start_time:.2f}s): {type(e).__name__}: {e}"
            )
            raise PipelineStageError(stage.value, e) from e

        service_logger.info(f"[{stage.value}] 完成 ({time.time() - start_time:.2f}s)")
        return result

    def validate(self, recording: RecordingUpload) -> None:
        """本地校验，失败时在任何远程调用之前直接抛出 ValidationException"""
        validate_audio_upload(
            recording.content,
            recording.filename,
            recording.content_type,
            max_size=settings.max_upload_size,
            allowed_types=settings.allowed_audio_types,
            allowed_extensions=settings.allowed_audio_extensions
        )

    async def upload(self, recording: RecordingUpload) -> StoredObject:
        """上传到对象存储"""
        return await self.storage.upload_recording(
            recording.content,
            recording.filename,
            recording.content_type
        )

    async def extract_duration(self, recording: RecordingUpload) -> float:
        """本地探测音频时长"""
        return await get_audio_duration(recording.content, recording.content_type, recording.filename)

    async def transcribe(self, recording: RecordingUpload) -> str:
        """语音转文字"""
        return await self.ai_service.transcribe(recording.content, recording.filename, recording.content_type)

    async def label(self, raw_transcription: str) -> str:
        """标注说话人"""
        return await self.ai_service.label_transcription(raw_transcription)

    async def summarize(self, labelled_transcription: str) -> SessionSummary:
        """生成摘要、话题和情绪"""
        return await self.ai_service.generate_summary(labelled_transcription)

    async def embed(self, summary: SessionSummary) -> List[float]:
        """对摘要生成向量"""
        return await self.ai_service.generate_embedding(summary.summary)

    async def persist(self, fields: Dict[str, Any]) -> TherapySession:
        """一次性写入会话记录"""
        return await self.sessions.create_session_record(**fields)

    async def _process(self, recording: RecordingUpload) -> Dict[str, Any]:
        """执行入库前的所有远程阶段"""
        stored = await self._run_stage(PipelineStage.UPLOAD, self.upload, recording)
        duration = await self._run_stage(PipelineStage.DURATION, self.extract_duration, recording)
        raw_transcription = await self._run_stage(PipelineStage.TRANSCRIBE, self.transcribe, recording)
        labelled = await self._run_stage(PipelineStage.LABEL, self.label, raw_transcription)
        summary = await self._run_stage(PipelineStage.SUMMARIZE, self.summarize, labelled)
        embedding = await self._run_stage(PipelineStage.EMBED, self.embed, summary)

        return {
            "recording": recording,
            "stored": stored,
            "duration": duration,
            "raw_transcription": raw_transcription,
            "labelled_transcription": labelled,
            "summary": summary,
            "embedding": embedding,
        }

    async def run(self, recording: RecordingUpload, timeout: Optional[float] = None) -> IngestionResult:
        """
        执行完整流水线

        超时只作用于入库之前的阶段，超时后不会写入任何会话记录。

        Args:
            recording: 上传的录音
            timeout: 入库前各阶段的总时限(秒)，None 表示不限制

        Returns:
            IngestionResult: 已入库的会话以及中间产物

        Raises:
            ValidationException: 本地校验失败
            PipelineStageError: 任一远程阶段失败
            UploadTimeoutException: 超过时限
        """
        self.validate(recording)
        service_logger.info(
            f"开始处理录音: {recording.filename} ({recording.size} bytes, {recording.content_type})"
        )

        try:
            outputs = await asyncio.wait_for(self._process(recording), timeout=timeout)
        except asyncio.TimeoutError as e:
            service_logger.error(f"录音处理超时 ({timeout:g}s): {recording.filename}")
            raise UploadTimeoutException(timeout) from e

        fields = build_session_fields(
            embedding_model=self.ai_service.embedding_model,
            **outputs
        )
        session = await self._run_stage(PipelineStage.PERSIST, self.persist, fields)

        service_logger.info(f"录音处理完成: session={session.id}")

        return IngestionResult(
            session=session,
            stored=outputs["stored"],
            duration=outputs["duration"],
            raw_transcription=outputs["raw_transcription"],
            labelled_transcription=outputs["labelled_transcription"],
            summary=outputs["summary"],
            embedding=outputs["embedding"]
        )



class SessionSearchService:
    """会话语义搜索"""

    def __init__(self, ai_service: AIService, sessions: SessionService):
        self.ai_service = ai_service
        self.sessions = sessions

    async def search(self, query: str, limit: int = None) -> List[Dict[str, Any]]:
        """对查询生成向量，再交给数据库做近邻排序"""
        query_embedding = await self.ai_service.generate_embedding(query)
        matches = await self.sessions.semantic_search(
            query_embedding,
            limit=limit or settings.search_default_limit,
            threshold=settings.search_match_threshold
        )
        service_logger.info(f"语义搜索返回 {len(matches)} 条结果")
        return [serialize_session(session, similarity) for session, similarity in matches]


def get_ingestion_pipeline(
    ai_service: AIService = Depends(get_ai_service),
    storage: FileStorageManager = Depends(get_storage_manager),
    sessions: SessionService = Depends(get_session_service)
) -> IngestionPipeline:
    """获取摄取流水线"""
    return IngestionPipeline(ai_service, storage, sessions)


def get_search_service(
    ai_service: AIService = Depends(get_ai_service),
    sessions: SessionService = Depends(get_session_service)
) -> SessionSearchService:
    """获取语义搜索服务"""
    return SessionSearchService(ai_service, sessions)

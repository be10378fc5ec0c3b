"""
治疗会话API端点
"""

from typing import Optional

from fastapi import APIRouter, UploadFile, File, HTTPException, Depends, Path

from app.config import settings
from app.core.logging import api_logger
from app.schemas.session import (
    SessionListResponse,
    SessionDetailResponse,
    UploadRecordingResponse,
    SearchRequest,
    SearchResponse
)
from app.services.pipeline import (
    IngestionPipeline,
    RecordingUpload,
    SessionSearchService,
    get_ingestion_pipeline,
    get_search_service
)
from app.services.session import SessionService, get_session_service, serialize_session
from app.utils.audio_utils import format_megabytes


router = APIRouter()


def _oversize_detail(size: int) -> str:
    return (
        f"File size exceeds the maximum limit of {settings.max_upload_size // (1024 * 1024)}MB. "
        f"Your file is {format_megabytes(size)}"
    )


@router.get("/", response_model=SessionListResponse, summary="获取所有会话")
async def list_sessions(
    session_service: SessionService = Depends(get_session_service)
):
    """按创建时间倒序返回所有会话"""
    sessions = await session_service.list_sessions()
    data = [serialize_session(session) for session in sessions]

    return {
        "success": True,
        "data": data,
        "count": len(data)
    }


@router.post("/upload", response_model=UploadRecordingResponse, summary="上传会话录音")
async def upload_recording(
    recording: Optional[UploadFile] = File(None, description="会话录音"),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline)
):
    """
    上传会话录音并完成转录、标注、摘要和入库

    - **recording**: 音频文件（MP3, WAV, M4A, OGG, WEBM，最大50MB）

    返回标注后的转录文本
    """
    if recording is None or not recording.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    # 读取前先用声明的大小拦截超大文件
    if recording.size is not None and recording.size > settings.max_upload_size:
        raise HTTPException(status_code=400, detail=_oversize_detail(recording.size))

    content = await recording.read()
    api_logger.info(f"收到录音上传: {recording.filename} ({len(content)} bytes)")

    result = await pipeline.run(
        RecordingUpload(
            content=content,
            filename=recording.filename,
            content_type=recording.content_type
        ),
        timeout=settings.upload_timeout
    )

    return {
        "message": "Session recording uploaded successfully",
        "transcription": result.labelled_transcription
    }


@router.post("/search", response_model=SearchResponse, summary="语义搜索会话")
async def search_sessions(
    request: SearchRequest,
    search_service: SessionSearchService = Depends(get_search_service)
):
    """按摘要向量的余弦相似度搜索会话"""
    query = (request.query or "").strip()
    if not query:
        raise HTTPException(status_code=400, detail="Search query is required")

    results = await search_service.search(query, limit=request.limit)

    return {
        "success": True,
        "query": query,
        "results": results,
        "count": len(results)
    }


@router.get("/{session_id}", response_model=SessionDetailResponse, summary="获取会话详情")
async def get_session(
    session_id: str = Path(..., description="会话ID"),
    session_service: SessionService = Depends(get_session_service)
):
    """获取单个会话"""
    session = await session_service.get_session(session_id)

    return {
        "success": True,
        "data": serialize_session(session)
    }

"""
治疗会话相关的Pydantic模式
"""

from datetime import datetime
from typing import Optional, List, Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.session import Sentiment


class SessionSummary(BaseModel):
    """摘要模型返回的结构化结果"""
    model_config = ConfigDict(populate_by_name=True)

    summary: str = Field(..., min_length=1, description="会话摘要")
    key_topics: List[str] = Field(..., alias="keyTopics", description="关键话题")
    sentiment: Sentiment = Field(..., description="整体情绪")

    @field_validator("summary")
    @classmethod
    def strip_summary(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("summary must not be blank")
        return value

    @field_validator("key_topics")
    @classmethod
    def clean_topics(cls, value: List[str]) -> List[str]:
        return [topic.strip() for topic in value if topic and topic.strip()]

    @field_validator("sentiment", mode="before")
    @classmethod
    def normalize_sentiment(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class SessionMetadata(BaseModel):
    """会话元数据"""
    file_size: int = Field(..., ge=0, description="文件大小(字节)")
    original_filename: str = Field(..., description="原始文件名")
    unique_filename: str = Field(..., description="存储中的唯一文件名")
    duration: float = Field(..., ge=0, description="音频时长(秒)")
    key_topics: List[str] = Field(default_factory=list, description="关键话题")
    sentiment: Sentiment = Field(..., description="整体情绪")
    mime_type: Optional[str] = Field(None, description="MIME类型")


class SessionRecord(BaseModel):
    """会话记录"""
    id: str = Field(..., description="会话ID")
    raw_transcription: str = Field(..., description="原始转录")
    labelled_transcription: str = Field(..., description="标注后的转录")
    ai_summary: str = Field(..., description="AI摘要")
    file_link: str = Field(..., description="录音URL")
    embedding: List[float] = Field(..., description="摘要向量")
    embedding_model: str = Field(..., description="向量模型")
    metadata: Dict[str, Any] = Field(..., description="元数据")
    created_at: datetime = Field(..., description="创建时间")
    updated_at: datetime = Field(..., description="更新时间")
    similarity: Optional[float] = Field(None, description="相似度(仅搜索结果)")


class SessionListResponse(BaseModel):
    """会话列表响应"""
    success: bool = True
    data: List[SessionRecord]
    count: int


class SessionDetailResponse(BaseModel):
    """单个会话响应"""
    success: bool = True
    data: SessionRecord


class UploadRecordingResponse(BaseModel):
    """上传录音响应"""
    message: str = Field(..., description="提示信息")
    transcription: str = Field(..., description="标注后的转录")


class SearchRequest(BaseModel):
    """语义搜索请求"""
    query: Optional[str] = Field(None, description="搜索内容")
    limit: Optional[int] = Field(None, ge=1, le=100, description="返回条数")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "query": "client discussed anxiety at work",
                "limit": 5
            }
        }
    )


class SearchResponse(BaseModel):
    """语义搜索响应"""
    success: bool = True
    query: str
    results: List[SessionRecord]
    count: int

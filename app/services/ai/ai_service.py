"""
AI服务管理器
统一管理转录、文本理解和向量服务，并校验模型输出
"""

import math
from typing import List, Optional, Sequence

from pydantic import ValidationError

from app.core.exceptions import AIServiceException
from app.core.logging import ai_logger
from app.schemas.session import SessionSummary
from .base import (
    AIServiceFactory, ProviderKind, STTProvider, LLMProvider, EmbeddingProvider, AIConfig
)
from .openai_provider import register_openai_providers


def validate_embedding(vector: Sequence[float], dimensions: int) -> List[float]:
    """
    校验向量维度和数值

    Args:
        vector: 模型返回的向量
        dimensions: 配置的固定维度

    Returns:
        List[float]: 转换为float后的向量

    Raises:
        AIServiceException: 维度不符或包含非有限数值
    """
    if vector is None or isinstance(vector, (str, bytes)):
        raise AIServiceException("Embedding is not a numeric vector")

    values = list(vector)
    if len(values) != dimensions:
        raise AIServiceException(
            f"Embedding has {len(values)} dimensions, expected {dimensions}"
        )

    result = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise AIServiceException("Embedding contains non-numeric values")
        value = float(value)
        if not math.isfinite(value):
            raise AIServiceException("Embedding contains non-finite values")
        result.append(value)

    return result


class AIService:
    """AI服务管理器"""

    def __init__(
        self,
        config: AIConfig,
        stt_provider: Optional[STTProvider] = None,
        llm_provider: Optional[LLMProvider] = None,
        embedding_provider: Optional[EmbeddingProvider] = None
    ):
        self.config = config
        self.embedding_dimensions = config.embedding_config.get("dimensions", 1536)

        if not (stt_provider and llm_provider and embedding_provider):
            register_openai_providers()

        self.stt_provider: STTProvider = stt_provider or AIServiceFactory.create(
            ProviderKind.STT, config.stt_provider, config.stt_config
        )
        self.llm_provider: LLMProvider = llm_provider or AIServiceFactory.create(
            ProviderKind.LLM, config.llm_provider, config.llm_config
        )
        self.embedding_provider: EmbeddingProvider = embedding_provider or AIServiceFactory.create(
            ProviderKind.EMBEDDING, config.embedding_provider, config.embedding_config
        )

    @property
    def embedding_model(self) -> str:
        """当前使用的向量模型"""
        return self.config.default_embedding_model or self.config.embedding_config.get("model")

    async def transcribe(self, audio_data: bytes, filename: str, content_type: Optional[str] = None) -> str:
        """转录音频，返回原始文本"""
        result = await self.stt_provider.transcribe_audio(audio_data, filename, content_type)
        ai_logger.info(f"转录完成: {len(result.text)} 字符 ({result.model})")
        return result.text

    async def label_transcription(self, transcription: str) -> str:
        """清理并按说话人标注转录"""
        labeled = await self.llm_provider.label_transcription(transcription)
        ai_logger.info(f"转录标注完成: {len(labeled)} 字符")
        return labeled

    async def generate_summary(self, transcription: str) -> SessionSummary:
        """生成摘要、关键话题和情绪"""
        payload = await self.llm_provider.summarize_transcription(transcription)

        try:
            summary = SessionSummary.model_validate(payload)
        except ValidationError as e:
            raise AIServiceException(f"Summary response is malformed: {e.errors()}") from e

        ai_logger.info(
            f"摘要完成: {len(summary.key_topics)} 个话题, 情绪={summary.sentiment.value}"
        )
        return summary

    async def generate_embedding(self, text: str) -> List[float]:
        """生成并校验文本向量"""
        result = await self.embedding_provider.create_embedding(text, model=self.embedding_model)
        return validate_embedding(result.vector, self.embedding_dimensions)

    async def close(self):
        """关闭底层HTTP客户端"""
        for provider in (self.stt_provider, self.llm_provider, self.embedding_provider):
            client = getattr(provider, "client", None)
            if client is not None and hasattr(client, "close"):
                await client.close()


# 全局AI服务实例
ai_service: Optional[AIService] = None


def init_ai_service(config: AIConfig) -> AIService:
    """初始化AI服务"""
    global ai_service
    ai_service = AIService(config)
    return ai_service


def get_ai_service() -> AIService:
    """获取AI服务实例"""
    if ai_service is None:
        raise RuntimeError("AI service not initialized. Call init_ai_service() first.")
    return ai_service

"""
AI服务模块初始化
"""

from .base import (
    AIProvider, AIConfig, AIServiceFactory, ProviderKind, TranscriptionResult, LLMResponse, EmbeddingResult
)
from .ai_service import AIService, init_ai_service, get_ai_service, validate_embedding
from . import ai_service as _ai_service_module


async def initialize_ai_services(config: AIConfig) -> AIService:
    """初始化AI服务"""
    return init_ai_service(config)


async def shutdown_ai_services():
    """关闭AI服务"""
    if _ai_service_module.ai_service is not None:
        await _ai_service_module.ai_service.close()
        _ai_service_module.ai_service = None


__all__ = [
    'AIProvider',
    'AIConfig',
    'AIServiceFactory',
    'ProviderKind',
    'TranscriptionResult',
    'LLMResponse',
    'EmbeddingResult',
    'AIService',
    'init_ai_service',
    'get_ai_service',
    'validate_embedding',
    'initialize_ai_services',
    'shutdown_ai_services'
]

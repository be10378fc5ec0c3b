"""
AI服务抽象基类
转录、文本理解和向量三类能力各自一个接口，由工厂按提供商创建
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, Tuple, Type
from dataclasses import dataclass, field
from enum import Enum

from app.core.exceptions import ConfigurationException


class AIProvider(Enum):
    """AI服务提供商枚举"""
    OPENAI = "openai"


class ProviderKind(str, Enum):
    """AI能力类型"""
    STT = "stt"
    LLM = "llm"
    EMBEDDING = "embedding"


@dataclass
class TranscriptionResult:
    """语音转录结果"""
    text: str
    model: str
    language: Optional[str] = None


@dataclass
class LLMResponse:
    """大语言模型响应结果"""
    content: str
    model: str
    usage: Dict[str, int]
    finish_reason: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class EmbeddingResult:
    """文本向量结果"""
    vector: List[float]
    model: str
    dimensions: int


class BaseProvider(ABC):
    """提供商公共部分：保存配置并声明自身的提供商名称"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.provider = self._get_provider_name()

    @abstractmethod
    def _get_provider_name(self) -> AIProvider:
        pass


class STTProvider(BaseProvider):
    """语音转录接口"""

    @abstractmethod
    async def transcribe_audio(
        self,
        audio_data: bytes,
        filename: str,
        content_type: Optional[str] = None,
        **kwargs
    ) -> TranscriptionResult:
        """
        转录整段录音

        Args:
            audio_data: 音频字节
            filename: 文件名，服务端据此判断格式
            content_type: MIME类型

        Returns:
            TranscriptionResult: 纯文本转录
        """


class LLMProvider(BaseProvider):
    """文本理解接口"""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[Dict[str, str]],
        model: str = None,
        temperature: float = 0.7,
        max_tokens: int = None,
        **kwargs
    ) -> LLMResponse:
        """单次对话补全，messages 格式为 [{"role": ..., "content": ...}]"""

    @abstractmethod
    async def label_transcription(self, transcription: str, **kwargs) -> str:
        """清理原始转录并按 Therapist/Client 标注说话人"""

    @abstractmethod
    async def summarize_transcription(self, transcription: str, **kwargs) -> Dict[str, Any]:
        """生成 {summary, keyTopics, sentiment} 结构化摘要"""


class EmbeddingProvider(BaseProvider):
    """文本向量接口"""

    @abstractmethod
    async def create_embedding(self, text: str, model: str = None, **kwargs) -> EmbeddingResult:
        """为单条文本生成向量"""


@dataclass
class AIConfig:
    """AI服务配置"""
    stt_provider: AIProvider
    llm_provider: AIProvider
    embedding_provider: AIProvider
    stt_config: Dict[str, Any]
    llm_config: Dict[str, Any]
    embedding_config: Dict[str, Any]
    default_embedding_model: str = None


class AIServiceFactory:
    """按 (能力类型, 提供商) 注册和创建服务实例"""

    _registry: Dict[Tuple[ProviderKind, AIProvider], Type[BaseProvider]] = {}

    @classmethod
    def register(cls, kind: ProviderKind, provider: AIProvider, provider_class: Type[BaseProvider]):
        cls._registry[(kind, provider)] = provider_class

    @classmethod
    def create(cls, kind: ProviderKind, provider: AIProvider, config: Dict[str, Any]) -> BaseProvider:
        provider_class = cls._registry.get((kind, provider))
        if provider_class is None:
            raise ConfigurationException(f"No {kind.value} provider registered for '{provider.value}'")
        return provider_class(config)

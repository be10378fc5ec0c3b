"""
OpenAI API集成实现
包含语音转录、GPT对话和文本向量服务
"""

import json
import httpx
from typing import Dict, Any, List, Optional
from openai import AsyncOpenAI
import openai

from app.core.exceptions import AIServiceException
from app.core.logging import ai_logger
from .base import (
    STTProvider, LLMProvider, EmbeddingProvider, AIProvider,
    TranscriptionResult, LLMResponse, EmbeddingResult
)
from .prompts import label_transcription_messages, summary_messages


def build_http_client(config: Dict[str, Any]) -> Optional[httpx.AsyncClient]:
    """根据代理配置构建httpx客户端，未配置代理时返回None"""
    if not (config.get("http_proxy") or config.get("https_proxy")):
        return None

    # 添加代理认证
    auth = None
    if config.get("proxy_auth"):
        username, password = config.get("proxy_auth").split(":", 1)
        auth = (username, password)

    mounts = {}
    if config.get("http_proxy"):
        mounts["http://"] = httpx.AsyncHTTPTransport(
            proxy=httpx.Proxy(config.get("http_proxy"), auth=auth)
        )
    if config.get("https_proxy"):
        mounts["https://"] = httpx.AsyncHTTPTransport(
            proxy=httpx.Proxy(config.get("https_proxy"), auth=auth)
        )

    return httpx.AsyncClient(
        mounts=mounts,
        timeout=config.get("timeout", 60)
    )


def build_openai_client(config: Dict[str, Any]) -> AsyncOpenAI:
    """创建AsyncOpenAI客户端"""
    return AsyncOpenAI(
        api_key=config.get("api_key"),
        base_url=config.get("base_url"),  # 支持自定义endpoint
        timeout=config.get("timeout", 60),
        max_retries=0,
        http_client=build_http_client(config)
    )


class OpenAISTTProvider(STTProvider):
    """OpenAI语音转录服务"""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.client = build_openai_client(config)
        self.default_model = config.get("model", "gpt-4o-transcribe-diarize")

    def _get_provider_name(self) -> AIProvider:
        return AIProvider.OPENAI

    async def transcribe_audio(
        self,
        audio_data: bytes,
        filename: str,
        content_type: Optional[str] = None,
        **kwargs
    ) -> TranscriptionResult:
        """调用转录API，返回纯文本"""
        model = kwargs.get("model", self.default_model)
        file_tuple = (filename, audio_data, content_type) if content_type else (filename, audio_data)

        try:
            response = await self.client.audio.transcriptions.create(
                file=file_tuple,
                model=model,
                response_format="text",
                chunking_strategy="auto"
            )
        except openai.OpenAIError as e:
            raise AIServiceException(f"OpenAI transcription error: {e}") from e

        text = response if isinstance(response, str) else getattr(response, "text", "")
        text = (text or "").strip()
        if not text:
            raise AIServiceException("Transcription returned no text")

        ai_logger.debug(f"转录完成: model={model}, {len(text)} chars")
        return TranscriptionResult(text=text, model=model)


class OpenAILLMProvider(LLMProvider):
    """OpenAI GPT大语言模型服务"""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.client = build_openai_client(config)
        self.default_model = config.get("model", "gpt-3.5-turbo")

    def _get_provider_name(self) -> AIProvider:
        return AIProvider.OPENAI

    async def chat_completion(
        self,
        messages: List[Dict[str, str]],
        model: str = None,
        temperature: float = 0.7,
        max_tokens: int = None,
        **kwargs
    ) -> LLMResponse:
        """GPT聊天完成"""
        params = {
            "model": model or self.default_model,
            "messages": messages,
            "temperature": temperature,
            **kwargs
        }
        if max_tokens is not None:
            params["max_tokens"] = max_tokens

        try:
            response = await self.client.chat.completions.create(**params)
        except openai.OpenAIError as e:
            raise AIServiceException(f"OpenAI LLM error: {e}") from e

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens
            }

        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model,
            usage=usage,
            finish_reason=response.choices[0].finish_reason,
            metadata={"id": response.id}
        )

    async def label_transcription(self, transcription: str, **kwargs) -> str:
        """清理并标注说话人"""
        response = await self.chat_completion(
            messages=label_transcription_messages(transcription),
            temperature=kwargs.get("temperature", 0.5)
        )

        content = response.content.strip()
        if not content:
            raise AIServiceException("Labeling returned an empty transcript")
        return content

    async def summarize_transcription(self, transcription: str, **kwargs) -> Dict[str, Any]:
        """生成结构化摘要"""
        response = await self.chat_completion(
            messages=summary_messages(transcription),
            temperature=kwargs.get("temperature", 0.7),
            max_tokens=kwargs.get("max_tokens", 500),
            response_format={"type": "json_object"}
        )

        try:
            payload = json.loads(response.content)
        except json.JSONDecodeError as e:
            raise AIServiceException(f"Summary response is not valid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise AIServiceException("Summary response is not a JSON object")
        return payload


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI文本向量服务"""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.client = build_openai_client(config)
        self.default_model = config.get("model", "text-embedding-3-small")

    def _get_provider_name(self) -> AIProvider:
        return AIProvider.OPENAI

    async def create_embedding(self, text: str, model: str = None, **kwargs) -> EmbeddingResult:
        """生成单条文本向量"""
        model = model or self.default_model

        try:
            response = await self.client.embeddings.create(model=model, input=text)
        except openai.OpenAIError as e:
            raise AIServiceException(f"OpenAI embedding error: {e}") from e

        if not response.data:
            raise AIServiceException("Embedding response contained no data")

        vector = list(response.data[0].embedding)
        return EmbeddingResult(vector=vector, model=model, dimensions=len(vector))


# 注册OpenAI提供商到工厂
def register_openai_providers():
    """注册OpenAI服务提供商"""
    from .base import AIServiceFactory, ProviderKind

    AIServiceFactory.register(ProviderKind.STT, AIProvider.OPENAI, OpenAISTTProvider)
    AIServiceFactory.register(ProviderKind.LLM, AIProvider.OPENAI, OpenAILLMProvider)
    AIServiceFactory.register(ProviderKind.EMBEDDING, AIProvider.OPENAI, OpenAIEmbeddingProvider)

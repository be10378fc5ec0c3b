#!/usr/bin/env python3
"""
测试代理与OpenAI客户端配置
"""

import os
import sys
from unittest.mock import patch
import pytest
import httpx

# 添加项目根目录到路径
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.config import Settings
from app.services.ai.openai_provider import (
    OpenAILLMProvider,
    OpenAIEmbeddingProvider,
    build_http_client
)


PROXY_URL = 'http://proxy.example.com:8080'


def test_proxy_config_loading():
    """测试代理配置加载"""

    with patch.dict(os.environ, {
        'HTTP_PROXY': PROXY_URL,
        'HTTPS_PROXY': PROXY_URL,
        'PROXY_AUTH': 'testuser:testpass'
    }):
        settings = Settings()

        assert settings.http_proxy == PROXY_URL
        assert settings.https_proxy == PROXY_URL
        assert settings.proxy_auth == 'testuser:testpass'


def test_proxy_mounts():
    """测试代理通过transport挂载"""

    config = {
        'http_proxy': PROXY_URL,
        'https_proxy': PROXY_URL,
        'proxy_auth': 'user:pass',
        'timeout': 120
    }

    with patch('httpx.AsyncClient') as mock_client:
        build_http_client(config)

        mock_client.assert_called_once()
        call_kwargs = mock_client.call_args[1]

        assert call_kwargs['timeout'] == 120
        mounts = call_kwargs['mounts']
        assert set(mounts) == {'http://', 'https://'}
        assert all(isinstance(transport, httpx.AsyncHTTPTransport) for transport in mounts.values())


def test_partial_proxy_config():
    """测试只配置HTTP代理"""

    with patch('httpx.AsyncClient') as mock_client:
        build_http_client({'http_proxy': PROXY_URL})

        mounts = mock_client.call_args[1]['mounts']
        assert 'http://' in mounts
        assert 'https://' not in mounts


def test_no_proxy_config():
    """测试没有代理配置的情况"""

    assert build_http_client({'api_key': 'test-key'}) is None

    with patch('app.services.ai.openai_provider.AsyncOpenAI') as mock_openai:
        OpenAILLMProvider({
            'api_key': 'test-key',
            'base_url': 'https://api.openai.com/v1',
            'model': 'gpt-3.5-turbo'
        })

        mock_openai.assert_called_once_with(
            api_key='test-key',
            base_url='https://api.openai.com/v1',
            timeout=60,
            max_retries=0,
            http_client=None
        )


def test_provider_with_proxy():
    """测试提供商使用带代理的客户端"""

    provider = OpenAIEmbeddingProvider({
        'api_key': 'test-key',
        'model': 'text-embedding-3-small',
        'https_proxy': PROXY_URL
    })

    assert provider.default_model == 'text-embedding-3-small'
    assert provider.client.max_retries == 0


def test_ai_config_with_proxy():
    """测试AI配置包含代理设置"""

    with patch.dict(os.environ, {
        'OPENAI_API_KEY': 'test-key',
        'HTTP_PROXY': PROXY_URL,
        'HTTPS_PROXY': PROXY_URL,
        'PROXY_AUTH': 'user:pass',
        'EMBEDDING_DIMENSIONS': '3072',
        'EMBEDDING_MODEL': 'text-embedding-3-large'
    }):
        settings = Settings()
        ai_config = settings.ai_config

        for config in (ai_config.stt_config, ai_config.llm_config, ai_config.embedding_config):
            assert config['api_key'] == 'test-key'
            assert config['http_proxy'] == PROXY_URL
            assert config['https_proxy'] == PROXY_URL
            assert config['proxy_auth'] == 'user:pass'

        assert ai_config.embedding_config['dimensions'] == 3072
        assert ai_config.default_embedding_model == 'text-embedding-3-large'


@pytest.mark.parametrize('name, expected', [
    ('max_upload_size', 50 * 1024 * 1024),
    ('upload_timeout', 300.0),
    ('search_match_threshold', 0.4),
    ('search_default_limit', 10),
    ('port', 8080),
])
def test_defaults(name, expected, monkeypatch):
    """测试默认配置"""
    monkeypatch.delenv(name.upper(), raising=False)
    assert getattr(Settings(_env_file=None), name) == expected

"""Tests for completion providers and the provider factory."""
from __future__ import annotations

import os
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from emt_quiz.config import Settings
from emt_quiz.prompts import QUESTIONS_SCHEMA
from emt_quiz.providers.llm_gemini import GeminiProvider, _to_gemini_schema
from emt_quiz.providers.llm_ollama import OllamaProvider
from emt_quiz.providers.registry import PROVIDERS, make_llm


class TestRegistry:
    @pytest.mark.parametrize("provider", PROVIDERS)
    def test_builds_each_provider(self, provider):
        llm = make_llm(Settings(llm_provider=provider, llm_model="some-model"))
        assert llm.name() == f"{provider}/some-model"

    def test_ollama_settings_passed(self):
        llm = make_llm(Settings(
            llm_provider="ollama", llm_model="qwen3:8b",
            ollama_url="http://box:11434/", llm_thinking=True,
        ))
        assert llm.base_url == "http://box:11434"
        assert llm.thinking is True

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            make_llm(Settings(llm_provider="watson"))


class TestGeminiSchema:
    def test_types_upper_cased(self):
        converted = _to_gemini_schema(QUESTIONS_SCHEMA)
        assert converted["type"] == "OBJECT"
        questions = converted["properties"]["questions"]
        assert questions["type"] == "ARRAY"
        option = questions["items"]["properties"]["options"]["items"]
        assert option["properties"]["isCorrect"]["type"] == "BOOLEAN"
        assert option["required"] == ["text", "isCorrect"]

    def test_source_untouched(self):
        _to_gemini_schema(QUESTIONS_SCHEMA)
        assert QUESTIONS_SCHEMA["type"] == "object"

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        provider = GeminiProvider()
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(RuntimeError, match="GEMINI_API_KEY"):
                await provider.generate("hello")


class TestOllama:
    @pytest.mark.asyncio
    async def test_request_body(self):
        resp = httpx.Response(
            200,
            json={"response": '{"questions": []}', "eval_count": 12},
            request=httpx.Request("POST", "http://localhost:11434/api/generate"),
        )
        post = AsyncMock(return_value=resp)
        provider = OllamaProvider(model="qwen3:8b")
        with patch.object(httpx.AsyncClient, "post", post):
            text = await provider.generate("prompt", temperature=0.2, schema=QUESTIONS_SCHEMA)

        assert text == '{"questions": []}'
        url = post.call_args.args[0]
        body = post.call_args.kwargs["json"]
        assert url == "http://localhost:11434/api/generate"
        assert body["format"] == QUESTIONS_SCHEMA
        assert body["options"] == {"temperature": 0.2}
        assert body["stream"] is False

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        resp = httpx.Response(
            500, request=httpx.Request("POST", "http://localhost:11434/api/generate"),
        )
        provider = OllamaProvider()
        with patch.object(httpx.AsyncClient, "post", AsyncMock(return_value=resp)):
            with pytest.raises(httpx.HTTPStatusError):
                await provider.generate("prompt")

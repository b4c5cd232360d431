from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from emt_quiz.config import Settings
    from emt_quiz.providers.base import LLMProvider

PROVIDERS = ("gemini", "ollama", "openai", "anthropic")


def make_llm(settings: Settings) -> LLMProvider:
    if settings.llm_provider == "gemini":
        from emt_quiz.providers.llm_gemini import GeminiProvider
        return GeminiProvider(model=settings.llm_model)
    elif settings.llm_provider == "ollama":
        from emt_quiz.providers.llm_ollama import OllamaProvider
        return OllamaProvider(
            base_url=settings.ollama_url,
            model=settings.llm_model,
            thinking=settings.llm_thinking,
        )
    elif settings.llm_provider == "anthropic":
        from emt_quiz.providers.llm_anthropic import AnthropicProvider
        return AnthropicProvider(model=settings.llm_model)
    elif settings.llm_provider == "openai":
        from emt_quiz.providers.llm_openai import OpenAIProvider
        return OpenAIProvider(model=settings.llm_model)
    raise ValueError(f"Unknown LLM provider: {settings.llm_provider}")

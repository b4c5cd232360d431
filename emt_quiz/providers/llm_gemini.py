from __future__ import annotations

import logging
import os
import time

from emt_quiz.providers.base import LLMProvider

log = logging.getLogger("emt_quiz.llm")


def _to_gemini_schema(schema: dict) -> dict:
    """Gemini's response schema uses upper-case type names (OBJECT, ARRAY, ...)."""
    converted: dict = {}
    for key, value in schema.items():
        if key == "type" and isinstance(value, str):
            converted[key] = value.upper()
        elif key == "properties":
            converted[key] = {k: _to_gemini_schema(v) for k, v in value.items()}
        elif key == "items":
            converted[key] = _to_gemini_schema(value)
        else:
            converted[key] = value
    return converted


class GeminiProvider(LLMProvider):
    """Client on the google-genai SDK. The SDK client is built on first use,
    so a missing API key surfaces as a failed request rather than at startup."""

    def __init__(self, model: str = "gemini-2.5-flash", api_key: str | None = None):
        self.model = model
        self.api_key = api_key
        self._client = None
        self._types = None

    def _get_client(self):
        if self._client is None:
            from google import genai
            from google.genai import types

            api_key = self.api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
            if not api_key:
                raise RuntimeError("No Gemini API key: set GEMINI_API_KEY or GOOGLE_API_KEY.")
            self._types = types
            self._client = genai.Client(api_key=api_key)
        return self._client

    async def generate(self, prompt: str, temperature: float = 0.7, schema: dict | None = None) -> str:
        client = self._get_client()
        config_kwargs: dict = {"temperature": temperature}
        if schema is not None:
            config_kwargs["response_mime_type"] = "application/json"
            config_kwargs["response_schema"] = _to_gemini_schema(schema)

        log.info("── PROMPT (%s) ──\n%s", self.model, prompt)
        t0 = time.monotonic()
        resp = await client.aio.models.generate_content(
            model=self.model,
            contents=prompt,
            config=self._types.GenerateContentConfig(**config_kwargs),
        )
        text = (resp.text or "").strip()
        log.info("── RESPONSE (%.1fs) ──\n%s", time.monotonic() - t0, text)
        return text

    def name(self) -> str:
        return f"gemini/{self.model}"

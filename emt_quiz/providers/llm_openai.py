from __future__ import annotations

import logging
import os
import time

from emt_quiz.providers.base import LLMProvider

log = logging.getLogger("emt_quiz.llm")


class OpenAIProvider(LLMProvider):
    """Chat-completions client. Schemas go through ``response_format``."""

    def __init__(self, model: str = "gpt-4o-mini"):
        self.model = model
        self._client = None

    def _get_client(self):
        if self._client is None:
            import openai
            self._client = openai.AsyncOpenAI(api_key=os.environ.get("OPENAI_API_KEY", ""))
        return self._client

    async def generate(self, prompt: str, temperature: float = 0.7, schema: dict | None = None) -> str:
        kwargs: dict = {}
        if schema is not None:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "quiz_questions", "schema": schema},
            }

        log.info("── PROMPT (%s) ──\n%s", self.model, prompt)
        t0 = time.monotonic()
        resp = await self._get_client().chat.completions.create(
            model=self.model,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
            **kwargs,
        )
        choice = resp.choices[0]
        if choice.finish_reason == "length":
            log.warning("Completion truncated at the token limit (%s)", self.model)
        text = choice.message.content or ""
        log.info("── RESPONSE (%.1fs) ──\n%s", time.monotonic() - t0, text)
        return text

    def name(self) -> str:
        return f"openai/{self.model}"

from __future__ import annotations

import json
import logging
import os
import time

from emt_quiz.providers.base import LLMProvider

log = logging.getLogger("emt_quiz.llm")

# A 20-question scenario batch runs to several thousand tokens
MAX_TOKENS = 8192


class AnthropicProvider(LLMProvider):
    def __init__(self, model: str = "claude-sonnet-4-20250514"):
        self.model = model
        self._client = None

    def _get_client(self):
        if self._client is None:
            import anthropic
            self._client = anthropic.AsyncAnthropic(api_key=os.environ.get("ANTHROPIC_API_KEY", ""))
        return self._client

    async def generate(self, prompt: str, temperature: float = 0.7, schema: dict | None = None) -> str:
        # No native schema mode: spell the schema out in the prompt instead
        if schema is not None:
            prompt = (
                f"{prompt}\n\nRespond with ONLY a JSON object matching this JSON schema, "
                f"with no other text:\n{json.dumps(schema, indent=2)}"
            )

        log.info("── PROMPT (%s) ──\n%s", self.model, prompt)
        t0 = time.monotonic()
        message = await self._get_client().messages.create(
            model=self.model,
            max_tokens=MAX_TOKENS,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        if message.stop_reason == "max_tokens":
            log.warning("Completion truncated at %d tokens (%s)", MAX_TOKENS, self.model)
        text = "".join(block.text for block in message.content if block.type == "text")
        log.info("── RESPONSE (%.1fs) ──\n%s", time.monotonic() - t0, text)
        return text

    def name(self) -> str:
        return f"anthropic/{self.model}"

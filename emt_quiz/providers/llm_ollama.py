from __future__ import annotations

import logging
import time

import httpx

from emt_quiz.providers.base import LLMProvider

log = logging.getLogger("emt_quiz.llm")


class OllamaProvider(LLMProvider):
    def __init__(self, base_url: str = "http://localhost:11434", model: str = "qwen3:8b", thinking: bool = False):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.thinking = thinking

    async def generate(self, prompt: str, temperature: float = 0.7, schema: dict | None = None) -> str:
        log.info("── PROMPT (%s) ──\n%s", self.model, prompt)
        body: dict = {
            "model": self.model,
            "prompt": prompt,
            "options": {"temperature": temperature},
            "stream": False,
            "think": self.thinking,
        }
        if schema is not None:
            body["format"] = schema

        t0 = time.monotonic()
        async with httpx.AsyncClient(timeout=180.0) as client:
            resp = await client.post(f"{self.base_url}/api/generate", json=body)
            resp.raise_for_status()
            data = resp.json()
        elapsed = time.monotonic() - t0
        response = data["response"]
        tokens = data.get("eval_count", "?")
        log.info("── RESPONSE (%.1fs, %s tokens) ──\n%s", elapsed, tokens, response)
        return response

    def name(self) -> str:
        return f"ollama/{self.model}"

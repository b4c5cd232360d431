from __future__ import annotations

from abc import ABC, abstractmethod


class LLMProvider(ABC):
    @abstractmethod
    async def generate(self, prompt: str, temperature: float = 0.7, schema: dict | None = None) -> str:
        """Return the raw completion text.

        When *schema* is given the provider should constrain its output to
        JSON matching it, natively where the backend supports that.
        """
        ...

    @abstractmethod
    def name(self) -> str:
        ...

"""
Groq provider (fallback conversation model).

Groq serves open models behind an OpenAI-compatible API with a free tier,
which makes it a cheap fallback when OpenAI is rate limited or out of quota.
"""

from typing import Any, Optional

from .base import LLMProvider, LLMConfig


class GroqProvider(LLMProvider):
    """Chat completions through the official `groq` SDK."""

    DEFAULT_MODEL = "llama-3.3-70b-versatile"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        timeout: int = 30,
    ):
        super().__init__(LLMConfig(
            provider_name="groq",
            model=model,
            api_key=api_key,
            timeout=timeout,
        ))
        self._init_client()

    def _create_client(self) -> Any:
        from groq import Groq

        return Groq(api_key=self.config.api_key, timeout=self.config.timeout)

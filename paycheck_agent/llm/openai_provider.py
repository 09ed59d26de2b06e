"""
OpenAI provider (primary conversation model).
"""

from typing import Any, Optional

from .base import LLMProvider, LLMConfig


class OpenAIProvider(LLMProvider):
    """Chat completions through the official `openai` SDK."""

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        timeout: int = 30,
    ):
        self.base_url = base_url
        super().__init__(LLMConfig(
            provider_name="openai",
            model=model,
            api_key=api_key,
            timeout=timeout,
        ))
        self._init_client()

    def _create_client(self) -> Any:
        from openai import OpenAI

        client_kwargs = {"api_key": self.config.api_key, "timeout": self.config.timeout}
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        return OpenAI(**client_kwargs)

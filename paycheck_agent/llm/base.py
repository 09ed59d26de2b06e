"""
Base classes for LLM providers.

Both supported backends (OpenAI and Groq) expose the same chat-completions
shape, so providers only differ in how their SDK client is created.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from enum import Enum


class ProviderStatus(str, Enum):
    """Status of an LLM provider."""
    AVAILABLE = "available"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"
    NOT_CONFIGURED = "not_configured"


@dataclass
class LLMConfig:
    """Configuration for an LLM provider."""
    provider_name: str
    model: str
    api_key: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 500
    timeout: int = 30


@dataclass
class Message:
    """A single message in a conversation."""
    role: str  # "system", "user", "assistant"
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    """Response from an LLM provider."""
    content: str
    model: str
    provider: str
    usage: Dict[str, int] = field(default_factory=dict)
    finish_reason: str = "stop"

    @property
    def tokens_used(self) -> int:
        return self.usage.get("total_tokens", 0)


RATE_LIMIT_MARKERS = ("rate_limit", "rate limit", "429", "insufficient_quota", "quota")


def is_rate_limit_error(error: Exception) -> bool:
    text = str(error).lower()
    return any(marker in text for marker in RATE_LIMIT_MARKERS)


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Subclasses create `self._client`, an SDK object with an OpenAI-compatible
    `chat.completions.create()`.
    """

    def __init__(self, config: LLMConfig):
        self.config = config
        self._client = None
        self._status = ProviderStatus.NOT_CONFIGURED

    @property
    def name(self) -> str:
        return self.config.provider_name

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def status(self) -> ProviderStatus:
        return self._status

    def mark_available(self):
        self._status = ProviderStatus.AVAILABLE

    def mark_rate_limited(self):
        self._status = ProviderStatus.RATE_LIMITED

    @abstractmethod
    def _create_client(self) -> Any:
        """Build the SDK client. Only called when an API key is present."""

    def _init_client(self):
        if not self.config.api_key:
            self._status = ProviderStatus.NOT_CONFIGURED
            return
        try:
            self._client = self._create_client()
            self._status = ProviderStatus.AVAILABLE
        except Exception as e:
            print(f"  [LLM] Failed to initialize {self.name} client: {e}")
            self._client = None
            self._status = ProviderStatus.ERROR

    def is_available(self) -> bool:
        return self._client is not None and self._status != ProviderStatus.ERROR

    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: Conversation so far, system prompt first
            temperature: Override default temperature
            max_tokens: Override default max tokens
            json_mode: Ask the model for a single JSON object

        Returns:
            LLMResponse with the model's reply
        """
        if self._client is None:
            raise RuntimeError(f"{self.name} provider is not configured")

        request: Dict[str, Any] = {
            "model": self.config.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": self.config.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            response = self._client.chat.completions.create(**request)
        except Exception as e:
            if is_rate_limit_error(e):
                self._status = ProviderStatus.RATE_LIMITED
            else:
                self._status = ProviderStatus.ERROR
            raise

        self._status = ProviderStatus.AVAILABLE
        choice = response.choices[0]
        usage = getattr(response, "usage", None)
        return LLMResponse(
            content=choice.message.content or "",
            model=getattr(response, "model", self.config.model),
            provider=self.name,
            usage={
                "prompt_tokens": getattr(usage, "prompt_tokens", 0) or 0,
                "completion_tokens": getattr(usage, "completion_tokens", 0) or 0,
                "total_tokens": getattr(usage, "total_tokens", 0) or 0,
            },
            finish_reason=choice.finish_reason or "stop",
        )

    def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> LLMResponse:
        """Single prompt with an optional system prompt."""
        messages = []
        if system_prompt:
            messages.append(Message(role="system", content=system_prompt))
        messages.append(Message(role="user", content=prompt))
        return self.chat(messages, **kwargs)

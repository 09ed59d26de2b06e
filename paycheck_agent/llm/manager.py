"""
LLM Manager - Unified interface over the configured chat providers.

Handles provider selection, failover, and rate limit management.
"""

import time
from typing import Optional, List, Dict, Any
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ..config import Settings, get_settings
from .base import (
    LLMProvider,
    LLMResponse,
    Message,
    ProviderStatus,
)
from .groq_provider import GroqProvider
from .openai_provider import OpenAIProvider

RATE_LIMIT_HINTS = ("rate", "limit", "429", "quota")


@dataclass
class ProviderUsage:
    """Track usage for rate limit management."""
    requests: int = 0
    tokens: int = 0
    last_request: Optional[datetime] = None
    rate_limit_reset: Optional[datetime] = None
    errors: int = 0
    last_error: Optional[str] = None


@dataclass
class LLMManagerConfig:
    """Configuration for the LLM Manager."""
    provider_priority: List[str] = field(default_factory=lambda: ["openai", "groq"])
    auto_fallback: bool = True
    max_retries: int = 2
    rate_limit_cooldown: timedelta = timedelta(hours=1)


class LLMManager:
    """
    Picks a provider by priority and fails over between them.

    Usage:
        manager = LLMManager.from_settings(get_settings())
        response = manager.chat([Message(role="user", content="Hello")])

    Providers without an API key are never registered. A rate-limited
    provider is skipped for an hour, then retried.
    """

    def __init__(
        self,
        providers: Optional[List[LLMProvider]] = None,
        config: Optional[LLMManagerConfig] = None,
    ):
        self.config = config or LLMManagerConfig()
        self._providers: Dict[str, LLMProvider] = {}
        self._usage: Dict[str, ProviderUsage] = {}
        self._current_provider: Optional[str] = None

        for provider in providers or []:
            self.register(provider)
        self._select_provider()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "LLMManager":
        settings = settings or get_settings()
        providers: List[LLMProvider] = []
        if settings.openai_api_key:
            providers.append(OpenAIProvider(
                api_key=settings.openai_api_key, model=settings.openai_model
            ))
        if settings.groq_api_key:
            providers.append(GroqProvider(
                api_key=settings.groq_api_key, model=settings.groq_model
            ))
        return cls(providers)

    def register(self, provider: LLMProvider):
        if not provider.is_available():
            print(f"  [LLM] ⚠️ {provider.name} not available, skipping")
            return
        self._providers[provider.name] = provider
        self._usage[provider.name] = ProviderUsage()
        print(f"  [LLM] ✓ {provider.name} provider initialized ({provider.model})")

    def _select_provider(self) -> Optional[str]:
        """Select the best available provider."""
        for provider_name in self.config.provider_priority:
            provider = self._providers.get(provider_name)
            if provider is None:
                continue
            usage = self._usage.setdefault(provider_name, ProviderUsage())

            if provider.status == ProviderStatus.RATE_LIMITED:
                if usage.rate_limit_reset and datetime.now() < usage.rate_limit_reset:
                    continue
                provider.mark_available()

            self._current_provider = provider_name
            return provider_name

        self._current_provider = None
        return None

    @property
    def current_provider(self) -> Optional[LLMProvider]:
        if self._current_provider:
            return self._providers.get(self._current_provider)
        return None

    @property
    def available_providers(self) -> List[str]:
        return list(self._providers.keys())

    @property
    def is_available(self) -> bool:
        """True when any provider can take a request right now."""
        return self._select_provider() is not None

    def get_status(self) -> Dict[str, Any]:
        """Status of all registered providers."""
        status = {
            "current_provider": self._current_provider,
            "providers": {},
        }
        for name, provider in self._providers.items():
            usage = self._usage.get(name, ProviderUsage())
            status["providers"][name] = {
                "status": provider.status.value,
                "model": provider.model,
                "requests": usage.requests,
                "tokens": usage.tokens,
                "errors": usage.errors,
                "rate_limited_until": (
                    usage.rate_limit_reset.isoformat() if usage.rate_limit_reset else None
                ),
            }
        return status

    def _update_usage(self, provider_name: str, response: LLMResponse):
        usage = self._usage.setdefault(provider_name, ProviderUsage())
        usage.requests += 1
        usage.tokens += response.tokens_used
        usage.last_request = datetime.now()

    def _handle_rate_limit(self, provider_name: str):
        usage = self._usage.setdefault(provider_name, ProviderUsage())
        usage.rate_limit_reset = datetime.now() + self.config.rate_limit_cooldown
        if provider_name in self._providers:
            self._providers[provider_name].mark_rate_limited()

    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        provider: Optional[str] = None,
        _retry_count: int = 0,
    ) -> LLMResponse:
        """
        Send a chat completion request with retry and fallback.

        Raises:
            RuntimeError: If no provider is configured or all of them failed
        """
        if provider:
            if provider not in self._providers:
                raise RuntimeError(f"Provider '{provider}' not available")
            target_provider = provider
        else:
            target_provider = self._select_provider()

        if not target_provider:
            raise RuntimeError(
                "No LLM providers available. "
                "Set OPENAI_API_KEY or GROQ_API_KEY."
            )

        llm = self._providers[target_provider]

        try:
            response = llm.chat(
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=json_mode,
            )
            self._update_usage(target_provider, response)
            return response

        except Exception as e:
            error_msg = str(e).lower()
            usage = self._usage.setdefault(target_provider, ProviderUsage())
            usage.errors += 1
            usage.last_error = str(e)[:200]

            if any(hint in error_msg for hint in RATE_LIMIT_HINTS):
                self._handle_rate_limit(target_provider)
                if self.config.auto_fallback and not provider:
                    new_provider = self._select_provider()
                    if new_provider and new_provider != target_provider:
                        print(f"  [LLM] Rate limited on {target_provider}, switching to {new_provider}")
                        return self.chat(
                            messages, temperature, max_tokens, json_mode,
                            provider=new_provider,
                        )

            if _retry_count < self.config.max_retries:
                wait = (2 ** _retry_count) * 1.0  # 1s, 2s
                print(
                    f"  [LLM] Error on {target_provider}, retrying in {wait}s "
                    f"({_retry_count + 1}/{self.config.max_retries})"
                )
                time.sleep(wait)
                try:
                    return self.chat(
                        messages, temperature, max_tokens, json_mode,
                        provider=target_provider, _retry_count=_retry_count + 1,
                    )
                except Exception:
                    # Pinned calls and nested retries surface the error;
                    # only the outermost call falls back
                    if provider or not self.config.auto_fallback:
                        raise

            if self.config.auto_fallback and not provider:
                for fallback_name in self.config.provider_priority:
                    if fallback_name != target_provider and fallback_name in self._providers:
                        print(f"  [LLM] All retries failed on {target_provider}, falling back to {fallback_name}")
                        try:
                            return self.chat(
                                messages, temperature, max_tokens, json_mode,
                                provider=fallback_name,
                            )
                        except Exception as fallback_error:
                            print(f"  [LLM] ❌ Fallback {fallback_name} failed: {fallback_error}")
                            continue

            raise

    def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> LLMResponse:
        """Simple completion with a single prompt."""
        messages = []
        if system_prompt:
            messages.append(Message(role="system", content=system_prompt))
        messages.append(Message(role="user", content=prompt))
        return self.chat(messages, **kwargs)


def get_llm_manager(settings: Optional[Settings] = None) -> LLMManager:
    """Build a manager with every provider that has credentials."""
    return LLMManager.from_settings(settings)

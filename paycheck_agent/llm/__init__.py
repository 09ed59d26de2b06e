"""
LLM providers for the retirement conversation.

- OpenAI (primary)
- Groq (fallback, free tier)
"""

from .base import LLMProvider, LLMConfig, LLMResponse, Message, ProviderStatus
from .openai_provider import OpenAIProvider
from .groq_provider import GroqProvider
from .manager import LLMManager, LLMManagerConfig, get_llm_manager

__all__ = [
    "LLMProvider",
    "LLMConfig",
    "LLMResponse",
    "Message",
    "ProviderStatus",
    "OpenAIProvider",
    "GroqProvider",
    "LLMManager",
    "LLMManagerConfig",
    "get_llm_manager",
]

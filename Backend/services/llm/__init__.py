"""
Model providers.

The pipeline only depends on ChatProvider.complete(); vendor selection
happens once at startup from LLM_PROVIDER.
"""

from __future__ import annotations

from app.config import LLM_PROVIDERS, Settings

from .anthropic_provider import AnthropicChatProvider
from .base import ChatProvider, extract_json
from .openai_provider import OpenAIChatProvider


def build_chat_provider(settings: Settings) -> ChatProvider:
    provider = (settings.LLM_PROVIDER or "").strip().lower()
    if provider == "openai":
        if not settings.OPENAI_API_KEY:
            raise RuntimeError("OPENAI_API_KEY is missing but LLM_PROVIDER=openai")
        return OpenAIChatProvider(
            settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            timeout_s=settings.LLM_TIMEOUT_S,
        )
    if provider == "anthropic":
        if not settings.ANTHROPIC_API_KEY:
            raise RuntimeError("ANTHROPIC_API_KEY is missing but LLM_PROVIDER=anthropic")
        return AnthropicChatProvider(
            settings.ANTHROPIC_API_KEY,
            model=settings.ANTHROPIC_MODEL,
            timeout_s=settings.LLM_TIMEOUT_S,
        )
    raise ValueError(
        f"Unknown LLM_PROVIDER '{settings.LLM_PROVIDER}'. Expected one of: {', '.join(LLM_PROVIDERS)}"
    )


def cluster_model_for(settings: Settings) -> str:
    """Model used for the clustering and synthesis passes."""
    if (settings.LLM_PROVIDER or "").strip().lower() == "anthropic":
        return settings.ANTHROPIC_MODEL
    return settings.OPENAI_CLUSTER_MODEL


__all__ = [
    "ChatProvider",
    "OpenAIChatProvider",
    "AnthropicChatProvider",
    "build_chat_provider",
    "cluster_model_for",
    "extract_json",
]

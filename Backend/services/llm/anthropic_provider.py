# services/llm/anthropic_provider.py
from __future__ import annotations

from typing import Optional

from anthropic import AnthropicError, AsyncAnthropic

from app.core.logging import get_logger
from services.errors import ModelError

logger = get_logger()

MAX_TOKENS = 1024


class AnthropicChatProvider:
    def __init__(
        self,
        api_key: str,
        *,
        model: str = "claude-haiku-4-5",
        timeout_s: float = 60.0,
        max_tokens: int = MAX_TOKENS,
        client: Optional[AsyncAnthropic] = None,
    ) -> None:
        self.model_name = model
        self.timeout_s = timeout_s
        self.max_tokens = max_tokens
        self.client = client or AsyncAnthropic(api_key=api_key)

    async def complete(self, system: str, user: str, *, model: Optional[str] = None) -> str:
        chosen = model or self.model_name
        try:
            message = await self.client.messages.create(
                model=chosen,
                max_tokens=self.max_tokens,
                system=system,
                messages=[{"role": "user", "content": user}],
                timeout=self.timeout_s,
            )
        except AnthropicError as exc:
            raise ModelError(f"anthropic API error: {exc}", {"model": chosen}) from exc

        texts = [block.text for block in message.content if getattr(block, "type", "") == "text"]
        if not texts:
            raise ModelError("no response from anthropic", {"model": chosen})

        logger.debug(
            "llm_completion",
            provider="anthropic",
            model=chosen,
            output_tokens=getattr(message.usage, "output_tokens", None),
        )
        return texts[0]

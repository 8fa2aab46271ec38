# services/llm/openai_provider.py
from __future__ import annotations

from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from app.core.logging import get_logger
from services.errors import ModelError

logger = get_logger()


class OpenAIChatProvider:
    """
    Chat completions with JSON output forced via response_format.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gpt-4o-mini",
        timeout_s: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model_name = model
        self.timeout_s = timeout_s
        self.client = client or AsyncOpenAI(api_key=api_key)

    async def complete(self, system: str, user: str, *, model: Optional[str] = None) -> str:
        chosen = model or self.model_name
        try:
            completion = await self.client.chat.completions.create(
                model=chosen,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=0.2,
                response_format={"type": "json_object"},
                timeout=self.timeout_s,
            )
        except OpenAIError as exc:
            raise ModelError(f"openai API error: {exc}", {"model": chosen}) from exc

        if not completion.choices:
            raise ModelError("no response from openai", {"model": chosen})

        usage = getattr(completion, "usage", None)
        logger.debug(
            "llm_completion",
            provider="openai",
            model=chosen,
            total_tokens=getattr(usage, "total_tokens", None),
        )
        return completion.choices[0].message.content or ""

from __future__ import annotations

import json

from pydantic import BaseModel, Field, ValidationError

from app.core.logging import get_logger
from services.errors import ModelError
from services.llm import ChatProvider, extract_json
from services.llm.prompts import NORMALIZE_SYSTEM_PROMPT, PROMPT_VERSION

logger = get_logger()


class NormalizationResponse(BaseModel):
    headline: str = Field(..., min_length=1)
    summary: str
    category: str
    sentiment_score: int = Field(..., ge=1, le=10)


class NormalizationResult(BaseModel):
    headline: str
    detail: str
    category: str
    sentiment_score: int = Field(..., ge=1, le=10)
    prompt_version: str
    model_used: str


class NewsNormalizationService:
    """Neutral-tone rewrite plus category and sentiment for one article."""

    def __init__(self, provider: ChatProvider) -> None:
        self._provider = provider

    async def transform(self, headline: str, detail: str) -> NormalizationResult:
        """
        Raises:
            ModelError: provider failure (error_type "llm_error") or a reply
                missing the expected fields (error_type "parse_error")
        """
        user_prompt = f"Headline: {headline}\nSummary: {detail}"
        raw_text = await self._provider.complete(NORMALIZE_SYSTEM_PROMPT, user_prompt)

        content = extract_json(raw_text)
        try:
            parsed = NormalizationResponse.model_validate(json.loads(content))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ModelError(
                f"failed to parse normalization response: {exc}",
                {"content": content[:500]},
                error_type="parse_error",
            ) from exc

        return NormalizationResult(
            headline=parsed.headline,
            detail=parsed.summary,
            category=parsed.category.strip(),
            sentiment_score=parsed.sentiment_score,
            prompt_version=PROMPT_VERSION,
            model_used=self._provider.model_name,
        )

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

OTHERS_CATEGORY = "Others"


class ArticleStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ArticleStatus.COMPLETED, ArticleStatus.FAILED)


class RawArticleCandidate(BaseModel):
    """
    Vendor-neutral article record produced by a source adapter.
    Not yet stored; `url` is the dedup key.
    """

    external_id: str = ""
    headline: str
    detail: str = ""
    url: str
    source: str
    publisher: str = ""
    published_at: Optional[datetime] = None
    symbols: List[str] = Field(default_factory=list)


class RawArticle(BaseModel):
    id: int
    headline: str
    detail: str = ""
    url: str
    source: str
    publisher: str = ""
    published_at: Optional[datetime] = None
    fetched_at: Optional[datetime] = None
    external_id: str = ""
    status: ArticleStatus = ArticleStatus.PENDING


class Category(BaseModel):
    id: int
    name: str


class NormalizedArticle(BaseModel):
    """Neutral rewrite of one RawArticle; written once, never updated."""

    original_id: int
    headline: str
    detail: str
    category_id: int
    sentiment_score: int = Field(..., ge=1, le=10)
    prompt_version: str
    model_used: str
    transformed_at: datetime
    id: Optional[int] = None

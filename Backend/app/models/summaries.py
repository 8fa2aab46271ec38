from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SummaryArticle(BaseModel):
    """
    Article as handed to the digest engine. Position in the batch list is
    what the clustering pass refers to with `article_indices`.
    """

    id: int
    headline: str
    detail: str = ""
    publisher: str = ""
    published_at: Optional[datetime] = None
    symbols: List[str] = Field(default_factory=list)


class StoryCluster(BaseModel):
    topic: str = ""
    article_indices: List[int] = Field(default_factory=list)
    importance_reason: str = ""


class StorySummary(BaseModel):
    headline: str
    summary: str
    angles: List[str] = Field(default_factory=list)
    tickers: List[str] = Field(default_factory=list)
    publishers: List[str] = Field(default_factory=list)
    time_range: str = ""


class DigestResult(BaseModel):
    paragraph: str
    bullets: List[str] = Field(default_factory=list)
    model_used: str


class ClusterDigestResult(BaseModel):
    stories: List[StorySummary] = Field(default_factory=list)
    model_used: str


class NewsSummary(BaseModel):
    paragraph: str = ""
    bullets: List[str] = Field(default_factory=list)
    article_count: int
    from_article_id: int
    to_article_id: int
    model_used: str
    id: Optional[int] = None
    created_at: Optional[datetime] = None


class NewsStory(BaseModel):
    rank: int = Field(..., ge=1)
    headline: str
    summary: str
    angles: List[str] = Field(default_factory=list)
    tickers: List[str] = Field(default_factory=list)
    publishers: List[str] = Field(default_factory=list)
    time_range: str = ""
    summary_id: Optional[int] = None
    id: Optional[int] = None

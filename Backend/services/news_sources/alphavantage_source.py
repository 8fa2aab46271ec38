# Backend/services/news_sources/alphavantage_source.py
"""
Alpha Vantage NEWS_SENTIMENT adapter.
"""

from __future__ import annotations

import hashlib
from typing import Any, List

from app.core.logging import get_logger
from app.models.articles import RawArticleCandidate
from services.errors import SourceError

from .base import NewsSourceAdapter, parse_formatted_ts

logger = get_logger()

BASE_URL = "https://www.alphavantage.co/query"
TIME_FORMAT = "%Y%m%dT%H%M%S"


def generate_external_id(url: str) -> str:
    """The feed carries no id; derive a stable one from the URL."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


class AlphaVantageSource(NewsSourceAdapter):
    name = "AlphaVantage"

    async def fetch(self, limit: int) -> List[RawArticleCandidate]:
        data = await self._get_json(
            BASE_URL,
            {
                "function": "NEWS_SENTIMENT",
                "limit": int(limit),
                "sort": "LATEST",
                "apikey": self.api_key,
            },
        )
        if not isinstance(data, dict):
            raise SourceError(f"{self.name} returned an unexpected payload", {"source": self.name})
        if "feed" not in data:
            # Rate limit and key errors come back as 200 with a note instead of a feed
            note = data.get("Note") or data.get("Information") or data.get("Error Message")
            raise SourceError(f"{self.name} returned no feed: {note}", {"source": self.name})

        articles: List[RawArticleCandidate] = []
        for item in _as_list(data.get("feed")):
            if not isinstance(item, dict):
                continue
            url = item.get("url")
            url = url.strip() if isinstance(url, str) else ""
            symbols = [
                ts.get("ticker")
                for ts in _as_list(item.get("ticker_sentiment"))
                if isinstance(ts, dict) and isinstance(ts.get("ticker"), str)
            ]
            candidate = self._candidate(
                external_id=generate_external_id(url) if url else "",
                headline=item.get("title") or "",
                detail=item.get("summary") or "",
                url=url,
                publisher=item.get("source") or "",
                published_at=parse_formatted_ts(item.get("time_published"), TIME_FORMAT),
                symbols=symbols,
            )
            if candidate is not None:
                articles.append(candidate)
        return articles[:limit]

# Backend/services/news_sources/finnhub_source.py
"""
Finnhub market news adapter.
Reference: https://finnhub.io/docs/api/market-news
"""

from __future__ import annotations

from typing import List

from app.models.articles import RawArticleCandidate
from services.errors import SourceError

from .base import NewsSourceAdapter, parse_unix_ts

BASE_URL = "https://finnhub.io/api/v1"


class FinnhubSource(NewsSourceAdapter):
    name = "FinnHub"

    def __init__(self, *args, category: str = "general", **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.category = category

    async def fetch(self, limit: int) -> List[RawArticleCandidate]:
        data = await self._get_json(
            f"{BASE_URL}/news",
            {"category": self.category, "token": self.api_key},
        )
        if not isinstance(data, list):
            raise SourceError(f"{self.name} returned an unexpected payload", {"source": self.name})

        # Finnhub item: {"category", "datetime", "headline", "id", "image",
        #                "related": "AAPL,MSFT", "source", "summary", "url"}
        articles: List[RawArticleCandidate] = []
        for item in data:
            if len(articles) >= limit:
                break
            if not isinstance(item, dict):
                continue
            candidate = self._candidate(
                external_id=str(item.get("id") or ""),
                headline=item.get("headline") or "",
                detail=item.get("summary") or "",
                url=item.get("url"),
                publisher=item.get("source") or "",
                published_at=parse_unix_ts(item.get("datetime")),
                symbols=item.get("related"),
            )
            if candidate is not None:
                articles.append(candidate)
        return articles

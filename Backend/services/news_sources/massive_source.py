# Backend/services/news_sources/massive_source.py
"""
Massive (REST reference news feed) adapter.
"""

from __future__ import annotations

from typing import List

from app.models.articles import RawArticleCandidate
from services.errors import SourceError

from .base import NewsSourceAdapter, parse_iso_ts

BASE_URL = "https://api.massive.com/v2/reference/news"


class MassiveSource(NewsSourceAdapter):
    name = "Massive"

    async def fetch(self, limit: int) -> List[RawArticleCandidate]:
        data = await self._get_json(
            BASE_URL,
            {
                "limit": int(limit),
                "order": "desc",
                "sort": "published_utc",
                "apiKey": self.api_key,
            },
        )
        if not isinstance(data, dict):
            raise SourceError(f"{self.name} returned an unexpected payload", {"source": self.name})

        articles: List[RawArticleCandidate] = []
        results = data.get("results")
        for item in results if isinstance(results, list) else []:
            if not isinstance(item, dict):
                continue
            publisher = item.get("publisher") or {}
            candidate = self._candidate(
                external_id=str(item.get("id") or ""),
                headline=item.get("title") or "",
                detail=item.get("description") or "",
                url=item.get("article_url"),
                publisher=publisher.get("name") or "" if isinstance(publisher, dict) else "",
                published_at=parse_iso_ts(item.get("published_utc")),
                symbols=item.get("tickers"),
            )
            if candidate is not None:
                articles.append(candidate)
        return articles[:limit]

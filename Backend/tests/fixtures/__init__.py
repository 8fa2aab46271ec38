# Backend/tests/fixtures/__init__.py
"""
In-memory doubles for pipeline tests.

- make_candidate()
- make_summary_article()
- FakeArticleStore / FakeSummaryStore: same method surface as the asyncpg stores
- FakeQueue: list-backed WorkQueue
- FakeProvider: scripted ChatProvider replies
"""

from __future__ import annotations

import json
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple, Union

from app.models.articles import (
    ArticleStatus,
    Category,
    NormalizedArticle,
    RawArticle,
    RawArticleCandidate,
)
from app.models.summaries import NewsStory, NewsSummary, SummaryArticle

SEEDED_CATEGORIES = [
    "Earnings",
    "Market Movement",
    "Economy",
    "Crypto",
    "Mergers & Acquisitions",
    "Policy & Regulation",
    "Company News",
    "Analysis",
    "Others",
]


def make_candidate(
    url: str = "https://example.com/a",
    headline: str = "Stocks SOAR after earnings",
    detail: str = "Shares exploded higher.",
    source: str = "FinnHub",
    symbols: Optional[List[str]] = None,
    **overrides: Any,
) -> RawArticleCandidate:
    fields: Dict[str, Any] = {
        "external_id": url.rsplit("/", 1)[-1],
        "headline": headline,
        "detail": detail,
        "url": url,
        "source": source,
        "publisher": "Reuters",
        "published_at": datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc),
        "symbols": symbols or [],
    }
    fields.update(overrides)
    return RawArticleCandidate(**fields)


def make_summary_article(idx: int, **overrides: Any) -> SummaryArticle:
    fields: Dict[str, Any] = {
        "id": 100 + idx,
        "headline": f"Headline {idx}",
        "detail": f"Detail {idx}",
        "publisher": "Reuters",
        "published_at": datetime(2025, 3, 1, 10, idx, tzinfo=timezone.utc),
        "symbols": [],
    }
    fields.update(overrides)
    return SummaryArticle(**fields)


class FakeArticleStore:
    def __init__(self, *, start_id: int = 1, categories: Sequence[str] = SEEDED_CATEGORIES) -> None:
        self._next_id = start_id
        self.articles: Dict[int, RawArticle] = {}
        self.symbols: Dict[int, List[str]] = {}
        self.categories: Dict[str, Category] = {
            name: Category(id=i, name=name) for i, name in enumerate(categories, start=1)
        }
        self.errors: Dict[int, List[Tuple[str, str]]] = {}
        self.normalized: Dict[int, NormalizedArticle] = {}
        self.status_history: List[Tuple[int, ArticleStatus]] = []
        self.fail_insert_urls: set = set()
        self.fail_commit = False
        self.stale_ids: List[int] = []

    async def insert_if_absent(self, candidate: RawArticleCandidate) -> Optional[int]:
        if candidate.url in self.fail_insert_urls:
            raise ConnectionResetError("connection lost")
        if any(a.url == candidate.url for a in self.articles.values()):
            return None
        article_id = self._next_id
        self._next_id += 1
        self.articles[article_id] = RawArticle(
            id=article_id,
            fetched_at=datetime.now(timezone.utc),
            status=ArticleStatus.PENDING,
            **candidate.model_dump(exclude={"symbols"}),
        )
        if candidate.symbols:
            self.symbols[article_id] = list(candidate.symbols)
        return article_id

    async def get_by_id(self, article_id: int) -> Optional[RawArticle]:
        article = self.articles.get(article_id)
        return article.model_copy() if article else None

    async def list_pending(self, limit: int) -> List[RawArticle]:
        pending = [a for a in self.articles.values() if a.status is ArticleStatus.PENDING]
        return pending[:limit]

    async def get_symbols_by_ids(self, article_ids: Sequence[int]) -> Dict[int, List[str]]:
        return {i: list(self.symbols[i]) for i in article_ids if i in self.symbols}

    async def get_category_by_name(self, name: str) -> Optional[Category]:
        return self.categories.get(name)

    async def get_attempt_count(self, article_id: int) -> int:
        return len(self.errors.get(article_id, []))

    async def append_error(self, article_id: int, message: str, error_type: str) -> None:
        self.errors.setdefault(article_id, []).append((message, error_type))

    async def update_status(self, article_id: int, status: ArticleStatus) -> bool:
        article = self.articles.get(article_id)
        if article is None or article.status.is_terminal:
            return False
        article.status = ArticleStatus(status)
        self.status_history.append((article_id, article.status))
        return True

    async def mark_processing(self, article_id: int) -> bool:
        return await self.update_status(article_id, ArticleStatus.PROCESSING)

    async def save_normalized_and_complete(self, article: NormalizedArticle) -> bool:
        if self.fail_commit:
            raise ConnectionResetError("connection lost during commit")
        raw = self.articles.get(article.original_id)
        if raw is None or raw.status.is_terminal:
            return False
        raw.status = ArticleStatus.COMPLETED
        self.status_history.append((raw.id, raw.status))
        article.id = len(self.normalized) + 1
        self.normalized[article.original_id] = article
        return True

    async def reset_stale(self, older_than: datetime, limit: int) -> List[int]:
        reset = []
        for article_id in self.stale_ids[:limit]:
            article = self.articles.get(article_id)
            if article is not None and not article.status.is_terminal:
                article.status = ArticleStatus.PENDING
                reset.append(article_id)
        return sorted(reset)

    def status_of(self, article_id: int) -> ArticleStatus:
        return self.articles[article_id].status


class FakeSummaryStore:
    def __init__(self, article_store: FakeArticleStore) -> None:
        self._articles = article_store
        self.summaries: List[NewsSummary] = []
        self.stories: Dict[int, List[NewsStory]] = {}

    async def get_last_to_article_id(self) -> int:
        return max((s.to_article_id for s in self.summaries), default=0)

    async def get_articles_for_summary(self, after_id: int, limit: Optional[int] = None) -> List[RawArticle]:
        batch = [self._articles.articles[i] for i in sorted(self._articles.articles) if i > after_id]
        return batch[:limit] if limit is not None else batch

    async def save_summary_with_stories(
        self,
        summary: NewsSummary,
        stories: Sequence[NewsStory] = (),
    ) -> int:
        summary.id = len(self.summaries) + 1
        for story in stories:
            story.summary_id = summary.id
        self.summaries.append(summary)
        self.stories[summary.id] = list(stories)
        return summary.id


class FakeQueue:
    def __init__(self, items: Sequence[Union[int, str]] = ()) -> None:
        self.items: Deque[str] = deque(str(i) for i in items)
        self.enqueued: List[str] = []
        self.fail_enqueue = False
        self.waits: List[float] = []

    async def enqueue(self, article_id: Union[int, str]) -> None:
        if self.fail_enqueue:
            raise ConnectionResetError("queue unavailable")
        self.items.append(str(article_id))
        self.enqueued.append(str(article_id))

    async def dequeue(self, timeout_s: float) -> Optional[str]:
        self.waits.append(timeout_s)
        return self.items.popleft() if self.items else None

    async def length(self) -> int:
        return len(self.items)


class FakeProvider:
    """Returns scripted replies in order; an Exception entry is raised instead."""

    def __init__(self, replies: Sequence[Union[str, dict, Exception]], model_name: str = "fake-model") -> None:
        self._replies = list(replies)
        self.model_name = model_name
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, system: str, user: str, *, model: Optional[str] = None) -> str:
        self.calls.append({"system": system, "user": user, "model": model})
        reply = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            return json.dumps(reply)
        return reply

from __future__ import annotations

import json
from typing import Any, List, Mapping, Optional, Sequence

import asyncpg

from app.models.articles import RawArticle
from app.models.summaries import NewsStory, NewsSummary
from services.article_store import ARTICLE_SELECT_COLS, row_to_raw_article
from services.db_service import (
    execute_with_conn,
    fetch_with_conn,
    fetchval_with_conn,
    run_in_transaction,
)
from services.errors import StoreError


def _json_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = json.loads(value)
    return [str(v) for v in value]


def _row_to_summary(row: Mapping[str, Any]) -> NewsSummary:
    rec = dict(row)
    return NewsSummary(
        id=int(rec["id"]),
        paragraph=rec.get("paragraph") or "",
        bullets=_json_list(rec.get("bullets")),
        article_count=int(rec["article_count"]),
        from_article_id=int(rec["from_article_id"]),
        to_article_id=int(rec["to_article_id"]),
        model_used=rec.get("model_used") or "",
        created_at=rec.get("created_at"),
    )


def _row_to_story(row: Mapping[str, Any]) -> NewsStory:
    rec = dict(row)
    return NewsStory(
        id=int(rec["id"]),
        summary_id=int(rec["summary_id"]),
        rank=int(rec["rank"]),
        headline=rec.get("headline") or "",
        summary=rec.get("summary") or "",
        angles=_json_list(rec.get("angles")),
        tickers=_json_list(rec.get("tickers")),
        publishers=_json_list(rec.get("publishers")),
        time_range=rec.get("time_range") or "",
    )


class SummaryStore:
    """Digest windows (news_summary) and their ranked stories (news_story)."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def get_last_to_article_id(self) -> int:
        async with self._pool.acquire() as conn:
            value = await fetchval_with_conn(
                conn,
                "SELECT COALESCE(MAX(to_article_id), 0) FROM news_summary",
            )
        return int(value or 0)

    async def get_articles_for_summary(
        self,
        after_id: int,
        limit: Optional[int] = None,
    ) -> List[RawArticle]:
        """Articles with id > after_id, ascending by id."""
        async with self._pool.acquire() as conn:
            rows = await fetch_with_conn(
                conn,
                f"""
                SELECT {ARTICLE_SELECT_COLS}
                FROM original_article
                WHERE id > $1
                ORDER BY id ASC
                LIMIT $2
                """,
                int(after_id),
                int(limit) if limit is not None else None,
            )
        return [row_to_raw_article(r) for r in rows or []]

    async def save_summary_with_stories(
        self,
        summary: NewsSummary,
        stories: Sequence[NewsStory] = (),
    ) -> int:
        """
        Persist one summary and its ranked stories in a single transaction.
        """
        async with run_in_transaction(self._pool) as conn:
            summary_id = await fetchval_with_conn(
                conn,
                """
                INSERT INTO news_summary (
                    paragraph, bullets, article_count,
                    from_article_id, to_article_id, model_used
                )
                VALUES ($1, CAST($2 AS JSONB), $3, $4, $5, $6)
                RETURNING id
                """,
                summary.paragraph,
                json.dumps(summary.bullets, ensure_ascii=False),
                int(summary.article_count),
                int(summary.from_article_id),
                int(summary.to_article_id),
                summary.model_used,
            )
            if summary_id is None:
                raise StoreError("news_summary insert returned no id")

            for story in stories:
                await execute_with_conn(
                    conn,
                    """
                    INSERT INTO news_story (
                        summary_id, rank, headline, summary,
                        angles, tickers, publishers, time_range
                    )
                    VALUES (
                        $1, $2, $3, $4,
                        CAST($5 AS JSONB), CAST($6 AS JSONB), CAST($7 AS JSONB), $8
                    )
                    """,
                    int(summary_id),
                    int(story.rank),
                    story.headline,
                    story.summary,
                    json.dumps(story.angles, ensure_ascii=False),
                    json.dumps(story.tickers, ensure_ascii=False),
                    json.dumps(story.publishers, ensure_ascii=False),
                    story.time_range,
                )

        summary.id = int(summary_id)
        for story in stories:
            story.summary_id = summary.id
        return summary.id

    async def list_summaries(self, limit: int = 10) -> List[NewsSummary]:
        async with self._pool.acquire() as conn:
            rows = await fetch_with_conn(
                conn,
                """
                SELECT id, paragraph, bullets, article_count, from_article_id,
                       to_article_id, model_used, created_at
                FROM news_summary
                ORDER BY id DESC
                LIMIT $1
                """,
                max(0, int(limit)),
            )
        return [_row_to_summary(r) for r in rows or []]

    async def get_stories(self, summary_id: int) -> List[NewsStory]:
        async with self._pool.acquire() as conn:
            rows = await fetch_with_conn(
                conn,
                """
                SELECT id, summary_id, rank, headline, summary,
                       angles, tickers, publishers, time_range
                FROM news_story
                WHERE summary_id = $1
                ORDER BY rank ASC
                """,
                int(summary_id),
            )
        return [_row_to_story(r) for r in rows or []]

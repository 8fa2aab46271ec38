"""
Article Store - durable storage for raw articles, symbols, categories,
neutral rewrites and the per-article processing error ledger.

Every multi-row mutation runs inside a single transaction so concurrent
transform workers can never both complete the same article.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

import asyncpg

from app.core.logging import get_logger
from app.models.articles import (
    ArticleStatus,
    Category,
    NormalizedArticle,
    RawArticle,
    RawArticleCandidate,
)
from services.db_service import (
    affected_rows,
    execute_with_conn,
    fetch_with_conn,
    fetchrow_with_conn,
    fetchval_with_conn,
    run_in_transaction,
)

logger = get_logger()

ARTICLE_SELECT_COLS = """
    id, headline, detail, url, source, publisher, published_at,
    fetched_at, external_id, status
"""

# Statuses an article may still move out of; completed/failed never regress.
_OPEN_STATUSES = [ArticleStatus.PENDING.value, ArticleStatus.PROCESSING.value]


def row_to_raw_article(row: Mapping[str, Any]) -> RawArticle:
    rec = dict(row)
    return RawArticle(
        id=int(rec["id"]),
        headline=rec.get("headline") or "",
        detail=rec.get("detail") or "",
        url=rec["url"],
        source=rec.get("source") or "",
        publisher=rec.get("publisher") or "",
        published_at=rec.get("published_at"),
        fetched_at=rec.get("fetched_at"),
        external_id=rec.get("external_id") or "",
        status=ArticleStatus(rec.get("status") or ArticleStatus.PENDING.value),
    )


class ArticleStore:
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    async def insert_if_absent(self, candidate: RawArticleCandidate) -> Optional[int]:
        """
        Insert a new pending article unless its URL is already stored.

        Returns the new article id, or None when the URL was a duplicate.
        Symbols are written in the same transaction, on the insert path only.
        """
        async with run_in_transaction(self._pool) as conn:
            article_id = await fetchval_with_conn(
                conn,
                """
                INSERT INTO original_article (
                    headline, detail, url, source, publisher,
                    published_at, external_id, status
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                ON CONFLICT (url) DO NOTHING
                RETURNING id
                """,
                candidate.headline,
                candidate.detail,
                candidate.url,
                candidate.source,
                candidate.publisher,
                candidate.published_at,
                candidate.external_id,
                ArticleStatus.PENDING.value,
            )
            if article_id is None:
                return None

            symbols = [s.strip() for s in candidate.symbols if s and s.strip()]
            if symbols:
                await execute_with_conn(
                    conn,
                    """
                    INSERT INTO article_symbol (article_id, symbol)
                    SELECT $1, unnest($2::text[])
                    """,
                    int(article_id),
                    symbols,
                )
            return int(article_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_by_id(self, article_id: int) -> Optional[RawArticle]:
        async with self._pool.acquire() as conn:
            row = await fetchrow_with_conn(
                conn,
                f"SELECT {ARTICLE_SELECT_COLS} FROM original_article WHERE id = $1",
                int(article_id),
            )
        return row_to_raw_article(row) if row else None

    async def list_pending(self, limit: int) -> List[RawArticle]:
        async with self._pool.acquire() as conn:
            rows = await fetch_with_conn(
                conn,
                f"""
                SELECT {ARTICLE_SELECT_COLS}
                FROM original_article
                WHERE status = $1
                ORDER BY fetched_at ASC
                LIMIT $2
                """,
                ArticleStatus.PENDING.value,
                max(0, int(limit)),
            )
        return [row_to_raw_article(r) for r in rows or []]

    async def get_symbols_by_ids(self, article_ids: Sequence[int]) -> Dict[int, List[str]]:
        if not article_ids:
            return {}
        async with self._pool.acquire() as conn:
            rows = await fetch_with_conn(
                conn,
                """
                SELECT article_id, symbol
                FROM article_symbol
                WHERE article_id = ANY($1::bigint[])
                ORDER BY id ASC
                """,
                [int(i) for i in article_ids],
            )
        result: Dict[int, List[str]] = {}
        for row in rows or []:
            result.setdefault(int(row["article_id"]), []).append(row["symbol"])
        return result

    async def get_category_by_name(self, name: str) -> Optional[Category]:
        async with self._pool.acquire() as conn:
            row = await fetchrow_with_conn(
                conn,
                "SELECT id, name FROM category WHERE name = $1",
                name,
            )
        if not row:
            return None
        return Category(id=int(row["id"]), name=row["name"])

    # ------------------------------------------------------------------
    # Retry ledger
    # ------------------------------------------------------------------
    async def get_attempt_count(self, article_id: int) -> int:
        async with self._pool.acquire() as conn:
            count = await fetchval_with_conn(
                conn,
                "SELECT COUNT(*) FROM processing_error WHERE article_id = $1",
                int(article_id),
            )
        return int(count or 0)

    async def append_error(self, article_id: int, message: str, error_type: str) -> None:
        async with self._pool.acquire() as conn:
            await execute_with_conn(
                conn,
                """
                INSERT INTO processing_error (article_id, error_message, error_type)
                VALUES ($1, $2, $3)
                """,
                int(article_id),
                message[:2000],
                error_type,
            )

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------
    async def update_status(self, article_id: int, status: ArticleStatus) -> bool:
        """
        Move an open (pending/processing) article to `status`.

        Returns False when the article is missing or already terminal.
        """
        async with self._pool.acquire() as conn:
            result = await execute_with_conn(
                conn,
                """
                UPDATE original_article
                SET status = $2, updated_at = NOW()
                WHERE id = $1
                  AND status = ANY($3::text[])
                """,
                int(article_id),
                ArticleStatus(status).value,
                _OPEN_STATUSES,
            )
        return affected_rows(result) > 0

    async def mark_processing(self, article_id: int) -> bool:
        return await self.update_status(article_id, ArticleStatus.PROCESSING)

    async def save_normalized_and_complete(self, article: NormalizedArticle) -> bool:
        """
        Insert the neutral rewrite and flip the original to completed, atomically.

        The status flip is conditional on the article still being open, so a
        redelivered id that another worker already completed inserts nothing
        and returns False.
        """
        async with run_in_transaction(self._pool) as conn:
            result = await execute_with_conn(
                conn,
                """
                UPDATE original_article
                SET status = $2, updated_at = NOW()
                WHERE id = $1
                  AND status = ANY($3::text[])
                """,
                int(article.original_id),
                ArticleStatus.COMPLETED.value,
                _OPEN_STATUSES,
            )
            if affected_rows(result) == 0:
                return False

            new_id = await fetchval_with_conn(
                conn,
                """
                INSERT INTO transformed_article (
                    headline, detail, original_id, category_id,
                    sentiment_score, prompt_version, model_used, transformed_at
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                RETURNING id
                """,
                article.headline,
                article.detail,
                int(article.original_id),
                int(article.category_id),
                int(article.sentiment_score),
                article.prompt_version,
                article.model_used,
                article.transformed_at,
            )
            article.id = int(new_id)
            return True

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------
    async def reset_stale(self, older_than: datetime, limit: int) -> List[int]:
        """
        Reset open articles untouched since `older_than` back to pending and
        return their ids. Rows whose id is still waiting in transform_queue
        are left alone so repeated sweeps never stack duplicate deliveries.
        Uses FOR UPDATE SKIP LOCKED so concurrent sweeps never claim the same
        row twice.
        """
        async with run_in_transaction(self._pool) as conn:
            rows = await fetch_with_conn(
                conn,
                """
                WITH stale AS (
                    SELECT a.id
                    FROM original_article AS a
                    WHERE a.status = ANY($1::text[])
                      AND a.updated_at < $2
                      AND NOT EXISTS (
                          SELECT 1 FROM transform_queue AS q
                          WHERE q.payload = a.id::text
                      )
                    ORDER BY a.id ASC
                    LIMIT $3
                    FOR UPDATE OF a SKIP LOCKED
                )
                UPDATE original_article AS o
                SET status = $4, updated_at = NOW()
                FROM stale s
                WHERE o.id = s.id
                RETURNING o.id
                """,
                _OPEN_STATUSES,
                older_than,
                max(0, int(limit)),
                ArticleStatus.PENDING.value,
            )
        return sorted(int(r["id"]) for r in rows or [])

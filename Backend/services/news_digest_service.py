from __future__ import annotations

from typing import List, Optional, Tuple

from app.core.logging import get_logger
from app.models.articles import RawArticle
from app.models.summaries import NewsStory, NewsSummary, SummaryArticle
from services.article_store import ArticleStore
from services.news_clustering_service import NewsClusteringService
from services.summary_store import SummaryStore

logger = get_logger()


class NewsDigestService:
    """
    Builds digests over the articles stored since the last digest.

    Windows are contiguous: each run reads ids greater than the previous
    to_article_id, ascending, and records [first id, last id] of its batch.
    """

    def __init__(
        self,
        article_store: ArticleStore,
        summary_store: SummaryStore,
        clustering: NewsClusteringService,
    ) -> None:
        self._articles = article_store
        self._summaries = summary_store
        self._clustering = clustering

    async def _next_batch(
        self, limit: Optional[int]
    ) -> Tuple[List[RawArticle], List[SummaryArticle]]:
        last_to_id = await self._summaries.get_last_to_article_id()
        batch = await self._summaries.get_articles_for_summary(last_to_id, limit)
        if not batch:
            logger.info("news_digest_no_new_articles", after_id=last_to_id)
            return [], []

        symbols = await self._articles.get_symbols_by_ids([a.id for a in batch])
        inputs = [
            SummaryArticle(
                id=a.id,
                headline=a.headline,
                detail=a.detail,
                publisher=a.publisher,
                published_at=a.published_at,
                symbols=symbols.get(a.id, []),
            )
            for a in batch
        ]
        logger.info(
            "news_digest_batch_selected",
            after_id=last_to_id,
            from_id=batch[0].id,
            to_id=batch[-1].id,
            count=len(batch),
        )
        return batch, inputs

    async def run_story_digest(self, limit: Optional[int] = None) -> Optional[NewsSummary]:
        """
        Cluster-and-rank digest. Returns None when there is nothing new.
        Any model failure propagates and nothing is persisted.
        """
        batch, inputs = await self._next_batch(limit)
        if not batch:
            return None

        result = await self._clustering.cluster_and_summarize(inputs)

        summary = NewsSummary(
            article_count=len(batch),
            from_article_id=batch[0].id,
            to_article_id=batch[-1].id,
            model_used=result.model_used,
        )
        stories = [
            NewsStory(rank=rank, **story.model_dump())
            for rank, story in enumerate(result.stories, start=1)
        ]
        await self._summaries.save_summary_with_stories(summary, stories)
        logger.info(
            "news_digest_saved",
            mode="stories",
            summary_id=summary.id,
            stories=len(stories),
            from_id=summary.from_article_id,
            to_id=summary.to_article_id,
        )
        return summary

    async def run_plain_digest(self, limit: Optional[int] = None) -> Optional[NewsSummary]:
        batch, inputs = await self._next_batch(limit)
        if not batch:
            return None

        result = await self._clustering.summarize(inputs)

        summary = NewsSummary(
            paragraph=result.paragraph,
            bullets=result.bullets,
            article_count=len(batch),
            from_article_id=batch[0].id,
            to_article_id=batch[-1].id,
            model_used=result.model_used,
        )
        await self._summaries.save_summary_with_stories(summary)
        logger.info(
            "news_digest_saved",
            mode="plain",
            summary_id=summary.id,
            bullets=len(summary.bullets),
            from_id=summary.from_article_id,
            to_id=summary.to_article_id,
        )
        return summary

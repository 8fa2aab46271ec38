"""
Digest engine: a single-call executive summary, and the two-pass
cluster-and-rank / per-cluster synthesis protocol that turns a batch of
articles into ranked stories.

Cluster membership is expressed as positions into the input batch. The
batch is never reordered between the two passes.
"""

from __future__ import annotations

import json
from typing import List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from app.core.logging import get_logger
from app.models.summaries import (
    ClusterDigestResult,
    DigestResult,
    StoryCluster,
    StorySummary,
    SummaryArticle,
)
from services.errors import EmptySynthesisError, ModelError
from services.llm import ChatProvider, extract_json
from services.llm.prompts import (
    CLUSTER_RANK_SYSTEM_PROMPT,
    DIGEST_SYSTEM_PROMPT,
    SYNTHESIZE_SYSTEM_PROMPT,
)

logger = get_logger()

MAX_CLUSTERS = 10
MAX_DETAIL_CHARS = 200
MIN_BULLETS, MAX_BULLETS = 3, 5

T = TypeVar("T", bound=BaseModel)


class _DigestResponse(BaseModel):
    paragraph: str
    bullets: List[str] = Field(default_factory=list)


class _ClusterResponse(BaseModel):
    clusters: List[StoryCluster] = Field(default_factory=list)


class _SynthesisResponse(BaseModel):
    stories: List[StorySummary] = Field(default_factory=list)


def truncate(value: str, max_chars: int = MAX_DETAIL_CHARS) -> str:
    if len(value) <= max_chars:
        return value
    return value[:max_chars] + "..."


def format_articles(articles: Sequence[SummaryArticle], *, truncate_detail: bool) -> str:
    parts: List[str] = []
    for i, a in enumerate(articles):
        detail = truncate(a.detail) if truncate_detail else a.detail
        published = a.published_at.strftime("%Y-%m-%d %H:%M") if a.published_at else "unknown"
        lines = [
            f"[{i}] Headline: {a.headline}",
            f"    Summary: {detail}",
            f"    Publisher: {a.publisher}",
            f"    Published: {published}",
        ]
        if a.symbols:
            lines.append(f"    Symbols: {', '.join(a.symbols)}")
        parts.append("\n".join(lines) + "\n")
    return "\n".join(parts) + "\n" if parts else ""


def gather_cluster_articles(
    articles: Sequence[SummaryArticle],
    indices: Sequence[int],
) -> List[SummaryArticle]:
    """Members of a cluster; negative or out-of-range indices are skipped."""
    return [articles[idx] for idx in indices if 0 <= idx < len(articles)]


def _parse(model: Type[T], raw_text: str, what: str) -> T:
    content = extract_json(raw_text)
    try:
        return model.model_validate(json.loads(content))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ModelError(
            f"failed to parse {what} response: {exc}",
            {"content": content[:500]},
            error_type="parse_error",
        ) from exc


class NewsClusteringService:
    def __init__(self, provider: ChatProvider, *, cluster_model: Optional[str] = None) -> None:
        self._provider = provider
        self.cluster_model = cluster_model or provider.model_name

    async def summarize(self, articles: Sequence[SummaryArticle]) -> DigestResult:
        """One paragraph plus 3-5 bullets over the whole batch."""
        user_prompt = "".join(
            f"{i}. Headline: {a.headline}\nSummary: {a.detail}\n\n"
            for i, a in enumerate(articles, start=1)
        )
        raw_text = await self._provider.complete(DIGEST_SYSTEM_PROMPT, user_prompt)
        parsed = _parse(_DigestResponse, raw_text, "digest")

        if not MIN_BULLETS <= len(parsed.bullets) <= MAX_BULLETS:
            logger.warning("digest_bullet_count_unexpected", bullets=len(parsed.bullets))

        return DigestResult(
            paragraph=parsed.paragraph,
            bullets=parsed.bullets,
            model_used=self._provider.model_name,
        )

    async def cluster_and_rank(self, articles: Sequence[SummaryArticle]) -> List[StoryCluster]:
        raw_text = await self._provider.complete(
            CLUSTER_RANK_SYSTEM_PROMPT,
            format_articles(articles, truncate_detail=True),
            model=self.cluster_model,
        )
        clusters = _parse(_ClusterResponse, raw_text, "cluster").clusters
        if len(clusters) > MAX_CLUSTERS:
            logger.warning("cluster_count_truncated", returned=len(clusters), kept=MAX_CLUSTERS)
        return clusters[:MAX_CLUSTERS]

    async def synthesize(self, articles: Sequence[SummaryArticle]) -> StorySummary:
        raw_text = await self._provider.complete(
            SYNTHESIZE_SYSTEM_PROMPT,
            format_articles(articles, truncate_detail=False),
            model=self.cluster_model,
        )
        stories = _parse(_SynthesisResponse, raw_text, "synthesis").stories
        if not stories:
            raise EmptySynthesisError("no stories in synthesis response")
        return stories[0]

    async def cluster_and_summarize(self, articles: Sequence[SummaryArticle]) -> ClusterDigestResult:
        """
        Pass 1 clusters and ranks the batch; pass 2 synthesizes one story per
        cluster. Stories keep the rank order of pass 1. Any synthesis failure
        fails the whole run.
        """
        clusters = await self.cluster_and_rank(articles)

        stories: List[StorySummary] = []
        for cluster in clusters:
            members = gather_cluster_articles(articles, cluster.article_indices)
            if len(members) != len(cluster.article_indices):
                logger.warning(
                    "cluster_indices_out_of_range",
                    topic=cluster.topic,
                    indices=cluster.article_indices,
                    batch_size=len(articles),
                )
            if not members:
                continue
            try:
                stories.append(await self.synthesize(members))
            except ModelError as exc:
                exc.details.setdefault("topic", cluster.topic)
                raise

        return ClusterDigestResult(stories=stories, model_used=self.cluster_model)

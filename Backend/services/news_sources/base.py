"""
Abstract base class for news source adapters.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

import httpx
from pydantic import ValidationError

from app.core.logging import get_logger
from app.models.articles import RawArticleCandidate
from services.errors import SourceError

logger = get_logger()

DEFAULT_SOURCE_TIMEOUT_S = 30.0


class NewsSourceAdapter(ABC):
    """
    One adapter per vendor. Maps the vendor payload into RawArticleCandidate
    records and nothing else; dedup and persistence happen downstream.
    """

    name: str = "unknown"

    def __init__(self, api_key: str, client: httpx.AsyncClient) -> None:
        self.api_key = api_key
        self._client = client

    @abstractmethod
    async def fetch(self, limit: int) -> List[RawArticleCandidate]:
        """
        Fetch up to `limit` candidate articles.

        Raises:
            SourceError: when the vendor call fails or cannot be decoded
        """

    async def _get_json(self, url: str, params: Mapping[str, Any]) -> Any:
        try:
            response = await self._client.get(url, params=dict(params))
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise SourceError(
                f"{self.name} fetch failed with HTTP {exc.response.status_code}",
                {"source": self.name, "status_code": exc.response.status_code},
            ) from exc
        except httpx.HTTPError as exc:
            raise SourceError(
                f"{self.name} fetch: {exc}",
                {"source": self.name},
            ) from exc
        except ValueError as exc:
            raise SourceError(
                f"{self.name} decode: {exc}",
                {"source": self.name},
            ) from exc

    def _candidate(self, **fields: Any) -> Optional[RawArticleCandidate]:
        """
        Build a candidate, or None for an item that cannot be stored: no URL
        (nothing to deduplicate on) or fields of the wrong type.
        """
        url = fields.get("url")
        if not isinstance(url, str) or not url.strip():
            logger.debug("news_source_item_without_url", source=self.name)
            return None
        fields["url"] = url.strip()
        fields["source"] = self.name
        fields["symbols"] = clean_symbols(fields.get("symbols"))
        try:
            return RawArticleCandidate(**fields)
        except ValidationError as exc:
            logger.warning(
                "news_source_item_malformed",
                source=self.name,
                url=fields["url"],
                error=str(exc),
            )
            return None


def clean_symbols(value: Any) -> List[str]:
    """Accept a list of tickers or a comma-separated string; drop non-string entries."""
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        return []
    return [s.strip() for s in value if isinstance(s, str) and s.strip()]


def build_http_client(timeout_s: float = DEFAULT_SOURCE_TIMEOUT_S) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=timeout_s,
        headers={"User-Agent": "zennews-fetch/1.0"},
    )


def parse_unix_ts(value: Any) -> Optional[datetime]:
    try:
        ts = int(value)
    except (TypeError, ValueError):
        return None
    if ts <= 0:
        return None
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_formatted_ts(value: Any, fmt: str) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_iso_ts(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

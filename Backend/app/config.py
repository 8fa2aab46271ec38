# app/config.py
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Backend/app/config.py → parent = Backend
ENV_FILE = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(ENV_FILE, override=False)

LLM_PROVIDERS = ("openai", "anthropic")


class Settings(BaseSettings):
    # ---- Database ----
    # Not required at class level so tests and tooling can import settings;
    # create_db_pool() fails at worker startup when it is missing.
    DATABASE_URL: Optional[str] = None
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 4
    STATEMENT_TIMEOUT_MS: int = 30_000

    # ---- Model providers ----
    LLM_PROVIDER: str = "openai"
    LLM_TIMEOUT_S: float = 60.0
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_CLUSTER_MODEL: str = "gpt-4.1-mini"
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL: str = "claude-haiku-4-5"

    # ---- News sources ----
    NEWS_SOURCES: str = "finnhub"
    NEWS_FETCH_LIMIT: int = 10
    SOURCE_TIMEOUT_S: float = 30.0
    FINNHUB_API_KEY: Optional[str] = None
    ALPHAVANTAGE_API_KEY: Optional[str] = None
    MASSIVE_API_KEY: Optional[str] = None

    # ---- Transform consumer ----
    TRANSFORM_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    TRANSFORM_RETRY_BACKOFF_S: float = 5.0
    QUEUE_WAIT_TIMEOUT_S: float = 5.0
    QUEUE_POLL_INTERVAL_S: float = 0.5

    # ---- Reconciliation sweep ----
    RECONCILE_STALE_MINUTES: int = 30

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def news_source_keys(self) -> List[str]:
        return [
            key.strip().lower()
            for key in (self.NEWS_SOURCES or "").split(",")
            if key.strip()
        ]


settings = Settings()


def require_source_key(source_key: str, cfg: Optional[Settings] = None) -> str:
    """
    Return the API key for a configured news source or fail loudly.
    """
    attr = f"{source_key.upper()}_API_KEY"
    value = getattr(cfg or settings, attr, None)
    if not value:
        raise RuntimeError(
            f"{attr} is missing but '{source_key}' is listed in NEWS_SOURCES. "
            f"Check Backend/.env (tried loading from: {ENV_FILE})."
        )
    return value

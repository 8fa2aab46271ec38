from __future__ import annotations

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base exception for the news pipeline."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SourceError(PipelineError):
    """A news source could not be fetched or decoded."""


class ModelError(PipelineError):
    """A model call failed or returned an unusable payload."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        *,
        error_type: str = "llm_error",
    ):
        super().__init__(message, details)
        self.error_type = error_type


class EmptySynthesisError(ModelError):
    """A cluster synthesis call produced no story."""


class StoreError(PipelineError):
    """Store-level invariant violation."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from pydantic import BaseModel

from extlinkcheck.models.cache import StrategyHint


class UrlCheckResult(BaseModel):
    """Uniform outcome of a single verification strategy."""

    url: str
    ok: bool
    status: int | None = None
    error: str | None = None


class ExternalUrlCheckResult(UrlCheckResult):
    """Per-URL outcome returned by the validation driver."""

    from_cache: bool = False
    hint: StrategyHint | None = None
    warning: str | None = None  # Set for soft passes that still need a human look


class CheckSummary(BaseModel):
    total: int
    from_cache: int
    checked: int
    warnings: int


class ValidationReport(BaseModel):
    results: list[ExternalUrlCheckResult]
    summary: CheckSummary


@dataclass
class CheckProgress:
    """Running totals over the URLs that need a live check."""

    total: int = 0
    checked: int = 0
    success: int = 0
    failed: int = 0
    in_progress: int = 0


ProgressCallback = Callable[[CheckProgress], None]


@dataclass
class CheckOptions:
    """Per-run overrides. ``None`` falls back to the loaded Settings."""

    cache_path: str | None = None
    max_age_days: float | None = None
    timeout_seconds: float | None = None
    concurrency: int | None = None
    playwright_concurrency: int | None = None
    force_full_check: bool = False
    on_progress: ProgressCallback | None = None

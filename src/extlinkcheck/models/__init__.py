from __future__ import annotations

from extlinkcheck.models.cache import (
    CacheEntry,
    CacheFile,
    ManualState,
    StrategyHint,
    normalize_manual_state,
)
from extlinkcheck.models.results import (
    CheckOptions,
    CheckProgress,
    CheckSummary,
    ExternalUrlCheckResult,
    ProgressCallback,
    UrlCheckResult,
    ValidationReport,
)

__all__ = [
    # cache
    "CacheEntry",
    "CacheFile",
    "ManualState",
    "StrategyHint",
    "normalize_manual_state",
    # results
    "UrlCheckResult",
    "ExternalUrlCheckResult",
    "CheckSummary",
    "ValidationReport",
    "CheckProgress",
    "CheckOptions",
    "ProgressCallback",
]

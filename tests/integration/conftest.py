"""Integration test fixtures.

The validation driver runs for real here: real cache file (under tmp_path),
real throttle and limiter, real httpx client with respx intercepting the
transport. Only the headless browser is replaced, by the scripted double
from tests/conftest.py.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from extlinkcheck.cache import save_cache
from extlinkcheck.models.cache import CacheEntry, CacheFile

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


def days_ago(days: float) -> str:
    moment = datetime.now(UTC) - timedelta(days=days)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@pytest.fixture()
def seed_cache(cache_path: Path) -> Callable[[dict[str, CacheEntry]], None]:
    """Write the given entries to the run's cache file."""

    def _seed(entries: dict[str, CacheEntry]) -> None:
        save_cache(CacheFile(entries=entries), cache_path)

    return _seed


@pytest.fixture()
def fresh() -> str:
    """lastChecked value one day old."""
    return days_ago(1)


@pytest.fixture()
def stale() -> str:
    """lastChecked value well past the default 30-day window."""
    return days_ago(45)

"""JSON external-link cache.

One JSON document maps each external URL to its last verification outcome.
Loading is fail-open: a missing, unreadable or corrupt file yields an empty
cache (logged, never raised) so a damaged cache can never block validation.
Saving rewrites the whole file through a temp file and ``os.replace``, with
keys sorted for stable diffs; a crash mid-run therefore loses only that run's
results and never leaves a torn file behind.
"""

from __future__ import annotations

import json
import os
import tempfile
from contextlib import suppress
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from extlinkcheck.config import DEFAULT_INTERNAL_DOMAINS
from extlinkcheck.errors import ErrorCode, LinkCheckError
from extlinkcheck.models.cache import CacheEntry, CacheFile, normalize_manual_state
from extlinkcheck.urls import host_matches, url_hostname

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import timedelta

__all__ = [
    "CACHE_FILE_VERSION",
    "is_cache_fresh",
    "is_internal_url",
    "is_valid_cache_entry",
    "load_cache",
    "manual_pending_urls",
    "normalize_manual_state",
    "parse_timestamp",
    "prune_cache",
    "save_cache",
    "utc_now_iso",
]

log = structlog.get_logger()

CACHE_FILE_VERSION = 1


def utc_now_iso() -> str:
    """Timestamp in the ``2024-01-31T12:00:00.000Z`` form stored in ``lastChecked``."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(raw: str) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC. None if invalid."""
    try:
        parsed = datetime.fromisoformat(raw)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def is_internal_url(url: str, internal_domains: Iterable[str]) -> bool:
    hostname = url_hostname(url)
    if hostname is None:
        return False
    return host_matches(hostname, frozenset(d.lower() for d in internal_domains))


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


def load_cache(path: str | Path) -> CacheFile:
    """Read the cache file. Never raises: any failure returns an empty cache."""
    path = Path(path)
    if not path.is_file():
        log.debug("cache_missing", path=str(path))
        return CacheFile(version=CACHE_FILE_VERSION)

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        log.warning("cache_load_failed", path=str(path), reason="unreadable", exc_info=True)
        return CacheFile(version=CACHE_FILE_VERSION)

    raw_entries = raw.get("entries") if isinstance(raw, dict) else None
    if not isinstance(raw_entries, dict):
        log.warning("cache_load_failed", path=str(path), reason="missing_entries")
        return CacheFile(version=CACHE_FILE_VERSION)

    entries: dict[str, CacheEntry] = {}
    for url, raw_entry in raw_entries.items():
        try:
            entries[url] = CacheEntry.model_validate(raw_entry)
        except ValidationError:
            log.warning("cache_entry_invalid", path=str(path), url=url)

    version = raw.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        version = CACHE_FILE_VERSION

    log.debug("cache_loaded", path=str(path), entries=len(entries))
    return CacheFile(version=version, entries=entries)


def save_cache(
    cache: CacheFile,
    path: str | Path,
    internal_domains: Iterable[str] = DEFAULT_INTERNAL_DOMAINS,
) -> None:
    """Write the cache with sorted keys, dropping the site's own URLs.

    Raises LinkCheckError(CACHE_WRITE_FAILED) if the file cannot be written.
    """
    path = Path(path)
    domains = frozenset(d.lower() for d in internal_domains)

    entries = {
        url: cache.entries[url].to_json_dict()
        for url in sorted(cache.entries)
        if not is_internal_url(url, domains)
    }
    payload = {"version": cache.version, "entries": entries}
    text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"

    tmp_path: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Unique name per writer so concurrent runs never share a temp file.
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_path = Path(tmp.name)
            tmp.write(text)
        os.replace(tmp_path, path)
    except OSError as exc:
        raise LinkCheckError(
            code=ErrorCode.CACHE_WRITE_FAILED,
            message=f"Could not write link cache {path}: {exc}",
            suggestion="Check that the cache directory exists and is writable.",
            recoverable=False,
        ) from exc
    finally:
        if tmp_path is not None:
            with suppress(OSError):
                tmp_path.unlink(missing_ok=True)

    log.info("cache_saved", path=str(path), entries=len(entries))


# ---------------------------------------------------------------------------
# Freshness
# ---------------------------------------------------------------------------


def is_cache_fresh(entry: CacheEntry, now: datetime, max_age: timedelta) -> bool:
    """True if ``entry`` was written no longer than ``max_age`` before ``now`` (inclusive)."""
    last_checked = parse_timestamp(entry.last_checked)
    if last_checked is None:
        return False
    return now - last_checked <= max_age


def is_valid_cache_entry(
    entry: CacheEntry,
    now: datetime,
    max_age: timedelta,
    expected_status: int = 200,
) -> bool:
    """True if the entry can stand in for a live check.

    Only clean passes qualify: ``ok`` with the expected status, no manual
    ``false``/``"auto"`` flag, and within the freshness window.
    """
    if not entry.ok or entry.status != expected_status:
        return False
    if entry.manual is False or entry.manual == "auto":
        return False
    return is_cache_fresh(entry, now, max_age)


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------


def prune_cache(cache: CacheFile, live_urls: Iterable[str]) -> int:
    """Drop entries whose URL is no longer referenced. Returns the number removed."""
    allowed = set(live_urls)
    stale = [url for url in cache.entries if url not in allowed]
    for url in stale:
        del cache.entries[url]
    if stale:
        log.info("cache_pruned", removed=len(stale))
    return len(stale)


def manual_pending_urls(cache: CacheFile) -> list[str]:
    """URLs whose manual flag is ``"auto"``, i.e. still waiting for a human verdict."""
    return sorted(url for url, entry in cache.entries.items() if entry.manual == "auto")

"""External link validation driver.

Takes the URLs found in content, serves what it can from the link cache,
sends the rest through the escalation ladder concurrently, and writes the
cache back once at the end. No terminal output here: the CLI decides how
to present the report and what counts as a failing run.
"""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from extlinkcheck.browser import PlaywrightChecker
from extlinkcheck.cache import is_valid_cache_entry, load_cache, save_cache, utc_now_iso
from extlinkcheck.config import CacheSettings, CheckerSettings, Settings
from extlinkcheck.escalation import check_external_url
from extlinkcheck.fetcher import FetchChecker, build_http_client
from extlinkcheck.limiter import ConcurrencyLimiter
from extlinkcheck.models.cache import CacheEntry
from extlinkcheck.models.results import (
    CheckOptions,
    CheckProgress,
    CheckSummary,
    ExternalUrlCheckResult,
    ValidationReport,
)
from extlinkcheck.state import RunContext
from extlinkcheck.throttle import HostThrottle
from extlinkcheck.urls import normalize_url

if TYPE_CHECKING:
    from collections.abc import Iterable

    import httpx

    from extlinkcheck.protocols import BrowserCheckerProtocol

log = structlog.get_logger()


def resolve_settings(
    settings: Settings, options: CheckOptions
) -> tuple[CacheSettings, CheckerSettings]:
    """Apply per-run overrides on top of Settings, re-validating the result.

    Invalid overrides (e.g. ``concurrency=0``) raise pydantic.ValidationError.
    """
    cache_overrides = {
        "path": options.cache_path,
        "max_age_days": options.max_age_days,
    }
    checker_overrides = {
        "timeout_seconds": options.timeout_seconds,
        "concurrency": options.concurrency,
        "playwright_concurrency": options.playwright_concurrency,
    }
    cache_settings = CacheSettings.model_validate(
        {
            **settings.cache.model_dump(),
            **{k: v for k, v in cache_overrides.items() if v is not None},
        }
    )
    checker_settings = CheckerSettings.model_validate(
        {
            **settings.checker.model_dump(),
            **{k: v for k, v in checker_overrides.items() if v is not None},
        }
    )
    return cache_settings, checker_settings


def _cached_result(url: str, entry: CacheEntry) -> ExternalUrlCheckResult:
    return ExternalUrlCheckResult(
        url=url,
        ok=entry.ok,
        status=entry.status,
        error=entry.error,
        from_cache=True,
        hint=entry.hint,
    )


async def validate_external_urls(
    urls: Iterable[str],
    options: CheckOptions | None = None,
    *,
    settings: Settings | None = None,
    client: httpx.AsyncClient | None = None,
    browser: BrowserCheckerProtocol | None = None,
) -> ValidationReport:
    """Validate external URLs, returning a result for every unique input URL.

    ``client`` and ``browser`` may be supplied by the caller, who then owns
    their lifecycle; otherwise they are created here and closed on return.
    """
    options = options or CheckOptions()
    settings = settings or Settings()
    cache_settings, checker_settings = resolve_settings(settings, options)

    unique_urls = list(dict.fromkeys(normalize_url(url) for url in urls))
    cache = load_cache(cache_settings.path)
    now = datetime.now(UTC)
    max_age = timedelta(days=cache_settings.max_age_days)

    results: list[ExternalUrlCheckResult] = []
    to_check: list[str] = []
    for url in unique_urls:
        cached = None if options.force_full_check else cache.entries.get(url)
        if cached is not None and is_valid_cache_entry(
            cached, now, max_age, checker_settings.expected_status
        ):
            results.append(_cached_result(url, cached))
            continue
        to_check.append(url)

    log.info(
        "validation_started",
        total=len(unique_urls),
        from_cache=len(results),
        to_check=len(to_check),
        force_full_check=options.force_full_check,
    )

    progress = CheckProgress(total=len(to_check))

    def report_progress() -> None:
        if options.on_progress is not None:
            options.on_progress(dataclasses.replace(progress))

    report_progress()

    owns_client = client is None
    http_client = client if client is not None else build_http_client(checker_settings)
    owns_browser = browser is None
    browser_checker = (
        browser if browser is not None else PlaywrightChecker.from_settings(checker_settings)
    )

    throttle = HostThrottle.from_settings(settings.throttle)
    ctx = RunContext(
        settings=checker_settings,
        fetcher=FetchChecker(http_client, throttle, checker_settings),
        browser=browser_checker,
    )
    pool = ConcurrencyLimiter(checker_settings.concurrency)

    async def check_one(url: str) -> ExternalUrlCheckResult:
        async with pool:
            return await run_ladder(url)

    async def run_ladder(url: str) -> ExternalUrlCheckResult:
        progress.in_progress += 1
        report_progress()

        outcome = await check_external_url(
            url,
            cache.entries.get(url),
            ctx,
            ignore_cached_state=options.force_full_check,
        )
        result = outcome.result
        cache.entries[url] = CacheEntry(
            status=result.status,
            ok=result.ok,
            last_checked=utc_now_iso(),
            error=result.error,
            hint=outcome.hint,
            manual=outcome.manual,
        )

        progress.in_progress = max(0, progress.in_progress - 1)
        progress.checked += 1
        if result.ok:
            progress.success += 1
        else:
            progress.failed += 1
        report_progress()

        return ExternalUrlCheckResult(
            **result.model_dump(),
            from_cache=False,
            hint=outcome.hint,
            warning=outcome.warning,
        )

    try:
        checked = await asyncio.gather(*(check_one(url) for url in to_check))
    finally:
        if owns_browser:
            await browser_checker.aclose()
        if owns_client:
            await http_client.aclose()

    if checked:
        save_cache(cache, cache_settings.path, settings.site.internal_domains)
    results.extend(checked)

    summary = CheckSummary(
        total=len(unique_urls),
        from_cache=sum(1 for r in results if r.from_cache),
        checked=sum(1 for r in results if not r.from_cache),
        warnings=sum(1 for r in results if r.warning),
    )
    log.info(
        "validation_complete",
        total=summary.total,
        from_cache=summary.from_cache,
        checked=summary.checked,
        failed=progress.failed,
        warnings=summary.warnings,
    )
    return ValidationReport(results=results, summary=summary)

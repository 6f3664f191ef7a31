"""Command-line entrypoint.

Responsibilities (and nothing more):
- Parse flags and build Settings
- Configure structlog
- Collect links from content and run the validation driver
- Keep the cache in step with content, print the report, write the summary file
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

import structlog
from pydantic import ValidationError

from extlinkcheck import __version__
from extlinkcheck.cache import load_cache, manual_pending_urls, prune_cache, save_cache, utc_now_iso
from extlinkcheck.checker import validate_external_urls
from extlinkcheck.config import Settings
from extlinkcheck.content import collect_external_links
from extlinkcheck.errors import ErrorCode, LinkCheckError
from extlinkcheck.models.results import CheckOptions, CheckProgress, ValidationReport

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

log = structlog.get_logger()

SUMMARY_SCHEMA_VERSION = 1
TOOL_NAME = "validate-external-links"

EXIT_OK = 0
EXIT_LINK_FAILURES = 1
EXIT_ERROR = 2


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr; stdout carries the report
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Arguments
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="extlinkcheck",
        description="Validate external links referenced by markdown content.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--mode",
        choices=("all", "failed"),
        default="failed",
        help="'all' re-checks every link; 'failed' (default) trusts fresh cached passes",
    )
    parser.add_argument("--all", dest="mode", action="store_const", const="all")
    parser.add_argument("--failed", dest="mode", action="store_const", const="failed")
    parser.add_argument("--content-dir", help="markdown root to scan")
    parser.add_argument("--cache-path", help="link cache JSON file")
    parser.add_argument("--max-age-days", type=float, help="cache freshness window")
    parser.add_argument("--timeout", type=float, help="per-request timeout in seconds")
    parser.add_argument("--concurrency", type=int, help="max in-flight HTTP checks")
    parser.add_argument(
        "--playwright-concurrency", type=int, help="max concurrent browser checks"
    )
    parser.add_argument(
        "--no-summary",
        action="store_true",
        help="do not write the JSON summary file",
    )
    return parser


def _settings_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Nested Settings kwargs for every flag that was given."""
    sections: dict[str, dict[str, Any]] = {
        "cache": {"path": args.cache_path, "max_age_days": args.max_age_days},
        "checker": {
            "timeout_seconds": args.timeout,
            "concurrency": args.concurrency,
            "playwright_concurrency": args.playwright_concurrency,
        },
        "site": {"content_dir": args.content_dir},
    }
    overrides: dict[str, Any] = {}
    for section, values in sections.items():
        given = {k: v for k, v in values.items() if v is not None}
        if given:
            overrides[section] = given
    return overrides


def load_settings(args: argparse.Namespace) -> Settings:
    try:
        return Settings(**_settings_overrides(args))
    except ValidationError as exc:
        raise LinkCheckError(
            code=ErrorCode.INVALID_INPUT,
            message=f"Invalid option: {exc.errors()[0]['msg']}",
            suggestion="Check the command-line flags and extlinkcheck.yaml.",
            recoverable=False,
        ) from exc


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


class ProgressReporter:
    """Render CheckProgress updates.

    On a terminal one status line is rewritten in place. Elsewhere (CI logs)
    lines are rate-limited, but the final update is always printed.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        *,
        interval_seconds: float = 0.8,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._inline = self._stream.isatty()
        self._interval = interval_seconds
        self._clock = clock
        self._last_emit: float | None = None
        self._line_open = False

    @staticmethod
    def format(progress: CheckProgress) -> str:
        return (
            f"Checking external links: {progress.checked}/{progress.total} "
            f"(ok {progress.success}, failed {progress.failed}, "
            f"in flight {progress.in_progress})"
        )

    def __call__(self, progress: CheckProgress) -> None:
        if progress.total == 0:
            return
        line = self.format(progress)
        if self._inline:
            self._stream.write(f"\r\x1b[2K{line}")
            self._stream.flush()
            self._line_open = True
            return

        now = self._clock()
        final = progress.checked >= progress.total
        if not final and self._last_emit is not None and now - self._last_emit < self._interval:
            return
        self._last_emit = now
        self._stream.write(f"{line}\n")

    def finish(self) -> None:
        if self._line_open:
            self._stream.write("\n")
            self._stream.flush()
            self._line_open = False


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


def print_report(
    report: ValidationReport, pending_manual: Sequence[str], out: TextIO | None = None
) -> None:
    out = out if out is not None else sys.stdout
    failures = [r for r in report.results if not r.ok]
    warnings = [r for r in report.results if r.ok and r.warning]

    if failures:
        print(f"\nFailed external links ({len(failures)}):", file=out)
        for result in failures:
            detail = result.error or (f"HTTP {result.status}" if result.status else "unknown error")
            print(f"  ✗ {result.url} [{detail}]", file=out)

    if warnings:
        print(f"\nWarnings ({len(warnings)}):", file=out)
        for result in warnings:
            print(f"  ! {result.url} [{result.warning}]", file=out)

    summary = report.summary
    print(
        f"\nExternal links: {summary.total} total, {summary.from_cache} from cache, "
        f"{summary.checked} checked, {len(failures)} failed, {summary.warnings} warnings",
        file=out,
    )

    if pending_manual:
        print(f"\nPending manual verification ({len(pending_manual)}):", file=out)
        for url in pending_manual:
            print(f"  ? {url}", file=out)


def build_summary(report: ValidationReport, generated_at: str) -> dict[str, Any]:
    failures = [r for r in report.results if not r.ok]
    warnings = [r for r in report.results if r.ok and r.warning]
    return {
        "schemaVersion": SUMMARY_SCHEMA_VERSION,
        "tool": TOOL_NAME,
        "status": "fail" if failures else "pass",
        "generatedAt": generated_at,
        "summary": {
            "total": report.summary.total,
            "fromCache": report.summary.from_cache,
            "checked": report.summary.checked,
            "failed": len(failures),
            "warnings": report.summary.warnings,
        },
        "failures": [
            {"url": r.url, "status": r.status, "error": r.error, "hint": r.hint} for r in failures
        ],
        "warnings": [{"url": r.url, "warning": r.warning, "hint": r.hint} for r in warnings],
    }


def write_summary(report: ValidationReport, logs_dir: str | Path) -> Path:
    generated_at = utc_now_iso()
    stamp = generated_at.replace(":", "-").replace(".", "-")
    path = Path(logs_dir) / f"{TOOL_NAME}-{stamp}.summary.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = build_summary(report, generated_at)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    log.info("summary_written", path=str(path))
    return path


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


def _sync_cache_with_content(settings: Settings, urls: set[str]) -> int:
    """Drop cache entries for links no longer in content. Saves only if something changed."""
    cache = load_cache(settings.cache.path)
    removed = prune_cache(cache, urls)
    if removed:
        save_cache(cache, settings.cache.path, settings.site.internal_domains)
    return removed


async def run(args: argparse.Namespace) -> int:
    settings = load_settings(args)
    _setup_logging(settings)

    content_dir = Path(settings.site.content_dir)
    if args.content_dir is not None and not content_dir.is_dir():
        raise LinkCheckError(
            code=ErrorCode.CONTENT_DIR_MISSING,
            message=f"Content directory not found: {content_dir}",
            suggestion="Pass an existing directory with --content-dir.",
            recoverable=False,
        )

    urls = collect_external_links(content_dir)
    if not urls:
        print("No external links found.")
        _sync_cache_with_content(settings, urls)
        return EXIT_OK

    reporter = ProgressReporter()
    options = CheckOptions(force_full_check=args.mode == "all", on_progress=reporter)
    try:
        report = await validate_external_urls(sorted(urls), options, settings=settings)
    finally:
        reporter.finish()

    _sync_cache_with_content(settings, urls)
    pending = manual_pending_urls(load_cache(settings.cache.path))

    print_report(report, pending)
    if not args.no_summary:
        write_summary(report, settings.site.logs_dir)

    return EXIT_LINK_FAILURES if any(not r.ok for r in report.results) else EXIT_OK


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        exit_code = asyncio.run(run(args))
    except LinkCheckError as exc:
        print(json.dumps(exc.to_dict()), file=sys.stderr)
        exit_code = EXIT_ERROR
    sys.exit(exit_code)


if __name__ == "__main__":
    main()

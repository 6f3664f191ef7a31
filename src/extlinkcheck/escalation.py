"""Strategy ladder for a single URL.

The ladder is plain request → browser User-Agent → headless browser →
manual verdict. A run resumes at the rung recorded as the URL's last
success, never goes back down, and stops at the first rung that succeeds.
When every live rung fails, the manual rung turns the operator's cached
verdict (or its absence) into the final result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from extlinkcheck.fetcher import describe_error
from extlinkcheck.models.cache import StrategyHint
from extlinkcheck.models.results import UrlCheckResult

if TYPE_CHECKING:
    from extlinkcheck.models.cache import CacheEntry, ManualState
    from extlinkcheck.state import RunContext

log = structlog.get_logger()

MANUAL_PENDING_WARNING = "Manual validation pending (auto)"
MANUAL_FALSE_ERROR = "Manual validation set to false"


@dataclass
class EscalationOutcome:
    result: UrlCheckResult
    hint: StrategyHint  # Rung that produced the result; persisted for the next run
    warning: str | None = None
    manual: ManualState | None = None  # Manual flag to persist, None to omit


def resume_point(hint: StrategyHint | None) -> StrategyHint:
    """Rung to start from: the cached hint, or the cheapest rung if there is no live one."""
    if hint is None or not hint.is_live:
        return StrategyHint.FETCH_NODE
    return hint


def evaluate_manual(
    url: str,
    manual_state: ManualState | None,
    last_failure: UrlCheckResult | None,
    expected_status: int = 200,
) -> EscalationOutcome:
    """Turn the operator's cached verdict into a result. Pure; cannot fail."""
    last_status = last_failure.status if last_failure is not None else None
    last_error = last_failure.error if last_failure is not None else None

    if manual_state is False:
        error = f"{MANUAL_FALSE_ERROR} ({last_error})" if last_error else MANUAL_FALSE_ERROR
        return EscalationOutcome(
            result=UrlCheckResult(url=url, ok=False, status=last_status, error=error),
            hint=StrategyHint.MANUAL,
            manual=False,
        )

    if manual_state is True:
        return EscalationOutcome(
            result=UrlCheckResult(url=url, ok=True, status=expected_status),
            hint=StrategyHint.MANUAL,
            manual=True,
        )

    # Unset or "auto": soft pass, flagged for a human.
    return EscalationOutcome(
        result=UrlCheckResult(url=url, ok=True, status=last_status, error=last_error),
        hint=StrategyHint.MANUAL,
        warning=MANUAL_PENDING_WARNING,
        manual="auto",
    )


async def run_strategy(step: StrategyHint, url: str, ctx: RunContext) -> UrlCheckResult:
    """Run one live rung."""
    if step is StrategyHint.FETCH_NODE:
        return await ctx.fetcher.check_plain(url)
    if step is StrategyHint.FETCH_BROWSER_AGENT:
        return await ctx.fetcher.check_browser_agent(url)
    if step is StrategyHint.PLAYWRIGHT:
        return await ctx.browser.check(url)
    raise ValueError(f"{step} is not a live strategy")


async def _walk_ladder(
    url: str,
    hint: StrategyHint | None,
    manual_state: ManualState | None,
    ctx: RunContext,
) -> EscalationOutcome:
    # "auto" is cleared by any live success; explicit operator verdicts stick.
    keep_manual = manual_state if manual_state != "auto" else None
    last_failure: UrlCheckResult | None = None

    for step in StrategyHint.ladder_from(resume_point(hint)):
        if not step.is_live:
            break

        result = await run_strategy(step, url, ctx)
        if result.ok:
            log.debug("strategy_succeeded", url=url, strategy=str(step), status=result.status)
            return EscalationOutcome(result=result, hint=step, manual=keep_manual)

        log.info(
            "strategy_failed",
            url=url,
            strategy=str(step),
            status=result.status,
            error=result.error,
        )
        last_failure = result

    return evaluate_manual(url, manual_state, last_failure, ctx.settings.expected_status)


async def check_external_url(
    url: str,
    cached: CacheEntry | None,
    ctx: RunContext,
    *,
    ignore_cached_state: bool = False,
) -> EscalationOutcome:
    """Verify one URL, escalating through the ladder.

    ``ignore_cached_state`` (full audits) drops the cached hint and manual
    verdict so everything is re-derived live from the cheapest rung.

    Never raises for a URL-level problem: an unexpected exception from any
    rung becomes a failed manual-rung result for this URL only.
    """
    hint = None if ignore_cached_state or cached is None else cached.hint
    manual_state = None if ignore_cached_state or cached is None else cached.manual

    try:
        return await _walk_ladder(url, hint, manual_state, ctx)
    except Exception as exc:
        log.error("url_check_unexpected_error", url=url, exc_info=True)
        return EscalationOutcome(
            result=UrlCheckResult(url=url, ok=False, status=None, error=describe_error(exc)),
            hint=StrategyHint.MANUAL,
            manual=manual_state,
        )

"""HTTP verification strategies.

Both cheap rungs of the ladder live here: a plain request, and the same
request presenting a desktop-browser User-Agent. Each issues HEAD first and
falls back to GET when HEAD does not return the expected status, since some
servers reject or mishandle HEAD. Bodies are never read.

All network I/O goes through one httpx.AsyncClient per run, injected via
the constructor. The validation driver owns the client lifecycle.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import structlog

from extlinkcheck.models.results import UrlCheckResult

if TYPE_CHECKING:
    from extlinkcheck.config import CheckerSettings
    from extlinkcheck.limiter import ConcurrencyLimiter
    from extlinkcheck.throttle import HostThrottle

log = structlog.get_logger()


def build_http_client(settings: CheckerSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once per validation run."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=settings.concurrency * 2,
            max_keepalive_connections=settings.concurrency,
        ),
    )


def describe_error(exc: BaseException) -> str:
    """Exception message, or its class name when the message is empty."""
    return str(exc) or type(exc).__name__


async def _status_of(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout_seconds: float,
    user_agent: str | None,
) -> int:
    headers = {"User-Agent": user_agent} if user_agent else None
    # asyncio.timeout bounds the whole exchange; httpx's timeout is per phase.
    async with asyncio.timeout(timeout_seconds):
        async with client.stream(method, url, headers=headers, timeout=timeout_seconds) as response:
            return response.status_code


async def check_url_with_fetch(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout_seconds: float,
    user_agent: str | None = None,
    expected_status: int = 200,
) -> UrlCheckResult:
    """HEAD, then GET on mismatch. Transport errors become failed results, never raise.

    ``user_agent=None`` keeps the client's default (bot) identification.
    """
    try:
        status = await _status_of(
            client, "HEAD", url, timeout_seconds=timeout_seconds, user_agent=user_agent
        )
        if status == expected_status:
            return UrlCheckResult(url=url, ok=True, status=status)

        status = await _status_of(
            client, "GET", url, timeout_seconds=timeout_seconds, user_agent=user_agent
        )
        if status == expected_status:
            return UrlCheckResult(url=url, ok=True, status=status)

        return UrlCheckResult(url=url, ok=False, status=status, error=f"HTTP {status}")
    except TimeoutError:
        return UrlCheckResult(
            url=url, ok=False, status=None, error=f"Timed out after {timeout_seconds}s"
        )
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        return UrlCheckResult(url=url, ok=False, status=None, error=describe_error(exc))


class FetchChecker:
    """The two HTTP rungs.

    Each request first takes a slot in the general pool (when one is given),
    then waits its turn in the per-host throttle.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        throttle: HostThrottle,
        settings: CheckerSettings,
        limiter: ConcurrencyLimiter | None = None,
    ) -> None:
        self._client = client
        self._throttle = throttle
        self._settings = settings
        self._limiter = limiter

    async def check_plain(self, url: str) -> UrlCheckResult:
        return await self._check(url, user_agent=None)

    async def check_browser_agent(self, url: str) -> UrlCheckResult:
        return await self._check(url, user_agent=self._settings.browser_user_agent)

    async def _check(self, url: str, *, user_agent: str | None) -> UrlCheckResult:
        async def throttled() -> UrlCheckResult:
            return await self._throttle.run(
                url,
                lambda: check_url_with_fetch(
                    self._client,
                    url,
                    timeout_seconds=self._settings.timeout_seconds,
                    user_agent=user_agent,
                    expected_status=self._settings.expected_status,
                ),
            )

        if self._limiter is None:
            result = await throttled()
        else:
            result = await self._limiter.run(throttled)
        log.debug(
            "fetch_check_complete",
            url=url,
            browser_agent=user_agent is not None,
            ok=result.ok,
            status=result.status,
        )
        return result

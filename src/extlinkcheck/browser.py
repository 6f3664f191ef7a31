"""Headless-browser verification strategy.

Some origins only answer real browsers (JS challenges, TLS fingerprinting),
so the third rung drives chromium through Playwright and reads the status
of the navigation response.

One browser and one browsing context are launched lazily on the first
check and shared by every later check in the run; each check gets its own
page, which it closes when done. A failed launch is remembered, and every
later check fails fast with the same error instead of relaunching.
"""

from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import TYPE_CHECKING, Self

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from extlinkcheck.config import DEFAULT_BROWSER_USER_AGENT
from extlinkcheck.errors import ErrorCode, LinkCheckError
from extlinkcheck.fetcher import describe_error
from extlinkcheck.limiter import ConcurrencyLimiter
from extlinkcheck.models.results import UrlCheckResult

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Playwright

    from extlinkcheck.config import CheckerSettings

log = structlog.get_logger()


class PlaywrightChecker:
    """Navigate to URLs in a shared headless chromium, a few tabs at a time."""

    def __init__(
        self,
        *,
        timeout_seconds: float,
        concurrency: int,
        user_agent: str = DEFAULT_BROWSER_USER_AGENT,
        expected_status: int = 200,
    ) -> None:
        self._timeout_ms = timeout_seconds * 1000
        self._user_agent = user_agent
        self._expected_status = expected_status
        self._limiter = ConcurrencyLimiter(max(1, concurrency))

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._init_task: asyncio.Task[BrowserContext] | None = None
        self._init_error: LinkCheckError | None = None
        self._used = False

    @classmethod
    def from_settings(cls, settings: CheckerSettings) -> PlaywrightChecker:
        return cls(
            timeout_seconds=settings.timeout_seconds,
            concurrency=settings.playwright_concurrency,
            user_agent=settings.browser_user_agent,
            expected_status=settings.expected_status,
        )

    @property
    def used(self) -> bool:
        return self._used

    @property
    def limiter(self) -> ConcurrencyLimiter:
        return self._limiter

    async def check(self, url: str) -> UrlCheckResult:
        self._used = True
        return await self._limiter.run(lambda: self._navigate(url))

    async def _navigate(self, url: str) -> UrlCheckResult:
        try:
            context = await self._get_context()
        except LinkCheckError as exc:
            return UrlCheckResult(url=url, ok=False, status=None, error=exc.message)

        page = await context.new_page()
        try:
            response = await page.goto(url, wait_until="domcontentloaded", timeout=self._timeout_ms)
            status = response.status if response is not None else None
            if status == self._expected_status:
                return UrlCheckResult(url=url, ok=True, status=status)
            return UrlCheckResult(
                url=url,
                ok=False,
                status=status,
                error=f"HTTP {status}" if status is not None else "No response",
            )
        except PlaywrightError as exc:
            # Navigation timeouts are PlaywrightError subclasses too.
            return UrlCheckResult(url=url, ok=False, status=None, error=describe_error(exc))
        finally:
            with suppress(PlaywrightError):
                await page.close()

    async def _get_context(self) -> BrowserContext:
        if self._context is not None:
            return self._context
        if self._init_error is not None:
            raise self._init_error
        if self._init_task is None:
            self._init_task = asyncio.create_task(self._launch())
        # Shielded so one cancelled caller cannot abort the launch others wait on.
        return await asyncio.shield(self._init_task)

    async def _launch(self) -> BrowserContext:
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=True)
            self._context = await self._browser.new_context(user_agent=self._user_agent)
        except Exception as exc:
            log.warning("browser_init_failed", error=describe_error(exc), exc_info=True)
            self._init_error = LinkCheckError(
                code=ErrorCode.BROWSER_UNAVAILABLE,
                message=f"Playwright initialization failed: {describe_error(exc)}",
                suggestion="Install the browser binaries with 'playwright install chromium'.",
                recoverable=False,
            )
            raise self._init_error from exc

        log.info("browser_started", user_agent=self._user_agent)
        return self._context

    async def aclose(self) -> None:
        """Tear down the shared browser. A no-op if no check ever ran."""
        if not self._used:
            return
        if self._init_task is not None and not self._init_task.done():
            self._init_task.cancel()
            with suppress(asyncio.CancelledError, LinkCheckError):
                await self._init_task

        context, browser, playwright = self._context, self._browser, self._playwright
        self._context = self._browser = self._playwright = None
        try:
            if context is not None:
                await context.close()
            if browser is not None:
                await browser.close()
        finally:
            if playwright is not None:
                await playwright.stop()
        log.debug("browser_closed")

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

"""Unit tests for extlinkcheck.browser.

Playwright itself is replaced by mocks; no browser is launched.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock, patch

from playwright.async_api import Error as PlaywrightError

from extlinkcheck.browser import PlaywrightChecker
from extlinkcheck.config import CheckerSettings

URL = "https://example.com/protected"


@dataclass
class FakePlaywright:
    factory: MagicMock
    playwright: MagicMock
    browser: AsyncMock
    context: AsyncMock
    page: AsyncMock


def _fake_playwright(status: int | None = 200) -> FakePlaywright:
    page = AsyncMock()
    if status is None:
        page.goto.return_value = None
    else:
        response = MagicMock()
        response.status = status
        page.goto.return_value = response

    context = AsyncMock()
    context.new_page.return_value = page
    browser = AsyncMock()
    browser.new_context.return_value = context

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()

    manager = MagicMock()
    manager.start = AsyncMock(return_value=playwright)
    factory = MagicMock(return_value=manager)
    return FakePlaywright(factory, playwright, browser, context, page)


def _checker() -> PlaywrightChecker:
    return PlaywrightChecker(timeout_seconds=5, concurrency=2, user_agent="Mozilla/5.0 Test")


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


class TestNavigation:
    async def test_expected_status_passes(self) -> None:
        fake = _fake_playwright(200)
        checker = _checker()
        with patch("extlinkcheck.browser.async_playwright", fake.factory):
            result = await checker.check(URL)
            await checker.aclose()

        assert result.ok is True
        assert result.status == 200
        fake.page.goto.assert_awaited_once_with(URL, wait_until="domcontentloaded", timeout=5000)
        fake.page.close.assert_awaited_once()

    async def test_launch_uses_headless_chromium_and_user_agent(self) -> None:
        fake = _fake_playwright(200)
        checker = _checker()
        with patch("extlinkcheck.browser.async_playwright", fake.factory):
            await checker.check(URL)
            await checker.aclose()

        fake.playwright.chromium.launch.assert_awaited_once_with(headless=True)
        fake.browser.new_context.assert_awaited_once_with(user_agent="Mozilla/5.0 Test")

    async def test_other_status_fails(self) -> None:
        fake = _fake_playwright(403)
        checker = _checker()
        with patch("extlinkcheck.browser.async_playwright", fake.factory):
            result = await checker.check(URL)
            await checker.aclose()

        assert result.ok is False
        assert result.status == 403
        assert result.error == "HTTP 403"

    async def test_no_response(self) -> None:
        fake = _fake_playwright(None)
        checker = _checker()
        with patch("extlinkcheck.browser.async_playwright", fake.factory):
            result = await checker.check(URL)
            await checker.aclose()

        assert result.ok is False
        assert result.status is None
        assert result.error == "No response"

    async def test_navigation_error_is_a_failed_result(self) -> None:
        fake = _fake_playwright(200)
        fake.page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
        checker = _checker()
        with patch("extlinkcheck.browser.async_playwright", fake.factory):
            result = await checker.check(URL)
            await checker.aclose()

        assert result.ok is False
        assert result.error == "net::ERR_NAME_NOT_RESOLVED"
        fake.page.close.assert_awaited_once()


# ---------------------------------------------------------------------------
# Shared browser lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    async def test_concurrent_checks_share_one_launch(self) -> None:
        fake = _fake_playwright(200)
        checker = _checker()
        with patch("extlinkcheck.browser.async_playwright", fake.factory):
            results = await asyncio.gather(*(checker.check(f"{URL}/{i}") for i in range(5)))
            await checker.aclose()

        assert all(r.ok for r in results)
        fake.factory.assert_called_once()
        fake.playwright.chromium.launch.assert_awaited_once()
        assert fake.context.new_page.await_count == 5

    async def test_navigations_never_exceed_pool_size(self) -> None:
        fake = _fake_playwright(200)
        response = fake.page.goto.return_value
        navigating = 0
        peak = 0

        async def slow_goto(_url: str, **_kwargs: object) -> MagicMock:
            nonlocal navigating, peak
            navigating += 1
            peak = max(peak, navigating)
            await asyncio.sleep(0.01)
            navigating -= 1
            return response

        fake.page.goto.side_effect = slow_goto
        checker = _checker()
        with patch("extlinkcheck.browser.async_playwright", fake.factory):
            results = await asyncio.gather(*(checker.check(f"{URL}/{i}") for i in range(10)))
            await checker.aclose()

        assert all(r.ok for r in results)
        assert peak == 2
        assert checker.limiter.active == 0

    async def test_init_failure_is_remembered(self) -> None:
        fake = _fake_playwright(200)
        fake.factory.return_value.start.side_effect = RuntimeError("Executable doesn't exist")
        checker = _checker()
        with patch("extlinkcheck.browser.async_playwright", fake.factory):
            first = await checker.check(URL)
            second = await checker.check(f"{URL}/again")
            await checker.aclose()

        for result in (first, second):
            assert result.ok is False
            assert result.status is None
            assert result.error == "Playwright initialization failed: Executable doesn't exist"
        fake.factory.assert_called_once()

    async def test_close_tears_everything_down(self) -> None:
        fake = _fake_playwright(200)
        checker = _checker()
        with patch("extlinkcheck.browser.async_playwright", fake.factory):
            await checker.check(URL)
            await checker.aclose()

        fake.context.close.assert_awaited_once()
        fake.browser.close.assert_awaited_once()
        fake.playwright.stop.assert_awaited_once()

    async def test_close_without_use_never_launches(self) -> None:
        fake = _fake_playwright(200)
        checker = _checker()
        with patch("extlinkcheck.browser.async_playwright", fake.factory):
            await checker.aclose()

        assert checker.used is False
        fake.factory.assert_not_called()

    async def test_context_manager_closes(self) -> None:
        fake = _fake_playwright(200)
        with patch("extlinkcheck.browser.async_playwright", fake.factory):
            async with _checker() as checker:
                await checker.check(URL)

        fake.playwright.stop.assert_awaited_once()

    def test_from_settings(self) -> None:
        settings = CheckerSettings(timeout_seconds=3, playwright_concurrency=4)
        checker = PlaywrightChecker.from_settings(settings)
        assert checker.limiter.limit == 4

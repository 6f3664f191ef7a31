"""Shared test fixtures for the extlinkcheck test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from extlinkcheck.config import CheckerSettings, Settings
from extlinkcheck.models.cache import StrategyHint
from extlinkcheck.models.results import UrlCheckResult
from extlinkcheck.state import RunContext


class ScriptedChecks:
    """In-memory stand-in for every live strategy.

    Results are scripted per (strategy, url); anything unscripted fails with
    HTTP 404. Every call is recorded in order. Scripting an exception makes
    that rung raise it.
    """

    def __init__(self) -> None:
        self.responses: dict[tuple[StrategyHint, str], UrlCheckResult | Exception] = {}
        self.calls: list[tuple[StrategyHint, str]] = []
        self.closed = False

    def script(
        self,
        strategy: StrategyHint,
        url: str,
        *,
        ok: bool = True,
        status: int | None = 200,
        error: str | None = None,
    ) -> None:
        self.responses[(strategy, url)] = UrlCheckResult(url=url, ok=ok, status=status, error=error)

    def raise_on(self, strategy: StrategyHint, url: str, exc: Exception) -> None:
        self.responses[(strategy, url)] = exc

    def strategies_for(self, url: str) -> list[StrategyHint]:
        return [strategy for strategy, called_url in self.calls if called_url == url]

    async def _run(self, strategy: StrategyHint, url: str) -> UrlCheckResult:
        self.calls.append((strategy, url))
        scripted = self.responses.get((strategy, url))
        if isinstance(scripted, Exception):
            raise scripted
        if scripted is None:
            return UrlCheckResult(url=url, ok=False, status=404, error="HTTP 404")
        return scripted

    async def check_plain(self, url: str) -> UrlCheckResult:
        return await self._run(StrategyHint.FETCH_NODE, url)

    async def check_browser_agent(self, url: str) -> UrlCheckResult:
        return await self._run(StrategyHint.FETCH_BROWSER_AGENT, url)

    async def check(self, url: str) -> UrlCheckResult:
        return await self._run(StrategyHint.PLAYWRIGHT, url)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture()
def checks() -> ScriptedChecks:
    """Scripted strategies; unscripted calls fail with HTTP 404."""
    return ScriptedChecks()


@pytest.fixture()
def checker_settings() -> CheckerSettings:
    return CheckerSettings(timeout_seconds=2.0, concurrency=4, playwright_concurrency=2)


@pytest.fixture()
def run_context(checker_settings: CheckerSettings, checks: ScriptedChecks) -> RunContext:
    """RunContext whose fetcher and browser are both the scripted double."""
    return RunContext(settings=checker_settings, fetcher=checks, browser=checks)


@pytest.fixture()
def cache_path(tmp_path: Path) -> Path:
    return tmp_path / "cache_data" / "external-link-cache.json"


@pytest.fixture()
def settings(cache_path: Path, tmp_path: Path) -> Settings:
    """Settings with an isolated cache file and a throttle too fast to notice."""
    return Settings(
        cache={"path": str(cache_path)},
        checker={"timeout_seconds": 2.0, "concurrency": 4, "playwright_concurrency": 2},
        throttle={"requests_per_second": 1000, "exempt_hosts": []},
        site={"content_dir": str(tmp_path / "content"), "logs_dir": str(tmp_path / "logs")},
    )

"""Protocol interfaces for swappable components.

The escalation ladder and RunContext reference these protocols, not the
concrete checkers. This allows:
- Tests to drive the ladder with scripted in-memory checkers
- Other browser engines to be swapped in without changing the ladder
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from extlinkcheck.models.results import UrlCheckResult


class FetchCheckerProtocol(Protocol):
    """Interface for the two HTTP rungs."""

    async def check_plain(self, url: str) -> UrlCheckResult: ...

    async def check_browser_agent(self, url: str) -> UrlCheckResult: ...


class BrowserCheckerProtocol(Protocol):
    """Interface for the browser-engine rung."""

    async def check(self, url: str) -> UrlCheckResult: ...

    async def aclose(self) -> None: ...

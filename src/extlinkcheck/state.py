"""Per-run state container.

RunContext is created once per validation run by the driver (checker.py)
and passed explicitly to the escalation ladder for every URL. Nothing in it
outlives the run: the fetcher carries that run's per-host throttle, and
the browser checker its own pool and shared browser.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from extlinkcheck.config import CheckerSettings
    from extlinkcheck.protocols import BrowserCheckerProtocol, FetchCheckerProtocol


@dataclass
class RunContext:
    """Holds the shared runtime pieces one validation run checks URLs with."""

    settings: CheckerSettings
    fetcher: FetchCheckerProtocol
    browser: BrowserCheckerProtocol

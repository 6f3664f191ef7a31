"""Per-host request pacing.

Every outbound request for a host is queued behind that host's lock, waits
until the host's next permitted start time, then pushes that time forward by
the configured interval. This is a queue, not a token bucket: bursts are
spread out, never admitted. Hosts on the exempt list (exact match or a
subdomain of an entry) and URLs without a parseable host skip the queue.

State lives on the HostThrottle instance and is created lazily per host;
one instance is built per validation run and passed to whoever needs it.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

import structlog

from extlinkcheck.urls import host_matches, url_hostname

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from extlinkcheck.config import ThrottleSettings

log = structlog.get_logger()

T = TypeVar("T")


@dataclass
class _HostState:
    next_available_at: float = 0.0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class HostThrottle:
    """Serialise and space out requests to each external host."""

    def __init__(
        self,
        interval_seconds: float,
        exempt_hosts: Iterable[str] = (),
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._interval = interval_seconds
        self._exempt = frozenset(h.lower() for h in exempt_hosts)
        self._clock = clock
        self._sleep = sleep
        self._hosts: dict[str, _HostState] = {}

    @classmethod
    def from_settings(cls, settings: ThrottleSettings) -> HostThrottle:
        return cls(settings.interval_seconds, settings.exempt_hosts)

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def should_throttle(self, host: str) -> bool:
        return not host_matches(host, self._exempt)

    async def run(self, url: str, task: Callable[[], Awaitable[T]]) -> T:
        """Run ``task`` in ``url``'s host queue. The task's own errors propagate."""
        host = url_hostname(url)
        if host is None or not self.should_throttle(host):
            return await task()

        state = self._hosts.setdefault(host.lower(), _HostState())
        async with state.lock:
            wait = max(0.0, state.next_available_at - self._clock())
            if wait > 0:
                log.debug("throttle_wait", host=host, wait_seconds=round(wait, 3))
                await self._sleep(wait)
            state.next_available_at = self._clock() + self._interval
            return await task()

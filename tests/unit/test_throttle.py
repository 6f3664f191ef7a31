"""Unit tests for extlinkcheck.throttle."""

from __future__ import annotations

import asyncio

import pytest

from extlinkcheck.config import ThrottleSettings
from extlinkcheck.throttle import HostThrottle


class FakeClock:
    """Monotonic clock that only moves when the throttle sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


def _throttle(
    clock: FakeClock, interval: float = 0.5, exempt: tuple[str, ...] = ()
) -> HostThrottle:
    return HostThrottle(interval, exempt, clock=clock, sleep=clock.sleep)


class TestSpacing:
    async def test_first_request_runs_immediately(self, clock: FakeClock) -> None:
        throttle = _throttle(clock)

        async def task() -> str:
            return "ok"

        assert await throttle.run("https://example.com/a", task) == "ok"
        assert clock.sleeps == []

    async def test_same_host_requests_are_spaced(self, clock: FakeClock) -> None:
        throttle = _throttle(clock)
        starts: list[float] = []

        async def task() -> None:
            starts.append(clock.now)

        await asyncio.gather(
            *(throttle.run(f"https://example.com/{i}", task) for i in range(3))
        )

        assert starts == [0.0, 0.5, 1.0]

    async def test_host_match_ignores_case(self, clock: FakeClock) -> None:
        throttle = _throttle(clock)

        async def task() -> None:
            return None

        await throttle.run("https://Example.COM/a", task)
        await throttle.run("https://example.com/b", task)

        assert clock.sleeps == [0.5]

    async def test_different_hosts_do_not_wait(self, clock: FakeClock) -> None:
        throttle = _throttle(clock)

        async def task() -> None:
            return None

        await throttle.run("https://a.example/", task)
        await throttle.run("https://b.example/", task)

        assert clock.sleeps == []

    async def test_elapsed_time_counts_towards_interval(self, clock: FakeClock) -> None:
        throttle = _throttle(clock)

        async def task() -> None:
            return None

        await throttle.run("https://example.com/a", task)
        clock.now += 0.3
        await throttle.run("https://example.com/b", task)

        assert clock.sleeps == [pytest.approx(0.2)]


class TestBypass:
    async def test_exempt_host_and_subdomain(self, clock: FakeClock) -> None:
        throttle = _throttle(clock, exempt=("github.com",))

        async def task() -> None:
            return None

        for url in (
            "https://github.com/a",
            "https://github.com/b",
            "https://api.github.com/c",
        ):
            await throttle.run(url, task)

        assert clock.sleeps == []

    async def test_exempt_requests_overlap(self, clock: FakeClock) -> None:
        throttle = _throttle(clock, exempt=("github.com",))
        gate = asyncio.Event()
        running = 0
        peak = 0

        async def task() -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await gate.wait()
            running -= 1

        tasks = [
            asyncio.create_task(throttle.run(f"https://github.com/{i}", task)) for i in range(3)
        ]
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(*tasks)

        assert peak == 3

    async def test_unparseable_url_runs_immediately(self, clock: FakeClock) -> None:
        throttle = _throttle(clock)

        async def task() -> str:
            return "ran"

        assert await throttle.run("not a url", task) == "ran"
        assert await throttle.run("http://[broken", task) == "ran"
        assert clock.sleeps == []

    def test_should_throttle(self, clock: FakeClock) -> None:
        throttle = _throttle(clock, exempt=("wikipedia.org",))
        assert throttle.should_throttle("en.wikipedia.org") is False
        assert throttle.should_throttle("example.com") is True


class TestErrors:
    async def test_task_error_propagates_and_queue_moves_on(self, clock: FakeClock) -> None:
        throttle = _throttle(clock)

        async def boom() -> None:
            raise RuntimeError("boom")

        async def task() -> str:
            return "ok"

        with pytest.raises(RuntimeError, match="boom"):
            await throttle.run("https://example.com/a", boom)

        assert await throttle.run("https://example.com/b", task) == "ok"
        assert clock.sleeps == [0.5]


class TestFromSettings:
    def test_interval_from_rate(self) -> None:
        throttle = HostThrottle.from_settings(ThrottleSettings(requests_per_second=2))
        assert throttle.interval_seconds == 0.5

    def test_interval_rounded_to_milliseconds(self) -> None:
        assert ThrottleSettings(requests_per_second=3).interval_seconds == 0.333

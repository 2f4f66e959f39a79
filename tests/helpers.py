"""Deterministic fakes for timers and transports used across the tests."""

from __future__ import annotations

import asyncio
from typing import Callable

from app.errors import TransportError


class ManualTimer:
    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose clock only moves when the test advances it."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + delay, callback)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted(
            (
                timer
                for timer in self._timers
                if not timer.cancelled and timer.when <= self.now
            ),
            key=lambda timer: timer.when,
        )
        for timer in due:
            self._timers.remove(timer)
            timer.callback()


class ControlledTransport:
    """Transport whose probes stay pending until the test resolves them."""

    def __init__(self) -> None:
        self.requests: list[str] = []
        self._pending: list[tuple[str, asyncio.Future[None]]] = []

    async def probe(self, url: str) -> None:
        self.requests.append(url)
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._pending.append((url, future))
        await future

    def _take(self, url: str) -> asyncio.Future[None]:
        for index, (pending_url, future) in enumerate(self._pending):
            if pending_url == url and not future.done():
                del self._pending[index]
                return future
        raise AssertionError(f"No pending probe for {url}")

    def succeed(self, url: str) -> None:
        self._take(url).set_result(None)

    def fail(self, url: str) -> None:
        self._take(url).set_exception(TransportError(url))


class ScriptedTransport:
    """Transport resolving each URL according to a fixed script.

    Unknown URLs succeed. ``"error"`` raises a transport error and ``"hang"``
    never resolves.
    """

    def __init__(self, script: dict[str, str] | None = None, delay: float = 0.0):
        self.script = script or {}
        self.delay = delay
        self.requests: list[str] = []

    async def probe(self, url: str) -> None:
        self.requests.append(url)
        outcome = self.script.get(url, "ok")
        if outcome == "hang":
            await asyncio.Event().wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if outcome == "error":
            raise TransportError(url)


async def settle(rounds: int = 10) -> None:
    """Let pending callbacks and tasks run."""

    for _ in range(rounds):
        await asyncio.sleep(0)


"""Operator-triggered availability audit of every poster in the catalog.

Resources are probed one at a time, in input order, against their origin
URL only. Each probe races the transport against a fixed timeout; a timeout
counts as an error. Every status change is published to the observer so a
live view can render progress row by row.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import AsyncIterator, Callable, Sequence

from ..errors import EmptyReferenceError, ProbeTimeoutError, ResourceError, ScanInProgressError, TransportError
from ..models import ResourceRef, ScanEntry, ScanEvent, ScanStatus
from .transport import Transport

logger = logging.getLogger(__name__)

SCAN_PROBE_TIMEOUT = 5.0

ScanObserver = Callable[[ScanEvent], None]


class ScanRun:
    """Ordered scan entries, mutated in place while the scan progresses."""

    def __init__(self, refs: Sequence[ResourceRef]):
        self._entries = [
            ScanEntry(resource_id=ref.resource_id, url=ref.origin_url, title=ref.title)
            for ref in refs
        ]
        self.started_at = datetime.utcnow()
        self.finished_at: datetime | None = None

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[ScanEntry, ...]:
        """Return a read-only snapshot of the entries."""

        return tuple(entry.model_copy() for entry in self._entries)

    @property
    def finished(self) -> bool:
        return self.finished_at is not None

    @property
    def error_count(self) -> int:
        return sum(1 for entry in self._entries if entry.status is ScanStatus.ERROR)

    def get(self, resource_id: str) -> ScanEntry | None:
        for entry in self._entries:
            if entry.resource_id == resource_id:
                return entry.model_copy()
        return None

    def _update(
        self, index: int, status: ScanStatus, error: str | None = None
    ) -> ScanEvent:
        entry = self._entries[index]
        if entry.status.is_terminal:
            raise RuntimeError(
                f"Scan entry {entry.resource_id} already resolved as {entry.status.value}"
            )
        entry.status = status
        entry.error = error
        return ScanEvent(entry=entry.model_copy(), index=index, entries=self.entries)

    def _finish(self) -> None:
        self.finished_at = datetime.utcnow()

    def to_payload(self) -> dict[str, object]:
        return {
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "finished": self.finished,
            "total": len(self._entries),
            "errorCount": self.error_count,
            "entries": [entry.to_payload() for entry in self._entries],
        }


class HealthScanner:
    """Runs :class:`ScanRun` passes over a list of resources.

    Only one run may be active per scanner; the most recent run is kept in
    :attr:`latest_run` and replaced by the next one.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        probe_timeout: float = SCAN_PROBE_TIMEOUT,
        concurrency: int = 1,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._transport = transport
        self._probe_timeout = probe_timeout
        self._concurrency = concurrency
        self._running = False
        self._task: asyncio.Task[ScanRun] | None = None
        self.latest_run: ScanRun | None = None

    @property
    def running(self) -> bool:
        return self._running

    def start(
        self,
        refs: Sequence[ResourceRef],
        observer: ScanObserver | None = None,
    ) -> asyncio.Task[ScanRun]:
        """Begin a run in the background and return its task.

        Raises :class:`ScanInProgressError` if a run is already active.
        """

        if self._running:
            raise ScanInProgressError("A poster scan is already running")
        self._running = True
        scan = ScanRun(refs)
        self.latest_run = scan
        self._task = asyncio.get_running_loop().create_task(
            self._execute(scan, list(refs), observer)
        )
        return self._task

    async def run(
        self,
        refs: Sequence[ResourceRef],
        observer: ScanObserver | None = None,
    ) -> ScanRun:
        return await self.start(refs, observer)

    def stream(self, refs: Sequence[ResourceRef]) -> AsyncIterator[ScanEvent]:
        """Start a run and return an iterator over its published events."""

        queue: asyncio.Queue[ScanEvent | None] = asyncio.Queue()
        task = self.start(refs, observer=queue.put_nowait)
        task.add_done_callback(lambda _: queue.put_nowait(None))
        return self._drain(queue, task)

    @staticmethod
    async def _drain(
        queue: asyncio.Queue[ScanEvent | None], task: asyncio.Task[ScanRun]
    ) -> AsyncIterator[ScanEvent]:
        while True:
            event = await queue.get()
            if event is None:
                break
            yield event
        await task

    async def _execute(
        self,
        scan: ScanRun,
        refs: list[ResourceRef],
        observer: ScanObserver | None,
    ) -> ScanRun:
        logger.info("Starting poster scan over %d resources", len(refs))
        try:
            if self._concurrency == 1:
                for index, ref in enumerate(refs):
                    await self._scan_one(scan, index, ref, observer)
            else:
                semaphore = asyncio.Semaphore(self._concurrency)

                async def bounded(index: int, ref: ResourceRef) -> None:
                    async with semaphore:
                        await self._scan_one(scan, index, ref, observer)

                tasks = [
                    asyncio.ensure_future(bounded(index, ref))
                    for index, ref in enumerate(refs)
                ]
                try:
                    await asyncio.gather(*tasks)
                except BaseException:
                    # No probe may outlive a failed or cancelled run.
                    for task in tasks:
                        task.cancel()
                    await asyncio.gather(*tasks, return_exceptions=True)
                    raise
            scan._finish()
        finally:
            self._running = False

        logger.info(
            "Poster scan finished: %d of %d unavailable", scan.error_count, len(scan)
        )
        return scan

    async def _scan_one(
        self,
        scan: ScanRun,
        index: int,
        ref: ResourceRef,
        observer: ScanObserver | None,
    ) -> None:
        self._publish(observer, scan._update(index, ScanStatus.TESTING))
        status, error = await self._probe(ref.origin_url)
        if error:
            logger.debug("Poster %s failed probe: %s", ref.resource_id, error)
        self._publish(observer, scan._update(index, status, error))

    async def _probe(self, url: str) -> tuple[ScanStatus, str | None]:
        if not url:
            return ScanStatus.ERROR, EmptyReferenceError.kind
        try:
            await asyncio.wait_for(
                self._transport.probe(url), timeout=self._probe_timeout
            )
        except asyncio.TimeoutError:
            return ScanStatus.ERROR, ProbeTimeoutError.kind
        except ResourceError as exc:
            return ScanStatus.ERROR, exc.kind
        except Exception:
            logger.exception("Transport raised unexpectedly while probing %s", url)
            return ScanStatus.ERROR, TransportError.kind
        return ScanStatus.OK, None

    @staticmethod
    def _publish(observer: ScanObserver | None, event: ScanEvent) -> None:
        if observer is not None:
            observer(event)

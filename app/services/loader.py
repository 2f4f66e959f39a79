"""Resilient poster loading: proxy first, origin second, then give up.

The decision logic lives in :class:`LoaderMachine`, a pure
``(state, event) -> state`` function. :class:`ResilientLoader` wires it to a
transport, a timer scheduler and a visibility trigger, performing the side
effects each transition calls for.

Every fetch attempt carries an attempt token. Success, failure and timeout
signals race to resolve the current attempt; whichever arrives first wins
and signals for an older token are ignored, so a timeout firing after a
successful load cannot trigger the fallback.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Union

from ..errors import EmptyReferenceError, ProbeTimeoutError, ResourceError, TransportError
from ..models import ResourceRef
from .timers import AsyncioScheduler, Scheduler, TimerHandle
from .transport import Transport
from .url_transform import DEFAULT_PROXY_URL
from .visibility import EagerTrigger, ManualTrigger, VisibilityTrigger

logger = logging.getLogger(__name__)

PROXY_STAGE_TIMEOUT = 1.5


class LoadStage(str, Enum):
    PROXIED = "proxied"
    DIRECT = "direct"
    FAILED = "failed"


class LoaderPhase(str, Enum):
    IDLE = "idle"
    LOADING_PROXIED = "loading_proxied"
    LOADING_DIRECT = "loading_direct"
    LOADED = "loaded"
    FAILED = "failed"


_LOADING_PHASES = (LoaderPhase.LOADING_PROXIED, LoaderPhase.LOADING_DIRECT)


@dataclass(frozen=True, slots=True)
class LoaderState:
    """Snapshot of a single loader, safe to hand to renderers."""

    phase: LoaderPhase
    stage: LoadStage
    visible: bool = False
    active_url: str | None = None
    attempt: int = 0
    error: str | None = None

    @property
    def loaded(self) -> bool:
        return self.phase is LoaderPhase.LOADED

    @property
    def terminal(self) -> bool:
        return self.phase in (LoaderPhase.LOADED, LoaderPhase.FAILED)

    @property
    def loading(self) -> bool:
        return self.phase in _LOADING_PHASES

    def to_payload(self) -> dict[str, object]:
        return {
            "phase": self.phase.value,
            "stage": self.stage.value,
            "visible": self.visible,
            "loaded": self.loaded,
            "activeUrl": self.active_url,
            "error": self.error,
        }


@dataclass(frozen=True, slots=True)
class BecameVisible:
    pass


@dataclass(frozen=True, slots=True)
class LoadSucceeded:
    attempt: int


@dataclass(frozen=True, slots=True)
class LoadFailed:
    attempt: int
    error: str = TransportError.kind


@dataclass(frozen=True, slots=True)
class StageTimedOut:
    attempt: int


@dataclass(frozen=True, slots=True)
class RetryRequested:
    pass


LoaderEvent = Union[BecameVisible, LoadSucceeded, LoadFailed, StageTimedOut, RetryRequested]


class LoaderMachine:
    """Pure transition rules for one resource."""

    def __init__(self, ref: ResourceRef, *, proxy_url: str = DEFAULT_PROXY_URL):
        self.ref = ref
        self._proxy_url = proxy_url

    def active_url_for(self, stage: LoadStage) -> str | None:
        """Return the URL to fetch for ``stage``; derived from the ref only."""

        if stage is LoadStage.PROXIED:
            return self.ref.optimized_url(self._proxy_url)
        if stage is LoadStage.DIRECT:
            return self.ref.origin_url
        return None

    def initial_state(self) -> LoaderState:
        if not self.ref.origin_url:
            return LoaderState(
                phase=LoaderPhase.FAILED,
                stage=LoadStage.FAILED,
                error=EmptyReferenceError.kind,
            )
        return LoaderState(phase=LoaderPhase.IDLE, stage=LoadStage.PROXIED)

    def transition(self, state: LoaderState, event: LoaderEvent) -> LoaderState:
        if isinstance(event, BecameVisible):
            if state.phase is LoaderPhase.IDLE:
                return self._begin(state, LoaderPhase.LOADING_PROXIED, LoadStage.PROXIED)
            if not state.visible:
                return replace(state, visible=True)
            return state

        if isinstance(event, RetryRequested):
            if state.phase is not LoaderPhase.FAILED or not self.ref.origin_url:
                return state
            return self._begin(state, LoaderPhase.LOADING_PROXIED, LoadStage.PROXIED)

        if not isinstance(event, (LoadSucceeded, LoadFailed, StageTimedOut)):
            raise TypeError(f"Unsupported loader event: {event!r}")

        # Stale or late signals resolve nothing.
        if not state.loading or event.attempt != state.attempt:
            return state

        if isinstance(event, LoadSucceeded):
            return replace(state, phase=LoaderPhase.LOADED, error=None)

        if isinstance(event, StageTimedOut):
            if state.phase is not LoaderPhase.LOADING_PROXIED:
                return state
            return self._degrade(state, ProbeTimeoutError.kind)

        return self._degrade(state, event.error)

    def _begin(
        self, state: LoaderState, phase: LoaderPhase, stage: LoadStage
    ) -> LoaderState:
        return LoaderState(
            phase=phase,
            stage=stage,
            visible=True,
            active_url=self.active_url_for(stage),
            attempt=state.attempt + 1,
            error=None if stage is LoadStage.PROXIED else state.error,
        )

    def _degrade(self, state: LoaderState, error: str) -> LoaderState:
        if state.phase is LoaderPhase.LOADING_PROXIED:
            direct = self._begin(state, LoaderPhase.LOADING_DIRECT, LoadStage.DIRECT)
            return replace(direct, error=error)
        return LoaderState(
            phase=LoaderPhase.FAILED,
            stage=LoadStage.FAILED,
            visible=state.visible,
            active_url=self.active_url_for(LoadStage.FAILED),
            attempt=state.attempt,
            error=error,
        )


StateListener = Callable[[LoaderState], None]


class ResilientLoader:
    """Drives a :class:`LoaderMachine` against a real transport and clock."""

    def __init__(
        self,
        ref: ResourceRef,
        transport: Transport,
        scheduler: Scheduler | None = None,
        *,
        trigger: VisibilityTrigger | None = None,
        eager: bool = False,
        proxy_url: str = DEFAULT_PROXY_URL,
        stage_timeout: float = PROXY_STAGE_TIMEOUT,
    ) -> None:
        self._machine = LoaderMachine(ref, proxy_url=proxy_url)
        self._transport = transport
        self._scheduler: Scheduler = scheduler or AsyncioScheduler()
        if trigger is None:
            trigger = EagerTrigger() if eager else ManualTrigger()
        self.trigger = trigger
        self._stage_timeout = stage_timeout
        self._state = self._machine.initial_state()
        self._listeners: list[StateListener] = []
        self._timer: TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None
        self._settled = asyncio.Event()
        self._started = False
        if self._state.terminal:
            self._settled.set()

    @property
    def ref(self) -> ResourceRef:
        return self._machine.ref

    @property
    def state(self) -> LoaderState:
        return self._state

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        """Begin observing the visibility trigger. Idempotent."""

        if self._started:
            return
        self._started = True
        self.trigger.subscribe(self._on_visible)

    def retry(self) -> None:
        """Restart the full proxy/direct sequence after a terminal failure."""

        self.dispatch(RetryRequested())

    async def wait(self) -> LoaderState:
        """Wait until the loader reaches LOADED or FAILED."""

        await self._settled.wait()
        return self._state

    def close(self) -> None:
        """Cancel any pending timer and in-flight fetch."""

        self._cancel_timer()
        self._cancel_task()

    def dispatch(self, event: LoaderEvent) -> LoaderState:
        previous = self._state
        current = self._machine.transition(previous, event)
        if current == previous:
            return current

        self._state = current
        if current.attempt != previous.attempt:
            self._start_attempt(current)
        elif current.terminal:
            self._cancel_timer()
            self._cancel_task()

        if current.terminal:
            if not previous.terminal:
                self._log_outcome(current)
            self._settled.set()
        else:
            self._settled.clear()

        for listener in list(self._listeners):
            listener(current)
        return current

    def _on_visible(self) -> None:
        self.dispatch(BecameVisible())

    def _start_attempt(self, state: LoaderState) -> None:
        self._cancel_timer()
        self._cancel_task()
        if state.phase is LoaderPhase.LOADING_DIRECT:
            logger.info(
                "Proxy stage failed for %s (%s); falling back to origin",
                self.ref.resource_id,
                state.error,
            )
        if state.phase is LoaderPhase.LOADING_PROXIED:
            attempt = state.attempt
            self._timer = self._scheduler.call_later(
                self._stage_timeout,
                lambda: self.dispatch(StageTimedOut(attempt)),
            )
        url = state.active_url or ""
        self._task = asyncio.get_running_loop().create_task(
            self._fetch(url, state.attempt)
        )

    async def _fetch(self, url: str, attempt: int) -> None:
        try:
            await self._transport.probe(url)
        except ResourceError as exc:
            self.dispatch(LoadFailed(attempt, exc.kind))
            return
        except Exception:
            logger.exception("Transport raised unexpectedly while fetching %s", url)
            self.dispatch(LoadFailed(attempt, TransportError.kind))
            return
        self.dispatch(LoadSucceeded(attempt))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            return
        task.cancel()

    def _log_outcome(self, state: LoaderState) -> None:
        if state.loaded:
            logger.debug(
                "Loaded %s via %s stage", self.ref.resource_id, state.stage.value
            )
        else:
            logger.warning(
                "Poster %s unavailable (%s)", self.ref.resource_id, state.error
            )


async def resolve_poster(
    ref: ResourceRef,
    transport: Transport,
    *,
    proxy_url: str = DEFAULT_PROXY_URL,
    stage_timeout: float = PROXY_STAGE_TIMEOUT,
    scheduler: Scheduler | None = None,
) -> LoaderState:
    """Run an eager loader for ``ref`` to completion and return its final state."""

    loader = ResilientLoader(
        ref,
        transport,
        scheduler,
        eager=True,
        proxy_url=proxy_url,
        stage_timeout=stage_timeout,
    )
    loader.start()
    try:
        return await loader.wait()
    finally:
        loader.close()

from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional

from geo_overlay.model.models import SceneReadinessState

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 0.1
READY_TIMEOUT_S = 20.0

Predicate = Callable[[], bool]


class SceneReadyGate:
    """Cancellable wait for "all content streamed", with a ceiling.

    ``wait()`` resolves READY as soon as the predicate holds (immediately if
    it already does) or TIMED_OUT once ``timeout`` seconds have passed. The
    poll task is dropped on every exit path: resolution, timeout, cancel.
    """

    def __init__(self, predicate: Predicate, interval: float = POLL_INTERVAL_S,
                 timeout: float = READY_TIMEOUT_S):
        if interval <= 0 or timeout < 0:
            raise ValueError("interval must be > 0 and timeout >= 0")
        self.predicate = predicate
        self.interval = interval
        self.timeout = timeout
        self.polls = 0
        self.cancelled = False
        self._state = SceneReadinessState.LOADING
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> SceneReadinessState:
        return self._state

    @property
    def pending(self) -> bool:
        return self._task is not None

    def _resolve(self, new: SceneReadinessState) -> SceneReadinessState:
        if not self._state.can_transition(new):
            raise ValueError(f"readiness cannot go {self._state.name} -> {new.name}")
        self._state = new
        return new

    async def _poll(self) -> SceneReadinessState:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        while True:
            self.polls += 1
            if self.predicate():
                return self._resolve(SceneReadinessState.READY)
            remaining = deadline - loop.time()
            if remaining <= 0:
                return self._resolve(SceneReadinessState.TIMED_OUT)
            await asyncio.sleep(min(self.interval, remaining))

    async def wait(self) -> SceneReadinessState:
        if self._state is not SceneReadinessState.LOADING:
            return self._state
        if self._task is None:
            self._task = asyncio.ensure_future(self._poll())
        task = self._task
        try:
            # cancelling the caller cancels the poll task too
            return await task
        finally:
            if self._task is task:
                self._task = None

    def cancel(self) -> None:
        """Stop polling; a pending wait() raises CancelledError."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            self.cancelled = True
            task.cancel()
            logger.debug("scene-ready wait cancelled after %d polls", self.polls)


async def wait_for_predicate(predicate: Predicate, *, interval: float = POLL_INTERVAL_S,
                             timeout: float = READY_TIMEOUT_S) -> SceneReadinessState:
    return await SceneReadyGate(predicate, interval, timeout).wait()

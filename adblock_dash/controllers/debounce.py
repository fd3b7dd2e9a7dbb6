"""Single-shot, cancellable delayed callback."""
import asyncio
import logging
from typing import Any, Callable, Optional, Protocol

log = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> Any: ...


# (delay_seconds, callback) -> handle
Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


def asyncio_scheduler(loop: Optional[asyncio.AbstractEventLoop] = None) -> Scheduler:
    def schedule(delay: float, callback: Callable[[], None]) -> TimerHandle:
        return (loop or asyncio.get_running_loop()).call_later(delay, callback)
    return schedule


class _StoppingHandle:
    def __init__(self, timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.stop()


def textual_scheduler(app) -> Scheduler:
    """Schedule through ``App.set_timer``; Textual timers stop() rather than cancel()."""
    def schedule(delay: float, callback: Callable[[], None]) -> TimerHandle:
        return _StoppingHandle(app.set_timer(delay, callback))
    return schedule


class DebounceTimer:
    """
    At most one outstanding callback. Each arm() bumps a generation counter and
    a fired callback only runs if its generation is still the current one, so
    a host that delivers a cancelled callback late cannot trigger it.
    """

    def __init__(self, scheduler: Scheduler):
        self._scheduler = scheduler
        self._handle: Optional[TimerHandle] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def generation(self) -> int:
        return self._generation

    def arm(self, delay: float, on_elapsed: Callable[[], None]) -> int:
        self.cancel()
        self._generation += 1
        generation = self._generation

        def _fire() -> None:
            if generation != self._generation or self._handle is None:
                log.debug("Dropping stale timer generation %d", generation)
                return
            self._handle = None
            on_elapsed()

        self._handle = self._scheduler(delay, _fire)
        return generation

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

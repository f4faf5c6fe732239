"""Timer schedulers driving arm stages and rendezvous deadlines."""

from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Any, Callable, List, Optional, Protocol

from ..errors import SchedulerError

DEFAULT_MAX_EVENTS = 100_000


class Cancellable(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Minimal timer interface shared by the logical and asyncio schedulers."""

    @property
    def now(self) -> float:
        ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Cancellable:
        ...


class TimerHandle:
    """Pending callback registered with a :class:`LogicalScheduler`."""

    __slots__ = ("when", "sequence", "callback", "args", "cancelled")

    def __init__(
        self, when: float, sequence: int, callback: Callable[..., Any], args: tuple
    ) -> None:
        self.when = when
        self.sequence = sequence
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other: "TimerHandle") -> bool:
        return (self.when, self.sequence) < (other.when, other.sequence)

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "pending"
        return f"TimerHandle(when={self.when:g}, {state})"


class LogicalScheduler:
    """Single-threaded discrete-event loop on a virtual clock.

    Timers fire in deadline order; timers sharing a deadline fire in the order
    they were scheduled. Exceptions raised by callbacks propagate out of
    :meth:`run` and :meth:`advance`.
    """

    def __init__(self, *, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        if max_events <= 0:
            raise ValueError("max_events must be positive.")
        self.max_events = max_events
        self._now = 0.0
        self._queue: List[TimerHandle] = []
        self._sequence = itertools.count()

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        return sum(1 for handle in self._queue if not handle.cancelled)

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        if delay < 0:
            raise SchedulerError(f"Cannot schedule a callback {delay:g} units in the past.")
        handle = TimerHandle(self._now + float(delay), next(self._sequence), callback, args)
        heapq.heappush(self._queue, handle)
        return handle

    def step(self) -> bool:
        """Fire the next live timer. Returns ``False`` when nothing is pending."""

        while self._queue:
            handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = handle.when
            handle.callback(*handle.args)
            return True
        return False

    def run(self, *, max_events: Optional[int] = None) -> int:
        """Fire timers until the queue drains; returns the number fired."""

        budget = self.max_events if max_events is None else max_events
        fired = 0
        while self.step():
            fired += 1
            if fired >= budget and self.pending:
                raise SchedulerError(f"Scheduler still busy after {fired} events.")
        return fired

    def advance(self, duration: float) -> int:
        """Fire only the timers due within ``duration`` and move the clock forward."""

        if duration < 0:
            raise SchedulerError("Cannot advance the clock backwards.")
        horizon = self._now + duration
        fired = 0
        while self._queue:
            head = self._queue[0]
            if head.cancelled:
                heapq.heappop(self._queue)
                continue
            if head.when > horizon:
                break
            self.step()
            fired += 1
        self._now = horizon
        return fired

    def clear(self) -> None:
        for handle in self._queue:
            handle.cancel()
        self._queue.clear()


class AsyncioScheduler:
    """Adapter mapping logical units onto an asyncio event loop's timers."""

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        *,
        seconds_per_unit: float = 0.001,
    ) -> None:
        if seconds_per_unit <= 0:
            raise ValueError("seconds_per_unit must be positive.")
        self._loop = loop
        self.seconds_per_unit = float(seconds_per_unit)
        self._origin: Optional[float] = None

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """The loop given at construction, else whichever loop is running now."""

        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    @property
    def now(self) -> float:
        current = self.loop.time()
        if self._origin is None:
            self._origin = current
        return (current - self._origin) / self.seconds_per_unit

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> asyncio.TimerHandle:
        if delay < 0:
            raise SchedulerError(f"Cannot schedule a callback {delay:g} units in the past.")
        return self.loop.call_later(delay * self.seconds_per_unit, callback, *args)


__all__ = [
    "AsyncioScheduler",
    "Cancellable",
    "DEFAULT_MAX_EVENTS",
    "LogicalScheduler",
    "Scheduler",
    "TimerHandle",
]

"""Two-party rendezvous with a bounded arrival window."""

from __future__ import annotations

import logging
from typing import Callable, Hashable, Optional, Set

from ..errors import DoubleArrivalError, RendezvousTimeoutError
from .scheduler import Cancellable, Scheduler

LOGGER = logging.getLogger("bomb tester.barrier")


class RendezvousBarrier:
    """Single-use barrier for two independently scheduled arrivals.

    The first :meth:`arrive` arms a deadline ``window`` logical units away. A
    second arrival before the deadline cancels it and fires
    ``on_both_arrived``; an expired deadline fires ``on_timeout`` with a
    :class:`RendezvousTimeoutError`. Exactly one of the two callbacks ever runs.
    """

    def __init__(
        self,
        name: str,
        scheduler: Scheduler,
        *,
        window: float,
        on_both_arrived: Callable[[], None],
        on_timeout: Callable[[RendezvousTimeoutError], None],
    ) -> None:
        if window <= 0:
            raise ValueError("Rendezvous window must be positive.")
        self.name = name
        self.window = float(window)
        self._scheduler = scheduler
        self._on_both_arrived = on_both_arrived
        self._on_timeout = on_timeout
        self._arrivals = 0
        self._parties: Set[Hashable] = set()
        self._timer: Optional[Cancellable] = None
        self._deadline: Optional[float] = None
        self._fired: Optional[str] = None

    @property
    def arrivals(self) -> int:
        return self._arrivals

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    @property
    def fired(self) -> Optional[str]:
        """``"both_arrived"`` or ``"timeout"`` once the barrier has fired."""

        return self._fired

    def arrive(self, party: Optional[Hashable] = None) -> None:
        if self._fired == "timeout":
            raise DoubleArrivalError(self.name, reason="arrival after timeout")
        if self._arrivals >= 2:
            raise DoubleArrivalError(self.name, reason="third arrival")
        if party is not None:
            if party in self._parties:
                raise DoubleArrivalError(self.name, reason=f"{party} arrived twice")
            self._parties.add(party)

        self._arrivals += 1
        if self._arrivals == 1:
            self._deadline = self._scheduler.now + self.window
            self._timer = self._scheduler.call_later(self.window, self._expire)
            LOGGER.debug(
                "rendezvous_armed | barrier=%s | party=%s | deadline=%.3f",
                self.name,
                party,
                self._deadline,
            )
            return

        self._cancel_timer()
        self._fired = "both_arrived"
        LOGGER.debug("rendezvous_complete | barrier=%s | party=%s", self.name, party)
        self._on_both_arrived()

    def cancel(self) -> None:
        """Drop the pending deadline without firing either callback."""

        self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self) -> None:
        self._timer = None
        if self._fired is not None:
            return
        self._fired = "timeout"
        error = RendezvousTimeoutError(self.name, arrivals=self._arrivals, window=self.window)
        LOGGER.debug("rendezvous_expired | barrier=%s | arrivals=%d", self.name, self._arrivals)
        self._on_timeout(error)


__all__ = ["RendezvousBarrier"]

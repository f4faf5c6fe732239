"""Error taxonomy for the bomb tester simulation core."""

from __future__ import annotations

from typing import Optional


class BombTesterError(Exception):
    """Base class for every error raised by the simulation core."""


class ConfigurationError(BombTesterError, ValueError):
    """Raised when a simulation configuration is malformed."""


class SchedulerError(BombTesterError, RuntimeError):
    """Raised when a scheduler is misused or a trial never settles."""


class TrialAlreadyRunningError(BombTesterError, RuntimeError):
    """``start`` was called while a trial is still in flight.

    Recoverable: reset the controller first, or ignore the request.
    """

    def __init__(self, state: object) -> None:
        super().__init__(f"Cannot start a trial while in state {state!s}; reset first.")
        self.state = state


class FatalTrialError(BombTesterError, RuntimeError):
    """A broken invariant that makes the current trial unresolvable."""


class RendezvousTimeoutError(FatalTrialError):
    """Only one party reached a rendezvous point before its deadline."""

    def __init__(self, barrier: str, *, arrivals: int, window: float) -> None:
        super().__init__(
            f"Rendezvous '{barrier}' timed out after {window:g} logical units "
            f"with {arrivals} of 2 arrivals."
        )
        self.barrier = barrier
        self.arrivals = arrivals
        self.window = window


class DoubleArrivalError(FatalTrialError):
    """A barrier received an arrival it cannot accept."""

    def __init__(self, barrier: str, *, reason: Optional[str] = None) -> None:
        detail = f" ({reason})" if reason else ""
        super().__init__(f"Unexpected arrival at rendezvous '{barrier}'{detail}.")
        self.barrier = barrier
        self.reason = reason


__all__ = [
    "BombTesterError",
    "ConfigurationError",
    "DoubleArrivalError",
    "FatalTrialError",
    "RendezvousTimeoutError",
    "SchedulerError",
    "TrialAlreadyRunningError",
]

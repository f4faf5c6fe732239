"""Two-party rendezvous semantics."""

from __future__ import annotations

from typing import List

import pytest

from bomb_tester.errors import DoubleArrivalError, RendezvousTimeoutError
from bomb_tester.simulation.barrier import RendezvousBarrier
from bomb_tester.simulation.scheduler import LogicalScheduler


class _Spy:
    def __init__(self) -> None:
        self.both: int = 0
        self.timeouts: List[RendezvousTimeoutError] = []

    def on_both(self) -> None:
        self.both += 1

    def on_timeout(self, error: RendezvousTimeoutError) -> None:
        self.timeouts.append(error)


def _barrier(scheduler: LogicalScheduler, spy: _Spy, *, window: float = 100.0) -> RendezvousBarrier:
    return RendezvousBarrier(
        "recombination",
        scheduler,
        window=window,
        on_both_arrived=spy.on_both,
        on_timeout=spy.on_timeout,
    )


def test_two_arrivals_within_window_fire_once_and_never_time_out() -> None:
    scheduler = LogicalScheduler()
    spy = _Spy()
    barrier = _barrier(scheduler, spy)

    barrier.arrive("upper")
    assert barrier.deadline == pytest.approx(100.0)
    scheduler.advance(60.0)
    barrier.arrive("lower")

    scheduler.run()
    assert spy.both == 1
    assert spy.timeouts == []
    assert barrier.fired == "both_arrived"
    assert barrier.arrivals == 2
    assert scheduler.pending == 0


def test_single_arrival_times_out_exactly_once() -> None:
    scheduler = LogicalScheduler()
    spy = _Spy()
    barrier = _barrier(scheduler, spy, window=25.0)

    scheduler.advance(10.0)
    barrier.arrive("upper")
    scheduler.run()

    assert spy.both == 0
    assert len(spy.timeouts) == 1
    error = spy.timeouts[0]
    assert error.barrier == "recombination"
    assert error.arrivals == 1
    assert error.window == 25.0
    assert scheduler.now == pytest.approx(35.0)
    assert barrier.fired == "timeout"


def test_late_arrival_after_timeout_is_rejected() -> None:
    scheduler = LogicalScheduler()
    spy = _Spy()
    barrier = _barrier(scheduler, spy, window=5.0)
    barrier.arrive()
    scheduler.run()

    with pytest.raises(DoubleArrivalError):
        barrier.arrive()
    assert spy.both == 0
    assert len(spy.timeouts) == 1


def test_third_arrival_is_rejected() -> None:
    scheduler = LogicalScheduler()
    spy = _Spy()
    barrier = _barrier(scheduler, spy)
    barrier.arrive()
    barrier.arrive()

    with pytest.raises(DoubleArrivalError, match="third arrival"):
        barrier.arrive()
    assert spy.both == 1


def test_same_party_cannot_arrive_twice() -> None:
    scheduler = LogicalScheduler()
    spy = _Spy()
    barrier = _barrier(scheduler, spy)
    barrier.arrive("upper")

    with pytest.raises(DoubleArrivalError, match="upper arrived twice"):
        barrier.arrive("upper")
    assert barrier.arrivals == 1


def test_cancel_drops_the_pending_deadline() -> None:
    scheduler = LogicalScheduler()
    spy = _Spy()
    barrier = _barrier(scheduler, spy)
    barrier.arrive("lower")
    barrier.cancel()

    scheduler.run()
    assert spy.both == 0
    assert spy.timeouts == []
    assert barrier.fired is None


def test_window_must_be_positive() -> None:
    with pytest.raises(ValueError):
        _barrier(LogicalScheduler(), _Spy(), window=0.0)

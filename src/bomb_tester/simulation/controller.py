"""Trial state machine for the Elitzur-Vaidman bomb tester."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from ..config import SimulationConfig, Waypoint
from ..errors import FatalTrialError, SchedulerError, TrialAlreadyRunningError
from .arm import ArmSimulator
from .barrier import RendezvousBarrier
from .coins import RandomCoin, RandomOutcomeProvider
from .events import (
    ArmStageCompleted,
    ArmStageStarted,
    ArmTerminated,
    BeamSplit,
    BombExploded,
    DetectorTriggered,
    EventStream,
    PhotonEmitted,
    Subscriber,
    TrialEvent,
    TrialFailed,
    TrialResolved,
    TrialStarted,
)
from .resolver import DetectionResolver
from .scheduler import Cancellable, LogicalScheduler, Scheduler
from .state import Arm, Outcome, Stage, TerminationReason, TrialContext, TrialState

LOGGER = logging.getLogger("bomb tester.controller")

RECOMBINATION = "recombination"
DETECTION = "detection"

_DETECTORS = (Waypoint.DETECTOR_A, Waypoint.DETECTOR_B)


class _TrialHooks:
    """Arm observer bound to one trial; goes silent once the trial is superseded."""

    def __init__(self, controller: "TrialController", context: TrialContext) -> None:
        self._controller = controller
        self._context = context

    @property
    def live(self) -> bool:
        return self._controller._context is self._context and not self._context.state.terminal

    def arm_stage_started(self, arm: ArmSimulator, stage: Stage) -> None:
        if self.live:
            self._controller._publish(
                ArmStageStarted,
                arm=arm.arm,
                from_waypoint=stage.start,
                to_waypoint=stage.end,
                logical_duration=stage.duration,
            )

    def arm_stage_completed(self, arm: ArmSimulator, stage: Stage) -> None:
        if self.live:
            self._controller._publish(ArmStageCompleted, arm=arm.arm, waypoint=stage.end)

    def arm_terminated(self, arm: ArmSimulator, reason: TerminationReason) -> None:
        # Terminations caused by resolution itself are still reported.
        if self._controller._context is self._context:
            self._controller._publish(ArmTerminated, arm=arm.arm, reason=reason)

    def arm_arrived(self, arm: ArmSimulator, stage: Stage) -> None:
        if self.live:
            self._controller._guarded(self._context, self._controller._on_arrival, arm, stage)

    def bomb_detonated(self, arm: ArmSimulator) -> None:
        if self.live:
            self._controller._guarded(self._context, self._controller._on_detonation, arm)


class TrialController:
    """Runs one interferometer trial at a time.

    Lifecycle: ``idle -> splitting -> propagating -> awaiting_recombination ->
    (awaiting_detection) -> resolved``. A broken rendezvous ends the trial in
    ``failed`` and the error is raised from :meth:`result`. :meth:`reset`
    returns to ``idle`` from anywhere, cancelling every pending timer.
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        *,
        coins: Optional[RandomOutcomeProvider] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.config = config or SimulationConfig()
        self.coins = coins if coins is not None else RandomCoin()
        self.scheduler = scheduler if scheduler is not None else LogicalScheduler()
        self.resolver = DetectionResolver(self.coins)
        self.events = EventStream()
        self._context: Optional[TrialContext] = None
        self._arms: Dict[Arm, ArmSimulator] = {}
        self._barriers: Dict[str, RendezvousBarrier] = {}
        self._timers: List[Cancellable] = []

    # ------------------------------------------------------------------ #
    # Public surface
    # ------------------------------------------------------------------ #

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return self.events.subscribe(callback)

    @property
    def context(self) -> Optional[TrialContext]:
        return self._context

    @property
    def state(self) -> TrialState:
        return TrialState.IDLE if self._context is None else self._context.state

    @property
    def arms(self) -> Dict[Arm, ArmSimulator]:
        return dict(self._arms)

    def start(self, bomb_present: bool) -> TrialContext:
        """Begin a trial; the photon leaves the source immediately."""

        if self.state is not TrialState.IDLE:
            raise TrialAlreadyRunningError(self.state)

        path_is_lower = self.coins.flip_coin()
        bomb_is_live = self.coins.flip_coin() if bomb_present else None
        context = TrialContext(
            bomb_present=bool(bomb_present),
            ground_truth_path_is_lower=path_is_lower,
            bomb_is_live=bomb_is_live,
        )
        context.advance(TrialState.SPLITTING)
        self._context = context
        LOGGER.debug(
            "trial_started | trial=%d | bomb_present=%s | bomb_is_live=%s | lower_path=%s",
            context.trial_id,
            context.bomb_present,
            context.bomb_is_live,
            context.ground_truth_path_is_lower,
        )
        self._publish(TrialStarted, bomb_present=context.bomb_present)
        if self._context is not context:
            # A subscriber reset the controller.
            return context

        duration = self.config.stage_duration(Waypoint.SOURCE, Waypoint.BEAM_SPLITTER)
        self._timers.append(
            self.scheduler.call_later(
                duration, self._guarded, context, self._on_split, context
            )
        )
        self._publish(
            PhotonEmitted,
            from_waypoint=Waypoint.SOURCE,
            to_waypoint=Waypoint.BEAM_SPLITTER,
            logical_duration=duration,
        )
        return context

    def reset(self) -> None:
        """Discard the current trial and everything still scheduled for it."""

        previous = self._context
        for arm in self._arms.values():
            arm.kill(notify=False)
        for barrier in self._barriers.values():
            barrier.cancel()
        for timer in self._timers:
            timer.cancel()
        self._arms = {}
        self._barriers = {}
        self._timers = []
        self._context = None
        if previous is not None:
            LOGGER.debug("trial_reset | trial=%d | state=%s", previous.trial_id, previous.state)

    def result(self) -> Outcome:
        """Outcome of the current trial, or the fatal error that ended it."""

        context = self._context
        if context is None:
            raise SchedulerError("No trial has been started.")
        if context.error is not None:
            raise context.error
        if context.outcome is None:
            raise SchedulerError(f"Trial {context.trial_id} has not resolved yet ({context.state}).")
        return context.outcome

    def run(self, bomb_present: bool) -> Outcome:
        """Start a trial and drive a :class:`LogicalScheduler` until it settles."""

        if not isinstance(self.scheduler, LogicalScheduler):
            raise SchedulerError("run() needs a LogicalScheduler; use run_trial_async instead.")
        if self.state.terminal:
            self.reset()
        self.start(bomb_present)
        self.scheduler.run()
        return self.result()

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    def _on_split(self, context: TrialContext) -> None:
        context.advance(TrialState.PROPAGATING)
        self._publish(BeamSplit)
        if self._context is not context:
            return
        hooks = _TrialHooks(self, context)
        upper = ArmSimulator.for_trial(Arm.UPPER, context, self.config, self.scheduler, hooks)
        lower = ArmSimulator.for_trial(Arm.LOWER, context, self.config, self.scheduler, hooks)
        upper.sibling, lower.sibling = lower, upper
        self._arms = {Arm.UPPER: upper, Arm.LOWER: lower}
        upper.start()
        lower.start()

    def _on_arrival(self, arm: ArmSimulator, stage: Stage) -> None:
        context = self._require_context()
        if stage.end is Waypoint.RECOMBINATOR:
            if context.state is TrialState.PROPAGATING:
                context.advance(TrialState.AWAITING_RECOMBINATION)
            barrier = self._barrier(RECOMBINATION, context, self._on_recombined)
        elif stage.end in _DETECTORS:
            barrier = self._barrier(DETECTION, context, self._on_detected)
        else:
            raise ValueError(f"{stage.end} is not a rendezvous point.")
        barrier.arrive(arm.arm)

    def _on_recombined(self, context: TrialContext) -> None:
        outcome = self.resolver.at_recombination(context)
        if outcome is not None:
            self._resolve(context, outcome)
            return
        context.advance(TrialState.AWAITING_DETECTION)
        LOGGER.debug("trial_awaiting_detection | trial=%d", context.trial_id)
        for arm in self._arms.values():
            if arm.alive and arm.held:
                arm.resume()

    def _on_detected(self, context: TrialContext) -> None:
        self._resolve(context, self.resolver.at_detection(context))

    def _on_detonation(self, arm: ArmSimulator) -> None:
        context = self._require_context()
        self._publish(BombExploded)
        self._resolve(context, Outcome.EXPLODED)

    def _on_timeout(self, context: TrialContext, error: FatalTrialError) -> None:
        self._fail(context, error)

    def _resolve(self, context: TrialContext, outcome: Outcome) -> None:
        context.resolve(outcome)
        self._settle()
        if outcome.detector is not None:
            self._publish(DetectorTriggered, detector=outcome.detector)
        LOGGER.info(
            "trial_resolved | trial=%d | outcome=%s | verdict=%s",
            context.trial_id,
            outcome.value,
            outcome.verdict,
        )
        self._publish(TrialResolved, outcome=outcome)

    def _fail(self, context: TrialContext, error: FatalTrialError) -> None:
        LOGGER.error(
            "trial_failed | trial=%d | state=%s | error=%s", context.trial_id, context.state, error
        )
        context.fail(error)
        self._settle()
        self._publish(TrialFailed, error=error)

    def _settle(self) -> None:
        for arm in self._arms.values():
            arm.kill()
        for barrier in self._barriers.values():
            barrier.cancel()
        for timer in self._timers:
            timer.cancel()
        self._timers = []

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _guarded(self, context: TrialContext, callback: Callable[..., Any], *args: Any) -> None:
        """Run ``callback`` for ``context`` unless that trial is stale or over."""

        if self._context is not context or context.state.terminal:
            LOGGER.debug("stale_callback_ignored | trial=%d", context.trial_id)
            return
        try:
            callback(*args)
        except FatalTrialError as exc:
            if not context.state.terminal:
                self._fail(context, exc)
            else:
                raise

    def _barrier(
        self,
        name: str,
        context: TrialContext,
        on_both_arrived: Callable[[TrialContext], None],
    ) -> RendezvousBarrier:
        barrier = self._barriers.get(name)
        if barrier is None:
            barrier = RendezvousBarrier(
                name,
                self.scheduler,
                window=self.config.rendezvous_window,
                on_both_arrived=lambda: self._guarded(context, on_both_arrived, context),
                on_timeout=lambda error: self._guarded(context, self._on_timeout, context, error),
            )
            self._barriers[name] = barrier
        return barrier

    def _require_context(self) -> TrialContext:
        if self._context is None:
            raise SchedulerError("No trial in flight.")
        return self._context

    def _publish(self, event_type: type, **fields: Any) -> None:
        context = self._require_context()
        event: TrialEvent = event_type(trial=context.trial_id, time=self.scheduler.now, **fields)
        self.events.publish(event)


async def run_trial_async(
    controller: TrialController,
    bomb_present: bool,
    *,
    timeout: Optional[float] = None,
) -> Outcome:
    """Run one trial on a controller driven by an asyncio-backed scheduler.

    ``timeout`` is in wall-clock seconds and guards against a trial that is
    reset from elsewhere while being awaited. When it expires the trial is
    reset so the controller can be reused, and :class:`asyncio.TimeoutError`
    propagates.
    """

    loop = asyncio.get_running_loop()
    settled: asyncio.Future[None] = loop.create_future()
    trial_ids: List[int] = []

    def _watch(event: TrialEvent) -> None:
        if not trial_ids or event.trial != trial_ids[0] or settled.done():
            return
        if isinstance(event, (TrialResolved, TrialFailed)):
            settled.set_result(None)

    unsubscribe = controller.subscribe(_watch)
    try:
        if controller.state.terminal:
            controller.reset()
        context = controller.start(bomb_present)
        trial_ids.append(context.trial_id)
        try:
            await asyncio.wait_for(settled, timeout)
        except asyncio.TimeoutError:
            if controller.context is context:
                LOGGER.warning(
                    "trial_wait_timeout | trial=%d | state=%s | timeout=%s",
                    context.trial_id,
                    context.state,
                    timeout,
                )
                controller.reset()
            raise
        return controller.result()
    finally:
        unsubscribe()


__all__ = ["DETECTION", "RECOMBINATION", "TrialController", "run_trial_async"]

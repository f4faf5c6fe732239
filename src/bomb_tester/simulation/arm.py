"""Stage-by-stage propagation of one interferometer arm."""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Tuple

from ..config import SimulationConfig, Waypoint
from .scheduler import Cancellable, Scheduler
from .state import Arm, Stage, TerminationReason, TrialContext

LOGGER = logging.getLogger("bomb tester.arm")


class ArmObserver(Protocol):
    """Receives an arm's progress; implemented by the trial controller."""

    def arm_stage_started(self, arm: "ArmSimulator", stage: Stage) -> None:
        ...

    def arm_stage_completed(self, arm: "ArmSimulator", stage: Stage) -> None:
        ...

    def arm_terminated(self, arm: "ArmSimulator", reason: TerminationReason) -> None:
        ...

    def arm_arrived(self, arm: "ArmSimulator", stage: Stage) -> None:
        """The arm reached a rendezvous point (recombinator or a detector)."""

    def bomb_detonated(self, arm: "ArmSimulator") -> None:
        ...


def plan_stages(arm: Arm, *, bomb_present: bool, config: SimulationConfig) -> Tuple[Stage, ...]:
    """Ordered legs travelled by ``arm`` from the beam splitter onwards."""

    if arm is Arm.UPPER:
        route = [Waypoint.BEAM_SPLITTER, Waypoint.UPPER_MIRROR, Waypoint.RECOMBINATOR]
        if bomb_present:
            route.append(Waypoint.DETECTOR_B)
    elif bomb_present:
        route = [
            Waypoint.BEAM_SPLITTER,
            Waypoint.BOMB,
            Waypoint.LOWER_MIRROR,
            Waypoint.RECOMBINATOR,
            Waypoint.DETECTOR_A,
        ]
    else:
        route = [Waypoint.BEAM_SPLITTER, Waypoint.LOWER_MIRROR, Waypoint.RECOMBINATOR]
    return tuple(
        Stage(start=start, end=end, duration=config.stage_duration(start, end))
        for start, end in zip(route, route[1:])
    )


class ArmSimulator:
    """Drives one arm through its stages on a scheduler.

    Each ordinary stage completion is reported once and in order. The arm
    pauses after reaching the recombinator until :meth:`resume` is called, and
    stops producing completions as soon as it is killed. Rendezvous points are
    announced through ``ArmObserver.arm_arrived`` after the stage completion.
    Reaching a live bomb on the photon's true path detonates it: both arms die
    and the observer is told directly, skipping the stage completion.
    """

    def __init__(
        self,
        arm: Arm,
        context: TrialContext,
        stages: Tuple[Stage, ...],
        scheduler: Scheduler,
        observer: ArmObserver,
    ) -> None:
        if not stages:
            raise ValueError("An arm needs at least one stage.")
        self.arm = arm
        self.context = context
        self.stages = stages
        self.stage_index = 0
        self.alive = True
        self.termination: Optional[TerminationReason] = None
        self.sibling: Optional["ArmSimulator"] = None
        self._scheduler = scheduler
        self._observer = observer
        self._timer: Optional[Cancellable] = None
        self._held = False
        self._started = False

    @classmethod
    def for_trial(
        cls,
        arm: Arm,
        context: TrialContext,
        config: SimulationConfig,
        scheduler: Scheduler,
        observer: ArmObserver,
    ) -> "ArmSimulator":
        stages = plan_stages(arm, bomb_present=context.bomb_present, config=config)
        return cls(arm, context, stages, scheduler, observer)

    @property
    def held(self) -> bool:
        return self._held

    @property
    def current_stage(self) -> Optional[Stage]:
        if self.stage_index >= len(self.stages):
            return None
        return self.stages[self.stage_index]

    def start(self) -> None:
        if self._started:
            raise RuntimeError(f"{self.arm} arm already started.")
        self._started = True
        if self.alive:
            self._start_next()

    def resume(self) -> None:
        """Continue past the recombinator."""

        if not self._held:
            raise RuntimeError(f"{self.arm} arm is not waiting at a hold point.")
        self._held = False
        if self.alive:
            self._start_next()

    def kill(
        self, reason: TerminationReason = TerminationReason.KILLED, *, notify: bool = True
    ) -> None:
        """Stop the arm; pending stage timers are cancelled."""

        if not self.alive:
            return
        self.alive = False
        self._held = False
        self.termination = reason
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if notify:
            self._observer.arm_terminated(self, reason)

    def _start_next(self) -> None:
        stage = self.stages[self.stage_index]
        self._timer = self._scheduler.call_later(stage.duration, self._complete_stage, stage)
        self._observer.arm_stage_started(self, stage)

    def _complete_stage(self, stage: Stage) -> None:
        self._timer = None
        if not self.alive:
            return
        if stage.end is Waypoint.BOMB and self.context.explosion_possible:
            self._detonate()
            return

        self.stage_index += 1
        finished = self.stage_index >= len(self.stages)
        if finished:
            self.kill(TerminationReason.COMPLETED, notify=False)
        elif stage.holds:
            self._held = True
        self._observer.arm_stage_completed(self, stage)
        if finished:
            self._observer.arm_terminated(self, TerminationReason.COMPLETED)
        if finished or stage.holds:
            self._observer.arm_arrived(self, stage)
        # The observer may have resumed or killed the arm synchronously.
        if self.alive and not self._held and self._timer is None:
            self._start_next()

    def _detonate(self) -> None:
        LOGGER.debug("bomb_detonated | trial=%d | arm=%s", self.context.trial_id, self.arm)
        self.kill(TerminationReason.EXPLODED)
        if self.sibling is not None:
            self.sibling.kill(TerminationReason.KILLED)
        self._observer.bomb_detonated(self)


__all__ = ["ArmObserver", "ArmSimulator", "plan_stages"]

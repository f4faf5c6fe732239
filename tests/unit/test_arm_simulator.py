"""Stage propagation for a single interferometer arm."""

from __future__ import annotations

from typing import List, Tuple

import pytest

from bomb_tester.config import SimulationConfig, Waypoint
from bomb_tester.simulation.arm import ArmSimulator, plan_stages
from bomb_tester.simulation.scheduler import LogicalScheduler
from bomb_tester.simulation.state import Arm, Stage, TerminationReason, TrialContext


class _Observer:
    def __init__(self) -> None:
        self.started: List[Tuple[Arm, Waypoint]] = []
        self.completed: List[Tuple[Arm, Waypoint]] = []
        self.terminated: List[Tuple[Arm, TerminationReason]] = []
        self.arrived: List[Tuple[Arm, Waypoint]] = []
        self.detonations: List[Arm] = []

    def arm_stage_started(self, arm: ArmSimulator, stage: Stage) -> None:
        self.started.append((arm.arm, stage.end))

    def arm_stage_completed(self, arm: ArmSimulator, stage: Stage) -> None:
        self.completed.append((arm.arm, stage.end))

    def arm_terminated(self, arm: ArmSimulator, reason: TerminationReason) -> None:
        self.terminated.append((arm.arm, reason))

    def arm_arrived(self, arm: ArmSimulator, stage: Stage) -> None:
        self.arrived.append((arm.arm, stage.end))

    def bomb_detonated(self, arm: ArmSimulator) -> None:
        self.detonations.append(arm.arm)


def _route(stages: Tuple[Stage, ...]) -> List[Waypoint]:
    return [stages[0].start] + [stage.end for stage in stages]


def test_plan_stages_routes() -> None:
    config = SimulationConfig()
    assert _route(plan_stages(Arm.UPPER, bomb_present=False, config=config)) == [
        Waypoint.BEAM_SPLITTER,
        Waypoint.UPPER_MIRROR,
        Waypoint.RECOMBINATOR,
    ]
    assert _route(plan_stages(Arm.UPPER, bomb_present=True, config=config))[-1] is Waypoint.DETECTOR_B
    assert _route(plan_stages(Arm.LOWER, bomb_present=False, config=config)) == [
        Waypoint.BEAM_SPLITTER,
        Waypoint.LOWER_MIRROR,
        Waypoint.RECOMBINATOR,
    ]
    assert _route(plan_stages(Arm.LOWER, bomb_present=True, config=config)) == [
        Waypoint.BEAM_SPLITTER,
        Waypoint.BOMB,
        Waypoint.LOWER_MIRROR,
        Waypoint.RECOMBINATOR,
        Waypoint.DETECTOR_A,
    ]


def test_both_arms_reach_the_recombinator_together_on_the_default_bench() -> None:
    config = SimulationConfig()
    for bomb_present in (False, True):
        totals = []
        for arm in Arm:
            stages = plan_stages(arm, bomb_present=bomb_present, config=config)
            held = [stage for stage in stages if not stage.end.value.startswith("detector")]
            totals.append(sum(stage.duration for stage in held))
        assert totals[0] == pytest.approx(totals[1])


def test_lower_arm_with_dud_holds_at_recombinator_until_resumed() -> None:
    scheduler = LogicalScheduler()
    observer = _Observer()
    context = TrialContext(bomb_present=True, ground_truth_path_is_lower=True, bomb_is_live=False)
    arm = ArmSimulator.for_trial(Arm.LOWER, context, SimulationConfig(), scheduler, observer)

    arm.start()
    scheduler.run()

    assert [waypoint for _, waypoint in observer.completed] == [
        Waypoint.BOMB,
        Waypoint.LOWER_MIRROR,
        Waypoint.RECOMBINATOR,
    ]
    assert observer.arrived == [(Arm.LOWER, Waypoint.RECOMBINATOR)]
    assert arm.held and arm.alive
    assert scheduler.now == pytest.approx(1500.0)

    arm.resume()
    scheduler.run()

    assert observer.completed[-1] == (Arm.LOWER, Waypoint.DETECTOR_A)
    assert observer.arrived[-1] == (Arm.LOWER, Waypoint.DETECTOR_A)
    assert observer.terminated == [(Arm.LOWER, TerminationReason.COMPLETED)]
    assert not arm.alive
    assert arm.termination is TerminationReason.COMPLETED
    assert arm.current_stage is None


def test_live_bomb_on_true_path_detonates_and_kills_sibling() -> None:
    scheduler = LogicalScheduler()
    observer = _Observer()
    context = TrialContext(bomb_present=True, ground_truth_path_is_lower=True, bomb_is_live=True)
    config = SimulationConfig()
    upper = ArmSimulator.for_trial(Arm.UPPER, context, config, scheduler, observer)
    lower = ArmSimulator.for_trial(Arm.LOWER, context, config, scheduler, observer)
    upper.sibling, lower.sibling = lower, upper

    upper.start()
    lower.start()
    scheduler.run()

    assert observer.detonations == [Arm.LOWER]
    assert observer.terminated == [
        (Arm.LOWER, TerminationReason.EXPLODED),
        (Arm.UPPER, TerminationReason.KILLED),
    ]
    # The bomb stage itself is not reported as an ordinary completion.
    assert observer.completed == []
    assert observer.arrived == []
    assert not upper.alive and not lower.alive
    assert scheduler.pending == 0


def test_live_bomb_off_the_true_path_lets_the_photon_pass() -> None:
    scheduler = LogicalScheduler()
    observer = _Observer()
    context = TrialContext(bomb_present=True, ground_truth_path_is_lower=False, bomb_is_live=True)
    arm = ArmSimulator.for_trial(Arm.LOWER, context, SimulationConfig(), scheduler, observer)

    arm.start()
    scheduler.run()

    assert observer.detonations == []
    assert (Arm.LOWER, Waypoint.BOMB) in observer.completed
    assert arm.held


def test_killed_arm_stops_reporting() -> None:
    scheduler = LogicalScheduler()
    observer = _Observer()
    context = TrialContext(bomb_present=False, ground_truth_path_is_lower=False)
    arm = ArmSimulator.for_trial(Arm.UPPER, context, SimulationConfig(), scheduler, observer)

    arm.start()
    scheduler.advance(600.0)
    arm.kill()
    scheduler.run()

    assert observer.completed == [(Arm.UPPER, Waypoint.UPPER_MIRROR)]
    assert observer.terminated == [(Arm.UPPER, TerminationReason.KILLED)]
    assert scheduler.pending == 0


def test_resume_requires_a_hold() -> None:
    context = TrialContext(bomb_present=False, ground_truth_path_is_lower=False)
    arm = ArmSimulator.for_trial(
        Arm.UPPER, context, SimulationConfig(), LogicalScheduler(), _Observer()
    )
    with pytest.raises(RuntimeError):
        arm.resume()
    arm.start()
    with pytest.raises(RuntimeError):
        arm.start()

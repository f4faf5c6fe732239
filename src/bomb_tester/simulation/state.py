"""Per-trial state shared by the controller, arms and barriers."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..config import Waypoint
from ..errors import FatalTrialError


class TrialState(str, Enum):
    IDLE = "idle"
    SPLITTING = "splitting"
    PROPAGATING = "propagating"
    AWAITING_RECOMBINATION = "awaiting_recombination"
    AWAITING_DETECTION = "awaiting_detection"
    RESOLVED = "resolved"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (TrialState.RESOLVED, TrialState.FAILED)

    def __str__(self) -> str:
        return self.value


# Forward order of the lifecycle; a trial never moves backwards except on reset.
_STATE_ORDER = {state: index for index, state in enumerate(TrialState)}


class Arm(str, Enum):
    UPPER = "upper"
    LOWER = "lower"

    @property
    def other(self) -> "Arm":
        return Arm.LOWER if self is Arm.UPPER else Arm.UPPER

    def __str__(self) -> str:
        return self.value


class Detector(str, Enum):
    A = "A"
    B = "B"

    def __str__(self) -> str:
        return self.value


class Outcome(str, Enum):
    DETECTED_AT_A = "A"
    DETECTED_AT_B = "B"
    EXPLODED = "Boom!"

    @property
    def detector(self) -> Optional[Detector]:
        if self is Outcome.DETECTED_AT_A:
            return Detector.A
        if self is Outcome.DETECTED_AT_B:
            return Detector.B
        return None

    @property
    def verdict(self) -> str:
        """What an observer at the bench may conclude about the bomb."""

        return _VERDICTS[self]

    def __str__(self) -> str:
        return self.value


_VERDICTS = {
    Outcome.DETECTED_AT_A: "Possibly a dud",
    Outcome.DETECTED_AT_B: "It's live!",
    Outcome.EXPLODED: "Boom!",
}


class TerminationReason(str, Enum):
    COMPLETED = "completed"
    KILLED = "killed"
    EXPLODED = "exploded"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Stage:
    """One leg travelled by an arm."""

    start: Waypoint
    end: Waypoint
    duration: float

    @property
    def holds(self) -> bool:
        """Arms wait at the recombinator until both amplitudes have arrived."""

        return self.end is Waypoint.RECOMBINATOR


_TRIAL_IDS = itertools.count(1)


@dataclass(slots=True)
class TrialContext:
    """Facts and progress of one trial; replaced wholesale on every start."""

    bomb_present: bool
    ground_truth_path_is_lower: bool
    bomb_is_live: Optional[bool] = None
    state: TrialState = TrialState.IDLE
    outcome: Optional[Outcome] = None
    error: Optional[FatalTrialError] = None
    trial_id: int = field(default_factory=lambda: next(_TRIAL_IDS))

    def __post_init__(self) -> None:
        if self.bomb_present and self.bomb_is_live is None:
            raise ValueError("bomb_is_live must be drawn when a bomb is present.")
        if not self.bomb_present and self.bomb_is_live is not None:
            raise ValueError("bomb_is_live is undefined without a bomb.")

    @property
    def explosion_possible(self) -> bool:
        return bool(self.bomb_present and self.bomb_is_live and self.ground_truth_path_is_lower)

    def advance(self, state: TrialState) -> None:
        """Move forward in the lifecycle; terminal states are final."""

        if self.state.terminal:
            raise ValueError(f"Trial {self.trial_id} already {self.state}.")
        if _STATE_ORDER[state] < _STATE_ORDER[self.state]:
            raise ValueError(f"Trial {self.trial_id} cannot move from {self.state} to {state}.")
        self.state = state

    def resolve(self, outcome: Outcome) -> None:
        if self.outcome is not None:
            raise ValueError(f"Trial {self.trial_id} already resolved as {self.outcome}.")
        self.advance(TrialState.RESOLVED)
        self.outcome = outcome

    def fail(self, error: FatalTrialError) -> None:
        self.advance(TrialState.FAILED)
        self.error = error


__all__ = [
    "Arm",
    "Detector",
    "Outcome",
    "Stage",
    "TerminationReason",
    "TrialContext",
    "TrialState",
]

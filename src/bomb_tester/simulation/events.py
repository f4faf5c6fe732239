"""Trial event vocabulary consumed by renderers and recorders."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from ..config import Waypoint
from ..errors import FatalTrialError
from .state import Arm, Detector, Outcome, TerminationReason

LOGGER = logging.getLogger("bomb tester.events")

E = TypeVar("E", bound="TrialEvent")


@dataclass(frozen=True, slots=True)
class TrialEvent:
    """Common envelope: owning trial id and logical emission time."""

    trial: int
    time: float

    @property
    def kind(self) -> str:
        return _snake_case(type(self).__name__)

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind}
        for item in fields(self):
            value = getattr(self, item.name)
            if isinstance(value, FatalTrialError):
                value = f"{type(value).__name__}: {value}"
            elif hasattr(value, "value"):
                value = value.value
            payload[item.name] = value
        return payload


@dataclass(frozen=True, slots=True)
class TrialStarted(TrialEvent):
    bomb_present: bool


@dataclass(frozen=True, slots=True)
class PhotonEmitted(TrialEvent):
    from_waypoint: Waypoint
    to_waypoint: Waypoint
    logical_duration: float


@dataclass(frozen=True, slots=True)
class BeamSplit(TrialEvent):
    pass


@dataclass(frozen=True, slots=True)
class ArmStageStarted(TrialEvent):
    arm: Arm
    from_waypoint: Waypoint
    to_waypoint: Waypoint
    logical_duration: float


@dataclass(frozen=True, slots=True)
class ArmStageCompleted(TrialEvent):
    arm: Arm
    waypoint: Waypoint


@dataclass(frozen=True, slots=True)
class ArmTerminated(TrialEvent):
    arm: Arm
    reason: TerminationReason


@dataclass(frozen=True, slots=True)
class DetectorTriggered(TrialEvent):
    detector: Detector


@dataclass(frozen=True, slots=True)
class BombExploded(TrialEvent):
    pass


@dataclass(frozen=True, slots=True)
class TrialResolved(TrialEvent):
    outcome: Outcome


@dataclass(frozen=True, slots=True)
class TrialFailed(TrialEvent):
    error: FatalTrialError


Subscriber = Callable[[TrialEvent], None]


class EventStream:
    """Ordered fan-out of trial events to subscribers.

    Subscribers observe only; an exception raised by one is logged and does
    not reach the simulation or the remaining subscribers.
    """

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, event: TrialEvent) -> None:
        for callback in tuple(self._subscribers):
            try:
                callback(event)
            except Exception:
                LOGGER.warning(
                    "subscriber_failed | event=%s | subscriber=%r",
                    event.kind,
                    callback,
                    exc_info=True,
                )

    def __len__(self) -> int:
        return len(self._subscribers)


class RecordingRenderer:
    """Collects every event it sees; handy for tests and offline replay."""

    def __init__(self) -> None:
        self.events: List[TrialEvent] = []

    def __call__(self, event: TrialEvent) -> None:
        self.events.append(event)

    def of_type(self, kind: Type[E], *, trial: Optional[int] = None) -> List[E]:
        return [
            event
            for event in self.events
            if isinstance(event, kind) and (trial is None or event.trial == trial)
        ]

    def kinds(self, *, trial: Optional[int] = None) -> List[str]:
        return [event.kind for event in self.events if trial is None or event.trial == trial]

    def clear(self) -> None:
        self.events.clear()


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


__all__ = [
    "ArmStageCompleted",
    "ArmStageStarted",
    "ArmTerminated",
    "BeamSplit",
    "BombExploded",
    "DetectorTriggered",
    "EventStream",
    "PhotonEmitted",
    "RecordingRenderer",
    "Subscriber",
    "TrialEvent",
    "TrialFailed",
    "TrialResolved",
    "TrialStarted",
]

"""Trial-by-trial results table and outcome tallies."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import FatalTrialError
from .controller import TrialController
from .events import TrialEvent, TrialFailed, TrialResolved
from .state import Outcome

LOGGER = logging.getLogger("bomb tester.history")

FAILED_LABEL = "Failed"


@dataclass(frozen=True, slots=True)
class TrialRecord:
    """One row of the results table."""

    number: int
    trial: int
    bomb_present: bool
    bomb_is_live: Optional[bool]
    outcome: Optional[Outcome]
    error: Optional[str] = None

    @property
    def result_label(self) -> str:
        return self.outcome.value if self.outcome is not None else FAILED_LABEL

    def as_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "trial": self.trial,
            "bomb_present": self.bomb_present,
            "bomb_is_live": self.bomb_is_live,
            "result": self.result_label,
            "verdict": self.outcome.verdict if self.outcome is not None else None,
            "error": self.error,
        }


class TrialHistory:
    """Accumulates a record for every trial a controller settles."""

    def __init__(self) -> None:
        self.records: List[TrialRecord] = []

    def attach(self, controller: TrialController) -> Callable[[], None]:
        """Record trials settled by ``controller`` until the returned hook is called."""

        def _on_event(event: TrialEvent) -> None:
            if not isinstance(event, (TrialResolved, TrialFailed)):
                return
            context = controller.context
            if context is None or context.trial_id != event.trial:
                return
            self.records.append(
                TrialRecord(
                    number=len(self.records) + 1,
                    trial=event.trial,
                    bomb_present=context.bomb_present,
                    bomb_is_live=context.bomb_is_live,
                    outcome=event.outcome if isinstance(event, TrialResolved) else None,
                    error=str(event.error) if isinstance(event, TrialFailed) else None,
                )
            )

        return controller.subscribe(_on_event)

    @property
    def failures(self) -> int:
        return sum(1 for record in self.records if record.outcome is None)

    def counts(self) -> Dict[Outcome, int]:
        tally = {outcome: 0 for outcome in Outcome}
        for record in self.records:
            if record.outcome is not None:
                tally[record.outcome] += 1
        return tally

    def frequencies(self) -> Dict[Outcome, float]:
        tally = self.counts()
        resolved = sum(tally.values())
        if resolved == 0:
            return {outcome: 0.0 for outcome in Outcome}
        return {outcome: count / resolved for outcome, count in tally.items()}

    def rows(self) -> List[Tuple[int, str]]:
        """``(trial #, result)`` pairs with results ``A``, ``B`` or ``Boom!``."""

        return [(record.number, record.result_label) for record in self.records]

    def summary(self) -> Dict[str, Any]:
        return {
            "trials": len(self.records),
            "failures": self.failures,
            "counts": {outcome.value: count for outcome, count in self.counts().items()},
            "frequencies": {
                outcome.value: round(freq, 6) for outcome, freq in self.frequencies().items()
            },
        }

    def __len__(self) -> int:
        return len(self.records)


def run_batch(
    controller: TrialController,
    trials: int,
    *,
    bomb_present: bool,
    history: Optional[TrialHistory] = None,
    continue_on_failure: bool = False,
) -> TrialHistory:
    """Run ``trials`` sequential trials, resetting the controller between them.

    A fatal rendezvous failure propagates unless ``continue_on_failure`` is
    set, in which case it is logged and kept in the history as a failed row.
    """

    if trials < 0:
        raise ValueError("trials must be non-negative.")
    history = history if history is not None else TrialHistory()
    detach = history.attach(controller)
    try:
        for index in range(trials):
            controller.reset()
            try:
                controller.run(bomb_present)
            except FatalTrialError as exc:
                if not continue_on_failure:
                    raise
                LOGGER.warning("batch_trial_failed | index=%d | error=%s", index, exc)
        controller.reset()
    finally:
        detach()
    return history


__all__ = ["FAILED_LABEL", "TrialHistory", "TrialRecord", "run_batch"]

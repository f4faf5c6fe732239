"""Interference rules mapping rendezvous facts to an outcome."""

from __future__ import annotations

from typing import Optional

from .coins import RandomOutcomeProvider
from .state import Outcome, TrialContext


def resolve_recombination(context: TrialContext) -> Optional[Outcome]:
    """Outcome once both amplitudes reach the recombinator.

    Without a bomb the arms interfere constructively towards A and
    destructively towards B. With a bomb nothing is decided yet and ``None``
    asks for the detection rendezvous.
    """

    if not context.bomb_present:
        return Outcome.DETECTED_AT_A
    return None


def resolve_detection(context: TrialContext, coins: RandomOutcomeProvider) -> Outcome:
    """Outcome once both detector candidates have been reached.

    A dud leaves interference intact, so A is certain. A live bomb that did not
    explode carried which-path information: the final coin sends the photon to
    A (inconclusive) or B (bomb proven live without touching it). The coin is
    only drawn on that branch.
    """

    if not context.bomb_present or not context.bomb_is_live:
        return Outcome.DETECTED_AT_A
    return Outcome.DETECTED_AT_A if coins.flip_coin() else Outcome.DETECTED_AT_B


class DetectionResolver:
    """Binds the resolution rules to a coin source."""

    def __init__(self, coins: RandomOutcomeProvider) -> None:
        self.coins = coins

    def at_recombination(self, context: TrialContext) -> Optional[Outcome]:
        return resolve_recombination(context)

    def at_detection(self, context: TrialContext) -> Outcome:
        return resolve_detection(context, self.coins)


__all__ = ["DetectionResolver", "resolve_detection", "resolve_recombination"]

"""Interference rules applied at each rendezvous."""

from __future__ import annotations

import pytest

from bomb_tester.simulation.coins import ScriptedCoin
from bomb_tester.simulation.resolver import (
    DetectionResolver,
    resolve_detection,
    resolve_recombination,
)
from bomb_tester.simulation.state import Outcome, TrialContext


@pytest.mark.parametrize("lower", [True, False])
def test_recombination_without_bomb_always_lands_in_a(lower: bool) -> None:
    context = TrialContext(bomb_present=False, ground_truth_path_is_lower=lower)
    assert resolve_recombination(context) is Outcome.DETECTED_AT_A


def test_recombination_with_bomb_defers_to_detection() -> None:
    context = TrialContext(bomb_present=True, ground_truth_path_is_lower=False, bomb_is_live=False)
    assert resolve_recombination(context) is None


def test_dud_bomb_is_detected_at_a_without_drawing() -> None:
    coin = ScriptedCoin([False])
    context = TrialContext(bomb_present=True, ground_truth_path_is_lower=False, bomb_is_live=False)

    assert resolve_detection(context, coin) is Outcome.DETECTED_AT_A
    assert coin.calls == 0


@pytest.mark.parametrize(
    ("draw", "expected"),
    [(True, Outcome.DETECTED_AT_A), (False, Outcome.DETECTED_AT_B)],
)
def test_live_bomb_draws_the_final_coin_once(draw: bool, expected: Outcome) -> None:
    coin = ScriptedCoin([draw])
    resolver = DetectionResolver(coin)
    context = TrialContext(bomb_present=True, ground_truth_path_is_lower=False, bomb_is_live=True)

    assert resolver.at_recombination(context) is None
    assert resolver.at_detection(context) is expected
    assert coin.calls == 1


def test_outcome_verdicts() -> None:
    assert Outcome.DETECTED_AT_A.verdict == "Possibly a dud"
    assert Outcome.DETECTED_AT_B.verdict == "It's live!"
    assert Outcome.EXPLODED.verdict == "Boom!"
    assert Outcome.EXPLODED.detector is None

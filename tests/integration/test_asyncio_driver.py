"""Trials driven by real asyncio timers instead of the logical clock."""

from __future__ import annotations

import asyncio

import pytest

from bomb_tester.config import build_simulation_config
from bomb_tester.errors import RendezvousTimeoutError
from bomb_tester.simulation import (
    AsyncioScheduler,
    Outcome,
    RecordingRenderer,
    ScriptedCoin,
    TrialController,
    TrialResolved,
    TrialStarted,
    TrialState,
    run_trial_async,
)

# 1e-4 s per logical unit: a full trial takes ~0.2 s of wall time.
SECONDS_PER_UNIT = 1e-4


def _controller(draws, **config) -> tuple[TrialController, RecordingRenderer]:
    window = config.pop("rendezvous_window", 400)
    controller = TrialController(
        build_simulation_config(config, rendezvous_window=window),
        coins=ScriptedCoin(draws),
        scheduler=AsyncioScheduler(seconds_per_unit=SECONDS_PER_UNIT),
    )
    recorder = RecordingRenderer()
    controller.subscribe(recorder)
    return controller, recorder


def test_async_trial_resolves_interaction_free() -> None:
    controller, recorder = _controller([False, True, False])

    outcome = asyncio.run(run_trial_async(controller, True, timeout=5.0))

    assert outcome is Outcome.DETECTED_AT_B
    assert controller.state is TrialState.RESOLVED
    assert recorder.kinds()[-1] == "trial_resolved"


def test_async_trials_can_run_back_to_back() -> None:
    controller, _ = _controller([True, True])

    async def _two() -> list[Outcome]:
        return [
            await run_trial_async(controller, True, timeout=5.0),
            await run_trial_async(controller, True, timeout=5.0),
        ]

    assert asyncio.run(_two()) == [Outcome.EXPLODED, Outcome.EXPLODED]


def test_async_rendezvous_timeout_surfaces() -> None:
    controller, _ = _controller(
        [True], rendezvous_window=50, layout={"upper_mirror": [200, 100]}
    )

    with pytest.raises(RendezvousTimeoutError):
        asyncio.run(run_trial_async(controller, False, timeout=5.0))
    assert controller.state is TrialState.FAILED


def test_wait_timeout_resets_the_controller_for_reuse() -> None:
    controller, recorder = _controller([True, True])

    async def _abandon_then_retry() -> Outcome:
        # Expires while the photon is still on its way to the beam splitter.
        with pytest.raises(asyncio.TimeoutError):
            await run_trial_async(controller, True, timeout=0.005)
        assert controller.state is TrialState.IDLE
        assert controller.arms == {}
        return await run_trial_async(controller, True, timeout=5.0)

    assert asyncio.run(_abandon_then_retry()) is Outcome.EXPLODED
    resolved = recorder.of_type(TrialResolved)
    assert len(resolved) == 1
    assert recorder.of_type(TrialStarted)[0].trial != resolved[0].trial

"""Discrete-event core of the interaction-free measurement trial."""

from __future__ import annotations

import importlib
from types import ModuleType
from typing import Dict, Iterable, Tuple

__all__ = [
    "Arm",
    "ArmObserver",
    "ArmSimulator",
    "ArmStageCompleted",
    "ArmStageStarted",
    "ArmTerminated",
    "AsyncioScheduler",
    "BeamSplit",
    "BombExploded",
    "DetectionResolver",
    "Detector",
    "DetectorTriggered",
    "EventStream",
    "LogicalScheduler",
    "Outcome",
    "PhotonEmitted",
    "RandomCoin",
    "RandomOutcomeProvider",
    "RecordingRenderer",
    "RendezvousBarrier",
    "ScriptedCoin",
    "Stage",
    "TerminationReason",
    "TrialContext",
    "TrialController",
    "TrialEvent",
    "TrialFailed",
    "TrialHistory",
    "TrialRecord",
    "TrialResolved",
    "TrialStarted",
    "TrialState",
    "plan_stages",
    "resolve_detection",
    "resolve_recombination",
    "run_batch",
    "run_trial_async",
]

_EXPORTS: Dict[str, Tuple[str, ...]] = {
    "arm": ("ArmObserver", "ArmSimulator", "plan_stages"),
    "barrier": ("RendezvousBarrier",),
    "coins": ("RandomCoin", "RandomOutcomeProvider", "ScriptedCoin"),
    "controller": ("TrialController", "run_trial_async"),
    "events": (
        "ArmStageCompleted",
        "ArmStageStarted",
        "ArmTerminated",
        "BeamSplit",
        "BombExploded",
        "DetectorTriggered",
        "EventStream",
        "PhotonEmitted",
        "RecordingRenderer",
        "TrialEvent",
        "TrialFailed",
        "TrialResolved",
        "TrialStarted",
    ),
    "history": ("TrialHistory", "TrialRecord", "run_batch"),
    "resolver": ("DetectionResolver", "resolve_detection", "resolve_recombination"),
    "scheduler": ("AsyncioScheduler", "LogicalScheduler"),
    "state": (
        "Arm",
        "Detector",
        "Outcome",
        "Stage",
        "TerminationReason",
        "TrialContext",
        "TrialState",
    ),
}


def _load_module(name: str) -> ModuleType:
    return importlib.import_module(f"bomb_tester.simulation.{name}")


def __getattr__(name: str):
    for module_name, symbols in _EXPORTS.items():
        if name in symbols:
            module = _load_module(module_name)
            return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> Iterable[str]:
    return sorted(set(__all__))

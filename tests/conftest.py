"""Pytest fixtures and path configuration for bomb tester tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from bomb_tester.simulation import (  # noqa: E402
    LogicalScheduler,
    RecordingRenderer,
    ScriptedCoin,
    TrialController,
)


@pytest.fixture
def scheduler() -> LogicalScheduler:
    return LogicalScheduler()


@pytest.fixture
def make_controller(scheduler: LogicalScheduler):
    """Build a controller on the shared scheduler with scripted draws and a recorder."""

    def _factory(draws: Iterable[bool], config=None):
        controller = TrialController(config, coins=ScriptedCoin(draws), scheduler=scheduler)
        recorder = RecordingRenderer()
        controller.subscribe(recorder)
        return controller, recorder

    return _factory

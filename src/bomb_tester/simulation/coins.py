"""Fair-coin sources feeding the trial's random draws."""

from __future__ import annotations

from typing import Iterable, Optional, Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class RandomOutcomeProvider(Protocol):
    """Supplies independent fair-coin draws.

    Draw order within a trial: ground-truth path (``True`` means the lower
    arm), bomb liveness (``True`` means live; only with a bomb present), then
    the final detector choice (``True`` means detector A; only for a live bomb
    that did not explode).
    """

    def flip_coin(self) -> bool:
        ...


class RandomCoin:
    """Unbiased coin backed by a NumPy ``Generator``."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def flip_coin(self) -> bool:
        return bool(self._rng.integers(0, 2))


class ScriptedCoin:
    """Deterministic coin replaying a fixed sequence of draws.

    The script repeats once exhausted so a batch of identical trials only needs
    a single trial's worth of draws.
    """

    def __init__(self, draws: Iterable[bool]) -> None:
        self.script = tuple(bool(draw) for draw in draws)
        if not self.script:
            raise ValueError("ScriptedCoin requires at least one draw.")
        self.calls = 0

    def flip_coin(self) -> bool:
        draw = self.script[self.calls % len(self.script)]
        self.calls += 1
        return draw


__all__ = ["RandomCoin", "RandomOutcomeProvider", "ScriptedCoin"]

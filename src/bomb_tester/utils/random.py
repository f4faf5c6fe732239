"""Randomness helpers for reproducible trial batches."""

from __future__ import annotations

import os
import random
from typing import Optional

import numpy as np


def seed_everything(seed: Optional[int]) -> Optional[np.random.Generator]:
    """Seed Python and NumPy RNGs and return a fresh seeded ``Generator``.

    When ``seed`` is ``None`` nothing is touched and ``None`` is returned so
    callers can pass configuration values straight through.
    """

    if seed is None:
        return None

    value = int(seed)
    random.seed(value)
    os.environ["PYTHONHASHSEED"] = str(value)
    np.random.seed(value)
    return np.random.default_rng(value)

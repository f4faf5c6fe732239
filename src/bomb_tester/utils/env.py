"""Environment helpers for resolving repository-local .env files."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_REPO_ROOT = Path(__file__).resolve().parents[3]


@lru_cache(maxsize=1)
def load_repo_dotenv() -> bool:
    """Load the .env file at the repository root once."""

    env_path = _REPO_ROOT / ".env"
    if not env_path.exists():
        return False
    load_dotenv(env_path, override=False)
    return True


def env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    """Read an integer environment variable, falling back to ``default`` when unset."""

    load_repo_dotenv()
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}.") from exc


__all__ = ["env_int", "load_repo_dotenv"]

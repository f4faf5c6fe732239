"""Utility helpers for logging, environment, and reproducibility."""

from .env import env_int, load_repo_dotenv
from .logging import configure_logging, resolve_log_level
from .random import seed_everything

__all__ = [
    "configure_logging",
    "env_int",
    "load_repo_dotenv",
    "resolve_log_level",
    "seed_everything",
]

"""Logging setup for trial runs."""

from __future__ import annotations

import logging
from logging import Logger
from typing import Iterable, Optional, Union

ROOT_LOGGER_NAME = "bomb tester"


def resolve_log_level(level: Union[int, str, None], default: int = logging.INFO) -> int:
    """Accept ``logging`` constants or names such as ``"debug"``."""

    if level is None or level == "":
        return default
    if isinstance(level, int):
        return level
    candidate = logging.getLevelName(str(level).strip().upper())
    if isinstance(candidate, int):
        return candidate
    raise ValueError(f"Unknown log level: {level!r}")


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    name: str = ROOT_LOGGER_NAME,
    propagate: bool = False,
    extra_loggers: Optional[Iterable[str]] = None,
) -> Logger:
    """Configure and return a logger instance, optionally binding extra loggers.

    Parameters
    ----------
    level: int | str
        Logging verbosity.
    name: str
        Logical logger namespace. Module loggers live below ``"bomb tester"``.
    """

    resolved = resolve_log_level(level)
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    handler.setFormatter(formatter)

    def _attach(target: Logger) -> None:
        if not any(isinstance(existing, logging.StreamHandler) for existing in target.handlers):
            target.addHandler(handler)
        target.setLevel(resolved)
        target.propagate = propagate

    logger = logging.getLogger(name)
    _attach(logger)

    if extra_loggers:
        for logger_name in extra_loggers:
            _attach(logging.getLogger(logger_name))

    return logger

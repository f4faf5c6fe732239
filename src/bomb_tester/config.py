"""Simulation configuration for the interferometer bench."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

from .errors import ConfigurationError

Point = Tuple[float, float]

DEFAULT_RENDEZVOUS_WINDOW = 100.0
DEFAULT_PHOTON_VELOCITY = 0.3


class Waypoint(str, Enum):
    """Named optical elements a photon travels between."""

    SOURCE = "source"
    BEAM_SPLITTER = "beam_splitter"
    BOMB = "bomb"
    UPPER_MIRROR = "upper_mirror"
    LOWER_MIRROR = "lower_mirror"
    RECOMBINATOR = "recombinator"
    DETECTOR_A = "detector_a"
    DETECTOR_B = "detector_b"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class InterferometerLayout:
    """Centroid of every element on the bench.

    Coordinates only feed stage durations; nothing in the core depends on the
    picture they describe.
    """

    source: Point = (100.0, 300.0)
    beam_splitter: Point = (200.0, 300.0)
    bomb: Point = (300.0, 300.0)
    upper_mirror: Point = (200.0, 150.0)
    lower_mirror: Point = (500.0, 300.0)
    recombinator: Point = (500.0, 150.0)
    detector_a: Point = (600.0, 150.0)
    detector_b: Point = (500.0, 50.0)

    def point(self, waypoint: Waypoint) -> Point:
        return getattr(self, Waypoint(waypoint).value)

    def distance(self, start: Waypoint, end: Waypoint) -> float:
        (x0, y0), (x1, y1) = self.point(start), self.point(end)
        return math.hypot(x1 - x0, y1 - y0)

    def as_dict(self) -> Dict[str, list[float]]:
        return {item.name: list(getattr(self, item.name)) for item in fields(self)}

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "InterferometerLayout":
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise ConfigurationError(f"Unknown layout waypoints: {', '.join(unknown)}")
        coerced: Dict[str, Point] = {}
        for name, raw in payload.items():
            try:
                x, y = raw
                coerced[name] = (float(x), float(y))
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(
                    f"Waypoint '{name}' must be an (x, y) pair, got {raw!r}."
                ) from exc
        return cls(**coerced)


# Legs travelled during a trial; each must have a positive length.
BENCH_LEGS: Tuple[Tuple[Waypoint, Waypoint], ...] = (
    (Waypoint.SOURCE, Waypoint.BEAM_SPLITTER),
    (Waypoint.BEAM_SPLITTER, Waypoint.UPPER_MIRROR),
    (Waypoint.UPPER_MIRROR, Waypoint.RECOMBINATOR),
    (Waypoint.BEAM_SPLITTER, Waypoint.LOWER_MIRROR),
    (Waypoint.BEAM_SPLITTER, Waypoint.BOMB),
    (Waypoint.BOMB, Waypoint.LOWER_MIRROR),
    (Waypoint.LOWER_MIRROR, Waypoint.RECOMBINATOR),
    (Waypoint.RECOMBINATOR, Waypoint.DETECTOR_A),
    (Waypoint.RECOMBINATOR, Waypoint.DETECTOR_B),
)


@dataclass(slots=True)
class SimulationConfig:
    """Timing controls for a single trial.

    ``rendezvous_window`` is expressed in the same logical units as stage
    durations (distance divided by ``photon_velocity``).
    """

    rendezvous_window: float = DEFAULT_RENDEZVOUS_WINDOW
    photon_velocity: float = DEFAULT_PHOTON_VELOCITY
    layout: InterferometerLayout = field(default_factory=InterferometerLayout)

    def __post_init__(self) -> None:
        if isinstance(self.layout, Mapping):  # type: ignore[arg-type]
            self.layout = InterferometerLayout.from_mapping(self.layout)  # type: ignore[arg-type]
        self.rendezvous_window = float(self.rendezvous_window)
        self.photon_velocity = float(self.photon_velocity)
        if not self.rendezvous_window > 0.0:
            raise ConfigurationError("rendezvous_window must be positive.")
        if not self.photon_velocity > 0.0:
            raise ConfigurationError("photon_velocity must be positive.")
        for start, end in BENCH_LEGS:
            if self.layout.distance(start, end) <= 0.0:
                raise ConfigurationError(f"Leg {start} -> {end} has zero length.")

    def stage_duration(self, start: Waypoint, end: Waypoint) -> float:
        """Logical time a photon needs to travel from ``start`` to ``end``."""

        return self.layout.distance(start, end) / self.photon_velocity

    def as_dict(self) -> Dict[str, Any]:
        return {
            "rendezvous_window": self.rendezvous_window,
            "photon_velocity": self.photon_velocity,
            "layout": self.layout.as_dict(),
        }


def build_simulation_config(
    payload: Optional[Mapping[str, Any]] = None,
    *,
    rendezvous_window: Optional[float] = None,
    photon_velocity: Optional[float] = None,
) -> SimulationConfig:
    """Build a :class:`SimulationConfig` from a mapping plus keyword overrides."""

    data: Dict[str, Any] = dict(payload or {})
    allowed = {"rendezvous_window", "photon_velocity", "layout"}
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigurationError(f"Unknown simulation config keys: {', '.join(unknown)}")
    if rendezvous_window is not None:
        data["rendezvous_window"] = rendezvous_window
    if photon_velocity is not None:
        data["photon_velocity"] = photon_velocity
    layout = data.pop("layout", None) or {}
    if not isinstance(layout, Mapping):
        raise ConfigurationError(f"layout must be a mapping of waypoints, got {layout!r}.")
    try:
        return SimulationConfig(layout=InterferometerLayout.from_mapping(layout), **data)
    except (TypeError, ValueError) as exc:
        if isinstance(exc, ConfigurationError):
            raise
        raise ConfigurationError(str(exc)) from exc


# Top-level keys of a bench file that splits simulation and run settings.
CONFIG_SECTIONS = ("simulation", "run")


def read_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Parse a YAML bench file into a mapping; an empty file yields ``{}``."""

    with Path(path).open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Config file {path} must contain a mapping.")
    return dict(raw)


def simulation_section(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Pick the simulation payload out of a parsed bench file.

    Files using ``simulation``/``run`` sections contribute only the former;
    anything else is treated as a bare simulation payload.
    """

    if any(key in raw for key in CONFIG_SECTIONS):
        section = raw.get("simulation") or {}
        if not isinstance(section, Mapping):
            raise ConfigurationError(f"simulation section must be a mapping, got {section!r}.")
        return dict(section)
    return dict(raw)


def load_simulation_config(path: Union[str, Path], **overrides: Any) -> SimulationConfig:
    """Read a YAML file; the ``simulation`` section is used when present."""

    return build_simulation_config(simulation_section(read_config_file(path)), **overrides)


__all__ = [
    "BENCH_LEGS",
    "CONFIG_SECTIONS",
    "DEFAULT_PHOTON_VELOCITY",
    "DEFAULT_RENDEZVOUS_WINDOW",
    "InterferometerLayout",
    "Point",
    "SimulationConfig",
    "Waypoint",
    "build_simulation_config",
    "load_simulation_config",
    "read_config_file",
    "simulation_section",
]

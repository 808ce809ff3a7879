from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields

import numpy as np

from .errors import DimensionMismatch
from .region_index import RegionIndex
from .speed import ConvergenceController


@dataclass(frozen=True)
class SimulationConfig:
    points_per_curve: int = 64
    total_area: float = 1.0
    initial_speed: float = 1.0
    speed_decay: float = 0.5
    speed_floor: float = 1e-3
    speed_recovery: float = 1.0
    area_gain: float = 0.25
    spacing_weight: float = 0.5
    smoothing_weight: float = 0.25
    repulsion_weight: float = 0.05
    repulsion_ignore: int = 3
    max_step_ratio: float = 0.25
    min_region_ratio: float = 1e-6
    pressure_smoothing: int = 4
    min_piece_ratio: float = 0.01
    repair_attempts: int = 3
    freeze_radius: int = 2
    seed: int | None = None
    log_every: int = 100

    def __post_init__(self) -> None:
        for f in fields(self):
            if f.type == "float":
                object.__setattr__(self, f.name, float(getattr(self, f.name)))
        if self.points_per_curve < 16:
            raise ValueError("points_per_curve must be >= 16")
        if not self.total_area > 0:
            raise ValueError("total_area must be positive")
        if self.area_gain < 0:
            raise ValueError("area_gain must be >= 0")
        for name in ("spacing_weight", "smoothing_weight", "repulsion_weight"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.repulsion_ignore < 1:
            raise ValueError("repulsion_ignore must be >= 1")
        if not 0 < self.max_step_ratio <= 1:
            raise ValueError("max_step_ratio must be in (0, 1]")
        if self.min_region_ratio < 0:
            raise ValueError("min_region_ratio must be >= 0")
        if not 0 <= self.min_piece_ratio < 1:
            raise ValueError("min_piece_ratio must be in [0, 1)")
        for name in ("pressure_smoothing", "repair_attempts", "freeze_radius"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.log_every <= 0:
            raise ValueError("log_every must be positive")
        # speed fields are checked by the controller
        self.controller()

    def controller(self) -> ConvergenceController:
        return ConvergenceController(
            initial=self.initial_speed,
            decay=self.speed_decay,
            floor=self.speed_floor,
            recovery=self.speed_recovery,
        )

    @property
    def min_region_area(self) -> float:
        return self.total_area * self.min_region_ratio


@dataclass(frozen=True)
class StyleConfig:
    """Presentation options; never affect geometry."""

    colors: tuple[str, ...] | None = None
    opacity: float = 0.4
    border_width: float = 1.0
    show_size_labels: bool = True
    show_region_labels: bool = False
    show_legend: bool = True
    font_scale: float = 1.0
    width: float = 500.0

    def __post_init__(self) -> None:
        for f in fields(self):
            if f.type == "float":
                object.__setattr__(self, f.name, float(getattr(self, f.name)))
        if isinstance(self.colors, str):
            object.__setattr__(self, "colors", (self.colors,))
        elif self.colors is not None:
            object.__setattr__(self, "colors", tuple(str(c) for c in self.colors))
        if not 0.0 <= self.opacity <= 1.0:
            raise ValueError("opacity must be in [0, 1]")
        if self.border_width < 0:
            raise ValueError("border_width must be >= 0")
        if not self.font_scale > 0:
            raise ValueError("font_scale must be positive")
        if not self.width > 0:
            raise ValueError("width must be positive")

    @property
    def region_font_size(self) -> float:
        return 7.0 * self.font_scale

    @property
    def size_font_size(self) -> float:
        return 2.0 * self.region_font_size


@dataclass(frozen=True)
class SimulationState:
    cycles: int = 0
    speed: float = 1.0
    valid: bool = True
    fit_error: float = math.nan


@dataclass(frozen=True, eq=False)
class DiagramState:
    """
    One diagram value. Operations return updated copies; ``curves`` is a
    read-only (n, M, 2) array of closed counter-clockwise polygons.
    """

    set_names: tuple[str, ...]
    region_weights: tuple[float, ...]
    curves: np.ndarray
    simulation: SimulationState
    config: SimulationConfig
    style: StyleConfig
    diagram_id: str
    document: str | None = None
    element_index: Mapping[int, tuple] | None = None
    region_index: RegionIndex = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "region_index", RegionIndex(self.set_names))
        # views are copied too, their base may still be writeable
        if self.curves.flags.writeable or not self.curves.flags.owndata:
            curves = np.array(self.curves, dtype=np.float64, copy=True)
            curves.flags.writeable = False
            object.__setattr__(self, "curves", curves)

    @property
    def set_count(self) -> int:
        return len(self.set_names)

    @property
    def cycles(self) -> int:
        return self.simulation.cycles

    @property
    def speed(self) -> float:
        return self.simulation.speed

    @property
    def has_elements(self) -> bool:
        return self.element_index is not None


def check_weights(set_count: int, weights: Sequence[float]) -> tuple[float, ...]:
    """Validated weights as floats; raises DimensionMismatch on a wrong count."""
    if set_count < 1:
        raise ValueError("set_count must be >= 1")
    values = tuple(float(w) for w in weights)
    if len(values) != 2**set_count:
        raise DimensionMismatch(set_count, len(values))
    for w in values:
        check_weight(w)
    return values


def check_weight(value: float) -> float:
    value = float(value)
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"region weights must be finite and >= 0, got {value}")
    return value

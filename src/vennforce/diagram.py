from __future__ import annotations

import dataclasses
import uuid
from collections.abc import Hashable, Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

import numpy as np

from . import elements, simulator
from .geometry import orient_ccw
from .init_curves import points_for_sets, sample_init_curves
from .region_index import RegionSpec
from .regions import decompose_regions
from .render_svg import render_svg
from .state import (
    DiagramState,
    SimulationConfig,
    SimulationState,
    StyleConfig,
    check_weight,
    check_weights,
)
from ..utils import debug, debug_helpers

__all__ = [
    "create_diagram",
    "create_diagram_from_sets",
    "simulate",
    "set_region_weight",
    "get_region_weight",
    "set_style",
    "render",
    "lookup_region",
    "list_regions",
    "region_areas",
    "save_svg",
]


def _new_state(
    set_names: tuple[str, ...],
    weights: tuple[float, ...],
    config: SimulationConfig | None,
    style: StyleConfig | None,
    element_index: Mapping[int, tuple] | None,
) -> DiagramState:
    config = SimulationConfig() if config is None else config
    style = StyleConfig() if style is None else style
    n = len(set_names)
    rng = np.random.default_rng(config.seed)
    m = points_for_sets(n, config.points_per_curve)
    X = orient_ccw(sample_init_curves(n, m, rng, total_area=config.total_area))
    debug_helpers.log_array("init_curves", X)
    return DiagramState(
        set_names=set_names,
        region_weights=weights,
        curves=X,
        simulation=SimulationState(speed=config.initial_speed),
        config=config,
        style=style,
        diagram_id=uuid.uuid4().hex[:8],
        element_index=element_index,
    )


def create_diagram(
    set_count: int,
    region_weights: Sequence[float],
    set_names: Sequence[str] | None = None,
    config: SimulationConfig | None = None,
    style: StyleConfig | None = None,
) -> DiagramState:
    """
    Low-level constructor from explicit region weights, indexed by region
    (bit i set = inside set i). Raises DimensionMismatch when
    ``len(region_weights) != 2 ** set_count``.
    """
    weights = check_weights(set_count, region_weights)
    if set_names is None:
        names = tuple(f"Group{i + 1}" for i in range(set_count))
    else:
        names = tuple(str(s) for s in set_names)
        if len(names) != set_count:
            raise ValueError(f"expected {set_count} set names, got {len(names)}")
    debug.log(f"create_diagram n={set_count} weights={weights}")
    return _new_state(names, weights, config, style, None)


def create_diagram_from_sets(
    sets: Mapping[str, Iterable[Hashable]] | Sequence[Iterable[Hashable]],
    set_names: Sequence[str | None] | None = None,
    config: SimulationConfig | None = None,
    style: StyleConfig | None = None,
) -> DiagramState:
    """
    High-level constructor from element lists. Region weights are region
    cardinalities and every element is remembered in its region.
    Lists without a name are called Group1, Group2, ... by position.
    """
    if isinstance(sets, Mapping):
        given: list[str | None] = [str(k) for k in sets.keys()]
        lists = [list(v) for v in sets.values()]
    else:
        given = [None] * len(sets)
        lists = [list(v) for v in sets]
    if set_names is not None:
        if len(set_names) != len(lists):
            raise ValueError(f"expected {len(lists)} set names, got {len(set_names)}")
        given = [None if s is None else str(s) for s in set_names]
    if not lists:
        raise ValueError("at least one set is required")

    names = tuple(
        name if name else f"Group{i + 1}" for i, name in enumerate(given)
    )
    weights, index = elements.build_element_index(lists)
    debug.log(f"create_diagram_from_sets names={names} weights={weights}")
    return _new_state(names, weights, config, style, index)


def simulate(state: DiagramState, cycles: int, render: bool = True) -> DiagramState:
    """
    Advance the layout by ``cycles`` cycles, resuming from the state's
    geometry. With ``render`` the returned state caches a fresh document.
    """
    new_state = simulator.run(state, cycles)
    if render and new_state.document is None:
        new_state = dataclasses.replace(new_state, document=render_svg(new_state))
    return new_state


def set_region_weight(
    state: DiagramState,
    region: RegionSpec,
    value: float,
) -> DiagramState:
    """
    Overwrite one region weight. Geometry is untouched and adapts on the next
    simulation; the cached document is dropped.
    """
    idx = state.region_index.to_index(region)
    value = check_weight(value)
    weights = list(state.region_weights)
    weights[idx] = value
    return dataclasses.replace(state, region_weights=tuple(weights), document=None)


def get_region_weight(state: DiagramState, region: RegionSpec) -> float:
    return state.region_weights[state.region_index.to_index(region)]


def set_style(state: DiagramState, **options: Any) -> DiagramState:
    """Return the state with some style options replaced and no cached document."""
    style = dataclasses.replace(state.style, **options)
    return dataclasses.replace(state, style=style, document=None)


def render(state: DiagramState, style: StyleConfig | None = None) -> str:
    if style is None and state.document is not None:
        return state.document
    return render_svg(state, style)


def lookup_region(state: DiagramState, region: RegionSpec) -> tuple:
    return elements.lookup(state, region)


def list_regions(
    state: DiagramState,
    include_empty: bool = False,
) -> dict[tuple[str, ...], tuple]:
    return elements.list_all(state, include_empty)


def region_areas(state: DiagramState) -> dict[int, float]:
    """Current enclosed area of every region except the outside one."""
    layout = decompose_regions(np.array(state.curves, dtype=np.float64))
    return {idx: float(layout.areas[idx]) for idx in range(1, len(layout.areas))}


def save_svg(state: DiagramState, path: str | Path) -> Path:
    out = Path(path)
    out.write_text(render(state), encoding="utf-8")
    return out

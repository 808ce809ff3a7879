from __future__ import annotations

import dataclasses
import time
from collections.abc import Sequence
from dataclasses import dataclass

import jax.numpy as jnp
import numpy as np
import optax  # type: ignore[reportMissingTypeStubs]
from beartype import beartype
from jaxtyping import jaxtyped

from .energy import regularization_forces
from .geometry import (
    segment_lengths,
    smooth_closed,
    split_normal_tangential,
    vertex_normals,
)
from .regions import RegionLayout, decompose_regions, vertex_regions
from .speed import ConvergenceController
from .state import DiagramState, SimulationConfig, SimulationState
from .topology import TopologySignature, Verdict, offending_vertices, signature, validate
from .types import NpCurves, NpRegionValues
from ..utils import debug, debug_helpers

__all__ = [
    "target_areas",
    "region_errors",
    "pressure_displacement",
    "regularization_displacement",
    "limit_step",
    "step",
    "run",
]


def target_areas(weights: Sequence[float], total_area: float) -> np.ndarray:
    """
    Target area per region index. The outside region (index 0) has no target;
    the others share ``total_area`` in proportion to their weights, or
    uniformly when every weight is zero.
    """
    w = np.asarray(weights, dtype=np.float64).copy()
    w[0] = 0.0
    total = float(np.sum(w))
    if total <= 0.0:
        w[1:] = 1.0
        total = float(len(w) - 1)
    return w * (total_area / total)


@jaxtyped(typechecker=beartype)
def region_errors(
    areas: NpRegionValues,
    targets: NpRegionValues,
    total_area: float,
) -> NpRegionValues:
    """Normalized area deficit (target - area) / total_area; zero outside."""
    e = (targets - areas) / total_area
    e[0] = 0.0
    return e


@jaxtyped(typechecker=beartype)
def pressure_displacement(
    X: NpCurves,
    normals: NpCurves,
    layout: RegionLayout,
    errors: NpRegionValues,
    config: SimulationConfig,
) -> NpCurves:
    """
    Push each vertex along its outward normal by the difference between the
    deficit of the region just inside its curve and the region just outside.
    Undersized regions expand, oversized ones contract. The pressure is
    smoothed along each curve so that it does not jump where a curve crosses
    another one.
    """
    inside, outside = vertex_regions(X, layout.polygons)
    p = smooth_closed(errors[inside] - errors[outside], config.pressure_smoothing)
    gain = config.area_gain * float(np.sqrt(config.total_area))
    return gain * p[..., None] * normals


@jaxtyped(typechecker=beartype)
def regularization_displacement(
    X: NpCurves,
    normals: NpCurves,
    config: SimulationConfig,
) -> NpCurves:
    """Even vertex spacing, mild smoothing and self-repulsion of each curve."""
    laplacian, repulsion = regularization_forces(X, ignore_k=config.repulsion_ignore)
    lap_n, lap_t = split_normal_tangential(laplacian, normals)
    return (
        config.spacing_weight * lap_t
        + config.smoothing_weight * lap_n
        + config.repulsion_weight * repulsion
    )


@jaxtyped(typechecker=beartype)
def limit_step(D: NpCurves, max_delta: float) -> NpCurves:
    """Zero non-finite entries and clip every coordinate to +-max_delta."""
    tx = optax.chain(optax.zero_nans(), optax.clip(max_delta))
    D_j = jnp.asarray(D)
    updates, _ = tx.update(D_j, tx.init(D_j))
    return np.asarray(updates, dtype=np.float64)


@dataclass(frozen=True)
class _Cycle:
    curves: np.ndarray
    layout: RegionLayout
    signature: TopologySignature
    speed: float
    valid: bool
    repaired: bool = False


def _cycle(
    X: np.ndarray,
    layout: RegionLayout,
    sig: TopologySignature,
    weights: Sequence[float],
    targets: np.ndarray,
    piece_floor: np.ndarray,
    speed: float,
    config: SimulationConfig,
    controller: ConvergenceController,
) -> _Cycle:
    """
    Try the full step first. When it fails, freeze the vertices that caused
    the failure and retry with the rest, then fall back to regularization
    alone. Only when all of that fails is the step rolled back and speed
    reduced.
    """
    errors = region_errors(layout.areas, targets, config.total_area)
    normals = vertex_normals(X)
    D_reg = regularization_displacement(X, normals, config)
    D = pressure_displacement(X, normals, layout, errors, config) + D_reg
    max_delta = config.max_step_ratio * float(np.mean(segment_lengths(X)))
    delta = limit_step(speed * D, max_delta)

    def check(candidate: np.ndarray) -> Verdict:
        return validate(candidate, sig, weights, config.min_region_area, piece_floor)

    frozen = np.zeros(X.shape[:2], dtype=bool)
    for attempt in range(config.repair_attempts + 1):
        candidate = X + np.where(frozen[..., None], 0.0, delta)
        verdict = check(candidate)
        if verdict.valid:
            return _Cycle(
                candidate, verdict.layout, verdict.signature, speed, True, attempt > 0
            )
        grown = frozen | offending_vertices(
            X, candidate, layout, verdict, radius=config.freeze_radius
        )
        if grown.all() or not (grown & ~frozen).any():
            break
        frozen = grown

    candidate = X + limit_step(speed * D_reg, max_delta)
    verdict = check(candidate)
    if verdict.valid:
        return _Cycle(candidate, verdict.layout, verdict.signature, speed, True, True)
    return _Cycle(X, layout, sig, controller.on_invalid_step(speed), False)


def _fit_error(layout: RegionLayout, targets: np.ndarray, total_area: float) -> float:
    return float(np.sum(np.abs(region_errors(layout.areas, targets, total_area))))


def _advance(state: DiagramState, cycles: int, speed: float) -> DiagramState:
    config = state.config
    controller = config.controller()
    weights = state.region_weights
    targets = target_areas(weights, config.total_area)

    X = np.array(state.curves, dtype=np.float64, copy=True)
    layout = decompose_regions(X)
    piece_floor = config.min_piece_ratio * targets
    sig = signature(layout, config.min_region_area, piece_floor)
    valid = state.simulation.valid
    repaired = 0
    rejected = 0
    start_time = time.perf_counter()

    for t in range(cycles):
        result = _cycle(
            X, layout, sig, weights, targets, piece_floor, speed, config, controller
        )
        X, layout, sig, speed, valid = (
            result.curves,
            result.layout,
            result.signature,
            result.speed,
            result.valid,
        )
        if not valid:
            rejected += 1
        elif result.repaired:
            repaired += 1
        if debug.is_verbose() and ((t % config.log_every) == 0 or t == cycles - 1):
            debug.log(
                f"cycle {state.cycles + t + 1:6d} "
                f"fit_error={_fit_error(layout, targets, config.total_area):.6g} "
                f"speed={speed:.4g} repaired={repaired} rejected={rejected}"
            )

    if debug.is_verbose():
        debug_helpers.log_regions(
            "region_areas", {i: float(a) for i, a in enumerate(layout.areas) if i}
        )
        debug.log(
            f"ran {cycles} cycles in {time.perf_counter() - start_time:.3f}s "
            f"repaired={repaired} rejected={rejected}"
        )

    simulation = SimulationState(
        cycles=state.cycles + cycles,
        speed=speed,
        valid=valid,
        fit_error=_fit_error(layout, targets, config.total_area),
    )
    return dataclasses.replace(
        state, curves=X, simulation=simulation, document=None
    )


def step(state: DiagramState) -> DiagramState:
    """Run exactly one simulation cycle."""
    return _advance(state, 1, state.speed)


def run(state: DiagramState, cycles: int) -> DiagramState:
    """
    Run ``cycles`` cycles starting from the state's current geometry.

    Speed is pulled back toward its initial value once per call, so repeated
    short runs recover from an earlier slowdown. Zero cycles is a no-op.
    """
    if cycles < 0:
        raise ValueError("cycles must be >= 0")
    if cycles == 0:
        return state
    speed = state.config.controller().on_fresh_run(state.speed)
    return _advance(state, cycles, speed)

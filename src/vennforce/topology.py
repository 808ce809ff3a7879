from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import shapely
from beartype import beartype
from jaxtyping import jaxtyped
from shapely.geometry import Polygon

from .geometry import segment_lengths, self_crossing_vertices
from .regions import (
    RegionLayout,
    decompose_regions,
    polygon_parts,
    region_components,
    vertex_regions,
)
from .types import NpCurves, NpRegionValues, NpVertexMask


@dataclass(frozen=True)
class TopologySignature:
    """Which regions exist, and in how many connected pieces."""

    present: frozenset[int]
    components: dict[int, int]


def signature(
    layout: RegionLayout,
    min_area: float,
    piece_floor: NpRegionValues | None = None,
) -> TopologySignature:
    """
    Regions with area above ``min_area`` are present. With a per-region
    ``piece_floor``, only pieces larger than the floor count as separate
    components, so a sliver pinched off a region is not a split.
    """
    components = region_components(layout, min_area)
    if piece_floor is not None:
        for idx in components:
            big = polygon_parts(layout.geoms[idx], float(piece_floor[idx]))
            components[idx] = max(1, len(big))
    return TopologySignature(present=frozenset(components), components=components)


@jaxtyped(typechecker=beartype)
def non_simple_curves(X: NpCurves) -> tuple[int, ...]:
    """Indices of curves that are not finite, simple polygons with positive area."""
    bad = []
    for i, x in enumerate(X):
        if not np.isfinite(x).all():
            bad.append(i)
            continue
        poly = Polygon(x)
        if not poly.is_valid or poly.area <= 0.0:
            bad.append(i)
    return tuple(bad)


@jaxtyped(typechecker=beartype)
def curves_are_simple(X: NpCurves) -> bool:
    return not non_simple_curves(X)


def inconsistent_regions(
    before: TopologySignature,
    after: TopologySignature,
    weights: Sequence[float],
) -> tuple[int, ...]:
    """
    Regions with positive weight that vanished or split into more pieces.
    Zero-weight regions are free to do either.
    """
    bad = []
    for idx in sorted(before.present):
        if weights[idx] <= 0.0:
            continue
        if idx not in after.present or after.components[idx] > before.components[idx]:
            bad.append(idx)
    return tuple(bad)


def is_consistent(
    before: TopologySignature,
    after: TopologySignature,
    weights: Sequence[float],
) -> bool:
    return not inconsistent_regions(before, after, weights)


@dataclass(frozen=True)
class Verdict:
    """
    Outcome of validating one curve arrangement.

    layout and signature are set whenever the curves themselves are simple,
    so an accepted candidate does not have to be decomposed again.
    """

    valid: bool
    bad_curves: tuple[int, ...] = ()
    failed_regions: tuple[int, ...] = ()
    layout: RegionLayout | None = None
    signature: TopologySignature | None = None


def validate(
    X: np.ndarray,
    reference: TopologySignature | None = None,
    weights: Sequence[float] | None = None,
    min_area: float = 0.0,
    piece_floor: np.ndarray | None = None,
) -> Verdict:
    """
    Check the curves, then (given a reference signature) that no region with
    positive weight vanished or split relative to the reference.
    """
    bad = non_simple_curves(X)
    if bad:
        return Verdict(valid=False, bad_curves=bad)
    layout = decompose_regions(X)
    sig = signature(layout, min_area, piece_floor)
    if reference is None:
        return Verdict(valid=True, layout=layout, signature=sig)
    if weights is None:
        weights = [1.0] * (2 ** X.shape[0])
    failed = inconsistent_regions(reference, sig, weights)
    return Verdict(
        valid=not failed, failed_regions=failed, layout=layout, signature=sig
    )


def is_valid(
    X: np.ndarray,
    reference: TopologySignature | None = None,
    weights: Sequence[float] | None = None,
    min_area: float = 0.0,
) -> bool:
    """
    Legality of a curve arrangement. Without a reference only the curves
    themselves are checked; with one, the region structure must also stay
    consistent with it.
    """
    if reference is None:
        return curves_are_simple(X)
    return validate(X, reference, weights, min_area).valid


def _dilate(mask: np.ndarray, radius: int) -> np.ndarray:
    out = mask.copy()
    for s in range(1, radius + 1):
        out |= np.roll(mask, s, axis=1) | np.roll(mask, -s, axis=1)
    return out


def _near(geoms: list, x: np.ndarray, tol: float) -> np.ndarray:
    pts = shapely.points(x)
    hit = np.zeros(x.shape[0], dtype=bool)
    for geom in geoms:
        hit |= shapely.dwithin(geom, pts, tol)
    return hit


def _failed_geoms(before: RegionLayout, verdict: Verdict, idx: int) -> list:
    sig = verdict.signature
    if sig is None or idx not in sig.present or verdict.layout is None:
        # vanished: where it used to be
        return [before.geoms[idx]] if idx in before.geoms else []
    parts = sorted(polygon_parts(verdict.layout.geoms[idx]), key=lambda p: p.area)
    return list(parts[:-1])


@jaxtyped(typechecker=beartype)
def offending_vertices(
    X: NpCurves,
    candidate: NpCurves,
    before: RegionLayout,
    verdict: Verdict,
    radius: int = 2,
    tol: float | None = None,
) -> NpVertexMask:
    """
    Vertices whose move from X to candidate caused the verdict to fail,
    widened by ``radius`` vertices along each curve.

    A non-simple curve contributes the endpoints of its crossing segments, or
    all of its vertices when no crossing can be located. A vanished or split
    region contributes the vertices that changed membership near the piece
    that went missing, plus the closest vertex of every curve they crossed.
    """
    n, m, _ = X.shape
    mask = np.zeros((n, m), dtype=bool)

    for i in verdict.bad_curves:
        x = candidate[i]
        hit = self_crossing_vertices(x) if np.isfinite(x).all() else np.ones(m, bool)
        mask[i] = hit if hit.any() else True

    if verdict.failed_regions and verdict.layout is not None:
        if tol is None:
            tol = 2.0 * float(np.mean(segment_lengths(X)))
        inside_before, _ = vertex_regions(X, before.polygons)
        inside_after, _ = vertex_regions(candidate, verdict.layout.polygons)
        flipped = inside_before ^ inside_after
        changed = flipped != 0

        geoms = []
        for idx in verdict.failed_regions:
            geoms.extend(_failed_geoms(before, verdict, idx))
        near = np.zeros((n, m), dtype=bool)
        if geoms:
            for i in range(n):
                near[i] = _near(geoms, X[i], tol) | _near(geoms, candidate[i], tol)

        focus = changed & near
        if not focus.any():
            focus = changed if changed.any() else near
        for i, k in zip(*np.nonzero(focus)):
            for j in range(n):
                if j != i and (flipped[i, k] >> j) & 1:
                    d2 = np.sum((X[j] - X[i, k]) ** 2, axis=1)
                    focus[j, int(np.argmin(d2))] = True
        mask |= focus

    return _dilate(mask, radius)

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import shapely
from beartype import beartype
from jaxtyping import Float, jaxtyped
from shapely.geometry import MultiPolygon, Polygon, box
from shapely.geometry.base import BaseGeometry
from shapely.ops import polylabel

from .geometry import bounding_box
from .types import NpCurves, NpRegionIds


@dataclass(frozen=True)
class RegionLayout:
    """
    Planar decomposition of a set of closed curves.

    geoms: region index -> polygonal geometry, for every non-empty region
      inside the union (index 0, the unbounded outside, is not stored)
    areas: (2**n,) area per region index, areas[0] == 0
    """

    polygons: tuple[Polygon, ...]
    geoms: dict[int, BaseGeometry]
    areas: Float[np.ndarray, "R"]

    @property
    def n_sets(self) -> int:
        return len(self.polygons)


def curve_polygons(X: np.ndarray) -> tuple[Polygon, ...]:
    return tuple(Polygon(x) for x in X)


@jaxtyped(typechecker=beartype)
def decompose_regions(X: NpCurves) -> RegionLayout:
    """
    Split the plane into the 2**n membership regions by successive
    intersection/difference with each curve's polygon.
    X must hold valid simple polygons (see topology.curves_are_simple).
    """
    n = X.shape[0]
    polys = curve_polygons(X)
    minx, miny, maxx, maxy = bounding_box(X)
    pad = max(maxx - minx, maxy - miny)
    pieces: dict[int, BaseGeometry] = {
        0: box(minx - pad, miny - pad, maxx + pad, maxy + pad)
    }
    for i, poly in enumerate(polys):
        split: dict[int, BaseGeometry] = {}
        for idx, geom in pieces.items():
            inside = geom.intersection(poly)
            if not inside.is_empty:
                split[idx | (1 << i)] = inside
            outside = geom.difference(poly)
            if not outside.is_empty:
                split[idx] = outside
        pieces = split
    pieces.pop(0, None)

    areas = np.zeros(2**n, dtype=np.float64)
    for idx, geom in pieces.items():
        areas[idx] = geom.area
    return RegionLayout(polygons=polys, geoms=pieces, areas=areas)


def polygon_parts(geom: BaseGeometry, min_area: float = 0.0) -> list[Polygon]:
    """Polygonal pieces of a geometry with area above min_area."""
    if isinstance(geom, Polygon):
        parts = [geom]
    elif isinstance(geom, MultiPolygon):
        parts = list(geom.geoms)
    elif hasattr(geom, "geoms"):
        parts = [g for g in geom.geoms if isinstance(g, Polygon)]
        for g in geom.geoms:
            if isinstance(g, MultiPolygon):
                parts.extend(g.geoms)
    else:
        parts = []
    return [p for p in parts if p.area > min_area]


def region_components(layout: RegionLayout, min_area: float) -> dict[int, int]:
    """Number of connected pieces per present region."""
    counts: dict[int, int] = {}
    for idx, geom in layout.geoms.items():
        n_parts = len(polygon_parts(geom, min_area))
        if n_parts > 0:
            counts[idx] = n_parts
    return counts


def label_point(geom: BaseGeometry) -> tuple[float, float] | None:
    """Pole of inaccessibility of the largest piece, or None for empty regions."""
    parts = polygon_parts(geom)
    if not parts:
        return None
    largest = max(parts, key=lambda p: p.area)
    tol = max(np.sqrt(largest.area) * 0.01, 1e-9)
    pt = polylabel(largest, tolerance=tol)
    return float(pt.x), float(pt.y)


@jaxtyped(typechecker=beartype)
def vertex_regions(
    X: NpCurves,
    polygons: tuple[Polygon, ...],
) -> tuple[NpRegionIds, NpRegionIds]:
    """
    For every vertex of curve i, the region index just inside curve i and the
    region index just outside it, from the vertex's membership in the others.
    """
    n, m, _ = X.shape
    inside = np.zeros((n, m), dtype=np.int64)
    for i in range(n):
        bits = np.zeros(m, dtype=np.int64)
        x = X[i, :, 0]
        y = X[i, :, 1]
        for j, poly in enumerate(polygons):
            if j == i:
                continue
            hit = shapely.contains_xy(poly, x, y)
            bits |= np.where(hit, 1 << j, 0)
        inside[i] = bits | (1 << i)
    outside = inside & ~(np.int64(1) << np.arange(n, dtype=np.int64))[:, None]
    return inside, outside

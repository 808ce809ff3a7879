from __future__ import annotations

import numpy as np
from beartype import beartype
from jaxtyping import Bool, Float, jaxtyped

from .types import NpCurves, NpPerVertex


@jaxtyped(typechecker=beartype)
def curves_signed_area(X: NpCurves) -> Float[np.ndarray, "C"]:
    Xn = np.roll(X, -1, axis=1)
    cross = X[..., 0] * Xn[..., 1] - Xn[..., 0] * X[..., 1]
    return 0.5 * np.sum(cross, axis=-1)


@jaxtyped(typechecker=beartype)
def orient_ccw(X: NpCurves) -> NpCurves:
    """Reverse the vertex order of every clockwise curve."""
    out = np.array(X, dtype=np.float64, copy=True)
    areas = curves_signed_area(out)
    for i in np.nonzero(areas < 0.0)[0]:
        out[i] = out[i, ::-1]
    return out


@jaxtyped(typechecker=beartype)
def segment_lengths(X: NpCurves) -> NpPerVertex:
    """Length of segment k -> k+1 (wrapping) for every curve."""
    return np.linalg.norm(np.roll(X, -1, axis=1) - X, axis=-1)


@jaxtyped(typechecker=beartype)
def vertex_normals(X: NpCurves, eps: float = 1e-12) -> NpCurves:
    """
    Outward unit normals at the vertices of counter-clockwise closed curves.
    The tangent at vertex k is the central difference x[k+1] - x[k-1].
    """
    t = np.roll(X, -1, axis=1) - np.roll(X, 1, axis=1)
    n = np.stack([t[..., 1], -t[..., 0]], axis=-1)
    norm = np.linalg.norm(n, axis=-1, keepdims=True)
    return n / np.maximum(norm, eps)


@jaxtyped(typechecker=beartype)
def split_normal_tangential(
    V: NpCurves,
    normals: NpCurves,
) -> tuple[NpCurves, NpCurves]:
    """Split per-vertex vectors V into (normal, tangential) parts."""
    along = np.sum(V * normals, axis=-1, keepdims=True)
    v_n = along * normals
    return v_n, V - v_n


@jaxtyped(typechecker=beartype)
def bounding_box(X: NpCurves) -> tuple[float, float, float, float]:
    """(minx, miny, maxx, maxy) over all curves."""
    pts = X.reshape(-1, 2)
    minx, miny = pts.min(axis=0)
    maxx, maxy = pts.max(axis=0)
    return float(minx), float(miny), float(maxx), float(maxy)


@jaxtyped(typechecker=beartype)
def smooth_closed(values: NpPerVertex, passes: int) -> NpPerVertex:
    """Cyclic [1/4, 1/2, 1/4] smoothing along each curve, applied ``passes`` times."""
    out = np.array(values, dtype=np.float64, copy=True)
    for _ in range(passes):
        out = 0.5 * out + 0.25 * (np.roll(out, 1, axis=1) + np.roll(out, -1, axis=1))
    return out


def _orient(p: np.ndarray, q: np.ndarray, r: np.ndarray) -> np.ndarray:
    return (q[:, 0] - p[:, 0]) * (r[:, 1] - p[:, 1]) - (q[:, 1] - p[:, 1]) * (
        r[:, 0] - p[:, 0]
    )


@jaxtyped(typechecker=beartype)
def self_crossing_vertices(x: Float[np.ndarray, "M 2"]) -> Bool[np.ndarray, "M"]:
    """
    Endpoints of every segment of a closed polyline that crosses or touches
    a non-adjacent segment of the same polyline.
    """
    m = x.shape[0]
    a = x
    b = np.roll(x, -1, axis=0)
    ii, jj = np.triu_indices(m, k=2)
    # the first and last segments share vertex 0
    keep = ~((ii == 0) & (jj == m - 1))
    ii, jj = ii[keep], jj[keep]

    d1 = _orient(a[ii], b[ii], a[jj])
    d2 = _orient(a[ii], b[ii], b[jj])
    d3 = _orient(a[jj], b[jj], a[ii])
    d4 = _orient(a[jj], b[jj], b[ii])
    straddle = (d1 * d2 <= 0.0) & (d3 * d4 <= 0.0)
    lo_i, hi_i = np.minimum(a[ii], b[ii]), np.maximum(a[ii], b[ii])
    lo_j, hi_j = np.minimum(a[jj], b[jj]), np.maximum(a[jj], b[jj])
    overlap = np.all((lo_i <= hi_j) & (lo_j <= hi_i), axis=-1)
    hit = straddle & overlap

    out = np.zeros(m, dtype=bool)
    for seg in (ii[hit], jj[hit]):
        out[seg] = True
        out[(seg + 1) % m] = True
    return out

from __future__ import annotations

from typing import TypeAlias

import numpy as np
from beartype import beartype
from jaxtyping import Float, jaxtyped

BezierSegment: TypeAlias = tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]


@jaxtyped(typechecker=beartype)
def closed_polyline_to_cubic_beziers(
    points: Float[np.ndarray, "N 2"],
    *,
    handle_scale: float = 1.0,
    max_handle_ratio: float = 0.5,
) -> list[BezierSegment]:
    """Convert a closed polyline into cubic Bezier segments.

    The output interpolates the vertices and wraps around: segment i runs from
    points[i] to points[(i + 1) % N], so there are N segments.

    Catmull-Rom tangents with per-vertex clamping:
    - `handle_scale` controls smoothing (0 -> straight segments, 1 -> full Catmull-Rom).
    - `max_handle_ratio` caps each handle length to a fraction of the shorter
      adjacent segment, which keeps neighbouring curves from overshooting
      into each other.
    """

    P = np.asarray(points, dtype=np.float64)
    N = P.shape[0]
    if N < 3:
        raise ValueError("a closed polyline needs at least 3 points")
    if not np.isfinite(P).all():
        raise ValueError("points contains non-finite coordinates")
    if not np.isfinite(handle_scale) or handle_scale < 0:
        raise ValueError("handle_scale must be finite and >= 0")

    nxt = np.roll(P, -1, axis=0)
    prv = np.roll(P, 1, axis=0)
    m = 0.5 * (nxt - prv)

    s = float(handle_scale)
    if s > 0:
        seg_len = np.linalg.norm(nxt - P, axis=1)
        L = np.minimum(seg_len, np.roll(seg_len, 1))
        max_tan = (3.0 / s) * float(max_handle_ratio) * L
        tn = np.linalg.norm(m, axis=1)
        over = (tn > max_tan) & (tn > 1e-12)
        m[over] *= (max_tan[over] / tn[over])[:, None]
        m[L <= 1e-12] = 0.0

    segs: list[BezierSegment] = []
    for i in range(N):
        p0 = P[i]
        p3 = nxt[i]
        if s <= 0.0:
            segs.append((p0, p0.copy(), p3.copy(), p3))
            continue
        c1 = p0 + (s / 3.0) * m[i]
        c2 = p3 - (s / 3.0) * m[(i + 1) % N]
        segs.append((p0, c1, c2, p3))
    return segs


def beziers_to_svg_path_d(
    segs: list[BezierSegment],
    *,
    precision: int = 2,
    closed: bool = True,
) -> str:
    """Build an SVG path 'd' string from cubic Bezier segments."""

    if not segs:
        return ""
    fmt = ".{:d}f".format(int(precision))

    def f(x: float) -> str:
        return format(float(x), fmt)

    p0 = segs[0][0]
    parts = [f"M {f(p0[0])},{f(p0[1])}"]
    for _p0, c1, c2, p3 in segs:
        parts.append(
            f"C {f(c1[0])},{f(c1[1])} {f(c2[0])},{f(c2[1])} {f(p3[0])},{f(p3[1])}"
        )
    if closed:
        parts.append("Z")
    return " ".join(parts)

from __future__ import annotations

import numpy as np
from beartype import beartype
from jaxtyping import jaxtyped

from .types import NpCurves


def points_for_sets(n_sets: int, points_per_curve: int) -> int:
    """Vertex count per curve, enough to resolve the highest boundary frequency."""
    return max(points_per_curve, 16 * 2 ** max(n_sets - 2, 0))


@jaxtyped(typechecker=beartype)
def fan_radii(
    theta: np.ndarray,
    i: int,
    n_sets: int,
    p: float = 0.5,
) -> np.ndarray:
    """
    Polar radius of boundary i in the fan construction.

    The last boundary is the unit circle. Boundary i < n-1 oscillates around it
    with frequency 2**i and amplitude (n-i-1)/n, so the sign pattern of the
    oscillations over the dyadic sub-arcs of [0, 2pi) realizes every membership
    combination, and every one of the 2**n regions exists.
    """
    if i == n_sets - 1:
        return np.ones_like(theta, dtype=np.float64)
    # phase offset keeps the boundaries from sharing their zero crossings
    shift = 0.5 * (i + 1) / (n_sets + 1) * np.pi / 2 ** (n_sets - 1)
    base = np.sin(2**i * (theta - shift) - np.pi)
    amp = (n_sets - i - 1) / n_sets
    return 1.0 - amp * np.sign(base) * np.abs(base) ** p


@jaxtyped(typechecker=beartype)
def sample_init_curves(
    n_sets: int,
    m: int,
    rng: np.random.Generator,
    total_area: float = 1.0,
    p: float = 0.5,
) -> NpCurves:
    """
    Fresh initial geometry: n closed counter-clockwise curves forming a valid
    n-set Venn diagram, randomly rotated with sets randomly assigned to
    boundaries, scaled so that the union covers ``total_area``.
    Returns X: (n, m, 2).
    """
    if n_sets < 1:
        raise ValueError("n_sets must be >= 1")
    theta = np.linspace(0.0, 2.0 * np.pi, m, endpoint=False)
    radii = np.stack([fan_radii(theta, i, n_sets, p=p) for i in range(n_sets)])

    # union of star-shaped curves: 1/2 * integral of max(r)^2 dtheta
    union_area = float(np.pi * np.mean(np.max(radii, axis=0) ** 2))
    scale = np.sqrt(total_area / union_area)

    order = rng.permutation(n_sets)
    phi = theta + float(rng.random()) * 2.0 * np.pi
    X = np.zeros((n_sets, m, 2), dtype=np.float64)
    for set_idx, boundary in enumerate(order):
        r = scale * radii[boundary]
        X[set_idx, :, 0] = r * np.cos(phi)
        X[set_idx, :, 1] = r * np.sin(phi)
    return X

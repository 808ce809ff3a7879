from __future__ import annotations

from functools import partial
from typing import TypeAlias

import jax
import jax.numpy as jnp
import numpy as np
from beartype import beartype
from jax import Array
from jaxtyping import Float, jaxtyped

from .types import JaxCurves, JaxScalar, NpCurves

PointsM2: TypeAlias = Float[Array, "M 2"]
WeightsM: TypeAlias = Float[Array, "M"]


@jaxtyped(typechecker=beartype)
def spring_energy(X: JaxCurves) -> JaxScalar:
    """
    Quarter sum of squared segment lengths of closed curves. Its negative
    gradient at a vertex is the offset to the midpoint of its neighbours.
    """
    d = jnp.roll(X, -1, axis=1) - X
    return 0.25 * jnp.sum(d * d)


@jaxtyped(typechecker=beartype)
def closed_tangents_and_weights(
    x: PointsM2,
    eps: float = 1e-12,
) -> tuple[PointsM2, WeightsM]:
    """Unit tangents and dual arc-length weights at the vertices of a closed polyline."""
    d_prev = x - jnp.roll(x, 1, axis=0)
    d_next = jnp.roll(x, -1, axis=0) - x
    t_raw = d_prev + d_next
    t = t_raw / jnp.sqrt(jnp.sum(t_raw * t_raw, axis=-1, keepdims=True) + eps * eps)
    seglen = jnp.sqrt(jnp.sum(d_next * d_next, axis=-1) + eps * eps)
    w = 0.5 * (seglen + jnp.roll(seglen, 1))
    return t, w


@jaxtyped(typechecker=beartype)
def tangent_point_energy_closed(
    x: PointsM2,
    *,
    ignore_k: int = 3,
    eps2: float = 1e-12,
) -> JaxScalar:
    """
    Tangent-point energy of one closed curve (vertex discretization).
    Pairs closer than ignore_k steps along the curve are masked. The energy
    grows without bound as distant parts of the curve approach each other.
    """
    t, w = closed_tangents_and_weights(x)
    m = x.shape[0]
    ii, jj = jnp.triu_indices(m, k=1)
    dist = jj - ii
    keep = jnp.minimum(dist, m - dist) > ignore_k

    d = x[ii, :] - x[jj, :]
    r2 = jnp.sum(d * d, axis=-1) + eps2
    inv_r4 = 1.0 / (r2 * r2)
    td_i = jnp.sum(t[ii, :] * d, axis=-1)
    td_j = jnp.sum(t[jj, :] * d, axis=-1)
    contrib = w[ii] * w[jj] * ((r2 - td_i * td_i) + (r2 - td_j * td_j)) * inv_r4
    return jnp.sum(jnp.where(keep, contrib, jnp.zeros_like(contrib)))


@jaxtyped(typechecker=beartype)
def tangent_point_energy_curves(X: JaxCurves, *, ignore_k: int = 3) -> JaxScalar:
    """Sum of closed tangent-point energies over a batch of curves."""

    def per_curve(x: Array) -> Array:
        return tangent_point_energy_closed(x, ignore_k=ignore_k)

    return jnp.sum(jax.vmap(per_curve)(X))


@partial(jax.jit, static_argnames=("ignore_k",))
def _regularization_grads(X: Array, ignore_k: int) -> tuple[Array, Array]:
    g_spring = jax.grad(spring_energy)(X)
    g_tpe = jax.grad(lambda Y: tangent_point_energy_curves(Y, ignore_k=ignore_k))(X)
    return g_spring, g_tpe


@jaxtyped(typechecker=beartype)
def regularization_forces(
    X: NpCurves,
    *,
    ignore_k: int = 3,
) -> tuple[NpCurves, NpCurves]:
    """
    Returns (laplacian, repulsion), both (C, M, 2) float64:
      laplacian: offset of each vertex to its neighbours' midpoint
      repulsion: negative tangent-point gradient scaled by the squared mean
        segment length, so that it is expressed in length units
    """
    if 2 * ignore_k + 2 > X.shape[1]:
        raise ValueError("ignore_k too large for the number of vertices per curve")
    g_spring, g_tpe = _regularization_grads(jnp.asarray(X), ignore_k)
    seglen = np.linalg.norm(np.roll(X, -1, axis=1) - X, axis=-1)
    ds2 = float(np.mean(seglen)) ** 2
    laplacian = -np.asarray(g_spring, dtype=np.float64)
    repulsion = -ds2 * np.asarray(g_tpe, dtype=np.float64)
    return laplacian, repulsion

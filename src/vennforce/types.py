from __future__ import annotations

from typing import TypeAlias

import jax
import numpy as np
from jaxtyping import Bool, Float, Int

NpCurves: TypeAlias = Float[np.ndarray, "C M 2"]
NpPerVertex: TypeAlias = Float[np.ndarray, "C M"]
NpRegionIds: TypeAlias = Int[np.ndarray, "C M"]
NpVertexMask: TypeAlias = Bool[np.ndarray, "C M"]
NpRegionValues: TypeAlias = Float[np.ndarray, "R"]
JaxCurves: TypeAlias = Float[jax.Array, "C M 2"]
JaxScalar: TypeAlias = Float[jax.Array, ""]

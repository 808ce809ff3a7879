from __future__ import annotations

import numbers
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field

import numpy as np

from .errors import UnknownRegion

RegionSpec = (
    int | np.integer | str | Iterable[str] | Iterable[bool] | Iterable[int] | np.ndarray
)


def region_count(n_sets: int) -> int:
    return 2**n_sets


def iter_regions(n_sets: int, include_outside: bool = False) -> Iterator[int]:
    """Region indices in ascending order; index 0 (outside every set) is optional."""
    start = 0 if include_outside else 1
    return iter(range(start, region_count(n_sets)))


@dataclass(frozen=True)
class RegionIndex:
    """
    Maps set memberships to linear region indices and back.

    Bit i of an index is set iff the region lies inside set i, where i is the
    position of the set in ``set_names``.
    """

    set_names: tuple[str, ...]
    _bits: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if len(self.set_names) < 1:
            raise ValueError("at least one set is required")
        if len(set(self.set_names)) != len(self.set_names):
            raise ValueError(f"set names must be unique: {self.set_names}")
        object.__setattr__(
            self, "_bits", {name: i for i, name in enumerate(self.set_names)}
        )

    @property
    def n_sets(self) -> int:
        return len(self.set_names)

    @property
    def size(self) -> int:
        return region_count(self.n_sets)

    def to_index(self, membership: RegionSpec) -> int:
        if isinstance(membership, (bool, np.bool_)):
            raise UnknownRegion(membership, "a bare boolean is not a region")
        if isinstance(membership, np.ndarray) and membership.ndim == 0:
            return self.to_index(membership.item())
        if isinstance(membership, numbers.Integral):
            index = int(membership)
            if 0 <= index < self.size:
                return index
            raise UnknownRegion(membership, f"index outside [0, {self.size})")
        if isinstance(membership, str):
            names = [part.strip() for part in membership.split(",")]
            return self._from_names([n for n in names if n], membership)

        try:
            items = list(membership)
        except TypeError:
            raise UnknownRegion(membership, "not a region spec") from None
        if items and all(_is_flag(x) for x in items):
            if len(items) != self.n_sets:
                raise UnknownRegion(
                    membership,
                    f"membership vector has {len(items)} entries, "
                    f"expected {self.n_sets}",
                )
            return sum(1 << i for i, flag in enumerate(items) if flag)
        if not all(isinstance(x, str) for x in items):
            raise UnknownRegion(membership, "mixed names and flags")
        return self._from_names(items, membership)

    def to_membership(self, index: int) -> frozenset[str]:
        return frozenset(self.names_of(index))

    def names_of(self, index: int) -> tuple[str, ...]:
        """Set names of a region, in bit order."""
        if not 0 <= index < self.size:
            raise UnknownRegion(index, f"index outside [0, {self.size})")
        return tuple(name for i, name in enumerate(self.set_names) if index >> i & 1)

    def to_flags(self, index: int) -> tuple[bool, ...]:
        if not 0 <= index < self.size:
            raise UnknownRegion(index, f"index outside [0, {self.size})")
        return tuple(bool(index >> i & 1) for i in range(self.n_sets))

    def _from_names(self, names: Sequence[str], original: object) -> int:
        index = 0
        for name in names:
            bit = self._bits.get(name)
            if bit is None:
                raise UnknownRegion(original, f"no set named {name!r}")
            index |= 1 << bit
        return index


def _is_flag(value: object) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return True
    return isinstance(value, numbers.Integral) and int(value) in (0, 1)

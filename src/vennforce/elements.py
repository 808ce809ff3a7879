from __future__ import annotations

from collections.abc import Hashable, Iterable, Mapping, Sequence
from types import MappingProxyType

from .region_index import RegionSpec, iter_regions, region_count
from .state import DiagramState
from ..utils import debug_helpers


def build_element_index(
    sets: Sequence[Iterable[Hashable]],
) -> tuple[tuple[float, ...], Mapping[int, tuple]]:
    """
    Region weights and region -> elements mapping for n element lists.

    Each distinct element lands in exactly one region: the one whose bits are
    the lists it appears in. Elements keep their first-seen order and
    duplicates are dropped. The outside region (index 0) is always empty.
    """
    membership: dict[Hashable, int] = {}
    for bit, items in enumerate(sets):
        for item in items:
            membership[item] = membership.get(item, 0) | (1 << bit)

    n = len(sets)
    buckets: dict[int, list] = {idx: [] for idx in range(region_count(n))}
    for item, idx in membership.items():
        buckets[idx].append(item)

    weights = tuple(float(len(buckets[idx])) for idx in range(region_count(n)))
    index = MappingProxyType({idx: tuple(items) for idx, items in buckets.items()})
    return weights, index


def lookup(state: DiagramState, region: RegionSpec) -> tuple:
    """
    Elements of one region, in first-seen order. Empty for an empty region and
    for diagrams built from bare weights, which carry no elements.
    Raises UnknownRegion when the region does not resolve.
    """
    idx = state.region_index.to_index(region)
    if state.element_index is None:
        debug_helpers.log_once(
            "no-elements", "diagram carries no elements; region lookups are empty"
        )
        return ()
    return state.element_index.get(idx, ())


def list_all(
    state: DiagramState,
    include_empty: bool = False,
) -> dict[tuple[str, ...], tuple]:
    """
    Elements of every region except the outside one, keyed by the names of the
    sets the region lies in (bit order). Empty regions are left out unless
    ``include_empty``.
    """
    out: dict[tuple[str, ...], tuple] = {}
    if state.element_index is None:
        debug_helpers.log_once(
            "no-elements", "diagram carries no elements; region lookups are empty"
        )
        return out
    for idx in iter_regions(state.set_count):
        items = state.element_index.get(idx, ())
        if items or include_empty:
            out[state.region_index.names_of(idx)] = items
    return out

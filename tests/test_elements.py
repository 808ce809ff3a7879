import numpy as np
import pytest

from src.vennforce import (
    UnknownRegion,
    create_diagram,
    create_diagram_from_sets,
    get_region_weight,
    list_regions,
    lookup_region,
)
from src.vennforce.elements import build_element_index


def _abc_sets() -> dict[str, list[int]]:
    return {"A": [1, 2, 3], "B": [3, 4], "C": [1, 3, 5]}


def test_build_element_index_weights_are_cardinalities() -> None:
    weights, index = build_element_index([[1, 2, 3], [3, 4], [1, 3, 5]])
    assert len(weights) == 8
    assert weights[0] == 0.0
    for idx, items in index.items():
        assert weights[idx] == len(items)
    assert index[5] == (1,)
    assert index[7] == (3,)
    assert index[1] == (2,)
    assert index[2] == (4,)
    assert index[4] == (5,)
    assert index[3] == ()


def test_build_element_index_drops_duplicates_keeps_order() -> None:
    weights, index = build_element_index([["x", "y", "x"], ["z", "y"]])
    assert index[1] == ("x",)
    assert index[3] == ("y",)
    assert index[2] == ("z",)
    assert weights == (0.0, 1.0, 1.0, 1.0)


def test_lookup_by_names_and_index() -> None:
    state = create_diagram_from_sets(_abc_sets())
    assert lookup_region(state, "A,C") == (1,)
    assert lookup_region(state, ["A", "B", "C"]) == (3,)
    assert lookup_region(state, 7) == (3,)
    assert lookup_region(state, [False, True, False]) == (4,)
    assert lookup_region(state, "A,B") == ()
    assert get_region_weight(state, "A,C") == 1.0


def test_lookup_on_overlapping_abc_sets() -> None:
    state = create_diagram_from_sets({"A": [1, 2, 3], "B": [3, 4, 5], "C": [3, 6, 1]})
    assert lookup_region(state, "A,C") == (1,)
    assert lookup_region(state, "A,B,C") == (3,)
    assert lookup_region(state, "A") == (2,)
    assert lookup_region(state, "B") == (4, 5)
    assert lookup_region(state, "C") == (6,)
    assert lookup_region(state, "A,B") == ()
    assert lookup_region(state, "B,C") == ()
    assert get_region_weight(state, "B") == 2.0


def test_lookup_with_numpy_region_specs() -> None:
    state = create_diagram_from_sets(_abc_sets())
    assert lookup_region(state, np.int64(5)) == (1,)
    assert lookup_region(state, np.array([True, False, True])) == (1,)
    assert lookup_region(state, [np.True_, np.False_, np.True_]) == (1,)
    assert lookup_region(state, np.argmax([0, 0, 0, 0, 0, 0, 0, 9])) == (3,)
    with pytest.raises(UnknownRegion):
        lookup_region(state, np.int64(8))


def test_lookup_unknown_region_raises() -> None:
    state = create_diagram_from_sets(_abc_sets())
    with pytest.raises(UnknownRegion):
        lookup_region(state, "A,D")
    with pytest.raises(UnknownRegion):
        lookup_region(state, 8)


def test_list_regions_skips_empty_unless_asked() -> None:
    state = create_diagram_from_sets(_abc_sets())
    listed = list_regions(state)
    assert listed == {
        ("A",): (2,),
        ("B",): (4,),
        ("C",): (5,),
        ("A", "C"): (1,),
        ("A", "B", "C"): (3,),
    }
    full = list_regions(state, include_empty=True)
    assert len(full) == 2**3 - 1
    assert full[("A", "B")] == ()
    assert () not in full


def test_unnamed_sets_get_group_names() -> None:
    state = create_diagram_from_sets([["a", "b"], ["b"]])
    assert state.set_names == ("Group1", "Group2")
    assert lookup_region(state, "Group1,Group2") == ("b",)
    named = create_diagram_from_sets([["a"], ["b"]], set_names=["Left", None])
    assert named.set_names == ("Left", "Group2")


def test_low_level_diagram_has_no_elements() -> None:
    state = create_diagram(2, [0, 1, 2, 3])
    assert not state.has_elements
    assert lookup_region(state, 3) == ()
    assert list_regions(state) == {}
    with pytest.raises(UnknownRegion):
        lookup_region(state, "Group3")

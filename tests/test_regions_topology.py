import numpy as np
import pytest
from shapely.geometry import Point

from src.vennforce.geometry import orient_ccw
from src.vennforce.init_curves import points_for_sets, sample_init_curves
from src.vennforce.regions import (
    decompose_regions,
    label_point,
    region_components,
    vertex_regions,
)
from src.vennforce.topology import (
    curves_are_simple,
    inconsistent_regions,
    is_consistent,
    is_valid,
    non_simple_curves,
    offending_vertices,
    signature,
    validate,
)


def _circle(cx: float, cy: float = 0.0, r: float = 1.0, m: int = 64) -> np.ndarray:
    theta = np.linspace(0.0, 2.0 * np.pi, m, endpoint=False)
    return np.stack([cx + r * np.cos(theta), cy + r * np.sin(theta)], axis=1)


def _two_circles(offset: float = 1.0) -> np.ndarray:
    return np.stack([_circle(0.0), _circle(offset)])


def test_decompose_two_overlapping_circles() -> None:
    X = _two_circles()
    layout = decompose_regions(X)
    assert set(layout.geoms) == {1, 2, 3}
    assert layout.areas[0] == 0.0
    disk = layout.polygons[0].area
    assert np.isclose(layout.areas[1] + layout.areas[3], disk)
    assert np.isclose(layout.areas[2] + layout.areas[3], disk)
    assert np.isclose(layout.areas[1], layout.areas[2])


def test_decompose_disjoint_circles_have_no_overlap() -> None:
    layout = decompose_regions(_two_circles(offset=3.0))
    assert set(layout.geoms) == {1, 2}
    assert layout.areas[3] == 0.0


def test_region_components_counts_split_regions() -> None:
    # a thin bar crossing a diamond splits both one-set regions in two
    bar = np.array(
        [[-2.0, -0.1], [2.0, -0.1], [2.0, 0.1], [-2.0, 0.1]], dtype=np.float64
    )
    X = np.stack([_circle(0.0, m=4), bar])
    layout = decompose_regions(X)
    counts = region_components(layout, min_area=0.0)
    assert counts == {1: 2, 2: 2, 3: 1}
    # pieces below the area threshold are not counted
    assert region_components(layout, min_area=10.0) == {}


def test_label_point_inside_region() -> None:
    layout = decompose_regions(_two_circles())
    for geom in layout.geoms.values():
        anchor = label_point(geom)
        assert anchor is not None
        assert geom.contains(Point(*anchor))


def test_vertex_regions_inside_and_outside() -> None:
    X = _two_circles()
    layout = decompose_regions(X)
    inside, outside = vertex_regions(X, layout.polygons)
    # vertex 0 of circle 0 is at (1, 0): inside circle 1 as well
    assert inside[0, 0] == 3
    assert outside[0, 0] == 2
    # vertex at angle pi of circle 0 is at (-1, 0): only in circle 0
    assert inside[0, 32] == 1
    assert outside[0, 32] == 0
    assert ((inside >> np.arange(2)[:, None]) & 1).all()


@pytest.mark.parametrize("n", [1, 2, 3, 4, 5])
def test_initial_curves_realize_every_region(n: int) -> None:
    rng = np.random.default_rng(n)
    m = points_for_sets(n, 64)
    X = orient_ccw(sample_init_curves(n, m, rng, total_area=2.0))
    assert X.shape == (n, m, 2)
    assert curves_are_simple(X)
    layout = decompose_regions(X)
    assert set(layout.geoms) == set(range(1, 2**n))
    assert (layout.areas[1:] > 0).all()
    union = float(np.sum(layout.areas))
    assert np.isclose(union, 2.0, rtol=0.05)


def test_initial_curves_depend_on_seed() -> None:
    a = sample_init_curves(3, 64, np.random.default_rng(1))
    b = sample_init_curves(3, 64, np.random.default_rng(1))
    c = sample_init_curves(3, 64, np.random.default_rng(2))
    np.testing.assert_array_equal(a, b)
    assert not np.allclose(a, c)


def test_curves_are_simple_rejects_self_intersection() -> None:
    bowtie = np.array([[0.0, 0.0], [1.0, 1.0], [1.0, 0.0], [0.0, 1.0]], dtype=np.float64)
    square = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]], dtype=np.float64)
    assert curves_are_simple(square[None])
    assert not curves_are_simple(bowtie[None])
    bad = square.copy()
    bad[2, 0] = np.inf
    assert not curves_are_simple(bad[None])


def test_is_consistent_tracks_positive_weight_regions() -> None:
    before = signature(decompose_regions(_two_circles(1.0)), 0.0)
    apart = signature(decompose_regions(_two_circles(3.0)), 0.0)
    assert is_consistent(before, before, [0.0, 1.0, 1.0, 1.0])
    # the overlap vanishes: only legal if it carries no weight
    assert not is_consistent(before, apart, [0.0, 1.0, 1.0, 1.0])
    assert is_consistent(before, apart, [0.0, 1.0, 1.0, 0.0])


def test_is_valid_with_and_without_reference() -> None:
    X = _two_circles(1.0)
    ref = signature(decompose_regions(X), 0.0)
    assert is_valid(X)
    assert is_valid(X, reference=ref)
    assert not is_valid(_two_circles(3.0), reference=ref)
    assert is_valid(_two_circles(3.0), reference=ref, weights=[1.0, 1.0, 1.0, 0.0])


def test_non_simple_curves_names_the_broken_ones() -> None:
    X = np.stack([_circle(0.0), _circle(1.0), _circle(2.0)])
    assert non_simple_curves(X) == ()
    X[1, 10] = X[1, 40]
    X[2, 3, 1] = np.nan
    assert non_simple_curves(X) == (1, 2)


def test_small_pieces_are_not_counted_as_splits() -> None:
    # a bar across the top of a diamond cuts off its tip
    bar = np.array(
        [[-2.0, 0.6], [2.0, 0.6], [2.0, 0.8], [-2.0, 0.8]], dtype=np.float64
    )
    layout = decompose_regions(np.stack([_circle(0.0, m=4), bar]))
    assert signature(layout, 0.0).components[1] == 2

    floor = np.full(4, 0.1)
    sig = signature(layout, 0.0, piece_floor=floor)
    assert sig.components[1] == 1
    assert sig.present == frozenset({1, 2, 3})
    # everything below the floor still counts as one present region
    assert signature(layout, 0.0, piece_floor=np.full(4, 100.0)).components == {
        1: 1,
        2: 1,
        3: 1,
    }


def test_validate_reports_what_failed() -> None:
    X = _two_circles(1.0)
    ref = signature(decompose_regions(X), 0.0)
    ok = validate(X, ref, [0.0, 1.0, 1.0, 1.0])
    assert ok.valid
    assert ok.layout is not None and ok.signature == ref

    apart = validate(_two_circles(3.0), ref, [0.0, 1.0, 1.0, 1.0])
    assert not apart.valid
    assert apart.failed_regions == (3,)
    assert apart.bad_curves == ()
    assert inconsistent_regions(ref, apart.signature, [0.0, 1.0, 1.0, 1.0]) == (3,)

    broken = X.copy()
    broken[0, 10] = broken[0, 40]
    verdict = validate(broken, ref)
    assert not verdict.valid
    assert verdict.bad_curves == (0,)
    assert verdict.layout is None


def test_offending_vertices_follow_a_self_crossing() -> None:
    X = _two_circles(3.0)
    candidate = X.copy()
    # vertex 16 of curve 0 (top) dragged below the bottom arc
    candidate[0, 16] = [0.0, -1.5]
    verdict = validate(candidate)
    assert verdict.bad_curves == (0,)
    mask = offending_vertices(X, candidate, decompose_regions(X), verdict, radius=1)
    assert mask[0, 14:19].all()
    assert not mask[0, 32]
    assert not mask[1].any()


def test_offending_vertices_follow_a_vanished_overlap() -> None:
    X = _two_circles(1.9)
    before = decompose_regions(X)
    ref = signature(before, 0.0)
    candidate = _two_circles(2.1)
    verdict = validate(candidate, ref, [0.0, 1.0, 1.0, 1.0])
    assert verdict.failed_regions == (3,)
    mask = offending_vertices(X, candidate, before, verdict, radius=0)
    # the vertices that left the overlap, on both curves
    assert mask[0, 0]
    assert mask[1, 32]
    # the far sides stay free
    assert not mask[0, 32]
    assert not mask[1, 0]

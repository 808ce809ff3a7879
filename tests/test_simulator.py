import numpy as np
import pytest

from src.vennforce import (
    SimulationConfig,
    create_diagram,
    create_diagram_from_sets,
    region_areas,
)
from src.vennforce import topology
from src.vennforce.geometry import vertex_normals
from src.vennforce.regions import decompose_regions
from src.vennforce.simulator import (
    limit_step,
    pressure_displacement,
    region_errors,
    run,
    step,
    target_areas,
)
from src.vennforce.state import DiagramState


def _circle(cx: float, r: float = 1.0, m: int = 64) -> np.ndarray:
    theta = np.linspace(0.0, 2.0 * np.pi, m, endpoint=False)
    return np.stack([cx + r * np.cos(theta), r * np.sin(theta)], axis=1)


def test_target_areas_ignore_outside_and_normalize() -> None:
    t = target_areas([5.0, 1.0, 1.0, 2.0], total_area=2.0)
    np.testing.assert_allclose(t, [0.0, 0.5, 0.5, 1.0])


def test_target_areas_all_zero_is_uniform() -> None:
    t = target_areas([0.0] * 8, total_area=1.0)
    assert t[0] == 0.0
    np.testing.assert_allclose(t[1:], np.full(7, 1.0 / 7.0))


def test_region_errors_zero_outside() -> None:
    areas = np.array([0.0, 0.2, 0.3, 0.5])
    targets = np.array([9.0, 0.5, 0.3, 0.2])
    e = region_errors(areas, targets, 1.0)
    np.testing.assert_allclose(e, [0.0, 0.3, 0.0, -0.3])


def test_limit_step_clips_and_zeroes_nans() -> None:
    D = np.array([[[0.5, -3.0], [np.nan, 0.01]]], dtype=np.float64)
    out = limit_step(D, 0.1)
    np.testing.assert_allclose(out, [[[0.1, -0.1], [0.0, 0.01]]], atol=1e-7)


def test_pressure_grows_undersized_region() -> None:
    X = np.stack([_circle(0.0), _circle(1.0)])
    layout = decompose_regions(X)
    config = SimulationConfig()
    # the overlap is too small, the one-set regions too large
    errors = np.array([0.0, -0.1, -0.1, 0.2])
    D = pressure_displacement(X, vertex_normals(X), layout, errors, config)
    # vertex 0 of circle 0 bounds the overlap from inside: pushed outward
    assert D[0, 0, 0] > 0.0
    # vertex 32 of circle 0 only bounds set 0 against the outside: pulled in
    assert D[0, 32, 0] > 0.0
    # vertex 32 of circle 1 sits in the overlap too: pushed outward
    assert D[1, 32, 0] < 0.0


def test_step_runs_one_cycle_without_recovery() -> None:
    state = create_diagram(2, [0, 1, 2, 3], config=SimulationConfig(seed=1))
    out = step(state)
    assert out.cycles == 1
    assert np.isfinite(out.simulation.fit_error)
    assert out.curves.shape == state.curves.shape


def test_run_zero_is_identity_and_negative_rejected() -> None:
    state = create_diagram(2, [0, 1, 1, 1], config=SimulationConfig(seed=1))
    assert run(state, 0) is state
    with pytest.raises(ValueError):
        run(state, -3)


def test_rejected_steps_roll_back_and_slow_down(monkeypatch: pytest.MonkeyPatch) -> None:
    config = SimulationConfig(seed=2, speed_decay=0.5, speed_floor=0.1)
    state = create_diagram(2, [0, 1, 1, 1], config=config)
    # every candidate, frozen or not, is reported broken
    monkeypatch.setattr(topology, "non_simple_curves", lambda X: tuple(range(X.shape[0])))
    out = run(state, 5)
    assert out.cycles == 5
    assert not out.simulation.valid
    np.testing.assert_array_equal(out.curves, state.curves)
    assert out.speed == pytest.approx(0.1)


def test_broken_curve_is_frozen_while_the_rest_moves(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    state = create_diagram(2, [0, 1, 1, 1], config=SimulationConfig(seed=2))
    X0 = np.array(state.curves)
    original = topology.non_simple_curves

    def curve_zero_must_not_move(X: np.ndarray) -> tuple[int, ...]:
        if not np.array_equal(X[0], X0[0]):
            return (0,)
        return original(X)

    monkeypatch.setattr(topology, "non_simple_curves", curve_zero_must_not_move)
    out = step(state)
    assert out.simulation.valid
    assert out.speed == state.speed
    np.testing.assert_array_equal(out.curves[0], X0[0])
    assert not np.array_equal(out.curves[1], X0[1])


def _fit(state: DiagramState) -> float:
    config = state.config
    targets = target_areas(state.region_weights, config.total_area)
    areas = np.zeros(len(targets))
    for idx, a in region_areas(state).items():
        areas[idx] = a
    return float(np.sum(np.abs(region_errors(areas, targets, config.total_area))))


def _chunks(state: DiagramState, chunks: int, cycles: int) -> list[DiagramState]:
    out = [state]
    for _ in range(chunks):
        out.append(run(out[-1], cycles))
    return out


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_three_equal_sets_keep_improving_across_chunks(seed: int) -> None:
    state = create_diagram(3, [0] + [1] * 7, config=SimulationConfig(seed=seed))
    history = _chunks(state, 8, 50)
    fits = [_fit(s) for s in history]
    assert fits[-1] <= 0.5 * fits[0]
    assert len(set(fits[1:])) > 1
    # still moving at the end, not frozen at the speed floor
    assert not np.array_equal(history[-1].curves, history[-2].curves)
    assert history[-1].speed > history[-1].config.speed_floor

    inner = np.array(list(region_areas(history[-1]).values()))
    assert inner.min() > 0.0
    assert inner.max() / inner.min() <= 2.5


def test_zero_weight_overlap_shrinks() -> None:
    state = create_diagram(2, [0, 1, 1, 0], config=SimulationConfig(seed=0))
    start = region_areas(state)[3]
    assert start > 0.0
    history = _chunks(state, 6, 50)
    assert region_areas(history[-1])[3] < 0.3 * start
    assert _fit(history[-1]) < _fit(state)
    assert not np.array_equal(history[-1].curves, history[-3].curves)


def test_sets_with_empty_overlaps_keep_improving() -> None:
    state = create_diagram_from_sets(
        {"A": [1, 2, 3], "B": [3, 4, 5], "C": [3, 6, 1]},
        config=SimulationConfig(seed=1),
    )
    history = _chunks(state, 6, 50)
    fits = [_fit(s) for s in history]
    assert fits[-1] < fits[0]
    assert len(set(fits[1:])) > 1
    assert not np.array_equal(history[-1].curves, history[-2].curves)

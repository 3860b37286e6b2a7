import numpy as np
import pytest
import taichi as ti

from silo_flow.geometry import SiloGeometry, frustum_radius


def test_radius_is_constant_above_the_cone():
    g = SiloGeometry()
    assert g.max_radius_at(0.0) == pytest.approx(g.silo_radius)
    assert g.max_radius_at(2.0) == pytest.approx(g.silo_radius)


def test_radius_tapers_linearly_inside_the_cone():
    g = SiloGeometry()
    assert g.max_radius_at(g.cone_bottom) == pytest.approx(g.outlet_radius)
    halfway = g.cone_bottom / 2
    assert g.max_radius_at(halfway) == pytest.approx((g.silo_radius + g.outlet_radius) / 2)


def test_radius_below_the_cone_stays_at_the_outlet():
    g = SiloGeometry()
    assert g.max_radius_at(g.cone_bottom - 0.5) == pytest.approx(g.outlet_radius)
    assert g.max_radius_at(-1e6) == pytest.approx(g.outlet_radius)


def test_radius_accepts_arrays():
    g = SiloGeometry()
    ys = np.linspace(-3.0, 3.0, 50)
    r = g.max_radius_at(ys)
    assert r.shape == ys.shape
    assert np.all(np.diff(r) >= 0)
    assert r.min() == pytest.approx(g.outlet_radius)
    assert r.max() == pytest.approx(g.silo_radius)


def test_exit_and_kill_heights():
    g = SiloGeometry()
    assert g.cone_bottom == -g.cone_height
    assert g.outlet_exit_y == pytest.approx(g.cone_bottom - g.outlet_exit_drop)
    assert g.kill_y < g.outlet_exit_y


@pytest.mark.parametrize(
    "kwargs",
    [
        {"silo_radius": 0.0},
        {"outlet_radius": 1.5},
        {"wall_margin": 0.2},
        {"kill_y": -1.0},
        {"sentinel_y": -2.0},
        {"outlet_exit_drop": -0.1},
    ],
)
def test_rejects_impossible_shapes(kwargs):
    with pytest.raises(ValueError):
        SiloGeometry(**kwargs)


def test_kernel_radius_matches_python():
    g = SiloGeometry()
    ys = np.linspace(-2.5, 1.0, 64).astype(np.float32)
    out = np.zeros_like(ys)

    @ti.kernel
    def evaluate(ys: ti.types.ndarray(), out: ti.types.ndarray()):
        for i in range(ys.shape[0]):
            out[i] = frustum_radius(ys[i], g.silo_radius, g.outlet_radius, g.cone_height)

    evaluate(ys, out)
    np.testing.assert_allclose(out, g.max_radius_at(ys), atol=1e-5)

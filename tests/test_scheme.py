"""Tests for the operator-splitting scheme: sweeps, relaxation and invariants.

Test categories:
1. Parameter and buffer validation
2. Unit orientation and density floor after every step
3. Mass conservation with periodic boundaries
4. Agreement of the x- and y-sweeps on rotated data
5. HLLE positivity on a near-vacuum rarefaction
6. Degenerate momentum handling
"""

from __future__ import annotations

import itertools
import logging

import numpy as np
import pytest

from soh.constants import RHO_FLOOR
from soh.core.bases import StepReport
from soh.fluid.boundary import apply_bc_state
from soh.fluid.flux import FluxMethod, physical_flux
from soh.fluid.scheme import (
    FluxBuffers,
    SchemeParameters,
    SOHSolver,
    _flux_pass_x,
    _flux_pass_y,
    _relax_cell,
    interior_shape,
    scheme_iter,
)

POLICIES = ["periodic", "neumann", "reflecting"]
METHODS = ["roe", "hlle"]


# ====================================================
# Validation
# ====================================================

class TestSchemeParameters:
    """Construction-time checks of SchemeParameters."""

    def test_normalizes_names(self, make_params):
        p = make_params(bcond_x="Periodic", bcond_y="REFLECTING", method="Roe")
        assert p.bcond_x == "periodic"
        assert p.bcond_y == "reflecting"
        assert p.method is FluxMethod.ROE
        assert not p.has_force

    def test_default_method_is_hlle(self, make_params):
        assert make_params().method is FluxMethod.HLLE

    @pytest.mark.parametrize("field", ["dx", "dy", "dt"])
    def test_nonpositive_steps_rejected(self, make_params, field):
        with pytest.raises(ValueError, match=field):
            make_params(**{field: 0.0})

    def test_unknown_bcond_rejected(self, make_params):
        with pytest.raises(ValueError, match="boundary condition"):
            make_params(bcond_x="absorbing")

    def test_unknown_method_rejected(self, make_params):
        with pytest.raises(ValueError, match="flux method"):
            make_params(method="rusanov")

    def test_bad_discriminant_rejected(self, make_params):
        with pytest.raises(ValueError, match="discriminant"):
            make_params(c1=1.0, c2=0.5, lam=0.2)

    def test_half_force_rejected(self, make_params):
        with pytest.raises(ValueError, match="both Fx and Fy"):
            make_params(Fx=np.zeros((4, 4)))

    def test_force_shape_mismatch_rejected(self, make_params):
        with pytest.raises(ValueError, match="same shape"):
            make_params(Fx=np.zeros((4, 4)), Fy=np.zeros((4, 5)))

    def test_frozen(self, make_params):
        p = make_params()
        with pytest.raises(AttributeError):
            p.dt = 1.0


class TestGridValidation:
    """Shape checks on the state and the scratch buffers."""

    def test_interior_shape(self):
        rho = np.ones((6, 5))
        assert interior_shape(rho, rho.copy(), rho.copy()) == (4, 3)

    def test_mismatched_state_rejected(self):
        with pytest.raises(ValueError, match="one shape"):
            interior_shape(np.ones((6, 5)), np.ones((6, 5)), np.ones((5, 5)))

    def test_no_interior_rejected(self):
        a = np.ones((2, 5))
        with pytest.raises(ValueError, match="no interior"):
            interior_shape(a, a.copy(), a.copy())

    def test_buffer_shapes(self):
        buf = FluxBuffers.allocate(4, 3)
        assert buf.rho_x.shape == (5, 3)
        assert buf.v_y.shape == (4, 4)
        assert buf.fits(4, 3)
        assert not buf.fits(3, 4)

    def test_mismatched_buffers_rejected(self, make_params, random_state, grid_size):
        rho, u, v = random_state
        buf = FluxBuffers.allocate(grid_size[0] + 1, grid_size[1])
        with pytest.raises(ValueError, match="flux buffers"):
            scheme_iter(rho, u, v, make_params(), buf)

    def test_solver_rejects_force_on_wrong_grid(self, make_params):
        p = make_params(Fx=np.zeros((4, 4)), Fy=np.zeros((4, 4)))
        with pytest.raises(ValueError, match="force field shape"):
            SOHSolver(p, 4, 4)


# ====================================================
# Invariants after a step
# ====================================================

class TestInvariants:
    """Orientation norm, density floor and conservation."""

    @pytest.mark.parametrize(
        "bcond_x,bcond_y,method",
        [(bx, by, m) for (bx, by), m in itertools.product(itertools.product(POLICIES, POLICIES), METHODS)],
    )
    def test_unit_orientation_and_density_floor(self, make_params, random_state, bcond_x, bcond_y, method):
        rho, u, v = random_state
        params = make_params(bcond_x=bcond_x, bcond_y=bcond_y, method=method)
        apply_bc_state(rho, u, v, params.bcond_x, params.bcond_y)
        for _ in range(5):
            report = scheme_iter(rho, u, v, params)
            assert isinstance(report, StepReport)
            norm = np.sqrt(u[1:-1, 1:-1] ** 2 + v[1:-1, 1:-1] ** 2)
            assert np.max(np.abs(norm - 1.0)) < 1e-9
            assert np.all(rho[1:-1, 1:-1] >= RHO_FLOOR)
            assert np.all(np.isfinite(rho))

    @pytest.mark.parametrize("method", METHODS)
    def test_density_floor_with_empty_cells(self, make_params, random_state, method):
        rho, u, v = random_state
        rho[3:6, 4:7] = 0.0
        params = make_params(method=method)
        apply_bc_state(rho, u, v, "periodic", "periodic")
        scheme_iter(rho, u, v, params)
        assert np.all(rho[1:-1, 1:-1] >= RHO_FLOOR)
        assert np.all(np.isfinite(u)) and np.all(np.isfinite(v))

    @pytest.mark.parametrize("method", METHODS)
    def test_mass_conserved_periodic(self, make_params, random_state, method):
        rho, u, v = random_state
        params = make_params(method=method, dt=0.01)
        apply_bc_state(rho, u, v, "periodic", "periodic")
        mass0 = np.sum(rho[1:-1, 1:-1])
        for _ in range(10):
            report = scheme_iter(rho, u, v, params)
            assert report.bad_rho == 0
        np.testing.assert_allclose(np.sum(rho[1:-1, 1:-1]), mass0, rtol=1e-12)

    @pytest.mark.parametrize("method", METHODS)
    def test_uniform_state_is_stationary(self, make_params, grid_size, method):
        ncellx, ncelly = grid_size
        shape = (ncellx + 2, ncelly + 2)
        rho = np.full(shape, 0.8)
        u = np.full(shape, 0.6)
        v = np.full(shape, -0.8)
        scheme_iter(rho, u, v, make_params(method=method))
        np.testing.assert_allclose(rho, 0.8, rtol=1e-13)
        np.testing.assert_allclose(u, 0.6, rtol=1e-13)
        np.testing.assert_allclose(v, -0.8, rtol=1e-13)


# ====================================================
# Sweep directions
# ====================================================

class TestSweepDirections:
    """The y-sweep is the x-sweep in the rotated frame (u, v) -> (v, -u)."""

    @pytest.mark.parametrize("method", [int(FluxMethod.ROE), int(FluxMethod.HLLE)])
    def test_flux_pass_y_matches_rotated_x(self, coeffs, random_state, grid_size, method):
        rho, u, v = random_state
        ncellx, ncelly = grid_size
        c1, c2, lam = coeffs

        fy = [np.zeros((ncellx, ncelly + 1)) for _ in range(3)]
        _flux_pass_y(rho, u, v, c1, c2, lam, method, *fy)

        # Transposed grid with the rotated orientation
        rho_t = np.ascontiguousarray(rho.T)
        u_t = np.ascontiguousarray(v.T)
        v_t = np.ascontiguousarray(-u.T)
        fx = [np.zeros((ncelly + 1, ncellx)) for _ in range(3)]
        _flux_pass_x(rho_t, u_t, v_t, c1, c2, lam, method, *fx)

        np.testing.assert_array_equal(fy[0], fx[0].T)
        np.testing.assert_array_equal(fy[1], -fx[2].T)
        np.testing.assert_array_equal(fy[2], fx[1].T)

    def test_uniform_y_flux_is_physical(self, coeffs):
        """For a constant state the y-flux is (c1 rho v, c2 rho u v, c2 rho v^2 + lam rho)."""
        c1, c2, lam = coeffs
        r0, u0, v0 = 1.5, 0.6, 0.8
        rho = np.full((5, 6), r0)
        u = np.full((5, 6), u0)
        v = np.full((5, 6), v0)
        fy = [np.zeros((3, 5)) for _ in range(3)]
        _flux_pass_y(rho, u, v, c1, c2, lam, int(FluxMethod.HLLE), *fy)
        np.testing.assert_allclose(fy[0], c1 * r0 * v0, rtol=1e-12)
        np.testing.assert_allclose(fy[1], c2 * r0 * u0 * v0, rtol=1e-12)
        np.testing.assert_allclose(fy[2], c2 * r0 * v0**2 + lam * r0, rtol=1e-12)

    def test_uniform_x_flux_is_physical(self, coeffs):
        r0, u0, v0 = 1.5, 0.6, 0.8
        rho = np.full((5, 6), r0)
        u = np.full((5, 6), u0)
        v = np.full((5, 6), v0)
        fx = [np.zeros((4, 4)) for _ in range(3)]
        _flux_pass_x(rho, u, v, *coeffs, int(FluxMethod.ROE), *fx)
        expected = physical_flux(r0, u0, v0, *coeffs)
        for k in range(3):
            np.testing.assert_allclose(fx[k], expected[k], rtol=1e-12)

    @pytest.mark.parametrize("method", METHODS)
    def test_x_and_y_problems_agree(self, make_params, method):
        """A 1D problem along y evolves like the mirrored problem along x."""
        n, m = 20, 4
        s = np.linspace(0.0, 2.0 * np.pi, n, endpoint=False)
        rho_1d = 1.0 + 0.3 * np.sin(s)
        theta_1d = 0.4 + 0.5 * np.cos(s)

        # Variation along x; orientation (cos, sin)
        rho_a = np.ones((n + 2, m + 2))
        theta_a = np.zeros((n + 2, m + 2))
        rho_a[1:-1, 1:-1] = rho_1d[:, None]
        theta_a[1:-1, 1:-1] = theta_1d[:, None]
        u_a, v_a = np.cos(theta_a), np.sin(theta_a)
        apply_bc_state(rho_a, u_a, v_a, "periodic", "periodic")

        # Same profile along y with x and y exchanged: orientation (sin, cos)
        rho_b = np.ascontiguousarray(rho_a.T)
        u_b = np.ascontiguousarray(v_a.T)
        v_b = np.ascontiguousarray(u_a.T)

        params = make_params(method=method)
        for _ in range(5):
            scheme_iter(rho_a, u_a, v_a, params)
            scheme_iter(rho_b, u_b, v_b, params)

        np.testing.assert_allclose(rho_b, rho_a.T, rtol=1e-12, atol=1e-14)
        np.testing.assert_allclose(u_b, v_a.T, rtol=1e-12, atol=1e-12)
        np.testing.assert_allclose(v_b, u_a.T, rtol=1e-12, atol=1e-12)


# ====================================================
# Positivity
# ====================================================

class TestHLLEPositivity:
    """HLLE keeps the density positive on a near-vacuum rarefaction."""

    def test_rarefaction_into_near_vacuum(self, make_params):
        ncellx, ncelly = 40, 3
        rho = np.ones((ncellx + 2, ncelly + 2))
        u = np.ones_like(rho)
        v = np.zeros_like(rho)
        rho[ncellx // 2 + 1:, :] = 1e-4

        # Near-sonic speeds (lam_- vanishes at u = sqrt(lam/c2) = 0.5) pulling apart
        theta_left = np.pi - np.arccos(0.5)
        theta_right = np.arccos(0.5)
        u[: ncellx // 2 + 1, :] = np.cos(theta_left)
        v[: ncellx // 2 + 1, :] = np.sin(theta_left)
        u[ncellx // 2 + 1:, :] = np.cos(theta_right)
        v[ncellx // 2 + 1:, :] = np.sin(theta_right)

        params = make_params(method="hlle", bcond_x="neumann", bcond_y="periodic")
        apply_bc_state(rho, u, v, params.bcond_x, params.bcond_y)
        solver = SOHSolver(params, ncellx, ncelly)
        for _ in range(30):
            report = solver.step(rho, u, v)
            assert report.bad_rho == 0
            assert np.all(rho[1:-1, 1:-1] > 0.0)


# ====================================================
# Relaxation
# ====================================================

class TestRelaxation:
    """Normalization of the momentum and its degenerate fallback."""

    def _cell(self, u0=0.6, v0=0.8):
        rho = np.ones((3, 3))
        u = np.full((3, 3), u0)
        v = np.full((3, 3), v0)
        return rho, u, v

    def test_normalizes_momentum(self):
        rho, u, v = self._cell()
        bad, degenerate = _relax_cell(rho, u, v, 1, 1, 2.0, 0.0, -3.0)
        assert (bad, degenerate) == (0, 0)
        assert rho[1, 1] == 2.0
        assert u[1, 1] == 0.0
        assert v[1, 1] == pytest.approx(-1.0)

    def test_zero_momentum_keeps_previous_orientation(self):
        rho, u, v = self._cell(1.2, 1.6)
        bad, degenerate = _relax_cell(rho, u, v, 1, 1, 1.0, 0.0, 0.0)
        assert (bad, degenerate) == (0, 1)
        assert u[1, 1] == pytest.approx(0.6)
        assert v[1, 1] == pytest.approx(0.8)

    def test_zero_momentum_and_zero_previous(self):
        rho, u, v = self._cell(0.0, 0.0)
        _, degenerate = _relax_cell(rho, u, v, 1, 1, 1.0, 0.0, 0.0)
        assert degenerate == 1
        assert (u[1, 1], v[1, 1]) == (1.0, 0.0)

    def test_negative_density_counted_and_floored(self):
        rho, u, v = self._cell()
        bad, _ = _relax_cell(rho, u, v, 1, 1, -0.5, 0.1, 0.1)
        assert bad == 1
        assert rho[1, 1] == RHO_FLOOR

    def test_small_positive_density_floored_not_counted(self):
        rho, u, v = self._cell()
        bad, _ = _relax_cell(rho, u, v, 1, 1, 1e-8, 1e-3, 0.0)
        assert bad == 0
        assert rho[1, 1] == RHO_FLOOR
        assert u[1, 1] == 1.0

    def test_empty_grid_reports_every_cell(self, make_params, caplog):
        """An all-zero density is vacuum: no flux, floored, zero momentum everywhere."""
        ncellx, ncelly = 4, 3
        rho = np.zeros((ncellx + 2, ncelly + 2))
        u = np.full_like(rho, 0.6)
        v = np.full_like(rho, 0.8)
        with caplog.at_level(logging.WARNING, logger="soh.fluid.scheme"):
            report = scheme_iter(rho, u, v, make_params())

        n = ncellx * ncelly
        assert report.n_interior == n
        assert report.bad_rho_x == n
        assert report.degenerate_x == n
        # After the x-sweep every cell holds RHO_FLOOR and a unit orientation
        assert report.bad_rho_y == 0
        assert report.degenerate_y == 0
        np.testing.assert_allclose(rho[1:-1, 1:-1], RHO_FLOOR)
        np.testing.assert_allclose(u[1:-1, 1:-1], 0.6)
        np.testing.assert_allclose(v[1:-1, 1:-1], 0.8)
        assert "x-sweep" in caplog.text
        assert "100.0000%" in caplog.text


class TestSolver:
    """SOHSolver wraps scheme_iter with owned buffers."""

    def test_step_matches_scheme_iter(self, make_params, random_state, grid_size):
        rho, u, v = random_state
        params = make_params(method="roe", bcond_x="reflecting")
        apply_bc_state(rho, u, v, params.bcond_x, params.bcond_y)
        rho2, u2, v2 = rho.copy(), u.copy(), v.copy()

        solver = SOHSolver(params, *grid_size)
        r1 = solver.step(rho, u, v)
        r2 = scheme_iter(rho2, u2, v2, params)

        np.testing.assert_array_equal(rho, rho2)
        np.testing.assert_array_equal(u, u2)
        np.testing.assert_array_equal(v, v2)
        assert r1 == r2

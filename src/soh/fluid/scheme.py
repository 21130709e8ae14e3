"""Operator-splitting finite-volume scheme for the 2D SOH system.

One timestep follows the three-step splitting of

S. Motsch, L. Navoret, *Numerical simulations of a non-conservative
hyperbolic system with geometric constraints describing swarming behavior*,
Multiscale Model. Simul., Vol. 9, No. 3, pp. 1253-1275, 2011.

1. Conservative part (dimensional splitting, x then y)

       d_t rho + c1 div(rho Omega) = 0
       d_t (rho Omega) + c2 div(rho Omega x Omega) + lam grad(rho) = 0

2. Relaxation part, eps d_t Omega = (1 - |Omega|^2) Omega, which in the
   limit eps -> 0 reduces to a normalization after each sweep

3. Source term, d_t Omega = lam P(Omega) F with F = -grad(V), solved
   exactly in 2D

Each sweep is:
    flux pass -> conservative update -> relaxation -> boundary refresh

The flux pass writes every interface flux into scratch buffers before the
update pass reads them. The y-sweep reuses the x-flux kernel on the rotated
orientation (v, -u).

Grid layout: arrays have shape (ncellx+2, ncelly+2), axis 0 is x, and
``[1:-1, 1:-1]`` is the interior.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from numba import njit

from soh.constants import FORCE_EPS, MOMENTUM_EPS, RHO_FLOOR
from soh.core.bases import SolverBase, StepReport
from soh.fluid.boundary import apply_bc_state, resolve_policy
from soh.fluid.flux import FluxMethod, check_discriminant, flux_x, resolve_method

logger = logging.getLogger(__name__)


# ============================================================
# Parameters and scratch storage
# ============================================================

@dataclass(frozen=True, eq=False)
class SchemeParameters:
    """Immutable inputs of one timestep.

    Validated on construction: boundary policies and the flux method are
    normalized, the coefficients must give a strictly hyperbolic system,
    and the force components must come as a same-shaped pair.

    Attributes:
        dx, dy: Cell sizes.
        dt: Timestep.
        c1, c2, lam: Model coefficients.
        bcond_x, bcond_y: Boundary policy per axis.
        method: Interface flux (``"roe"`` or ``"hlle"``).
        Fx, Fy: Optional exterior force, shaped like the grid, read only.
    """

    dx: float
    dy: float
    dt: float
    c1: float
    c2: float
    lam: float
    bcond_x: str = "periodic"
    bcond_y: str = "periodic"
    method: FluxMethod | str = FluxMethod.HLLE
    Fx: np.ndarray | None = None
    Fy: np.ndarray | None = None

    def __post_init__(self) -> None:
        for name in ("dx", "dy", "dt"):
            value = getattr(self, name)
            if not (np.isfinite(value) and value > 0):
                raise ValueError(f"{name} must be positive, got {value}")
        object.__setattr__(self, "bcond_x", resolve_policy(self.bcond_x))
        object.__setattr__(self, "bcond_y", resolve_policy(self.bcond_y))
        object.__setattr__(self, "method", resolve_method(self.method))
        check_discriminant(self.c1, self.c2, self.lam)

        if (self.Fx is None) != (self.Fy is None):
            raise ValueError("exterior force needs both Fx and Fy, or neither")
        if self.Fx is not None and np.shape(self.Fx) != np.shape(self.Fy):
            raise ValueError(
                f"Fx and Fy must have the same shape, got {np.shape(self.Fx)} and {np.shape(self.Fy)}"
            )

    @property
    def has_force(self) -> bool:
        return self.Fx is not None


@dataclass
class FluxBuffers:
    """Interface flux scratch arrays, reused across sweeps.

    x-sweep arrays have shape (ncellx+1, ncelly): interface i lies between
    grid cells i and i+1 of interior column j+1. y-sweep arrays have shape
    (ncellx, ncelly+1) with the roles of the axes exchanged.
    """

    rho_x: np.ndarray
    u_x: np.ndarray
    v_x: np.ndarray
    rho_y: np.ndarray
    u_y: np.ndarray
    v_y: np.ndarray

    @classmethod
    def allocate(cls, ncellx: int, ncelly: int) -> FluxBuffers:
        shape_x = (ncellx + 1, ncelly)
        shape_y = (ncellx, ncelly + 1)
        return cls(
            rho_x=np.zeros(shape_x),
            u_x=np.zeros(shape_x),
            v_x=np.zeros(shape_x),
            rho_y=np.zeros(shape_y),
            u_y=np.zeros(shape_y),
            v_y=np.zeros(shape_y),
        )

    def fits(self, ncellx: int, ncelly: int) -> bool:
        return self.rho_x.shape == (ncellx + 1, ncelly) and self.rho_y.shape == (ncellx, ncelly + 1)


def interior_shape(rho: np.ndarray, u: np.ndarray, v: np.ndarray) -> tuple[int, int]:
    """Return ``(ncellx, ncelly)`` of a ghost-padded state.

    Raises:
        ValueError: If the arrays are not 2D, differ in shape, or have no
            interior cell.
    """
    if rho.ndim != 2 or rho.shape != u.shape or rho.shape != v.shape:
        raise ValueError(
            f"rho, u, v must be 2D arrays of one shape, got {rho.shape}, {u.shape}, {v.shape}"
        )
    ncellx = rho.shape[0] - 2
    ncelly = rho.shape[1] - 2
    if ncellx < 1 or ncelly < 1:
        raise ValueError(f"grid {rho.shape} has no interior cell")
    return ncellx, ncelly


# ============================================================
# Compiled kernels
# ============================================================

@njit(cache=True)
def _relax_cell(
    rho: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    i: int,
    j: int,
    U0: float,
    U1: float,
    U2: float,
) -> tuple[int, int]:
    """Store the relaxed conservative state ``(U0, U1, U2)`` in cell (i, j).

    Returns:
        ``(bad_rho, degenerate)`` flags for this cell.
    """
    bad = 0
    if U0 <= 0.0:
        bad = 1
    if U0 < RHO_FLOOR:
        rho[i, j] = RHO_FLOOR
    else:
        rho[i, j] = U0

    norm = np.sqrt(U1 * U1 + U2 * U2)
    if norm > MOMENTUM_EPS:
        u[i, j] = U1 / norm
        v[i, j] = U2 / norm
        return bad, 0

    # Zero momentum: keep the previous orientation
    stale = np.sqrt(u[i, j] * u[i, j] + v[i, j] * v[i, j])
    if stale > 0.0:
        u[i, j] = u[i, j] / stale
        v[i, j] = v[i, j] / stale
    else:
        u[i, j] = 1.0
        v[i, j] = 0.0
    return bad, 1


@njit(cache=True)
def _flux_pass_x(
    rho: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    c1: float,
    c2: float,
    lam: float,
    method: int,
    f_rho: np.ndarray,
    f_u: np.ndarray,
    f_v: np.ndarray,
) -> None:
    ncellx = rho.shape[0] - 2
    ncelly = rho.shape[1] - 2
    for i in range(ncellx + 1):
        for j in range(ncelly):
            F0, F1, F2 = flux_x(
                rho[i, j + 1], rho[i + 1, j + 1],
                u[i, j + 1], u[i + 1, j + 1],
                v[i, j + 1], v[i + 1, j + 1],
                c1, c2, lam, method,
            )
            f_rho[i, j] = F0
            f_u[i, j] = F1
            f_v[i, j] = F2


@njit(cache=True)
def _flux_pass_y(
    rho: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    c1: float,
    c2: float,
    lam: float,
    method: int,
    f_rho: np.ndarray,
    f_u: np.ndarray,
    f_v: np.ndarray,
) -> None:
    ncellx = rho.shape[0] - 2
    ncelly = rho.shape[1] - 2
    for i in range(ncellx):
        for j in range(ncelly + 1):
            # Rotated basis (u, v) -> (v, -u): y plays the role of x
            F0, F1, F2 = flux_x(
                rho[i + 1, j], rho[i + 1, j + 1],
                v[i + 1, j], v[i + 1, j + 1],
                -u[i + 1, j], -u[i + 1, j + 1],
                c1, c2, lam, method,
            )
            f_rho[i, j] = F0
            f_u[i, j] = -F2
            f_v[i, j] = F1


@njit(cache=True)
def _update_x(
    rho: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    f_rho: np.ndarray,
    f_u: np.ndarray,
    f_v: np.ndarray,
    ratio: float,
) -> tuple[int, int]:
    ncellx = rho.shape[0] - 2
    ncelly = rho.shape[1] - 2
    bad = 0
    degenerate = 0
    for i in range(1, ncellx + 1):
        for j in range(1, ncelly + 1):
            r = rho[i, j]
            U0 = r - ratio * (f_rho[i, j - 1] - f_rho[i - 1, j - 1])
            U1 = r * u[i, j] - ratio * (f_u[i, j - 1] - f_u[i - 1, j - 1])
            U2 = r * v[i, j] - ratio * (f_v[i, j - 1] - f_v[i - 1, j - 1])
            b, d = _relax_cell(rho, u, v, i, j, U0, U1, U2)
            bad += b
            degenerate += d
    return bad, degenerate


@njit(cache=True)
def _update_y(
    rho: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    f_rho: np.ndarray,
    f_u: np.ndarray,
    f_v: np.ndarray,
    ratio: float,
) -> tuple[int, int]:
    ncellx = rho.shape[0] - 2
    ncelly = rho.shape[1] - 2
    bad = 0
    degenerate = 0
    for i in range(1, ncellx + 1):
        for j in range(1, ncelly + 1):
            r = rho[i, j]
            U0 = r - ratio * (f_rho[i - 1, j] - f_rho[i - 1, j - 1])
            U1 = r * u[i, j] - ratio * (f_u[i - 1, j] - f_u[i - 1, j - 1])
            U2 = r * v[i, j] - ratio * (f_v[i - 1, j] - f_v[i - 1, j - 1])
            b, d = _relax_cell(rho, u, v, i, j, U0, U1, U2)
            bad += b
            degenerate += d
    return bad, degenerate


@njit(cache=True)
def _force_rotation(
    u: np.ndarray,
    v: np.ndarray,
    Fx: np.ndarray,
    Fy: np.ndarray,
    dt: float,
    lam: float,
) -> int:
    """Exact solution of d_t Omega = lam P(Omega) F over one timestep.

    With Omega = (cos(theta), sin(theta)) and F = |F| (cos(psi), sin(psi)):

        theta(t) = psi + 2 atan(C0 exp(-lam |F| t)),  C0 = tan((theta(0) - psi) / 2)

    Returns:
        Number of rotated cells.
    """
    ncellx = u.shape[0] - 2
    ncelly = u.shape[1] - 2
    rotated = 0
    for i in range(1, ncellx + 1):
        for j in range(1, ncelly + 1):
            norm_f = np.sqrt(Fx[i, j] * Fx[i, j] + Fy[i, j] * Fy[i, j])
            if norm_f > FORCE_EPS:
                theta0 = np.arctan2(v[i, j], u[i, j])
                psi = np.arctan2(Fy[i, j], Fx[i, j])
                C0 = np.tan(0.5 * (theta0 - psi))
                theta = psi + 2.0 * np.arctan(C0 * np.exp(-lam * norm_f * dt))
                u[i, j] = np.cos(theta)
                v[i, j] = np.sin(theta)
                rotated += 1
    return rotated


# ============================================================
# Sweeps and full step
# ============================================================

def _report_bad_cells(bad: int, n_interior: int, axis: str) -> None:
    if bad > 0:
        logger.warning(
            "Nonpositive densities in %d cells (%.4f%%) after the %s-sweep "
            "have been set to %.0e",
            bad, 100.0 * bad / n_interior, axis, RHO_FLOOR,
        )


def sweep_x(
    rho: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    params: SchemeParameters,
    buffers: FluxBuffers,
) -> tuple[int, int]:
    """x-axis flux pass, conservative update, relaxation and boundary refresh.

    Returns:
        ``(bad_rho, degenerate)`` cell counts for the sweep.
    """
    ncellx, ncelly = interior_shape(rho, u, v)
    _flux_pass_x(
        rho, u, v, params.c1, params.c2, params.lam, int(params.method),
        buffers.rho_x, buffers.u_x, buffers.v_x,
    )
    bad, degenerate = _update_x(
        rho, u, v, buffers.rho_x, buffers.u_x, buffers.v_x, params.dt / params.dx,
    )
    _report_bad_cells(bad, ncellx * ncelly, "x")
    apply_bc_state(rho, u, v, params.bcond_x, params.bcond_y)
    return bad, degenerate


def sweep_y(
    rho: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    params: SchemeParameters,
    buffers: FluxBuffers,
) -> tuple[int, int]:
    """y-axis counterpart of :func:`sweep_x`."""
    ncellx, ncelly = interior_shape(rho, u, v)
    _flux_pass_y(
        rho, u, v, params.c1, params.c2, params.lam, int(params.method),
        buffers.rho_y, buffers.u_y, buffers.v_y,
    )
    bad, degenerate = _update_y(
        rho, u, v, buffers.rho_y, buffers.u_y, buffers.v_y, params.dt / params.dy,
    )
    _report_bad_cells(bad, ncellx * ncelly, "y")
    apply_bc_state(rho, u, v, params.bcond_x, params.bcond_y)
    return bad, degenerate


def exterior_force_step(
    rho: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    params: SchemeParameters,
) -> int:
    """Rotate the orientation toward the exterior force, then refresh the BCs.

    A no-op returning 0 when ``params`` carries no force. The density is
    not modified (its ghost cells are refreshed with the rest).
    """
    if not params.has_force:
        return 0
    if params.Fx.shape != u.shape:
        raise ValueError(f"force field shape {params.Fx.shape} does not match grid {u.shape}")
    rotated = _force_rotation(u, v, params.Fx, params.Fy, params.dt, params.lam)
    apply_bc_state(rho, u, v, params.bcond_x, params.bcond_y)
    return rotated


def scheme_iter(
    rho: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    params: SchemeParameters,
    buffers: FluxBuffers | None = None,
) -> StepReport:
    """One full timestep: x-sweep, y-sweep, then the exterior force if any.

    Args:
        rho, u, v: Grid state, mutated in place.
        params: Validated step parameters.
        buffers: Flux scratch storage; allocated on the fly if omitted.

    Returns:
        Degeneracy counters for the step.

    Raises:
        ValueError: If the force field or the buffers do not match the grid.
            Nothing is modified in that case.
    """
    ncellx, ncelly = interior_shape(rho, u, v)
    # Checked before the sweeps so a bad force leaves the state untouched
    if params.has_force and params.Fx.shape != rho.shape:
        raise ValueError(f"force field shape {params.Fx.shape} does not match grid {rho.shape}")
    if buffers is None:
        buffers = FluxBuffers.allocate(ncellx, ncelly)
    elif not buffers.fits(ncellx, ncelly):
        raise ValueError(f"flux buffers do not match a {ncellx}x{ncelly} grid")

    bad_x, degenerate_x = sweep_x(rho, u, v, params, buffers)
    bad_y, degenerate_y = sweep_y(rho, u, v, params, buffers)
    forced = exterior_force_step(rho, u, v, params)

    return StepReport(
        bad_rho_x=bad_x,
        bad_rho_y=bad_y,
        degenerate_x=degenerate_x,
        degenerate_y=degenerate_y,
        forced_cells=forced,
        n_interior=ncellx * ncelly,
    )


# ============================================================
# Solver
# ============================================================

class SOHSolver(SolverBase):
    """SOH finite-volume solver with owned flux buffers.

    Args:
        params: Validated step parameters.
        ncellx: Interior cells along x.
        ncelly: Interior cells along y.
    """

    def __init__(self, params: SchemeParameters, ncellx: int, ncelly: int) -> None:
        if ncellx < 1 or ncelly < 1:
            raise ValueError(f"grid must have at least one interior cell, got {ncellx}x{ncelly}")
        if params.has_force and params.Fx.shape != (ncellx + 2, ncelly + 2):
            raise ValueError(
                f"force field shape {params.Fx.shape} does not match grid "
                f"{(ncellx + 2, ncelly + 2)}"
            )
        self.params = params
        self.ncellx = ncellx
        self.ncelly = ncelly
        self.buffers = FluxBuffers.allocate(ncellx, ncelly)

        logger.info(
            "SOHSolver initialized: grid=%dx%d, dx=%.3e, dy=%.3e, dt=%.3e, "
            "method=%s, bc=(%s, %s), force=%s",
            ncellx, ncelly, params.dx, params.dy, params.dt,
            params.method.name, params.bcond_x, params.bcond_y, params.has_force,
        )

    def step(
        self,
        rho: np.ndarray,
        u: np.ndarray,
        v: np.ndarray,
    ) -> StepReport:
        return scheme_iter(rho, u, v, self.params, self.buffers)

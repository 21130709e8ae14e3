"""Approximate Riemann solvers for the 1D SOH conservative system.

The conservative part of the SOH model along the x-axis reads

    d_t U + d_x f(U) = 0,   U = (rho, rho*u, rho*v),
    f(U) = (c1*rho*u, c2*rho*u^2 + lam*rho, c2*rho*u*v)

Its Jacobian has the eigenvalues

    lam_0 = c2*u,  lam_+- = c2*u +- sqrt(Delta),
    Delta = (c2^2 - c1*c2)*u^2 + lam*c1

Two interface fluxes are provided:
- Roe with the local Lax-Friedrichs eigenvalue fix (no entropy violation at
  sonic points, not positivity preserving)
- HLLE (Einfeldt) with Roe-state wave-speed bounds (positivity preserving
  under a CFL restriction)

The y-axis flux is obtained from the same kernels by rotating the
orientation (u, v) -> (v, -u), see :mod:`soh.fluid.scheme`.

All kernels work on scalars and are Numba-compiled so they can be called
from the per-interface loops of the sweeps.
"""

from __future__ import annotations

import enum

import numpy as np
from numba import njit

from soh.constants import RHO_VACUUM


class FluxMethod(enum.IntEnum):
    """Interface flux algorithm."""

    ROE = 0
    HLLE = 1


# Plain ints for dispatch inside compiled kernels
_ROE = int(FluxMethod.ROE)
_HLLE = int(FluxMethod.HLLE)


def resolve_method(method: str | FluxMethod) -> FluxMethod:
    """Map a method name (``"roe"`` or ``"hlle"``, any case) to a FluxMethod.

    Raises:
        ValueError: If the name is not a known method.
    """
    if isinstance(method, FluxMethod):
        return method
    try:
        return FluxMethod[str(method).strip().upper()]
    except KeyError:
        raise ValueError(f"flux method must be 'roe' or 'hlle', got '{method}'") from None


def check_discriminant(c1: float, c2: float, lam: float) -> None:
    """Check that the system is strictly hyperbolic for every |u| <= 1.

    Delta(u) is affine in u^2, so it is positive on [-1, 1] iff it is
    positive at u = 0 and at u = 1.

    Raises:
        ValueError: If a coefficient is not finite or Delta can vanish.
    """
    if not all(np.isfinite(x) for x in (c1, c2, lam)):
        raise ValueError(f"coefficients must be finite, got c1={c1}, c2={c2}, lam={lam}")
    at_rest = lam * c1
    at_unit = (c2 * c2 - c1 * c2) + lam * c1
    if at_rest <= 0.0 or at_unit <= 0.0:
        raise ValueError(
            "non-positive discriminant: (c2^2 - c1*c2)*u^2 + lam*c1 must be > 0 "
            f"for |u| <= 1, got c1={c1}, c2={c2}, lam={lam}"
        )


@njit(cache=True)
def eigenvalues(u: float, c1: float, c2: float, lam: float) -> tuple[float, float, float]:
    """Return ``(lam_+, lam_-, lam_0)`` for the 1D velocity ``u``."""
    sq = np.sqrt((c2 * c2 - c1 * c2) * u * u + lam * c1)
    return c2 * u + sq, c2 * u - sq, c2 * u


@njit(cache=True)
def roe_average(rho_l: float, rho_r: float, a_l: float, a_r: float) -> float:
    """sqrt(rho)-weighted average of a velocity component."""
    sl = np.sqrt(rho_l)
    sr = np.sqrt(rho_r)
    return (sl * a_l + sr * a_r) / (sl + sr)


@njit(cache=True)
def physical_flux(rho: float, u: float, v: float, c1: float, c2: float, lam: float) -> tuple[float, float, float]:
    """Exact x-flux f(U) of a constant state."""
    return c1 * rho * u, c2 * rho * u * u + lam * rho, c2 * rho * u * v


@njit(cache=True)
def abs_roe_matrix(
    rho_l: float,
    rho_r: float,
    u_l: float,
    u_r: float,
    v_l: float,
    v_r: float,
    c1: float,
    c2: float,
    lam: float,
) -> tuple[float, float, float, float, float, float, float, float, float]:
    """Absolute value of the Roe matrix, row-major ``(a11, ..., a33)``.

    |A| = P |D| P^-1 with the eigenvectors of the Jacobian at the Roe state,
    (c1, lam_+, z_+), (c1, lam_-, z_-) and (0, 0, 1). The entries of |D| are
    max(|lam_k(left)|, |lam_k(right)|) instead of |lam_k(Roe)|.
    """
    um = roe_average(rho_l, rho_r, u_l, u_r)
    vm = roe_average(rho_l, rho_r, v_l, v_r)

    ev_p, ev_m, ev_0 = eigenvalues(um, c1, c2, lam)
    z_p = (c1 * c2 * um * vm - c2 * vm * ev_p) / (c2 * um - ev_p)
    z_m = (c1 * c2 * um * vm - c2 * vm * ev_m) / (c2 * um - ev_m)
    det_p = c1 * (ev_m - ev_p)

    # Local Lax-Friedrichs fix
    lp_l, lm_l, l0_l = eigenvalues(u_l, c1, c2, lam)
    lp_r, lm_r, l0_r = eigenvalues(u_r, c1, c2, lam)
    d_p = max(abs(lp_l), abs(lp_r))
    d_m = max(abs(lm_l), abs(lm_r))
    d_0 = max(abs(l0_l), abs(l0_r))

    a11 = c1 * (d_p * ev_m - d_m * ev_p) / det_p
    a12 = c1 * c1 * (d_m - d_p) / det_p
    a13 = 0.0
    a21 = ev_m * ev_p * (d_p - d_m) / det_p
    a22 = c1 * (d_m * ev_m - d_p * ev_p) / det_p
    a23 = 0.0
    a31 = (-d_m * ev_p * z_m + d_p * ev_m * z_p + d_0 * (ev_p * z_m - ev_m * z_p)) / det_p
    a32 = c1 * (d_m * z_m - d_p * z_p + d_0 * (z_p - z_m)) / det_p
    a33 = d_0
    return a11, a12, a13, a21, a22, a23, a31, a32, a33


@njit(cache=True)
def roe_flux(
    rho_l: float,
    rho_r: float,
    u_l: float,
    u_r: float,
    v_l: float,
    v_r: float,
    c1: float,
    c2: float,
    lam: float,
) -> tuple[float, float, float]:
    """Roe flux: mean physical flux minus half of |A| times the jump in U."""
    a11, a12, a13, a21, a22, a23, a31, a32, a33 = abs_roe_matrix(
        rho_l, rho_r, u_l, u_r, v_l, v_r, c1, c2, lam,
    )
    fl0, fl1, fl2 = physical_flux(rho_l, u_l, v_l, c1, c2, lam)
    fr0, fr1, fr2 = physical_flux(rho_r, u_r, v_r, c1, c2, lam)

    d0 = rho_r - rho_l
    d1 = rho_r * u_r - rho_l * u_l
    d2 = rho_r * v_r - rho_l * v_l

    F0 = 0.5 * (fl0 + fr0) - 0.5 * (a11 * d0 + a12 * d1 + a13 * d2)
    F1 = 0.5 * (fl1 + fr1) - 0.5 * (a21 * d0 + a22 * d1 + a23 * d2)
    F2 = 0.5 * (fl2 + fr2) - 0.5 * (a31 * d0 + a32 * d1 + a33 * d2)
    return F0, F1, F2


@njit(cache=True)
def hlle_flux(
    rho_l: float,
    rho_r: float,
    u_l: float,
    u_r: float,
    v_l: float,
    v_r: float,
    c1: float,
    c2: float,
    lam: float,
) -> tuple[float, float, float]:
    """HLLE flux with Einfeldt wave-speed bounds."""
    um = roe_average(rho_l, rho_r, u_l, u_r)
    lp_l, lm_l, _ = eigenvalues(u_l, c1, c2, lam)
    lp_r, lm_r, _ = eigenvalues(u_r, c1, c2, lam)
    lp_m, lm_m, _ = eigenvalues(um, c1, c2, lam)

    # lam_- <= lam_0 <= lam_+, so only the outer eigenvalues bound the fan
    s_lm = min(min(lm_l, lm_m), 0.0)
    s_rp = max(max(lp_r, lp_m), 0.0)

    fl0, fl1, fl2 = physical_flux(rho_l, u_l, v_l, c1, c2, lam)
    fr0, fr1, fr2 = physical_flux(rho_r, u_r, v_r, c1, c2, lam)

    inv = 1.0 / (s_rp - s_lm)
    ss = s_rp * s_lm
    F0 = (s_rp * fl0 - s_lm * fr0 + ss * (rho_r - rho_l)) * inv
    F1 = (s_rp * fl1 - s_lm * fr1 + ss * (rho_r * u_r - rho_l * u_l)) * inv
    F2 = (s_rp * fl2 - s_lm * fr2 + ss * (rho_r * v_r - rho_l * v_l)) * inv
    return F0, F1, F2


@njit(cache=True)
def flux_x(
    rho_l: float,
    rho_r: float,
    u_l: float,
    u_r: float,
    v_l: float,
    v_r: float,
    c1: float,
    c2: float,
    lam: float,
    method: int,
) -> tuple[float, float, float]:
    """Numerical x-flux between the left state ``(rho_l, u_l, v_l)`` and the
    right state ``(rho_r, u_r, v_r)``.

    Args:
        method: ``int(FluxMethod.ROE)`` or ``int(FluxMethod.HLLE)``. The value
            is resolved once by :func:`resolve_method`; any other integer
            falls through to HLLE.

    Returns:
        ``(F_rho, F_rho_u, F_rho_v)``. Zero when both densities are vacuum.
    """
    if rho_l < RHO_VACUUM and rho_r < RHO_VACUUM:
        return 0.0, 0.0, 0.0
    if method == _ROE:
        return roe_flux(rho_l, rho_r, u_l, u_r, v_l, v_r, c1, c2, lam)
    return hlle_flux(rho_l, rho_r, u_l, u_r, v_l, v_r, c1, c2, lam)

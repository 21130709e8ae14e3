"""Initial data and exterior force fields on the ghost-padded grid.

All arrays have shape (ncellx+2, ncelly+2). Cell (i, j) of the interior,
1 <= i <= ncellx, has its centre at x = (i - 1/2) dx, y = (j - 1/2) dy.
Force fields are zero on the ghost layer.
"""

from __future__ import annotations

import logging

import numpy as np

from soh.config import DomainConfig, ForceConfig
from soh.fluid.boundary import apply_bc_state

logger = logging.getLogger(__name__)


def random_init(
    ncellx: int,
    ncelly: int,
    mean_rho: float,
    range_rho: float,
    mean_theta: float,
    range_theta: float,
    bcond_x: str = "periodic",
    bcond_y: str = "periodic",
    rng: np.random.Generator | None = None,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Sample random data ``(rho, u, v)``.

    ``rho`` is uniform in ``mean_rho +- range_rho/2``; the orientation is
    ``(cos(theta), sin(theta))`` with ``theta`` uniform in
    ``mean_theta +- range_theta/2``. Boundary conditions are applied.
    """
    if rng is None:
        rng = np.random.default_rng()
    shape = (ncellx + 2, ncelly + 2)
    rho = mean_rho + range_rho * (rng.random(shape) - 0.5)
    theta = mean_theta + range_theta * (rng.random(shape) - 0.5)
    u = np.cos(theta)
    v = np.sin(theta)
    apply_bc_state(rho, u, v, bcond_x, bcond_y)
    return rho, u, v


def _centred_coordinates(
    ncellx: int,
    ncelly: int,
    dx: float,
    dy: float,
) -> tuple[np.ndarray, np.ndarray]:
    """Interior cell-centre coordinates relative to the box midpoint."""
    x = (np.arange(ncellx) + 0.5) * dx - 0.5 * ncellx * dx
    y = (np.arange(ncelly) + 0.5) * dy - 0.5 * ncelly * dy
    return np.meshgrid(x, y, indexing="ij")


def quadratic_potential_force(
    ncellx: int,
    ncelly: int,
    dx: float,
    dy: float,
    C: float,
) -> tuple[np.ndarray, np.ndarray]:
    """Force of the radial potential V(r) = C r^2 / 2 centred in the box."""
    X, Y = _centred_coordinates(ncellx, ncelly, dx, dy)
    Fx = np.zeros((ncellx + 2, ncelly + 2))
    Fy = np.zeros((ncellx + 2, ncelly + 2))
    Fx[1:-1, 1:-1] = -C * X
    Fy[1:-1, 1:-1] = -C * Y
    return Fx, Fy


def flat_quadratic_potential_force(
    ncellx: int,
    ncelly: int,
    dx: float,
    dy: float,
    r0: float,
    C: float,
) -> tuple[np.ndarray, np.ndarray]:
    """Force of V(r) = C (r - r0)^2 / 2 for r > r0 and V = 0 otherwise.

    F = -C (r - r0) (x - m) / r outside the disc of radius ``r0``, zero inside.
    """
    X, Y = _centred_coordinates(ncellx, ncelly, dx, dy)
    R = np.sqrt(X**2 + Y**2)
    outside = R > r0
    R_safe = np.where(outside, R, 1.0)
    scale = np.where(outside, -C * (R - r0) / R_safe, 0.0)

    Fx = np.zeros((ncellx + 2, ncelly + 2))
    Fy = np.zeros((ncellx + 2, ncelly + 2))
    Fx[1:-1, 1:-1] = scale * X
    Fy[1:-1, 1:-1] = scale * Y
    return Fx, Fy


def force_from_config(
    force: ForceConfig,
    domain: DomainConfig,
) -> tuple[np.ndarray | None, np.ndarray | None]:
    """Build ``(Fx, Fy)`` for the configured potential, ``(None, None)`` if none."""
    if force.kind == "none":
        return None, None
    if force.kind == "quadratic":
        Fx, Fy = quadratic_potential_force(
            domain.ncellx, domain.ncelly, domain.dx, domain.dy, force.strength,
        )
    else:
        Fx, Fy = flat_quadratic_potential_force(
            domain.ncellx, domain.ncelly, domain.dx, domain.dy, force.r0, force.strength,
        )
    logger.debug("Exterior force '%s': max |F| = %.3e", force.kind, float(np.max(np.hypot(Fx, Fy))))
    return Fx, Fy

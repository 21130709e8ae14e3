"""Derived diagnostic quantities of the (rho, u, v) grid state.

Functions are pure numpy, without Numba: they are called
infrequently (per snapshot, not per timestep). All of them read the
interior ``[1:-1, 1:-1]`` only.
"""

from __future__ import annotations

import numpy as np


def total_mass(rho: np.ndarray, dx: float, dy: float) -> float:
    """Integral of the density over the interior."""
    return float(np.sum(rho[1:-1, 1:-1]) * dx * dy)


def mean_orientation(rho: np.ndarray, u: np.ndarray, v: np.ndarray) -> float:
    """Density-weighted polar order parameter |<rho Omega>| / <rho>.

    1 for a fully aligned field, close to 0 for an isotropic one.
    """
    r = rho[1:-1, 1:-1]
    mass = np.sum(r)
    if mass <= 0:
        return 0.0
    mx = np.sum(r * u[1:-1, 1:-1])
    my = np.sum(r * v[1:-1, 1:-1])
    return float(np.hypot(mx, my) / mass)


def max_norm_error(u: np.ndarray, v: np.ndarray) -> float:
    """Largest deviation of |Omega| from 1 on the interior."""
    norm = np.sqrt(u[1:-1, 1:-1] ** 2 + v[1:-1, 1:-1] ** 2)
    return float(np.max(np.abs(norm - 1.0)))


def radial_density(
    rho: np.ndarray,
    dx: float,
    dy: float,
    n_bins: int = 400,
) -> tuple[np.ndarray, np.ndarray]:
    """Mean density in thin annuli around the box centre.

    The radii ``r_k`` are evenly spread between 0 and the largest
    cell-centre distance; bin k averages the cells whose distance lies
    within ``dr/2`` of ``r_k + dr``.

    Args:
        rho: Density, shape (ncellx+2, ncelly+2).
        dx, dy: Cell sizes.
        n_bins: Number of annuli (>= 2).

    Returns:
        ``(r, rho_r)``, each of shape ``(n_bins,)``. Empty annuli are NaN.
    """
    if n_bins < 2:
        raise ValueError(f"n_bins must be at least 2, got {n_bins}")
    ncellx = rho.shape[0] - 2
    ncelly = rho.shape[1] - 2
    x = (np.arange(ncellx) + 0.5) * dx - 0.5 * ncellx * dx
    y = (np.arange(ncelly) + 0.5) * dy - 0.5 * ncelly * dy
    X, Y = np.meshgrid(x, y, indexing="ij")
    dist = np.sqrt(X**2 + Y**2).ravel()
    values = rho[1:-1, 1:-1].ravel()

    r = np.linspace(0.0, dist.max(), n_bins)
    dr = r[1] - r[0]
    rho_r = np.full(n_bins, np.nan)
    for k in range(n_bins):
        mask = np.abs(dist - (r[k] + dr)) < 0.5 * dr
        if np.any(mask):
            rho_r[k] = values[mask].mean()
    return r, rho_r

"""Finite-volume kernels: Riemann fluxes, boundary conditions, splitting scheme."""

from soh.fluid.boundary import (
    apply_bc_state,
    apply_bc_x,
    apply_bc_xy,
    apply_bc_y,
)
from soh.fluid.flux import FluxMethod, flux_x, hlle_flux, roe_flux
from soh.fluid.scheme import (
    FluxBuffers,
    SchemeParameters,
    SOHSolver,
    exterior_force_step,
    scheme_iter,
    sweep_x,
    sweep_y,
)

__all__ = [
    "FluxBuffers",
    "FluxMethod",
    "SOHSolver",
    "SchemeParameters",
    "apply_bc_state",
    "apply_bc_x",
    "apply_bc_xy",
    "apply_bc_y",
    "exterior_force_step",
    "flux_x",
    "hlle_flux",
    "roe_flux",
    "scheme_iter",
    "sweep_x",
    "sweep_y",
]

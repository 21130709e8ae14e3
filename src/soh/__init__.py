"""SOH: operator-splitting finite-volume solver for self-organized hydrodynamics."""

from soh.config import SimulationConfig
from soh.core.bases import StepReport
from soh.fluid.flux import FluxMethod, flux_x
from soh.fluid.scheme import FluxBuffers, SchemeParameters, SOHSolver, scheme_iter

__version__ = "0.1.0"

__all__ = [
    "FluxBuffers",
    "FluxMethod",
    "SOHSolver",
    "SchemeParameters",
    "SimulationConfig",
    "StepReport",
    "flux_x",
    "scheme_iter",
]

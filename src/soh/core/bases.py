"""Core abstract base classes and shared data structures.

Defines:
- ``StepReport``: per-step numerical-degeneracy counters
- ``SolverBase``: ABC for solvers advancing the (rho, u, v) grid state
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np


@dataclass
class StepReport:
    """Result of a single timestep.

    Attributes:
        bad_rho_x: Interior cells with non-positive density after the x-sweep.
        bad_rho_y: Interior cells with non-positive density after the y-sweep.
        degenerate_x: Cells whose momentum norm vanished in the x-sweep.
        degenerate_y: Cells whose momentum norm vanished in the y-sweep.
        forced_cells: Cells rotated by the exterior-force step (0 if no force).
        n_interior: Number of interior cells, ncellx * ncelly.
    """

    bad_rho_x: int = 0
    bad_rho_y: int = 0
    degenerate_x: int = 0
    degenerate_y: int = 0
    forced_cells: int = 0
    n_interior: int = 0

    @property
    def bad_rho(self) -> int:
        return self.bad_rho_x + self.bad_rho_y

    @property
    def degenerate(self) -> int:
        return self.degenerate_x + self.degenerate_y


class SolverBase(ABC):
    """Abstract base for solvers of the SOH system on a ghost-padded grid."""

    @abstractmethod
    def step(
        self,
        rho: np.ndarray,
        u: np.ndarray,
        v: np.ndarray,
    ) -> StepReport:
        """Advance ``(rho, u, v)`` in place by one timestep.

        Args:
            rho: Density, shape (ncellx+2, ncelly+2).
            u: x-component of the orientation, same shape.
            v: y-component of the orientation, same shape.

        Returns:
            Degeneracy counters for the step.
        """

"""Simulation engine: orchestrates the SOH simulation loop.

Wires together: config -> coefficients -> initial data / force -> solver ->
checkpoints into a timestep loop:

1. Resolve the model coefficients (explicit or from kappa)
2. Build the initial data and the exterior force
3. Validate the step parameters once, before any step runs
4. Advance the grid state with :class:`soh.fluid.scheme.SOHSolver`
5. Save the state every ``save_step`` steps (initial and final always)
"""

from __future__ import annotations

import json
import logging
import time as wall_time
from pathlib import Path
from typing import Any

import numpy as np

from soh.coefficients import cfl_number
from soh.config import SimulationConfig
from soh.core.bases import StepReport
from soh.diagnostics.checkpoint import load_checkpoint, make_new_dir, save_checkpoint
from soh.diagnostics.derived import max_norm_error, mean_orientation, total_mass
from soh.fluid.boundary import apply_bc_state
from soh.fluid.scheme import SchemeParameters, SOHSolver, interior_shape
from soh.init import force_from_config, random_init

logger = logging.getLogger(__name__)


class SimulationEngine:
    """SOH simulation engine.

    Args:
        config: Validated SimulationConfig.
        rho, u, v: Optional initial data of shape (ncellx+2, ncelly+2). When
            omitted, random data is sampled from ``config.init``. The engine
            takes ownership of the arrays and mutates them in place.
    """

    def __init__(
        self,
        config: SimulationConfig,
        rho: np.ndarray | None = None,
        u: np.ndarray | None = None,
        v: np.ndarray | None = None,
    ) -> None:
        self.config = config
        self.time = 0.0
        self.step_count = 0

        dom = config.domain
        num = config.numerics
        bcond_x, bcond_y = dom.policies

        self.c1, self.c2, self.lam = config.model.resolve()
        Fx, Fy = force_from_config(config.force, dom)

        # Configuration errors surface here, before any step
        self.params = SchemeParameters(
            dx=dom.dx,
            dy=dom.dy,
            dt=num.dt,
            c1=self.c1,
            c2=self.c2,
            lam=self.lam,
            bcond_x=bcond_x,
            bcond_y=bcond_y,
            method=num.method,
            Fx=Fx,
            Fy=Fy,
        )

        if rho is None and u is None and v is None:
            ic = config.init
            rho, u, v = random_init(
                dom.ncellx, dom.ncelly,
                ic.mean_rho, ic.range_rho,
                ic.mean_theta, ic.range_theta,
                bcond_x=bcond_x, bcond_y=bcond_y,
                rng=np.random.default_rng(ic.seed),
            )
        elif rho is None or u is None or v is None:
            raise ValueError("initial data needs all of rho, u and v")
        else:
            if interior_shape(rho, u, v) != (dom.ncellx, dom.ncelly):
                raise ValueError(
                    f"initial data shape {rho.shape} does not match the "
                    f"{dom.ncellx}x{dom.ncelly} domain"
                )
            apply_bc_state(rho, u, v, bcond_x, bcond_y)

        self.rho = rho
        self.u = u
        self.v = v
        self.solver = SOHSolver(self.params, dom.ncellx, dom.ncelly)

        self.total_bad_rho = 0
        self.total_degenerate = 0
        self.output_dir: Path | None = None
        self.initial_mass = total_mass(self.rho, dom.dx, dom.dy)

    # --- State access ---

    @property
    def state(self) -> dict[str, np.ndarray]:
        return {"rho": self.rho, "u": self.u, "v": self.v}

    @property
    def n_steps(self) -> int:
        return self.config.numerics.n_steps

    @property
    def cfl(self) -> float:
        return cfl_number(self.c1, self.c2, self.lam, self.params.dt, min(self.params.dx, self.params.dy))

    def log_parameters(self) -> None:
        """Log the model, domain, numerical and saving parameters."""
        dom = self.config.domain
        out = self.config.output
        logger.info("Model: c1=%.6g, c2=%.6g, lam=%.6g", self.c1, self.c2, self.lam)
        logger.info(
            "Domain: Lx=%g, Ly=%g, bc=(%s, %s), exterior force: %s",
            dom.Lx, dom.Ly, self.params.bcond_x, self.params.bcond_y, self.config.force.kind,
        )
        logger.info(
            "Numerics: dx=%.4g, dy=%.4g, dt=%.4g, CFL=%.4g, scheme=%s, final time=%g (%d steps)",
            self.params.dx, self.params.dy, self.params.dt, self.cfl,
            self.params.method.name, self.config.numerics.final_time, self.n_steps,
        )
        if self.cfl > 1.0:
            logger.warning("CFL number %.3g exceeds 1; the scheme is likely unstable", self.cfl)
        if out.save_step > 0:
            estimated_gb = 8 * dom.ncellx * dom.ncelly * 3 * self.n_steps / out.save_step * 1e-9
            logger.info("Saving every %d steps (estimated size %.2f GB)", out.save_step, estimated_gb)
        else:
            logger.info("Only the initial and final data will be saved")

    # --- Stepping ---

    def step(self) -> StepReport:
        """Advance the state by one timestep."""
        report = self.solver.step(self.rho, self.u, self.v)
        self.step_count += 1
        self.time = self.step_count * self.params.dt
        self.total_bad_rho += report.bad_rho
        self.total_degenerate += report.degenerate
        if report.degenerate:
            logger.debug(
                "Step %d: %d cells kept their previous orientation (zero momentum)",
                self.step_count, report.degenerate,
            )
        return report

    # --- Checkpoints ---

    def _scalars(self) -> dict[str, float]:
        return {
            "c1": self.c1,
            "c2": self.c2,
            "lam": self.lam,
            "total_bad_rho": self.total_bad_rho,
            "total_degenerate": self.total_degenerate,
        }

    def save_checkpoint(self, filename: str | Path) -> None:
        """Save current simulation state to an HDF5 checkpoint file."""
        save_checkpoint(
            filename, self.state, self.time, self.step_count,
            config_json=self.config.model_dump_json(), scalars=self._scalars(),
        )

    def load_from_checkpoint(self, filename: str | Path) -> None:
        """Restore the grid state, time and step count from a checkpoint."""
        data = load_checkpoint(filename)
        state = data["state"]
        shape = (self.config.domain.ncellx + 2, self.config.domain.ncelly + 2)
        if state["rho"].shape != shape:
            raise ValueError(f"checkpoint grid {state['rho'].shape} does not match {shape}")
        # Copy into the owned arrays so the solver keeps working on them
        self.rho[...] = state["rho"]
        self.u[...] = state["u"]
        self.v[...] = state["v"]
        self.time = data["time"]
        self.step_count = data["step_count"]
        scalars = data["scalars"]
        self.total_bad_rho = int(scalars.get("total_bad_rho", 0))
        self.total_degenerate = int(scalars.get("total_degenerate", 0))
        # Mass balance of a restarted run is measured from the restored state
        self.initial_mass = total_mass(self.rho, self.params.dx, self.params.dy)
        logger.info("Restored from checkpoint: t=%.4e, step=%d", self.time, self.step_count)

    def _prepare_output(self) -> Path:
        out = self.config.output
        self.output_dir = make_new_dir(Path(out.output_dir) / out.simu_name)
        (self.output_dir / "data").mkdir()
        return self.output_dir

    def _save_data(self) -> None:
        if self.output_dir is None:
            raise RuntimeError("output directory not prepared; call run(save=True)")
        self.save_checkpoint(self.output_dir / "data" / f"data_{self.step_count}.h5")

    # --- Main loop ---

    def run(self, max_steps: int | None = None, save: bool = True) -> dict[str, Any]:
        """Execute the simulation loop.

        Args:
            max_steps: Maximum number of additional timesteps, counted from
                the current (possibly restored) step. None runs to final_time.
            save: Write checkpoints and parameters to the output directory.

        Returns:
            Dictionary with summary statistics. ``mass_initial`` is the mass
            when this call started, or when the checkpoint was loaded.
        """
        out = self.config.output
        if max_steps is None:
            n_target = self.n_steps
        else:
            n_target = min(self.n_steps, self.step_count + max_steps)

        self.log_parameters()
        if save:
            self._prepare_output()
            self._save_data()

        t_wall_start = wall_time.monotonic()
        logger.info("Starting simulation: %d steps", n_target - self.step_count)

        last_saved = self.step_count
        while self.step_count < n_target:
            self.step()
            if save and out.save_step > 0 and self.step_count % out.save_step == 0:
                self._save_data()
                last_saved = self.step_count
            if self.step_count % out.log_interval == 0:
                logger.info(
                    "step %d/%d, t=%.4g, order=%.4f",
                    self.step_count, n_target, self.time,
                    mean_orientation(self.rho, self.u, self.v),
                )

        t_wall = wall_time.monotonic() - t_wall_start
        if save and last_saved != self.step_count:
            self._save_data()

        summary = {
            "steps": self.step_count,
            "sim_time": self.time,
            "wall_time_s": t_wall,
            "total_bad_rho": self.total_bad_rho,
            "total_degenerate": self.total_degenerate,
            "mass_initial": self.initial_mass,
            "mass_final": total_mass(self.rho, self.params.dx, self.params.dy),
            "max_norm_error": max_norm_error(self.u, self.v),
            "output_dir": str(self.output_dir) if self.output_dir is not None else None,
        }

        if save:
            parameters = {
                "config": json.loads(self.config.model_dump_json()),
                "c1": self.c1,
                "c2": self.c2,
                "lam": self.lam,
                "cfl": self.cfl,
                "summary": summary,
            }
            (self.output_dir / "parameters.json").write_text(json.dumps(parameters, indent=2))

        logger.info("Simulation finished: %d steps in %.2f s", self.step_count, t_wall)
        return summary

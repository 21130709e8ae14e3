"""Pydantic v2 configuration system for SOH simulations.

Provides validated, typed configuration with submodels for the model
coefficients, the domain, the numerical method, the exterior force, the
initial data and the output. Supports JSON I/O and cross-field validation.
"""

from __future__ import annotations

import json
import math
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from soh.coefficients import coefficients_vicsek
from soh.fluid.boundary import BOUNDARY_POLICIES, resolve_policy
from soh.fluid.flux import check_discriminant, resolve_method

COEFFICIENT_MODELS = ("fokker-planck", "bgk")
FORCE_KINDS = ("none", "quadratic", "flat_quadratic")


class ModelConfig(BaseModel):
    """Model coefficients, explicit or derived from a concentration parameter."""

    kappa: float | None = Field(
        None, gt=0,
        description="Concentration parameter; c1, c2, lam are computed from it",
    )
    model: str = Field(
        "fokker-planck",
        description="Coefficient model for kappa: 'fokker-planck' or 'bgk'",
    )
    c1: float | None = Field(None, description="Transport coefficient c1")
    c2: float | None = Field(None, ge=0, description="Transport coefficient c2")
    lam: float | None = Field(None, gt=0, description="Pressure coefficient lambda")

    @model_validator(mode="after")
    def check_source(self) -> ModelConfig:
        if self.model.lower() not in COEFFICIENT_MODELS:
            raise ValueError(f"model must be 'fokker-planck' or 'bgk', got '{self.model}'")
        given = [x is not None for x in (self.c1, self.c2, self.lam)]
        if any(given) and not all(given):
            raise ValueError("c1, c2 and lam must be given together")
        if all(given):
            check_discriminant(self.c1, self.c2, self.lam)
        elif self.kappa is None:
            raise ValueError("either kappa or (c1, c2, lam) must be given")
        return self

    @property
    def explicit(self) -> bool:
        return self.c1 is not None

    def resolve(self) -> tuple[float, float, float]:
        """Return ``(c1, c2, lam)``, computing them from kappa if needed."""
        if self.explicit:
            return self.c1, self.c2, self.lam
        return coefficients_vicsek(self.kappa, model=self.model)


class DomainConfig(BaseModel):
    """Rectangular domain [0, Lx] x [0, Ly] and its boundary conditions."""

    Lx: float = Field(..., gt=0, description="Domain length along x")
    Ly: float = Field(..., gt=0, description="Domain length along y")
    ncellx: int = Field(..., ge=1, description="Interior cells along x")
    ncelly: int = Field(..., ge=1, description="Interior cells along y")
    bcond_x: str = Field(
        "periodic",
        description="Boundary condition along x: 'periodic', 'neumann', or 'reflecting'",
    )
    bcond_y: str = Field(
        "periodic",
        description="Boundary condition along y: 'periodic', 'neumann', or 'reflecting'",
    )

    @model_validator(mode="after")
    def validate_bconds(self) -> DomainConfig:
        for name in ("bcond_x", "bcond_y"):
            value = getattr(self, name)
            if value.strip().lower() not in BOUNDARY_POLICIES:
                raise ValueError(
                    f"{name} must be 'periodic', 'neumann', or 'reflecting', got '{value}'"
                )
        return self

    @property
    def dx(self) -> float:
        return self.Lx / self.ncellx

    @property
    def dy(self) -> float:
        return self.Ly / self.ncelly

    @property
    def policies(self) -> tuple[str, str]:
        return resolve_policy(self.bcond_x), resolve_policy(self.bcond_y)


class NumericsConfig(BaseModel):
    """Time stepping and Riemann solver."""

    dt: float = Field(..., gt=0, description="Timestep")
    final_time: float = Field(..., gt=0, description="Final time of the simulation")
    method: str = Field("hlle", description="Interface flux: 'roe' or 'hlle'")

    @model_validator(mode="after")
    def validate_method(self) -> NumericsConfig:
        resolve_method(self.method)
        return self

    @property
    def n_steps(self) -> int:
        """Number of full steps to reach final_time (floor, rounding-tolerant)."""
        return int(math.floor(self.final_time / self.dt + 1e-9))


class ForceConfig(BaseModel):
    """Exterior force F = -grad(V) for a radial potential centred in the box."""

    kind: str = Field(
        "none",
        description="'none', 'quadratic' (V = C r^2/2) or 'flat_quadratic' (V = 0 for r < r0)",
    )
    strength: float = Field(1.0, ge=0, description="Potential strength C")
    r0: float = Field(0.0, ge=0, description="Radius of the flat region (flat_quadratic only)")

    @model_validator(mode="after")
    def validate_kind(self) -> ForceConfig:
        self.kind = self.kind.strip().lower()
        if self.kind not in FORCE_KINDS:
            raise ValueError(
                f"force kind must be 'none', 'quadratic', or 'flat_quadratic', got '{self.kind}'"
            )
        return self


class InitialConditionConfig(BaseModel):
    """Uniformly sampled random initial data."""

    mean_rho: float = Field(1.0, gt=0, description="Mean initial density")
    range_rho: float = Field(0.0, ge=0, description="Width of the density interval")
    mean_theta: float = Field(0.0, description="Mean orientation angle [rad]")
    range_theta: float = Field(2.0 * math.pi, ge=0, description="Width of the angle interval [rad]")
    seed: int | None = Field(None, description="Random seed (None = nondeterministic)")

    @model_validator(mode="after")
    def check_density_range(self) -> InitialConditionConfig:
        if self.mean_rho - 0.5 * self.range_rho < 0:
            raise ValueError("mean_rho - range_rho/2 must be non-negative")
        return self


class OutputConfig(BaseModel):
    """Checkpoint and logging parameters."""

    simu_name: str = Field("simu", description="Name of the simulation directory")
    output_dir: str = Field(".", description="Parent directory of the simulation directory")
    save_step: int = Field(
        0, ge=0,
        description="Steps between saved states (0 = initial and final state only)",
    )
    log_interval: int = Field(100, gt=0, description="Steps between progress log lines")


class SimulationConfig(BaseModel):
    """Top-level simulation configuration."""

    model: ModelConfig
    domain: DomainConfig
    numerics: NumericsConfig
    force: ForceConfig = Field(default_factory=ForceConfig)
    init: InitialConditionConfig = Field(default_factory=InitialConditionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @model_validator(mode="after")
    def validate_force_domain(self) -> SimulationConfig:
        if self.force.kind == "flat_quadratic":
            half_diag = 0.5 * math.hypot(self.domain.Lx, self.domain.Ly)
            if self.force.r0 >= half_diag:
                raise ValueError(
                    f"r0={self.force.r0} leaves no forced cell in a {self.domain.Lx}x{self.domain.Ly} box"
                )
        return self

    # --- I/O helpers ---

    @classmethod
    def from_file(cls, path: str | Path) -> SimulationConfig:
        """Load configuration from a JSON file."""
        path = Path(path)
        with path.open() as f:
            data = json.load(f)
        return cls(**data)

    def to_json(self, path: str | Path | None = None) -> str:
        """Serialize to JSON string, optionally writing to file."""
        out = self.model_dump_json(indent=2)
        if path is not None:
            Path(path).write_text(out)
        return out

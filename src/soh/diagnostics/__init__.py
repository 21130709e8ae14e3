"""Checkpoints and derived diagnostics."""

from soh.diagnostics.checkpoint import (
    latest_checkpoint,
    load_checkpoint,
    make_new_dir,
    save_checkpoint,
)
from soh.diagnostics.derived import (
    max_norm_error,
    mean_orientation,
    radial_density,
    total_mass,
)

__all__ = [
    "latest_checkpoint",
    "load_checkpoint",
    "make_new_dir",
    "max_norm_error",
    "mean_orientation",
    "radial_density",
    "save_checkpoint",
    "total_mass",
]

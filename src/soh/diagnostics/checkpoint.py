"""HDF5 snapshots of the SOH grid state and simulation directories.

A snapshot ``data_<step>.h5`` holds

- file attributes ``time``, ``step_count``, ``checkpoint_version`` and,
  optionally, ``config_json``
- group ``state`` with the ghost-padded ``rho``, ``u``, ``v`` datasets
- group ``scalars`` whose attributes carry coefficients and counters

Every snapshot is a valid restart point.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import h5py
import numpy as np

logger = logging.getLogger(__name__)

CHECKPOINT_VERSION = 1
STATE_FIELDS = ("rho", "u", "v")

_SNAPSHOT_RE = re.compile(r"^data_(\d+)\.h5$")


def make_new_dir(dirname: str | Path) -> Path:
    """Create ``dirname``, or ``dirname_1``, ``dirname_2``, ... if it is taken.

    Returns:
        Path of the created directory.
    """
    path = Path(dirname)
    candidate = path
    k = 0
    while candidate.exists():
        k += 1
        candidate = path.with_name(f"{path.name}_{k}")
    candidate.mkdir(parents=True)
    return candidate


def save_checkpoint(
    filename: str | Path,
    state: dict[str, np.ndarray],
    time: float,
    step_count: int,
    config_json: str | None = None,
    scalars: dict[str, float] | None = None,
) -> None:
    """Write one snapshot.

    Args:
        filename: Target ``.h5`` file, overwritten if present.
        state: ``rho``, ``u`` and ``v`` arrays of one shape, ghosts included.
        time: Simulation time of the snapshot.
        step_count: Number of completed steps.
        config_json: Serialized SimulationConfig, stored verbatim.
        scalars: Coefficients and cumulative counters.

    Raises:
        ValueError: If a state field is missing or the shapes differ.
    """
    missing = [name for name in STATE_FIELDS if name not in state]
    if missing:
        raise ValueError(f"state is missing {missing}")
    shapes = {np.shape(state[name]) for name in STATE_FIELDS}
    if len(shapes) != 1:
        raise ValueError(f"state fields differ in shape: {sorted(shapes)}")

    logger.debug("Writing %s (t=%.4e, step=%d)", filename, time, step_count)
    with h5py.File(filename, "w") as f:
        f.attrs["checkpoint_version"] = CHECKPOINT_VERSION
        f.attrs["time"] = time
        f.attrs["step_count"] = step_count
        if config_json is not None:
            f.attrs["config_json"] = config_json

        grp = f.create_group("state")
        for name in STATE_FIELDS:
            grp.create_dataset(name, data=np.asarray(state[name], dtype=np.float64))

        attrs = f.create_group("scalars").attrs
        for key, value in (scalars or {}).items():
            attrs[key] = value


def load_checkpoint(filename: str | Path) -> dict[str, Any]:
    """Read a snapshot written by :func:`save_checkpoint`.

    Returns:
        Dictionary with ``state`` (dict of arrays), ``scalars`` (dict of
        floats), ``time``, ``step_count`` and ``config_json`` (str or None).

    Raises:
        ValueError: If the file was written by a newer format version.
    """
    with h5py.File(filename, "r") as f:
        version = int(f.attrs.get("checkpoint_version", 0))
        if version > CHECKPOINT_VERSION:
            raise ValueError(
                f"{filename} has checkpoint version {version}, "
                f"this reader supports up to {CHECKPOINT_VERSION}"
            )
        config_json = f.attrs.get("config_json")
        data = {
            "state": {name: f["state"][name][()] for name in f["state"]},
            "scalars": {k: float(v) for k, v in f["scalars"].attrs.items()} if "scalars" in f else {},
            "time": float(f.attrs["time"]),
            "step_count": int(f.attrs["step_count"]),
            "config_json": None if config_json is None else str(config_json),
        }

    logger.info("Loaded %s: t=%.4e, step=%d", filename, data["time"], data["step_count"])
    return data


def latest_checkpoint(directory: str | Path) -> Path:
    """Return the ``data_<step>.h5`` file with the largest step.

    ``directory`` may be a simulation directory or its ``data``
    subdirectory.

    Raises:
        FileNotFoundError: If no snapshot is found.
    """
    directory = Path(directory)
    if (directory / "data").is_dir():
        directory = directory / "data"
    steps = {}
    for path in directory.iterdir():
        match = _SNAPSHOT_RE.match(path.name)
        if match:
            steps[int(match.group(1))] = path
    if not steps:
        raise FileNotFoundError(f"no data_<step>.h5 snapshot in {directory}")
    return steps[max(steps)]

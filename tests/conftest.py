"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import numpy as np
import pytest

from soh.config import SimulationConfig
from soh.fluid.scheme import SchemeParameters


@pytest.fixture
def coeffs():
    """Strictly hyperbolic coefficients (c1, c2, lam) with lam >= c1 - c2."""
    return (0.9, 0.8, 0.2)


@pytest.fixture
def grid_size():
    """Small grid for fast unit tests."""
    return (16, 12)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def make_params(coeffs):
    """Factory for SchemeParameters with dt/dx = 0.2."""
    c1, c2, lam = coeffs

    def _make(**overrides):
        kwargs = dict(dx=0.1, dy=0.1, dt=0.02, c1=c1, c2=c2, lam=lam)
        kwargs.update(overrides)
        return SchemeParameters(**kwargs)

    return _make


@pytest.fixture
def random_state(grid_size, rng):
    """Random (rho, u, v) with rho in [0.75, 1.25] and unit orientation."""
    ncellx, ncelly = grid_size
    shape = (ncellx + 2, ncelly + 2)
    rho = 1.0 + 0.5 * (rng.random(shape) - 0.5)
    theta = 2.0 * np.pi * rng.random(shape)
    return rho, np.cos(theta), np.sin(theta)


@pytest.fixture
def sample_config_dict(coeffs, tmp_path):
    """Minimal valid SimulationConfig as a dictionary."""
    c1, c2, lam = coeffs
    return {
        "model": {"c1": c1, "c2": c2, "lam": lam},
        "domain": {"Lx": 0.8, "Ly": 0.8, "ncellx": 8, "ncelly": 8},
        "numerics": {"dt": 0.02, "final_time": 0.1, "method": "hlle"},
        "init": {"mean_rho": 1.0, "range_rho": 0.4, "seed": 7},
        "output": {"simu_name": "test", "output_dir": str(tmp_path)},
    }


@pytest.fixture
def small_config(sample_config_dict):
    """Small SimulationConfig for fast unit tests."""
    return SimulationConfig(**sample_config_dict)

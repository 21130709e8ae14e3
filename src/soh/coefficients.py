"""SOH model coefficients from the Vicsek-type kinetic models.

For a concentration parameter kappa the coefficients are

    c1  = int_0^pi cos(t) e^{k cos t} dt / int_0^pi e^{k cos t} dt
    c2  = int_0^pi cos(t) sin(t) g(t) e^{k cos t} dt
          / int_0^pi sin(t) g(t) e^{k cos t} dt
    lam = 1 / kappa

with g(t) = sin(t) for the BGK model and, for the Fokker-Planck model,

    g(t) = t/k - (pi/k) int_0^t e^{-k cos s} ds / int_0^pi e^{-k cos s} ds

Quadratures use ``scipy.integrate.quad``.
"""

from __future__ import annotations

import logging
import math

import numpy as np
from scipy.integrate import quad

logger = logging.getLogger(__name__)

_RTOL = 1e-8


def _integrate(f, a: float, b: float) -> float:
    value, _ = quad(f, a, b, epsrel=_RTOL, limit=200)
    return value


def coefficients_vicsek(kappa: float, model: str = "fokker-planck") -> tuple[float, float, float]:
    """Return ``(c1, c2, lam)`` for the concentration parameter ``kappa``.

    Args:
        kappa: Concentration parameter, > 0.
        model: ``"fokker-planck"`` (default) or ``"bgk"``.

    Raises:
        ValueError: If kappa is not positive or the model is unknown.
    """
    if not kappa > 0:
        raise ValueError(f"kappa must be positive, got {kappa}")
    key = model.strip().lower()
    if key not in ("fokker-planck", "bgk"):
        raise ValueError(f"model must be 'fokker-planck' or 'bgk', got '{model}'")

    lam = 1.0 / kappa
    I1 = _integrate(lambda t: math.cos(t) * math.exp(kappa * math.cos(t)), 0.0, math.pi)
    Z1 = _integrate(lambda t: math.exp(kappa * math.cos(t)), 0.0, math.pi)
    c1 = I1 / Z1

    if key == "bgk":
        def g(t: float) -> float:
            return math.sin(t)
    else:
        z_inv = _integrate(lambda s: math.exp(-kappa * math.cos(s)), 0.0, math.pi)

        def g(t: float) -> float:
            partial = _integrate(lambda s: math.exp(-kappa * math.cos(s)), 0.0, t)
            return t / kappa - math.pi / kappa * partial / z_inv

    I2 = _integrate(
        lambda t: math.cos(t) * math.sin(t) * g(t) * math.exp(kappa * math.cos(t)), 0.0, math.pi,
    )
    Z2 = _integrate(lambda t: math.sin(t) * g(t) * math.exp(kappa * math.cos(t)), 0.0, math.pi)
    c2 = I2 / Z2

    logger.debug("Coefficients (%s, kappa=%.3g): c1=%.6f c2=%.6f lam=%.6f", key, kappa, c1, c2, lam)
    return c1, c2, lam


def cfl_number(c1: float, c2: float, lam: float, dt: float, dx: float) -> float:
    """CFL number c1 * dt/dx * sqrt(lam / (c1 - c2)).

    Returns ``inf`` when c1 <= c2.
    """
    if c1 <= c2:
        return float("inf")
    return float(c1 * dt / dx * np.sqrt(lam / (c1 - c2)))

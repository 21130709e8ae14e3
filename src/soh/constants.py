"""Numerical thresholds shared by the SOH scheme.

Import from here instead of defining local constants.
"""

RHO_FLOOR = 1e-6        # Density floor applied after each sweep
RHO_VACUUM = 1e-9       # Both sides below this => zero interface flux
MOMENTUM_EPS = 1e-12    # Momentum norm treated as zero in the relaxation step
FORCE_EPS = 1e-9        # Force magnitude below which no rotation is applied

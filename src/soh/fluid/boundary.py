"""Ghost-cell boundary conditions on the (ncellx+2, ncelly+2) grid.

Every field carries one layer of ghost cells on each side. Axis 0 is x,
axis 1 is y. Three policies are available per axis:

- ``periodic``: ghost = interior value at the opposite edge
- ``neumann``: ghost = adjacent interior value (zero gradient)
- ``reflecting``: ghost = minus the adjacent interior value (zero at the wall)

For the full state (rho, u, v) a reflecting wall is a solid, no-flux,
free-slip wall: the density and the tangential orientation component get
``neumann``, the normal component gets ``reflecting``.

All functions write into the arrays in place.
"""

from __future__ import annotations

import numpy as np

BOUNDARY_POLICIES = ("periodic", "neumann", "reflecting")


def resolve_policy(policy: str) -> str:
    """Normalize a boundary policy name (case-insensitive).

    Raises:
        ValueError: If the name is not one of :data:`BOUNDARY_POLICIES`.
    """
    key = str(policy).strip().lower()
    if key not in BOUNDARY_POLICIES:
        raise ValueError(
            f"boundary condition must be 'periodic', 'neumann', or 'reflecting', got '{policy}'"
        )
    return key


def apply_bc_x(field: np.ndarray, policy: str) -> None:
    """Fill the two x ghost layers (first and last rows) of ``field``."""
    policy = resolve_policy(policy)
    if policy == "periodic":
        field[0, :] = field[-2, :]
        field[-1, :] = field[1, :]
    elif policy == "neumann":
        field[0, :] = field[1, :]
        field[-1, :] = field[-2, :]
    else:
        field[0, :] = -field[1, :]
        field[-1, :] = -field[-2, :]


def apply_bc_y(field: np.ndarray, policy: str) -> None:
    """Fill the two y ghost layers (first and last columns) of ``field``."""
    policy = resolve_policy(policy)
    if policy == "periodic":
        field[:, 0] = field[:, -2]
        field[:, -1] = field[:, 1]
    elif policy == "neumann":
        field[:, 0] = field[:, 1]
        field[:, -1] = field[:, -2]
    else:
        field[:, 0] = -field[:, 1]
        field[:, -1] = -field[:, -2]


def apply_bc_xy(field: np.ndarray, bcond_x: str, bcond_y: str) -> None:
    """Apply ``bcond_x`` then ``bcond_y`` to a scalar field."""
    apply_bc_x(field, bcond_x)
    apply_bc_y(field, bcond_y)


def apply_bc_state(
    rho: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    bcond_x: str,
    bcond_y: str,
) -> None:
    """Apply the boundary conditions to the state ``(rho, u, v)``.

    The x ghost layers are written first, so the four corner cells end up
    with the y rule.
    """
    bcond_x = resolve_policy(bcond_x)
    bcond_y = resolve_policy(bcond_y)

    if bcond_x == "reflecting":
        apply_bc_x(rho, "neumann")
        apply_bc_x(u, "reflecting")
        apply_bc_x(v, "neumann")
    else:
        for field in (rho, u, v):
            apply_bc_x(field, bcond_x)

    if bcond_y == "reflecting":
        apply_bc_y(rho, "neumann")
        apply_bc_y(u, "neumann")
        apply_bc_y(v, "reflecting")
    else:
        for field in (rho, u, v):
            apply_bc_y(field, bcond_y)

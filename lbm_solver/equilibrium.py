"""
Equilibrium Distribution Functions

Maxwell-Boltzmann equilibrium for the D2Q9 lattice.

The equilibrium distribution is derived from the Maxwell-Boltzmann distribution
truncated to second order in velocity:

    f_i^eq = w_i * rho * [1 + (c_i · u)/c_s^2 + (c_i · u)^2/(2*c_s^4) - u^2/(2*c_s^2)]

where:
    - w_i are the lattice weights
    - c_i are the lattice velocities
    - c_s is the isothermal speed of sound of the discretization
    - rho is the density
    - u = (ux, uy) is the macroscopic velocity
"""

import numpy as np
from numba import njit, prange

from .discretization import LATTICE_UNITS
from .fields import check_same_shape
from .lattice import EX, EY, W, Q


def compute_equilibrium(rho, ux, uy, discretization=LATTICE_UNITS, directions=None):
    """
    Compute equilibrium distribution for all lattice sites.

    Uses vectorized NumPy operations.

    Parameters
    ----------
    rho : ndarray
        Density field, shape (ny, nx)
    ux : ndarray
        X-velocity field, shape (ny, nx)
    uy : ndarray
        Y-velocity field, shape (ny, nx)
    discretization : Discretization
        Provides c_s (default: lattice units)
    directions : sequence of Direction, optional
        Direction catalog (default: D2Q9)

    Returns
    -------
    f_eq : ndarray
        Equilibrium distribution, shape (Q, ny, nx)

    Raises
    ------
    ShapeMismatchError
        If rho, ux and uy do not share one shape
    """
    ny, nx = check_same_shape(rho, ux, uy, names=("rho", "ux", "uy"))
    cs2 = discretization.cs2
    cs4 = discretization.cs4

    if directions is None:
        weights, cxs, cys = W, EX, EY
    else:
        weights = [d.weight for d in directions]
        cxs = [d.velocity.x for d in directions]
        cys = [d.velocity.y for d in directions]

    f_eq = np.zeros((len(weights), ny, nx), dtype=np.float64)

    u_sq = ux * ux + uy * uy  # |u|^2

    for i in range(len(weights)):
        # c_i · u
        eu = cxs[i] * ux + cys[i] * uy

        f_eq[i] = weights[i] * rho * (
            1.0
            + eu / cs2
            + (eu * eu) / (2.0 * cs4)
            - u_sq / (2.0 * cs2)
        )

    return f_eq


@njit(parallel=True, cache=True)
def compute_equilibrium_numba(rho, ux, uy, f_eq, ex, ey, w, cs2, cs4):
    """
    Numba-accelerated equilibrium computation.

    Parameters
    ----------
    rho : ndarray
        Density field, shape (ny, nx)
    ux : ndarray
        X-velocity field, shape (ny, nx)
    uy : ndarray
        Y-velocity field, shape (ny, nx)
    f_eq : ndarray
        Output equilibrium distribution, shape (Q, ny, nx)
    ex, ey : ndarray
        Lattice velocity components
    w : ndarray
        Lattice weights
    cs2, cs4 : float
        Sound speed squared and fourth power
    """
    q, ny, nx = f_eq.shape

    for j in prange(ny):
        for i in range(nx):
            rho_ij = rho[j, i]
            ux_ij = ux[j, i]
            uy_ij = uy[j, i]
            u_sq = ux_ij * ux_ij + uy_ij * uy_ij

            for k in range(q):
                eu = ex[k] * ux_ij + ey[k] * uy_ij
                f_eq[k, j, i] = w[k] * rho_ij * (
                    1.0
                    + eu / cs2
                    + (eu * eu) / (2.0 * cs4)
                    - u_sq / (2.0 * cs2)
                )


def compute_equilibrium_fast(rho, ux, uy, discretization=LATTICE_UNITS):
    """
    Fast D2Q9 equilibrium computation using Numba.

    Same result as compute_equilibrium.
    """
    ny, nx = check_same_shape(rho, ux, uy, names=("rho", "ux", "uy"))
    f_eq = np.zeros((Q, ny, nx), dtype=np.float64)

    ex = EX.astype(np.float64)
    ey = EY.astype(np.float64)

    compute_equilibrium_numba(
        np.ascontiguousarray(rho, dtype=np.float64),
        np.ascontiguousarray(ux, dtype=np.float64),
        np.ascontiguousarray(uy, dtype=np.float64),
        f_eq, ex, ey, W, discretization.cs2, discretization.cs4,
    )

    return f_eq


def equilibrium_single_site(rho, ux, uy, discretization=LATTICE_UNITS):
    """
    Compute equilibrium distribution for a single lattice site.

    Useful for boundary conditions and testing.

    Parameters
    ----------
    rho : float
        Density at the site
    ux : float
        X-velocity at the site
    uy : float
        Y-velocity at the site

    Returns
    -------
    f_eq : ndarray
        Equilibrium distribution, shape (Q,)
    """
    cs2 = discretization.cs2
    cs4 = discretization.cs4
    f_eq = np.zeros(Q, dtype=np.float64)
    u_sq = ux * ux + uy * uy

    for i in range(Q):
        eu = EX[i] * ux + EY[i] * uy
        f_eq[i] = W[i] * rho * (
            1.0
            + eu / cs2
            + (eu * eu) / (2.0 * cs4)
            - u_sq / (2.0 * cs2)
        )

    return f_eq

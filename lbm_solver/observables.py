"""
Macroscopic Observable Extraction

Compute density, velocity, and derived quantities from distributions.

In LBM, macroscopic quantities are moments of the distribution function:
    - Density (0th moment): rho = sum_i(f_i)
    - Momentum (1st moment): rho*u = sum_i(f_i * c_i)
    - Stress tensor (2nd moment): Pi = sum_i(f_i * c_i * c_i)
"""

import numpy as np
from numba import njit, prange

from .lattice import EX, EY, Q

# Cells at or below this density are treated as empty (zero velocity)
DENSITY_FLOOR = 1e-10


def compute_density(f):
    """
    Compute density field from distribution functions.

    rho = sum_i(f_i)

    Parameters
    ----------
    f : ndarray
        Distribution functions, shape (Q, ny, nx)

    Returns
    -------
    rho : ndarray
        Density field, shape (ny, nx)
    """
    return np.sum(f, axis=0)


def compute_momentum(f):
    """
    Compute momentum density from distribution functions.

    rho * u = sum_i(f_i * c_i)

    Returns
    -------
    mx, my : ndarray
        Momentum density components, shape (ny, nx)
    """
    q, ny, nx = f.shape

    mx = np.zeros((ny, nx), dtype=np.float64)
    my = np.zeros((ny, nx), dtype=np.float64)

    for i in range(Q):
        mx += f[i] * EX[i]
        my += f[i] * EY[i]

    return mx, my


def compute_velocity(f, rho=None, density_floor=DENSITY_FLOOR):
    """
    Compute velocity field from distribution functions.

    Parameters
    ----------
    f : ndarray
        Distribution functions, shape (Q, ny, nx)
    rho : ndarray, optional
        Density field, shape (ny, nx). If None, computed from f.
    density_floor : float or None
        Cells with rho <= density_floor get zero velocity. If None, the
        plain reciprocal is used and non-positive density raises.

    Returns
    -------
    ux : ndarray
        X-velocity field, shape (ny, nx)
    uy : ndarray
        Y-velocity field, shape (ny, nx)

    Raises
    ------
    FloatingPointError
        If density_floor is None and some cell has rho <= 0
    """
    if rho is None:
        rho = compute_density(f)

    mx, my = compute_momentum(f)

    if density_floor is None:
        if np.any(rho <= 0.0):
            bad = int(np.count_nonzero(rho <= 0.0))
            raise FloatingPointError(f"non-positive density in {bad} cell(s)")
        return mx / rho, my / rho

    # Avoid division by zero
    valid = rho > density_floor
    rho_safe = np.where(valid, rho, 1.0)

    ux = np.where(valid, mx / rho_safe, 0.0)
    uy = np.where(valid, my / rho_safe, 0.0)

    return ux, uy


def compute_macroscopic(f, density_floor=DENSITY_FLOOR):
    """
    Compute all macroscopic quantities from distribution functions.

    Returns
    -------
    rho : ndarray
        Density field, shape (ny, nx)
    ux : ndarray
        X-velocity field, shape (ny, nx)
    uy : ndarray
        Y-velocity field, shape (ny, nx)
    """
    rho = compute_density(f)
    ux, uy = compute_velocity(f, rho, density_floor)
    return rho, ux, uy


@njit(parallel=True, cache=True)
def compute_macroscopic_numba(f, rho, ux, uy, ex, ey, density_floor):
    """
    Numba-accelerated macroscopic quantity computation.

    Parameters
    ----------
    f : ndarray
        Distribution functions, shape (Q, ny, nx)
    rho : ndarray
        Output density field, shape (ny, nx)
    ux : ndarray
        Output X-velocity field, shape (ny, nx)
    uy : ndarray
        Output Y-velocity field, shape (ny, nx)
    ex, ey : ndarray
        Lattice velocity components
    density_floor : float
        Cells at or below this density get zero velocity
    """
    q, ny, nx = f.shape

    for j in prange(ny):
        for i in range(nx):
            rho_local = 0.0
            rho_ux = 0.0
            rho_uy = 0.0

            for k in range(q):
                f_k = f[k, j, i]
                rho_local += f_k
                rho_ux += f_k * ex[k]
                rho_uy += f_k * ey[k]

            rho[j, i] = rho_local

            if rho_local > density_floor:
                ux[j, i] = rho_ux / rho_local
                uy[j, i] = rho_uy / rho_local
            else:
                ux[j, i] = 0.0
                uy[j, i] = 0.0


def compute_macroscopic_fast(f, density_floor=DENSITY_FLOOR):
    """
    Fast macroscopic quantity computation using Numba.

    Returns
    -------
    rho, ux, uy : ndarray
        Density and velocity fields, shape (ny, nx)
    """
    q, ny, nx = f.shape
    rho = np.zeros((ny, nx), dtype=np.float64)
    ux = np.zeros((ny, nx), dtype=np.float64)
    uy = np.zeros((ny, nx), dtype=np.float64)

    ex = EX.astype(np.float64)
    ey = EY.astype(np.float64)

    compute_macroscopic_numba(np.ascontiguousarray(f), rho, ux, uy, ex, ey, density_floor)

    return rho, ux, uy


def compute_nonequilibrium_stress(f_neq):
    """
    Second moment of the non-equilibrium populations.

    Pi^neq_ab = sum_i(f_i^neq * c_ia * c_ib)

    Parameters
    ----------
    f_neq : ndarray
        Non-equilibrium populations, shape (Q, ny, nx)

    Returns
    -------
    pi_xx, pi_xy, pi_yy : ndarray
        Independent tensor components, shape (ny, nx)
    """
    cxx = (EX * EX).astype(np.float64)
    cxy = (EX * EY).astype(np.float64)
    cyy = (EY * EY).astype(np.float64)

    pi_xx = np.tensordot(cxx, f_neq, axes=1)
    pi_xy = np.tensordot(cxy, f_neq, axes=1)
    pi_yy = np.tensordot(cyy, f_neq, axes=1)

    return pi_xx, pi_xy, pi_yy


def _central_difference(field, axis, dx):
    """Periodic second-order central difference along one array axis."""
    return (np.roll(field, -1, axis=axis) - np.roll(field, 1, axis=axis)) / (2.0 * dx)


def velocity_gradient(ux, uy, dx=1.0):
    """
    Velocity gradient tensor by periodic central differences.

    Returns
    -------
    dux_dx, dux_dy, duy_dx, duy_dy : ndarray
        Gradient components, shape (ny, nx)
    """
    return (
        _central_difference(ux, 1, dx),
        _central_difference(ux, 0, dx),
        _central_difference(uy, 1, dx),
        _central_difference(uy, 0, dx),
    )


def compute_vorticity(ux, uy, dx=1.0):
    """
    Compute the vorticity field.

    omega = du_y/dx - du_x/dy

    Parameters
    ----------
    ux, uy : ndarray
        Velocity components, shape (ny, nx)
    dx : float
        Grid spacing (default 1.0 in lattice units)

    Returns
    -------
    vorticity : ndarray
        Vorticity field, shape (ny, nx)
    """
    _, dux_dy, duy_dx, _ = velocity_gradient(ux, uy, dx)
    return duy_dx - dux_dy


def compute_strain_rate(ux, uy, dx=1.0):
    """Strain rate magnitude |S| = sqrt(2 S_ab S_ab)."""
    dux_dx, dux_dy, duy_dx, duy_dy = velocity_gradient(ux, uy, dx)
    s_xy = 0.5 * (dux_dy + duy_dx)

    return np.sqrt(2.0 * (dux_dx**2 + duy_dy**2 + 2.0 * s_xy**2))


def compute_pressure(rho, cs2=1.0/3.0):
    """Isothermal equation of state, p = c_s^2 rho."""
    return cs2 * rho


def compute_velocity_magnitude(ux, uy):
    return np.hypot(ux, uy)

"""
Streaming Step Implementations

Propagation of distribution functions along lattice velocities.

The streaming step moves each distribution f_i from site x to site x + c_i:
    f_i(x + c_i, t + dt) = f_i^out(x, t)

The solver streams by convolving each population with its direction's
stencil, so every site pulls from x - c_i. At the domain edge the
neighbour is either the opposite edge ("periodic") or zero ("zero", mass
leaves the domain unless solid walls line the edges).
"""

import numpy as np
from numba import njit, prange

from .fields import EDGE_MODES, convolve
from .lattice import D2Q9_DIRECTIONS, EX, EY


def stream(f, directions=D2Q9_DIRECTIONS, edge_mode="periodic"):
    """
    Streaming step by stencil convolution.

    Parameters
    ----------
    f : ndarray
        Distribution functions, shape (Q, ny, nx)
    directions : sequence of Direction
        Direction catalog, index-aligned with f
    edge_mode : str
        "periodic" or "zero"

    Returns
    -------
    f_streamed : ndarray
        Post-streaming distribution
    """
    f_out = np.empty_like(f)

    for i, direction in enumerate(directions):
        f_out[i] = convolve(f[i], direction.stencil.T, edge_mode)

    return f_out

def stream_periodic(f, directions=D2Q9_DIRECTIONS):
    """
    Periodic streaming by shifting whole population arrays.

    Same result as stream(f, directions, "periodic"), without the
    convolution. np.roll shifts toward +c_i, which is the push view of the
    same update.
    """
    f_out = np.empty_like(f)

    for i, direction in enumerate(directions):
        cx, cy = (int(c) for c in direction.velocity.to_pair())
        f_out[i] = np.roll(f[i], shift=(cy, cx), axis=(0, 1))

    return f_out


@njit(parallel=True, cache=True)
def stream_numba(f, f_out, ex, ey, periodic):
    """
    Numba-accelerated pull streaming.

    Parameters
    ----------
    f : ndarray
        Input distribution functions, shape (Q, ny, nx)
    f_out : ndarray
        Output distribution functions, shape (Q, ny, nx)
    ex, ey : ndarray
        Integer lattice velocity components
    periodic : bool
        Wrap sources outside the domain; otherwise they read as zero
    """
    q, ny, nx = f.shape

    for j in prange(ny):
        for i in range(nx):
            for k in range(q):
                i_src = i - ex[k]
                j_src = j - ey[k]

                if periodic:
                    f_out[k, j, i] = f[k, j_src % ny, i_src % nx]
                elif 0 <= i_src < nx and 0 <= j_src < ny:
                    f_out[k, j, i] = f[k, j_src, i_src]
                else:
                    f_out[k, j, i] = 0.0


def stream_fast(f, edge_mode="periodic"):
    """Numba streaming; same result as stream() for the D2Q9 catalog."""
    if edge_mode not in EDGE_MODES:
        raise ValueError(
            f"edge_mode must be one of {sorted(EDGE_MODES)}, got {edge_mode!r}"
        )
    f_out = np.empty_like(f)
    stream_numba(np.ascontiguousarray(f), f_out, EX.astype(np.int64), EY.astype(np.int64),
                 edge_mode == "periodic")
    return f_out

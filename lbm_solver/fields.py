"""
Field Helpers

Thin layer over NumPy arrays used as the 2D field type of the solver.

Fields are float64 arrays of shape (ny, nx). The size of a field is reported
as (width, height) = (nx, ny), matching how grids are described to users,
while the arrays themselves keep NumPy's row-major (row = y) layout.
"""

import numpy as np
from scipy.signal import convolve2d

SCALAR = np.float64

# Edge handling of the streaming convolution
EDGE_MODES = {
    "periodic": "wrap",
    "zero": "fill",
}


class InvalidSliceSize(ValueError):
    """Flat data given to a field constructor has the wrong length."""


class ShapeMismatchError(ValueError):
    """Two fields that must share a shape do not."""


def field_size(field):
    """Return (width, height) of a 2D field."""
    ny, nx = np.shape(field)[-2:]
    return (nx, ny)


def field_from_flat(data, size):
    """
    Build a field from flat row-major data.

    Parameters
    ----------
    data : sequence of float
        Values in row-major order (x varies fastest)
    size : tuple
        (width, height) of the field

    Returns
    -------
    field : ndarray
        Field of shape (height, width)

    Raises
    ------
    InvalidSliceSize
        If len(data) != width * height
    """
    width, height = size
    flat = np.asarray(data, dtype=SCALAR).ravel()
    if flat.size != width * height:
        raise InvalidSliceSize(
            f"expected {width * height} values for a {width}x{height} field, "
            f"got {flat.size}"
        )
    return flat.reshape((height, width)).copy()


def to_flat(field):
    """Return the field as a flat row-major list (host interchange)."""
    return np.asarray(field, dtype=SCALAR).ravel().tolist()


def new_filled(value, size):
    """Field of the given (width, height) filled with value."""
    width, height = size
    return np.full((height, width), value, dtype=SCALAR)


def check_same_shape(*fields, names=None):
    """
    Assert that all fields share one shape.

    Raises
    ------
    ShapeMismatchError
        If any two shapes differ. This is a programming error, not a
        runtime condition.
    """
    shapes = [np.shape(f) for f in fields]
    if any(s != shapes[0] for s in shapes[1:]):
        if names is None:
            names = [f"field {k}" for k in range(len(fields))]
        listing = ", ".join(f"{n}={s}" for n, s in zip(names, shapes))
        raise ShapeMismatchError(f"fields must share one shape: {listing}")
    return shapes[0]


def convolve(field, kernel, edge_mode="periodic"):
    """
    2D spatial convolution of a field with a small kernel.

    Output has the same shape as the field. Edge cells either wrap around
    ("periodic") or see zeros outside the domain ("zero").

    Parameters
    ----------
    field : ndarray
        Field, shape (ny, nx)
    kernel : ndarray
        Convolution kernel in array layout (row = y, column = x)
    edge_mode : str
        "periodic" or "zero"

    Returns
    -------
    out : ndarray
        Convolved field, shape (ny, nx)
    """
    try:
        boundary = EDGE_MODES[edge_mode]
    except KeyError:
        raise ValueError(
            f"edge_mode must be one of {sorted(EDGE_MODES)}, got {edge_mode!r}"
        ) from None
    return convolve2d(field, kernel, mode="same", boundary=boundary, fillvalue=0.0)


def field_stats(field):
    """
    Summary statistics of a field.

    Returns
    -------
    stats : dict
        sum, mean, stdev, min and max of the field
    """
    return {
        "sum": float(np.sum(field)),
        "mean": float(np.mean(field)),
        "stdev": float(np.std(field)),
        "min": float(np.min(field)),
        "max": float(np.max(field)),
    }

"""
D2Q9 Lattice Constants and Utilities

Defines the D2Q9 lattice model for 2D fluid simulations: velocities,
weights, the opposite-direction table and the per-direction streaming
stencils.
"""
from collections import namedtuple

import numpy as np

# D2Q9 lattice velocities
#     6   2   5
#       \ | /
#     3 - 0 - 1
#       / | \
#     7   4   8

# Lattice velocity components
EX = np.array([0, 1, 0, -1, 0, 1, -1, -1, 1], dtype=np.int32)
EY = np.array([0, 0, 1, 0, -1, 1, 1, -1, -1], dtype=np.int32)

# Lattice weights
W = np.array([16/36, 4/36, 4/36, 4/36, 4/36, 1/36, 1/36, 1/36, 1/36], dtype=np.float64)

# Opposite direction indices (bounce-back, TRT).
# Each entry must be the direction rotated by 180 degrees in the table above:
#     0 <-> 0, 1 <-> 3, 2 <-> 4, 5 <-> 7, 6 <-> 8
OPPOSITE = np.array([0, 3, 4, 1, 2, 7, 8, 5, 6], dtype=np.int32)

# Lattice sound speed squared (delta_x = delta_t = 1)
CS2 = 1.0 / 3.0
CS4 = CS2 * CS2

# Number of lattice velocities
Q = 9


class Vector:
    """Immutable 2-component vector."""

    __slots__ = ("x", "y")

    def __init__(self, x, y):
        object.__setattr__(self, "x", float(x))
        object.__setattr__(self, "y", float(y))

    def __setattr__(self, name, value):
        raise AttributeError("Vector is immutable")

    def __add__(self, other):
        return Vector(self.x + other.x, self.y + other.y)

    def __neg__(self):
        return Vector(-self.x, -self.y)

    def __eq__(self, other):
        if not isinstance(other, Vector):
            return NotImplemented
        return self.x == other.x and self.y == other.y

    def __hash__(self):
        return hash((self.x, self.y))

    def __repr__(self):
        return f"Vector({self.x:g}, {self.y:g})"

    def to_pair(self):
        return (self.x, self.y)


def make_stencil(cx, cy):
    """
    One-hot 3x3 stencil for a lattice velocity.

    The stencil is indexed [x, y] like the velocity itself, with the
    centre at [1, 1]. Its transpose is the streaming kernel in array layout
    (row = y, column = x): convolving population i with it pulls the value
    from the neighbour at x - c_i.
    """
    stencil = np.zeros((3, 3), dtype=np.float64)
    stencil[1 + cx, 1 + cy] = 1.0
    stencil.setflags(write=False)
    return stencil


class Direction(namedtuple("Direction", ["weight", "velocity", "stencil"])):
    """
    One lattice direction.

    Attributes
    ----------
    weight : float
        Equilibrium weight w_i
    velocity : Vector
        Discrete velocity c_i
    stencil : ndarray
        Read-only 3x3 one-hot streaming stencil
    """

    __slots__ = ()

    def __repr__(self):
        return f"Direction(weight={self.weight:.6f}, velocity={self.velocity!r})"


def d2q9_directions():
    """Return the D2Q9 direction catalog, ordered as EX/EY/W."""
    return tuple(
        Direction(float(W[i]), Vector(EX[i], EY[i]), make_stencil(int(EX[i]), int(EY[i])))
        for i in range(Q)
    )


D2Q9_DIRECTIONS = d2q9_directions()


def opposite(i):
    """Index of the direction opposite to direction i."""
    return int(OPPOSITE[i])

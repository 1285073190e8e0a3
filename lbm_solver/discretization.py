"""
Space and Time Discretization

Grid spacing and timestep of a simulation run, and the isothermal speed of
sound they imply:

    c_s = delta_x / (sqrt(3) * delta_t)

In lattice units (delta_x = delta_t = 1) this gives c_s^2 = 1/3.
"""

import math


class Discretization:
    """
    Immutable pair (delta_x, delta_t).

    Parameters
    ----------
    delta_x : float
        Grid spacing (must be > 0)
    delta_t : float
        Timestep (must be > 0)
    """

    __slots__ = ("_delta_x", "_delta_t")

    def __init__(self, delta_x=1.0, delta_t=1.0):
        if delta_x <= 0 or delta_t <= 0:
            raise ValueError(
                f"delta_x and delta_t must be positive, got {delta_x}, {delta_t}"
            )
        self._delta_x = float(delta_x)
        self._delta_t = float(delta_t)

    @property
    def delta_x(self):
        return self._delta_x

    @property
    def delta_t(self):
        return self._delta_t

    def isothermal_speed_of_sound(self):
        return self._delta_x / (math.sqrt(3.0) * self._delta_t)

    @property
    def cs2(self):
        """Speed of sound squared."""
        return self._delta_x * self._delta_x / (3.0 * self._delta_t * self._delta_t)

    @property
    def cs4(self):
        return self.cs2 * self.cs2

    @property
    def lattice_units(self):
        """True when delta_x == delta_t, i.e. lattice velocities are unit speeds."""
        return math.isclose(self._delta_x, self._delta_t)

    def __eq__(self, other):
        if not isinstance(other, Discretization):
            return NotImplemented
        return (self._delta_x, self._delta_t) == (other._delta_x, other._delta_t)

    def __hash__(self):
        return hash((self._delta_x, self._delta_t))

    def __repr__(self):
        return f"Discretization(delta_x={self._delta_x}, delta_t={self._delta_t})"


LATTICE_UNITS = Discretization(1.0, 1.0)

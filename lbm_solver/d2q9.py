"""
D2Q9 Lattice

Owns the nine population fields of a simulation and derives the
macroscopic observables from them.

Populations are stored as one array of shape (Q, ny, nx), index-aligned
with the direction catalog in lattice.py.
"""

import numpy as np

from .discretization import LATTICE_UNITS
from .equilibrium import compute_equilibrium
from .fields import ShapeMismatchError, check_same_shape, field_size
from .lattice import D2Q9_DIRECTIONS, OPPOSITE, Q
from .observables import (
    DENSITY_FLOOR,
    compute_density,
    compute_momentum,
    compute_nonequilibrium_stress,
    compute_velocity,
    compute_velocity_magnitude,
)


class D2Q9:
    """
    D2Q9 lattice holding nine populations.

    Parameters
    ----------
    populations : ndarray or sequence of ndarray
        Either an array of shape (9, ny, nx) or nine arrays of shape (ny, nx)
    density_floor : float or None
        Velocity policy for (near-)empty cells, see compute_velocity

    Raises
    ------
    ValueError
        If the number of populations is not 9
    ShapeMismatchError
        If the populations do not share one 2D shape
    """

    directions = D2Q9_DIRECTIONS
    opposite = OPPOSITE

    def __init__(self, populations, density_floor=DENSITY_FLOOR):
        self.density_floor = density_floor
        self._f = self._validate(populations)

    @staticmethod
    def _validate(populations):
        if isinstance(populations, np.ndarray):
            if populations.ndim != 3:
                raise ShapeMismatchError(
                    f"populations must have shape (9, ny, nx), got {populations.shape}"
                )
            pops = list(populations)
        else:
            pops = [np.asarray(p, dtype=np.float64) for p in populations]

        if len(pops) != Q:
            raise ValueError(f"D2Q9 needs exactly {Q} populations, got {len(pops)}")

        check_same_shape(*pops, names=[f"f{i}" for i in range(len(pops))])
        if np.ndim(pops[0]) != 2:
            raise ShapeMismatchError(
                f"each population must be 2D, got shape {np.shape(pops[0])}"
            )
        return np.array(pops, dtype=np.float64)

    @classmethod
    def at_equilibrium(cls, rho, ux, uy, discretization=LATTICE_UNITS, **kwargs):
        """Lattice initialised to the equilibrium of the given fields."""
        return cls(compute_equilibrium(rho, ux, uy, discretization), **kwargs)

    @property
    def size(self):
        """(width, height) of the lattice."""
        return field_size(self._f[0])

    @property
    def shape(self):
        """Array shape of the populations, (Q, ny, nx)."""
        return self._f.shape

    @property
    def populations(self):
        """Read-only view of the populations, shape (Q, ny, nx)."""
        view = self._f.view()
        view.setflags(write=False)
        return view

    def set_populations(self, populations):
        """Replace all populations; shape must match the lattice."""
        new = np.asarray(populations, dtype=np.float64)
        check_same_shape(self._f, new, names=("lattice", "new populations"))
        self._f = new.copy()

    def copy(self):
        return type(self)(self._f.copy(), density_floor=self.density_floor)

    def density(self):
        return compute_density(self._f)

    def momentum_density(self):
        return compute_momentum(self._f)

    def velocity(self):
        return compute_velocity(self._f, density_floor=self.density_floor)

    def speed(self):
        ux, uy = self.velocity()
        return compute_velocity_magnitude(ux, uy)

    def swap_populations(self):
        """
        Populations with every direction replaced by its opposite.

        Index i of the result holds population OPPOSITE[i].
        """
        return self._f[OPPOSITE]

    def equilibrium(self, discretization=LATTICE_UNITS):
        ux, uy = self.velocity()
        return compute_equilibrium(self.density(), ux, uy, discretization)

    def swap_equilibrium(self, discretization=LATTICE_UNITS):
        """Equilibrium populations with every direction replaced by its opposite."""
        return self.equilibrium(discretization)[OPPOSITE]

    def non_equilibrium(self, discretization=LATTICE_UNITS):
        return self._f - self.equilibrium(discretization)

    def non_equilibrium_stress(self, discretization=LATTICE_UNITS):
        """Components (pi_xx, pi_xy, pi_yy) of the non-equilibrium stress."""
        return compute_nonequilibrium_stress(self.non_equilibrium(discretization))

    def __repr__(self):
        width, height = self.size
        return f"D2Q9(size=({width}, {height}))"

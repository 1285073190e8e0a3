"""
Simulation State

Owns a lattice, its solid geometry, a collision operator and the
discretization, and advances them one timestep at a time:

    stream -> bounce-back -> collide -> time += dt

A step works on a private copy of the lattice and commits it only once all
three phases have finished, so readers never observe a half-updated state.
"""

import time
import warnings

import numpy as np

from .boundary import apply_bounce_back, apply_bounce_back_fast, validate_geometry
from .discretization import LATTICE_UNITS
from .equilibrium import compute_equilibrium_fast
from .fields import EDGE_MODES
from .observables import compute_macroscopic_fast, compute_pressure, compute_velocity_magnitude
from .streaming import stream, stream_fast

# Array backends of the stream, bounce-back and equilibrium phases
BACKENDS = ("numpy", "numba")


class SimulationState:
    """
    Timestep state machine of an LBM run.

    Parameters
    ----------
    lattice : D2Q9
        Initial populations (owned by the state from now on)
    geometry : array_like of bool
        Solid mask, shape (ny, nx), True where a cell is solid
    collision : CollisionOperator
        Collision model
    discretization : Discretization
        Grid spacing and timestep (default lattice units)
    edge_mode : str
        Streaming edge convention, "periodic" or "zero". "zero" is the
        zero-padded convolution of the reference solver and loses mass at
        edges that are not lined with solid cells.
    verbose : bool
        Print per-phase timings on every step
    backend : str
        "numpy" (vectorised reference, convolution streaming) or "numba"
        (parallel kernels). Both give the same populations to round-off.

    Raises
    ------
    ShapeMismatchError
        If the geometry does not match the lattice size
    ValueError
        If the edge mode or backend is unknown, or the collision operator is
        unstable for this discretization
    """

    def __init__(self, lattice, geometry, collision, discretization=LATTICE_UNITS,
                 edge_mode="periodic", verbose=False, backend="numpy"):
        if edge_mode not in EDGE_MODES:
            raise ValueError(
                f"edge_mode must be one of {sorted(EDGE_MODES)}, got {edge_mode!r}"
            )
        if backend not in BACKENDS:
            raise ValueError(f"backend must be one of {BACKENDS}, got {backend!r}")
        collision.validate(discretization)
        if not discretization.lattice_units:
            warnings.warn(
                f"{discretization!r}: lattice velocities are unit speeds, so "
                f"moments are only consistent when delta_x == delta_t"
            )

        self.time = 0.0
        self.lattice = lattice
        self._geometry = validate_geometry(geometry, lattice.size)
        self.collision = collision
        self.discretization = discretization
        self.edge_mode = edge_mode
        self.backend = backend
        self.verbose = verbose
        self.step_count = 0

    @property
    def geometry(self):
        """Read-only view of the solid mask."""
        view = self._geometry.view()
        view.setflags(write=False)
        return view

    @geometry.setter
    def geometry(self, mask):
        self._geometry = validate_geometry(mask, self.size)

    def paint_geometry(self, mask, solid=True):
        """
        Mark the cells selected by mask as solid (or fluid if solid=False).

        Parameters
        ----------
        mask : array_like of bool
            Cells to paint, shape (ny, nx)
        solid : bool
            Value to paint
        """
        selected = validate_geometry(mask, self.size)
        geometry = self._geometry.copy()
        geometry[selected] = solid
        self._geometry = geometry

    def step(self):
        """Advance the simulation by one timestep."""
        lattice = self.lattice.copy()

        start = time.perf_counter()
        self._stream(lattice)
        streamed = time.perf_counter()
        self._bounce_back(lattice)
        bounced = time.perf_counter()
        self._collide(lattice)
        collided = time.perf_counter()

        self.lattice = lattice
        self.time += self.discretization.delta_t
        self.step_count += 1

        if self.verbose:
            print(f"> Streaming took {1e3 * (streamed - start):.2f} ms")
            print(f"> Bounce-back took {1e3 * (bounced - streamed):.2f} ms")
            print(f"> Colliding took {1e3 * (collided - bounced):.2f} ms")

    def stream(self):
        """Streaming phase only."""
        self._stream(self.lattice)

    def bounce_back(self):
        """Bounce-back phase only."""
        self._bounce_back(self.lattice)

    def collide(self):
        """Collision phase only."""
        self._collide(self.lattice)

    def _stream(self, lattice):
        if self.backend == "numba":
            streamed = stream_fast(lattice.populations, self.edge_mode)
        else:
            streamed = stream(lattice.populations, lattice.directions, self.edge_mode)
        lattice.set_populations(streamed)

    def _bounce_back(self, lattice):
        if self.backend == "numba":
            bounced = apply_bounce_back_fast(lattice.populations, self._geometry)
        else:
            bounced = apply_bounce_back(lattice.populations, self._geometry)
        lattice.set_populations(bounced)

    def _equilibrium(self, lattice):
        if self.backend == "numpy":
            return lattice.equilibrium(self.discretization)

        floor = lattice.density_floor
        rho, ux, uy = compute_macroscopic_fast(lattice.populations,
                                               0.0 if floor is None else floor)
        if floor is None and np.any(rho <= 0.0):
            bad = int(np.count_nonzero(rho <= 0.0))
            raise FloatingPointError(f"non-positive density in {bad} cell(s)")
        return compute_equilibrium_fast(rho, ux, uy, self.discretization)

    def _collide(self, lattice):
        f_eq = self._equilibrium(lattice)
        lattice.set_populations(
            self.collision.evaluate(lattice, f_eq, self.discretization)
        )

    def run(self, num_steps, check_interval=1000, verbose=True):
        """
        Run several steps, checking stability periodically.

        Parameters
        ----------
        num_steps : int
            Number of timesteps
        check_interval : int
            Steps between stability checks
        verbose : bool
            Print progress information

        Returns
        -------
        stable : bool
            False if the run was stopped because is_unstable() fired or a
            step hit a non-positive density (density_floor=None)
        """
        start = time.perf_counter()

        for step in range(num_steps):
            try:
                self.step()
            except FloatingPointError as exc:
                warnings.warn(
                    f"simulation failed after step {self.step_count} "
                    f"(t = {self.time:g}): {exc}; stopping",
                    RuntimeWarning,
                )
                return False

            if (step + 1) % check_interval == 0:
                if self.is_unstable():
                    warnings.warn(
                        f"simulation unstable at step {self.step_count} "
                        f"(t = {self.time:g}); stopping",
                        RuntimeWarning,
                    )
                    return False

                if verbose:
                    rho = self.density()
                    print(f"Step {self.step_count}: mass = {np.sum(rho):.6f}, "
                          f"max(speed) = {np.max(self.speed()):.6f}")

        if verbose:
            elapsed = time.perf_counter() - start
            width, height = self.size
            mlups = num_steps * width * height / max(elapsed, 1e-12) / 1e6
            print(f"Done: {num_steps} steps in {elapsed:.2f}s, {mlups:.2f} MLUPS")

        return True

    @property
    def size(self):
        return self.lattice.size

    @property
    def delta_x(self):
        return self.discretization.delta_x

    @property
    def delta_t(self):
        return self.discretization.delta_t

    def populations(self):
        return self.lattice.populations

    def isothermal_speed_of_sound(self):
        return self.discretization.isothermal_speed_of_sound()

    def density(self):
        return self.lattice.density()

    def pressure(self):
        return compute_pressure(self.density(), self.discretization.cs2)

    def momentum_density(self):
        return self.lattice.momentum_density()

    def velocity(self):
        return self.lattice.velocity()

    def speed(self):
        return self.lattice.speed()

    def equilibrium(self):
        return self._equilibrium(self.lattice)

    def non_equilibrium(self):
        return self.lattice.populations - self.equilibrium()

    def is_unstable(self):
        """
        Heuristic early warning for blow-up.

        True if any population is non-finite, any cell has non-positive
        density, or any equilibrium population has a negative minimum over
        the grid. A False result does not guarantee the run is stable.
        """
        f = self.lattice.populations
        if not np.all(np.isfinite(f)):
            return True
        if np.any(f.sum(axis=0) <= 0.0):
            return True
        f_eq = self.equilibrium()
        return bool(np.any(np.min(f_eq, axis=(1, 2)) < 0.0))

    def snapshot(self):
        """Copies of the exposed fields at the current time."""
        ux, uy = self.velocity()
        return {
            "time": self.time,
            "populations": np.array(self.lattice.populations),
            "density": self.density(),
            "velocity": (ux, uy),
            "speed": compute_velocity_magnitude(ux, uy),
            "pressure": self.pressure(),
            "geometry": self._geometry.copy(),
        }

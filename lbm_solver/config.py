"""This module defines the simulation config class used to set up a run."""

from dataclasses import dataclass

import numpy as np

from .collision import BGK, KBC, TRT, Regularized
from .d2q9 import D2Q9
from .discretization import Discretization
from .observables import DENSITY_FLOOR
from .state import BACKENDS, SimulationState

COLLISION_MODELS = ("bgk", "trt", "regularized", "kbc")


@dataclass
class SimulationConfig:
    """
    Parameters of a simulation run.

    Exactly one of viscosity and tau sets the relaxation; tau is the BGK
    relaxation time and is converted to a viscosity for the other models.
    """
    width: int
    height: int
    viscosity: float = None
    tau: float = None
    collision: str = "bgk"
    magic_param: float = 0.25
    regularized_inner: str = "bgk"
    density: float = 1.0
    velocity: tuple = (0.0, 0.0)
    delta_x: float = 1.0
    delta_t: float = 1.0
    edge_mode: str = "periodic"
    density_floor: float = DENSITY_FLOOR
    verbose: bool = False
    backend: str = "numpy"

    def __post_init__(self):
        if self.width < 1 or self.height < 1:
            raise ValueError(f"grid must be at least 1x1, got {self.width}x{self.height}")
        if (self.viscosity is None) == (self.tau is None):
            raise ValueError("give exactly one of viscosity and tau")
        if self.collision not in COLLISION_MODELS:
            raise ValueError(
                f"collision must be one of {COLLISION_MODELS}, got {self.collision!r}"
            )
        if self.regularized_inner not in ("bgk", "trt"):
            raise ValueError(
                f"regularized_inner must be 'bgk' or 'trt', got {self.regularized_inner!r}"
            )
        if self.backend not in BACKENDS:
            raise ValueError(f"backend must be one of {BACKENDS}, got {self.backend!r}")

    @property
    def size(self):
        return (self.width, self.height)

    def discretization(self):
        return Discretization(self.delta_x, self.delta_t)

    def kinematic_viscosity(self):
        if self.viscosity is not None:
            return self.viscosity
        return BGK(self.tau).kinematic_shear_viscosity(self.discretization())

    def build_collision(self):
        """Collision operator for this config."""
        return self._build(self.collision)

    def _build(self, name):
        disc = self.discretization()
        nu = self.kinematic_viscosity()
        if name == "bgk":
            return BGK(self.tau) if self.tau is not None else BGK.from_viscosity(nu, disc)
        if name == "trt":
            return TRT.from_viscosity(self.magic_param, nu, disc)
        if name == "kbc":
            return KBC.from_viscosity(nu, disc)
        return Regularized(self._build(self.regularized_inner))

    def build_lattice(self):
        """Lattice at the equilibrium of the configured uniform flow."""
        shape = (self.height, self.width)
        rho = np.full(shape, self.density, dtype=np.float64)
        ux = np.full(shape, self.velocity[0], dtype=np.float64)
        uy = np.full(shape, self.velocity[1], dtype=np.float64)
        return D2Q9.at_equilibrium(rho, ux, uy, self.discretization(),
                                   density_floor=self.density_floor)

    def build_state(self, geometry=None):
        """
        Simulation state for this config.

        Parameters
        ----------
        geometry : ndarray, optional
            Solid mask, shape (height, width). Defaults to all fluid.
        """
        if geometry is None:
            geometry = np.zeros((self.height, self.width), dtype=bool)
        return SimulationState(
            self.build_lattice(),
            geometry,
            self.build_collision(),
            self.discretization(),
            edge_mode=self.edge_mode,
            verbose=self.verbose,
            backend=self.backend,
        )

"""
2D Lattice Boltzmann solver (D2Q9).
"""

from .collision import BGK, KBC, TRT, CollisionOperator, Regularized
from .config import SimulationConfig
from .d2q9 import D2Q9
from .discretization import LATTICE_UNITS, Discretization
from .equilibrium import compute_equilibrium
from .fields import InvalidSliceSize, ShapeMismatchError
from .lattice import D2Q9_DIRECTIONS, OPPOSITE, Direction, Vector, opposite
from .state import SimulationState

__version__ = "0.1.0"

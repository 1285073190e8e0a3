"""
Tests for conservation laws.

Validates mass and momentum conservation of every collision model and of
the streaming and bounce-back steps. These are fundamental requirements for
any correct LBM implementation.
"""

import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lbm_solver.boundary import apply_bounce_back, create_cylinder_mask
from lbm_solver.collision import (
    BGK, TRT, KBC, Regularized,
    bgk_collision, bgk_collision_fast,
    trt_collision, trt_collision_fast,
    tau_from_viscosity, viscosity_from_tau,
)
from lbm_solver.d2q9 import D2Q9
from lbm_solver.discretization import LATTICE_UNITS, Discretization
from lbm_solver.equilibrium import compute_equilibrium
from lbm_solver.lattice import EX, EY, CS2
from lbm_solver.observables import compute_macroscopic
from lbm_solver.streaming import stream, stream_fast, stream_periodic


OPERATORS = [
    BGK(0.8),
    BGK(0.51),
    TRT.from_viscosity(0.25, 0.05),
    TRT(0.7, 1.3),
    Regularized(BGK(0.6)),
    Regularized(TRT.from_viscosity(3.0 / 16.0, 0.01)),
    KBC.from_viscosity(0.05),
    KBC(0.98),
]


def total_momentum(f):
    return np.sum(f * EX[:, None, None]), np.sum(f * EY[:, None, None])


@pytest.fixture
def perturbed_lattice():
    """Lattice near a random equilibrium, with small non-equilibrium noise."""
    rng = np.random.default_rng(1234)
    nx, ny = 40, 30
    rho = 1.0 + 0.05 * rng.standard_normal((ny, nx))
    ux = 0.05 * rng.standard_normal((ny, nx))
    uy = 0.05 * rng.standard_normal((ny, nx))

    f = compute_equilibrium(rho, ux, uy)
    f = f * (1.0 + 0.01 * rng.standard_normal(f.shape))
    return D2Q9(f)


class TestCollisionMassConservation:
    """Collision alone must not create or destroy mass or momentum."""

    @pytest.mark.parametrize("operator", OPERATORS, ids=repr)
    def test_mass_conserved(self, perturbed_lattice, operator):
        f_eq = perturbed_lattice.equilibrium(LATTICE_UNITS)

        mass_before = np.sum(perturbed_lattice.populations)
        f_out = operator.evaluate(perturbed_lattice, f_eq, LATTICE_UNITS)
        mass_after = np.sum(f_out)

        assert np.isclose(mass_before, mass_after, rtol=1e-12)

    @pytest.mark.parametrize("operator", OPERATORS, ids=repr)
    def test_local_mass_conserved(self, perturbed_lattice, operator):
        """Mass is conserved cell by cell, not only globally."""
        f_eq = perturbed_lattice.equilibrium(LATTICE_UNITS)

        f_out = operator.evaluate(perturbed_lattice, f_eq, LATTICE_UNITS)

        np.testing.assert_allclose(f_out.sum(axis=0), perturbed_lattice.density(), rtol=1e-12)

    @pytest.mark.parametrize("operator", OPERATORS, ids=repr)
    def test_momentum_conserved(self, perturbed_lattice, operator):
        f_eq = perturbed_lattice.equilibrium(LATTICE_UNITS)

        mx_before, my_before = total_momentum(perturbed_lattice.populations)
        f_out = operator.evaluate(perturbed_lattice, f_eq, LATTICE_UNITS)
        mx_after, my_after = total_momentum(f_out)

        assert np.isclose(mx_before, mx_after, rtol=1e-10, atol=1e-12)
        assert np.isclose(my_before, my_after, rtol=1e-10, atol=1e-12)

    def test_array_kernels_conserve_mass(self, perturbed_lattice):
        """Array-level BGK and TRT kernels conserve mass."""
        f = np.array(perturbed_lattice.populations)
        rho, ux, uy = compute_macroscopic(f)
        f_eq = compute_equilibrium(rho, ux, uy)

        for f_coll in (bgk_collision(f, f_eq, 0.8), trt_collision(f, f_eq, 0.8)):
            assert np.isclose(np.sum(f), np.sum(f_coll), rtol=1e-14)


class TestStreamingConservation:
    """Streaming moves populations without changing their totals."""

    @pytest.fixture
    def initial_field(self):
        rng = np.random.default_rng(7)
        nx, ny = 32, 24
        rho = 1.0 + 0.1 * rng.standard_normal((ny, nx))
        ux = 0.05 * rng.standard_normal((ny, nx))
        uy = 0.05 * rng.standard_normal((ny, nx))
        return compute_equilibrium(rho, ux, uy)

    def test_periodic_conserves_mass_and_momentum(self, initial_field):
        f = initial_field

        f_streamed = stream(f, edge_mode="periodic")

        assert np.isclose(np.sum(f), np.sum(f_streamed), rtol=1e-14)
        mx, my = total_momentum(f)
        mx_s, my_s = total_momentum(f_streamed)
        assert np.isclose(mx, mx_s, rtol=1e-12, atol=1e-13)
        assert np.isclose(my, my_s, rtol=1e-12, atol=1e-13)

    def test_zero_edges_lose_mass(self, initial_field):
        """With zero padding, populations leaving the domain are lost."""
        f = initial_field

        f_streamed = stream(f, edge_mode="zero")

        assert np.sum(f_streamed) < np.sum(f)
        # The interior is identical to periodic streaming
        f_periodic = stream(f, edge_mode="periodic")
        np.testing.assert_allclose(f_streamed[:, 1:-1, 1:-1], f_periodic[:, 1:-1, 1:-1], rtol=1e-14)

    def test_convolution_matches_roll(self, initial_field):
        """Stencil convolution agrees with the np.roll and Numba versions."""
        f = initial_field

        f_conv = stream(f, edge_mode="periodic")

        np.testing.assert_allclose(f_conv, stream_periodic(f), rtol=1e-14, atol=1e-15)
        np.testing.assert_allclose(f_conv, stream_fast(f), rtol=1e-14, atol=1e-15)
        np.testing.assert_allclose(stream(f, edge_mode="zero"), stream_fast(f, "zero"),
                                   rtol=1e-14, atol=1e-15)

    def test_bounce_back_conserves_mass(self, initial_field):
        """Bounce-back only permutes populations within a cell."""
        f = initial_field
        ny, nx = f.shape[1:]
        mask = create_cylinder_mask(nx, ny, nx // 2, ny // 2, 5)

        f_bb = apply_bounce_back(f, mask)

        np.testing.assert_allclose(f_bb.sum(axis=0), f.sum(axis=0), rtol=1e-14)


class TestCollisionConsistency:
    """Test collision operator consistency."""

    def test_bgk_fast_equals_standard(self, perturbed_lattice):
        f = np.array(perturbed_lattice.populations)
        f_eq = perturbed_lattice.equilibrium()

        np.testing.assert_allclose(bgk_collision_fast(f, f_eq, 0.8),
                                   bgk_collision(f, f_eq, 0.8), rtol=1e-14)

    def test_trt_fast_equals_standard(self, perturbed_lattice):
        f = np.array(perturbed_lattice.populations)
        f_eq = perturbed_lattice.equilibrium()

        np.testing.assert_allclose(trt_collision_fast(f, f_eq, 0.8),
                                   trt_collision(f, f_eq, 0.8), rtol=1e-12)

    def test_trt_operator_matches_kernel(self, perturbed_lattice):
        """TRT.evaluate agrees with the array-level kernel."""
        f_eq = perturbed_lattice.equilibrium()
        operator = TRT(0.8, 1.1)

        expected = trt_collision(np.array(perturbed_lattice.populations), f_eq, 0.8, tau_minus=1.1)

        np.testing.assert_allclose(operator.evaluate(perturbed_lattice, f_eq, LATTICE_UNITS),
                                   expected, rtol=1e-14)

    def test_bgk_timestep_scales_rate(self, perturbed_lattice):
        """BGK relaxes at dt/tau."""
        f = np.array(perturbed_lattice.populations)
        f_eq = perturbed_lattice.equilibrium()

        np.testing.assert_allclose(bgk_collision(f, f_eq, 1.0, dt=0.5),
                                   bgk_collision(f, f_eq, 2.0), rtol=1e-14)


class TestViscosityTauRelation:
    """Test viscosity-tau relationship."""

    def test_tau_from_viscosity(self):
        nu = 0.1
        tau = tau_from_viscosity(nu)

        # nu = cs2 * (tau - 0.5) => tau = nu/cs2 + 0.5
        assert np.isclose(tau, nu / CS2 + 0.5)

    def test_viscosity_from_tau(self):
        tau = 0.8

        assert np.isclose(viscosity_from_tau(tau), CS2 * (tau - 0.5))

    def test_roundtrip(self):
        disc = Discretization(0.5, 0.25)
        tau_original = 0.75

        nu = viscosity_from_tau(tau_original, disc)

        assert np.isclose(tau_from_viscosity(nu, disc), tau_original)

    def test_bgk_operator_agrees_with_helpers(self):
        disc = Discretization(0.5, 0.25)

        assert np.isclose(BGK(0.75).kinematic_shear_viscosity(disc),
                          viscosity_from_tau(0.75, disc))

    def test_tau_stability_check(self):
        with pytest.raises(ValueError):
            viscosity_from_tau(0.4)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

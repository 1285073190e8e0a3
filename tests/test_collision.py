"""
Tests for the collision operators.

Covers the fixed point at equilibrium, the viscosity relations of each
model, the regularization filter and the entropic (KBC) stabiliser.
"""

import pytest
import numpy as np
import sys
import os
import types
import warnings

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lbm_solver.collision import (
    BGK, TRT, KBC, Regularized,
    kbc_shear_part, regularize, trt_collision, validate_tau,
)
from lbm_solver.d2q9 import D2Q9
from lbm_solver.discretization import Discretization, LATTICE_UNITS
from lbm_solver.equilibrium import compute_equilibrium
from lbm_solver.fields import ShapeMismatchError
from lbm_solver.lattice import EX, EY
from lbm_solver.observables import compute_nonequilibrium_stress


def random_lattice(seed, nx=24, ny=16, noise=0.01):
    """Random equilibrium plus multiplicative non-equilibrium noise."""
    rng = np.random.default_rng(seed)
    rho = 1.0 + 0.05 * rng.standard_normal((ny, nx))
    ux = 0.05 * rng.standard_normal((ny, nx))
    uy = 0.05 * rng.standard_normal((ny, nx))
    f = compute_equilibrium(rho, ux, uy)
    return D2Q9(f * (1.0 + noise * rng.standard_normal(f.shape)))


@pytest.fixture
def lattice():
    return random_lattice(11)


@pytest.fixture
def equilibrium_lattice():
    rng = np.random.default_rng(5)
    ny, nx = 10, 12
    rho = 1.0 + 0.05 * rng.standard_normal((ny, nx))
    ux = 0.05 * rng.standard_normal((ny, nx))
    uy = 0.05 * rng.standard_normal((ny, nx))
    return D2Q9.at_equilibrium(rho, ux, uy)


class TestEquilibriumFixedPoint:
    """At equilibrium every operator leaves the populations unchanged."""

    @pytest.mark.parametrize("operator", [
        BGK(0.6),
        TRT(0.6, 1.4),
        Regularized(BGK(0.9)),
        Regularized(TRT(0.9, 0.8)),
        KBC(0.7),
    ], ids=repr)
    def test_fixed_point(self, equilibrium_lattice, operator):
        f_eq = equilibrium_lattice.equilibrium()

        f_out = operator.evaluate(equilibrium_lattice, f_eq, LATTICE_UNITS)

        np.testing.assert_allclose(f_out, equilibrium_lattice.populations, rtol=1e-12, atol=1e-15)

    def test_shape_mismatch_raises(self, lattice):
        f_eq = lattice.equilibrium()

        with pytest.raises(ShapeMismatchError):
            BGK(0.8).evaluate(lattice, f_eq[:, :-1], LATTICE_UNITS)


class TestBGK:
    """Test the single-relaxation-time operator."""

    def test_viscosity(self):
        assert np.isclose(BGK(0.8).kinematic_shear_viscosity(LATTICE_UNITS), 0.1)

    def test_from_viscosity_roundtrip(self):
        disc = Discretization(0.5, 0.25)

        bgk = BGK.from_viscosity(0.07, disc)

        assert np.isclose(bgk.kinematic_shear_viscosity(disc), 0.07)

    def test_bulk_viscosity(self):
        bgk = BGK(0.8)

        assert np.isclose(bgk.kinematic_bulk_viscosity(LATTICE_UNITS),
                          2.0 / 3.0 * bgk.kinematic_shear_viscosity(LATTICE_UNITS))

    def test_tau_one_relaxes_fully(self, lattice):
        f_eq = lattice.equilibrium()

        np.testing.assert_allclose(BGK(1.0).evaluate(lattice, f_eq, LATTICE_UNITS), f_eq,
                                   rtol=1e-14)

    def test_invalid_tau(self):
        with pytest.raises(ValueError):
            BGK(0.0)
        with pytest.raises(ValueError):
            BGK(0.5).validate(LATTICE_UNITS)

    def test_large_tau_warns(self):
        with pytest.warns(UserWarning):
            BGK(3.0).validate(LATTICE_UNITS)

    def test_validate_tau_returns_value(self):
        assert validate_tau(0.7) == 0.7


class TestTRT:
    """Test the two-relaxation-time operator."""

    @pytest.mark.parametrize("disc", [LATTICE_UNITS, Discretization(0.5, 0.25)], ids=repr)
    def test_viscosity_roundtrip(self, disc):
        trt = TRT.from_viscosity(0.25, 0.04, disc)

        assert np.isclose(trt.kinematic_shear_viscosity(disc), 0.04)

    @pytest.mark.parametrize("disc", [LATTICE_UNITS, Discretization(0.5, 0.25)], ids=repr)
    @pytest.mark.parametrize("magic", [3.0 / 16.0, 0.25, 1.0 / 12.0])
    def test_magic_parameter_recovered(self, disc, magic):
        trt = TRT.from_viscosity(magic, 0.04, disc)

        assert np.isclose(trt.lambda_(disc), magic)

    def test_equal_rates_match_bgk(self, lattice):
        f_eq = lattice.equilibrium()

        f_trt = TRT(0.8, 0.8).evaluate(lattice, f_eq, LATTICE_UNITS)
        f_bgk = BGK(0.8).evaluate(lattice, f_eq, LATTICE_UNITS)

        np.testing.assert_allclose(f_trt, f_bgk, rtol=1e-13)

    def test_matches_array_kernel(self, lattice):
        f_eq = lattice.equilibrium()
        trt = TRT.from_viscosity(0.25, 0.05)

        expected = trt_collision(np.array(lattice.populations), f_eq, trt.tau_plus,
                                 tau_minus=trt.tau_minus)

        np.testing.assert_allclose(trt.evaluate(lattice, f_eq, LATTICE_UNITS), expected,
                                   rtol=1e-14)

    def test_invalid_relaxation(self):
        with pytest.raises(ValueError):
            TRT(-1.0, 0.8)
        with pytest.raises(ValueError):
            TRT(0.5, 0.8).validate(LATTICE_UNITS)
        with pytest.raises(ValueError):
            TRT.from_viscosity(0.25, 0.0)


class TestRegularized:
    """Test the regularization filter and the wrapper operator."""

    def test_preserves_moments(self, lattice):
        f = np.array(lattice.populations)
        f_eq = lattice.equilibrium()

        f_reg = regularize(f, f_eq)

        np.testing.assert_allclose(f_reg.sum(axis=0), f.sum(axis=0), rtol=1e-13)
        np.testing.assert_allclose(np.tensordot(EX, f_reg, axes=1),
                                   np.tensordot(EX, f, axes=1), atol=1e-13)
        np.testing.assert_allclose(np.tensordot(EY, f_reg, axes=1),
                                   np.tensordot(EY, f, axes=1), atol=1e-13)

    def test_preserves_stress(self, lattice):
        f = np.array(lattice.populations)
        f_eq = lattice.equilibrium()

        before = compute_nonequilibrium_stress(f - f_eq)
        after = compute_nonequilibrium_stress(regularize(f, f_eq) - f_eq)

        for a, b in zip(before, after):
            np.testing.assert_allclose(b, a, rtol=1e-10, atol=1e-15)

    def test_idempotent(self, lattice):
        f_eq = lattice.equilibrium()

        once = regularize(np.array(lattice.populations), f_eq)
        twice = regularize(once, f_eq)

        np.testing.assert_allclose(twice, once, rtol=1e-13, atol=1e-16)

    def test_filters_higher_moments(self, lattice):
        """Only the stress survives, so regularizing changes a noisy lattice."""
        f = np.array(lattice.populations)
        f_eq = lattice.equilibrium()

        assert not np.allclose(regularize(f, f_eq), f, rtol=1e-8, atol=0.0)

    def test_with_unit_bgk_gives_equilibrium(self, lattice):
        f_eq = lattice.equilibrium()

        f_out = Regularized(BGK(1.0)).evaluate(lattice, f_eq, LATTICE_UNITS)

        np.testing.assert_allclose(f_out, f_eq, rtol=1e-13)

    def test_does_not_touch_input_lattice(self, lattice):
        before = np.array(lattice.populations)

        Regularized(BGK(0.8)).evaluate(lattice, lattice.equilibrium(), LATTICE_UNITS)

        np.testing.assert_array_equal(lattice.populations, before)

    def test_viscosity_is_inner(self):
        inner = TRT.from_viscosity(0.25, 0.03)

        assert np.isclose(Regularized(inner).kinematic_shear_viscosity(LATTICE_UNITS), 0.03)

    def test_inner_must_be_operator(self):
        with pytest.raises(TypeError):
            Regularized(0.8)


class TestKBC:
    """Test the entropic operator."""

    def test_shear_part_carries_no_mass_or_momentum(self, lattice):
        delta_s = kbc_shear_part(lattice.non_equilibrium())

        np.testing.assert_allclose(delta_s.sum(axis=0), 0.0, atol=1e-16)
        np.testing.assert_allclose(np.tensordot(EX, delta_s, axes=1), 0.0, atol=1e-16)
        np.testing.assert_allclose(np.tensordot(EY, delta_s, axes=1), 0.0, atol=1e-16)

    def test_shear_part_carries_deviatoric_stress(self, lattice):
        f_neq = lattice.non_equilibrium()
        delta_s = kbc_shear_part(f_neq)

        pi_xx, pi_xy, pi_yy = compute_nonequilibrium_stress(f_neq)
        s_xx, s_xy, s_yy = compute_nonequilibrium_stress(delta_s)

        np.testing.assert_allclose(s_xy, pi_xy, rtol=1e-12, atol=1e-16)
        np.testing.assert_allclose(s_xx - s_yy, pi_xx - pi_yy, rtol=1e-12, atol=1e-16)

    @pytest.mark.parametrize("beta", [0.55, 0.7, 0.9, 0.99])
    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_entropy_production_non_negative(self, beta, seed):
        lattice = random_lattice(seed, noise=0.05)
        kbc = KBC(beta)

        production = kbc.entropy_production(lattice, lattice.equilibrium(), LATTICE_UNITS)

        assert production.shape == (16, 24)
        assert np.min(production) >= -1e-12

    def test_half_beta_relaxes_fully(self, lattice):
        f_eq = lattice.equilibrium()

        f_out = KBC(0.5).evaluate(lattice, f_eq, LATTICE_UNITS)

        np.testing.assert_allclose(f_out, f_eq, rtol=1e-12)

    def test_gamma_falls_back_to_bgk_at_equilibrium(self, equilibrium_lattice):
        gamma = KBC(0.8).gamma(equilibrium_lattice, equilibrium_lattice.equilibrium())

        np.testing.assert_array_equal(gamma, 2.0)

    def test_self_check_is_quiet(self, lattice):
        kbc = KBC.from_viscosity(0.01, self_check=True)

        with warnings.catch_warnings():
            warnings.simplefilter("error")
            kbc.evaluate(lattice, lattice.equilibrium(), LATTICE_UNITS)

    def test_from_viscosity_roundtrip(self):
        disc = Discretization(0.5, 0.25)

        kbc = KBC.from_viscosity(0.02, disc)

        assert np.isclose(kbc.kinematic_shear_viscosity(disc), 0.02)
        assert np.isclose(kbc.kinematic_bulk_viscosity(disc), 2.0 / 3.0 * 0.02)

    def test_requires_d2q9(self, lattice):
        not_a_lattice = types.SimpleNamespace(populations=np.array(lattice.populations))

        with pytest.raises(TypeError):
            KBC(0.8).evaluate(not_a_lattice, lattice.equilibrium(), LATTICE_UNITS)

    def test_validate_accepts_any_discretization(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            assert KBC(0.8).validate(Discretization(0.5, 0.25)) is None

    @pytest.mark.parametrize("beta", [0.0, 1.0, 1.5])
    def test_invalid_beta(self, beta):
        with pytest.raises(ValueError):
            KBC(beta)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

"""Unit tests for composite kinematics, rest-frame angles and the rotational background."""

from __future__ import annotations

import math
import unittest

import numpy as np

from resocomb import AxisPolicy, LorentzVector, ObservableCalculator, RotationSampler, compute_observables
from resocomb.observables import rotated_background
from resocomb.physics import boost_from_rest_frame, boost_to_rest_frame, momentum_to_lorentz
from resocomb.pid import MASS_K0SHORT


class _Momentum:
    """Minimal candidate exposing a 3-momentum."""

    def __init__(self, px: float, py: float, pz: float) -> None:
        self.px, self.py, self.pz = px, py, pz


class TestCompositeKinematics(unittest.TestCase):
    """Four-vector sums and boosts."""

    def test_back_to_back_pair(self) -> None:
        m = 0.4976
        obs = compute_observables(_Momentum(1.0, 0.0, 0.0), _Momentum(-1.0, 0.0, 0.0), m)
        self.assertAlmostEqual(obs.pt, 0.0, places=12)
        self.assertAlmostEqual(obs.mass, 2.0 * math.sqrt(1.0 + m * m), places=12)
        self.assertAlmostEqual(obs.rapidity, 0.0, places=12)

    def test_mass_and_pt_symmetric_under_swap(self) -> None:
        a = _Momentum(0.7, -0.3, 1.2)
        b = _Momentum(-0.2, 0.9, 0.4)
        ab = compute_observables(a, b, MASS_K0SHORT)
        ba = compute_observables(b, a, MASS_K0SHORT)
        self.assertAlmostEqual(ab.mass, ba.mass, places=12)
        self.assertAlmostEqual(ab.pt, ba.pt, places=12)

    def test_boost_round_trip(self) -> None:
        frame = momentum_to_lorentz(0.8, -1.1, 2.5, 1.3)
        vec = momentum_to_lorentz(0.3, 0.4, -0.7, MASS_K0SHORT)
        back = boost_from_rest_frame(boost_to_rest_frame(vec, frame), frame)
        for got, want in zip((back.px, back.py, back.pz, back.e), (vec.px, vec.py, vec.pz, vec.e)):
            self.assertAlmostEqual(got, want, places=10)

    def test_rest_frame_of_composite_has_zero_momentum(self) -> None:
        d1 = momentum_to_lorentz(0.7, -0.3, 1.2, MASS_K0SHORT)
        d2 = momentum_to_lorentz(-0.2, 0.9, 0.4, MASS_K0SHORT)
        mother = d1 + d2
        at_rest = boost_to_rest_frame(mother, mother)
        self.assertAlmostEqual(at_rest.p, 0.0, places=10)
        self.assertAlmostEqual(at_rest.e, mother.mass, places=10)
        cm1 = boost_to_rest_frame(d1, mother)
        cm2 = boost_to_rest_frame(d2, mother)
        self.assertAlmostEqual(cm1.p, cm2.p, places=10)


class TestAngles(unittest.TestCase):
    """cos(theta*) reference axes and the helicity-frame azimuth."""

    def test_beam_axis_with_transverse_daughters(self) -> None:
        calc = ObservableCalculator(AxisPolicy.BEAM)
        obs = calc.compute_from_momenta((1.0, 0.0, 0.0), (-1.0, 0.0, 0.0), MASS_K0SHORT)
        self.assertAlmostEqual(obs.cos_theta_star, 0.0, places=12)

    def test_beam_axis_with_longitudinal_daughters(self) -> None:
        calc = ObservableCalculator(AxisPolicy.BEAM)
        obs = calc.compute_from_momenta((0.0, 0.0, 1.0), (0.0, 0.0, -1.0), MASS_K0SHORT)
        self.assertAlmostEqual(obs.cos_theta_star, 1.0, places=12)

    def test_helicity_axis_undefined_for_composite_at_rest(self) -> None:
        calc = ObservableCalculator(AxisPolicy.HELICITY)
        obs = calc.compute_from_momenta((1.0, 0.0, 0.0), (-1.0, 0.0, 0.0), MASS_K0SHORT)
        self.assertTrue(math.isnan(obs.cos_theta_star))
        self.assertEqual(obs.phi, 0.0)

    def test_helicity_axis_for_moving_composite(self) -> None:
        calc = ObservableCalculator(AxisPolicy.HELICITY)
        # Daughter 1 emitted forward along the composite flight direction.
        obs = calc.compute_from_momenta((3.0, 0.0, 0.0), (1.0, 0.0, 0.0), MASS_K0SHORT)
        self.assertAlmostEqual(obs.cos_theta_star, 1.0, places=10)

    def test_production_axis_is_transverse_normal(self) -> None:
        calc = ObservableCalculator(AxisPolicy.PRODUCTION)
        mother = LorentzVector(1.0, 2.0, 0.5, 5.0)
        self.assertEqual(calc.reference_axis(mother), (2.0, -1.0, 0.0))

    def test_helicity_frame_reference_vector(self) -> None:
        calc = ObservableCalculator(AxisPolicy.HELICITY)
        d1, d2 = (1.0, 0.5, 0.3), (0.2, -0.4, 0.8)
        obs = calc.compute_from_momenta(d1, d2, MASS_K0SHORT)
        self.assertAlmostEqual(obs.phi, 0.71458, places=4)
        self.assertAlmostEqual(obs.cos_theta_star, 0.16834, places=4)

        # Swapped daughters are back to back in the rest frame.
        swapped = calc.compute_from_momenta(d2, d1, MASS_K0SHORT)
        self.assertAlmostEqual(swapped.phi, obs.phi + math.pi, places=9)
        self.assertAlmostEqual(swapped.cos_theta_star, -obs.cos_theta_star, places=9)
        self.assertAlmostEqual(swapped.mass, obs.mass, places=12)

    def test_phi_range_and_random_axis(self) -> None:
        rng = np.random.default_rng(7)
        calc = ObservableCalculator(AxisPolicy.RANDOM, rng=rng)
        for _ in range(200):
            p1 = tuple(rng.normal(size=3))
            p2 = tuple(rng.normal(size=3))
            obs = calc.compute_from_momenta(p1, p2, MASS_K0SHORT)
            self.assertGreaterEqual(obs.phi, 0.0)
            self.assertLess(obs.phi, 2.0 * math.pi)
            self.assertLessEqual(abs(obs.cos_theta_star), 1.0 + 1e-12)

    def test_unknown_policy_name(self) -> None:
        with self.assertRaises(ValueError):
            AxisPolicy.from_name("transversity")
        self.assertIs(AxisPolicy.from_name(" Helicity "), AxisPolicy.HELICITY)


class TestRotationalBackground(unittest.TestCase):
    """Rotation window and recomputed observables."""

    def test_draws_stay_inside_window(self) -> None:
        sampler = RotationSampler(10.0, np.random.default_rng(12345))
        low, high = sampler.window
        self.assertAlmostEqual(low, math.pi - math.pi / 10.0, places=12)
        self.assertAlmostEqual(high, math.pi + math.pi / 10.0, places=12)
        draws = np.array([sampler.sample() for _ in range(10000)])
        self.assertTrue(np.all(draws >= low))
        self.assertTrue(np.all(draws <= high))
        # Never close to a null rotation.
        self.assertTrue(np.all(np.abs(np.cos(draws) - 1.0) > 1.0))

    def test_window_must_exclude_null_rotation(self) -> None:
        rng = np.random.default_rng(0)
        for cut in (0.5, 1.0, 0.0, -3.0):
            with self.subTest(cut=cut):
                with self.assertRaises(ValueError):
                    RotationSampler(cut, rng)
        self.assertGreater(RotationSampler(1.5, rng).window[0], 0.0)

    def test_non_positive_cut_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            RotationSampler(0.0, np.random.default_rng(1))

    def test_rotation_preserves_daughter_kinematics(self) -> None:
        rng = np.random.default_rng(3)
        calc = ObservableCalculator(AxisPolicy.BEAM, rng=rng)
        d1 = momentum_to_lorentz(0.9, 0.4, 0.3, MASS_K0SHORT)
        d2 = momentum_to_lorentz(0.8, 0.5, -0.2, MASS_K0SHORT)
        signal = calc.compute(d1, d2)
        rotated = rotated_background(calc, d1, d2, MASS_K0SHORT, RotationSampler(10.0, rng), 3)
        self.assertEqual(len(rotated), 3)
        for obs in rotated:
            # Near back-to-back rotation pushes the pair apart: heavier, softer composite.
            self.assertGreater(obs.mass, signal.mass)
            self.assertLess(obs.pt, signal.pt)


if __name__ == "__main__":
    unittest.main()

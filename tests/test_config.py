"""Unit tests for analysis configuration parsing and fail-fast validation."""

from __future__ import annotations

import json
import tempfile
import unittest
from dataclasses import replace
from pathlib import Path

import numpy as np

from resocomb import (
    AnalysisConfig,
    AxisPolicy,
    PolarizationConfig,
    ResonanceCorrelationAnalysis,
    analysis_config_from_dict,
    load_analysis_config_json,
)


class TestAnalysisConfig(unittest.TestCase):
    """Defaults, overrides and rejected configurations."""

    def test_defaults(self) -> None:
        config = analysis_config_from_dict({})
        self.assertEqual(config.polarization.axis_policy, AxisPolicy.BEAM)
        self.assertEqual(config.polarization.n_rotations, 3)
        self.assertEqual(config.mixing.n_mixed_events, 5)
        self.assertEqual(len(config.mixing.vertex_z_edges), 11)
        self.assertEqual(len(config.mixing.multiplicity_edges), 21)
        self.assertAlmostEqual(config.v0.min_cos_pa, 0.97)
        self.assertTrue(config.select_two_only)
        self.assertEqual(config.mc.resonance_pdg, 335)
        self.assertTrue(config.mc.all_gen_collisions)

    def test_group_overrides_and_axes(self) -> None:
        config = analysis_config_from_dict(
            {
                "v0": {"min_cos_pa": 0.99, "apply_competing_cut": True},
                "mixing": {
                    "n_mixed_events": 10,
                    "vertex_z_axis": {"n_bins": 4, "min": -8, "max": 8},
                    "multiplicity_axis": [0, 10, 50, 100],
                },
                "polarization": {"axis_policy": "helicity", "rotational_cut": 5},
                "mc": {"resonance": "f0(1710)", "apply_pair_rapidity_rec": True},
                "select_two_only": False,
            }
        )
        self.assertAlmostEqual(config.v0.min_cos_pa, 0.99)
        self.assertTrue(config.v0.apply_competing_cut)
        self.assertEqual(config.mixing.vertex_z_edges, (-8.0, -4.0, 0.0, 4.0, 8.0))
        self.assertEqual(config.mixing.multiplicity_edges, (0.0, 10.0, 50.0, 100.0))
        self.assertIs(config.polarization.axis_policy, AxisPolicy.HELICITY)
        self.assertEqual(config.polarization.rotational_cut, 5.0)
        self.assertFalse(config.select_two_only)
        self.assertEqual(config.mc.resonance_pdg, 10331)
        self.assertTrue(config.mc.apply_pair_rapidity_rec)
        self.assertFalse(config.mc.apply_pair_rapidity_gen)

    def test_legacy_flags_first_enabled_wins(self) -> None:
        config = analysis_config_from_dict(
            {"polarization": {"activate_production": True, "activate_random": True}}
        )
        self.assertIs(config.polarization.axis_policy, AxisPolicy.PRODUCTION)

    def test_no_axis_policy_fails_fast(self) -> None:
        with self.assertRaises(ValueError):
            analysis_config_from_dict({"polarization": {"activate_helicity": False, "activate_beam": False}})
        with self.assertRaises(ValueError):
            analysis_config_from_dict({"polarization": {"axis_policy": None}})
        broken = replace(AnalysisConfig(), polarization=PolarizationConfig(axis_policy=None))
        with self.assertRaises(ValueError):
            ResonanceCorrelationAnalysis(broken, rng=np.random.default_rng(0))

    def test_invalid_values_fail_fast(self) -> None:
        bad = [
            {"polarization": {"axis_policy": "sideways"}},
            {"polarization": {"rotational_cut": 0}},
            {"polarization": {"rotational_cut": 1}},
            {"polarization": {"rotational_cut": 0.5}},
            {"polarization": {"n_rotations": -1}},
            {"mixing": {"n_mixed_events": 0}},
            {"mixing": {"vertex_z_axis": [0, 0]}},
            {"v0": {"unknown_cut": 1}},
            {"mc": {"resonance": "rho(770)"}},
            {"mc": {"apply_rapidity_gen": True}},
            {"tracks": {}},
        ]
        for data in bad:
            with self.subTest(data=data):
                with self.assertRaises(ValueError):
                    analysis_config_from_dict(data)

    def test_load_from_json_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            path.write_text(json.dumps({"polarization": {"axis_policy": "random"}}), encoding="utf-8")
            config = load_analysis_config_json(path)
        self.assertIs(config.polarization.axis_policy, AxisPolicy.RANDOM)


if __name__ == "__main__":
    unittest.main()

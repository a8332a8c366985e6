"""End-to-end tests of the resonance-correlation analysis."""

from __future__ import annotations

import math
import unittest
from dataclasses import replace

import numpy as np

from resocomb import (
    AnalysisConfig,
    DaughterTrack,
    EventCuts,
    EventInput,
    McConfig,
    McEvent,
    McParticle,
    PolarizationConfig,
    ResonanceCorrelationAnalysis,
    TableSink,
    V0Candidate,
    V0Cuts,
)
from resocomb.analysis import (
    EVENT_CUTFLOW,
    GENERATED,
    GENERATED_PAIR,
    MIXED_EVENT,
    RECONSTRUCTED,
    RECONSTRUCTED_TRUE_MOTHER,
    ROTATED,
    SAME_EVENT,
    common_mothers,
)
from resocomb.pid import MASS_K0SHORT


def _track(track_id: int, sign: int) -> DaughterTrack:
    return DaughterTrack(
        track_id=track_id,
        sign=sign,
        pt=0.8,
        eta=0.1,
        tpc_ncls_found=90,
        tpc_ncls_crossed_rows=95,
        tpc_crossed_rows_over_findable=0.95,
        tpc_nsigma_pi=0.5,
    )


def _v0(candidate_id: int, first_track: int, px: float, py: float, pz: float = 0.05) -> V0Candidate:
    return V0Candidate(
        candidate_id=candidate_id,
        px=px,
        py=py,
        pz=pz,
        pos_track=_track(first_track, 1),
        neg_track=_track(first_track + 1, -1),
        v0_radius=4.0,
        dca_v0_daughters=0.2,
        v0_cos_pa=0.995,
        decay_x=4.0,
        mass_k0short=0.498,
    )


def _event(event_id: str, offset: int, pz: float = 0.05, **kwargs) -> EventInput:
    """Two selected K0S candidates with distinct tracks."""
    values = dict(
        event_id=event_id,
        pos_z=1.0,
        cent_ft0m=30.0,
        v0s=(_v0(offset, 10 * offset, 1.0, 0.3, pz), _v0(offset + 1, 10 * offset + 2, -0.6, 0.9, pz)),
    )
    values.update(kwargs)
    return EventInput(**values)


def _k0s(index: int, px: float, py: float, pz: float, primary: bool = True) -> McParticle:
    e = math.sqrt(px * px + py * py + pz * pz + MASS_K0SHORT * MASS_K0SHORT)
    return McParticle(
        index=index,
        pdg_code=310,
        px=px,
        py=py,
        pz=pz,
        e=e,
        is_physical_primary=primary,
        mother_indices=(0,),
    )


def _mc_event(pdg_code: int = 335, primary: bool = True, pz: float = 0.0) -> McEvent:
    """f2(1525) (index 0) decaying into two K0S (indices 1 and 2)."""
    k1 = _k0s(1, 0.6, 0.2, 0.1 + pz, primary)
    k2 = _k0s(2, -0.4, 0.3, -0.05 + pz, primary)
    mother = McParticle(
        index=0,
        pdg_code=pdg_code,
        px=k1.px + k2.px,
        py=k1.py + k2.py,
        pz=k1.pz + k2.pz,
        e=k1.e + k2.e,
        daughter_indices=(1, 2),
    )
    return McEvent(event_id="mc0", pos_z=1.0, particles=(mother, k1, k2), cent_ft0m=40.0)


def _matched(v0: V0Candidate, particle_index: int) -> V0Candidate:
    return replace(
        v0,
        mc_particle_index=particle_index,
        pos_track=replace(v0.pos_track, mc_pdg_code=211),
        neg_track=replace(v0.neg_track, mc_pdg_code=-211),
    )


def _matched_event(**kwargs) -> EventInput:
    event = _event("r0", 0, mc_event_id="mc0", **kwargs)
    first, second = event.v0s
    return replace(event, v0s=(_matched(first, 1), _matched(second, 2)))


class TestResonanceCorrelationAnalysis(unittest.TestCase):
    """Signal, rotated and mixed-event outputs."""

    def _analysis(self, **config_kwargs) -> tuple[ResonanceCorrelationAnalysis, TableSink]:
        sink = TableSink()
        config = replace(AnalysisConfig(), **config_kwargs)
        return ResonanceCorrelationAnalysis(config, sink=sink, rng=np.random.default_rng(2024)), sink

    def test_same_event_signal_and_rotations(self) -> None:
        analysis, sink = self._analysis()
        records = analysis.process_same_event(_event("e0", 0))
        kinds = [r.kind for r in records]
        self.assertEqual(kinds.count(SAME_EVENT), 1)
        self.assertEqual(kinds.count(ROTATED), 3)
        signal = next(r for r in records if r.kind == SAME_EVENT)
        self.assertEqual(signal.candidate_ids, (0, 1))
        self.assertEqual(signal.multiplicity, 30.0)
        self.assertLess(abs(signal.observables.rapidity), 0.5)
        self.assertEqual(len(sink.rows("pair_same_event")), 1)
        self.assertEqual(len(sink.rows("pair_rotated")), 3)

    def test_rejected_event_gives_no_pairs(self) -> None:
        analysis, sink = self._analysis()
        self.assertEqual(analysis.process_same_event(_event("e0", 0, pos_z=12.0)), [])
        self.assertEqual(analysis.process_same_event(_event("e1", 0, sel8=False)), [])
        self.assertEqual(analysis.process_same_event(_event("e2", 0, no_its_rof_border=False)), [])
        self.assertEqual(sink.counts(EVENT_CUTFLOW), {0: 3, 1: 2, 2: 1})

    def test_ft0c_multiplicity(self) -> None:
        analysis, _ = self._analysis(event=EventCuts(use_ft0m_multiplicity=False))
        self.assertEqual(analysis.multiplicity(_event("e0", 0, cent_ft0c=55.0)), 55.0)

    def test_run_with_mixing(self) -> None:
        analysis, sink = self._analysis()
        events = [_event("e0", 0), _event("e1", 5), _event("e2", 10)]
        records = analysis.run(events)
        mixed = [r for r in records if r.kind == MIXED_EVENT]
        for rec in mixed:
            self.assertNotEqual(rec.event_id, rec.partner_event_id)
        # e1 mixes with e0, e2 with e0 and e1; four candidate pairs per event pair.
        self.assertEqual(len(mixed), 3 * 4)
        self.assertEqual(len(sink.rows("pair_mixed_event")), 12)

    def test_run_without_mixing(self) -> None:
        analysis, _ = self._analysis()
        records = analysis.run([_event("e0", 0), _event("e1", 5)], mixing=False)
        self.assertFalse(any(r.kind == MIXED_EVENT for r in records))

    def test_two_only_mode_skips_busier_events(self) -> None:
        analysis, _ = self._analysis()
        busy = _event("e0", 0)
        busy = replace(busy, v0s=busy.v0s + (_v0(2, 50, 0.2, -1.0),))
        self.assertEqual(analysis.process_same_event(busy), [])
        relaxed, _ = self._analysis(select_two_only=False)
        self.assertEqual(len([r for r in relaxed.process_same_event(busy) if r.kind == SAME_EVENT]), 3)


class TestPairRapidityGates(unittest.TestCase):
    """A forward pair (|y| ~ 1.7) against each rapidity flag."""

    def _analysis(self, **polarization) -> ResonanceCorrelationAnalysis:
        config = replace(
            AnalysisConfig(),
            v0=V0Cuts(max_rapidity=5.0),
            polarization=PolarizationConfig(**polarization),
        )
        return ResonanceCorrelationAnalysis(config, rng=np.random.default_rng(99))

    def _forward_events(self) -> list[EventInput]:
        return [_event("e0", 0, pz=3.0), _event("e1", 5, pz=3.0), _event("e2", 10, pz=3.0)]

    def _counts(self, records) -> dict[str, int]:
        kinds = [r.kind for r in records]
        return {kind: kinds.count(kind) for kind in (SAME_EVENT, ROTATED, MIXED_EVENT)}

    def test_all_gates_on(self) -> None:
        records = self._analysis().run(self._forward_events())
        self.assertEqual(self._counts(records), {SAME_EVENT: 0, ROTATED: 0, MIXED_EVENT: 0})

    def test_rotated_variants_kept_without_their_gate(self) -> None:
        records = self._analysis(apply_rapidity_to_rotated=False).run(self._forward_events())
        self.assertEqual(self._counts(records), {SAME_EVENT: 0, ROTATED: 9, MIXED_EVENT: 0})
        for rec in records:
            self.assertGreater(abs(rec.observables.rapidity), 0.5)

    def test_mixed_variants_kept_without_their_gate(self) -> None:
        records = self._analysis(apply_rapidity_to_mixed=False).run(self._forward_events())
        self.assertEqual(self._counts(records), {SAME_EVENT: 0, ROTATED: 0, MIXED_EVENT: 12})

    def test_signal_gate_is_unconditional(self) -> None:
        analysis = self._analysis(apply_rapidity_to_rotated=False, apply_rapidity_to_mixed=False)
        records = analysis.run(self._forward_events())
        self.assertEqual(self._counts(records), {SAME_EVENT: 0, ROTATED: 9, MIXED_EVENT: 12})

    def test_wider_window_accepts_signal(self) -> None:
        records = self._analysis(max_pair_rapidity=3.0).run(self._forward_events(), mixing=False)
        self.assertEqual(self._counts(records), {SAME_EVENT: 3, ROTATED: 9, MIXED_EVENT: 0})


class TestMcPasses(unittest.TestCase):
    """Generated resonances and truth-matched reconstructed pairs."""

    def _analysis(self, **mc) -> tuple[ResonanceCorrelationAnalysis, TableSink]:
        sink = TableSink()
        config = replace(AnalysisConfig(), mc=McConfig(**mc))
        return ResonanceCorrelationAnalysis(config, sink=sink, rng=np.random.default_rng(5)), sink

    def test_generated_resonance(self) -> None:
        analysis, sink = self._analysis()
        records = analysis.process_generated(_mc_event())
        self.assertEqual([r.kind for r in records], [GENERATED, GENERATED_PAIR])
        generated, pair = records
        self.assertEqual(generated.candidate_ids, (1, 2))
        self.assertEqual(generated.multiplicity, 40.0)
        # The generated mother is the exact sum of its daughters here.
        self.assertAlmostEqual(generated.observables.mass, pair.observables.mass, places=9)
        self.assertAlmostEqual(generated.observables.cos_theta_star, pair.observables.cos_theta_star, places=9)
        self.assertEqual(len(sink.rows("mc_generated")), 1)
        self.assertEqual(len(sink.rows("mc_generated_pair")), 1)

    def test_generated_rejections(self) -> None:
        analysis, _ = self._analysis()
        self.assertEqual(analysis.process_generated(_mc_event(pdg_code=10331)), [])
        self.assertEqual(analysis.process_generated(_mc_event(primary=False)), [])
        self.assertEqual(analysis.process_generated(_mc_event(pz=5.0)), [])
        relaxed, _ = self._analysis(apply_rapidity=False)
        self.assertEqual(len(relaxed.process_generated(_mc_event(pz=5.0))), 2)
        gated, _ = self._analysis(apply_rapidity=False, apply_pair_rapidity_gen=True)
        self.assertEqual([r.kind for r in gated.process_generated(_mc_event(pz=5.0))], [GENERATED])

    def test_generated_requires_reconstruction_unless_all_collisions(self) -> None:
        strict, _ = self._analysis(all_gen_collisions=False)
        self.assertEqual(strict.process_generated(_mc_event(), reconstructed=False), [])
        self.assertEqual(len(strict.process_generated(_mc_event(), reconstructed=True)), 2)

    def test_reconstructed_pair_with_common_mother(self) -> None:
        analysis, sink = self._analysis()
        mc_event = _mc_event()
        records = analysis.process_reconstructed(_matched_event(), mc_event)
        self.assertEqual([r.kind for r in records], [RECONSTRUCTED_TRUE_MOTHER, RECONSTRUCTED])
        true_frame, pair = records
        self.assertEqual(true_frame.candidate_ids, (0, 1))
        self.assertEqual(true_frame.partner_event_id, "mc0")
        mother = mc_event.particles[0].four_momentum()
        self.assertAlmostEqual(true_frame.observables.mass, mother.mass, places=9)
        self.assertAlmostEqual(true_frame.observables.pt, mother.pt, places=9)
        self.assertEqual(len(sink.rows("mc_reconstructed")), 1)
        self.assertLessEqual(abs(pair.observables.cos_theta_star), 1.0)

    def test_reconstructed_rejections(self) -> None:
        analysis, _ = self._analysis()
        mc_event = _mc_event()
        self.assertEqual(analysis.process_reconstructed(_matched_event(), None), [])
        self.assertEqual(analysis.process_reconstructed(_matched_event(sel8=False), mc_event), [])
        self.assertEqual(analysis.process_reconstructed(_matched_event(), replace(mc_event, pos_z=11.0)), [])

        unlinked = _matched_event()
        first, second = unlinked.v0s
        no_truth_track = replace(first, pos_track=replace(first.pos_track, mc_pdg_code=None))
        self.assertEqual(analysis.process_reconstructed(replace(unlinked, v0s=(no_truth_track, second)), mc_event), [])

        mother, k1, k2 = mc_event.particles
        orphan = replace(mc_event, particles=(mother, k1, replace(k2, mother_indices=(7,))))
        self.assertEqual(analysis.process_reconstructed(_matched_event(), orphan), [])
        not_generator = replace(mc_event, particles=(replace(mother, produced_by_generator=False), k1, k2))
        self.assertEqual(analysis.process_reconstructed(_matched_event(), not_generator), [])

    def test_run_mc(self) -> None:
        analysis, _ = self._analysis(all_gen_collisions=False)
        records = analysis.run_mc([_matched_event()], [_mc_event()])
        kinds = [r.kind for r in records]
        self.assertEqual(kinds, [GENERATED, GENERATED_PAIR, RECONSTRUCTED_TRUE_MOTHER, RECONSTRUCTED])
        rejected = analysis.run_mc([_matched_event(sel8=False)], [_mc_event()])
        self.assertEqual(rejected, [])

    def test_common_mothers_keeps_order_and_drops_duplicates(self) -> None:
        a = replace(_k0s(1, 0.1, 0.0, 0.0), mother_indices=(4, 0, 4, 9))
        b = replace(_k0s(2, 0.1, 0.0, 0.0), mother_indices=(9, 4))
        self.assertEqual(common_mothers(a, b), [4, 9])


if __name__ == "__main__":
    unittest.main()

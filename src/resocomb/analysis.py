"""Resonance-correlation analysis of K0S pairs.

Per event: collision selection, single-candidate selection, same-event pair
building and observable computation for the signal plus its rotational
background. Across events: mixed-event pairs drawn from a pool binned in
vertex z and multiplicity. On simulation: generated resonances and
reconstructed pairs matched to a common generated mother.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from itertools import combinations
from typing import Iterable, Sequence

import numpy as np

from .combiner import PairCombiner
from .config import AnalysisConfig, validate_config
from .mixing import iter_mixed_events
from .models import EventInput, LorentzVector, McEvent, McParticle, PairObservables, PairRecord, V0Candidate
from .observables import AxisPolicy, ObservableCalculator, RotationSampler, rotated_background
from .physics import momentum_to_lorentz
from .pid import MASS_K0SHORT, PDG_K0SHORT
from .selection import V0Selector
from .sink import NullSink, ObservableSink

logger = logging.getLogger(__name__)

EVENT_CUTFLOW = "event_cutflow"
VERTEX_Z = "vertex_z"
MULTIPLICITY = "multiplicity"
MC_GEN_CUTFLOW = "mc_generated_cutflow"
MC_REC_CUTFLOW = "mc_reconstructed_cutflow"

SAME_EVENT = "same_event"
MIXED_EVENT = "mixed_event"
ROTATED = "rotated"
GENERATED = "generated"
GENERATED_PAIR = "generated_pair"
RECONSTRUCTED_TRUE_MOTHER = "reconstructed_true_mother"
RECONSTRUCTED = "reconstructed"

PAIR_HISTOGRAMS = {
    SAME_EVENT: "pair_same_event",
    MIXED_EVENT: "pair_mixed_event",
    ROTATED: "pair_rotated",
    GENERATED: "mc_generated",
    GENERATED_PAIR: "mc_generated_pair",
    RECONSTRUCTED_TRUE_MOTHER: "mc_reconstructed_true_mother",
    RECONSTRUCTED: "mc_reconstructed",
}


class ResonanceCorrelationAnalysis:
    """Same-event, rotated and mixed-event K0S pair observables, plus the MC truth passes."""

    def __init__(
        self,
        config: AnalysisConfig | None = None,
        sink: ObservableSink | None = None,
        rng: np.random.Generator | None = None,
        mass_hypothesis: float = MASS_K0SHORT,
    ) -> None:
        self.config = config if config is not None else AnalysisConfig()
        validate_config(self.config)
        self.sink = sink if sink is not None else NullSink()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.mass_hypothesis = mass_hypothesis

        pol = self.config.polarization
        selector = V0Selector(
            v0_cuts=self.config.v0,
            daughter_cuts=self.config.daughter,
            pair_cuts=self.config.pair,
            sink=self.sink,
        )
        self.combiner = PairCombiner(selector=selector, select_two_only=self.config.select_two_only)
        # Cut-flow histograms describe the same-event pass only.
        self.mixing_combiner = PairCombiner(selector=replace(selector, sink=NullSink()))
        self.calculator = ObservableCalculator(pol.axis_policy, rng=self.rng, sqrt_s=pol.sqrt_s)
        self.truth_calculator = ObservableCalculator(AxisPolicy.HELICITY, rng=self.rng, sqrt_s=pol.sqrt_s)
        self.sampler = RotationSampler(pol.rotational_cut, self.rng)
        self.binning = self.config.mixing.binning()
        logger.info(
            "Polarization axis policy '%s', %d rotations per pair, mixing depth %d",
            pol.axis_policy.value,
            pol.n_rotations,
            self.config.mixing.n_mixed_events,
        )

    def multiplicity(self, event: EventInput) -> float:
        if self.config.event.use_ft0m_multiplicity:
            return event.cent_ft0m
        return event.cent_ft0c

    def select_event(self, event: EventInput) -> bool:
        """Vertex z, time-frame and ITS readout-frame borders, then sel8."""
        cuts = self.config.event
        self.sink.record(EVENT_CUTFLOW, 0)
        if abs(event.pos_z) >= cuts.max_abs_vertex_z:
            return False
        self.sink.record(EVENT_CUTFLOW, 1)
        if cuts.require_time_frame_border and not (event.no_time_frame_border and event.no_its_rof_border):
            return False
        self.sink.record(EVENT_CUTFLOW, 2)
        if cuts.require_sel8 and not event.sel8:
            return False
        self.sink.record(EVENT_CUTFLOW, 3)
        self.sink.record(VERTEX_Z, event.pos_z)
        self.sink.record(MULTIPLICITY, self.multiplicity(event))
        return True

    def process_same_event(self, event: EventInput) -> list[PairRecord]:
        """Signal pairs of one event and their rotational background."""
        if not self.select_event(event):
            logger.debug("Event %s rejected by collision selection", event.event_id)
            return []
        pol = self.config.polarization
        mult = self.multiplicity(event)
        records: list[PairRecord] = []
        for first, second in self.combiner.same_event_pairs(event):
            d1, d2 = self._daughters(first, second)
            signal = self.calculator.compute(d1, d2)
            if self._in_rapidity(signal, True):
                records.append(self._record(SAME_EVENT, event, event, first, second, mult, signal))
            rotated = rotated_background(
                self.calculator, d1, d2, self.mass_hypothesis, self.sampler, pol.n_rotations
            )
            for obs in rotated:
                if self._in_rapidity(obs, pol.apply_rapidity_to_rotated):
                    records.append(self._record(ROTATED, event, event, first, second, mult, obs))
        return records

    def process_mixed_events(self, events: Iterable[EventInput]) -> list[PairRecord]:
        """Pairs between each selected event and its earlier pool partners."""
        pol = self.config.polarization
        selected = (e for e in events if self._passes_event_cuts(e))
        records: list[PairRecord] = []
        n_event_pairs = 0
        for primary, partner in iter_mixed_events(
            selected, self.binning, self.config.mixing.n_mixed_events, self.multiplicity
        ):
            n_event_pairs += 1
            mult = self.multiplicity(primary)
            for first, second in self.mixing_combiner.combine_pairs(primary, partner):
                obs = self.calculator.compute(*self._daughters(first, second))
                if self._in_rapidity(obs, pol.apply_rapidity_to_mixed):
                    records.append(self._record(MIXED_EVENT, primary, partner, first, second, mult, obs))
        logger.info("Mixed %d event pairs into %d candidate pairs", n_event_pairs, len(records))
        return records

    def run(self, events: Sequence[EventInput], mixing: bool = True) -> list[PairRecord]:
        """Process all events: same-event pass first, then the mixed-event pass."""
        records: list[PairRecord] = []
        for event in events:
            records.extend(self.process_same_event(event))
        n_same = sum(1 for r in records if r.kind == SAME_EVENT)
        logger.info("Processed %d events: %d signal pairs, %d rotated", len(events), n_same, len(records) - n_same)
        if mixing:
            records.extend(self.process_mixed_events(events))
        return records

    def process_generated(self, mc_event: McEvent, reconstructed: bool = True) -> list[PairRecord]:
        """Generated resonances decaying into two physical-primary K0S.

        Each accepted resonance gives a `GENERATED` record, with the first
        K0S taken in the generated mother frame, and a `GENERATED_PAIR` record
        built from the K0S K0S composite. `reconstructed` tells whether a
        reconstructed collision of this event passed the event selection.
        Helicity-frame angles are used in both.
        """
        mc = self.config.mc
        y_max = self.config.polarization.max_pair_rapidity
        self.sink.record(MC_GEN_CUTFLOW, 0)
        if not mc.all_gen_collisions and not reconstructed:
            return []
        self.sink.record(MC_GEN_CUTFLOW, 1)
        particles = mc_event.lookup()
        pdg = mc.resonance_pdg
        records: list[PairRecord] = []
        for particle in mc_event.particles:
            if abs(particle.pdg_code) != pdg:
                continue
            self.sink.record(MC_GEN_CUTFLOW, 2)
            mother = particle.four_momentum()
            if mc.apply_rapidity and abs(mother.rapidity) >= y_max:
                continue
            self.sink.record(MC_GEN_CUTFLOW, 3)
            daughters = [particles.get(idx) for idx in particle.daughter_indices]
            if len(daughters) != 2 or None in daughters:
                continue
            self.sink.record(MC_GEN_CUTFLOW, 4)
            kaons = [d for d in daughters if d.is_physical_primary and abs(d.pdg_code) == PDG_K0SHORT]
            if len(kaons) != 2:
                continue
            self.sink.record(MC_GEN_CUTFLOW, 5)
            d1, d2 = (momentum_to_lorentz(k.px, k.py, k.pz, self.mass_hypothesis) for k in kaons)
            ids = (kaons[0].index, kaons[1].index)
            mult = mc_event.cent_ft0m
            obs = self.truth_calculator.compute_in_frame(d1, mother)
            records.append(self._emit(GENERATED, mc_event.event_id, mc_event.event_id, ids, mult, obs))
            pair = self.truth_calculator.compute(d1, d2)
            if self._in_rapidity(pair, mc.apply_pair_rapidity_gen):
                records.append(self._emit(GENERATED_PAIR, mc_event.event_id, mc_event.event_id, ids, mult, pair))
        return records

    def process_reconstructed(self, event: EventInput, mc_event: McEvent | None) -> list[PairRecord]:
        """Selected K0S pairs whose matched particles decay from one generated resonance.

        `RECONSTRUCTED_TRUE_MOTHER` records carry the first K0S in the frame of
        the generated mother, `RECONSTRUCTED` records the reconstructed pair.
        """
        mc = self.config.mc
        cuts = self.config.event
        y_max = self.config.polarization.max_pair_rapidity
        self.sink.record(MC_REC_CUTFLOW, 0)
        if mc_event is None:
            return []
        self.sink.record(MC_REC_CUTFLOW, 1)
        if abs(mc_event.pos_z) > cuts.max_abs_vertex_z:
            return []
        self.sink.record(MC_REC_CUTFLOW, 2)
        if cuts.require_sel8 and not event.sel8:
            return []
        self.sink.record(MC_REC_CUTFLOW, 3)

        particles = mc_event.lookup()
        pdg = mc.resonance_pdg
        selector = self.mixing_combiner.selector
        mult = self.multiplicity(event)
        records: list[PairRecord] = []
        ordered = sorted(event.v0s, key=lambda v0: v0.candidate_id)
        for first, second in combinations(ordered, 2):
            truth1 = self._truth_particle(first, particles)
            truth2 = self._truth_particle(second, particles)
            if truth1 is None or truth2 is None:
                continue
            self.sink.record(MC_REC_CUTFLOW, 4)
            if not (selector.select_candidate(event, first) and selector.select_candidate(event, second)):
                continue
            self.sink.record(MC_REC_CUTFLOW, 5)
            if abs(truth1.pdg_code) != PDG_K0SHORT or abs(truth2.pdg_code) != PDG_K0SHORT:
                continue
            self.sink.record(MC_REC_CUTFLOW, 6)
            for mother_index in common_mothers(truth1, truth2):
                mother = particles.get(mother_index)
                if mother is None or mother.pdg_code != pdg or not mother.produced_by_generator:
                    continue
                true_mother = mother.four_momentum()
                if mc.apply_rapidity and abs(true_mother.rapidity) >= y_max:
                    continue
                self.sink.record(MC_REC_CUTFLOW, 7)
                d1, d2 = self._daughters(first, second)
                ids = (first.candidate_id, second.candidate_id)
                obs = self.truth_calculator.compute_in_frame(d1, true_mother)
                records.append(
                    self._emit(RECONSTRUCTED_TRUE_MOTHER, event.event_id, mc_event.event_id, ids, mult, obs)
                )
                pair = self.truth_calculator.compute(d1, d2)
                if self._in_rapidity(pair, mc.apply_pair_rapidity_rec):
                    records.append(self._emit(RECONSTRUCTED, event.event_id, mc_event.event_id, ids, mult, pair))
        return records

    def run_mc(self, events: Sequence[EventInput], mc_events: Sequence[McEvent]) -> list[PairRecord]:
        """Generated pass over every MC event, then the truth-matched pass over `events`."""
        truth = {mc_event.event_id: mc_event for mc_event in mc_events}
        accepted = {e.mc_event_id for e in events if e.mc_event_id is not None and self._passes_event_cuts(e)}
        records: list[PairRecord] = []
        for mc_event in mc_events:
            records.extend(self.process_generated(mc_event, reconstructed=mc_event.event_id in accepted))
        n_generated = len(records)
        for event in events:
            mc_event = truth.get(event.mc_event_id) if event.mc_event_id is not None else None
            records.extend(self.process_reconstructed(event, mc_event))
        logger.info(
            "MC pass over %d generated events: %d generated, %d truth-matched records",
            len(mc_events),
            n_generated,
            len(records) - n_generated,
        )
        return records

    def _passes_event_cuts(self, event: EventInput) -> bool:
        cuts = self.config.event
        if abs(event.pos_z) >= cuts.max_abs_vertex_z:
            return False
        if cuts.require_time_frame_border and not (event.no_time_frame_border and event.no_its_rof_border):
            return False
        return not (cuts.require_sel8 and not event.sel8)

    def _daughters(self, first: V0Candidate, second: V0Candidate) -> tuple[LorentzVector, LorentzVector]:
        m = self.mass_hypothesis
        return (
            momentum_to_lorentz(first.px, first.py, first.pz, m),
            momentum_to_lorentz(second.px, second.py, second.pz, m),
        )

    def _in_rapidity(self, obs: PairObservables, apply: bool) -> bool:
        return not apply or abs(obs.rapidity) < self.config.polarization.max_pair_rapidity

    def _truth_particle(self, v0: V0Candidate, particles: dict[int, McParticle]) -> McParticle | None:
        """Matched particle of a V0 whose daughter tracks are both truth-linked."""
        if v0.mc_particle_index is None or v0.pos_track is None or v0.neg_track is None:
            return None
        if v0.pos_track.mc_pdg_code is None or v0.neg_track.mc_pdg_code is None:
            return None
        return particles.get(v0.mc_particle_index)

    def _record(
        self,
        kind: str,
        event: EventInput,
        partner: EventInput,
        first: V0Candidate,
        second: V0Candidate,
        multiplicity: float,
        obs: PairObservables,
    ) -> PairRecord:
        return self._emit(
            kind, event.event_id, partner.event_id, (first.candidate_id, second.candidate_id), multiplicity, obs
        )

    def _emit(
        self,
        kind: str,
        event_id: str,
        partner_event_id: str,
        candidate_ids: tuple[int, int],
        multiplicity: float,
        obs: PairObservables,
    ) -> PairRecord:
        self.sink.record(
            PAIR_HISTOGRAMS[kind], multiplicity, obs.pt, obs.mass, obs.cos_theta_star, obs.phi
        )
        return PairRecord(
            kind=kind,
            event_id=event_id,
            partner_event_id=partner_event_id,
            candidate_ids=candidate_ids,
            multiplicity=multiplicity,
            observables=obs,
        )


def common_mothers(first: McParticle, second: McParticle) -> list[int]:
    """Mother indices shared by two particles, in the order of `first`."""
    others = set(second.mother_indices)
    return [idx for idx in dict.fromkeys(first.mother_indices) if idx in others]

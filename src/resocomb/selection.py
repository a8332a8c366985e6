"""Candidate selectors.

Every selector evaluates its cuts in a fixed order and stops at the first
failure. When a sink is attached, the index of each passed step is recorded
under a cut-flow name so the rejection profile can be reconstructed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .cuts import NO_BIN, DaughterCuts, PairCuts, PtBinnedCuts, V0Cuts
from .models import D0SelectionStatus, DaughterTrack, EventInput, TwoProngCandidate, V0Candidate
from .physics import angular_separation, cos_theta_star_two_prong, invariant_mass_two_prong
from .pid import MASS_D0, MASS_K0SHORT, MASS_KAON, MASS_LAMBDA, MASS_PION, combined_nsigma, within_nsigma
from .sink import NullSink, ObservableSink

logger = logging.getLogger(__name__)

V0_CUTFLOW = "v0_cutflow"
DAUGHTER_CUTFLOW = "v0_daughter_cutflow"
ANGULAR_SEPARATION = "angular_separation"
D0_CUTFLOW = "d0_cutflow"

D0_TO_PI_K_BIT = 0


@dataclass
class V0Selector:
    """K0S candidate selection: topology, mass window and daughter quality/PID."""

    v0_cuts: V0Cuts = field(default_factory=V0Cuts)
    daughter_cuts: DaughterCuts = field(default_factory=DaughterCuts)
    pair_cuts: PairCuts = field(default_factory=PairCuts)
    sink: ObservableSink = field(default_factory=NullSink)

    def select_candidate(self, event: EventInput, v0: V0Candidate) -> bool:
        """V0 topology followed by both daughters (negative first)."""
        if not self.select_v0(event, v0):
            return False
        if v0.neg_track is None or v0.pos_track is None:
            logger.debug("V0 %s rejected: missing daughter link", v0.candidate_id)
            return False
        return self.select_daughter(v0.neg_track, -1) and self.select_daughter(v0.pos_track, 1)

    def select_v0(self, event: EventInput, v0: V0Candidate) -> bool:
        """Apply V0-level cuts in cut-flow order."""
        cuts = self.v0_cuts
        step = self._step(V0_CUTFLOW)
        step(0)
        if cuts.apply_dca_v0_to_pv and abs(v0.dca_v0_to_pv) > cuts.max_dca_v0_to_pv:
            return False
        step(1)
        if abs(v0.rapidity(MASS_K0SHORT)) >= cuts.max_rapidity:
            return False
        step(2)
        if v0.pt < cuts.min_pt:
            return False
        step(3)
        if v0.dca_v0_daughters > cuts.max_dca_daughters:
            return False
        step(4)
        if v0.v0_cos_pa < cuts.min_cos_pa:
            return False
        step(5)
        if v0.v0_radius < cuts.min_radius:
            return False
        step(6)
        if v0.v0_radius > cuts.max_radius:
            return False
        step(7)
        ctau = v0.distance_over_total_momentum(event.pos_x, event.pos_y, event.pos_z) * MASS_K0SHORT
        if abs(ctau) > cuts.max_lifetime:
            return False
        step(8)
        # Armenteros slot, no cut applied.
        step(9)
        if cuts.apply_competing_cut and (
            abs(v0.mass_lambda - MASS_LAMBDA) <= cuts.competing_lambda_window
            or abs(v0.mass_antilambda - MASS_LAMBDA) <= cuts.competing_lambda_window
        ):
            return False
        step(10)
        low, high = cuts.mass_window
        return low <= v0.mass_k0short <= high

    def select_daughter(self, track: DaughterTrack, charge: int) -> bool:
        """Track quality, charge consistency, acceptance and pion PID."""
        cuts = self.daughter_cuts
        step = self._step(DAUGHTER_CUTFLOW)
        step(0)
        if cuts.require_tpc and not track.has_tpc:
            return False
        step(1)
        if not cuts.use_global_tracks:
            if track.tpc_ncls_crossed_rows < cuts.min_tpc_crossed_rows:
                return False
            step(2)
            if track.tpc_crossed_rows_over_findable < cuts.min_crossed_rows_over_findable:
                return False
            step(3)
            if track.tpc_ncls_found < cuts.min_tpc_clusters:
                return False
        elif not track.is_global_track:
            return False
        step(4)
        if charge < 0 and track.sign > 0:
            return False
        step(5)
        if charge > 0 and track.sign < 0:
            return False
        step(6)
        if abs(track.eta) > cuts.max_eta:
            return False
        step(7)
        if track.tpc_nsigma_pi is None or abs(track.tpc_nsigma_pi) > cuts.max_nsigma_pion:
            return False
        step(8)
        return True

    def passes_angular_separation(self, first: V0Candidate, second: V0Candidate) -> bool:
        """Optional eta-phi separation cut between the two pair members."""
        angle = angular_separation(first.eta, first.phi, second.eta, second.phi)
        self.sink.record(ANGULAR_SEPARATION, angle)
        if self.pair_cuts.apply_angular_separation and angle > self.pair_cuts.max_angular_separation:
            return False
        return True

    def _step(self, name: str):
        sink = self.sink

        def mark(index: int) -> None:
            sink.record(name, index)

        return mark


@dataclass
class D0Selector:
    """pT-binned D0 -> pi K selection with topological and PID status flags."""

    cuts: PtBinnedCuts
    pt_cand_min: float = 0.0
    pt_cand_max: float = 50.0
    max_nsigma: float = 3.0
    sink: ObservableSink = field(default_factory=NullSink)

    def select_topology(self, candidate: TwoProngCandidate) -> bool:
        """Conjugate-independent topological cuts."""
        pt = candidate.pt
        pt_bin = self.cuts.find_pt_bin(pt)
        if pt_bin == NO_BIN:
            return False
        return select_candidate(candidate, self.cuts, pt_bin, self.pt_cand_min, self.pt_cand_max)

    def select_topology_conjugate(
        self,
        candidate: TwoProngCandidate,
        track_pion: DaughterTrack,
        track_kaon: DaughterTrack,
    ) -> bool:
        """Conjugate-dependent cuts; `track_pion.sign > 0` means the D0 hypothesis."""
        pt_bin = self.cuts.find_pt_bin(candidate.pt)
        if pt_bin == NO_BIN:
            return False
        cut = self.cuts.get
        p0, p1 = candidate.prong0_momentum, candidate.prong1_momentum
        if track_pion.sign > 0:
            masses = (MASS_PION, MASS_KAON)
            prong = 1
        else:
            masses = (MASS_KAON, MASS_PION)
            prong = 0

        if abs(invariant_mass_two_prong(p0, p1, masses) - MASS_D0) > cut(pt_bin, "m"):
            return False
        if track_pion.pt < cut(pt_bin, "pT Pi") or track_kaon.pt < cut(pt_bin, "pT K"):
            return False
        if abs(track_pion.dca_xy) > cut(pt_bin, "d0pi") or abs(track_kaon.dca_xy) > cut(pt_bin, "d0K"):
            return False
        cos_theta = cos_theta_star_two_prong(p0, p1, masses, MASS_D0, prong)
        if abs(cos_theta) > cut(pt_bin, "cos theta*"):
            return False
        return True

    def select(self, candidate: TwoProngCandidate) -> D0SelectionStatus:
        """Evaluate one candidate and return its status flags."""
        self.sink.record(D0_CUTFLOW, 0)
        if not candidate.hf_flag & (1 << D0_TO_PI_K_BIT):
            return D0SelectionStatus(candidate_id=candidate.candidate_id)
        self.sink.record(D0_CUTFLOW, 1)
        if not self.select_topology(candidate):
            return D0SelectionStatus(candidate_id=candidate.candidate_id, hf_flag=1)
        self.sink.record(D0_CUTFLOW, 2)

        pos, neg = candidate.prong0, candidate.prong1
        topol_d0 = self.select_topology_conjugate(candidate, pos, neg)
        topol_d0bar = self.select_topology_conjugate(candidate, neg, pos)
        if not topol_d0 and not topol_d0bar:
            return D0SelectionStatus(candidate_id=candidate.candidate_id, hf_flag=1)
        self.sink.record(D0_CUTFLOW, 3)

        flags = {
            "d0_no_pid": 0,
            "d0_perfect_pid": 0,
            "d0_tof_pid": 0,
            "d0_rich_pid": 0,
            "d0_tof_plus_rich_pid": 0,
            "d0bar_tof_plus_rich_pid": 0,
        }
        if topol_d0:
            flags["d0_no_pid"] = 1
            if pos.mc_pdg_code == 211 and neg.mc_pdg_code == -321:
                flags["d0_perfect_pid"] = 1
            if within_nsigma(pos.tof_nsigma_pi, self.max_nsigma) and within_nsigma(neg.tof_nsigma_ka, self.max_nsigma):
                flags["d0_tof_pid"] = 1
            if within_nsigma(pos.rich_nsigma_pi, self.max_nsigma) and within_nsigma(neg.rich_nsigma_ka, self.max_nsigma):
                flags["d0_rich_pid"] = 1
            if self._tof_plus_rich(pos, "pi") and self._tof_plus_rich(neg, "ka"):
                flags["d0_tof_plus_rich_pid"] = 1
        if topol_d0bar:
            if self._tof_plus_rich(neg, "pi") and self._tof_plus_rich(pos, "ka"):
                flags["d0bar_tof_plus_rich_pid"] = 1
        return D0SelectionStatus(candidate_id=candidate.candidate_id, hf_flag=1, **flags)

    def select_all(self, candidates) -> list[D0SelectionStatus]:
        out = [self.select(c) for c in candidates]
        logger.info(
            "Selected %d/%d two-prong candidates (no PID)",
            sum(s.d0_no_pid for s in out),
            len(out),
        )
        return out

    def _tof_plus_rich(self, track: DaughterTrack, species: str) -> bool:
        """TOF alone below the species threshold momentum, TOF+RICH above it."""
        threshold = 0.6 if species == "pi" else 2.0
        tof = track.tof_nsigma_pi if species == "pi" else track.tof_nsigma_ka
        rich = track.rich_nsigma_pi if species == "pi" else track.rich_nsigma_ka
        if track.p < threshold:
            return within_nsigma(tof, self.max_nsigma)
        if track.p > threshold and track.has_rich:
            combined = combined_nsigma(rich, tof)
            return combined is not None and combined < self.max_nsigma
        return False


def select_candidate(
    candidate: TwoProngCandidate,
    cuts: PtBinnedCuts,
    pt_bin: int,
    pt_min: float = 0.0,
    pt_max: float = 50.0,
) -> bool:
    """Topological selection of one candidate against the cuts of `pt_bin`.

    `pt_bin == NO_BIN` rejects without evaluating any cut.
    """
    if pt_bin == NO_BIN or pt_bin >= cuts.n_bins:
        return False
    pt = candidate.pt
    if pt < pt_min or pt >= pt_max:
        return False
    cut = cuts.get
    if candidate.impact_parameter_product > cut(pt_bin, "d0d0"):
        return False
    if candidate.cpa < cut(pt_bin, "cos pointing angle"):
        return False
    if candidate.cpa_xy < cut(pt_bin, "cos pointing angle xy"):
        return False
    if candidate.decay_length_xy_normalised < cut(pt_bin, "normalized decay length XY"):
        return False
    if abs(candidate.impact_parameter_normalised0) < 0.5 or abs(candidate.impact_parameter_normalised1) < 0.5:
        return False
    decay_length_cut = min(candidate.p * 0.0066 + 0.01, cut(pt_bin, "minimum decay length"))
    if candidate.decay_length * candidate.decay_length < decay_length_cut * decay_length_cut:
        return False
    if candidate.decay_length > cut(pt_bin, "decay length"):
        return False
    if candidate.decay_length_xy > cut(pt_bin, "decay length XY"):
        return False
    return True

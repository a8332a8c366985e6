"""Core data models used by the resonance-correlation framework.

This module defines:
- immutable physics objects (`LorentzVector`, `ParticleHypothesis`)
- reconstructed inputs (`DaughterTrack`, `V0Candidate`, `TwoProngCandidate`)
- event containers (`EventInput`)
- generator-level truth (`McParticle`, `McEvent`)
- analysis outputs (`PairObservables`, `PairRecord`, `D0SelectionStatus`).
"""

from __future__ import annotations

import math
from dataclasses import dataclass

Vector3 = tuple[float, float, float]


@dataclass(frozen=True)
class ParticleHypothesis:
    """Named particle hypothesis used to derive mass-dependent observables."""

    name: str
    mass: float
    pdg_id: int | None = None


@dataclass(frozen=True)
class LorentzVector:
    """Simple 4-vector with convenience properties and addition."""

    px: float
    py: float
    pz: float
    e: float

    def __add__(self, other: "LorentzVector") -> "LorentzVector":
        """Component-wise 4-vector addition."""
        return LorentzVector(
            self.px + other.px,
            self.py + other.py,
            self.pz + other.pz,
            self.e + other.e,
        )

    @property
    def vect(self) -> Vector3:
        return self.px, self.py, self.pz

    @property
    def p2(self) -> float:
        """Squared 3-momentum magnitude."""
        return self.px * self.px + self.py * self.py + self.pz * self.pz

    @property
    def p(self) -> float:
        return math.sqrt(self.p2)

    @property
    def pt(self) -> float:
        return math.hypot(self.px, self.py)

    @property
    def mass2(self) -> float:
        """Invariant mass squared."""
        return self.e * self.e - self.p2

    @property
    def mass(self) -> float:
        """Invariant mass with signed handling for small negative mass2 values."""
        m2 = self.mass2
        return m2**0.5 if m2 >= 0.0 else -((-m2) ** 0.5)

    @property
    def rapidity(self) -> float:
        """Longitudinal rapidity `0.5 * ln((E + pz) / (E - pz))`."""
        num = self.e + self.pz
        den = self.e - self.pz
        if den <= 0.0:
            return math.inf
        if num <= 0.0:
            return -math.inf
        return 0.5 * math.log(num / den)

    @property
    def phi(self) -> float:
        return math.atan2(self.py, self.px)


@dataclass(frozen=True)
class DaughterTrack:
    """Charged daughter track with quality and PID information.

    PID deviations are `None` when the detector delivered no response; the
    selectors treat that as a failed cut.
    """

    track_id: int
    sign: int
    pt: float
    eta: float
    p: float = 0.0
    has_tpc: bool = True
    is_global_track: bool = True
    tpc_ncls_found: int = 0
    tpc_ncls_crossed_rows: int = 0
    tpc_crossed_rows_over_findable: float = 0.0
    tpc_nsigma_pi: float | None = None
    tof_nsigma_pi: float | None = None
    tof_nsigma_ka: float | None = None
    rich_nsigma_pi: float | None = None
    rich_nsigma_ka: float | None = None
    dca_xy: float = 0.0
    mc_pdg_code: int | None = None

    @property
    def has_rich(self) -> bool:
        return self.rich_nsigma_pi is not None or self.rich_nsigma_ka is not None


@dataclass(frozen=True)
class V0Candidate:
    """Neutral two-track decay candidate (K0S hypothesis by default).

    `candidate_id` is the global index used for same-event ordering. The
    daughters are `None` when the provenance link could not be resolved.
    """

    candidate_id: int
    px: float
    py: float
    pz: float
    pos_track: DaughterTrack | None
    neg_track: DaughterTrack | None
    v0_radius: float = 0.0
    dca_v0_daughters: float = 0.0
    v0_cos_pa: float = 1.0
    dca_v0_to_pv: float = 0.0
    decay_x: float = 0.0
    decay_y: float = 0.0
    decay_z: float = 0.0
    mass_k0short: float = 0.0
    mass_lambda: float = 0.0
    mass_antilambda: float = 0.0
    mc_particle_index: int | None = None

    def momentum(self) -> Vector3:
        return self.px, self.py, self.pz

    def provenance(self) -> frozenset[int]:
        """Constituent track ids, empty when a daughter link is missing."""
        if self.pos_track is None or self.neg_track is None:
            return frozenset()
        return frozenset((self.pos_track.track_id, self.neg_track.track_id))

    @property
    def pt(self) -> float:
        return math.hypot(self.px, self.py)

    @property
    def p(self) -> float:
        return math.sqrt(self.px * self.px + self.py * self.py + self.pz * self.pz)

    @property
    def eta(self) -> float:
        """Pseudorapidity from the candidate momentum."""
        p = self.p
        if p == abs(self.pz):
            return 1e9 if self.pz >= 0 else -1e9
        return 0.5 * math.log((p + self.pz) / (p - self.pz))

    @property
    def phi(self) -> float:
        """Azimuth folded into `[0, 2*pi)`."""
        phi = math.atan2(self.py, self.px)
        return phi + 2.0 * math.pi if phi < 0.0 else phi

    def rapidity(self, mass: float) -> float:
        """Rapidity under the given mass hypothesis."""
        energy = math.sqrt(self.p * self.p + mass * mass)
        return 0.5 * math.log((energy + self.pz) / (energy - self.pz))

    def distance_over_total_momentum(self, pv_x: float, pv_y: float, pv_z: float) -> float:
        """Decay distance from the primary vertex divided by total momentum."""
        dist = math.sqrt(
            (self.decay_x - pv_x) ** 2
            + (self.decay_y - pv_y) ** 2
            + (self.decay_z - pv_z) ** 2
        )
        return dist / (self.p + 1e-13)


@dataclass(frozen=True)
class TwoProngCandidate:
    """Charm two-prong candidate with topological variables.

    `prong0` is the positive track and `prong1` the negative one.
    """

    candidate_id: int
    prong0_momentum: Vector3
    prong1_momentum: Vector3
    prong0: DaughterTrack
    prong1: DaughterTrack
    hf_flag: int = 1
    impact_parameter0: float = 0.0
    impact_parameter1: float = 0.0
    error_impact_parameter0: float = 1.0
    error_impact_parameter1: float = 1.0
    cpa: float = 1.0
    cpa_xy: float = 1.0
    decay_length: float = 0.0
    decay_length_xy: float = 0.0
    error_decay_length_xy: float = 1.0

    @property
    def px(self) -> float:
        return self.prong0_momentum[0] + self.prong1_momentum[0]

    @property
    def py(self) -> float:
        return self.prong0_momentum[1] + self.prong1_momentum[1]

    @property
    def pz(self) -> float:
        return self.prong0_momentum[2] + self.prong1_momentum[2]

    @property
    def pt(self) -> float:
        return math.hypot(self.px, self.py)

    @property
    def p(self) -> float:
        return math.sqrt(self.px * self.px + self.py * self.py + self.pz * self.pz)

    @property
    def impact_parameter_product(self) -> float:
        return self.impact_parameter0 * self.impact_parameter1

    @property
    def impact_parameter_normalised0(self) -> float:
        return self.impact_parameter0 / self.error_impact_parameter0

    @property
    def impact_parameter_normalised1(self) -> float:
        return self.impact_parameter1 / self.error_impact_parameter1

    @property
    def decay_length_xy_normalised(self) -> float:
        return self.decay_length_xy / self.error_decay_length_xy


@dataclass(frozen=True)
class EventInput:
    """One collision with its primary vertex, centralities and V0 list."""

    event_id: str
    pos_z: float
    v0s: tuple[V0Candidate, ...] = ()
    pos_x: float = 0.0
    pos_y: float = 0.0
    cent_ft0m: float = 0.0
    cent_ft0c: float = 0.0
    sel8: bool = True
    no_time_frame_border: bool = True
    no_its_rof_border: bool = True
    mc_event_id: str | None = None


@dataclass(frozen=True)
class McParticle:
    """Generator-level particle; mother and daughter links are `index` values."""

    index: int
    pdg_code: int
    px: float
    py: float
    pz: float
    e: float
    is_physical_primary: bool = False
    produced_by_generator: bool = True
    mother_indices: tuple[int, ...] = ()
    daughter_indices: tuple[int, ...] = ()

    def four_momentum(self) -> LorentzVector:
        return LorentzVector(self.px, self.py, self.pz, self.e)


@dataclass(frozen=True)
class McEvent:
    """Generated collision and its particle record."""

    event_id: str
    pos_z: float
    particles: tuple[McParticle, ...] = ()
    cent_ft0m: float = 0.0

    def lookup(self) -> dict[int, McParticle]:
        return {p.index: p for p in self.particles}


@dataclass(frozen=True)
class PairObservables:
    """Composite kinematics and polarization angles for one daughter pair."""

    mass: float
    pt: float
    rapidity: float
    cos_theta_star: float
    phi: float


@dataclass(frozen=True)
class PairRecord:
    """One accepted pair entry (signal, mixed or rotated) with provenance."""

    kind: str
    event_id: str
    partner_event_id: str
    candidate_ids: tuple[int, int]
    multiplicity: float
    observables: PairObservables


@dataclass(frozen=True)
class D0SelectionStatus:
    """Selection flags produced per two-prong candidate."""

    candidate_id: int
    hf_flag: int = 0
    d0_no_pid: int = 0
    d0_perfect_pid: int = 0
    d0_tof_pid: int = 0
    d0_rich_pid: int = 0
    d0_tof_plus_rich_pid: int = 0
    d0bar_tof_plus_rich_pid: int = 0

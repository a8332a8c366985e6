"""Composite kinematics and rest-frame polarization observables.

A pair of daughters is combined under a single mass hypothesis, the first
daughter is boosted into the composite rest frame and two angles are
derived from it:

- `cos_theta_star` with respect to the reference axis of the active
  `AxisPolicy`,
- `phi` in the frame whose y axis is the normal to the boosted beams and
  whose z axis is the composite lab direction.

The rotational background re-derives everything after rotating the first
daughter's transverse momentum by an angle drawn around pi.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

import numpy as np

from .models import LorentzVector, PairObservables, Vector3
from .physics import (
    DEFAULT_SQRT_S,
    beam_vectors,
    boost_to_rest_frame,
    cos_angle,
    cross3,
    dot3,
    momentum_to_lorentz,
    norm3,
    rotate_transverse,
    unit3,
)

BEAM_AXIS: Vector3 = (0.0, 0.0, 1.0)


class AxisPolicy(str, Enum):
    """Reference axis for cos(theta*)."""

    HELICITY = "helicity"
    PRODUCTION = "production"
    BEAM = "beam"
    RANDOM = "random"

    @classmethod
    def from_name(cls, name: str) -> "AxisPolicy":
        key = name.strip().lower()
        for policy in cls:
            if policy.value == key:
                return policy
        supported = ", ".join(p.value for p in cls)
        raise ValueError(f"Unknown axis policy '{name}'. Supported policies: {supported}")


class ObservableCalculator:
    """Compute `PairObservables` for daughter pairs under one axis policy."""

    def __init__(
        self,
        axis_policy: AxisPolicy,
        rng: np.random.Generator | None = None,
        sqrt_s: float = DEFAULT_SQRT_S,
    ) -> None:
        self.axis_policy = AxisPolicy(axis_policy)
        self.rng = rng if rng is not None else np.random.default_rng()
        self.beams = beam_vectors(sqrt_s)

    def compute(self, daughter1: LorentzVector, daughter2: LorentzVector) -> PairObservables:
        """Observables of the composite `daughter1 + daughter2`."""
        return self.compute_in_frame(daughter1, daughter1 + daughter2)

    def compute_in_frame(self, daughter1: LorentzVector, mother: LorentzVector) -> PairObservables:
        """Observables of `daughter1` in the frame of an explicit `mother`.

        Used with a generated mother four-vector, which need not equal the
        sum of the reconstructed daughters.
        """
        daughter_cm = boost_to_rest_frame(daughter1, mother)
        axis = self.reference_axis(mother)
        return PairObservables(
            mass=mother.mass,
            pt=mother.pt,
            rapidity=mother.rapidity,
            cos_theta_star=cos_angle(axis, daughter_cm.vect),
            phi=self.helicity_phi(mother, daughter_cm),
        )

    def compute_from_momenta(
        self, momentum1: Vector3, momentum2: Vector3, mass_hypothesis: float
    ) -> PairObservables:
        return self.compute(
            momentum_to_lorentz(*momentum1, mass_hypothesis),
            momentum_to_lorentz(*momentum2, mass_hypothesis),
        )

    def reference_axis(self, mother: LorentzVector) -> Vector3:
        if self.axis_policy is AxisPolicy.HELICITY:
            return mother.vect
        if self.axis_policy is AxisPolicy.PRODUCTION:
            return (mother.py, -mother.px, 0.0)
        if self.axis_policy is AxisPolicy.BEAM:
            return BEAM_AXIS
        phi = self.rng.uniform(0.0, 2.0 * math.pi)
        theta = self.rng.uniform(0.0, math.pi)
        return (
            math.sin(theta) * math.cos(phi),
            math.sin(theta) * math.sin(phi),
            math.cos(theta),
        )

    def helicity_phi(self, mother: LorentzVector, daughter_cm: LorentzVector) -> float:
        """Azimuth of the boosted daughter, folded into `[0, 2*pi)`.

        Zero when the frame is undefined (composite at rest).
        """
        beam1_cm = unit3(boost_to_rest_frame(self.beams[0], mother).vect)
        beam2_cm = unit3(boost_to_rest_frame(self.beams[1], mother).vect)
        v = unit3(daughter_cm.vect)
        z_axis = unit3(mother.vect)
        y_axis = unit3(cross3(beam1_cm, beam2_cm))
        if norm3(z_axis) == 0.0 or norm3(y_axis) == 0.0:
            return 0.0
        x_axis = unit3(cross3(y_axis, z_axis))
        phi = math.atan2(dot3(y_axis, v), dot3(x_axis, v))
        if phi < 0.0:
            phi += 2.0 * math.pi
        return phi


@dataclass
class RotationSampler:
    """Draw rotation angles uniformly in `[pi - pi/cut, pi + pi/cut]`."""

    rotational_cut: float
    rng: np.random.Generator

    def __post_init__(self) -> None:
        if self.rotational_cut <= 1:
            raise ValueError("rotational_cut must be greater than 1.")

    @property
    def window(self) -> tuple[float, float]:
        half = math.pi / self.rotational_cut
        return math.pi - half, math.pi + half

    def sample(self) -> float:
        low, high = self.window
        return float(self.rng.uniform(low, high))


def rotated_background(
    calculator: ObservableCalculator,
    daughter1: LorentzVector,
    daughter2: LorentzVector,
    mass_hypothesis: float,
    sampler: RotationSampler,
    n_rotations: int,
) -> list[PairObservables]:
    """Observables of `n_rotations` composites with a rotated first daughter."""
    out: list[PairObservables] = []
    for _ in range(n_rotations):
        rotated = rotate_transverse(daughter1, sampler.sample(), mass_hypothesis)
        out.append(calculator.compute(rotated, daughter2))
    return out


def compute_observables(
    candidate_a,
    candidate_b,
    mass_hypothesis: float,
    axis_policy: AxisPolicy = AxisPolicy.HELICITY,
    rng: np.random.Generator | None = None,
) -> PairObservables:
    """Observables for two candidates exposing `px`, `py`, `pz`."""
    calculator = ObservableCalculator(axis_policy, rng=rng)
    return calculator.compute_from_momenta(
        (candidate_a.px, candidate_a.py, candidate_a.pz),
        (candidate_b.px, candidate_b.py, candidate_b.pz),
        mass_hypothesis,
    )

"""Physics/math helpers for building composites and their rest-frame angles."""

from __future__ import annotations

import math
from typing import Sequence

from .models import LorentzVector, Vector3
from .pid import MASS_PROTON

DEFAULT_SQRT_S = 13600.0


def momentum_to_lorentz(px: float, py: float, pz: float, mass: float) -> LorentzVector:
    """Convert a 3-momentum plus mass hypothesis into a Lorentz 4-vector."""
    energy = math.sqrt(px * px + py * py + pz * pz + mass * mass)
    return LorentzVector(px=px, py=py, pz=pz, e=energy)


def boost(vec: LorentzVector, beta: Vector3) -> LorentzVector:
    """Apply a pure Lorentz boost with velocity `beta` to `vec`.

    The sign convention follows the passive transformation: boosting a
    particle by `-p/E` of a frame moves it into that frame.
    """
    beta2 = dot3(beta, beta)
    if beta2 >= 1.0:
        raise ValueError("beta^2 < 1 required.")
    if beta2 <= 1e-18:
        return vec
    gamma = 1.0 / math.sqrt(1.0 - beta2)
    bp = dot3(beta, vec.vect)
    factor = (gamma - 1.0) * bp / beta2 + gamma * vec.e
    return LorentzVector(
        px=vec.px + factor * beta[0],
        py=vec.py + factor * beta[1],
        pz=vec.pz + factor * beta[2],
        e=gamma * (vec.e + bp),
    )


def beta_to_rest_frame(frame: LorentzVector) -> Vector3:
    """Boost velocity that brings `frame` to rest."""
    if frame.e <= 0.0:
        raise ValueError("Rest frame requires a positive energy.")
    return (-frame.px / frame.e, -frame.py / frame.e, -frame.pz / frame.e)


def boost_to_rest_frame(vec: LorentzVector, frame: LorentzVector) -> LorentzVector:
    """Express `vec` in the rest frame of `frame`."""
    return boost(vec, beta_to_rest_frame(frame))


def boost_from_rest_frame(vec: LorentzVector, frame: LorentzVector) -> LorentzVector:
    """Inverse of `boost_to_rest_frame`."""
    bx, by, bz = beta_to_rest_frame(frame)
    return boost(vec, (-bx, -by, -bz))


def rotate_transverse(vec: LorentzVector, angle: float, mass: float) -> LorentzVector:
    """Rotate the transverse momentum by `angle` keeping pz and the mass."""
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    return momentum_to_lorentz(
        vec.px * cos_a - vec.py * sin_a,
        vec.px * sin_a + vec.py * cos_a,
        vec.pz,
        mass,
    )


def beam_vectors(
    sqrt_s: float = DEFAULT_SQRT_S, beam_mass: float = MASS_PROTON
) -> tuple[LorentzVector, LorentzVector]:
    """Symmetric collider beams along -z and +z."""
    e_beam = sqrt_s / 2.0
    p_beam = math.sqrt(e_beam * e_beam - beam_mass * beam_mass)
    return (
        LorentzVector(0.0, 0.0, -p_beam, e_beam),
        LorentzVector(0.0, 0.0, p_beam, e_beam),
    )


def angular_separation(eta1: float, phi1: float, eta2: float, phi2: float) -> float:
    """Distance `sqrt(deta^2 + dphi^2)` in eta-phi space (no phi wrapping)."""
    return math.sqrt((eta1 - eta2) ** 2 + (phi1 - phi2) ** 2)


def cos_angle(a: Vector3, b: Vector3) -> float:
    """Cosine of the angle between two vectors, NaN if either is null."""
    na = norm3(a)
    nb = norm3(b)
    if na == 0.0 or nb == 0.0:
        return math.nan
    return dot3(a, b) / (na * nb)


def invariant_mass_two_prong(
    p0: Vector3, p1: Vector3, masses: Sequence[float]
) -> float:
    """Invariant mass of two prongs under a mass assignment."""
    total = momentum_to_lorentz(*p0, masses[0]) + momentum_to_lorentz(*p1, masses[1])
    return total.mass


def cos_theta_star_two_prong(
    p0: Vector3,
    p1: Vector3,
    masses: Sequence[float],
    mother_mass: float,
    prong: int,
) -> float:
    """Decay angle of one prong w.r.t. the mother direction, in the mother frame.

    Uses the nominal mother mass, so the rest-frame momentum is fixed by
    two-body kinematics:
    `p* = sqrt((M^2 - m1^2 - m2^2)^2 - 4 m1^2 m2^2) / 2M`.
    A mother at rest has no direction and yields NaN.
    """
    p_tot_vec = add3(p0, p1)
    p_tot = norm3(p_tot_vec)
    if p_tot == 0.0:
        return math.nan
    e_tot = math.sqrt(p_tot * p_tot + mother_mass * mother_mass)
    gamma = e_tot / mother_mass
    beta = p_tot / e_tot
    m0, m1 = masses[0], masses[1]
    p_star = math.sqrt(
        (mother_mass**2 - m0**2 - m1**2) ** 2 - (2.0 * m0 * m1) ** 2
    ) / (2.0 * mother_mass)
    prong_mom = p0 if prong == 0 else p1
    e_star = math.sqrt(p_star * p_star + masses[prong] ** 2)
    return (dot3(prong_mom, p_tot_vec) / (p_tot * gamma) - beta * e_star) / p_star


def add3(a: Vector3, b: Vector3) -> Vector3:
    return a[0] + b[0], a[1] + b[1], a[2] + b[2]


def dot3(a: Vector3, b: Vector3) -> float:
    """3D dot product."""
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def cross3(a: Vector3, b: Vector3) -> Vector3:
    """3D cross product."""
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def norm3(a: Vector3) -> float:
    """Euclidean norm of a 3D vector."""
    return math.sqrt(dot3(a, a))


def unit3(a: Vector3) -> Vector3:
    """Unit vector; a null vector is returned unchanged."""
    n = norm3(a)
    if n == 0.0:
        return a
    return a[0] / n, a[1] / n, a[2] / n

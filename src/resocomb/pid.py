"""Particle-hypothesis helpers and PID n-sigma combinations.

This module exposes named hypothesis builders used as mass assignments for
daughter four-vectors, and the small n-sigma helpers the selectors share.
"""

from __future__ import annotations

import math

from .models import ParticleHypothesis

_PION = ParticleHypothesis(name="pi", mass=0.13957039, pdg_id=211)
_KAON = ParticleHypothesis(name="K", mass=0.493677, pdg_id=321)
_PROTON = ParticleHypothesis(name="p", mass=0.93827208816, pdg_id=2212)
_K0SHORT = ParticleHypothesis(name="K0S", mass=0.497611, pdg_id=310)
_LAMBDA = ParticleHypothesis(name="Lambda", mass=1.115683, pdg_id=3122)
_D0 = ParticleHypothesis(name="D0", mass=1.86484, pdg_id=421)

MASS_PION = _PION.mass
MASS_KAON = _KAON.mass
MASS_PROTON = _PROTON.mass
MASS_K0SHORT = _K0SHORT.mass
MASS_LAMBDA = _LAMBDA.mass
MASS_D0 = _D0.mass

PDG_K0SHORT = _K0SHORT.pdg_id

# Resonances searched for in the K0S K0S channel.
_RESONANCE_PDG_CODES: dict[str, int] = {
    "f0(1710)": 10331,
    "f2(1525)": 335,
    "a2(1320)": 115,
    "f0(1370)": 10221,
    "f0(1500)": 9030221,
}

_NAME_TO_HYPOTHESIS: dict[str, ParticleHypothesis] = {
    "pi": _PION,
    "pion": _PION,
    "k": _KAON,
    "kaon": _KAON,
    "p": _PROTON,
    "proton": _PROTON,
    "k0s": _K0SHORT,
    "k0short": _K0SHORT,
    "lambda": _LAMBDA,
    "d0": _D0,
}


def make_pion() -> ParticleHypothesis:
    """Return the standard charged-pion mass hypothesis."""
    return _PION


def make_kaon() -> ParticleHypothesis:
    """Return the standard charged-kaon mass hypothesis."""
    return _KAON


def make_k0short() -> ParticleHypothesis:
    """Return the neutral short-lived kaon hypothesis."""
    return _K0SHORT


def make_lambda() -> ParticleHypothesis:
    return _LAMBDA


def make_d0() -> ParticleHypothesis:
    return _D0


def particle_hypothesis_from_name(name: str) -> ParticleHypothesis:
    """Resolve a short particle name (e.g. `pi`, `k0s`) into a hypothesis."""
    key = name.strip().lower()
    try:
        return _NAME_TO_HYPOTHESIS[key]
    except KeyError as exc:
        supported = ", ".join(sorted(_NAME_TO_HYPOTHESIS))
        raise ValueError(
            f"Unknown particle hypothesis name '{name}'. Supported names: {supported}"
        ) from exc


def resonance_pdg_code(name: str) -> int:
    """PDG code of a K0S K0S resonance by name, e.g. `f0(1710)`."""
    key = name.strip().lower()
    for label, code in _RESONANCE_PDG_CODES.items():
        if label == key:
            return code
    supported = ", ".join(_RESONANCE_PDG_CODES)
    raise ValueError(f"Unknown resonance '{name}'. Supported resonances: {supported}")


def within_nsigma(nsigma: float | None, max_nsigma: float) -> bool:
    """True when a PID response exists and `|nsigma| < max_nsigma`."""
    if nsigma is None:
        return False
    return abs(nsigma) < max_nsigma


def combined_nsigma(first: float | None, second: float | None) -> float | None:
    """Quadrature sum of two detector responses, `None` if either is absent."""
    if first is None or second is None:
        return None
    return math.sqrt(first * first + second * second)

"""Analysis configuration records and their JSON loader.

The configuration is a flat set of named parameters grouped by concern.
It is read once at startup and validated before any event is processed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .cuts import DaughterCuts, EventCuts, PairCuts, V0Cuts, validate_edges
from .io import _load_json
from .mixing import ColumnBinning, fixed_width_edges
from .observables import AxisPolicy
from .physics import DEFAULT_SQRT_S
from .pid import resonance_pdg_code

logger = logging.getLogger(__name__)

# First enabled flag wins, in this order.
_LEGACY_AXIS_FLAGS: tuple[tuple[str, AxisPolicy], ...] = (
    ("activate_helicity", AxisPolicy.HELICITY),
    ("activate_production", AxisPolicy.PRODUCTION),
    ("activate_beam", AxisPolicy.BEAM),
    ("activate_random", AxisPolicy.RANDOM),
)


@dataclass(frozen=True)
class MixingConfig:
    """Event-mixing depth and (vertex z, multiplicity) binning."""

    n_mixed_events: int = 5
    vertex_z_edges: tuple[float, ...] = fixed_width_edges(10, -10.0, 10.0)
    multiplicity_edges: tuple[float, ...] = fixed_width_edges(20, 0.0, 100.0)

    def binning(self) -> ColumnBinning:
        return ColumnBinning(self.vertex_z_edges, self.multiplicity_edges)


@dataclass(frozen=True)
class PolarizationConfig:
    """Observable settings: axis policy, rapidity gates and rotational background."""

    axis_policy: AxisPolicy | None = AxisPolicy.BEAM
    n_rotations: int = 3
    rotational_cut: float = 10.0
    max_pair_rapidity: float = 0.5
    apply_rapidity_to_mixed: bool = True
    apply_rapidity_to_rotated: bool = True
    sqrt_s: float = DEFAULT_SQRT_S


@dataclass(frozen=True)
class McConfig:
    """Generated and truth-matched reconstructed passes.

    `apply_rapidity` gates the generated mother, the `apply_pair_rapidity_*`
    flags gate the K0S K0S composite. All use `max_pair_rapidity`.
    """

    resonance: str = "f2(1525)"
    apply_rapidity: bool = True
    apply_pair_rapidity_gen: bool = False
    apply_pair_rapidity_rec: bool = False
    all_gen_collisions: bool = True

    @property
    def resonance_pdg(self) -> int:
        return resonance_pdg_code(self.resonance)


@dataclass(frozen=True)
class AnalysisConfig:
    """Complete configuration of the resonance-correlation analysis."""

    event: EventCuts = field(default_factory=EventCuts)
    v0: V0Cuts = field(default_factory=V0Cuts)
    daughter: DaughterCuts = field(default_factory=DaughterCuts)
    pair: PairCuts = field(default_factory=PairCuts)
    mixing: MixingConfig = field(default_factory=MixingConfig)
    polarization: PolarizationConfig = field(default_factory=PolarizationConfig)
    mc: McConfig = field(default_factory=McConfig)
    select_two_only: bool = True


def validate_config(config: AnalysisConfig) -> None:
    """Raise `ValueError` on settings that make the analysis meaningless."""
    pol = config.polarization
    if pol.axis_policy is None:
        raise ValueError("No angular-observable axis policy enabled.")
    if pol.n_rotations < 0:
        raise ValueError("n_rotations must be non-negative.")
    if pol.rotational_cut <= 1:
        raise ValueError("rotational_cut must be greater than 1.")
    if pol.max_pair_rapidity <= 0:
        raise ValueError("max_pair_rapidity must be positive.")
    if config.mixing.n_mixed_events < 1:
        raise ValueError("n_mixed_events must be at least 1.")
    validate_edges(config.mixing.vertex_z_edges, "vertex_z_edges")
    validate_edges(config.mixing.multiplicity_edges, "multiplicity_edges")
    resonance_pdg_code(config.mc.resonance)


def analysis_config_from_dict(data: dict[str, Any]) -> AnalysisConfig:
    """Build and validate an `AnalysisConfig` from a nested mapping."""
    if not isinstance(data, dict):
        raise ValueError("Analysis configuration must be an object.")
    known = {"event", "v0", "daughter", "pair", "mixing", "polarization", "mc", "select_two_only"}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown configuration groups: {', '.join(unknown)}")
    config = AnalysisConfig(
        event=_build_record(EventCuts, data.get("event", {}), "event"),
        v0=_build_record(V0Cuts, data.get("v0", {}), "v0"),
        daughter=_build_record(DaughterCuts, data.get("daughter", {}), "daughter"),
        pair=_build_record(PairCuts, data.get("pair", {}), "pair"),
        mixing=_parse_mixing(data.get("mixing", {})),
        polarization=_parse_polarization(data.get("polarization", {})),
        mc=_build_record(McConfig, data.get("mc", {}), "mc"),
        select_two_only=bool(data.get("select_two_only", True)),
    )
    validate_config(config)
    return config


def load_analysis_config_json(path: str | Path) -> AnalysisConfig:
    """Read an analysis configuration JSON document."""
    return analysis_config_from_dict(_load_json(path))


def _build_record(cls, values: Any, group: str):
    """Instantiate a flat dataclass from a mapping, rejecting unknown keys."""
    if not isinstance(values, dict):
        raise ValueError(f"Configuration group '{group}' must be an object.")
    names = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - names)
    if unknown:
        raise ValueError(f"Unknown keys in '{group}': {', '.join(unknown)}")
    return cls(**values)


def _parse_axis(value: Any, name: str) -> tuple[float, ...]:
    """Accept either explicit edges or `{"n_bins", "min", "max"}`."""
    if isinstance(value, dict):
        try:
            return fixed_width_edges(int(value["n_bins"]), float(value["min"]), float(value["max"]))
        except KeyError as exc:
            raise ValueError(f"Axis '{name}' needs n_bins, min and max.") from exc
    if isinstance(value, list):
        return validate_edges(value, name)
    raise ValueError(f"Axis '{name}' must be a list of edges or an n_bins/min/max object.")


def _parse_mixing(values: Any) -> MixingConfig:
    if not isinstance(values, dict):
        raise ValueError("Configuration group 'mixing' must be an object.")
    defaults = MixingConfig()
    unknown = sorted(set(values) - {"n_mixed_events", "vertex_z_axis", "multiplicity_axis"})
    if unknown:
        raise ValueError(f"Unknown keys in 'mixing': {', '.join(unknown)}")
    return MixingConfig(
        n_mixed_events=int(values.get("n_mixed_events", defaults.n_mixed_events)),
        vertex_z_edges=_parse_axis(values["vertex_z_axis"], "vertex_z_axis")
        if "vertex_z_axis" in values
        else defaults.vertex_z_edges,
        multiplicity_edges=_parse_axis(values["multiplicity_axis"], "multiplicity_axis")
        if "multiplicity_axis" in values
        else defaults.multiplicity_edges,
    )


def _parse_polarization(values: Any) -> PolarizationConfig:
    if not isinstance(values, dict):
        raise ValueError("Configuration group 'polarization' must be an object.")
    values = dict(values)
    legacy = {name: bool(values.pop(name)) for name, _ in _LEGACY_AXIS_FLAGS if name in values}
    if "axis_policy" in values:
        if legacy:
            raise ValueError("Use either 'axis_policy' or the activate_* flags, not both.")
        raw = values.pop("axis_policy")
        policy = None if raw is None else AxisPolicy.from_name(str(raw))
    elif legacy:
        enabled = [p for name, p in _LEGACY_AXIS_FLAGS if legacy.get(name)]
        policy = enabled[0] if enabled else None
        if len(enabled) > 1:
            logger.warning(
                "Several axis flags enabled, using '%s' only", policy.value if policy else None
            )
    else:
        policy = PolarizationConfig().axis_policy
    record = _build_record(PolarizationConfig, values, "polarization")
    return PolarizationConfig(
        axis_policy=policy,
        n_rotations=int(record.n_rotations),
        rotational_cut=float(record.rotational_cut),
        max_pair_rapidity=float(record.max_pair_rapidity),
        apply_rapidity_to_mixed=bool(record.apply_rapidity_to_mixed),
        apply_rapidity_to_rotated=bool(record.apply_rapidity_to_rotated),
        sqrt_s=float(record.sqrt_s),
    )

"""Selection cut records and pT-bin lookup.

Flat records hold the thresholds for the V0/daughter/pair selections;
`PtBinnedCuts` holds a labelled table with one row of thresholds per
transverse-momentum bin, as used by the two-prong selector.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from typing import Sequence

NO_BIN = -1

D0_CUT_LABELS: tuple[str, ...] = (
    "m",
    "pT Pi",
    "pT K",
    "d0pi",
    "d0K",
    "cos theta*",
    "d0d0",
    "cos pointing angle",
    "cos pointing angle xy",
    "normalized decay length XY",
    "minimum decay length",
    "decay length",
    "decay length XY",
)


def find_bin(edges: Sequence[float], value: float) -> int:
    """Return the bin index of `value`, or `NO_BIN` outside `[edges[0], edges[-1])`."""
    if not edges or value < edges[0] or value >= edges[-1]:
        return NO_BIN
    return bisect_right(edges, value) - 1


def validate_edges(edges: Sequence[float], name: str) -> tuple[float, ...]:
    """Coerce bin edges to floats and require at least one strictly increasing bin."""
    out = tuple(float(x) for x in edges)
    if len(out) < 2:
        raise ValueError(f"{name} needs at least two bin edges.")
    if any(b <= a for a, b in zip(out, out[1:])):
        raise ValueError(f"{name} must be strictly increasing, got {out!r}.")
    return out


@dataclass(frozen=True)
class PtBinnedCuts:
    """Labelled cut table: `values[bin][label_index]`."""

    pt_bins: tuple[float, ...]
    labels: tuple[str, ...]
    values: tuple[tuple[float, ...], ...]

    def __post_init__(self) -> None:
        validate_edges(self.pt_bins, "pt_bins")
        n_bins = len(self.pt_bins) - 1
        if len(self.values) != n_bins:
            raise ValueError(
                f"Cut table has {len(self.values)} rows but pt_bins define {n_bins} bins."
            )
        for idx, row in enumerate(self.values):
            if len(row) != len(self.labels):
                raise ValueError(
                    f"Cut row {idx} has {len(row)} values, expected {len(self.labels)}."
                )
        if len(set(self.labels)) != len(self.labels):
            raise ValueError("Cut labels must be unique.")

    @property
    def n_bins(self) -> int:
        return len(self.pt_bins) - 1

    def find_pt_bin(self, pt: float) -> int:
        return find_bin(self.pt_bins, pt)

    def get(self, pt_bin: int, label: str) -> float:
        """Threshold of variable `label` in bin `pt_bin`."""
        try:
            col = self.labels.index(label)
        except ValueError as exc:
            raise KeyError(f"Unknown cut variable '{label}'.") from exc
        return self.values[pt_bin][col]


def default_d0_cuts() -> PtBinnedCuts:
    """Loose reference table for D0 -> pi K, six pT bins from 0 to 50 GeV/c."""
    row_low = (0.400, 0.5, 0.5, 0.1, 0.1, 0.8, 0.0, 0.80, 0.80, 0.0, 0.0, 10.0, 10.0)
    row_mid = (0.400, 0.5, 0.5, 0.1, 0.1, 0.8, 0.0, 0.85, 0.85, 0.0, 0.0, 10.0, 10.0)
    row_high = (0.400, 0.7, 0.7, 0.1, 0.1, 0.8, 0.0, 0.90, 0.90, 0.0, 0.0, 10.0, 10.0)
    return PtBinnedCuts(
        pt_bins=(0.0, 1.0, 2.0, 4.0, 8.0, 16.0, 50.0),
        labels=D0_CUT_LABELS,
        values=(row_low, row_low, row_mid, row_mid, row_high, row_high),
    )


@dataclass(frozen=True)
class EventCuts:
    """Collision-level selection."""

    max_abs_vertex_z: float = 10.0
    require_sel8: bool = True
    require_time_frame_border: bool = True
    use_ft0m_multiplicity: bool = True


@dataclass(frozen=True)
class V0Cuts:
    """Topological and kinematic V0 selection (K0S hypothesis)."""

    apply_dca_v0_to_pv: bool = False
    max_dca_v0_to_pv: float = 1.0
    max_rapidity: float = 0.5
    min_pt: float = 0.0
    max_dca_daughters: float = 1.0
    min_cos_pa: float = 0.97
    min_radius: float = 0.5
    max_radius: float = 200.0
    max_lifetime: float = 15.0
    apply_competing_cut: bool = False
    competing_lambda_window: float = 0.005
    mass_center: float = 0.497
    mass_width: float = 0.005
    mass_nsigma: float = 4.0

    @property
    def mass_window(self) -> tuple[float, float]:
        half = self.mass_width * self.mass_nsigma
        return self.mass_center - half, self.mass_center + half


@dataclass(frozen=True)
class DaughterCuts:
    """Track-quality and PID selection of V0 daughters."""

    require_tpc: bool = False
    use_global_tracks: bool = False
    min_tpc_crossed_rows: int = 70
    min_crossed_rows_over_findable: float = 0.8
    min_tpc_clusters: int = 70
    max_eta: float = 0.8
    max_nsigma_pion: float = 5.0


@dataclass(frozen=True)
class PairCuts:
    """Pairwise geometric selection."""

    apply_angular_separation: bool = False
    max_angular_separation: float = 0.01

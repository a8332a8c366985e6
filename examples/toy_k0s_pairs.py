"""Toy K0S pair study with the Python API.

Run from repository root without installation:
    PYTHONPATH=src python examples/toy_k0s_pairs.py
"""

from __future__ import annotations

from pathlib import Path

import numpy as np

from resocomb import (
    AnalysisConfig,
    AxisPolicy,
    DaughterTrack,
    EventInput,
    PolarizationConfig,
    ResonanceCorrelationAnalysis,
    TableSink,
    V0Candidate,
)
from resocomb.io import write_pair_table


def _daughter(track_id: int, sign: int) -> DaughterTrack:
    return DaughterTrack(
        track_id=track_id,
        sign=sign,
        pt=0.6,
        eta=0.2,
        tpc_ncls_found=100,
        tpc_ncls_crossed_rows=110,
        tpc_crossed_rows_over_findable=0.95,
        tpc_nsigma_pi=0.3,
    )


def make_toy_events(rng: np.random.Generator, n_events: int = 200) -> list[EventInput]:
    """Events with 1-3 K0S-like candidates at mid-rapidity."""
    events = []
    next_track = 0
    for idx in range(n_events):
        v0s = []
        for cand in range(int(rng.integers(1, 4))):
            pt = rng.exponential(1.0) + 0.2
            phi = rng.uniform(0.0, 2.0 * np.pi)
            radius = rng.uniform(1.0, 20.0)
            v0s.append(
                V0Candidate(
                    candidate_id=cand,
                    px=pt * np.cos(phi),
                    py=pt * np.sin(phi),
                    pz=rng.normal(0.0, 0.2),
                    pos_track=_daughter(next_track, 1),
                    neg_track=_daughter(next_track + 1, -1),
                    v0_radius=radius,
                    dca_v0_daughters=rng.uniform(0.0, 0.5),
                    v0_cos_pa=rng.uniform(0.98, 1.0),
                    decay_x=radius * np.cos(phi),
                    decay_y=radius * np.sin(phi),
                    mass_k0short=rng.normal(0.4976, 0.004),
                )
            )
            next_track += 2
        events.append(
            EventInput(
                event_id=f"evt{idx}",
                pos_z=rng.uniform(-9.0, 9.0),
                cent_ft0m=rng.uniform(0.0, 100.0),
                v0s=tuple(v0s),
            )
        )
    return events


def main() -> int:
    """Build toy events, run the correlation analysis and write a parquet table."""
    rng = np.random.default_rng(42)
    config = AnalysisConfig(
        polarization=PolarizationConfig(axis_policy=AxisPolicy.HELICITY),
        select_two_only=False,
    )
    sink = TableSink()
    analysis = ResonanceCorrelationAnalysis(config, sink=sink, rng=rng)
    records = analysis.run(make_toy_events(rng))

    frame = sink.to_frame("pair_same_event", ["multiplicity", "pt", "mass", "cos_theta_star", "phi"])
    print(frame.describe())

    out_path = Path("examples/toy_k0s_pairs.parquet")
    write_pair_table(out_path, records)
    print(f"Wrote {len(records)} pairs to {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

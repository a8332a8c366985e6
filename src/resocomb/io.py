"""Input/output helpers for JSON inputs and tabular result export."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Sequence

from .cuts import PtBinnedCuts
from .models import (
    D0SelectionStatus,
    DaughterTrack,
    EventInput,
    McEvent,
    McParticle,
    PairRecord,
    TwoProngCandidate,
    V0Candidate,
)

logger = logging.getLogger(__name__)


def load_events_json(path: str | Path) -> list[EventInput]:
    """Load multi-event input JSON into `EventInput` objects.

    Expected shape:
    {
      "tracks": [...],                       # optional shared track table
      "events": [
        {"event_id": "...", "pos_z": ..., "v0s": [...], "tracks": [...]},
        ...
      ]
    }

    A V0 gives its daughters inline (`pos_track` / `neg_track`) or by id
    (`pos_track_id` / `neg_track_id`) into the per-event or shared track
    table. Unresolved ids leave the daughter missing.
    """
    data = _load_json(path)
    events_data = data.get("events")
    if not isinstance(events_data, list):
        raise ValueError("Events JSON must contain a list under key 'events'.")
    shared_tracks = _parse_track_table(data.get("tracks", []), context=f"{path}")
    out: list[EventInput] = []
    for idx, event in enumerate(events_data):
        if not isinstance(event, dict):
            raise ValueError(f"Event entry at index {idx} must be an object.")
        event_id = str(event.get("event_id", f"evt{idx}"))
        tracks = dict(shared_tracks)
        tracks.update(_parse_track_table(event.get("tracks", []), context=f"event '{event_id}'"))
        v0s_data = event.get("v0s", [])
        if not isinstance(v0s_data, list):
            raise ValueError(f"Event '{event_id}' key 'v0s' must be a list.")
        v0s = tuple(
            _parse_v0_item(item=v0_item, idx=vidx, context=f"event '{event_id}'", tracks=tracks)
            for vidx, v0_item in enumerate(v0s_data)
        )
        if "pos_z" not in event:
            raise ValueError(f"Event '{event_id}' must define 'pos_z'.")
        out.append(
            EventInput(
                event_id=event_id,
                pos_z=float(event["pos_z"]),
                v0s=v0s,
                pos_x=float(event.get("pos_x", 0.0)),
                pos_y=float(event.get("pos_y", 0.0)),
                cent_ft0m=float(event.get("cent_ft0m", 0.0)),
                cent_ft0c=float(event.get("cent_ft0c", 0.0)),
                sel8=bool(event.get("sel8", True)),
                no_time_frame_border=bool(event.get("no_time_frame_border", True)),
                no_its_rof_border=bool(event.get("no_its_rof_border", True)),
                mc_event_id=None if event.get("mc_event_id") is None else str(event["mc_event_id"]),
            )
        )
    return out


def load_mc_events_json(path: str | Path) -> list[McEvent]:
    """Load generated events `{"mc_events": [{"event_id", "pos_z", "particles": [...]}]}`.

    Particles reference each other through `index` via `mothers` and
    `daughters` lists.
    """
    data = _load_json(path)
    items = data.get("mc_events")
    if not isinstance(items, list):
        raise ValueError("MC JSON must contain a list under key 'mc_events'.")
    out: list[McEvent] = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError(f"MC event entry at index {idx} must be an object.")
        event_id = str(item.get("event_id", f"mc{idx}"))
        particles = item.get("particles", [])
        if not isinstance(particles, list):
            raise ValueError(f"MC event '{event_id}' key 'particles' must be a list.")
        if "pos_z" not in item:
            raise ValueError(f"MC event '{event_id}' must define 'pos_z'.")
        out.append(
            McEvent(
                event_id=event_id,
                pos_z=float(item["pos_z"]),
                particles=tuple(
                    _parse_mc_particle_item(p, pidx, f"MC event '{event_id}'") for pidx, p in enumerate(particles)
                ),
                cent_ft0m=float(item.get("cent_ft0m", 0.0)),
            )
        )
    return out


def load_two_prong_json(path: str | Path) -> list[TwoProngCandidate]:
    """Load `{"candidates": [...]}` into `TwoProngCandidate` objects."""
    data = _load_json(path)
    items = data.get("candidates")
    if not isinstance(items, list):
        raise ValueError("Candidate JSON must contain a list under key 'candidates'.")
    return [_parse_two_prong_item(item, idx, f"{path}") for idx, item in enumerate(items)]


def load_pt_binned_cuts_json(path: str | Path) -> PtBinnedCuts:
    """Load a labelled pT-binned cut table.

    Expected shape: `{"pt_bins": [...], "labels": [...], "cuts": [[...], ...]}`
    with one row of thresholds per pT bin.
    """
    data = _load_json(path)
    for key in ("pt_bins", "labels", "cuts"):
        if not isinstance(data.get(key), list):
            raise ValueError(f"Cut JSON must contain a list under key '{key}'.")
    rows = []
    for idx, row in enumerate(data["cuts"]):
        if not isinstance(row, list):
            raise ValueError(f"Cut row at index {idx} must be a list.")
        rows.append(tuple(float(x) for x in row))
    return PtBinnedCuts(
        pt_bins=tuple(float(x) for x in data["pt_bins"]),
        labels=tuple(str(x) for x in data["labels"]),
        values=tuple(rows),
    )


def write_pair_table(path: str | Path, records: Sequence[PairRecord]) -> None:
    """Write pair records into a Parquet/CSV/Pickle table."""
    _write_frame(path, _pair_rows(records))


def write_selection_table(path: str | Path, statuses: Sequence[D0SelectionStatus]) -> None:
    """Write two-prong selection flags into a Parquet/CSV/Pickle table."""
    rows = [
        {
            "candidate_id": s.candidate_id,
            "hf_flag": s.hf_flag,
            "d0_no_pid": s.d0_no_pid,
            "d0_perfect_pid": s.d0_perfect_pid,
            "d0_tof_pid": s.d0_tof_pid,
            "d0_rich_pid": s.d0_rich_pid,
            "d0_tof_plus_rich_pid": s.d0_tof_plus_rich_pid,
            "d0bar_tof_plus_rich_pid": s.d0bar_tof_plus_rich_pid,
        }
        for s in statuses
    ]
    _write_frame(path, rows)


def _pair_rows(records: Sequence[PairRecord]) -> list[dict[str, Any]]:
    """Flatten pair records into DataFrame-ready row dictionaries."""
    rows: list[dict[str, Any]] = []
    for rec in records:
        obs = rec.observables
        rows.append(
            {
                "kind": rec.kind,
                "event_id": rec.event_id,
                "partner_event_id": rec.partner_event_id,
                "candidate1_id": rec.candidate_ids[0],
                "candidate2_id": rec.candidate_ids[1],
                "multiplicity": rec.multiplicity,
                "mass": obs.mass,
                "pt": obs.pt,
                "rapidity": obs.rapidity,
                "cos_theta_star": obs.cos_theta_star,
                "phi": obs.phi,
            }
        )
    return rows


def _write_frame(path: str | Path, rows: list[dict[str, Any]]) -> None:
    pd = _require_pandas()
    df = pd.DataFrame(rows)
    out = Path(path)
    suffix = out.suffix.lower()
    if suffix == ".parquet":
        df.to_parquet(out, index=False)
    elif suffix in (".pkl", ".pickle"):
        df.to_pickle(out)
    elif suffix == ".csv":
        df.to_csv(out, index=False)
    else:
        raise ValueError(
            f"Unsupported output format '{suffix}'. Use .parquet, .csv, or .pkl"
        )
    logger.info("Wrote %d rows to %s", len(df), out)


def _require_pandas():
    """Import pandas lazily and provide a clear installation hint on failure."""
    try:
        import pandas as pd  # type: ignore
    except ModuleNotFoundError as exc:
        raise ModuleNotFoundError(
            "pandas is required to write output tables. Install pandas and pyarrow."
        ) from exc
    return pd


def _parse_track_table(items: Any, context: str) -> dict[int, DaughterTrack]:
    if not isinstance(items, list):
        raise ValueError(f"Track table in {context} must be a list.")
    tracks: dict[int, DaughterTrack] = {}
    for idx, item in enumerate(items):
        track = _parse_track_item(item, idx, context)
        tracks[track.track_id] = track
    return tracks


def _parse_track_item(item: Any, idx: int, context: str) -> DaughterTrack:
    """Parse one track dictionary into a `DaughterTrack`."""
    if not isinstance(item, dict):
        raise ValueError(f"Track entry at index {idx} in {context} must be an object.")
    try:
        return DaughterTrack(
            track_id=int(item["track_id"]),
            sign=int(item["sign"]),
            pt=float(item["pt"]),
            eta=float(item["eta"]),
            p=float(item.get("p", 0.0)),
            has_tpc=bool(item.get("has_tpc", True)),
            is_global_track=bool(item.get("is_global_track", True)),
            tpc_ncls_found=int(item.get("tpc_ncls_found", 0)),
            tpc_ncls_crossed_rows=int(item.get("tpc_ncls_crossed_rows", 0)),
            tpc_crossed_rows_over_findable=float(item.get("tpc_crossed_rows_over_findable", 0.0)),
            tpc_nsigma_pi=_optional_float(item.get("tpc_nsigma_pi")),
            tof_nsigma_pi=_optional_float(item.get("tof_nsigma_pi")),
            tof_nsigma_ka=_optional_float(item.get("tof_nsigma_ka")),
            rich_nsigma_pi=_optional_float(item.get("rich_nsigma_pi")),
            rich_nsigma_ka=_optional_float(item.get("rich_nsigma_ka")),
            dca_xy=float(item.get("dca_xy", 0.0)),
            mc_pdg_code=None if item.get("mc_pdg_code") is None else int(item["mc_pdg_code"]),
        )
    except KeyError as exc:
        raise ValueError(f"Track at index {idx} in {context} is missing field {exc}.") from exc


def _resolve_daughter(
    item: dict[str, Any], side: str, tracks: dict[int, DaughterTrack], context: str
) -> DaughterTrack | None:
    """Inline daughter object, or lookup by id; `None` when the id is unknown."""
    inline = item.get(f"{side}_track")
    if inline is not None:
        return _parse_track_item(inline, 0, context)
    ref = item.get(f"{side}_track_id")
    if ref is None:
        return None
    track = tracks.get(int(ref))
    if track is None:
        logger.debug("Unresolved %s daughter id %s in %s", side, ref, context)
    return track


def _parse_v0_item(item: Any, idx: int, context: str, tracks: dict[int, DaughterTrack]) -> V0Candidate:
    """Parse one V0 dictionary into a `V0Candidate`."""
    if not isinstance(item, dict):
        raise ValueError(f"V0 entry at index {idx} in {context} must be an object.")
    try:
        return V0Candidate(
            candidate_id=int(item.get("candidate_id", idx)),
            px=float(item["px"]),
            py=float(item["py"]),
            pz=float(item["pz"]),
            pos_track=_resolve_daughter(item, "pos", tracks, context),
            neg_track=_resolve_daughter(item, "neg", tracks, context),
            v0_radius=float(item.get("v0_radius", 0.0)),
            dca_v0_daughters=float(item.get("dca_v0_daughters", 0.0)),
            v0_cos_pa=float(item.get("v0_cos_pa", 1.0)),
            dca_v0_to_pv=float(item.get("dca_v0_to_pv", 0.0)),
            decay_x=float(item.get("decay_x", 0.0)),
            decay_y=float(item.get("decay_y", 0.0)),
            decay_z=float(item.get("decay_z", 0.0)),
            mass_k0short=float(item.get("mass_k0short", 0.0)),
            mass_lambda=float(item.get("mass_lambda", 0.0)),
            mass_antilambda=float(item.get("mass_antilambda", 0.0)),
            mc_particle_index=None if item.get("mc_particle_index") is None else int(item["mc_particle_index"]),
        )
    except KeyError as exc:
        raise ValueError(f"V0 at index {idx} in {context} is missing field {exc}.") from exc


def _parse_two_prong_item(item: Any, idx: int, context: str) -> TwoProngCandidate:
    """Parse one two-prong dictionary into a `TwoProngCandidate`."""
    if not isinstance(item, dict):
        raise ValueError(f"Candidate entry at index {idx} in {context} must be an object.")
    try:
        return TwoProngCandidate(
            candidate_id=int(item.get("candidate_id", idx)),
            prong0_momentum=_parse_vector3(item["prong0_momentum"], "prong0_momentum"),
            prong1_momentum=_parse_vector3(item["prong1_momentum"], "prong1_momentum"),
            prong0=_parse_track_item(item["prong0"], idx, context),
            prong1=_parse_track_item(item["prong1"], idx, context),
            hf_flag=int(item.get("hf_flag", 1)),
            impact_parameter0=float(item.get("impact_parameter0", 0.0)),
            impact_parameter1=float(item.get("impact_parameter1", 0.0)),
            error_impact_parameter0=float(item.get("error_impact_parameter0", 1.0)),
            error_impact_parameter1=float(item.get("error_impact_parameter1", 1.0)),
            cpa=float(item.get("cpa", 1.0)),
            cpa_xy=float(item.get("cpa_xy", 1.0)),
            decay_length=float(item.get("decay_length", 0.0)),
            decay_length_xy=float(item.get("decay_length_xy", 0.0)),
            error_decay_length_xy=float(item.get("error_decay_length_xy", 1.0)),
        )
    except KeyError as exc:
        raise ValueError(f"Candidate at index {idx} in {context} is missing field {exc}.") from exc


def _parse_mc_particle_item(item: Any, idx: int, context: str) -> McParticle:
    """Parse one generated particle dictionary into a `McParticle`."""
    if not isinstance(item, dict):
        raise ValueError(f"Particle entry at index {idx} in {context} must be an object.")
    try:
        return McParticle(
            index=int(item.get("index", idx)),
            pdg_code=int(item["pdg_code"]),
            px=float(item["px"]),
            py=float(item["py"]),
            pz=float(item["pz"]),
            e=float(item["e"]),
            is_physical_primary=bool(item.get("is_physical_primary", False)),
            produced_by_generator=bool(item.get("produced_by_generator", True)),
            mother_indices=tuple(int(x) for x in item.get("mothers", [])),
            daughter_indices=tuple(int(x) for x in item.get("daughters", [])),
        )
    except KeyError as exc:
        raise ValueError(f"Particle at index {idx} in {context} is missing field {exc}.") from exc


def _parse_vector3(value: Any, name: str) -> tuple[float, float, float]:
    """Validate and convert a 3-element list."""
    if not isinstance(value, list) or len(value) != 3:
        raise ValueError(f"Field '{name}' must be a list of 3 numbers.")
    return (float(value[0]), float(value[1]), float(value[2]))


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def _load_json(path: str | Path) -> dict[str, Any]:
    """Read and validate a JSON object document from disk."""
    raw = Path(path).read_text(encoding="utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"JSON document at {path} must be an object.")
    return data

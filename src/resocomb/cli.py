"""Command-line interface for the resonance-correlation and D0 selection tasks."""

from __future__ import annotations

import argparse
import importlib.util
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

import numpy as np

from .analysis import ResonanceCorrelationAnalysis
from .config import AnalysisConfig, load_analysis_config_json
from .cuts import default_d0_cuts
from .io import (
    load_events_json,
    load_mc_events_json,
    load_pt_binned_cuts_json,
    load_two_prong_json,
    write_pair_table,
    write_selection_table,
)
from .observables import AxisPolicy
from .pid import particle_hypothesis_from_name
from .selection import D0Selector
from .sink import TableSink

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Define and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="resocomb",
        description="K0S pair correlations with polarization observables, and D0 candidate selection.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")
    parser.add_argument("--seed", type=int, default=None, help="Seed of the random generator.")
    parser.add_argument(
        "--custom-script",
        default=None,
        help="Path to Python file with process(results, context) function.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    corr = sub.add_parser("correlate", help="Build same-event, rotated and mixed-event K0S pairs.")
    corr.add_argument("--events", required=True, help="Input JSON with key 'events'.")
    corr.add_argument("--config", default=None, help="Analysis configuration JSON.")
    corr.add_argument(
        "--axis-policy",
        default=None,
        choices=["helicity", "production", "beam", "random"],
        help="Override the cos(theta*) reference axis.",
    )
    corr.add_argument(
        "--mass-hypothesis",
        default="k0s",
        help="Daughter mass hypothesis by particle name (default: k0s).",
    )
    corr.add_argument("--no-mixing", action="store_true", help="Skip the mixed-event pass.")
    corr.add_argument(
        "--mc-events",
        default=None,
        help="Generated-event JSON with key 'mc_events'; adds the generated and truth-matched passes.",
    )
    corr.add_argument(
        "--out",
        required=True,
        help="Output table file for pairs (.parquet, .csv, .pkl).",
    )

    d0 = sub.add_parser("select-d0", help="Apply the pT-binned D0 -> pi K selection.")
    d0.add_argument("--candidates", required=True, help="Input JSON with key 'candidates'.")
    d0.add_argument("--cuts", default=None, help="pT-binned cut table JSON (default: built-in table).")
    d0.add_argument("--pt-min", type=float, default=0.0, help="Minimum candidate pT.")
    d0.add_argument("--pt-max", type=float, default=50.0, help="Maximum candidate pT.")
    d0.add_argument("--max-nsigma", type=float, default=3.0, help="PID n-sigma window.")
    d0.add_argument(
        "--out",
        required=True,
        help="Output table file for selection flags (.parquet, .csv, .pkl).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint: dispatch to the selected task, write table, optional custom hook."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command == "correlate":
        results, context = _run_correlate(args)
    else:
        results, context = _run_select_d0(args)

    if args.custom_script:
        run_custom_script(script_path=args.custom_script, results=results, context=context)
    return 0


def _run_correlate(args: argparse.Namespace) -> tuple[list[Any], dict[str, Any]]:
    config = load_analysis_config_json(args.config) if args.config else AnalysisConfig()
    if args.axis_policy:
        config = replace(
            config,
            polarization=replace(config.polarization, axis_policy=AxisPolicy.from_name(args.axis_policy)),
        )
    events = load_events_json(args.events)
    sink = TableSink()
    hypothesis = particle_hypothesis_from_name(args.mass_hypothesis)
    analysis = ResonanceCorrelationAnalysis(
        config, sink=sink, rng=np.random.default_rng(args.seed), mass_hypothesis=hypothesis.mass
    )
    records = analysis.run(events, mixing=not args.no_mixing)
    if args.mc_events:
        records.extend(analysis.run_mc(events, load_mc_events_json(args.mc_events)))
    write_pair_table(args.out, records)
    context = {
        "events_path": args.events,
        "mc_events_path": args.mc_events,
        "mass_hypothesis": hypothesis,
        "config": config,
        "sink": sink,
        "output_path": args.out,
    }
    return records, context


def _run_select_d0(args: argparse.Namespace) -> tuple[list[Any], dict[str, Any]]:
    cuts = load_pt_binned_cuts_json(args.cuts) if args.cuts else default_d0_cuts()
    candidates = load_two_prong_json(args.candidates)
    sink = TableSink()
    selector = D0Selector(
        cuts=cuts,
        pt_cand_min=args.pt_min,
        pt_cand_max=args.pt_max,
        max_nsigma=args.max_nsigma,
        sink=sink,
    )
    statuses = selector.select_all(candidates)
    write_selection_table(args.out, statuses)
    context = {
        "candidates_path": args.candidates,
        "cuts": cuts,
        "sink": sink,
        "output_path": args.out,
    }
    return statuses, context


def run_custom_script(script_path: str, results: list[Any], context: dict[str, Any]) -> None:
    """Execute user-supplied post-processing callback `process(results, context)`."""
    module = _load_module(script_path)
    process = getattr(module, "process", None)
    if process is None or not callable(process):
        raise ValueError(
            f"Custom script {script_path} must define callable process(results, context)."
        )
    logger.info("Running custom script %s", script_path)
    process(results, context)


def _load_module(script_path: str):
    """Import a Python module from an arbitrary file path."""
    path = Path(script_path)
    spec = importlib.util.spec_from_file_location(path.stem, path)
    if spec is None or spec.loader is None:
        raise ValueError(f"Cannot import custom script: {script_path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


if __name__ == "__main__":
    raise SystemExit(main())

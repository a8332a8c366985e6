"""Example custom callback: summarise pair masses per kind."""

from __future__ import annotations

import json
from collections import defaultdict
from pathlib import Path


def process(results, context):
    """Count pairs and average the composite mass for each pair kind."""
    masses = defaultdict(list)
    for rec in results:
        masses[rec.kind].append(rec.observables.mass)
    payload = {
        kind: {"n_pairs": len(values), "mean_mass": sum(values) / len(values)}
        for kind, values in masses.items()
    }
    out = Path(context["output_path"]).with_name("mass_summary.json")
    out.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    print(f"Wrote {out}")

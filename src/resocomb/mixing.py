"""Event-mixing pool binned in (vertex z, multiplicity)."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

import numpy as np

from .cuts import NO_BIN, find_bin, validate_edges
from .models import EventInput

logger = logging.getLogger(__name__)


def fixed_width_edges(n_bins: int, low: float, high: float) -> tuple[float, ...]:
    """Equidistant bin edges, `n_bins + 1` values from `low` to `high`."""
    if n_bins < 1:
        raise ValueError("Axis needs at least one bin.")
    return tuple(float(x) for x in np.linspace(low, high, n_bins + 1))


@dataclass(frozen=True)
class ColumnBinning:
    """2D event binning; events outside either axis are not mixed."""

    vertex_z_edges: tuple[float, ...]
    multiplicity_edges: tuple[float, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "vertex_z_edges", validate_edges(self.vertex_z_edges, "vertex_z_edges"))
        object.__setattr__(
            self, "multiplicity_edges", validate_edges(self.multiplicity_edges, "multiplicity_edges")
        )

    @property
    def n_bins(self) -> int:
        return (len(self.vertex_z_edges) - 1) * (len(self.multiplicity_edges) - 1)

    def get_bin(self, vertex_z: float, multiplicity: float) -> int:
        """Flattened bin index, or `NO_BIN` on under/overflow."""
        iz = find_bin(self.vertex_z_edges, vertex_z)
        im = find_bin(self.multiplicity_edges, multiplicity)
        if iz == NO_BIN or im == NO_BIN:
            return NO_BIN
        return iz * (len(self.multiplicity_edges) - 1) + im


class MixingPool:
    """Per-bin FIFO of the most recent events.

    Each bin keeps at most `depth` events; appending beyond that drops the
    oldest one.
    """

    def __init__(self, depth: int) -> None:
        if depth < 1:
            raise ValueError("Mixing depth must be at least 1.")
        self.depth = depth
        self._bins: dict[int, deque[EventInput]] = {}

    def partners(self, bin_index: int) -> tuple[EventInput, ...]:
        """Snapshot of the stored events of one bin, oldest first."""
        return tuple(self._bins.get(bin_index, ()))

    def append(self, bin_index: int, event: EventInput) -> None:
        if bin_index == NO_BIN:
            return
        self._bins.setdefault(bin_index, deque(maxlen=self.depth)).append(event)

    def __len__(self) -> int:
        return sum(len(q) for q in self._bins.values())


def iter_mixed_events(
    events: Iterable[EventInput],
    binning: ColumnBinning,
    depth: int,
    multiplicity: Callable[[EventInput], float],
) -> Iterator[tuple[EventInput, EventInput]]:
    """Yield `(primary, partner)` pairs of distinct events sharing a bin.

    Partners are read from the pool before the primary is appended, so an
    event is only ever paired with previously completed events.
    """
    pool = MixingPool(depth)
    n_unbinned = 0
    for event in events:
        bin_index = binning.get_bin(event.pos_z, multiplicity(event))
        if bin_index == NO_BIN:
            n_unbinned += 1
            continue
        for partner in pool.partners(bin_index):
            if partner.event_id == event.event_id:
                continue
            yield event, partner
        pool.append(bin_index, event)
    if n_unbinned:
        logger.debug("%d events outside the mixing binning were skipped", n_unbinned)


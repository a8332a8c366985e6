"""Observable sinks: the injected output side of the analysis.

The analysis code only calls `record(name, *values)`. Histogram storage,
binning and persistence belong to the sink implementation.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Any, Sequence

from .io import _require_pandas


class ObservableSink:
    """Interface for anything that can receive named observable tuples."""

    def record(self, name: str, *values: float) -> None:
        raise NotImplementedError


class NullSink(ObservableSink):
    """Sink that drops every entry."""

    def record(self, name: str, *values: float) -> None:
        return None


class TableSink(ObservableSink):
    """In-memory sink keeping every recorded tuple, grouped by name."""

    def __init__(self) -> None:
        self._rows: dict[str, list[tuple[float, ...]]] = defaultdict(list)

    def record(self, name: str, *values: float) -> None:
        self._rows[name].append(tuple(values))

    def names(self) -> list[str]:
        return sorted(self._rows)

    def rows(self, name: str) -> list[tuple[float, ...]]:
        return list(self._rows.get(name, ()))

    def counts(self, name: str) -> Counter:
        """Occupancy of the first recorded value, e.g. cut-flow step indices."""
        return Counter(row[0] for row in self._rows.get(name, ()) if row)

    def to_frame(self, name: str, columns: Sequence[str] | None = None) -> Any:
        """Return one observable as a pandas DataFrame."""
        pd = _require_pandas()
        return pd.DataFrame(self.rows(name), columns=list(columns) if columns else None)

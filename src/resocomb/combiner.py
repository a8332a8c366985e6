"""Pair combination engine for same-event and mixed-event V0 pairs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, Sequence

from .models import EventInput, V0Candidate
from .selection import V0Selector

logger = logging.getLogger(__name__)

N_SELECTED = "n_selected_candidates"

CandidatePair = tuple[V0Candidate, V0Candidate]


def share_tracks(first: V0Candidate, second: V0Candidate) -> bool:
    """True when the two candidates have a constituent track in common."""
    return not first.provenance().isdisjoint(second.provenance())


@dataclass
class PairCombiner:
    """Build selected, de-duplicated candidate pairs."""

    selector: V0Selector = field(default_factory=V0Selector)
    select_two_only: bool = False

    def select_candidates(self, event: EventInput, candidates: Sequence[V0Candidate]) -> list[V0Candidate]:
        """Apply the single-candidate selection, keeping input order."""
        return [v0 for v0 in candidates if self.selector.select_candidate(event, v0)]

    def combine_pairs(
        self,
        event_a: EventInput,
        event_b: EventInput | None = None,
        candidates_a: Sequence[V0Candidate] | None = None,
        candidates_b: Sequence[V0Candidate] | None = None,
    ) -> Iterator[CandidatePair]:
        """Yield valid pairs from one event (`event_b` omitted) or two events.

        Candidate lists default to the events' own V0 collections.
        """
        if candidates_a is None:
            candidates_a = event_a.v0s
        if event_b is None or event_b is event_a:
            yield from self.same_event_pairs(event_a, candidates_a)
            return
        if candidates_b is None:
            candidates_b = event_b.v0s
        yield from self.mixed_event_pairs(event_a, event_b, candidates_a, candidates_b)

    def same_event_pairs(
        self, event: EventInput, candidates: Sequence[V0Candidate] | None = None
    ) -> Iterator[CandidatePair]:
        """Pairs with `second.candidate_id > first.candidate_id` only."""
        if candidates is None:
            candidates = event.v0s
        selected = self.select_candidates(event, candidates)
        self.selector.sink.record(N_SELECTED, len(selected))
        if self.select_two_only and len(selected) != 2:
            return
        for first in selected:
            for second in selected:
                if second.candidate_id <= first.candidate_id:
                    continue
                if share_tracks(first, second):
                    continue
                if not self.selector.passes_angular_separation(first, second):
                    continue
                yield first, second

    def mixed_event_pairs(
        self,
        event_a: EventInput,
        event_b: EventInput,
        candidates_a: Sequence[V0Candidate],
        candidates_b: Sequence[V0Candidate],
    ) -> Iterator[CandidatePair]:
        """Full cross product of the selected candidates of two events."""
        if event_a.event_id == event_b.event_id:
            logger.debug("Refusing to mix event %s with itself", event_a.event_id)
            return
        selected_a = self.select_candidates(event_a, candidates_a)
        if not selected_a:
            return
        selected_b = self.select_candidates(event_b, candidates_b)
        for first in selected_a:
            for second in selected_b:
                if share_tracks(first, second):
                    continue
                if not self.selector.passes_angular_separation(first, second):
                    continue
                yield first, second

"""Identity reconciler — carries citation state across extraction passes."""

from __future__ import annotations

import logging
from typing import Iterable

from lexicite.models.citation import Citation, CitationOccurrence

logger = logging.getLogger(__name__)


def reconcile(
    previous: Iterable[Citation],
    occurrences: Iterable[CitationOccurrence],
    drift_tolerance: int = 0,
) -> list[Citation]:
    """Pair fresh occurrences with the records of an earlier pass.

    An occurrence keeps the prior record with the same ``(text, start)`` key
    verbatim. With ``drift_tolerance > 0`` an occurrence left unmatched may
    also adopt a prior record with identical text whose start moved by at
    most that many characters; the adopted record keeps its id and verdict
    and takes the new offsets. Everything else becomes a new pending record.
    Prior records that find no occurrence are dropped.
    """
    occurrences = list(occurrences)
    by_key: dict[tuple[str, int], Citation] = {}
    for citation in previous:
        by_key.setdefault(citation.key, citation)

    used: set[str] = set()
    paired: list[Citation | None] = []
    for occ in occurrences:
        prior = by_key.get(occ.key)
        if prior is not None and prior.id not in used:
            used.add(prior.id)
            paired.append(prior)
        else:
            paired.append(None)

    if drift_tolerance > 0:
        leftovers = [c for c in by_key.values() if c.id not in used]
        for i, occ in enumerate(occurrences):
            if paired[i] is not None:
                continue
            candidates = [
                c
                for c in leftovers
                if c.id not in used
                and c.original_text == occ.original_text
                and abs(c.start_index - occ.start_index) <= drift_tolerance
            ]
            if not candidates:
                continue
            nearest = min(candidates, key=lambda c: abs(c.start_index - occ.start_index))
            used.add(nearest.id)
            paired[i] = nearest.evolve(start_index=occ.start_index, end_index=occ.end_index)

    result = [
        prior if prior is not None else Citation.from_occurrence(occ)
        for occ, prior in zip(occurrences, paired)
    ]
    dropped = len(by_key) - len(used)
    if dropped:
        logger.debug("Reconcile dropped %d stale citation(s)", dropped)
    return result

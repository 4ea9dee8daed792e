"""Status aggregation — summary counts and filtered/sorted views."""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from lexicite.models.citation import Citation, CitationStatus, LegalStatus
from lexicite.models.report import AnalysisStats

GOOD_LEGAL_STATUSES = {LegalStatus.GOOD, LegalStatus.UNKNOWN, LegalStatus.VERIFIED}
BAD_LEGAL_STATUSES = {LegalStatus.OVERRULED, LegalStatus.SUPERSEDED, LegalStatus.RETRACTED}
FAILED_STATUSES = {CitationStatus.HALLUCINATION, CitationStatus.ERROR}


class CitationFilter(Enum):
    ALL = "all"
    ISSUES = "issues"
    VALID = "valid"
    SUPERSEDED = "superseded"


class SortOption(Enum):
    ORIGINAL = "original"
    CONFIDENCE = "confidence"
    NAME = "name"
    STATUS = "status"


def _legal_status(c: Citation) -> LegalStatus:
    return c.legal_status or LegalStatus.UNKNOWN


def is_valid(c: Citation) -> bool:
    return c.status is CitationStatus.VALID and _legal_status(c) in GOOD_LEGAL_STATUSES


def is_issue(c: Citation) -> bool:
    # Structurally valid citations to overruled law still count
    return c.status in FAILED_STATUSES or _legal_status(c) in BAD_LEGAL_STATUSES


def is_pending(c: Citation) -> bool:
    return not c.is_settled


def compute_stats(citations: Iterable[Citation]) -> AnalysisStats:
    citations = list(citations)
    return AnalysisStats(
        total=len(citations),
        valid=sum(1 for c in citations if is_valid(c)),
        invalid=sum(1 for c in citations if is_issue(c)),
        pending=sum(1 for c in citations if is_pending(c)),
    )


def filter_citations(
    citations: Iterable[Citation], view: CitationFilter = CitationFilter.ALL
) -> list[Citation]:
    if view is CitationFilter.ISSUES:
        return [c for c in citations if is_issue(c)]
    if view is CitationFilter.VALID:
        return [
            c
            for c in citations
            if c.status is CitationStatus.VALID
            and c.legal_status in (LegalStatus.GOOD, LegalStatus.VERIFIED)
        ]
    if view is CitationFilter.SUPERSEDED:
        return [c for c in citations if c.superseding_case is not None]
    return list(citations)


def _status_rank(c: Citation) -> int:
    if is_issue(c):
        return 0
    if is_pending(c):
        return 1
    return 2


def sort_citations(
    citations: Iterable[Citation], order: SortOption = SortOption.ORIGINAL
) -> list[Citation]:
    """Sort a view. Ties always fall back to document order."""
    by_position = sorted(citations, key=lambda c: c.start_index)
    if order is SortOption.CONFIDENCE:
        return sorted(by_position, key=lambda c: -(c.confidence or 0))
    if order is SortOption.NAME:
        return sorted(by_position, key=lambda c: (c.case_name or c.original_text).lower())
    if order is SortOption.STATUS:
        return sorted(by_position, key=_status_rank)
    return by_position


def citation_view(
    citations: Iterable[Citation],
    view: CitationFilter = CitationFilter.ALL,
    order: SortOption = SortOption.ORIGINAL,
) -> list[Citation]:
    return sort_citations(filter_citations(citations, view), order)

"""Results returned by the external verification collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from lexicite.models.citation import CitationSource, LegalStatus, SupersedingCase


class VerificationMode(Enum):
    STANDARD = "standard"
    RESEARCH = "research"


@dataclass
class VerificationResult:
    """The AI verifier's judgment on a single citation."""

    is_valid: bool
    reason: str
    case_name: str | None = None
    legal_status: LegalStatus = LegalStatus.UNKNOWN
    confidence: int | None = None
    area_of_law: str | None = None
    superseding_case: SupersedingCase | None = None
    sources: list[CitationSource] = field(default_factory=list)


@dataclass
class AuthorityLookupResult:
    """Outcome of an authority-database lookup."""

    found: bool
    case_name: str | None = None
    citation: str | None = None
    id: int | None = None
    absolute_url: str | None = None
    error: str | None = None

    @classmethod
    def not_found(cls, error: str | None = None) -> AuthorityLookupResult:
        return cls(found=False, error=error)


@dataclass
class HistoricalEvent:
    year: str
    case_name: str
    summary: str
    citation: str | None = None


@dataclass
class HistoricalContext:
    """Era and background for a case, produced by the AI verifier."""

    query: str
    era: str
    topic: str
    brief: str
    key_forces: list[str] = field(default_factory=list)
    related_cases: list[str] = field(default_factory=list)
    timeline: list[HistoricalEvent] = field(default_factory=list)

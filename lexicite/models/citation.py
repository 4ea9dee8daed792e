"""Citation data models."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from uuid import uuid4


class CitationStatus(Enum):
    PENDING = "pending"
    CHECKING = "checking"
    VALID = "valid"
    HALLUCINATION = "hallucination"
    ERROR = "error"


class LegalStatus(Enum):
    GOOD = "good"
    OVERRULED = "overruled"
    CAUTION = "caution"
    SUPERSEDED = "superseded"
    UNKNOWN = "unknown"
    VERIFIED = "verified"
    RETRACTED = "retracted"
    NOT_FOUND = "not_found"

    @classmethod
    def coerce(cls, value: object) -> LegalStatus:
        """Map an untrusted value onto a legal status, defaulting to UNKNOWN."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.UNKNOWN


@dataclass(frozen=True)
class CitationSource:
    """An evidentiary reference backing a verification verdict."""

    uri: str
    title: str = ""


@dataclass(frozen=True)
class SupersedingCase:
    """A suggested replacement authority for a citation that is no longer good law."""

    name: str
    citation: str
    uri: str | None = None


@dataclass(frozen=True)
class CitationOccurrence:
    """A citation-shaped span found in one snapshot of the text."""

    original_text: str
    start_index: int
    end_index: int

    @property
    def key(self) -> tuple[str, int]:
        return (self.original_text, self.start_index)


@dataclass
class Citation:
    """The durable record tracking one citation through verification."""

    original_text: str
    start_index: int
    end_index: int
    status: CitationStatus = CitationStatus.PENDING
    legal_status: LegalStatus | None = None
    case_name: str | None = None
    reason: str | None = None
    confidence: int | None = None
    area_of_law: str | None = None
    superseding_case: SupersedingCase | None = None
    sources: list[CitationSource] = field(default_factory=list)
    is_court_listener_verified: bool = False
    court_listener_id: int | None = None
    id: str = field(default_factory=lambda: str(uuid4()))

    @classmethod
    def from_occurrence(cls, occurrence: CitationOccurrence) -> Citation:
        return cls(
            original_text=occurrence.original_text,
            start_index=occurrence.start_index,
            end_index=occurrence.end_index,
        )

    @property
    def key(self) -> tuple[str, int]:
        return (self.original_text, self.start_index)

    @property
    def is_settled(self) -> bool:
        return self.status not in (CitationStatus.PENDING, CitationStatus.CHECKING)

    def evolve(self, **changes) -> Citation:
        return replace(self, **changes)

    def to_dict(self) -> dict:
        sc = self.superseding_case
        return {
            "id": self.id,
            "originalText": self.original_text,
            "startIndex": self.start_index,
            "endIndex": self.end_index,
            "status": self.status.value,
            "legalStatus": self.legal_status.value if self.legal_status else None,
            "caseName": self.case_name,
            "reason": self.reason,
            "confidence": self.confidence,
            "areaOfLaw": self.area_of_law,
            "supersedingCase": (
                {"name": sc.name, "citation": sc.citation, "uri": sc.uri} if sc else None
            ),
            "sources": [{"uri": s.uri, "title": s.title} for s in self.sources],
            "isCourtListenerVerified": self.is_court_listener_verified,
            "courtListenerId": self.court_listener_id,
        }

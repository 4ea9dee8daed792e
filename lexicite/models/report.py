"""Report journal data models."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from uuid import uuid4


@dataclass(frozen=True)
class AnalysisStats:
    total: int = 0
    valid: int = 0
    invalid: int = 0
    pending: int = 0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "valid": self.valid,
            "invalid": self.invalid,
            "pending": self.pending,
        }


@dataclass(frozen=True)
class Finding:
    """A flattened citation result as archived in a report."""

    text: str
    status: str
    case_name: str | None = None
    legal_status: str | None = None
    area_of_law: str | None = None

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "status": self.status,
            "caseName": self.case_name,
            "legalStatus": self.legal_status,
            "areaOfLaw": self.area_of_law,
        }


@dataclass(frozen=True)
class ReportEntry:
    """Immutable snapshot of one completed verification batch."""

    document_title: str
    stats: AnalysisStats
    findings: tuple[Finding, ...] = ()
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))
    id: str = field(default_factory=lambda: str(uuid4()))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "documentTitle": self.document_title,
            "stats": self.stats.to_dict(),
            "findings": [f.to_dict() for f in self.findings],
        }

    @classmethod
    def from_dict(cls, data: dict) -> ReportEntry:
        stats = data.get("stats") or {}
        return cls(
            id=data["id"],
            timestamp=int(data.get("timestamp", 0)),
            document_title=data.get("documentTitle", ""),
            stats=AnalysisStats(
                total=stats.get("total", 0),
                valid=stats.get("valid", 0),
                invalid=stats.get("invalid", 0),
                pending=stats.get("pending", 0),
            ),
            findings=tuple(
                Finding(
                    text=f.get("text", ""),
                    status=f.get("status", ""),
                    case_name=f.get("caseName"),
                    legal_status=f.get("legalStatus"),
                    area_of_law=f.get("areaOfLaw"),
                )
                for f in data.get("findings", [])
            ),
        )

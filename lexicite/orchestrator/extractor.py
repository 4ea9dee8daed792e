"""Extractor — finds citation-shaped spans in free text."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from lexicite.errors import PatternError
from lexicite.models.citation import Citation, CitationOccurrence

# Reporter abbreviations, longest forms first so alternation prefers them.
_REPORTERS = [
    r"U\.S\.",
    r"S\.\s?Ct\.",
    r"L\.\s?Ed\.(?:\s?2d)?",
    r"F\.\s?Supp\.(?:\s?(?:2d|3d))?",
    r"F\.\s?App'x",
    r"F\.\s?(?:2d|3d|4th)",
    r"F\.",
    r"B\.R\.",
    r"(?:N\.E\.|N\.W\.|S\.E\.|S\.W\.|A\.|P\.)(?:\s?(?:2d|3d))?",
    r"So\.(?:\s?(?:2d|3d))?",
    r"N\.Y\.S\.(?:\s?(?:2d|3d))?",
    r"Cal\.\s?(?:App\.\s?)?(?:2d|3d|4th|5th)?",
]

# Sentence-opening words that look like party names but never start one.
_NOT_A_PARTY = (
    r"See|Cf|But|Compare|Accord|Contra|Also|In|The|Under|Previously|However|"
    r"And|For|Thus|Moreover|Because|Although|While|When|Where|This|That|Here|Id"
)

# Abbreviations that may end a party word with a period. Any other word
# followed by "." is a sentence end, not part of a case name.
_ABBREVIATIONS = (
    r"Co|Corp|Inc|Ltd|Bros|Ass'n|Dep't|Gov't|Comm'n|Nat'l|Int'l|Sec'y|Soc'y|"
    r"Dist|Univ|Bd|Educ|Mfg|Ry|R\.R|Sch|Cnty|Hosp|Ins|Mut|Ctr|Admin|Auth|"
    r"Envtl|Transp|Tel|Elec|Indus|Fed|Am|St|Mt|U\.S|N\.Y"
)

_WORD = rf"(?:(?:{_ABBREVIATIONS})\.|[A-Z][\w'&\-]*)"
_PARTY = rf"{_WORD}(?:[ \t]+(?:(?:of|the|and|for|de)\b|ex[ \t]+rel\.|{_WORD}))*"
_CASE_NAME = rf"\b(?!(?:{_NOT_A_PARTY})\b){_PARTY}\s+vs?\.\s+{_PARTY},\s+"
_CASE_NAME_RE = re.compile(_CASE_NAME)

_REPORTER_CITE = rf"\b\d{{1,4}}\s+(?:{'|'.join(_REPORTERS)})\s+\d{{1,5}}\b"
_STATUTE_CITE = (
    r"\b\d{1,3}\s+U\.S\.C\.(?:A\.)?\s*§{1,2}\s*\d+[\w.\-]*(?:\([a-zA-Z0-9]+\))*"
    r"|\b\d{1,3}\s+C\.F\.R\.\s*(?:§\s*)?\d+(?:\.\d+)?"
)

DEFAULT_CITATION_PATTERN = rf"{_STATUTE_CITE}|(?:{_CASE_NAME})?{_REPORTER_CITE}"

_DEFAULT_RE = re.compile(DEFAULT_CITATION_PATTERN)


def compile_pattern(pattern: str | re.Pattern | None) -> re.Pattern:
    """Compile a custom extraction pattern; ``None`` selects the built-in one."""
    if pattern is None:
        return _DEFAULT_RE
    if isinstance(pattern, re.Pattern):
        return pattern
    if not pattern.strip():
        raise PatternError("empty pattern")
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise PatternError(f"invalid citation pattern {pattern!r}: {exc}") from exc


def extract_citations(
    text: str, pattern: str | re.Pattern | None = None
) -> list[CitationOccurrence]:
    """Return citation occurrences in document order.

    Pure function of ``(text, pattern)``. Matches are non-overlapping because
    ``finditer`` resumes after each match; empty matches are discarded.
    Raises ``PatternError`` for a malformed custom pattern.
    """
    regex = compile_pattern(pattern)
    return [
        CitationOccurrence(original_text=m.group(0), start_index=m.start(), end_index=m.end())
        for m in regex.finditer(text)
        if m.end() > m.start()
    ]


def has_case_name(citation_text: str) -> bool:
    """True if the span opens with a ``Name v. Name,`` phrase."""
    return _CASE_NAME_RE.match(citation_text) is not None


@dataclass(frozen=True)
class Segment:
    """A slice of the document, either plain text or a citation."""

    text: str
    start: int
    end: int
    citation_id: str | None = None
    status: str | None = None

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "start": self.start,
            "end": self.end,
            "citationId": self.citation_id,
            "status": self.status,
        }


def highlight_segments(text: str, citations: Iterable[Citation]) -> list[Segment]:
    """Split ``text`` into plain and citation segments for inline highlighting.

    Citations whose span no longer fits the text, or overlaps an earlier one,
    are skipped.
    """
    segments: list[Segment] = []
    cursor = 0
    for c in sorted(citations, key=lambda c: c.start_index):
        if c.start_index < cursor or c.end_index > len(text):
            continue
        if c.start_index > cursor:
            segments.append(Segment(text[cursor : c.start_index], cursor, c.start_index))
        segments.append(
            Segment(
                text[c.start_index : c.end_index],
                c.start_index,
                c.end_index,
                citation_id=c.id,
                status=c.status.value,
            )
        )
        cursor = c.end_index
    if cursor < len(text):
        segments.append(Segment(text[cursor:], cursor, len(text)))
    return segments

"""Correction applicator — splices a superseding citation into the text."""

from __future__ import annotations

from lexicite.errors import StaleCitationError
from lexicite.models.citation import Citation
from lexicite.orchestrator.extractor import has_case_name


def replacement_text(citation: Citation, new_citation: str, new_case_name: str | None) -> str:
    """The text that replaces the citation's span.

    A span that already carried the case name gets the new name as well;
    a bare reporter citation is replaced by the bare new citation.
    """
    new_citation = new_citation.strip()
    if new_case_name and has_case_name(citation.original_text):
        return f"{new_case_name.strip()}, {new_citation}"
    return new_citation


def apply_correction(
    text: str, citation: Citation, new_citation: str, new_case_name: str | None = None
) -> str:
    """Return ``text`` with the citation's ``[start, end)`` span replaced.

    Offsets of later citations are not adjusted here; the caller re-extracts.
    Raises ``StaleCitationError`` when the span no longer holds the citation.
    """
    if not new_citation or not new_citation.strip():
        raise ValueError("replacement citation is empty")
    start, end = citation.start_index, citation.end_index
    if end > len(text) or text[start:end] != citation.original_text:
        raise StaleCitationError(
            f"citation {citation.id} no longer matches the text at {start}:{end}"
        )
    return text[:start] + replacement_text(citation, new_citation, new_case_name) + text[end:]

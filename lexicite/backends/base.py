"""Protocols for the external verification collaborators."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from lexicite.models.verification import (
    AuthorityLookupResult,
    VerificationMode,
    VerificationResult,
)


@runtime_checkable
class CitationVerifier(Protocol):
    """Interface for the AI verifier.

    Implementations raise ``TransportError`` when no judgment could be made
    and must never let a malformed payload escape as a parse exception.
    """

    name: str

    async def verify(self, citation_text: str, mode: VerificationMode) -> VerificationResult:
        ...


@runtime_checkable
class AuthorityLookup(Protocol):
    """Interface for the authority-database lookup."""

    name: str

    async def lookup(self, citation_text: str, credential: str) -> AuthorityLookupResult:
        ...

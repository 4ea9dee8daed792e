"""Shared stubs for the verification collaborators."""

from __future__ import annotations

import asyncio

import pytest

from lexicite.errors import TransportError
from lexicite.models.citation import LegalStatus
from lexicite.models.verification import (
    AuthorityLookupResult,
    VerificationMode,
    VerificationResult,
)

ROE_TEXT = "See Roe v. Wade, 410 U.S. 113 (1973)."

BRIEF_TEXT = (
    "Previously, the primary authority was Roe v. Wade, 410 U.S. 113 (1973).\n"
    "However, modern briefs must account for the ruling in "
    "Dobbs v. Jackson Women's Health Organization, 597 U.S. 215 (2022).\n"
    "For criminal procedure, see Miranda v. Arizona, 384 U.S. 436 (1966)."
)


def good_result(case_name: str = "Some Case", **kwargs) -> VerificationResult:
    fields = {
        "is_valid": True,
        "reason": "Real and good law.",
        "case_name": case_name,
        "legal_status": LegalStatus.GOOD,
        "confidence": 90,
    }
    fields.update(kwargs)
    return VerificationResult(**fields)


class StubVerifier:
    """Returns canned results keyed by citation text.

    A value may be a VerificationResult or an exception instance to raise.
    If ``gate`` is set, every call waits on it first; ``gates`` holds
    per-citation events that only hold back the matching call.
    """

    name = "StubVerifier"

    def __init__(
        self,
        results=None,
        default=None,
        gate: asyncio.Event | None = None,
        gates: dict[str, asyncio.Event] | None = None,
    ) -> None:
        self.results = results or {}
        self.default = default or good_result()
        self.gate = gate
        self.gates = gates or {}
        self.calls: list[tuple[str, VerificationMode]] = []

    async def verify(self, citation_text: str, mode: VerificationMode) -> VerificationResult:
        self.calls.append((citation_text, mode))
        if self.gate is not None:
            await self.gate.wait()
        if citation_text in self.gates:
            await self.gates[citation_text].wait()
        outcome = self.results.get(citation_text, self.default)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class StubLookup:
    name = "StubLookup"

    def __init__(self, results=None) -> None:
        self.results = results or {}
        self.calls: list[tuple[str, str]] = []

    async def lookup(self, citation_text: str, credential: str) -> AuthorityLookupResult:
        self.calls.append((citation_text, credential))
        outcome = self.results.get(citation_text, AuthorityLookupResult.not_found())
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def verifier() -> StubVerifier:
    return StubVerifier()


@pytest.fixture
def lookup() -> StubLookup:
    return StubLookup()


def transport_failure() -> TransportError:
    return TransportError("Network Error: connection refused")

"""Verification dispatcher — fans citations out to the verifiers."""

from __future__ import annotations

import asyncio
import logging

from lexicite.backends.base import AuthorityLookup, CitationVerifier
from lexicite.config import VerificationConfig
from lexicite.errors import TransportError
from lexicite.models.citation import Citation, CitationSource, CitationStatus
from lexicite.models.report import Finding, ReportEntry
from lexicite.models.verification import AuthorityLookupResult, VerificationResult
from lexicite.orchestrator.aggregation import compute_stats
from lexicite.orchestrator.collection import CitationCollection

logger = logging.getLogger(__name__)

AUTHORITY_SOURCE_TITLE = "Authoritative Opinion (CL)"


def merge_results(
    citation: Citation,
    result: VerificationResult,
    authority: AuthorityLookupResult | None = None,
) -> Citation:
    """Combine the AI verdict and the optional database result into one record.

    The AI verdict decides ``status``; the database only enriches the name,
    the sources and the verified flag, and contributes an error note.
    """
    reason = result.reason
    if authority is not None and authority.error:
        reason = f"{reason} (Authority Error: {authority.error})"

    found = authority is not None and authority.found
    sources = list(result.sources)
    if found and authority.absolute_url:
        sources.insert(0, CitationSource(uri=authority.absolute_url, title=AUTHORITY_SOURCE_TITLE))

    return citation.evolve(
        status=CitationStatus.VALID if result.is_valid else CitationStatus.HALLUCINATION,
        case_name=(authority.case_name if found and authority.case_name else None)
        or result.case_name,
        reason=reason,
        legal_status=result.legal_status,
        confidence=result.confidence,
        area_of_law=result.area_of_law,
        superseding_case=result.superseding_case,
        sources=sources,
        is_court_listener_verified=found,
        court_listener_id=authority.id if found else None,
    )


def build_report(citations: list[Citation], document_title: str) -> ReportEntry:
    return ReportEntry(
        document_title=document_title,
        stats=compute_stats(citations),
        findings=tuple(
            Finding(
                text=c.original_text,
                status=c.status.value,
                case_name=c.case_name,
                legal_status=c.legal_status.value if c.legal_status else None,
                area_of_law=c.area_of_law,
            )
            for c in citations
        ),
    )


class VerificationOrchestrator:
    """Runs one verification pipeline per citation, concurrently."""

    def __init__(self, verifier: CitationVerifier, lookup: AuthorityLookup | None = None) -> None:
        self.verifier = verifier
        self.lookup = lookup

    async def verify_batch(
        self,
        collection: CitationCollection,
        config: VerificationConfig,
        document_title: str = "",
    ) -> ReportEntry:
        """Verify every pending citation and archive the outcome.

        Each pipeline publishes into ``collection`` as it progresses. The
        report is built once all pipelines have settled, from the terminal
        records of this batch.
        """
        if config.rerun_all:
            for c in collection.snapshot():
                collection.merge(c.id, status=CitationStatus.PENDING)

        targets = collection.with_status(CitationStatus.PENDING)
        logger.info(
            "Verifying %d citation(s) in %s mode (lookup %s)",
            len(targets),
            config.effective_mode.value,
            "on" if config.lookup_active and self.lookup else "off",
        )

        tasks = [self._run_pipeline(collection, c, config) for c in targets]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        settled: list[Citation] = []
        for citation, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Pipeline for %r failed: %s", citation.original_text, outcome)
                settled.append(citation.evolve(status=CitationStatus.ERROR, reason="System Error"))
            else:
                settled.append(outcome)

        report = build_report(settled, document_title)
        logger.info(
            "Batch finished: %d valid, %d invalid of %d",
            report.stats.valid,
            report.stats.invalid,
            report.stats.total,
        )
        return report

    async def _run_pipeline(
        self, collection: CitationCollection, citation: Citation, config: VerificationConfig
    ) -> Citation:
        """Run the verifier and, if warranted, the lookup for one citation."""
        collection.merge(citation.id, status=CitationStatus.CHECKING)
        checking = citation.evolve(status=CitationStatus.CHECKING)

        try:
            result = await self.verifier.verify(citation.original_text, config.effective_mode)
        except TransportError as exc:
            logger.error("%s failed for %r: %s", self.verifier.name, citation.original_text, exc)
            return self._publish(
                collection, checking.evolve(status=CitationStatus.ERROR, reason=str(exc))
            )
        except Exception:
            logger.exception("%s crashed for %r", self.verifier.name, citation.original_text)
            return self._publish(
                collection, checking.evolve(status=CitationStatus.ERROR, reason="System Error")
            )

        authority = None
        if result.is_valid and config.lookup_active and self.lookup is not None:
            authority = await self._lookup(citation.original_text, config.court_listener_token)

        return self._publish(collection, merge_results(checking, result, authority))

    async def _lookup(self, citation_text: str, credential: str) -> AuthorityLookupResult:
        try:
            authority = await self.lookup.lookup(citation_text, credential)
        except Exception as exc:
            logger.warning("%s lookup raised for %r: %s", self.lookup.name, citation_text, exc)
            return AuthorityLookupResult.not_found(f"Lookup failed: {exc}")
        if authority.error:
            logger.warning("%s: %s (%r)", self.lookup.name, authority.error, citation_text)
        return authority

    def _publish(self, collection: CitationCollection, citation: Citation) -> Citation:
        collection.put(citation)
        return citation

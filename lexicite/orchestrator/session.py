"""Document session — the editable text buffer and everything derived from it."""

from __future__ import annotations

import asyncio
import logging

from lexicite.config import VerificationConfig
from lexicite.errors import PatternError
from lexicite.models.citation import Citation
from lexicite.models.report import AnalysisStats, ReportEntry
from lexicite.orchestrator import corrections
from lexicite.orchestrator.aggregation import (
    CitationFilter,
    SortOption,
    citation_view,
    compute_stats,
)
from lexicite.orchestrator.collection import CitationCollection
from lexicite.orchestrator.dispatcher import VerificationOrchestrator
from lexicite.orchestrator.extractor import Segment, extract_citations, highlight_segments
from lexicite.orchestrator.journal import ArchiveSync, ReportJournal
from lexicite.orchestrator.reconciler import reconcile

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Brief"


class DocumentSession:
    """Owns the text, its citation collection and the verification config.

    Every text change runs a full extraction and reconciles the result into
    the collection, so the collection always mirrors the latest text.
    """

    def __init__(
        self,
        orchestrator: VerificationOrchestrator,
        config: VerificationConfig | None = None,
        journal: ReportJournal | None = None,
        sync: ArchiveSync | None = None,
        text: str = "",
        title: str = DEFAULT_TITLE,
        pattern: str | None = None,
        drift_tolerance: int = 0,
    ) -> None:
        self.orchestrator = orchestrator
        self.config = config or VerificationConfig()
        self.journal = journal if journal is not None else ReportJournal()
        self.sync = sync if sync is not None else ArchiveSync(url="")
        self.collection = CitationCollection()
        self.title = title
        self.pattern = pattern
        self.drift_tolerance = drift_tolerance
        self.no_citations_found = False
        self._text = text
        self._batch: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self.analyze()

    @property
    def text(self) -> str:
        return self._text

    @property
    def is_verifying(self) -> bool:
        return self._batch is not None and not self._batch.done()

    # -- editing --

    def set_text(self, text: str) -> list[Citation]:
        self._text = text
        return self.analyze()

    def set_title(self, title: str) -> None:
        self.title = title.strip() or DEFAULT_TITLE

    def set_pattern(self, pattern: str | None) -> list[Citation]:
        self.pattern = pattern or None
        return self.analyze()

    def reconfigure(self, **changes) -> VerificationConfig:
        """Swap in a new config; a running batch keeps its own snapshot."""
        self.config = self.config.updated(**changes)
        return self.config

    def analyze(self) -> list[Citation]:
        """Re-extract citations from the current text and reconcile them."""
        try:
            occurrences = extract_citations(self._text, self.pattern)
        except PatternError as exc:
            logger.warning("Citation pattern rejected, showing no citations: %s", exc)
            occurrences = []

        citations = reconcile(self.collection.snapshot(), occurrences, self.drift_tolerance)
        self.collection.replace_all(citations)
        self.no_citations_found = not citations
        return citations

    def apply_correction(
        self, citation_id: str, new_citation: str, new_case_name: str | None = None
    ) -> str:
        """Replace a citation with its suggested superseding authority.

        The corrected record is discarded and the text re-extracted; the new
        citation comes back as a fresh pending record while untouched
        citations before the edit keep their verification state.
        """
        citation = self.collection.get(citation_id)
        if citation is None:
            raise KeyError(citation_id)

        new_text = corrections.apply_correction(self._text, citation, new_citation, new_case_name)
        logger.info(
            "Replacing %r with %r (%s)", citation.original_text, new_citation, new_case_name or "-"
        )
        self.collection.remove(citation_id)
        self.set_text(new_text)
        return new_text

    # -- verification --

    async def verify(self) -> ReportEntry:
        """Run one verification batch over the pending citations."""
        self.analyze()
        config = self.config
        entry = await self.orchestrator.verify_batch(self.collection, config, self.title)
        self.journal.record(entry)
        if self.sync.enabled:
            self._spawn(self.sync.send_report(entry))
        return entry

    def start_verification(self) -> asyncio.Task:
        """Start a batch in the background. Only one batch runs at a time."""
        if self.is_verifying:
            raise RuntimeError("A verification batch is already running")
        self._batch = asyncio.create_task(self.verify())
        return self._batch

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # -- views --

    def stats(self) -> AnalysisStats:
        return compute_stats(self.collection)

    def view(
        self, view: CitationFilter = CitationFilter.ALL, order: SortOption = SortOption.ORIGINAL
    ) -> list[Citation]:
        return citation_view(self.collection, view, order)

    def highlights(self) -> list[Segment]:
        return highlight_segments(self._text, self.collection)

"""Citation collection — an arena of citation records keyed by id."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Iterator

from lexicite.models.citation import Citation, CitationStatus

logger = logging.getLogger(__name__)

Listener = Callable[[str, Citation], None]


class CitationCollection:
    """Ordered store of citation records.

    All writes after a snapshot is installed go through ``merge``/``put``,
    which address a record by id and silently do nothing when the id is gone.
    Pipelines that finish after their citation was removed are thus harmless.
    Listeners are called synchronously with ``(event, citation)`` where event
    is ``"update"`` or ``"remove"``. ``replace_all`` announces dropped records
    as removals and new or moved records as updates.
    """

    def __init__(self, citations: Iterable[Citation] = ()) -> None:
        self._records: dict[str, Citation] = {}
        self._listeners: list[Listener] = []
        self.replace_all(citations)

    # -- reads --

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Citation]:
        return iter(list(self._records.values()))

    def __contains__(self, citation_id: object) -> bool:
        return citation_id in self._records

    def get(self, citation_id: str) -> Citation | None:
        return self._records.get(citation_id)

    def snapshot(self) -> list[Citation]:
        return list(self._records.values())

    def with_status(self, *statuses: CitationStatus) -> list[Citation]:
        return [c for c in self._records.values() if c.status in statuses]

    # -- writes --

    def replace_all(self, citations: Iterable[Citation]) -> None:
        """Install the result of a reconciliation pass, in document order."""
        records: dict[str, Citation] = {}
        seen_keys: set[tuple[str, int]] = set()
        for c in sorted(citations, key=lambda c: c.start_index):
            if c.id in records or c.key in seen_keys:
                raise ValueError(f"duplicate citation record for {c.key!r}")
            records[c.id] = c
            seen_keys.add(c.key)
        previous = self._records
        for citation_id in previous.keys() - records.keys():
            self._notify("remove", previous[citation_id])
        self._records = records
        for c in records.values():
            if previous.get(c.id) != c:
                self._notify("update", c)

    def merge(self, citation_id: str, **changes) -> Citation | None:
        """Apply field changes to one record and publish it."""
        current = self._records.get(citation_id)
        if current is None:
            logger.debug("Dropping update for removed citation %s", citation_id)
            return None
        updated = current.evolve(**changes)
        self._records[citation_id] = updated
        self._notify("update", updated)
        return updated

    def put(self, citation: Citation) -> Citation | None:
        """Replace a record wholesale, keeping the span it currently has."""
        current = self._records.get(citation.id)
        if current is None:
            logger.debug("Dropping write for removed citation %s", citation.id)
            return None
        updated = citation.evolve(
            original_text=current.original_text,
            start_index=current.start_index,
            end_index=current.end_index,
        )
        self._records[citation.id] = updated
        self._notify("update", updated)
        return updated

    def remove(self, citation_id: str) -> Citation | None:
        removed = self._records.pop(citation_id, None)
        if removed is not None:
            self._notify("remove", removed)
        return removed

    # -- observers --

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str, citation: Citation) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, citation)
            except Exception:
                logger.exception("Citation listener failed on %s", event)

"""Tests for the citation collection arena."""

from __future__ import annotations

import pytest

from lexicite.models.citation import Citation, CitationStatus
from lexicite.orchestrator.collection import CitationCollection


def _citation(text: str, start: int) -> Citation:
    return Citation(original_text=text, start_index=start, end_index=start + len(text))


def test_merge_updates_and_notifies() -> None:
    c = _citation("1 U.S. 1", 0)
    collection = CitationCollection([c])
    events = []
    collection.subscribe(lambda event, rec: events.append((event, rec.status)))

    updated = collection.merge(c.id, status=CitationStatus.CHECKING)

    assert updated.status is CitationStatus.CHECKING
    assert collection.get(c.id).status is CitationStatus.CHECKING
    assert events == [("update", CitationStatus.CHECKING)]


def test_writes_to_missing_ids_are_dropped() -> None:
    c = _citation("1 U.S. 1", 0)
    collection = CitationCollection()

    assert collection.merge(c.id, status=CitationStatus.VALID) is None
    assert collection.put(c) is None
    assert collection.remove(c.id) is None
    assert len(collection) == 0


def test_replace_all_orders_by_position_and_rejects_duplicates() -> None:
    late, early = _citation("2 U.S. 2", 20), _citation("1 U.S. 1", 0)
    collection = CitationCollection([late, early])

    assert [c.id for c in collection] == [early.id, late.id]
    with pytest.raises(ValueError):
        collection.replace_all([early, _citation("1 U.S. 1", 0)])


def test_replace_all_announces_removed_records() -> None:
    a, b = _citation("1 U.S. 1", 0), _citation("2 U.S. 2", 20)
    collection = CitationCollection([a, b])
    removed = []
    collection.subscribe(lambda event, rec: event == "remove" and removed.append(rec.id))

    collection.replace_all([a])

    assert removed == [b.id]


def test_put_keeps_current_span() -> None:
    c = _citation("1 U.S. 1", 0)
    collection = CitationCollection([c])
    moved = c.evolve(start_index=5, end_index=13, status=CitationStatus.VALID)

    collection.put(moved)

    stored = collection.get(c.id)
    assert stored.status is CitationStatus.VALID
    assert stored.start_index == 0


def test_unsubscribe_and_failing_listener() -> None:
    c = _citation("1 U.S. 1", 0)
    collection = CitationCollection([c])
    seen = []

    def boom(event, rec):
        raise RuntimeError("listener broke")

    collection.subscribe(boom)
    unsubscribe = collection.subscribe(lambda event, rec: seen.append(event))
    collection.merge(c.id, status=CitationStatus.CHECKING)
    unsubscribe()
    collection.merge(c.id, status=CitationStatus.VALID)

    assert seen == ["update"]
    assert collection.get(c.id).status is CitationStatus.VALID


def test_replace_all_announces_new_and_moved_records() -> None:
    a, b = _citation("1 U.S. 1", 0), _citation("2 U.S. 2", 20)
    collection = CitationCollection([a, b])
    events = []
    collection.subscribe(lambda event, rec: events.append((event, rec.id)))

    fresh = _citation("3 U.S. 3", 40)
    moved = b.evolve(start_index=22, end_index=30)
    collection.replace_all([a, moved, fresh])

    assert events == [("update", b.id), ("update", fresh.id)]

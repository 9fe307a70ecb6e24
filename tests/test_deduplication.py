"""Tests for EdgeDeduplicator."""

from mind_canvas.deduplication import EdgeDeduplicator, reconcile
from mind_canvas.node import Edge


def test_reconcile_no_duplicates():
    edges = [Edge("a", "b"), Edge("a", "c"), Edge("b", "d")]
    assert reconcile(edges) == edges


def test_reconcile_keeps_first_seen():
    """Test that a duplicate (source, target) pair collapses to the first edge."""
    engine = EdgeDeduplicator()
    first = Edge("parent", "child", id="edge-parent-child")
    second = Edge("parent", "child", id="edge-parent-child-2")
    other = Edge("parent", "sibling")

    result = engine.reconcile([first, other, second])

    assert result == [first, other]
    assert engine.total_dropped == 1


def test_reconcile_direction_matters():
    edges = [Edge("a", "b"), Edge("b", "a")]
    assert reconcile(edges) == edges


def test_reconcile_skips_none_and_empty():
    assert reconcile([]) == []
    assert reconcile([None, Edge("a", "b"), None]) == [Edge("a", "b")]


def test_reconcile_is_idempotent():
    edges = [Edge("a", "b"), Edge("a", "b"), Edge("a", "c"), Edge("a", "c")]
    once = reconcile(edges)
    assert reconcile(once) == once
    assert len(once) == 2


def test_total_dropped_accumulates():
    engine = EdgeDeduplicator()
    engine.reconcile([Edge("a", "b"), Edge("a", "b")])
    engine.reconcile([Edge("x", "y"), Edge("x", "y"), Edge("x", "y")])
    assert engine.total_dropped == 3


def test_find_duplicates():
    engine = EdgeDeduplicator()
    edges = [Edge("a", "b"), Edge("a", "c"), Edge("a", "b", id="again")]

    duplicates = engine.find_duplicates(edges)

    assert list(duplicates) == [("a", "b")]
    assert [e.id for e in duplicates[("a", "b")]] == ["edge-a-b", "again"]
    assert engine.total_dropped == 0

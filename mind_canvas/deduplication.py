"""Edge reconciliation.

Collapses edges that share a (source, target) pair so that racing
generation flows connecting the same parent and child leave exactly one
edge behind.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mind_canvas.node import Edge


class EdgeDeduplicator:
    """Removes duplicate edges from an edge list.

    Pure with respect to the graph: it only looks at edges, never at
    node state.
    """

    def __init__(self) -> None:
        self.total_dropped = 0

    def find_duplicates(self, edges: Iterable[Edge]) -> dict[tuple[str, str], list[Edge]]:
        """Group edges by (source, target) and keep only groups with repeats.

        Args:
            edges: Edges to inspect

        Returns:
            Mapping of (source, target) -> all edges sharing that pair
        """
        groups: dict[tuple[str, str], list[Edge]] = {}
        for edge in edges:
            if edge is None:
                continue
            groups.setdefault((edge.source, edge.target), []).append(edge)
        return {key: group for key, group in groups.items() if len(group) > 1}

    def reconcile(self, edges: Iterable[Edge]) -> list[Edge]:
        """Keep the first edge seen for each (source, target) pair.

        Args:
            edges: Edge list, possibly containing duplicates

        Returns:
            Edges in first-seen order with one edge per pair
        """
        seen: set[tuple[str, str]] = set()
        unique: list[Edge] = []
        total = 0
        for edge in edges:
            if edge is None:
                continue
            total += 1
            key = (edge.source, edge.target)
            if key in seen:
                continue
            seen.add(key)
            unique.append(edge)

        dropped = total - len(unique)
        if dropped:
            self.total_dropped += dropped
            logger.warning(f"Removed {dropped} duplicate edge(s) ({total} -> {len(unique)})")
        return unique

    def __repr__(self) -> str:
        return f"EdgeDeduplicator(total_dropped={self.total_dropped})"


def reconcile(edges: Iterable[Edge]) -> list[Edge]:
    """Deduplicate edges without keeping statistics."""
    return EdgeDeduplicator().reconcile(edges)

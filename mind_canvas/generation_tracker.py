"""Idempotency guard for child generation.

Records the IDs of nodes that have triggered (or attempted) expansion.
Callers mark a node synchronously, before awaiting anything, so a
second trigger for the same node scheduled right behind the first sees
the mark and backs off.
"""

from __future__ import annotations

from loguru import logger


class GenerationTracker:
    """Set of node IDs that have already produced children."""

    def __init__(self) -> None:
        self._generated: set[str] = set()

    def has_generated(self, node_id: str) -> bool:
        return node_id in self._generated

    def mark_generated(self, node_id: str) -> None:
        """Record that a node has triggered expansion.

        Marks are never removed except by ``clear``; a failed expansion is
        not retried automatically.
        """
        self._generated.add(node_id)
        logger.debug(f"Marked {node_id} as generated ({len(self._generated)} tracked)")

    def claim(self, node_id: str) -> bool:
        """Check and mark in one step.

        Returns:
            True if the caller won the right to expand the node, False if
            it was already marked
        """
        if node_id in self._generated:
            logger.info(f"Node {node_id} has already generated children, skipping")
            return False
        self.mark_generated(node_id)
        return True

    def clear(self) -> None:
        self._generated.clear()

    @property
    def generated_ids(self) -> frozenset[str]:
        return frozenset(self._generated)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._generated

    def __len__(self) -> int:
        return len(self._generated)

    def __repr__(self) -> str:
        return f"GenerationTracker(tracked={len(self._generated)})"

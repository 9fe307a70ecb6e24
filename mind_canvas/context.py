"""Ancestor context for generation requests.

Walks parent edges from a node up to its root and collects each node's
question/answer text, ordered root first.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from mind_canvas.node import FollowUpPayload, ResponsePayload, TopicPayload

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mind_canvas.graph_store import GraphStore
    from mind_canvas.node import Edge, Node


def node_context_lines(node: Node) -> list[str]:
    """Context lines contributed by a single node."""
    payload = node.payload
    lines: list[str] = []
    if isinstance(payload, ResponsePayload):
        if payload.query:
            lines.append(f"Question: {payload.query}")
        if payload.content:
            lines.append(f"Answer: {payload.content}")
    elif isinstance(payload, FollowUpPayload):
        if payload.question:
            lines.append(f"Question: {payload.question}")
        if payload.answer:
            lines.append(f"Answer: {payload.answer}")
    elif isinstance(payload, TopicPayload):
        lines.append(f"Topic: {payload.topic}")
        if payload.explanation:
            lines.append(f"Explanation: {payload.explanation}")
    return lines


class AncestorContextBuilder:
    """Reads the graph store to build root-first ancestor context."""

    def __init__(self, store: GraphStore) -> None:
        self.store = store

    def _parent_edge(self, node: Node, edges: tuple[Edge, ...]) -> Edge | None:
        if node.parent_edge_id:
            for edge in edges:
                if edge.id == node.parent_edge_id and edge.target == node.id:
                    return edge
        for edge in edges:
            if edge.target == node.id:
                return edge
        return None

    def ancestors(self, node_id: str) -> list[Node]:
        """Nodes from the root down to (and including) ``node_id``.

        Stops at a missing node or at the first revisit, so a malformed
        graph with a cycle still terminates.
        """
        edges = self.store.get_edges()
        chain: list[Node] = []
        visited: set[str] = set()
        current_id: str | None = node_id

        while current_id is not None:
            if current_id in visited:
                logger.warning(f"Cycle detected at {current_id} while walking ancestors of {node_id}")
                break
            visited.add(current_id)

            node = self.store.get_node(current_id)
            if node is None:
                break
            chain.append(node)

            parent_edge = self._parent_edge(node, edges)
            current_id = parent_edge.source if parent_edge else None

        chain.reverse()
        return chain

    def build_context(self, node_id: str) -> list[str]:
        """Build ordered context for a generation request.

        Args:
            node_id: Node to build context for

        Returns:
            Context strings, root first, each ancestor exactly once
        """
        context: list[str] = []
        for node in self.ancestors(node_id):
            context.extend(node_context_lines(node))
        return context

    def depth(self, node_id: str) -> int:
        """Number of edges between the node and its root (0 for a root)."""
        return max(len(self.ancestors(node_id)) - 1, 0)

    def path_to_root(self, node_id: str) -> set[str]:
        """IDs of every edge on any path from the node up to a root.

        Used to highlight the trail of a hovered node.
        """
        edges = self.store.get_edges()
        edge_ids: set[str] = set()
        visited: set[str] = set()
        stack = [node_id]

        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            for edge in edges:
                if edge.target == current:
                    edge_ids.add(edge.id)
                    stack.append(edge.source)

        return edge_ids

    def extract_node_contents(self, node_ids: Iterable[str]) -> list[str]:
        """Question/answer blocks for synthesis.

        Only Response nodes and answered FollowUp nodes contribute.
        """
        contents: list[str] = []
        for node_id in node_ids:
            node = self.store.get_node(node_id)
            if node is None:
                continue
            payload = node.payload
            if isinstance(payload, ResponsePayload):
                contents.append(f"Question: {payload.query}\nAnswer: {payload.content}")
            elif isinstance(payload, FollowUpPayload) and payload.has_been_answered:
                contents.append(f"Question: {payload.question}\nAnswer: {payload.answer}")
        return contents

    def __repr__(self) -> str:
        return f"AncestorContextBuilder(store={self.store!r})"

"""Authoritative in-memory store of canvas nodes and edges.

Readers get immutable tuple snapshots. Every mutation builds new tuples
and swaps them in whole, so a snapshot taken before a batch never sees
part of that batch.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from loguru import logger

from mind_canvas.node import Edge, Node

if TYPE_CHECKING:
    from collections.abc import Iterable


ChangeListener = Callable[[tuple[Node, ...], tuple[Edge, ...]], None]


class GraphStore:
    """Single-writer store of the canvas graph.

    Node IDs are unique: a batch entry whose ID already exists is skipped.
    Edges must reference nodes that exist once the batch is applied;
    dangling edges are dropped.
    """

    def __init__(self, on_change: ChangeListener | None = None) -> None:
        """Initialize an empty store.

        Args:
            on_change: Optional listener called with the new snapshots after
                every mutation (e.g. to trigger a re-render)
        """
        self._nodes: tuple[Node, ...] = ()
        self._edges: tuple[Edge, ...] = ()
        self._index: dict[str, Node] = {}
        self.on_change = on_change

    def get_nodes(self) -> tuple[Node, ...]:
        return self._nodes

    def get_edges(self) -> tuple[Edge, ...]:
        return self._edges

    def get_node(self, node_id: str) -> Node | None:
        """Get a node by ID.

        Args:
            node_id: ID of the node to retrieve

        Returns:
            Node if found, None otherwise
        """
        return self._index.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._index

    def incoming_edges(self, node_id: str) -> list[Edge]:
        return [edge for edge in self._edges if edge.target == node_id]

    def children_of(self, node_id: str) -> list[Node]:
        """Get child nodes in edge order."""
        return [
            self._index[edge.target]
            for edge in self._edges
            if edge.source == node_id and edge.target in self._index
        ]

    def add_nodes(self, batch: Iterable[Node]) -> list[Node]:
        """Append a batch of nodes.

        Args:
            batch: Nodes to add

        Returns:
            The nodes actually added (duplicates skipped)
        """
        added, _ = self.add(batch, ())
        return added

    def add_edges(self, batch: Iterable[Edge]) -> list[Edge]:
        """Append a batch of edges between existing nodes.

        Args:
            batch: Edges to add

        Returns:
            The edges actually added (dangling edges dropped)
        """
        _, added = self.add((), batch)
        return added

    def add(self, nodes: Iterable[Node], edges: Iterable[Edge]) -> tuple[list[Node], list[Edge]]:
        """Append nodes and the edges that connect them in one mutation.

        Args:
            nodes: New nodes
            edges: New edges; endpoints may be existing nodes or nodes from
                this batch

        Returns:
            Tuple of (added_nodes, added_edges)
        """
        index = dict(self._index)
        new_nodes: list[Node] = []
        # IDs rejected because a node with that ID was already stored
        rejected: set[str] = set()
        for node in nodes:
            if node.id in index:
                logger.warning(f"Skipping node with duplicate id {node.id}")
                if node.id in self._index:
                    rejected.add(node.id)
                continue
            index[node.id] = node
            new_nodes.append(node)

        new_edges: list[Edge] = []
        for edge in edges:
            if edge.source not in index or edge.target not in index:
                logger.warning(
                    f"Dropping dangling edge {edge.id} ({edge.source} -> {edge.target})"
                )
                continue
            if edge.target in rejected:
                logger.warning(
                    f"Dropping edge {edge.id}: target {edge.target} was rejected as a duplicate"
                )
                continue
            new_edges.append(edge)

        if not new_nodes and not new_edges:
            return [], []

        self._index = index
        self._nodes = self._nodes + tuple(new_nodes)
        self._edges = self._edges + tuple(new_edges)
        self._notify()
        return new_nodes, new_edges

    def update_node(self, node: Node) -> Node | None:
        """Replace a stored node with an updated copy carrying the same ID.

        Args:
            node: Updated node

        Returns:
            The stored node, or None if no node with that ID exists
        """
        if node.id not in self._index:
            logger.warning(f"Cannot update missing node {node.id}")
            return None

        self._nodes = tuple(node if n.id == node.id else n for n in self._nodes)
        self._index = {**self._index, node.id: node}
        self._notify()
        return node

    def replace_edges(self, edges: Iterable[Edge]) -> None:
        self._edges = tuple(edges)
        self._notify()

    def replace_all(self, nodes: Iterable[Node], edges: Iterable[Edge]) -> None:
        """Swap in a complete new graph (e.g. when loading a saved canvas).

        Args:
            nodes: Full node list; later duplicates of an ID are dropped
            edges: Full edge list; dangling edges are dropped
        """
        self._nodes = ()
        self._edges = ()
        self._index = {}
        self.add(nodes, edges)
        # add() skips notification for an empty graph
        if not self._nodes:
            self._notify()

    def clear(self) -> None:
        self.replace_all((), ())

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self._nodes, self._edges)

    def __len__(self) -> int:
        """Return the number of nodes in the store."""
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"GraphStore(nodes={len(self._nodes)}, edges={len(self._edges)})"

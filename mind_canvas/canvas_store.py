"""LanceDB persistence for canvases and synthesis artifacts.

Each canvas is one row. Nodes, edges and summaries are stored as JSON
strings alongside the scalar columns.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

import lancedb
import pyarrow as pa
from loguru import logger

from mind_canvas.exceptions import (
    CanvasNotFoundError,
    NodeNotFoundError,
    SubResourceNotFoundError,
)
from mind_canvas.node import Attachment, Edge, Node, Source
from mind_canvas.orchestrator import SynthesisArtifact

if TYPE_CHECKING:
    from collections.abc import Iterable

    import pandas as pd


CANVAS_SCHEMA = pa.schema([
    pa.field("id", pa.string()),
    pa.field("title", pa.string()),
    pa.field("initial_query", pa.string()),
    pa.field("nodes", pa.string()),  # JSON list of node dicts
    pa.field("edges", pa.string()),  # JSON list of edge dicts
    pa.field("summaries", pa.string()),  # JSON list of summary dicts
    pa.field("created_at", pa.string()),
    pa.field("updated_at", pa.string()),
])

ARTIFACT_SCHEMA = pa.schema([
    pa.field("id", pa.string()),
    pa.field("canvas_id", pa.string()),
    pa.field("title", pa.string()),
    pa.field("content", pa.string()),
    pa.field("selected_nodes", pa.string()),  # JSON list of node ids
    pa.field("custom_prompt", pa.string()),
    pa.field("is_placeholder", pa.bool_()),
    pa.field("created_at", pa.string()),
])

TITLE_MAX_LENGTH = 50


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _quote(value: str) -> str:
    return value.replace("'", "''")


@dataclass(frozen=True)
class Summary:
    """Summary of a whole canvas."""

    title: str
    content: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Summary:
        return cls(
            title=data["title"],
            content=data["content"],
            id=data.get("id") or uuid.uuid4().hex,
            created_at=data.get("created_at") or _now(),
        )


@dataclass(frozen=True)
class CanvasRecord:
    """A persisted canvas."""

    id: str
    title: str
    initial_query: str
    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()
    summaries: tuple[Summary, ...] = ()
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    def get_node(self, node_id: str) -> Node | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "initial_query": self.initial_query,
            "nodes": json.dumps([node.to_dict() for node in self.nodes]),
            "edges": json.dumps([edge.to_dict() for edge in self.edges]),
            "summaries": json.dumps([summary.to_dict() for summary in self.summaries]),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_row(cls, row: Any) -> CanvasRecord:
        return cls(
            id=row["id"],
            title=row["title"],
            initial_query=row["initial_query"],
            nodes=tuple(Node.from_dict(data) for data in json.loads(row["nodes"])),
            edges=tuple(Edge.from_dict(data) for data in json.loads(row["edges"])),
            summaries=tuple(Summary.from_dict(data) for data in json.loads(row["summaries"])),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def __repr__(self) -> str:
        return f"CanvasRecord(id={self.id}, title={self.title!r}, nodes={len(self.nodes)})"


class CanvasStore:
    """LanceDB wrapper for canvas persistence.

    Updates are read-modify-write: the row is deleted and re-added with
    the new values.
    """

    def __init__(
        self,
        db_path: str | Path = "./data/canvases",
        canvas_table: str = "canvases",
        artifact_table: str = "artifacts",
    ) -> None:
        """Initialize the store.

        Args:
            db_path: Path to LanceDB database directory
            canvas_table: Name of the canvas table to use/create
            artifact_table: Name of the artifact table to use/create
        """
        self.db_path = Path(db_path)
        self.db_path.mkdir(parents=True, exist_ok=True)

        self.db = lancedb.connect(str(self.db_path))
        self.canvases = self._get_or_create_table(canvas_table, CANVAS_SCHEMA)
        self.artifacts = self._get_or_create_table(artifact_table, ARTIFACT_SCHEMA)

    def _get_or_create_table(self, name: str, schema: pa.Schema):
        """Get existing table or create new one."""
        try:
            return self.db.open_table(name)
        except Exception:
            logger.info(f"Creating table {name!r} in {self.db_path}")
            return self.db.create_table(name, schema=schema)

    def _canvas_rows(self) -> pd.DataFrame:
        return self.canvases.to_pandas()

    def _write(self, record: CanvasRecord) -> CanvasRecord:
        self.canvases.delete(f"id = '{_quote(record.id)}'")
        self.canvases.add([record.to_row()])
        return record

    def _touch(self, record: CanvasRecord, **changes: Any) -> CanvasRecord:
        return self._write(replace(record, updated_at=_now(), **changes))

    # ------------------------------------------------------------------
    # Canvases
    # ------------------------------------------------------------------

    def create_canvas(
        self,
        initial_query: str,
        title: str | None = None,
        nodes: Iterable[Node] = (),
        edges: Iterable[Edge] = (),
    ) -> CanvasRecord:
        """Create a canvas.

        Args:
            initial_query: Query the canvas was started from
            title: Display title (defaults to the truncated query)
            nodes: Initial nodes
            edges: Initial edges

        Returns:
            The stored record
        """
        if title is None:
            title = initial_query
            if len(title) > TITLE_MAX_LENGTH:
                title = title[:TITLE_MAX_LENGTH].rstrip() + "..."

        record = CanvasRecord(
            id=uuid.uuid4().hex,
            title=title,
            initial_query=initial_query,
            nodes=tuple(nodes),
            edges=tuple(edges),
        )
        self.canvases.add([record.to_row()])
        logger.info(f"Created canvas {record.id} with {len(record.nodes)} nodes")
        return record

    def get_canvas(self, canvas_id: str) -> CanvasRecord:
        """Get a canvas by ID.

        Raises:
            CanvasNotFoundError: If no canvas has this ID
        """
        rows = self._canvas_rows()
        filtered = rows[rows["id"] == canvas_id]
        if len(filtered) == 0:
            raise CanvasNotFoundError(f"Canvas {canvas_id} not found")
        return CanvasRecord.from_row(filtered.iloc[0])

    def list_canvases(self) -> list[CanvasRecord]:
        """All canvases, most recently updated first."""
        records = [CanvasRecord.from_row(row) for _, row in self._canvas_rows().iterrows()]
        records.sort(key=lambda record: record.updated_at, reverse=True)
        return records

    def save_graph(self, canvas_id: str, nodes: Iterable[Node], edges: Iterable[Edge]) -> CanvasRecord:
        """Replace the stored nodes and edges of a canvas."""
        record = self.get_canvas(canvas_id)
        saved = self._touch(record, nodes=tuple(nodes), edges=tuple(edges))
        logger.debug(f"Saved canvas {canvas_id}: {len(saved.nodes)} nodes, {len(saved.edges)} edges")
        return saved

    def delete_canvas(self, canvas_id: str) -> None:
        """Delete a canvas and its artifacts."""
        self.get_canvas(canvas_id)
        self.canvases.delete(f"id = '{_quote(canvas_id)}'")
        self.artifacts.delete(f"canvas_id = '{_quote(canvas_id)}'")
        logger.info(f"Deleted canvas {canvas_id}")

    def count_canvases(self) -> int:
        return len(self._canvas_rows())

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def _update_node(self, canvas_id: str, node_id: str, update: Callable[[Node], Node]) -> Node:
        record = self.get_canvas(canvas_id)
        node = record.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(f"Node {node_id} not found in canvas {canvas_id}")

        updated = update(node)
        nodes = tuple(updated if n.id == node_id else n for n in record.nodes)
        self._touch(record, nodes=nodes)
        return updated

    def update_node_content(self, canvas_id: str, node_id: str, content: str) -> Node:
        """Edit a node's body text, keeping its pre-edit original."""
        return self._update_node(canvas_id, node_id, lambda node: node.with_content(content))

    def add_attachment(self, canvas_id: str, node_id: str, attachment: Attachment) -> Node:
        return self._update_node(
            canvas_id,
            node_id,
            lambda node: replace(node, attachments=node.attachments + (attachment,)),
        )

    def remove_attachment(self, canvas_id: str, node_id: str, index: int) -> Node:
        """Remove an attachment and delete its file from disk.

        Raises:
            SubResourceNotFoundError: If the index is out of range
        """
        removed: list[Attachment] = []

        def update(node: Node) -> Node:
            if not 0 <= index < len(node.attachments):
                raise SubResourceNotFoundError(f"Attachment {index} not found on node {node_id}")
            removed.append(node.attachments[index])
            return replace(node, attachments=node.attachments[:index] + node.attachments[index + 1:])

        node = self._update_node(canvas_id, node_id, update)

        for attachment in removed:
            try:
                Path(attachment.file_path).unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not delete attachment file {attachment.file_path}: {e}")
        return node

    def add_source(self, canvas_id: str, node_id: str, source: Source) -> Node:
        return self._update_node(
            canvas_id,
            node_id,
            lambda node: replace(node, sources=node.sources + (source,)),
        )

    def remove_source(self, canvas_id: str, node_id: str, index: int) -> Node:
        """Remove a source by position.

        Raises:
            SubResourceNotFoundError: If the index is out of range
        """
        def update(node: Node) -> Node:
            if not 0 <= index < len(node.sources):
                raise SubResourceNotFoundError(f"Source {index} not found on node {node_id}")
            return replace(node, sources=node.sources[:index] + node.sources[index + 1:])

        return self._update_node(canvas_id, node_id, update)

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def add_summary(self, canvas_id: str, title: str, content: str) -> Summary:
        record = self.get_canvas(canvas_id)
        summary = Summary(title=title, content=content)
        self._touch(record, summaries=record.summaries + (summary,))
        return summary

    def get_summaries(self, canvas_id: str) -> list[Summary]:
        return list(self.get_canvas(canvas_id).summaries)

    def delete_summary(self, canvas_id: str, index: int) -> None:
        record = self.get_canvas(canvas_id)
        if not 0 <= index < len(record.summaries):
            raise SubResourceNotFoundError(f"Summary {index} not found in canvas {canvas_id}")
        self._touch(record, summaries=record.summaries[:index] + record.summaries[index + 1:])

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def save_artifact(self, artifact: SynthesisArtifact) -> SynthesisArtifact:
        """Store a synthesis artifact, replacing any with the same ID."""
        row = artifact.to_dict()
        row["canvas_id"] = artifact.canvas_id or ""
        row["custom_prompt"] = artifact.custom_prompt or ""
        row["selected_nodes"] = json.dumps(list(artifact.selected_nodes))

        self.artifacts.delete(f"id = '{_quote(artifact.id)}'")
        self.artifacts.add([row])
        logger.info(f"Saved artifact {artifact.id} for canvas {artifact.canvas_id}")
        return artifact

    def list_artifacts(self, canvas_id: str | None = None) -> list[SynthesisArtifact]:
        """Artifacts, newest first, optionally for one canvas only."""
        rows = self.artifacts.to_pandas()
        if canvas_id is not None:
            rows = rows[rows["canvas_id"] == canvas_id]

        artifacts = []
        for _, row in rows.iterrows():
            artifacts.append(
                SynthesisArtifact(
                    id=row["id"],
                    title=row["title"],
                    content=row["content"],
                    canvas_id=row["canvas_id"] or None,
                    selected_nodes=tuple(json.loads(row["selected_nodes"])),
                    custom_prompt=row["custom_prompt"] or None,
                    is_placeholder=bool(row["is_placeholder"]),
                    created_at=row["created_at"],
                )
            )
        artifacts.sort(key=lambda artifact: artifact.created_at, reverse=True)
        return artifacts

    def delete_artifact(self, artifact_id: str) -> None:
        rows = self.artifacts.to_pandas()
        if len(rows[rows["id"] == artifact_id]) == 0:
            raise SubResourceNotFoundError(f"Artifact {artifact_id} not found")
        self.artifacts.delete(f"id = '{_quote(artifact_id)}'")

    def __repr__(self) -> str:
        return f"CanvasStore(path={self.db_path}, canvases={self.count_canvases()})"

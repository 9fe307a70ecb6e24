"""Core node and edge representation for the canvas graph.

A Node is a positioned unit of content: the root Response to a query, a
FollowUp question (answered or not), or a Topic explanation. Each kind
carries its own payload type.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from loguru import logger

from mind_canvas.config import DEFAULT_LAYOUT


class NodeKind(str, Enum):
    """Kinds of nodes on the canvas.

    - Response: answer to the initial query (tree root)
    - FollowUp: question node, answered or awaiting an answer
    - Topic: explanation of a term clicked inside another node
    """

    RESPONSE = "response"
    FOLLOW_UP = "followUp"
    TOPIC = "topic"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Position:
    """2D canvas coordinate."""

    x: float
    y: float

    @property
    def is_valid(self) -> bool:
        """True when both coordinates are finite real numbers."""
        return is_valid_position(self)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Position:
        return cls(x=data.get("x"), y=data.get("y"))


CENTER = Position(DEFAULT_LAYOUT.center_x, DEFAULT_LAYOUT.center_y)


def is_valid_position(position: Any) -> bool:
    """Check that an object looks like a Position with finite coordinates."""
    if position is None:
        return False
    x = getattr(position, "x", None)
    y = getattr(position, "y", None)
    for value in (x, y):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if not math.isfinite(value):
            return False
    return True


@dataclass(frozen=True)
class ResponsePayload:
    content: str
    query: str = ""


@dataclass(frozen=True)
class FollowUpPayload:
    """Payload of a follow-up question node.

    Attributes:
        question: The question text (empty while the node is an input box)
        answer: Generated answer, once received
        has_been_answered: Whether an answer has been applied
        child_questions: Follow-up strings returned with the answer
        is_custom: Created from user input rather than generated
        is_input: Still an input box waiting for the user's question
        parent_question: Question of the node this one was generated from
        parent_answer: Answer of the node this one was generated from
    """

    question: str = ""
    answer: str | None = None
    has_been_answered: bool = False
    child_questions: tuple[str, ...] = ()
    is_custom: bool = False
    is_input: bool = False
    parent_question: str | None = None
    parent_answer: str | None = None


@dataclass(frozen=True)
class TopicPayload:
    topic: str
    explanation: str = ""


Payload = Union[ResponsePayload, FollowUpPayload, TopicPayload]

_PAYLOAD_KINDS: dict[type, NodeKind] = {
    ResponsePayload: NodeKind.RESPONSE,
    FollowUpPayload: NodeKind.FOLLOW_UP,
    TopicPayload: NodeKind.TOPIC,
}


@dataclass(frozen=True)
class Attachment:
    """File attached to a node."""

    file_name: str
    file_type: str
    file_path: str
    file_size: int
    uploaded_at: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_name": self.file_name,
            "file_type": self.file_type,
            "file_path": self.file_path,
            "file_size": self.file_size,
            "uploaded_at": self.uploaded_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Attachment:
        return cls(
            file_name=data["file_name"],
            file_type=data["file_type"],
            file_path=data["file_path"],
            file_size=int(data["file_size"]),
            uploaded_at=data.get("uploaded_at") or _now(),
        )


@dataclass(frozen=True)
class Source:
    """Citation attached to a node."""

    text: str
    url: str | None = None
    added_at: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "url": self.url, "added_at": self.added_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Source:
        return cls(
            text=data["text"],
            url=data.get("url"),
            added_at=data.get("added_at") or _now(),
        )


@dataclass(frozen=True)
class Node:
    """A positioned unit of content in the canvas graph.

    Nodes are immutable; use ``dataclasses.replace`` (or the helpers
    below) to derive an updated copy.

    Attributes:
        id: Unique identifier, fixed for the lifetime of the canvas session
        payload: Kind-specific content; determines ``kind``
        position: Canvas coordinate (never left invalid)
        parent_edge_id: ID of the edge connecting this node to its parent
        is_edited: Whether the user has edited the node content
        original_content: Content before the first edit
        last_edited_at: ISO timestamp of the last edit
        attachments: Files attached to the node
        sources: Citations attached to the node
    """

    id: str
    payload: Payload
    position: Position = CENTER
    parent_edge_id: str | None = None
    is_edited: bool = False
    original_content: str | None = None
    last_edited_at: str | None = None
    attachments: tuple[Attachment, ...] = ()
    sources: tuple[Source, ...] = ()

    def __post_init__(self) -> None:
        if type(self.payload) not in _PAYLOAD_KINDS:
            raise TypeError(f"Unsupported payload type: {type(self.payload).__name__}")
        if not is_valid_position(self.position):
            logger.warning(
                f"Node {self.id} created with invalid position {self.position!r}, using {CENTER}"
            )
            object.__setattr__(self, "position", CENTER)
        elif not isinstance(self.position, Position):
            object.__setattr__(
                self, "position", Position(float(self.position.x), float(self.position.y))
            )

    @property
    def kind(self) -> NodeKind:
        return _PAYLOAD_KINDS[type(self.payload)]

    @property
    def content(self) -> str:
        """Main body text of the node, dispatched by kind."""
        payload = self.payload
        if isinstance(payload, ResponsePayload):
            return payload.content
        if isinstance(payload, FollowUpPayload):
            return payload.answer or ""
        return payload.explanation

    def with_content(self, content: str) -> Node:
        """Return a copy with edited body text.

        The content before the first edit is kept in ``original_content``.
        """
        payload = self.payload
        if isinstance(payload, ResponsePayload):
            new_payload = replace(payload, content=content)
        elif isinstance(payload, FollowUpPayload):
            new_payload = replace(payload, answer=content)
        else:
            new_payload = replace(payload, explanation=content)

        return replace(
            self,
            payload=new_payload,
            is_edited=True,
            original_content=self.original_content if self.is_edited else self.content,
            last_edited_at=_now(),
        )

    def with_payload(self, **changes: Any) -> Node:
        return replace(self, payload=replace(self.payload, **changes))

    def to_dict(self) -> dict[str, Any]:
        """Convert node to dictionary representation.

        Returns:
            JSON-compatible dictionary containing all node data
        """
        payload = self.payload
        if isinstance(payload, FollowUpPayload):
            payload_data: dict[str, Any] = {
                "question": payload.question,
                "answer": payload.answer,
                "has_been_answered": payload.has_been_answered,
                "child_questions": list(payload.child_questions),
                "is_custom": payload.is_custom,
                "is_input": payload.is_input,
                "parent_question": payload.parent_question,
                "parent_answer": payload.parent_answer,
            }
        elif isinstance(payload, ResponsePayload):
            payload_data = {"content": payload.content, "query": payload.query}
        else:
            payload_data = {"topic": payload.topic, "explanation": payload.explanation}

        return {
            "id": self.id,
            "kind": self.kind.value,
            "position": self.position.to_dict(),
            "parent_edge_id": self.parent_edge_id,
            "payload": payload_data,
            "is_edited": self.is_edited,
            "original_content": self.original_content,
            "last_edited_at": self.last_edited_at,
            "attachments": [a.to_dict() for a in self.attachments],
            "sources": [s.to_dict() for s in self.sources],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Node:
        """Create a Node from dictionary representation.

        Args:
            data: Dictionary produced by ``to_dict``

        Returns:
            A new Node instance
        """
        kind = NodeKind(data["kind"])
        raw = data.get("payload", {})
        if kind is NodeKind.RESPONSE:
            payload: Payload = ResponsePayload(
                content=raw.get("content", ""), query=raw.get("query", "")
            )
        elif kind is NodeKind.FOLLOW_UP:
            payload = FollowUpPayload(
                question=raw.get("question", ""),
                answer=raw.get("answer"),
                has_been_answered=raw.get("has_been_answered", False),
                child_questions=tuple(raw.get("child_questions", ())),
                is_custom=raw.get("is_custom", False),
                is_input=raw.get("is_input", False),
                parent_question=raw.get("parent_question"),
                parent_answer=raw.get("parent_answer"),
            )
        else:
            payload = TopicPayload(
                topic=raw.get("topic", ""), explanation=raw.get("explanation", "")
            )

        position = data.get("position")
        return cls(
            id=data["id"],
            payload=payload,
            position=Position.from_dict(position) if isinstance(position, dict) else CENTER,
            parent_edge_id=data.get("parent_edge_id"),
            is_edited=data.get("is_edited", False),
            original_content=data.get("original_content"),
            last_edited_at=data.get("last_edited_at"),
            attachments=tuple(Attachment.from_dict(a) for a in data.get("attachments", ())),
            sources=tuple(Source.from_dict(s) for s in data.get("sources", ())),
        )

    def __repr__(self) -> str:
        return f"Node(id={self.id}, kind={self.kind.value}, x={self.position.x:.0f}, y={self.position.y:.0f})"


@dataclass(frozen=True)
class Edge:
    """Directed connection from a parent node to a child node."""

    source: str
    target: str
    id: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            object.__setattr__(self, "id", edge_id(self.source, self.target))

    @property
    def key(self) -> tuple[str, str]:
        return (self.source, self.target)

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "source": self.source, "target": self.target}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Edge:
        return cls(source=data["source"], target=data["target"], id=data.get("id", ""))


def edge_id(source: str, target: str) -> str:
    return f"edge-{source}-{target}"

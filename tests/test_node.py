"""Tests for Node, Edge and payload types."""

import dataclasses
import math
from types import SimpleNamespace

import pytest

from mind_canvas.node import (
    CENTER,
    Attachment,
    Edge,
    FollowUpPayload,
    Node,
    NodeKind,
    Position,
    ResponsePayload,
    Source,
    TopicPayload,
    is_valid_position,
)


def test_node_kind_follows_payload():
    """Test that kind is derived from the payload type."""
    assert Node(id="r", payload=ResponsePayload(content="A")).kind == NodeKind.RESPONSE
    assert Node(id="f", payload=FollowUpPayload(question="Q?")).kind == NodeKind.FOLLOW_UP
    assert Node(id="t", payload=TopicPayload(topic="Python")).kind == NodeKind.TOPIC
    assert NodeKind.FOLLOW_UP.value == "followUp"


def test_unsupported_payload_rejected():
    with pytest.raises(TypeError):
        Node(id="bad", payload={"content": "x"})


def test_invalid_position_normalized_to_center():
    """Test that missing or non-finite positions fall back to the center."""
    assert Node(id="a", payload=ResponsePayload("A"), position=None).position == CENTER
    assert Node(id="b", payload=ResponsePayload("B"), position=Position(math.nan, 1)).position == CENTER
    assert Node(id="c", payload=ResponsePayload("C"), position=Position(1, math.inf)).position == CENTER
    assert CENTER == Position(650, 400)


def test_duck_typed_position_converted():
    node = Node(id="a", payload=ResponsePayload("A"), position=SimpleNamespace(x=10, y=20))
    assert node.position == Position(10.0, 20.0)
    assert isinstance(node.position, Position)


def test_is_valid_position():
    assert is_valid_position(Position(0, 0))
    assert Position(-5.5, 3).is_valid
    assert not is_valid_position(None)
    assert not is_valid_position(Position("1", 2))
    assert not is_valid_position(Position(True, 2))
    assert not Position(math.nan, 0).is_valid


def test_node_is_immutable():
    node = Node(id="a", payload=ResponsePayload("A"))
    with pytest.raises(dataclasses.FrozenInstanceError):
        node.id = "b"


def test_content_by_kind():
    assert Node(id="r", payload=ResponsePayload(content="Answer")).content == "Answer"
    assert Node(id="f", payload=FollowUpPayload(question="Q?")).content == ""
    assert Node(id="g", payload=FollowUpPayload(question="Q?", answer="A")).content == "A"
    assert Node(id="t", payload=TopicPayload(topic="X", explanation="E")).content == "E"


def test_with_content_keeps_first_original():
    """Test that editing twice keeps the content from before the first edit."""
    node = Node(id="r", payload=ResponsePayload(content="First"))

    edited = node.with_content("Second")
    assert edited.content == "Second"
    assert edited.is_edited
    assert edited.original_content == "First"
    assert edited.last_edited_at is not None

    edited_again = edited.with_content("Third")
    assert edited_again.content == "Third"
    assert edited_again.original_content == "First"

    # the source node is untouched
    assert node.content == "First"
    assert not node.is_edited


def test_with_payload():
    node = Node(id="f", payload=FollowUpPayload(question="Q?"))
    answered = node.with_payload(answer="A", has_been_answered=True)

    assert answered.payload.answer == "A"
    assert answered.payload.has_been_answered
    assert answered.payload.question == "Q?"
    assert not node.payload.has_been_answered


def test_node_to_dict_from_dict():
    """Test node serialization with every optional field populated."""
    node = Node(
        id="followup-root-0",
        payload=FollowUpPayload(
            question="Why?",
            answer="Because.",
            has_been_answered=True,
            child_questions=("How?", "When?"),
            parent_question="What?",
            parent_answer="That.",
        ),
        position=Position(900, 200),
        parent_edge_id="edge-root-followup-root-0",
        attachments=(Attachment("a.pdf", "application/pdf", "/tmp/a.pdf", 12),),
        sources=(Source("Some book", url="https://example.com"),),
    )

    data = node.to_dict()
    assert data["kind"] == "followUp"
    assert data["position"] == {"x": 900, "y": 200}
    assert data["payload"]["child_questions"] == ["How?", "When?"]

    restored = Node.from_dict(data)
    assert restored == node


def test_from_dict_without_position_uses_center():
    node = Node.from_dict({"id": "t", "kind": "topic", "payload": {"topic": "Rust"}})
    assert node.position == CENTER
    assert node.payload == TopicPayload(topic="Rust", explanation="")


def test_edge_default_id():
    edge = Edge("root", "child")
    assert edge.id == "edge-root-child"
    assert edge.key == ("root", "child")
    assert Edge.from_dict(edge.to_dict()) == edge
    assert Edge("a", "b", id="custom").id == "custom"

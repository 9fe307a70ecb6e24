"""Tests for AncestorContextBuilder."""

from mind_canvas.context import AncestorContextBuilder, node_context_lines
from mind_canvas.graph_store import GraphStore
from mind_canvas.node import Edge, FollowUpPayload, Node, ResponsePayload, TopicPayload


def _build_chain():
    """root -> a -> b, plus an unanswered sibling and a topic under a."""
    store = GraphStore()
    store.add(
        [
            Node(id="root", payload=ResponsePayload(content="Root answer", query="Root question?")),
            Node(
                id="a",
                payload=FollowUpPayload(question="A?", answer="A answer", has_been_answered=True),
                parent_edge_id="edge-root-a",
            ),
            Node(id="b", payload=FollowUpPayload(question="B?"), parent_edge_id="edge-a-b"),
            Node(id="s", payload=FollowUpPayload(question="S?"), parent_edge_id="edge-root-s"),
            Node(id="t", payload=TopicPayload(topic="Python", explanation="A language"),
                 parent_edge_id="edge-a-t"),
        ],
        [Edge("root", "a"), Edge("a", "b"), Edge("root", "s"), Edge("a", "t")],
    )
    return store


def test_context_is_root_first():
    builder = AncestorContextBuilder(_build_chain())

    assert builder.build_context("b") == [
        "Question: Root question?",
        "Answer: Root answer",
        "Question: A?",
        "Answer: A answer",
        "Question: B?",
    ]


def test_context_for_root():
    builder = AncestorContextBuilder(_build_chain())
    assert builder.build_context("root") == ["Question: Root question?", "Answer: Root answer"]


def test_context_for_missing_node():
    builder = AncestorContextBuilder(_build_chain())
    assert builder.build_context("ghost") == []


def test_context_excludes_siblings():
    context = AncestorContextBuilder(_build_chain()).build_context("b")
    assert "Question: S?" not in context


def test_topic_lines():
    node = Node(id="t", payload=TopicPayload(topic="Python", explanation="A language"))
    assert node_context_lines(node) == ["Topic: Python", "Explanation: A language"]


def test_walk_falls_back_to_incoming_edge():
    """Test that a node without parent_edge_id still finds its parent."""
    store = GraphStore()
    store.add(
        [
            Node(id="root", payload=ResponsePayload(content="R", query="Q")),
            Node(id="c", payload=FollowUpPayload(question="C?")),
        ],
        [Edge("root", "c")],
    )
    builder = AncestorContextBuilder(store)
    assert [n.id for n in builder.ancestors("c")] == ["root", "c"]


def test_cycle_terminates():
    store = GraphStore()
    store.add(
        [
            Node(id="x", payload=FollowUpPayload(question="X?")),
            Node(id="y", payload=FollowUpPayload(question="Y?")),
        ],
        [Edge("x", "y"), Edge("y", "x")],
    )
    builder = AncestorContextBuilder(store)

    ancestors = builder.ancestors("x")

    assert sorted(n.id for n in ancestors) == ["x", "y"]


def test_depth():
    builder = AncestorContextBuilder(_build_chain())
    assert builder.depth("root") == 0
    assert builder.depth("a") == 1
    assert builder.depth("b") == 2
    assert builder.depth("ghost") == 0


def test_path_to_root():
    builder = AncestorContextBuilder(_build_chain())
    assert builder.path_to_root("b") == {"edge-a-b", "edge-root-a"}
    assert builder.path_to_root("root") == set()


def test_extract_node_contents():
    """Test that only responses and answered follow-ups contribute."""
    builder = AncestorContextBuilder(_build_chain())

    contents = builder.extract_node_contents(["root", "a", "b", "t", "ghost"])

    assert contents == [
        "Question: Root question?\nAnswer: Root answer",
        "Question: A?\nAnswer: A answer",
    ]

"""Tests for GraphStore."""

from mind_canvas.graph_store import GraphStore
from mind_canvas.node import Edge, FollowUpPayload, Node, ResponsePayload


def _root(node_id="root"):
    return Node(id=node_id, payload=ResponsePayload(content="Answer", query="Question?"))


def _follow_up(node_id, parent="root"):
    return Node(
        id=node_id,
        payload=FollowUpPayload(question=f"{node_id}?"),
        parent_edge_id=f"edge-{parent}-{node_id}",
    )


def test_store_creation():
    """Test store initialization."""
    store = GraphStore()
    assert len(store) == 0
    assert store.get_nodes() == ()
    assert store.get_edges() == ()


def test_add_nodes_and_get():
    store = GraphStore()
    root = _root()

    added = store.add_nodes([root])

    assert added == [root]
    assert len(store) == 1
    assert store.get_node("root") == root
    assert store.has_node("root")
    assert store.get_node("missing") is None


def test_duplicate_node_id_skipped():
    """Test that a batch entry with an existing ID is skipped."""
    store = GraphStore()
    store.add_nodes([_root()])

    added = store.add_nodes([Node(id="root", payload=ResponsePayload(content="Other"))])

    assert added == []
    assert len(store) == 1
    assert store.get_node("root").content == "Answer"


def test_edges_to_rejected_duplicate_dropped():
    """Test that batch edges cannot attach to a pre-existing node via a rejected duplicate."""
    store = GraphStore()
    store.add([_root("a"), _follow_up("b", parent="a")], [Edge("a", "b")])

    nodes, edges = store.add(
        [Node(id="a", payload=ResponsePayload(content="Again"))],
        [Edge("b", "a")],
    )

    assert nodes == []
    assert edges == []
    assert store.get_edges() == (Edge("a", "b"),)
    assert store.incoming_edges("a") == []


def test_edges_to_new_node_kept_despite_duplicate_in_batch():
    store = GraphStore()
    store.add_nodes([_root()])

    nodes, edges = store.add(
        [_follow_up("a"), _follow_up("a")],
        [Edge("root", "a")],
    )

    assert [n.id for n in nodes] == ["a"]
    assert edges == [Edge("root", "a")]


def test_add_batch_with_edges():
    store = GraphStore()
    store.add_nodes([_root()])

    nodes, edges = store.add(
        [_follow_up("a"), _follow_up("b")],
        [Edge("root", "a"), Edge("root", "b")],
    )

    assert [n.id for n in nodes] == ["a", "b"]
    assert [e.id for e in edges] == ["edge-root-a", "edge-root-b"]
    assert [n.id for n in store.children_of("root")] == ["a", "b"]
    assert store.incoming_edges("a") == [Edge("root", "a")]


def test_dangling_edges_dropped():
    store = GraphStore()
    store.add_nodes([_root()])

    _, edges = store.add([], [Edge("root", "ghost"), Edge("ghost", "root")])

    assert edges == []
    assert store.get_edges() == ()


def test_snapshots_are_not_mutated():
    """Test that a snapshot taken before a batch never sees that batch."""
    store = GraphStore()
    store.add_nodes([_root()])
    before_nodes = store.get_nodes()
    before_edges = store.get_edges()

    store.add([_follow_up("a")], [Edge("root", "a")])

    assert len(before_nodes) == 1
    assert before_edges == ()
    assert len(store.get_nodes()) == 2


def test_update_node():
    store = GraphStore()
    store.add_nodes([_root(), _follow_up("a")])
    node = store.get_node("a")

    updated = store.update_node(node.with_payload(answer="Yes", has_been_answered=True))

    assert updated.payload.answer == "Yes"
    assert store.get_node("a").payload.has_been_answered
    assert [n.id for n in store.get_nodes()] == ["root", "a"]
    assert store.update_node(_follow_up("missing")) is None


def test_replace_all_and_clear():
    store = GraphStore()
    store.add_nodes([_root()])

    store.replace_all([_root("other"), _follow_up("x", parent="other")], [Edge("other", "x")])
    assert [n.id for n in store.get_nodes()] == ["other", "x"]
    assert not store.has_node("root")
    assert len(store.get_edges()) == 1

    store.clear()
    assert len(store) == 0
    assert store.get_edges() == ()


def test_replace_edges():
    store = GraphStore()
    store.add([_root(), _follow_up("a")], [Edge("root", "a"), Edge("root", "a", id="dup")])
    assert len(store.get_edges()) == 2

    store.replace_edges([Edge("root", "a")])
    assert store.get_edges() == (Edge("root", "a"),)


def test_on_change_listener():
    """Test that listeners receive the new snapshots after each mutation."""
    calls = []
    store = GraphStore(on_change=lambda nodes, edges: calls.append((len(nodes), len(edges))))

    store.add_nodes([_root()])
    store.add([_follow_up("a")], [Edge("root", "a")])
    store.add_nodes([_root()])  # duplicate, no change
    store.clear()

    assert calls == [(1, 0), (2, 1), (0, 0)]

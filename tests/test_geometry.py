"""Tests for layout and overlap resolution."""

import math
import random
from types import SimpleNamespace

from mind_canvas.config import DEFAULT_LAYOUT, LayoutConfig
from mind_canvas.geometry import (
    compute_child_positions,
    is_overlapping,
    resolve_overlap,
    topic_position,
)
from mind_canvas.node import Node, Position, ResponsePayload


def _node(node_id, x, y):
    return Node(id=node_id, payload=ResponsePayload(content=node_id), position=Position(x, y))


def _pairwise_clear(positions):
    for i, a in enumerate(positions):
        if is_overlapping(a, positions[i + 1:]):
            return False
    return True


def test_root_goes_to_center():
    assert compute_child_positions(None, 1, []) == [Position(650, 400)]


def test_four_children_wrap_into_second_column():
    """Test the fourth child starts a new column at the top row."""
    root = _node("root", 650, 400)

    positions = compute_child_positions("root", 4, [root])

    assert positions == [
        Position(900, 200),
        Position(900, 400),
        Position(900, 600),
        Position(1250, 200),
    ]


def test_single_child_centered_on_parent():
    root = _node("root", 650, 400)
    assert compute_child_positions("root", 1, [root]) == [Position(900, 400)]


def test_exact_overlap_moves_one_step_right():
    existing = [_node("root", 650, 400)]
    assert resolve_overlap(Position(650, 400), existing) == Position(900, 400)


def test_resolve_overlap_second_probe_moves_down():
    """Test that a blocked right step falls back to one step down."""
    existing = [_node("a", 650, 400), _node("b", 900, 400)]
    assert resolve_overlap(Position(650, 400), existing) == Position(650, 600)


def test_resolve_overlap_free_candidate_unchanged():
    existing = [_node("root", 650, 400)]
    assert resolve_overlap(Position(1000, 1000), existing) == Position(1000, 1000)


def test_resolve_overlap_no_obstacles():
    assert resolve_overlap(Position(3, 4), []) == Position(3, 4)
    assert resolve_overlap(Position(3, 4), [SimpleNamespace(position=Position(math.nan, 0))]) == Position(3, 4)


def test_resolve_overlap_invalid_candidate():
    existing = [_node("root", 650, 400)]
    assert resolve_overlap(Position(math.nan, 10), existing) == Position(200, 300)
    assert resolve_overlap(None, existing) == Position(200, 300)


def test_resolve_overlap_exhaustion_places_below_everything():
    """Test the fallback once every probe position is taken."""
    obstacles = [
        Position(x, 400 + 200 * k)
        for x in (650, 900)
        for k in range(11)
    ]

    result = resolve_overlap(Position(650, 400), obstacles)

    assert result == Position(650, 2400 + 150 + 50)
    assert not is_overlapping(result, obstacles)


def test_siblings_do_not_overlap_each_other():
    root = _node("root", 650, 400)
    positions = compute_child_positions("root", 9, [root])

    assert len(positions) == 9
    assert _pairwise_clear(positions)
    assert not any(is_overlapping(p, [root]) for p in positions)


def test_children_avoid_existing_nodes():
    """Test that a second expansion steers clear of earlier children."""
    root = _node("root", 650, 400)
    nodes = [root]
    first = compute_child_positions("root", 3, nodes)
    nodes += [_node(f"a{i}", p.x, p.y) for i, p in enumerate(first)]

    nodes.append(_node("b", 900, 400))
    second = compute_child_positions("b", 3, nodes)

    for position in second:
        assert not is_overlapping(position, nodes)
    assert _pairwise_clear(second)


def test_missing_parent_returns_center_for_each_child():
    positions = compute_child_positions("ghost", 3, [_node("root", 650, 400)])
    assert positions == [Position(650, 400)] * 3


def test_parent_with_invalid_position_returns_center():
    parent = SimpleNamespace(id="p", position=Position(math.inf, 0))
    assert compute_child_positions("p", 2, [parent]) == [Position(650, 400)] * 2


def test_invalid_child_count_treated_as_one():
    root = _node("root", 650, 400)
    assert compute_child_positions("root", 0, [root]) == [Position(900, 400)]
    assert compute_child_positions("root", -2, [root]) == [Position(900, 400)]


def test_layout_is_deterministic():
    root = _node("root", 650, 400)
    others = [_node("x", 900, 400), _node("y", 900, 200)]
    assert compute_child_positions("root", 5, [root, *others]) == compute_child_positions(
        "root", 5, [root, *others]
    )


def test_custom_layout():
    layout = LayoutConfig(horizontal_spacing=100, vertical_spacing=100, node_width=50,
                          node_height=50, padding=10)
    root = _node("root", 0, 0)
    assert compute_child_positions("root", 2, [root], layout=layout) == [
        Position(100, -50),
        Position(100, 50),
    ]


def test_is_overlapping():
    existing = [Position(0, 0)]
    assert is_overlapping(Position(174, 99), existing)
    assert not is_overlapping(Position(175, 0), existing)
    assert not is_overlapping(Position(0, 100), existing)


def test_topic_position_distance():
    """Test that topic nodes land within the configured ring."""
    rng = random.Random(7)
    parent = Position(650, 400)
    for _ in range(20):
        pos = topic_position(parent, rng)
        distance = math.hypot(pos.x - parent.x, pos.y - parent.y)
        assert DEFAULT_LAYOUT.topic_min_distance <= distance < 400 + 1e-9


def test_topic_position_seeded():
    a = topic_position(Position(0, 0), random.Random(1))
    b = topic_position(Position(0, 0), random.Random(1))
    assert a == b

"""Deterministic grid layout with overlap avoidance.

Children are stacked in a column to the right of their parent, centred on
the parent's y coordinate, and wrap into additional columns once a column
holds ``max_siblings`` nodes. Every candidate is checked against existing
nodes with an axis-aligned bounding-box test and nudged along the grid
until it is free.

None of the functions here raise: malformed input degrades to a
canonical position and is logged.
"""

from __future__ import annotations

import math
import random
from typing import TYPE_CHECKING

import numpy as np
from loguru import logger

from mind_canvas.config import DEFAULT_LAYOUT, LayoutConfig
from mind_canvas.node import Position, is_valid_position

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from mind_canvas.node import Edge, Node


def center_position(layout: LayoutConfig = DEFAULT_LAYOUT) -> Position:
    """Anchor position for the first node of every canvas."""
    return Position(layout.center_x, layout.center_y)


def _as_array(positions: Iterable[object]) -> np.ndarray:
    """Stack valid positions into an (n, 2) float array, skipping invalid ones."""
    valid = [(p.x, p.y) for p in positions if is_valid_position(p)]
    if not valid:
        return np.empty((0, 2), dtype=float)
    return np.asarray(valid, dtype=float)


def _overlaps(candidate: Position, obstacles: np.ndarray, layout: LayoutConfig) -> bool:
    if obstacles.shape[0] == 0:
        return False
    dx = np.abs(obstacles[:, 0] - candidate.x)
    dy = np.abs(obstacles[:, 1] - candidate.y)
    hits = (dx < layout.half_extent_x) & (dy < layout.half_extent_y)
    return bool(hits.any())


def is_overlapping(
    position: Position,
    existing: Iterable[object],
    layout: LayoutConfig = DEFAULT_LAYOUT,
) -> bool:
    """Check whether a position collides with any existing node or position.

    Args:
        position: Candidate position
        existing: Nodes (anything with ``.position``) or bare positions
        layout: Layout dimensions

    Returns:
        True if the bounding boxes overlap on both axes
    """
    if not is_valid_position(position):
        return False
    return _overlaps(position, _as_array(_positions_of(existing)), layout)


def _positions_of(items: Iterable[object]) -> list[object]:
    return [getattr(item, "position", item) for item in items if item is not None]


def _resolve(candidate: Position, obstacles: np.ndarray, layout: LayoutConfig) -> Position:
    if not _overlaps(candidate, obstacles, layout):
        return candidate

    x, y = candidate.x, candidate.y
    for attempt in range(layout.max_overlap_attempts):
        if attempt % 2 == 0:
            x += layout.horizontal_spacing
        else:
            x = candidate.x
            y += layout.vertical_spacing
        probe = Position(x, y)
        if not _overlaps(probe, obstacles, layout):
            logger.debug(
                f"Resolved overlap at ({candidate.x:.0f}, {candidate.y:.0f}) "
                f"-> ({probe.x:.0f}, {probe.y:.0f}) after {attempt + 1} attempts"
            )
            return probe

    # Below everything: no obstacle can be within half a node height.
    max_y = float(obstacles[:, 1].max())
    fallback = Position(candidate.x, max_y + layout.node_height + layout.padding)
    logger.debug(
        f"Overlap probing exhausted for ({candidate.x:.0f}, {candidate.y:.0f}), "
        f"placing below lowest node at y={fallback.y:.0f}"
    )
    return fallback


def resolve_overlap(
    candidate: Position,
    existing_nodes: Iterable[object],
    layout: LayoutConfig = DEFAULT_LAYOUT,
) -> Position:
    """Move a candidate position off any existing node.

    Probes alternate between one grid step right and, back at the
    original x, one grid step down. After ``max_overlap_attempts`` the
    node is placed below the lowest existing node.

    Args:
        candidate: Desired position
        existing_nodes: Nodes (anything with ``.position``) or bare positions
        layout: Layout dimensions

    Returns:
        A position that does not overlap any valid existing node
    """
    if not is_valid_position(candidate):
        fallback = Position(layout.invalid_fallback_x, layout.invalid_fallback_y)
        logger.warning(f"Invalid candidate position {candidate!r}, using fallback {fallback}")
        return fallback

    if not isinstance(candidate, Position):
        candidate = Position(float(candidate.x), float(candidate.y))

    obstacles = _as_array(_positions_of(existing_nodes))
    if obstacles.shape[0] == 0:
        return candidate

    return _resolve(candidate, obstacles, layout)


def compute_child_positions(
    parent_id: str | None,
    child_count: int,
    nodes: Sequence[Node],
    edges: Sequence[Edge] = (),
    layout: LayoutConfig = DEFAULT_LAYOUT,
) -> list[Position]:
    """Compute non-overlapping positions for a batch of new children.

    Args:
        parent_id: ID of the parent node, or None for the root of a canvas
        child_count: Number of children to place (coerced to at least 1)
        nodes: Snapshot of existing nodes
        edges: Snapshot of existing edges (accepted for API symmetry)
        layout: Layout dimensions

    Returns:
        One position per child, in child order
    """
    if not isinstance(child_count, int) or isinstance(child_count, bool) or child_count < 1:
        logger.warning(f"Invalid child count {child_count!r} for parent {parent_id}, using 1")
        child_count = 1

    nodes = list(nodes or ())

    if parent_id is None:
        return [center_position(layout)]

    parent = next((n for n in nodes if n is not None and n.id == parent_id), None)
    if parent is None or not is_valid_position(getattr(parent, "position", None)):
        logger.warning(f"Parent node {parent_id} not found or has invalid position, using center")
        return [center_position(layout)] * child_count

    base_x = parent.position.x + layout.horizontal_spacing
    rows = min(child_count, layout.max_siblings)
    start_y = parent.position.y - (rows * layout.vertical_spacing) / 2 + layout.vertical_spacing / 2

    obstacles = _as_array(_positions_of(nodes))
    positions: list[Position] = []
    for i in range(child_count):
        column, row = divmod(i, layout.max_siblings)
        candidate = Position(
            base_x + column * layout.column_step,
            start_y + row * layout.vertical_spacing,
        )
        placed = _resolve(candidate, obstacles, layout)
        positions.append(placed)
        # Siblings placed in this batch are obstacles for the rest of it.
        obstacles = np.vstack([obstacles, [placed.x, placed.y]])

    logger.debug(f"Computed {len(positions)} child positions for parent {parent_id}")
    return positions


def topic_position(
    parent_position: Position,
    rng: random.Random | None = None,
    layout: LayoutConfig = DEFAULT_LAYOUT,
) -> Position:
    """Random offset around a parent for topic annotation nodes.

    Topic nodes are exploratory and sit outside the question grid, so no
    overlap resolution is applied.
    """
    rng = rng or random.Random()
    if not is_valid_position(parent_position):
        parent_position = center_position(layout)
    angle = rng.random() * math.pi * 2
    distance = layout.topic_min_distance + rng.random() * layout.topic_distance_range
    return Position(
        parent_position.x + math.cos(angle) * distance,
        parent_position.y + math.sin(angle) * distance,
    )

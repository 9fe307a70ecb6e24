"""Configuration for layout and runtime settings.

Layout constants live in a frozen dataclass so tests and callers can
override them; runtime settings are read from the environment (and a
``.env`` file, if present).
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class LayoutConfig:
    """Dimensions and spacing used by the geometry engine.

    Attributes:
        node_width: Default rendered width of a node
        node_height: Default rendered height of a node
        padding: Extra clearance kept between nodes
        horizontal_spacing: Grid step on the X axis
        vertical_spacing: Grid step on the Y axis
        max_siblings: Children per column before wrapping into a new column
        center_x: X of the canonical anchor position
        center_y: Y of the canonical anchor position
        max_overlap_attempts: Probe bound for overlap resolution
        invalid_fallback_x: X used when a candidate position is malformed
        invalid_fallback_y: Y used when a candidate position is malformed
        topic_min_distance: Minimum distance of a topic node from its parent
        topic_distance_range: Random extra distance added to topic_min_distance
    """

    node_width: float = 300.0
    node_height: float = 150.0
    padding: float = 50.0
    horizontal_spacing: float = 250.0
    vertical_spacing: float = 200.0
    max_siblings: int = 3
    center_x: float = 650.0
    center_y: float = 400.0
    max_overlap_attempts: int = 20
    invalid_fallback_x: float = 200.0
    invalid_fallback_y: float = 300.0
    topic_min_distance: float = 300.0
    topic_distance_range: float = 100.0

    @property
    def column_step(self) -> float:
        """Horizontal offset between wrapped sibling columns."""
        return self.node_width + self.padding

    @property
    def half_extent_x(self) -> float:
        return (self.node_width + self.padding) / 2

    @property
    def half_extent_y(self) -> float:
        return (self.node_height + self.padding) / 2


DEFAULT_LAYOUT = LayoutConfig()


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Runtime settings for the generation client, storage and logging."""

    provider: str = "groq"
    model: str | None = None
    db_path: str = "./data/canvases"
    log_level: str = "INFO"
    log_file: str | None = None
    use_dummy: bool = False

    @classmethod
    def from_env(cls, **overrides) -> Settings:
        """Build settings from MIND_CANVAS_* environment variables.

        Args:
            **overrides: Explicit values that win over the environment

        Returns:
            A populated Settings instance
        """
        values = {
            "provider": os.getenv("MIND_CANVAS_PROVIDER", "groq"),
            "model": os.getenv("MIND_CANVAS_MODEL"),
            "db_path": os.getenv("MIND_CANVAS_DB_PATH", "./data/canvases"),
            "log_level": os.getenv("MIND_CANVAS_LOG_LEVEL", "INFO"),
            "log_file": os.getenv("MIND_CANVAS_LOG_FILE"),
            "use_dummy": _env_flag("MIND_CANVAS_USE_DUMMY"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

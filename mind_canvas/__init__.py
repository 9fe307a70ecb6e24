"""MindCanvas: interactive question canvas with incremental layout.

Grows a tree of response, follow-up and topic nodes from a single query,
places every new node on the canvas without overlapping existing ones,
and guarantees each node spawns its children at most once.
"""

from mind_canvas.canvas_store import CanvasRecord, CanvasStore, Summary
from mind_canvas.config import DEFAULT_LAYOUT, LayoutConfig, Settings
from mind_canvas.context import AncestorContextBuilder
from mind_canvas.deduplication import EdgeDeduplicator
from mind_canvas.exceptions import (
    CanvasNotFoundError,
    GenerationError,
    MindCanvasError,
    NodeNotFoundError,
    PersistenceError,
    SubResourceNotFoundError,
)
from mind_canvas.generation import (
    AnswerResult,
    GenerationService,
    LLMGenerationService,
    Provider,
    SynthesisResult,
    TopicResult,
)
from mind_canvas.generation_tracker import GenerationTracker
from mind_canvas.geometry import compute_child_positions, resolve_overlap
from mind_canvas.graph_store import GraphStore
from mind_canvas.logging_config import configure_logging
from mind_canvas.node import (
    Attachment,
    Edge,
    FollowUpPayload,
    Node,
    NodeKind,
    Position,
    ResponsePayload,
    Source,
    TopicPayload,
)
from mind_canvas.orchestrator import CanvasOrchestrator, NodeState, SynthesisArtifact
from mind_canvas.topics import extract_topics

__version__ = "0.1.0"
__all__ = [
    "CanvasOrchestrator",
    "NodeState",
    "SynthesisArtifact",
    "GraphStore",
    "GenerationTracker",
    "EdgeDeduplicator",
    "AncestorContextBuilder",
    "compute_child_positions",
    "resolve_overlap",
    "extract_topics",
    "Node",
    "NodeKind",
    "Edge",
    "Position",
    "ResponsePayload",
    "FollowUpPayload",
    "TopicPayload",
    "Attachment",
    "Source",
    "GenerationService",
    "LLMGenerationService",
    "Provider",
    "AnswerResult",
    "TopicResult",
    "SynthesisResult",
    "CanvasStore",
    "CanvasRecord",
    "Summary",
    "LayoutConfig",
    "DEFAULT_LAYOUT",
    "Settings",
    "configure_logging",
    "MindCanvasError",
    "GenerationError",
    "PersistenceError",
    "CanvasNotFoundError",
    "NodeNotFoundError",
    "SubResourceNotFoundError",
]

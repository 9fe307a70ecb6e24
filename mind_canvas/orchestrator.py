"""Interaction orchestrator for the canvas.

Coordinates the graph store, geometry engine, generation tracker, edge
deduplicator and generation service in response to user events: a new
query, a follow-up answer, a clicked topic term, a custom follow-up, a
synthesis request.

All mutations happen on the event loop thread. The only suspension
points are awaited generation calls; anything that must be decided
before another trigger can interleave (tracker marks) happens before
the first ``await``.
"""

from __future__ import annotations

import random
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from loguru import logger

from mind_canvas.config import DEFAULT_LAYOUT, LayoutConfig
from mind_canvas.context import AncestorContextBuilder
from mind_canvas.deduplication import EdgeDeduplicator
from mind_canvas.exceptions import GenerationError
from mind_canvas.generation_tracker import GenerationTracker
from mind_canvas.geometry import compute_child_positions, resolve_overlap, topic_position
from mind_canvas.graph_store import GraphStore
from mind_canvas.node import (
    Edge,
    FollowUpPayload,
    Node,
    Position,
    ResponsePayload,
    TopicPayload,
)
from mind_canvas.topics import extract_topics

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from mind_canvas.generation import GenerationService


PLACEHOLDER_PREFIX = "[Unavailable]"

ErrorHandler = Callable[[str, Exception], None]


def is_placeholder(text: str | None) -> bool:
    """True for text produced in place of a failed generation."""
    return bool(text) and text.startswith(PLACEHOLDER_PREFIX)


class NodeState(str, Enum):
    """Lifecycle of a node in the question tree."""

    INPUT = "input"
    UNANSWERED = "unanswered"
    ANSWERED = "answered"
    EXPANDED = "expanded"


@dataclass(frozen=True)
class SynthesisArtifact:
    """Titled summary generated from a selection of nodes."""

    id: str
    title: str
    content: str
    canvas_id: str | None = None
    selected_nodes: tuple[str, ...] = ()
    custom_prompt: str | None = None
    is_placeholder: bool = False
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "canvas_id": self.canvas_id,
            "selected_nodes": list(self.selected_nodes),
            "custom_prompt": self.custom_prompt,
            "is_placeholder": self.is_placeholder,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SynthesisArtifact:
        return cls(
            id=data["id"],
            title=data["title"],
            content=data["content"],
            canvas_id=data.get("canvas_id"),
            selected_nodes=tuple(data.get("selected_nodes", ())),
            custom_prompt=data.get("custom_prompt"),
            is_placeholder=data.get("is_placeholder", False),
            created_at=data.get("created_at") or datetime.now(timezone.utc).isoformat(),
        )


def _short_id() -> str:
    return uuid.uuid4().hex[:8]


class CanvasOrchestrator:
    """Main interface for driving a canvas session.

    Collaborators are injected; any that are omitted get a fresh default
    instance bound to this orchestrator's store.
    """

    def __init__(
        self,
        service: GenerationService,
        store: GraphStore | None = None,
        tracker: GenerationTracker | None = None,
        deduplicator: EdgeDeduplicator | None = None,
        context_builder: AncestorContextBuilder | None = None,
        rng: random.Random | None = None,
        layout: LayoutConfig = DEFAULT_LAYOUT,
        on_error: ErrorHandler | None = None,
        canvas_id: str | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            service: Generation service for answers, topics and synthesis
            store: Graph store (new empty store if None)
            tracker: Generation tracker shared by every expansion path
            deduplicator: Edge reconciliation pass
            context_builder: Ancestor context builder over ``store``
            rng: Random source for topic placement
            layout: Layout dimensions
            on_error: Called with (operation, error) for every generation
                failure masked by a placeholder
            canvas_id: ID of the persisted canvas, if any
        """
        self.service = service
        self.store = store or GraphStore()
        self.tracker = tracker or GenerationTracker()
        self.deduplicator = deduplicator or EdgeDeduplicator()
        self.context_builder = context_builder or AncestorContextBuilder(self.store)
        self.rng = rng or random.Random()
        self.layout = layout
        self.on_error = on_error
        self.canvas_id = canvas_id

        self.artifacts: list[SynthesisArtifact] = []
        self._session = 0
        self._pending: set[str] = set()

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Discard the graph, tracker marks and artifacts.

        Responses still in flight from before the reset are dropped when
        they arrive.
        """
        self._session += 1
        self._pending.clear()
        self.store.clear()
        self.tracker.clear()
        self.artifacts.clear()
        logger.info(f"Canvas reset (session {self._session})")

    def load(self, nodes: Iterable[Node], edges: Iterable[Edge]) -> None:
        """Replace the session with a saved graph.

        Edges are reconciled and the tracker is rebuilt so that nodes that
        already expanded are not expanded again.
        """
        self.reset()
        self.store.replace_all(nodes, self.deduplicator.reconcile(edges))

        for node in self.store.get_nodes():
            if self._already_expanded(node):
                self.tracker.mark_generated(node.id)

        logger.info(
            f"Loaded canvas with {len(self.store)} nodes, "
            f"{len(self.store.get_edges())} edges, {len(self.tracker)} expanded"
        )

    def snapshot(self) -> tuple[tuple[Node, ...], tuple[Edge, ...]]:
        return self.store.get_nodes(), self.store.get_edges()

    def node_state(self, node_id: str) -> NodeState | None:
        """Current lifecycle state of a node, or None if it does not exist."""
        node = self.store.get_node(node_id)
        if node is None:
            return None
        payload = node.payload
        if isinstance(payload, FollowUpPayload):
            if payload.is_input:
                return NodeState.INPUT
            if not payload.has_been_answered:
                return NodeState.UNANSWERED
        if self.tracker.has_generated(node_id):
            return NodeState.EXPANDED
        return NodeState.ANSWERED

    def _already_expanded(self, node: Node) -> bool:
        payload = node.payload
        if isinstance(payload, ResponsePayload):
            return True
        if isinstance(payload, FollowUpPayload) and payload.has_been_answered:
            has_children = any(
                isinstance(child.payload, FollowUpPayload)
                for child in self.store.children_of(node.id)
            )
            return has_children or not payload.child_questions
        return False

    def _is_stale(self, session: int, node_id: str) -> bool:
        if session != self._session:
            logger.info(f"Discarding response for {node_id}: canvas was reset")
            return True
        if not self.store.has_node(node_id):
            logger.info(f"Discarding response for {node_id}: node no longer exists")
            return True
        return False

    def _report(self, operation: str, error: Exception) -> None:
        """Log a masked generation failure and forward it to ``on_error``.

        Errors raised by a service that are not ``GenerationError`` are
        wrapped so that listeners always receive one exception type.
        """
        if not isinstance(error, GenerationError):
            wrapped = GenerationError(f"{operation} failed: {error}")
            wrapped.__cause__ = error
            error = wrapped
        logger.error(f"Generation failed during {operation}: {error}")
        if self.on_error is not None:
            self.on_error(operation, error)

    def _reconcile_edges(self) -> None:
        edges = self.store.get_edges()
        unique = self.deduplicator.reconcile(edges)
        if len(unique) != len(edges):
            self.store.replace_edges(unique)

    # ------------------------------------------------------------------
    # Question tree
    # ------------------------------------------------------------------

    async def start_canvas(self, query: str, include_custom_input: bool = True) -> Node | None:
        """Start a new canvas from an initial query.

        Args:
            query: The user's question or reflection
            include_custom_input: Also add an empty custom follow-up input

        Returns:
            The root Response node, or None if the canvas was reset while
            the answer was pending
        """
        query = query.strip()
        if not query:
            raise ValueError("Query must not be empty")

        self.reset()
        session = self._session
        logger.info(f"Initializing new canvas with query ({len(query)} chars)")

        try:
            result = await self.service.query(query)
            answer, follow_ups = result.answer, list(result.follow_ups)
        except Exception as e:
            self._report("query", e)
            answer = f"{PLACEHOLDER_PREFIX} Could not generate an answer for \"{query}\". Please try again later."
            follow_ups = []

        if session != self._session:
            logger.info("Discarding initial answer: canvas was reset")
            return None

        position = compute_child_positions(None, 1, self.store.get_nodes(), layout=self.layout)[0]
        root = Node(
            id=f"response-{_short_id()}",
            payload=ResponsePayload(content=answer, query=query),
            position=position,
        )
        self.store.add_nodes([root])
        self.generate_children(
            root.id, query, answer, follow_ups, include_custom_input=include_custom_input
        )
        return self.store.get_node(root.id)

    async def answer_follow_up(self, node_id: str, question: str | None = None) -> Node | None:
        """Answer a follow-up node and expand it.

        Moves the node Unanswered -> Answered, then immediately on to
        Expanded through ``generate_children``.

        Args:
            node_id: FollowUp node to answer
            question: Question text for input/custom nodes; ignored when
                the node already carries a question

        Returns:
            The updated node, or None if the request was skipped or stale
        """
        node = self.store.get_node(node_id)
        if node is None or not isinstance(node.payload, FollowUpPayload):
            logger.warning(f"Cannot answer {node_id}: not a follow-up node")
            return None

        payload = node.payload
        if payload.has_been_answered:
            logger.info(f"Node {node_id} already answered, skipping")
            return node
        if node_id in self._pending:
            logger.info(f"Answer for {node_id} already in flight, skipping")
            return None

        if payload.is_input or not payload.question:
            question = (question or "").strip()
            if not question:
                raise ValueError("Question must not be empty")
            self.store.update_node(node.with_payload(question=question, is_input=False))
        else:
            question = payload.question

        self._pending.add(node_id)
        session = self._session
        context = self.context_builder.build_context(node_id)
        logger.debug(f"Built ancestor context for {node_id} ({len(context)} lines)")

        try:
            result = await self.service.follow_up(question, context)
            answer, follow_ups = result.answer, list(result.follow_ups)
        except Exception as e:
            self._report("follow-up", e)
            answer = f"{PLACEHOLDER_PREFIX} Could not generate an answer for \"{question}\". Please try again later."
            follow_ups = []
        finally:
            self._pending.discard(node_id)

        if self._is_stale(session, node_id):
            return None

        current = self.store.get_node(node_id)
        self.store.update_node(
            current.with_payload(
                answer=answer,
                has_been_answered=True,
                child_questions=tuple(follow_ups),
            )
        )
        self.generate_children(node_id, question, answer, follow_ups)
        return self.store.get_node(node_id)

    def generate_children(
        self,
        parent_id: str,
        parent_question: str,
        parent_answer: str,
        follow_ups: Sequence[str],
        include_custom_input: bool = False,
    ) -> list[Node]:
        """Create one FollowUp child per follow-up question.

        Runs at most once per node: the tracker is checked and marked
        before anything else, and a node with zero follow-ups is still
        marked.

        Args:
            parent_id: Node being expanded
            parent_question: Question the parent answered
            parent_answer: Parent's answer
            follow_ups: Proposed follow-up questions
            include_custom_input: Also add an empty custom input child

        Returns:
            The created child nodes
        """
        if not self.tracker.claim(parent_id):
            return []

        questions = [q.strip() for q in follow_ups if q and q.strip()]
        if not questions and not include_custom_input:
            logger.info(f"No follow-up questions to generate for node {parent_id}")
            return []

        parent = self.store.get_node(parent_id)
        if parent is None:
            logger.error(f"Parent node {parent_id} not found for generating children")
            return []

        return self._create_children(
            parent, questions, parent_question, parent_answer, include_custom_input
        )

    async def expand_node(self, node_id: str) -> list[Node]:
        """Expand an answered node on request.

        Uses the node's stored child questions, or asks the service for
        follow-ups when it has none. The tracker is marked before the
        service is called.

        Returns:
            The created child nodes (empty if already expanded)
        """
        node = self.store.get_node(node_id)
        if node is None:
            logger.warning(f"Cannot expand missing node {node_id}")
            return []

        payload = node.payload
        if isinstance(payload, TopicPayload):
            logger.info(f"Topic node {node_id} does not expand")
            return []
        if isinstance(payload, FollowUpPayload) and not payload.has_been_answered:
            logger.info(f"Node {node_id} is not answered yet, nothing to expand")
            return []

        if not self.tracker.claim(node_id):
            return []

        if isinstance(payload, ResponsePayload):
            question, answer, questions = payload.query, payload.content, []
        else:
            question, answer = payload.question, payload.answer or ""
            questions = list(payload.child_questions)

        if not questions:
            session = self._session
            context = self.context_builder.build_context(node_id)
            try:
                result = await self.service.follow_up(question, context)
            except Exception as e:
                self._report("expand", e)
                return []
            if self._is_stale(session, node_id):
                return []
            questions = [q for q in result.follow_ups if q.strip()]
            node = self.store.get_node(node_id)

        if not questions:
            logger.info(f"No follow-up questions to generate for node {node_id}")
            return []
        return self._create_children(node, questions, question, answer)

    def _create_children(
        self,
        parent: Node,
        questions: Sequence[str],
        parent_question: str,
        parent_answer: str,
        include_custom_input: bool = False,
    ) -> list[Node]:
        count = len(questions) + (1 if include_custom_input else 0)
        positions = compute_child_positions(
            parent.id, count, self.store.get_nodes(), self.store.get_edges(), self.layout
        )

        nodes: list[Node] = []
        edges: list[Edge] = []
        for index, question in enumerate(questions):
            child_id = f"followup-{parent.id}-{index}"
            edge = Edge(parent.id, child_id)
            nodes.append(
                Node(
                    id=child_id,
                    payload=FollowUpPayload(
                        question=question,
                        parent_question=parent_question,
                        parent_answer=parent_answer,
                    ),
                    position=positions[index],
                    parent_edge_id=edge.id,
                )
            )
            edges.append(edge)

        if include_custom_input:
            input_id = f"custom-followup-{parent.id}"
            edge = Edge(parent.id, input_id)
            nodes.append(
                Node(
                    id=input_id,
                    payload=FollowUpPayload(is_custom=True, is_input=True),
                    position=positions[len(questions)],
                    parent_edge_id=edge.id,
                )
            )
            edges.append(edge)

        added, _ = self.store.add(nodes, edges)
        self._reconcile_edges()
        logger.info(
            f"Generated {len(added)} child node(s) for {parent.id} "
            f"at depth {self.context_builder.depth(parent.id) + 1}"
        )
        return added

    # ------------------------------------------------------------------
    # Custom follow-ups
    # ------------------------------------------------------------------

    def create_custom_follow_up(self, parent_id: str) -> Node | None:
        """Add an empty input node next to a parent, without generation.

        Returns:
            The input node, or None if the parent does not exist
        """
        parent = self.store.get_node(parent_id)
        if parent is None:
            logger.error(f"Parent node {parent_id} not found for custom follow-up")
            return None

        candidate = Position(parent.position.x + self.layout.horizontal_spacing, parent.position.y)
        position = resolve_overlap(candidate, self.store.get_nodes(), self.layout)

        node_id = f"follow-up-input-{parent_id}-{_short_id()}"
        edge = Edge(parent_id, node_id)
        node = Node(
            id=node_id,
            payload=FollowUpPayload(is_custom=True, is_input=True),
            position=position,
            parent_edge_id=edge.id,
        )
        self.store.add([node], [edge])
        self._reconcile_edges()
        logger.info(f"Created custom follow-up input {node_id} under {parent_id}")
        return node

    async def submit_custom_follow_up(self, node_id: str, question: str) -> Node | None:
        """Submit the question typed into an input node and answer it.

        Raises:
            ValueError: If the question is empty
        """
        node = self.store.get_node(node_id)
        if node is None or not isinstance(node.payload, FollowUpPayload):
            logger.warning(f"Cannot submit to {node_id}: not a follow-up node")
            return None
        if not question or not question.strip():
            raise ValueError("Question must not be empty")
        return await self.answer_follow_up(node_id, question)

    # ------------------------------------------------------------------
    # Topics, synthesis, edits
    # ------------------------------------------------------------------

    def topics_for(self, node_id: str) -> list[str]:
        """Clickable terms in a node's rendered content."""
        node = self.store.get_node(node_id)
        if node is None:
            return []
        return extract_topics(node.content)

    async def handle_topic_click(self, node_id: str, term: str) -> Node | None:
        """Create a Topic node explaining a term clicked inside a node.

        The topic node is placed at a random offset around the clicked
        node rather than on the question grid.

        Returns:
            The new Topic node, or None if the clicked node is gone
        """
        term = (term or "").strip()
        if not term:
            logger.warning(f"Empty topic clicked in {node_id}")
            return None
        if self.store.get_node(node_id) is None:
            logger.error(f"Parent node {node_id} not found for topic {term!r}")
            return None

        session = self._session
        context = self.context_builder.build_context(node_id)
        try:
            explanation = (await self.service.topic(term, context)).explanation
        except Exception as e:
            self._report("topic", e)
            explanation = f"{PLACEHOLDER_PREFIX} Failed to generate explanation for \"{term}\". Please try again later."

        if self._is_stale(session, node_id):
            return None

        parent = self.store.get_node(node_id)
        slug = re.sub(r"\s+", "-", term).lower()
        topic_id = f"topic-{slug}-{_short_id()}"
        edge = Edge(node_id, topic_id)
        node = Node(
            id=topic_id,
            payload=TopicPayload(topic=term, explanation=explanation),
            position=topic_position(parent.position, self.rng, self.layout),
            parent_edge_id=edge.id,
        )
        self.store.add([node], [edge])
        self._reconcile_edges()
        logger.info(f"Created topic node {topic_id} under {node_id}")
        return node

    async def synthesize(
        self, node_ids: Iterable[str], custom_prompt: str | None = None
    ) -> SynthesisArtifact:
        """Synthesize the selected nodes into an artifact.

        Raises:
            ValueError: If none of the selected nodes has answered content
        """
        node_ids = tuple(node_ids)
        contents = self.context_builder.extract_node_contents(node_ids)
        if not contents:
            raise ValueError("No valid content found in selected nodes")

        logger.info(f"Synthesizing {len(contents)} node(s), custom prompt: {bool(custom_prompt)}")
        session = self._session
        try:
            result = await self.service.synthesize(contents, custom_prompt)
            title, content, placeholder = result.title, result.content, False
        except Exception as e:
            self._report("synthesis", e)
            stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M")
            title = f"{PLACEHOLDER_PREFIX} Synthesis {stamp}"
            content = f"{PLACEHOLDER_PREFIX} Could not synthesize the selected insights. Please try again."
            placeholder = True

        artifact = SynthesisArtifact(
            id=f"artifact-{_short_id()}",
            title=title,
            content=content,
            canvas_id=self.canvas_id,
            selected_nodes=node_ids,
            custom_prompt=custom_prompt,
            is_placeholder=placeholder,
        )
        if session == self._session:
            self.artifacts.insert(0, artifact)
        return artifact

    def edit_node_content(self, node_id: str, content: str) -> Node | None:
        """Replace a node's body text, keeping the pre-edit original."""
        node = self.store.get_node(node_id)
        if node is None:
            logger.warning(f"Cannot edit missing node {node_id}")
            return None
        logger.info(f"Updating content of {node_id}")
        return self.store.update_node(node.with_content(content))

    def __repr__(self) -> str:
        return (
            f"CanvasOrchestrator(nodes={len(self.store)}, "
            f"expanded={len(self.tracker)}, session={self._session})"
        )

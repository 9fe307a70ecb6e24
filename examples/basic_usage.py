"""Basic usage example for MindCanvas.

Starts a canvas from a question, answers a follow-up, explains a topic
term, synthesizes the result and saves everything to LanceDB.

To use with Groq (FREE Llama 3.1 8B):
1. Get API key: https://console.groq.com/
2. Set GROQ_API_KEY environment variable
3. Run this script

Without an API key the offline dummy service is used.
"""

import asyncio
import os
import sys
from pathlib import Path

# Add project root to path for imports without pip install
sys.path.insert(0, str(Path(__file__).parent.parent))

from mind_canvas import (
    CanvasOrchestrator,
    CanvasStore,
    LLMGenerationService,
    Settings,
    configure_logging,
)


def print_tree(orchestrator, node_id, indent=0):
    node = orchestrator.store.get_node(node_id)
    state = orchestrator.node_state(node_id).value
    label = node.payload.question if node.kind.value == "followUp" else node.content
    print(f"{'  ' * indent}- [{node.kind.value}/{state}] {label[:60]} @ ({node.position.x:.0f}, {node.position.y:.0f})")
    for child in orchestrator.store.children_of(node_id):
        print_tree(orchestrator, child.id, indent + 1)


async def main():
    """Run the basic usage example."""
    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.log_file)

    # Option 1: Use the configured provider (Groq by default, FREE Llama 3.1 8B)
    key_env = LLMGenerationService.API_KEY_ENV.get(settings.provider)
    if key_env and os.getenv(key_env) and not settings.use_dummy:
        service = LLMGenerationService(provider=settings.provider, model=settings.model)
        print(f"Using {settings.provider} with {service.model}\n")
    # Option 2: Offline answers for trying things out without an API key
    else:
        service = LLMGenerationService(use_dummy=True)
        print("Using dummy generation service (no API key required)\n")

    orchestrator = CanvasOrchestrator(service)

    print("=" * 60)
    print("STARTING CANVAS")
    print("=" * 60)

    root = await orchestrator.start_canvas("How do Python and Rust handle memory?")
    print_tree(orchestrator, root.id)

    print()
    print("=" * 60)
    print("ANSWERING FIRST FOLLOW-UP")
    print("=" * 60)

    first = orchestrator.store.children_of(root.id)[0]
    await orchestrator.answer_follow_up(first.id)
    print_tree(orchestrator, root.id)

    print()
    print("=" * 60)
    print("EXPLAINING A TOPIC")
    print("=" * 60)

    topics = orchestrator.topics_for(root.id)
    print(f"Clickable topics in root: {topics}")
    if topics:
        topic = await orchestrator.handle_topic_click(root.id, topics[-1])
        print(f"{topic.payload.topic}: {topic.payload.explanation}")

    print()
    print("=" * 60)
    print("SYNTHESIS")
    print("=" * 60)

    artifact = await orchestrator.synthesize([root.id, first.id])
    print(f"{artifact.title}\n\n{artifact.content}")

    print()
    print("=" * 60)
    print("SAVING")
    print("=" * 60)

    store = CanvasStore(db_path=settings.db_path)
    nodes, edges = orchestrator.snapshot()
    record = store.create_canvas(root.payload.query, nodes=nodes, edges=edges)
    store.save_artifact(artifact)
    print(f"Saved {record!r} to {settings.db_path}")
    print(f"Canvases in store: {store.count_canvases()}")


if __name__ == "__main__":
    asyncio.run(main())

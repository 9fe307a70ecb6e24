"""Clickable topic terms inside node content."""

from __future__ import annotations

import re

TOPIC_PATTERN = re.compile(r"\b[A-Z][a-z]{2,}\b")

COMMON_WORDS = frozenset({
    "The", "This", "That", "These", "Those", "They", "Their",
    "When", "Where", "What", "Why", "How",
})


def extract_topics(text: str | None) -> list[str]:
    """Find capitalized terms likely to be topics.

    Args:
        text: Node content

    Returns:
        Unique terms in first-seen order, common sentence starters removed
    """
    if not text:
        return []
    seen: dict[str, None] = {}
    for match in TOPIC_PATTERN.findall(text):
        if match not in COMMON_WORDS:
            seen.setdefault(match, None)
    return list(seen)

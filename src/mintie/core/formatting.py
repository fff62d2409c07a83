"""Slack rendering for parsed assistant answers.

Builds Block Kit payloads for the final reply, the numbered citations
block, and the split of oversized answers into two messages.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from mintie.core.links import resolve_docs_link
from mintie.models.answer import DocsLink

# Safety margin below Slack's hard message limits
SPLIT_THRESHOLD = 3000
SPLIT_WINDOW = 200

SOURCES_SEPARATOR = " • "


def format_sources(sources: Sequence[DocsLink], base_url: str | None = None) -> str:
    """Render citations as ``*Sources:* <url|1> • <url|2>``.

    Sources are numbered in the order given; no dedup or sorting.
    """
    links = [
        f"<{resolve_docs_link(source.link, base_url)}|{index}>"
        for index, source in enumerate(sources, start=1)
    ]
    return f"*Sources:* {SOURCES_SEPARATOR.join(links)}"


def content_block(text: str) -> dict[str, Any]:
    """Return a markdown block holding answer text."""
    return {"type": "markdown", "text": text}


def build_message_blocks(
    content: str,
    sources: Sequence[DocsLink] = (),
    base_url: str | None = None,
) -> list[dict[str, Any]]:
    """Build the blocks for a reply segment.

    The citations block is appended only when there are sources.
    """
    blocks = [content_block(content)]

    if sources:
        blocks.append({"type": "divider"})
        blocks.append(
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": format_sources(sources, base_url),
                },
            }
        )

    return blocks


def find_split_point(content: str, window: int = SPLIT_WINDOW) -> int:
    """Find where to cut an oversized answer in two.

    Looks for a blank line (``\\n\\n``) within ``window`` characters after the
    midpoint, then before it, and returns the index just past it. Without
    one, cuts after the nearest whitespace at or before the midpoint, or at
    the midpoint itself when there is none.
    """
    midpoint = len(content) // 2

    for i in range(midpoint, min(len(content), midpoint + window)):
        if content.startswith("\n\n", i):
            return i + 2

    for i in range(midpoint, max(0, midpoint - window), -1):
        if content.startswith("\n\n", i):
            return i + 2

    for i in range(min(midpoint, len(content) - 1), 0, -1):
        if content[i].isspace():
            return i + 1

    return midpoint


def split_content(
    content: str,
    threshold: int = SPLIT_THRESHOLD,
    window: int = SPLIT_WINDOW,
) -> list[str]:
    """Return the answer as one part, or two when it exceeds ``threshold``.

    Only the blank line or whitespace character at the cut is removed, so
    the parts rejoin to the original text with that delimiter.
    """
    if len(content) <= threshold:
        return [content]

    split_at = find_split_point(content, window)
    first, second = content[:split_at], content[split_at:]
    # Drop only the delimiter the cut consumed
    if first.endswith("\n\n"):
        first = first[:-2]
    elif first[-1:].isspace():
        first = first[:-1]
    if not first.strip() or not second.strip():
        return [content]
    return [first, second]

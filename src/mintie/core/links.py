"""Documentation link resolution shared by parsing and rendering."""

from __future__ import annotations

import re

from mintie.config.schema import DEFAULT_DOCS_BASE_URL

# Slack hyperlink token with a relative target: </path|label>
SLACK_LINK_TOKEN = re.compile(r"^</([^|>]*)\|([^>]*)>$")
ABSOLUTE_URL = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def join_docs_url(base_url: str | None, path: str) -> str:
    """Join a docs base URL and a relative path with exactly one slash."""
    base = (base_url or DEFAULT_DOCS_BASE_URL).rstrip("/")
    return f"{base}/{path.lstrip('/')}"


def is_absolute_url(link: str) -> bool:
    """Return True for links that carry their own scheme."""
    return bool(ABSOLUTE_URL.match(link))


def resolve_docs_link(link: str, base_url: str | None = None) -> str:
    """Resolve a citation link to an absolute URL.

    Handles absolute URLs (returned unchanged), paths with or without a
    leading slash, and Slack hyperlink tokens such as ``</quickstart|Quickstart>``.

    Args:
        link: Raw link from the assistant response.
        base_url: Documentation base URL; defaults to the Mintlify docs.

    Returns:
        Absolute URL.
    """
    link = link.strip()
    token = SLACK_LINK_TOKEN.match(link)
    if token:
        return join_docs_url(base_url, token.group(1))
    if is_absolute_url(link):
        return link
    return join_docs_url(base_url, link)

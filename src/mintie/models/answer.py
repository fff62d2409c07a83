"""Data models for normalized assistant answers."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class DocsLink:
    """A citation source returned by the assistant.

    ``link`` may be an absolute URL, a path starting with ``/`` or a
    Slack hyperlink token such as ``</guides/setup|Setup>``.
    """

    link: str
    title: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "DocsLink | None":
        """Build a DocsLink from a raw source entry, or None if unusable."""
        if isinstance(data, str):
            return cls(link=data) if data else None
        if not isinstance(data, dict):
            return None
        link = data.get("link") or data.get("url")
        if not isinstance(link, str) or not link:
            return None
        title = data.get("title")
        return cls(link=link, title=title if isinstance(title, str) else None)


@dataclass(frozen=True)
class ParsedAnswer:
    """Normalized answer extracted from a raw assistant response."""

    content: str
    sources: tuple[DocsLink, ...] = field(default_factory=tuple)

    @property
    def has_sources(self) -> bool:
        """Return True if the answer carries at least one citation."""
        return len(self.sources) > 0

"""Parser for documentation assistant responses.

The assistant answers either with a single JSON document or with a
line-oriented streaming protocol where every record is prefixed by an
index and a tag::

    f:{"messageId":"msg-1"}
    2:["{\"type\":\"text-delta\",\"textDelta\":\"Hello\"}"]
    2:["{\"type\":\"sources\",\"sources\":[{\"link\":\"/quickstart\"}]}"]
    0:"plain text fallback"

Frame markers (``f:``) start a new generation block and only the last block
is authoritative. Within that block, a ``tool-result`` event discards the
narrative that preceded the tool call.

The parser never raises for malformed input. When nothing recognisable can
be extracted the raw payload is returned as the answer so the user sees
something rather than silence.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from mintie.config.schema import DEFAULT_DOCS_BASE_URL
from mintie.core.links import is_absolute_url, join_docs_url
from mintie.models.answer import DocsLink, ParsedAnswer

log = structlog.get_logger()

FALLBACK_CONTENT = "Sorry, I couldn't process the response properly."


class RecordKind(Enum):
    """Classification of a single line-protocol record."""

    FRAME = "frame"
    EVENT = "event"
    TEXT = "text"
    UNKNOWN = "unknown"


@dataclass
class _Record:
    kind: RecordKind
    events: list[dict[str, Any]] = field(default_factory=list)
    text: str = ""


@dataclass
class _Extraction:
    text: str = ""
    sources: list[Any] | None = None
    recognised: bool = False


class ResponseParser:
    """Decodes raw assistant responses into a ParsedAnswer.

    Responsibilities:
    - Accept structured JSON (``message``/``content`` + ``sources``)
    - Decode the line protocol, keeping only the last generation block
    - Clean up escaping and code fences for Slack rendering
    - Resolve relative documentation links against a base URL

    Example:
        parser = ResponseParser()
        answer = parser.parse(raw_body, base_url="https://docs.example.com")
        print(answer.content, answer.sources)
    """

    FRAME_MARKER = re.compile(r'^f:\{"messageId":')
    EVENT_LINE = re.compile(r"^\d+:(\[.*\])$")
    TEXT_LINE = re.compile(r'^0:(".*")$')

    FENCE_OPEN = re.compile(r"^~~~[ \t]*(\w+)?[ \t]*$", re.MULTILINE)
    TILDE_RUN = re.compile(r"~~~+")
    CODE_BLOCK = re.compile(r"```.*?```", re.DOTALL)
    MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
    RELATIVE_LINK = re.compile(r"\[([^\]]+)\]\(/([^)]+)\)")
    REVERSED_LINK = re.compile(r"(?<!\])\(([^)]+)\)\[([^\]]+)\]")

    def __init__(self, default_base_url: str = DEFAULT_DOCS_BASE_URL) -> None:
        """Initialize the parser.

        Args:
            default_base_url: Base URL used when ``parse`` gets none.
        """
        self._default_base_url = default_base_url

    def parse(self, raw: str | bytes | None, base_url: str | None = None) -> ParsedAnswer:
        """Parse a raw assistant response.

        Args:
            raw: Response body as returned by the assistant backend.
            base_url: Documentation base URL for relative links.

        Returns:
            ParsedAnswer with cleaned content and sources in upstream order.
        """
        if raw is None:
            raw = ""
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")

        extraction = self._parse_structured(raw)
        if extraction is None:
            extraction = self._parse_line_protocol(raw)

        text = extraction.text
        if not text.strip() and not extraction.recognised:
            if raw.strip():
                log.debug("response_fallback_raw", length=len(raw))
            text = raw

        content = self.clean_content(text)
        content = self.resolve_links(content, base_url or self._default_base_url)

        return ParsedAnswer(
            content=content or FALLBACK_CONTENT,
            sources=self._coerce_sources(extraction.sources),
        )

    def _parse_structured(self, raw: str) -> _Extraction | None:
        """Interpret the payload as a single JSON document.

        Returns:
            The extraction, or None when the payload is not structured JSON
            of a recognised shape.
        """
        try:
            document = json.loads(raw)
        except (json.JSONDecodeError, ValueError):
            return None

        if isinstance(document, str):
            return _Extraction(text=document, recognised=True)
        if not isinstance(document, dict):
            return None

        text: str | None = None
        for key in ("message", "content"):
            value = document.get(key)
            if isinstance(value, str) and value:
                text = value
                break
            if text is None and isinstance(value, str):
                text = value

        sources = document.get("sources")
        if not isinstance(sources, list):
            sources = None

        if text is None and sources is None:
            return None

        return _Extraction(text=text or "", sources=sources, recognised=True)

    def _parse_line_protocol(self, raw: str) -> _Extraction:
        """Decode the line protocol, honouring frames and tool boundaries."""
        lines = [line.strip() for line in raw.splitlines() if line.strip()]
        block = self._split_blocks(lines)[-1] if lines else []

        records = [self._classify(line) for line in block]
        recognised = any(r.kind is not RecordKind.UNKNOWN for r in records)

        sources: list[Any] | None = None
        last_tool_result = -1
        for index, record in enumerate(records):
            for event in record.events:
                if event.get("type") == "tool-result":
                    last_tool_result = index
                elif event.get("type") == "sources" and isinstance(event.get("sources"), list):
                    sources = event["sources"]

        deltas: list[str] = []
        plain: list[str] = []
        for record in records[last_tool_result + 1 :]:
            if record.kind is RecordKind.TEXT:
                plain.append(record.text)
            for event in record.events:
                delta = event.get("textDelta")
                if event.get("type") == "text-delta" and isinstance(delta, str):
                    deltas.append(delta)

        text = "".join(deltas) if deltas else "".join(plain)
        return _Extraction(text=text, sources=sources, recognised=recognised)

    def _split_blocks(self, lines: list[str]) -> list[list[str]]:
        """Partition lines into generation blocks at each frame marker."""
        blocks: list[list[str]] = [[]]
        for line in lines:
            if self.FRAME_MARKER.match(line):
                if blocks[-1]:
                    blocks.append([])
            blocks[-1].append(line)
        return blocks

    def _classify(self, line: str) -> _Record:
        """Decode one record. Corrupt records are logged and ignored."""
        if self.FRAME_MARKER.match(line):
            return _Record(kind=RecordKind.FRAME)

        try:
            event_match = self.EVENT_LINE.match(line)
            if event_match:
                return _Record(
                    kind=RecordKind.EVENT,
                    events=self._decode_events(event_match.group(1)),
                )

            text_match = self.TEXT_LINE.match(line)
            if text_match:
                decoded = json.loads(text_match.group(1))
                if isinstance(decoded, str):
                    return _Record(kind=RecordKind.TEXT, text=decoded)
        except (json.JSONDecodeError, ValueError, TypeError) as e:
            log.debug("response_line_skipped", error=str(e), line=line[:80])

        return _Record(kind=RecordKind.UNKNOWN)

    @staticmethod
    def _decode_events(payload: str) -> list[dict[str, Any]]:
        """Decode the JSON array of an event record.

        Elements are usually JSON-encoded strings holding the event object,
        but plain objects are accepted too.
        """
        items = json.loads(payload)
        if not isinstance(items, list):
            return []

        events: list[dict[str, Any]] = []
        for item in items:
            if isinstance(item, str):
                item = json.loads(item)
            if isinstance(item, dict):
                events.append(item)
        return events

    @staticmethod
    def _coerce_sources(raw_sources: list[Any] | None) -> tuple[DocsLink, ...]:
        if not raw_sources:
            return ()
        links = (DocsLink.from_dict(item) for item in raw_sources)
        return tuple(link for link in links if link is not None)

    def clean_content(self, text: str) -> str:
        """Normalize escaping and code fences for Slack.

        - Literal ``\\n`` becomes a newline and literal ``\\t`` a space
        - ``~~~`` fences become triple backticks, keeping the language tag
        - Markdown links inside fenced code are collapsed to their text
        """
        cleaned = text.strip().replace("\\n", "\n").replace("\\t", " ")
        cleaned = self.FENCE_OPEN.sub(lambda m: f"```{m.group(1) or ''}", cleaned)
        cleaned = self.TILDE_RUN.sub("```", cleaned)
        cleaned = self.CODE_BLOCK.sub(
            lambda m: self.MARKDOWN_LINK.sub(r"\1", m.group(0)),
            cleaned,
        )
        return cleaned

    def resolve_links(self, text: str, base_url: str) -> str:
        """Rewrite relative documentation links to absolute URLs.

        Handles ``[text](/path)`` as well as the reversed ``(text)[/path]``
        and ``(text)[path]`` forms. Fenced code is left untouched.
        """

        def reversed_link(match: re.Match[str]) -> str:
            label, target = match.group(1), match.group(2)
            if is_absolute_url(target):
                return f"[{label}]({target})"
            return f"[{label}]({join_docs_url(base_url, target)})"

        def resolve(segment: str) -> str:
            segment = self.RELATIVE_LINK.sub(
                lambda m: f"[{m.group(1)}]({join_docs_url(base_url, m.group(2))})",
                segment,
            )
            return self.REVERSED_LINK.sub(reversed_link, segment)

        parts: list[str] = []
        position = 0
        for block in self.CODE_BLOCK.finditer(text):
            parts.append(resolve(text[position : block.start()]))
            parts.append(block.group(0))
            position = block.end()
        parts.append(resolve(text[position:]))
        return "".join(parts)


def parse_response(raw: str | bytes | None, base_url: str | None = None) -> ParsedAnswer:
    """Parse a raw assistant response with a default parser."""
    return ResponseParser().parse(raw, base_url)

"""Parse and format inline entity citations: ``[[entity_type:uuid:Display Name]]``.

Examples:
    [[character:550e8400-e29b-41d4-a716-446655440000:Captain Aldric]]
    [[location:7c9e6679-7425-40de-944b-e07fc1f90ae7:The Obsidian Tower]]

Every helper here derives from ``CITATION_RE`` so they cannot disagree.
UUIDs must be lowercase and entity types plain ASCII words.
"""

import re
from dataclasses import dataclass
from typing import Literal

# Groups: type, id, name.
CITATION_RE = re.compile(r"\[\[(\w+):([a-f0-9-]{36}):([^\]]+)\]\]", re.ASCII)


@dataclass(frozen=True)
class ParsedCitation:
    raw: str
    entity_type: str
    entity_id: str
    display_name: str
    start_index: int
    end_index: int


@dataclass(frozen=True)
class ContentSegment:
    type: Literal["text", "citation"]
    content: str
    citation: ParsedCitation | None = None


def _from_match(match: re.Match[str]) -> ParsedCitation:
    return ParsedCitation(
        raw=match.group(0),
        entity_type=match.group(1),
        entity_id=match.group(2),
        display_name=match.group(3),
        start_index=match.start(),
        end_index=match.end(),
    )


def parse_citations(content: str) -> list[ParsedCitation]:
    """All citations in ``content``, left to right, non-overlapping."""
    return [_from_match(m) for m in CITATION_RE.finditer(content)]


def parse_content_segments(content: str) -> list[ContentSegment]:
    """Split ``content`` into text and citation segments.

    Joining every segment's ``content`` in order gives back ``content``.
    """
    segments: list[ContentSegment] = []
    last_index = 0
    for citation in parse_citations(content):
        if citation.start_index > last_index:
            segments.append(ContentSegment("text", content[last_index : citation.start_index]))
        segments.append(ContentSegment("citation", citation.raw, citation))
        last_index = citation.end_index
    if last_index < len(content):
        segments.append(ContentSegment("text", content[last_index:]))
    return segments


def format_citation(entity_type: str, entity_id: str, display_name: str) -> str:
    return f"[[{entity_type}:{entity_id}:{display_name}]]"


def has_citations(content: str) -> bool:
    return CITATION_RE.search(content) is not None


def strip_citations(content: str) -> str:
    """Replace each citation with its display name."""
    return CITATION_RE.sub(r"\3", content)


def count_citations(content: str) -> int:
    return len(parse_citations(content))

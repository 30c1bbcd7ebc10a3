"""Plain-text helpers and rich-text field conversion for entity records.

Everything here feeds display or defaults, so it never raises on foreign
content: anything that cannot be decoded is passed through unchanged.
"""

import json
import re
from collections.abc import Mapping
from typing import Any

from campaign_assist.core.content.markdown import markdown_to_document
from campaign_assist.core.content.render import document_to_markdown
from campaign_assist.models.document import (
    Doc,
    DocumentFormatError,
    Paragraph,
    Text,
    document_from_json,
    dumps_document,
)
from campaign_assist.models.entity import RICH_TEXT_FIELDS

_MARKDOWN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^#{1,6}\s", re.MULTILINE),  # headings
    re.compile(r"\*\*[^*]+\*\*"),  # bold
    re.compile(r"\*[^*]+\*"),  # italic
    re.compile(r"^-\s", re.MULTILINE),  # bullet lists
    re.compile(r"^\d+\.\s", re.MULTILINE),  # numbered lists
    re.compile(r"^>\s", re.MULTILINE),  # blockquotes
    re.compile(r"`[^`]+`"),  # inline code
    re.compile(r"```"),  # code blocks
    re.compile(r"\[.+\]\(.+\)"),  # links
)

_PARAGRAPH_BREAK_RE = re.compile(r"\n\n+")

# Node kinds whose children are blocks; their texts are joined line by line.
_BLOCK_CONTAINERS = frozenset(["doc", "bulletList", "orderedList", "listItem", "blockquote"])


def looks_like_markdown(text: str) -> bool:
    """Heuristic: does ``text`` appear to contain Markdown formatting?

    Only used to pick a sensible default converter; never rely on it for correctness.
    """
    if not text:
        return False
    return any(p.search(text) for p in _MARKDOWN_PATTERNS)


def plain_text_to_document(text: str) -> Doc:
    """Split plain text into paragraphs on blank lines, without Markdown parsing."""
    if not text or not text.strip():
        return Doc()
    paragraphs = []
    for chunk in _PARAGRAPH_BREAK_RE.split(text):
        chunk = chunk.strip()
        paragraphs.append(Paragraph((Text(chunk),)) if chunk else Paragraph())
    return Doc(tuple(paragraphs))


def extract_plain_text(content: str) -> str:
    """Flatten a stored document to plain text for previews and search.

    Blocks are newline-joined and inline runs concatenated. Input that is not
    a stored document is returned unchanged.
    """
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        return content
    if not isinstance(data, dict) or data.get("type") != "doc":
        return content
    return _node_text(data)


def _node_text(node: Any) -> str:
    if not isinstance(node, dict):
        return ""
    node_type = node.get("type")
    if node_type == "text":
        text = node.get("text", "")
        return text if isinstance(text, str) else ""
    if node_type == "hardBreak":
        return "\n"
    children = node.get("content")
    if not isinstance(children, list):
        return ""
    separator = "\n" if node_type in _BLOCK_CONTAINERS else ""
    return separator.join(_node_text(child) for child in children)


def document_json_to_markdown(value: Any) -> str:
    """Render stored document JSON (string or decoded) as Markdown.

    Documents with node kinds outside the model fall back to their plain text.
    """
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return value
    try:
        return document_to_markdown(document_from_json(value))
    except DocumentFormatError:
        if isinstance(value, dict) and value.get("type") == "doc":
            return _node_text(value)
        return ""


def _stored_document(value: Any) -> dict[str, Any] | None:
    if not isinstance(value, str) or not value.lstrip().startswith("{"):
        return None
    try:
        data = json.loads(value)
    except json.JSONDecodeError:
        return None
    if isinstance(data, dict) and data.get("type") == "doc":
        return data
    return None


def field_to_markdown(value: Any) -> Any:
    """Convert a stored rich-text value to Markdown; other values pass through."""
    data = _stored_document(value)
    return value if data is None else document_json_to_markdown(data)


def entity_to_markdown(record: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``record`` with every rich-text field rendered as Markdown."""
    return {
        key: field_to_markdown(value) if key in RICH_TEXT_FIELDS else value
        for key, value in record.items()
    }


def text_to_storage(text: str) -> str:
    """Convert Markdown or plain text to the stored document string."""
    doc = markdown_to_document(text) if looks_like_markdown(text) else plain_text_to_document(text)
    return dumps_document(doc)


def convert_rich_text_fields(data: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``data`` with non-blank rich-text strings converted to stored documents.

    Values that already are stored documents are kept as they are.
    """
    converted = dict(data)
    for key, value in converted.items():
        if key not in RICH_TEXT_FIELDS or not isinstance(value, str) or not value.strip():
            continue
        if _stored_document(value) is None:
            converted[key] = text_to_storage(value)
    return converted

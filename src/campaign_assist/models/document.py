"""Block-structured rich-text document model and its JSON storage codec.

Rich-text entity fields are stored as compact JSON strings in the editor's
node format (``{"type":"doc","content":[...]}``). In memory they are decoded
into the frozen dataclasses below, a closed set of block and inline variants.
"""

import json
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class DocumentFormatError(ValueError):
    """Raised when stored document JSON does not match the node schema."""


class MarkType(StrEnum):
    BOLD = "bold"
    ITALIC = "italic"
    STRIKE = "strike"
    CODE = "code"
    LINK = "link"


@dataclass(frozen=True)
class Mark:
    """Inline formatting attached to a text run. Only links carry an href."""

    type: MarkType
    href: str | None = None


@dataclass(frozen=True)
class Text:
    text: str
    marks: tuple[Mark, ...] = ()

    def has_mark(self, mark_type: MarkType) -> bool:
        return any(m.type == mark_type for m in self.marks)

    def mark(self, mark_type: MarkType) -> Mark | None:
        return next((m for m in self.marks if m.type == mark_type), None)


@dataclass(frozen=True)
class HardBreak:
    pass


Inline = Text | HardBreak


@dataclass(frozen=True)
class Heading:
    level: int
    content: tuple[Inline, ...] = ()


@dataclass(frozen=True)
class Paragraph:
    content: tuple[Inline, ...] = ()


@dataclass(frozen=True)
class ListItem:
    content: tuple["Block", ...]


@dataclass(frozen=True)
class BulletList:
    items: tuple[ListItem, ...]


@dataclass(frozen=True)
class OrderedList:
    items: tuple[ListItem, ...]
    start: int = 1


@dataclass(frozen=True)
class Blockquote:
    content: tuple["Block", ...]


@dataclass(frozen=True)
class CodeBlock:
    text: str
    language: str | None = None


@dataclass(frozen=True)
class HorizontalRule:
    pass


Block = Heading | Paragraph | BulletList | OrderedList | Blockquote | CodeBlock | HorizontalRule


@dataclass(frozen=True)
class Doc:
    """Root node. An empty ``content`` means "no content", not an error."""

    content: tuple[Block, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.content


# --- JSON codec ---


def _mark_to_json(mark: Mark) -> dict[str, Any]:
    if mark.type == MarkType.LINK:
        return {"type": "link", "attrs": {"href": mark.href or ""}}
    return {"type": mark.type.value}


def _inline_to_json(node: Inline) -> dict[str, Any]:
    if isinstance(node, HardBreak):
        return {"type": "hardBreak"}
    data: dict[str, Any] = {"type": "text", "text": node.text}
    if node.marks:
        data["marks"] = [_mark_to_json(m) for m in node.marks]
    return data


def _with_content(data: dict[str, Any], content: list[dict[str, Any]]) -> dict[str, Any]:
    # The editor omits empty content arrays rather than storing [].
    if content:
        data["content"] = content
    return data


def _block_to_json(node: Block | ListItem) -> dict[str, Any]:
    if isinstance(node, Heading):
        return _with_content(
            {"type": "heading", "attrs": {"level": node.level}},
            [_inline_to_json(n) for n in node.content],
        )
    if isinstance(node, Paragraph):
        return _with_content({"type": "paragraph"}, [_inline_to_json(n) for n in node.content])
    if isinstance(node, ListItem):
        return {"type": "listItem", "content": [_block_to_json(b) for b in node.content]}
    if isinstance(node, BulletList):
        return {"type": "bulletList", "content": [_block_to_json(i) for i in node.items]}
    if isinstance(node, OrderedList):
        return {
            "type": "orderedList",
            "attrs": {"start": node.start},
            "content": [_block_to_json(i) for i in node.items],
        }
    if isinstance(node, Blockquote):
        return {"type": "blockquote", "content": [_block_to_json(b) for b in node.content]}
    if isinstance(node, CodeBlock):
        return _with_content(
            {"type": "codeBlock", "attrs": {"language": node.language}},
            [{"type": "text", "text": node.text}] if node.text else [],
        )
    return {"type": "horizontalRule"}


def document_to_json(doc: Doc) -> dict[str, Any]:
    """Encode a document in the editor's JSON node format."""
    return {"type": "doc", "content": [_block_to_json(b) for b in doc.content]}


def _children(data: dict[str, Any]) -> list[Any]:
    content = data.get("content") or []
    if not isinstance(content, list):
        raise DocumentFormatError(f"'content' of {data.get('type')!r} node must be a list")
    return content


def _attrs(data: dict[str, Any]) -> dict[str, Any]:
    attrs = data.get("attrs") or {}
    if not isinstance(attrs, dict):
        raise DocumentFormatError(f"'attrs' of {data.get('type')!r} node must be an object")
    return attrs


def _mark_from_json(data: Any) -> Mark:
    if not isinstance(data, dict):
        raise DocumentFormatError(f"Mark must be an object, got {data!r}")
    try:
        mark_type = MarkType(data.get("type"))
    except ValueError as e:
        raise DocumentFormatError(f"Unknown mark type: {data.get('type')!r}") from e
    if mark_type == MarkType.LINK:
        return Mark(mark_type, href=str(_attrs(data).get("href") or ""))
    return Mark(mark_type)


def _inline_from_json(data: Any) -> Inline:
    if not isinstance(data, dict):
        raise DocumentFormatError(f"Inline node must be an object, got {data!r}")
    node_type = data.get("type")
    if node_type == "hardBreak":
        return HardBreak()
    if node_type == "text":
        marks = data.get("marks") or []
        if not isinstance(marks, list):
            raise DocumentFormatError("'marks' must be a list")
        return Text(str(data.get("text", "")), tuple(_mark_from_json(m) for m in marks))
    raise DocumentFormatError(f"Unknown inline node type: {node_type!r}")


def _list_item_from_json(data: Any) -> ListItem:
    if not isinstance(data, dict) or data.get("type") != "listItem":
        raise DocumentFormatError(f"List children must be listItem nodes, got {data!r}")
    return ListItem(tuple(_block_from_json(b) for b in _children(data)))


def _block_from_json(data: Any) -> Block:
    if not isinstance(data, dict):
        raise DocumentFormatError(f"Block node must be an object, got {data!r}")
    node_type = data.get("type")
    if node_type == "heading":
        level = _attrs(data).get("level", 1)
        if not isinstance(level, int):
            raise DocumentFormatError(f"Heading level must be an integer, got {level!r}")
        return Heading(level, tuple(_inline_from_json(n) for n in _children(data)))
    if node_type == "paragraph":
        return Paragraph(tuple(_inline_from_json(n) for n in _children(data)))
    if node_type == "bulletList":
        return BulletList(tuple(_list_item_from_json(i) for i in _children(data)))
    if node_type == "orderedList":
        start = _attrs(data).get("start", 1)
        return OrderedList(
            tuple(_list_item_from_json(i) for i in _children(data)),
            start=start if isinstance(start, int) else 1,
        )
    if node_type == "blockquote":
        return Blockquote(tuple(_block_from_json(b) for b in _children(data)))
    if node_type == "codeBlock":
        text = "".join(
            str(n.get("text", "")) for n in _children(data) if isinstance(n, dict)
        )
        language = _attrs(data).get("language")
        return CodeBlock(text, language=str(language) if language else None)
    if node_type == "horizontalRule":
        return HorizontalRule()
    raise DocumentFormatError(f"Unknown block node type: {node_type!r}")


def document_from_json(data: Any) -> Doc:
    """Decode the editor's JSON node format.

    Raises:
        DocumentFormatError: if ``data`` is not a doc node or contains unknown node kinds.
    """
    if not isinstance(data, dict) or data.get("type") != "doc":
        raise DocumentFormatError("Document root must be an object with type 'doc'")
    return Doc(tuple(_block_from_json(b) for b in _children(data)))


def dumps_document(doc: Doc) -> str:
    """Serialize to the compact string form stored in entity fields."""
    return json.dumps(document_to_json(doc), separators=(",", ":"), ensure_ascii=False)


def loads_document(raw: str) -> Doc:
    """Parse a stored document string.

    Raises:
        DocumentFormatError: if ``raw`` is not valid JSON or not a valid document.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DocumentFormatError(f"Document is not valid JSON: {e}") from e
    return document_from_json(data)

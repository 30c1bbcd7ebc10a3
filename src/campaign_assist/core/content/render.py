"""Render documents as Markdown.

Two adjacent lists of the same kind switch marker (``-``/``*``, ``.``/``)``)
so they parse back as two lists. Plain text that would start a block at the
beginning of a line is backslash-escaped.
"""

import re
from collections.abc import Sequence

from campaign_assist.models.document import (
    Block,
    Blockquote,
    BulletList,
    CodeBlock,
    Doc,
    Heading,
    HorizontalRule,
    Inline,
    ListItem,
    MarkType,
    OrderedList,
    Paragraph,
    Text,
)

# Marks wrap a text run in this order, first entry innermost.
_MARK_ORDER: tuple[MarkType, ...] = (
    MarkType.BOLD,
    MarkType.ITALIC,
    MarkType.STRIKE,
    MarkType.CODE,
    MarkType.LINK,
)

_BACKTICK_RUN_RE = re.compile(r"`+")

# Line starts that CommonMark would read as a block marker.
_ORDERED_MARKER_RE = re.compile(r"(\d{1,9})([.)])(?=[ \t]|$)")
_HEADING_MARKER_RE = re.compile(r"#{1,6}(?=[ \t]|$)")
_BULLET_MARKER_RE = re.compile(r"[-+*](?=[ \t]|$)")
_THEMATIC_BREAK_RE = re.compile(r"([-*_])(?:[ \t]*\1){2,}[ \t]*$")
_SETEXT_UNDERLINE_RE = re.compile(r"(?:=+|-+)[ \t]*$")
_FENCE_RE = re.compile(r"(?:`{3,}|~{3,})")


def document_to_markdown(doc: Doc) -> str:
    """Convert a document to Markdown. Top-level blocks are separated by a blank line."""
    return "\n\n".join(_blocks_to_markdown(doc.content))


def _blocks_to_markdown(blocks: Sequence[Block]) -> list[str]:
    rendered: list[str] = []
    alternate = False
    for i, block in enumerate(blocks):
        follows_same_list = (
            i > 0
            and isinstance(block, BulletList | OrderedList)
            and type(blocks[i - 1]) is type(block)
        )
        alternate = follows_same_list and not alternate
        rendered.append(block_to_markdown(block, alternate=alternate))
    return rendered


def block_to_markdown(node: Block, *, alternate: bool = False) -> str:
    """Render one block. ``alternate`` selects the second list marker style."""
    if isinstance(node, Heading):
        text = inline_to_markdown(node.content)
        prefix = "#" * max(1, min(node.level, 6))
        return f"{prefix} {text}" if text else prefix
    if isinstance(node, Paragraph):
        return inline_to_markdown(node.content)
    if isinstance(node, BulletList):
        bullet = "* " if alternate else "- "
        return "\n".join(_list_item_to_markdown(item, bullet) for item in node.items)
    if isinstance(node, OrderedList):
        delimiter = ")" if alternate else "."
        return "\n".join(
            _list_item_to_markdown(item, f"{node.start + i}{delimiter} ")
            for i, item in enumerate(node.items)
        )
    if isinstance(node, Blockquote):
        body = "\n\n".join(_blocks_to_markdown(node.content))
        return "\n".join(f"> {line}" if line else ">" for line in body.split("\n"))
    if isinstance(node, CodeBlock):
        return _code_block_to_markdown(node)
    if isinstance(node, HorizontalRule):
        return "---"
    raise TypeError(f"Not a block node: {node!r}")


def _list_item_to_markdown(item: ListItem, marker: str) -> str:
    """Render one item; continuation lines are indented to the marker width."""
    rendered = _blocks_to_markdown(item.content)
    parts: list[str] = []
    for i, block in enumerate(item.content):
        if i > 0:
            # A paragraph directly followed by a list stays tight; anything else
            # needs a blank line to remain a separate block.
            tight = isinstance(item.content[i - 1], Paragraph) and isinstance(
                block, BulletList | OrderedList
            )
            parts.append("\n" if tight else "\n\n")
        parts.append(rendered[i])
    lines = "".join(parts).split("\n")

    indent = " " * len(marker)
    first = f"{marker}{lines[0]}" if lines[0] else marker.rstrip()
    rest = [f"{indent}{line}" if line else "" for line in lines[1:]]
    return "\n".join([first, *rest])


def _code_block_to_markdown(node: CodeBlock) -> str:
    longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(node.text)), default=0)
    fence = "`" * max(3, longest + 1)
    language = node.language or ""
    if not node.text:
        return f"{fence}{language}\n{fence}"
    return f"{fence}{language}\n{node.text}\n{fence}"


def inline_to_markdown(content: tuple[Inline, ...]) -> str:
    parts: list[str] = []
    at_line_start = True
    for node in content:
        if isinstance(node, Text):
            rendered = _text_to_markdown(node, at_line_start=at_line_start)
        else:
            # Hard breaks become literal newlines.
            rendered = "\n"
        parts.append(rendered)
        if rendered:
            at_line_start = rendered.endswith("\n")
    return "".join(parts)


def _escape_line_starts(text: str, *, first_line: bool) -> str:
    lines = text.split("\n")
    return "\n".join(
        _escape_block_marker(line) if i or first_line else line for i, line in enumerate(lines)
    )


def _escape_block_marker(line: str) -> str:
    body = line.lstrip(" \t")
    indent = line[: len(line) - len(body)]
    if not body:
        return line
    ordered = _ORDERED_MARKER_RE.match(body)
    if ordered:
        digits = ordered.group(1)
        return f"{indent}{digits}\\{body[len(digits):]}"
    if (
        body.startswith(">")
        or _HEADING_MARKER_RE.match(body)
        or _BULLET_MARKER_RE.match(body)
        or _THEMATIC_BREAK_RE.match(body)
        or _SETEXT_UNDERLINE_RE.match(body)
        or _FENCE_RE.match(body)
    ):
        return f"{indent}\\{body}"
    return line


def _text_to_markdown(node: Text, *, at_line_start: bool = False) -> str:
    if not node.marks:
        return _escape_line_starts(node.text, first_line=at_line_start)

    text = node.text
    lead = trail = ""
    if not node.has_mark(MarkType.CODE):
        # Delimiters next to whitespace do not parse as emphasis, so keep it outside.
        stripped = text.strip()
        if not stripped:
            return text
        lead = text[: len(text) - len(text.lstrip())]
        trail = text[len(text.rstrip()) :]
        # The opening delimiter already shields the first line.
        text = _escape_line_starts(stripped, first_line=False)

    for mark_type in _MARK_ORDER:
        mark = node.mark(mark_type)
        if mark is None:
            continue
        if mark_type == MarkType.BOLD:
            text = f"**{text}**"
        elif mark_type == MarkType.ITALIC:
            text = f"*{text}*"
        elif mark_type == MarkType.STRIKE:
            text = f"~~{text}~~"
        elif mark_type == MarkType.CODE:
            text = _code_span(text)
        else:
            text = f"[{text}]({_link_destination(mark.href or '')})"
    return f"{lead}{text}{trail}"


def _code_span(text: str) -> str:
    longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(text)), default=0)
    if not longest:
        return f"`{text}`"
    ticks = "`" * (longest + 1)
    return f"{ticks} {text} {ticks}"


def _link_destination(href: str) -> str:
    if any(c in href for c in " ()") and "<" not in href and ">" not in href:
        return f"<{href}>"
    return href

"""Parse Markdown into the block-structured document model.

markdown-it produces a flat token stream: block tokens with opening and
closing pairs, and ``inline`` tokens whose children carry the inline
markup. The stream is folded back into a tree here. Anything the document
model cannot represent degrades to plain text instead of failing.
"""

from markdown_it import MarkdownIt
from markdown_it.token import Token

from campaign_assist.config import MAX_HEADING_LEVEL
from campaign_assist.models.document import (
    Block,
    Blockquote,
    BulletList,
    CodeBlock,
    Doc,
    HardBreak,
    Heading,
    HorizontalRule,
    Inline,
    ListItem,
    Mark,
    MarkType,
    OrderedList,
    Paragraph,
    Text,
)

_md = MarkdownIt("commonmark").enable(["table", "strikethrough"])

_MARK_TOKENS: dict[str, MarkType] = {
    "strong": MarkType.BOLD,
    "em": MarkType.ITALIC,
    "s": MarkType.STRIKE,
    "link": MarkType.LINK,
}


def markdown_to_document(markdown: str) -> Doc:
    """Convert Markdown text to a document.

    Empty or whitespace-only input gives an empty document. Non-empty input
    that yields no usable blocks (e.g. only link reference definitions)
    gives a single empty paragraph so editors always have a cursor position.
    """
    if not markdown or not markdown.strip():
        return Doc()

    blocks = _wrap_inline(_parse_blocks(_md.parse(markdown)))
    if not blocks:
        return Doc((Paragraph(),))
    return Doc(tuple(blocks))


# --- Block level ---


def _find_close(tokens: list[Token], start: int) -> int:
    """Index of the token closing the container opened at ``start``."""
    depth = 0
    for i in range(start, len(tokens)):
        depth += tokens[i].nesting
        if depth == 0:
            return i
    return len(tokens) - 1


def _parse_blocks(tokens: list[Token]) -> list[Block | Inline]:
    """Map a balanced token slice to nodes.

    Stray inline tokens outside a paragraph come back as inline nodes; callers
    wrap them with ``_wrap_inline``.
    """
    nodes: list[Block | Inline] = []
    pos = 0
    while pos < len(tokens):
        token = tokens[pos]
        end = _find_close(tokens, pos) if token.nesting == 1 else pos
        inner = tokens[pos + 1 : end]
        node: Block | None = None

        if token.type == "heading_open":
            level = min(int(token.tag[1:]), MAX_HEADING_LEVEL)
            node = Heading(level, tuple(_inline_of(inner)))
        elif token.type == "paragraph_open":
            node = Paragraph(tuple(_inline_of(inner)))
        elif token.type == "bullet_list_open":
            node = BulletList(tuple(_parse_list_items(inner)))
        elif token.type == "ordered_list_open":
            start = token.attrGet("start")
            node = OrderedList(
                tuple(_parse_list_items(inner)),
                start=int(start) if start is not None else 1,
            )
        elif token.type == "blockquote_open":
            content = _wrap_inline(_parse_blocks(inner))
            node = Blockquote(tuple(content) or (Paragraph(),))
        elif token.type in ("fence", "code_block"):
            language = token.info.strip().split(maxsplit=1)[0] if token.info.strip() else None
            node = CodeBlock(token.content.removesuffix("\n"), language=language)
        elif token.type == "hr":
            node = HorizontalRule()
        elif token.type == "html_block":
            html = token.content.strip("\n")
            if html.strip():
                node = Paragraph((Text(html),))
        elif token.type == "table_open":
            node = _table_to_paragraph(inner)
        elif token.type == "inline":
            nodes.extend(_parse_inline(token.children or []))
        else:
            node = _fallback_block(token, inner)

        if node is not None:
            nodes.append(node)
        pos = end + 1
    return nodes


def _parse_list_items(tokens: list[Token]) -> list[ListItem]:
    items: list[ListItem] = []
    pos = 0
    while pos < len(tokens):
        end = _find_close(tokens, pos)
        if tokens[pos].type == "list_item_open":
            content = _wrap_inline(_parse_blocks(tokens[pos + 1 : end]))
            items.append(ListItem(tuple(content) or (Paragraph(),)))
        pos = end + 1
    return items


def _wrap_inline(nodes: list[Block | Inline]) -> list[Block]:
    """Wrap runs of bare inline nodes in synthetic paragraphs."""
    blocks: list[Block] = []
    pending: list[Inline] = []
    for node in nodes:
        if isinstance(node, Text | HardBreak):
            pending.append(node)
            continue
        if pending:
            blocks.append(Paragraph(tuple(_merge_runs(pending))))
            pending = []
        blocks.append(node)
    if pending:
        blocks.append(Paragraph(tuple(_merge_runs(pending))))
    return blocks


def _table_to_paragraph(tokens: list[Token]) -> Paragraph:
    """Flatten a table into pipe-joined rows of plain text."""
    rows: list[str] = []
    cells: list[str] = []
    for token in tokens:
        if token.type == "tr_open":
            cells = []
        elif token.type == "inline":
            cells.append(_plain_text(token))
        elif token.type == "tr_close":
            rows.append(" | ".join(cells))
    return Paragraph((Text("\n".join(rows)),))


def _fallback_block(token: Token, inner: list[Token]) -> Paragraph | None:
    """Unknown block token: keep whatever text it carries as a paragraph."""
    if token.nesting == 1:
        text = "\n".join(_plain_text(t) for t in inner if t.type == "inline")
    else:
        text = token.content
    if text.strip():
        return Paragraph((Text(text.strip("\n")),))
    return None


def _plain_text(token: Token) -> str:
    if not token.children:
        return token.content
    parts: list[str] = []
    for child in token.children:
        parts.append("\n" if child.type in ("softbreak", "hardbreak") else child.content)
    return "".join(parts)


# --- Inline level ---


def _inline_of(tokens: list[Token]) -> list[Inline]:
    inline: list[Inline] = []
    for token in tokens:
        if token.type == "inline":
            inline.extend(_parse_inline(token.children or []))
    return inline


def _parse_inline(children: list[Token]) -> list[Inline]:
    """Convert inline tokens to text runs, accumulating marks outermost-first."""
    nodes: list[Inline] = []
    marks: list[Mark] = []

    for child in children:
        kind = child.type
        base = kind.removesuffix("_open").removesuffix("_close")

        if base in _MARK_TOKENS and kind != base:
            mark_type = _MARK_TOKENS[base]
            if kind.endswith("_open"):
                href = str(child.attrGet("href") or "") if mark_type == MarkType.LINK else None
                marks.append(Mark(mark_type, href=href))
            else:
                _pop_mark(marks, mark_type)
        elif kind in ("text", "text_special", "html_inline"):
            nodes.append(Text(child.content, tuple(marks)))
        elif kind == "code_inline":
            nodes.append(Text(child.content, (*marks, Mark(MarkType.CODE))))
        elif kind == "softbreak":
            nodes.append(Text("\n", tuple(marks)))
        elif kind == "hardbreak":
            nodes.append(HardBreak())
        elif kind == "image":
            # The editor has no images; keep the alt text linked to the source.
            src = str(child.attrGet("src") or "")
            nodes.append(Text(child.content or src, (*marks, Mark(MarkType.LINK, href=src))))
        elif child.content:
            nodes.append(Text(child.content, tuple(marks)))

    return _merge_runs(nodes)


def _pop_mark(marks: list[Mark], mark_type: MarkType) -> None:
    for i in range(len(marks) - 1, -1, -1):
        if marks[i].type == mark_type:
            del marks[i]
            return


def _merge_runs(nodes: list[Inline]) -> list[Inline]:
    """Drop empty runs and join neighbours that carry identical marks."""
    merged: list[Inline] = []
    for node in nodes:
        if isinstance(node, Text):
            if not node.text:
                continue
            prev = merged[-1] if merged else None
            if isinstance(prev, Text) and prev.marks == node.marks:
                merged[-1] = Text(prev.text + node.text, prev.marks)
                continue
        merged.append(node)
    return merged

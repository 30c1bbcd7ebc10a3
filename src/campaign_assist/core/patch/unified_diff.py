"""Parse and apply line-oriented unified diffs to text fields.

Diffs come from an AI agent, so before unidiff reads them they are repaired
where the repair cannot change the meaning of a hunk: file headers are added,
hunk header counts are recomputed from the hunk body, and blank context lines
whose leading space was stripped get it back. Application is strict: every
context and removed line must match the original text exactly or nothing is
applied.
"""

import difflib
import re
from dataclasses import dataclass

from unidiff import PatchSet
from unidiff.constants import LINE_TYPE_NO_NEWLINE
from unidiff.errors import UnidiffParseError

from campaign_assist.core.patch.errors import PatchApplicationError, PatchParseError
from campaign_assist.models.proposal import PatchType

_HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,\d+)? \+(\d+)(?:,\d+)? @@")


@dataclass(frozen=True)
class Hunk:
    """One ``@@`` section: (op, text) pairs where op is ' ', '-' or '+'."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: tuple[tuple[str, str], ...]
    old_missing_newline: bool = False
    new_missing_newline: bool = False

    @property
    def old_lines(self) -> list[str]:
        return [text for op, text in self.lines if op in " -"]

    @property
    def new_lines(self) -> list[str]:
        return [text for op, text in self.lines if op in " +"]


def _is_file_header(lines: list[str], i: int) -> bool:
    return (
        lines[i].startswith("--- ") and i + 1 < len(lines) and lines[i + 1].startswith("+++ ")
    )


def _repair_patch(patch_text: str) -> str | None:
    """Rewrite the hunks of ``patch_text`` as a single-file diff with exact counts.

    Returns None when there is no non-empty hunk.
    """
    lines = patch_text.splitlines()
    repaired = ["--- a", "+++ b"]
    i = 0
    while i < len(lines):
        header = _HUNK_HEADER_RE.match(lines[i])
        i += 1
        if not header:
            continue

        body: list[str] = []
        trailing_blank = 0
        while i < len(lines):
            line = lines[i]
            if line.startswith("@@") or _is_file_header(lines, i):
                break
            if line == "":
                body.append(" ")
                trailing_blank += 1
            elif line[0] in " -+\\":
                body.append(line)
                trailing_blank = 0
            else:
                break
            i += 1
        if trailing_blank:
            # Blank lines at the end of a hunk are almost always the patch's own trailing newline.
            body = body[:-trailing_blank]

        old_count = sum(1 for line in body if line[0] in " -")
        new_count = sum(1 for line in body if line[0] in " +")
        if old_count or new_count:
            repaired.append(f"@@ -{header.group(1)},{old_count} +{header.group(2)},{new_count} @@")
            repaired.extend(body)

    if len(repaired) == 2:
        return None
    return "\n".join(repaired) + "\n"


def parse_unified_diff(patch_text: str) -> list[Hunk]:
    """Parse the hunks of a unified diff.

    Raises:
        PatchParseError: if the text contains no hunks or unidiff rejects it.
    """
    repaired = _repair_patch(patch_text)
    if repaired is None:
        raise PatchParseError("Invalid unified diff: no hunks found")
    try:
        patch_set = PatchSet.from_string(repaired)
    except UnidiffParseError as e:
        raise PatchParseError(f"Invalid unified diff: {e}") from e

    hunks: list[Hunk] = []
    for patched_file in patch_set:
        for parsed in patched_file:
            body: list[tuple[str, str]] = []
            old_missing = new_missing = False
            for line in parsed:
                if line.line_type == LINE_TYPE_NO_NEWLINE:
                    # "\ No newline at end of file" applies to the line before it.
                    last_op = body[-1][0] if body else " "
                    old_missing = old_missing or last_op in " -"
                    new_missing = new_missing or last_op in " +"
                    continue
                body.append((line.line_type, line.value.rstrip("\n")))
            hunks.append(
                Hunk(
                    old_start=parsed.source_start,
                    old_count=parsed.source_length,
                    new_start=parsed.target_start,
                    new_count=parsed.target_length,
                    lines=tuple(body),
                    old_missing_newline=old_missing,
                    new_missing_newline=new_missing,
                )
            )
    return hunks


def _locate(lines: list[str], old: list[str], expected: int, floor: int) -> int | None:
    """Find where ``old`` occurs, preferring positions nearest ``expected``."""
    last = len(lines) - len(old)
    if last < floor:
        return None
    expected = min(max(expected, floor), last)
    for distance in range(max(expected - floor, last - expected) + 1):
        candidates = (expected - distance, expected + distance) if distance else (expected,)
        for candidate in candidates:
            if floor <= candidate <= last and lines[candidate : candidate + len(old)] == old:
                return candidate
    return None


def apply_unified_diff(original: str, patch_text: str) -> str:
    """Apply every hunk of ``patch_text`` to ``original``.

    Hunks are placed at their stated line when it matches, otherwise at the
    nearest matching position after the previous hunk.

    Raises:
        PatchApplicationError: if the diff has no hunks or any hunk does not
            match the original content. No partial result is returned.
    """
    try:
        hunks = parse_unified_diff(patch_text)
    except PatchParseError as e:
        raise PatchApplicationError(str(e), patch_type=PatchType.UNIFIED_DIFF, cause=e) from e

    crlf = "\r\n" in original
    text = original.replace("\r\n", "\n") if crlf else original
    lines = text.split("\n") if text else []

    offset = 0
    floor = 0
    old_missing = new_missing = False
    for number, hunk in enumerate(hunks, start=1):
        old, new = hunk.old_lines, hunk.new_lines
        stated = hunk.old_start - 1 if old else hunk.old_start
        pos = _locate(lines, old, stated + offset, floor)
        if pos is None:
            raise PatchApplicationError(
                f"Failed to apply unified diff: hunk {number} (@@ -{hunk.old_start},"
                f"{hunk.old_count} @@) does not match original content",
                patch_type=PatchType.UNIFIED_DIFF,
            )
        lines[pos : pos + len(old)] = new
        offset = pos - stated + len(new) - len(old)
        floor = pos + len(new)
        old_missing = old_missing or hunk.old_missing_newline
        new_missing = new_missing or hunk.new_missing_newline

    if old_missing and not new_missing and lines and lines[-1] != "":
        lines.append("")
    elif new_missing and not old_missing and lines and lines[-1] == "":
        lines.pop()

    result = "\n".join(lines)
    return result.replace("\n", "\r\n") if crlf else result


def create_unified_diff(original: str, modified: str, name: str = "content") -> str:
    """Build a unified diff between two texts, e.g. for previews."""
    diff = difflib.unified_diff(
        original.splitlines(),
        modified.splitlines(),
        fromfile=name,
        tofile=name,
        lineterm="",
    )
    return "\n".join(diff)

"""Apply batches of field patches to an entity record.

A batch runs in order against one working copy, so a patch sees the
output of every earlier patch, including earlier patches to the same
field. Failures are collected per field and never abort the batch, but a
batch with any failure produces no result at all.
"""

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from campaign_assist.core.patch.errors import PatchApplicationError, PatchParseError
from campaign_assist.core.patch.json_patch import apply_json_patch, parse_json_patch
from campaign_assist.core.patch.unified_diff import apply_unified_diff
from campaign_assist.models.proposal import FieldPatch, PatchType


@dataclass(frozen=True)
class PatchResult:
    """Outcome of a batch. ``result`` is set only when ``success`` is True."""

    success: bool
    result: dict[str, Any] | None = None
    errors: tuple[PatchApplicationError, ...] = field(default_factory=tuple)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _as_json_document(value: Any) -> Any:
    if value is None:
        return {}
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return {}
    return value


def _apply_one(working: dict[str, Any], patch: FieldPatch) -> Any:
    if not isinstance(patch.patch, str):
        raise PatchParseError(f"Patch must be a string, got {type(patch.patch).__name__}")
    current = working.get(patch.field)
    if patch.patch_type == PatchType.UNIFIED_DIFF:
        return apply_unified_diff(_as_text(current), patch.patch)
    operations = parse_json_patch(patch.patch)
    patched = apply_json_patch(_as_json_document(current), operations)
    return json.dumps(patched, separators=(",", ":"), ensure_ascii=False)


def try_apply_patches(current_data: Mapping[str, Any], patches: Sequence[FieldPatch]) -> PatchResult:
    """Apply ``patches`` in order to a copy of ``current_data``.

    Unified diffs apply to the field's string value (missing counts as "").
    JSON patches apply to the field's value decoded as JSON (missing or
    undecodable counts as ``{}``) and are stored back as a JSON string.
    """
    working = dict(current_data)
    errors: list[PatchApplicationError] = []

    for patch in patches:
        try:
            working[patch.field] = _apply_one(working, patch)
        except PatchApplicationError as e:
            e.field = patch.field
            errors.append(e)
        except PatchParseError as e:
            errors.append(
                PatchApplicationError(str(e), field=patch.field, patch_type=patch.patch_type, cause=e)
            )

    if errors:
        for error in errors:
            logger.debug("Patch for field {} failed: {}", error.field, error.message)
        return PatchResult(success=False, errors=tuple(errors))
    return PatchResult(success=True, result=working)


def validate_patches(
    current_data: Mapping[str, Any], patches: Sequence[FieldPatch]
) -> list[PatchApplicationError]:
    """Dry run of ``try_apply_patches``: the errors it would report, nothing else."""
    return list(try_apply_patches(current_data, patches).errors)

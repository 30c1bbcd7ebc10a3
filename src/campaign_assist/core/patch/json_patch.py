"""RFC 6902 JSON Patch parsing and fail-closed application."""

import json
from collections.abc import Sequence
from typing import Any

import jsonpatch
import jsonpointer

from campaign_assist.core.patch.errors import PatchApplicationError, PatchParseError
from campaign_assist.models.proposal import PatchType


def parse_json_patch(text: str) -> list[dict[str, Any]]:
    """Parse patch text into a list of operations.

    Raises:
        PatchParseError: if the text is not JSON, not an array, or an
            operation lacks a string ``op`` or ``path``.
    """
    try:
        operations = json.loads(text)
    except json.JSONDecodeError as e:
        raise PatchParseError(f"Invalid JSON patch: failed to parse as JSON - {e}") from e

    if not isinstance(operations, list):
        raise PatchParseError("JSON Patch must be an array of operations")

    for operation in operations:
        if not isinstance(operation, dict):
            raise PatchParseError("Each JSON Patch operation must be an object")
        if not isinstance(operation.get("op"), str):
            raise PatchParseError('Each JSON Patch operation must have an "op" field')
        if not isinstance(operation.get("path"), str):
            raise PatchParseError('Each JSON Patch operation must have a "path" field')

    return operations


def apply_json_patch(document: Any, operations: Sequence[dict[str, Any]]) -> Any:
    """Apply ``operations`` to ``document`` and return the patched copy.

    The whole sequence runs against a deep copy, so a failing operation
    anywhere in it (missing path, out-of-range index, failed ``test``)
    leaves ``document`` untouched and nothing is returned.

    Raises:
        PatchApplicationError: if any operation is invalid for the document.
    """
    try:
        patch = jsonpatch.JsonPatch(list(operations))
        return patch.apply(document, in_place=False)
    except (jsonpatch.JsonPatchException, jsonpointer.JsonPointerException) as e:
        raise PatchApplicationError(
            f"Invalid JSON patch: {e}", patch_type=PatchType.JSON_PATCH, cause=e
        ) from e
    except (TypeError, KeyError, IndexError, ValueError) as e:
        # Operations that walk into scalars fail inside the library with builtin errors.
        raise PatchApplicationError(
            f"Invalid JSON patch: {type(e).__name__}: {e}", patch_type=PatchType.JSON_PATCH, cause=e
        ) from e

"""Agent-facing proposal tools.

Each handler validates the agent's input, looks entities up through the
store, records a proposal in the session tracker and replies with Markdown
for the agent. Nothing here writes to the store: proposals are only
executed after the user accepts them.

Handlers never raise for bad input; they return ``ToolResult(success=False)``
with a message the agent can act on.
"""

from collections.abc import Mapping
from typing import Any

from loguru import logger

from campaign_assist.config import PATCH_PREVIEW_CHARS
from campaign_assist.core.content.text import entity_to_markdown
from campaign_assist.core.patch.engine import try_apply_patches, validate_patches
from campaign_assist.core.proposals.tracker import ProposalTracker
from campaign_assist.models.entity import (
    CREATABLE_ENTITY_TYPES,
    ENTITY_REGISTRY,
    UPDATABLE_ENTITY_TYPES,
    EntityType,
    entity_display_name,
    validate_create_data,
)
from campaign_assist.models.proposal import FieldPatch, PatchType, SuggestedRelationship, ToolResult
from campaign_assist.protocols import EntityStoreProtocol

_REVIEW_NOTE = "The user will see this proposal in the chat and can accept, edit, or reject it."
_CHANGE_PREVIEW_CHARS = 50


def _invalid_type(label: str, value: Any, allowed: tuple[EntityType, ...]) -> ToolResult:
    return ToolResult(
        success=False,
        content=f"Invalid {label}: {value}. Must be one of: {', '.join(allowed)}",
    )


def _not_found(entity_type: Any, entity_id: Any) -> ToolResult:
    return ToolResult(
        success=False,
        content=(
            f'Could not find {entity_type} with ID "{entity_id}". '
            "Use search_entities to find the correct ID."
        ),
    )


def _resolve_type(value: Any, allowed: tuple[EntityType, ...]) -> EntityType | None:
    return EntityType(value) if value in allowed else None


def _truncate(value: Any, limit: int) -> str:
    text = str(value)
    return text[:limit] + ("..." if len(text) > limit else "")


def _parse_suggested(items: Any) -> list[SuggestedRelationship]:
    return [
        SuggestedRelationship(
            target_type=item["target_type"],
            target_name=item["target_name"],
            relationship_type=item["relationship_type"],
            description=item.get("description"),
            is_new_entity=bool(item.get("is_new_entity", False)),
        )
        for item in items or []
    ]


def propose_create(tracker: ProposalTracker, params: Mapping[str, Any]) -> ToolResult:
    """Propose creating a new entity."""
    entity_type = _resolve_type(params.get("entity_type"), CREATABLE_ENTITY_TYPES)
    if entity_type is None:
        return _invalid_type("entity type", params.get("entity_type"), CREATABLE_ENTITY_TYPES)

    data = params.get("data")
    if not isinstance(data, dict) or not isinstance(data.get("name"), str) or not data["name"]:
        return ToolResult(success=False, content="Entity data must include a 'name' field")

    error = validate_create_data(entity_type, data)
    if error:
        return ToolResult(
            success=False,
            content=f"Proposal validation failed: {error}\n\nPlease fix the data and try again.",
        )

    try:
        relationships = _parse_suggested(params.get("suggested_relationships"))
    except (KeyError, TypeError) as e:
        return ToolResult(success=False, content=f"Invalid suggested_relationships: {e}")

    reasoning = params.get("reasoning")
    proposal = tracker.add_create_proposal(
        entity_type,
        data,
        reasoning=reasoning,
        suggested_relationships=relationships,
        parent_id=params.get("parent_id"),
    )

    lines = [
        f"Created proposal to make a new {entity_type}:",
        "",
        f"**Name:** {data['name']}",
        f"**Proposal ID:** {proposal.id}",
        "",
    ]
    if reasoning:
        lines += [f"**Reasoning:** {reasoning}", ""]
    if relationships:
        lines.append("**Suggested Relationships:**")
        for rel in relationships:
            new_tag = " (new entity)" if rel.is_new_entity else ""
            lines.append(f"- {rel.relationship_type} → {rel.target_type}: {rel.target_name}{new_tag}")
        lines.append("")
    lines.append(_REVIEW_NOTE)
    return ToolResult(success=True, content="\n".join(lines), proposal=proposal)


def propose_update(
    tracker: ProposalTracker, store: EntityStoreProtocol, params: Mapping[str, Any]
) -> ToolResult:
    """Propose replacing whole field values on an existing entity."""
    entity_type = _resolve_type(params.get("entity_type"), UPDATABLE_ENTITY_TYPES)
    if entity_type is None:
        return _invalid_type("entity type", params.get("entity_type"), UPDATABLE_ENTITY_TYPES)

    changes = params.get("changes")
    if not isinstance(changes, dict):
        return ToolResult(success=False, content="Changes must be an object with fields to update")
    if not changes:
        return ToolResult(
            success=False,
            content="Changes object is empty. Specify at least one field to update.",
        )

    entity_id = str(params.get("entity_id", ""))
    entity = store.get(entity_type, entity_id)
    if entity is None:
        return _not_found(entity_type, entity_id)
    current_data = entity_to_markdown(entity)
    entity_name = entity_display_name(entity, entity_id)

    reasoning = params.get("reasoning")
    proposal = tracker.add_update_proposal(
        entity_type, entity_id, changes, reasoning=reasoning, current_data=current_data
    )

    lines = [
        f"Created proposal to update {entity_type}: **{entity_name}**",
        "",
        f"**Entity ID:** {entity_id}",
        f"**Proposal ID:** {proposal.id}",
        "",
        "**Proposed Changes:**",
    ]
    for key, value in changes.items():
        current = current_data.get(key)
        current_display = (
            _truncate(current, _CHANGE_PREVIEW_CHARS) if current is not None else "(not set)"
        )
        lines.append(
            f'- **{key}:** "{current_display}" → "{_truncate(value, _CHANGE_PREVIEW_CHARS)}"'
        )
    lines.append("")
    if reasoning:
        lines += [f"**Reasoning:** {reasoning}", ""]
    lines.append(_REVIEW_NOTE)
    return ToolResult(success=True, content="\n".join(lines), proposal=proposal)


def propose_patch(
    tracker: ProposalTracker, store: EntityStoreProtocol, params: Mapping[str, Any]
) -> ToolResult:
    """Propose targeted edits to an entity as unified diffs or JSON patches.

    Patches are checked against the entity's current Markdown rendering
    before a proposal is recorded, so the agent learns about stale context
    immediately instead of at acceptance time.
    """
    entity_type = _resolve_type(params.get("entity_type"), UPDATABLE_ENTITY_TYPES)
    if entity_type is None:
        return _invalid_type("entity type", params.get("entity_type"), UPDATABLE_ENTITY_TYPES)

    raw_patches = params.get("patches")
    if not isinstance(raw_patches, list) or not raw_patches:
        return ToolResult(
            success=False, content="Patches must be a non-empty array of field patches"
        )
    field_patches: list[FieldPatch] = []
    for raw in raw_patches:
        if (
            not isinstance(raw, dict)
            or not all(raw.get(key) for key in ("field", "patch_type", "patch"))
            or not isinstance(raw["field"], str)
            or not isinstance(raw["patch"], str)
        ):
            return ToolResult(
                success=False,
                content="Each patch must have field, patch_type, and patch properties",
            )
        if raw["patch_type"] not in tuple(PatchType):
            return ToolResult(
                success=False,
                content=(
                    f'Invalid patch_type "{raw["patch_type"]}". '
                    'Must be "unified_diff" or "json_patch"'
                ),
            )
        field_patches.append(FieldPatch(raw["field"], PatchType(raw["patch_type"]), raw["patch"]))

    entity_id = str(params.get("entity_id", ""))
    entity = store.get(entity_type, entity_id)
    if entity is None:
        return _not_found(entity_type, entity_id)
    current_data = entity_to_markdown(entity)
    entity_name = entity_display_name(entity, entity_id)

    errors = validate_patches(current_data, field_patches)
    if errors:
        logger.info("Rejected patch proposal for {} {}: {} failing", entity_type, entity_id, len(errors))
        messages = "\n".join(f"- {e.field}: {e.message}" for e in errors)
        return ToolResult(
            success=False,
            content=(
                f"Patches cannot be applied:\n{messages}\n\n"
                "Try re-reading the entity to get current content, "
                "or use propose_update for full field replacement."
            ),
        )

    preview = try_apply_patches(current_data, field_patches)
    reasoning = params.get("reasoning")
    proposal = tracker.add_patch_proposal(
        entity_type,
        entity_id,
        field_patches,
        reasoning=reasoning,
        current_data=current_data,
        preview_data=preview.result,
    )

    lines = [
        f"Created patch proposal for {entity_type}: **{entity_name}**",
        "",
        f"**Entity ID:** {entity_id}",
        f"**Proposal ID:** {proposal.id}",
        "",
        "**Patches:**",
    ]
    for patch in field_patches:
        lines += [
            f"- **{patch.field}** ({patch.patch_type}):",
            "```",
            _truncate(patch.patch, PATCH_PREVIEW_CHARS),
            "```",
        ]
    lines.append("")
    if reasoning:
        lines += [f"**Reasoning:** {reasoning}", ""]
    lines.append(
        "The user will see this proposal with a diff view and can accept, edit, or reject it."
    )
    return ToolResult(success=True, content="\n".join(lines), proposal=proposal)


def propose_relationship(
    tracker: ProposalTracker, store: EntityStoreProtocol, params: Mapping[str, Any]
) -> ToolResult:
    """Propose linking two existing entities."""
    source_type = _resolve_type(params.get("source_type"), CREATABLE_ENTITY_TYPES)
    if source_type is None:
        return _invalid_type("source_type", params.get("source_type"), CREATABLE_ENTITY_TYPES)
    target_type = _resolve_type(params.get("target_type"), CREATABLE_ENTITY_TYPES)
    if target_type is None:
        return _invalid_type("target_type", params.get("target_type"), CREATABLE_ENTITY_TYPES)

    relationship_type = params.get("relationship_type")
    if not isinstance(relationship_type, str) or not relationship_type:
        return ToolResult(success=False, content="relationship_type is required")

    source_id = str(params.get("source_id", ""))
    source = store.get(source_type, source_id)
    if source is None:
        return _not_found(source_type, source_id)
    target_id = str(params.get("target_id", ""))
    target = store.get(target_type, target_id)
    if target is None:
        return _not_found(target_type, target_id)
    source_name = entity_display_name(source, source_id)
    target_name = entity_display_name(target, target_id)

    is_bidirectional = params.get("is_bidirectional") is not False
    description = params.get("description")
    reasoning = params.get("reasoning")
    proposal = tracker.add_relationship_proposal(
        source_type,
        source_id,
        source_name,
        target_type,
        target_id,
        target_name,
        relationship_type,
        description=description,
        is_bidirectional=is_bidirectional,
        reasoning=reasoning,
    )

    arrow = "↔" if is_bidirectional else "→"
    lines = [
        "Created proposal to link entities:",
        "",
        f"**{source_name}** ({source_type}) {arrow} **{relationship_type}** {arrow} "
        f"**{target_name}** ({target_type})",
        "",
        f"**Proposal ID:** {proposal.id}",
        f"**Bidirectional:** {'Yes' if is_bidirectional else 'No'}",
    ]
    if description:
        lines.append(f"**Description:** {description}")
    if reasoning:
        lines.append(f"**Reasoning:** {reasoning}")
    lines += ["", "The user will see this proposal in the chat and can accept or reject it."]
    return ToolResult(success=True, content="\n".join(lines), proposal=proposal)


def _enum(values: tuple[str, ...]) -> list[str]:
    return [str(v) for v in values]


def _common_fields() -> str:
    return "; ".join(
        f"{t}: {', '.join(ENTITY_REGISTRY[t].fields)}" for t in CREATABLE_ENTITY_TYPES
    )


# Input schemas advertised to the model for the four proposal tools.
PROPOSAL_TOOL_SCHEMAS: dict[str, dict[str, Any]] = {
    "propose_create": {
        "type": "object",
        "properties": {
            "entity_type": {"type": "string", "enum": _enum(CREATABLE_ENTITY_TYPES)},
            "data": {
                "type": "object",
                "description": (
                    "Entity data. 'name' is always required. Common fields by type: "
                    + _common_fields()
                ),
                "properties": {"name": {"type": "string"}},
                "required": ["name"],
            },
            "reasoning": {"type": "string"},
            "suggested_relationships": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "target_type": {"type": "string"},
                        "target_name": {"type": "string"},
                        "relationship_type": {"type": "string"},
                        "description": {"type": "string"},
                        "is_new_entity": {"type": "boolean"},
                    },
                    "required": ["target_type", "target_name", "relationship_type"],
                },
            },
            "parent_id": {"type": "string", "description": "Parent location ID (locations only)"},
        },
        "required": ["entity_type", "data"],
    },
    "propose_update": {
        "type": "object",
        "properties": {
            "entity_type": {"type": "string", "enum": _enum(UPDATABLE_ENTITY_TYPES)},
            "entity_id": {"type": "string"},
            "changes": {"type": "object", "description": "Only the fields to change."},
            "reasoning": {"type": "string"},
        },
        "required": ["entity_type", "entity_id", "changes"],
    },
    "propose_patch": {
        "type": "object",
        "properties": {
            "entity_type": {"type": "string", "enum": _enum(UPDATABLE_ENTITY_TYPES)},
            "entity_id": {"type": "string"},
            "patches": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "field": {"type": "string"},
                        "patch_type": {"type": "string", "enum": _enum(tuple(PatchType))},
                        "patch": {"type": "string"},
                    },
                    "required": ["field", "patch_type", "patch"],
                },
            },
            "reasoning": {"type": "string"},
        },
        "required": ["entity_type", "entity_id", "patches"],
    },
    "propose_relationship": {
        "type": "object",
        "properties": {
            "source_type": {"type": "string", "enum": _enum(CREATABLE_ENTITY_TYPES)},
            "source_id": {"type": "string"},
            "target_type": {"type": "string", "enum": _enum(CREATABLE_ENTITY_TYPES)},
            "target_id": {"type": "string"},
            "relationship_type": {"type": "string"},
            "description": {"type": "string"},
            "is_bidirectional": {"type": "boolean", "default": True},
            "reasoning": {"type": "string"},
        },
        "required": ["source_type", "source_id", "target_type", "target_id", "relationship_type"],
    },
}

"""Entity types and the per-type registry.

Every entity type is registered exactly once in ``ENTITY_REGISTRY``; callers
look up behaviour there instead of switching on type strings.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from campaign_assist.config import MAX_NAME_LENGTH


class EntityType(StrEnum):
    CAMPAIGN = "campaign"
    CHARACTER = "character"
    LOCATION = "location"
    ORGANIZATION = "organization"
    QUEST = "quest"
    HERO = "hero"
    PLAYER = "player"
    SESSION = "session"
    TIMELINE_EVENT = "timeline_event"
    SECRET = "secret"


@dataclass(frozen=True)
class EntitySpec:
    """Registration record for one entity type."""

    entity_type: EntityType
    fields: tuple[str, ...]
    creatable: bool = True
    # Required fields restricted to a fixed vocabulary.
    choices: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    parent_field: str | None = None


# Fields stored as serialized rich-text documents rather than plain strings.
RICH_TEXT_FIELDS: frozenset[str] = frozenset(
    [
        "description",
        "personality",
        "motivations",
        "secrets",
        "voice_notes",
        "backstory",
        "notes",
        "goals",
        "resources",
        "objectives",
        "hook",
        "summary",
        "content",
        "gm_notes",
        "highlights",
        "reveal_conditions",
        "preferences",
        "boundaries",
    ]
)

LOCATION_TYPES: tuple[str, ...] = (
    "world",
    "continent",
    "region",
    "territory",
    "settlement",
    "district",
    "building",
    "room",
    "landmark",
    "wilderness",
)

ORG_TYPES: tuple[str, ...] = (
    "government",
    "guild",
    "religion",
    "military",
    "criminal",
    "mercantile",
    "academic",
    "secret_society",
    "family",
    "other",
)

PLOT_TYPES: tuple[str, ...] = ("main", "secondary", "side", "background")

QUEST_STATUSES: tuple[str, ...] = (
    "planned",
    "available",
    "active",
    "completed",
    "failed",
    "abandoned",
)

ENTITY_REGISTRY: dict[EntityType, EntitySpec] = {
    spec.entity_type: spec
    for spec in (
        EntitySpec(
            EntityType.CAMPAIGN,
            fields=("name", "system", "description", "settings_json"),
            creatable=False,
        ),
        EntitySpec(
            EntityType.CHARACTER,
            fields=(
                "name",
                "lineage",
                "occupation",
                "description",
                "personality",
                "motivations",
                "secrets",
                "voice_notes",
                "stat_block_json",
            ),
        ),
        EntitySpec(
            EntityType.LOCATION,
            fields=("name", "location_type", "description", "gm_notes"),
            choices={"location_type": LOCATION_TYPES},
            parent_field="parent_id",
        ),
        EntitySpec(
            EntityType.ORGANIZATION,
            fields=("name", "org_type", "description", "goals", "resources"),
            choices={"org_type": ORG_TYPES},
        ),
        EntitySpec(
            EntityType.QUEST,
            fields=("name", "plot_type", "status", "description", "hook", "objectives"),
            choices={"plot_type": PLOT_TYPES, "status": QUEST_STATUSES},
        ),
        EntitySpec(
            EntityType.HERO,
            fields=("name", "classes", "backstory", "notes", "character_sheet_json"),
        ),
        EntitySpec(
            EntityType.PLAYER,
            fields=("name", "email", "preferences", "boundaries", "notes"),
        ),
        EntitySpec(
            EntityType.SESSION,
            fields=("session_number", "title", "summary", "notes", "highlights"),
        ),
        EntitySpec(
            EntityType.TIMELINE_EVENT,
            fields=("name", "event_date", "description"),
        ),
        EntitySpec(
            EntityType.SECRET,
            fields=("name", "content", "secret_type", "reveal_conditions"),
        ),
    )
}

CREATABLE_ENTITY_TYPES: tuple[EntityType, ...] = tuple(
    t for t, spec in ENTITY_REGISTRY.items() if spec.creatable
)
UPDATABLE_ENTITY_TYPES: tuple[EntityType, ...] = tuple(ENTITY_REGISTRY)


def parse_entity_type(value: Any) -> EntityType | None:
    """Resolve a type tag such as ``"character"``; unknown tags yield None."""
    if isinstance(value, EntityType):
        return value
    try:
        return EntityType(value)
    except ValueError:
        return None


def get_entity_spec(value: Any) -> EntitySpec | None:
    entity_type = parse_entity_type(value)
    return ENTITY_REGISTRY[entity_type] if entity_type else None


def validate_create_data(entity_type: EntityType, data: Mapping[str, Any]) -> str | None:
    """Check proposal data against storage requirements.

    Returns:
        An error message if invalid, or None if valid.
    """
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return "name is required and must be a non-empty string"
    if len(name) > MAX_NAME_LENGTH:
        return f"name must be {MAX_NAME_LENGTH} characters or less"

    spec = ENTITY_REGISTRY[entity_type]
    for field_name, allowed in spec.choices.items():
        value = data.get(field_name)
        if not value:
            return f"{field_name} is required. Must be one of: {', '.join(allowed)}"
        if value not in allowed:
            return f'{field_name} "{value}" is invalid. Must be one of: {", ".join(allowed)}'
    return None


def entity_display_name(record: Mapping[str, Any], fallback: str = "") -> str:
    """Best human-readable label for an entity record (sessions have titles, not names)."""
    for key in ("name", "title"):
        value = record.get(key)
        if isinstance(value, str) and value:
            return value
    return fallback or str(record.get("id", ""))

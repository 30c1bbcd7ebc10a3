"""In-process campaign store, optionally seeded from a JSON snapshot.

Snapshot layout::

    {
      "entities": {"character": [{"id": "...", "name": "..."}], ...},
      "relationships": [{"id": "...", "source_type": "...", ...}]
    }

The store never writes back to disk.
"""

import json
import re
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from loguru import logger

from campaign_assist.config import DEFAULT_SEARCH_LIMIT
from campaign_assist.core.content.text import extract_plain_text
from campaign_assist.models.entity import (
    RICH_TEXT_FIELDS,
    EntityType,
    entity_display_name,
    parse_entity_type,
)
from campaign_assist.protocols import EntityNotFoundError, EntitySearchHit

_WORD_RE = re.compile(r"\w+")
SNIPPET_CHARS = 80


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _words(text: str) -> list[str]:
    return _WORD_RE.findall(text.lower())


def _prefix_match(terms: list[str], words: list[str]) -> bool:
    return all(any(word.startswith(term) for word in words) for term in terms)


class MemoryCampaignStore:
    """Entity records grouped by type, keyed by UUID."""

    def __init__(
        self,
        entities: Mapping[str, list[dict[str, Any]]] | None = None,
        relationships: list[dict[str, Any]] | None = None,
    ) -> None:
        self._entities: dict[EntityType, dict[str, dict[str, Any]]] = {t: {} for t in EntityType}
        self._relationships: list[dict[str, Any]] = [dict(r) for r in relationships or []]
        for type_name, records in (entities or {}).items():
            entity_type = parse_entity_type(type_name)
            if entity_type is None:
                logger.warning("Skipping unknown entity type in snapshot: {}", type_name)
                continue
            for record in records:
                self._entities[entity_type][record["id"]] = dict(record)

    @classmethod
    def from_snapshot(cls, path: Path) -> "MemoryCampaignStore":
        """Load a store from a snapshot file.

        Raises:
            FileNotFoundError: if ``path`` does not exist.
            ValueError: if the file is not a snapshot object.
        """
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Snapshot must be a JSON object: {path}")
        store = cls(data.get("entities"), data.get("relationships"))
        logger.info("Loaded campaign snapshot {} ({} entities)", path, store.count())
        return store

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "entities": {
                str(t): list(records.values()) for t, records in self._entities.items() if records
            },
            "relationships": list(self._relationships),
        }

    def count(self) -> int:
        return sum(len(records) for records in self._entities.values())

    def get(self, entity_type: EntityType, entity_id: str) -> dict[str, Any] | None:
        record = self._entities[entity_type].get(entity_id)
        return dict(record) if record is not None else None

    def create(self, entity_type: EntityType, data: dict[str, Any]) -> dict[str, Any]:
        timestamp = _now()
        record = {**data, "id": str(uuid.uuid4()), "created_at": timestamp, "updated_at": timestamp}
        self._entities[entity_type][record["id"]] = record
        logger.debug("Created {} {}", entity_type, record["id"])
        return dict(record)

    def update(
        self, entity_type: EntityType, entity_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]:
        record = self._entities[entity_type].get(entity_id)
        if record is None:
            raise EntityNotFoundError(f"{entity_type} {entity_id} not found")
        record.update({k: v for k, v in changes.items() if k not in ("id", "created_at")})
        record["updated_at"] = _now()
        logger.debug("Updated {} {}: {}", entity_type, entity_id, sorted(changes))
        return dict(record)

    def remove(self, entity_type: EntityType, entity_id: str) -> None:
        if self._entities[entity_type].pop(entity_id, None) is None:
            raise EntityNotFoundError(f"{entity_type} {entity_id} not found")
        self._relationships = [
            r for r in self._relationships if entity_id not in (r["source_id"], r["target_id"])
        ]

    def search(
        self,
        query: str,
        *,
        entity_types: list[EntityType] | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[EntitySearchHit]:
        """Prefix-match every query word against names, then rich-text bodies.

        Name matches rank ahead of body matches.
        """
        terms = _words(query)
        if not terms:
            return []
        name_hits: list[EntitySearchHit] = []
        body_hits: list[EntitySearchHit] = []
        for entity_type in entity_types or list(EntityType):
            for record in self._entities[entity_type].values():
                name = entity_display_name(record)
                body = " ".join(
                    extract_plain_text(value)
                    for key, value in record.items()
                    if key in RICH_TEXT_FIELDS and isinstance(value, str)
                )
                snippet = body[:SNIPPET_CHARS] or None
                hit = EntitySearchHit(entity_type, record["id"], name, snippet)
                if _prefix_match(terms, _words(name)):
                    name_hits.append(hit)
                elif _prefix_match(terms, _words(f"{name} {body}")):
                    body_hits.append(hit)
        return (name_hits + body_hits)[:limit]

    def create_relationship(self, data: dict[str, Any]) -> dict[str, Any]:
        for side in ("source", "target"):
            entity_type = parse_entity_type(data.get(f"{side}_type"))
            entity_id = data.get(f"{side}_id", "")
            if entity_type is None or entity_id not in self._entities[entity_type]:
                raise EntityNotFoundError(
                    f"{side} {data.get(f'{side}_type')} {entity_id} not found"
                )
        timestamp = _now()
        record = {
            "is_bidirectional": True,
            **data,
            "id": str(uuid.uuid4()),
            "created_at": timestamp,
            "updated_at": timestamp,
        }
        self._relationships.append(record)
        logger.debug(
            "Linked {} -[{}]-> {}", record["source_id"], record["relationship_type"], record["target_id"]
        )
        return dict(record)

    def list_relationships(self, entity_id: str | None = None) -> list[dict[str, Any]]:
        return [
            dict(r)
            for r in self._relationships
            if entity_id is None or entity_id in (r["source_id"], r["target_id"])
        ]

    def list(
        self, entity_type: EntityType, filters: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        filters = filters or {}
        return [
            dict(record)
            for record in self._entities[entity_type].values()
            if all(record.get(k) == v for k, v in filters.items())
        ]

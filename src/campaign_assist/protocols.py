"""Protocols for the persistence layer the proposal pipeline writes through."""

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from campaign_assist.models.entity import EntityType


class EntityNotFoundError(LookupError):
    """Raised by store writes that target an entity id that does not exist."""


@dataclass(frozen=True)
class EntitySearchHit:
    """A search hit: enough to cite or fetch the entity."""

    entity_type: EntityType
    entity_id: str
    name: str
    snippet: str | None = None


@runtime_checkable
class EntityStoreProtocol(Protocol):
    """Per-entity-type CRUD keyed by UUID, plus search and relationships.

    Lookups return None for unknown ids; writes raise EntityNotFoundError.
    """

    def get(self, entity_type: EntityType, entity_id: str) -> dict[str, Any] | None:
        """Return the entity record, or None if not found."""
        ...

    def create(self, entity_type: EntityType, data: dict[str, Any]) -> dict[str, Any]:
        """Create an entity and return the stored record (with its new ``id``)."""
        ...

    def update(
        self, entity_type: EntityType, entity_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]:
        """Merge ``changes`` into an entity and return the stored record."""
        ...

    def remove(self, entity_type: EntityType, entity_id: str) -> None:
        """Delete an entity."""
        ...

    def search(
        self,
        query: str,
        *,
        entity_types: list[EntityType] | None = None,
        limit: int = 10,
    ) -> list[EntitySearchHit]:
        """Find entities whose name matches ``query``."""
        ...

    def create_relationship(self, data: dict[str, Any]) -> dict[str, Any]:
        """Create a relationship record between two entities."""
        ...

    def list_relationships(self, entity_id: str | None = None) -> list[dict[str, Any]]:
        """Return relationships, optionally only those touching ``entity_id``."""
        ...

    def list(
        self, entity_type: EntityType, filters: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Return records of one type whose fields equal every value in ``filters``."""
        ...

"""Fake implementations for testing the proposal pipeline."""

from datetime import datetime, timedelta
from typing import Any

from campaign_assist.models.entity import EntityType
from campaign_assist.store.memory import MemoryCampaignStore


class FixedClock:
    """Deterministic clock: returns ``start`` and advances one second per call."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(seconds=1)
        return current


class RecordingStore(MemoryCampaignStore):
    """In-memory store that records every write for assertions."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.writes: list[tuple[str, Any]] = []

    def create(self, entity_type: EntityType, data: dict[str, Any]) -> dict[str, Any]:
        self.writes.append(("create", (entity_type, data)))
        return super().create(entity_type, data)

    def update(
        self, entity_type: EntityType, entity_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]:
        self.writes.append(("update", (entity_type, entity_id, changes)))
        return super().update(entity_type, entity_id, changes)

    def create_relationship(self, data: dict[str, Any]) -> dict[str, Any]:
        self.writes.append(("create_relationship", data))
        return super().create_relationship(data)

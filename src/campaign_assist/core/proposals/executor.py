"""Execute accepted proposals against the campaign store.

Rich-text fields arrive as Markdown (what the agent and the user edit) and
are converted back to stored document JSON before every write. A proposal is
marked accepted only after its write succeeded; a failed write leaves it
pending so the user can retry or reject it.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from campaign_assist.core.content.text import convert_rich_text_fields, entity_to_markdown
from campaign_assist.core.patch.engine import try_apply_patches
from campaign_assist.core.proposals.tracker import ProposalTracker
from campaign_assist.models.entity import ENTITY_REGISTRY, EntityType, parse_entity_type
from campaign_assist.models.proposal import (
    CreateProposal,
    EntityProposal,
    PatchProposal,
    ProposalStatus,
    RelationshipProposal,
    SuggestedRelationship,
    UpdateProposal,
)
from campaign_assist.protocols import EntityNotFoundError, EntityStoreProtocol


@dataclass(frozen=True)
class AcceptResult:
    success: bool
    message: str
    entity_id: str | None = None
    relationship_ids: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.entity_id is not None:
            data["entity_id"] = self.entity_id
        if self.relationship_ids:
            data["relationship_ids"] = list(self.relationship_ids)
        return data


class ProposalExecutor:
    """Accepts or rejects the proposals of one tracker."""

    def __init__(self, store: EntityStoreProtocol, tracker: ProposalTracker) -> None:
        self._store = store
        self._tracker = tracker

    def accept(
        self, proposal_id: str, edited_data: Mapping[str, Any] | None = None
    ) -> AcceptResult:
        """Execute a pending proposal.

        ``edited_data`` replaces the proposal's data (create), changes
        (update) or patched field values (patch). It is ignored for
        relationship proposals.
        """
        proposal = self._tracker.get(proposal_id)
        if proposal is None:
            return AcceptResult(False, f"Proposal not found: {proposal_id}")
        if proposal.status != ProposalStatus.PENDING:
            return AcceptResult(False, f"Proposal {proposal_id} is already {proposal.status}")

        try:
            result = self._execute(proposal, edited_data)
        except EntityNotFoundError as e:
            logger.warning("Proposal {} failed: {}", proposal_id, e)
            return AcceptResult(False, str(e))

        if result.success:
            self._tracker.update_status(proposal_id, ProposalStatus.ACCEPTED)
            logger.info("Accepted proposal {}: {}", proposal_id, result.message)
        return result

    def reject(self, proposal_id: str) -> AcceptResult:
        proposal = self._tracker.update_status(proposal_id, ProposalStatus.REJECTED)
        if proposal is None:
            return AcceptResult(False, f"Proposal not found: {proposal_id}")
        logger.info("Rejected proposal {}", proposal_id)
        return AcceptResult(True, f"Rejected proposal {proposal_id}")

    def _execute(
        self, proposal: EntityProposal, edited_data: Mapping[str, Any] | None
    ) -> AcceptResult:
        if isinstance(proposal, CreateProposal):
            return self._execute_create(proposal, edited_data)
        if isinstance(proposal, UpdateProposal):
            changes = edited_data if edited_data is not None else proposal.changes
            return self._write_changes(proposal.entity_type, proposal.entity_id, changes)
        if isinstance(proposal, PatchProposal):
            return self._execute_patch(proposal, edited_data)
        return self._execute_relationship(proposal)

    def _execute_create(
        self, proposal: CreateProposal, edited_data: Mapping[str, Any] | None
    ) -> AcceptResult:
        data = convert_rich_text_fields(edited_data if edited_data is not None else proposal.data)
        parent_field = ENTITY_REGISTRY[proposal.entity_type].parent_field
        if parent_field and proposal.parent_id:
            data[parent_field] = proposal.parent_id
        record = self._store.create(proposal.entity_type, data)
        entity_id = record["id"]

        relationship_ids = [
            rel_id
            for rel in proposal.suggested_relationships
            if (rel_id := self._create_suggested(proposal.entity_type, entity_id, rel))
        ]
        return AcceptResult(
            True,
            f"Created {proposal.entity_type} {entity_id}",
            entity_id=entity_id,
            relationship_ids=tuple(relationship_ids),
        )

    def _create_suggested(
        self, source_type: EntityType, source_id: str, rel: SuggestedRelationship
    ) -> str | None:
        if rel.is_new_entity:
            logger.info("Skipping relationship to new {} {!r}", rel.target_type, rel.target_name)
            return None
        target_type = parse_entity_type(rel.target_type)
        target_id = self._find_by_name(target_type, rel.target_name) if target_type else None
        if target_type is None or target_id is None:
            logger.info(
                "Skipping relationship: {} {!r} not found", rel.target_type, rel.target_name
            )
            return None
        try:
            record = self._store.create_relationship(
                {
                    "source_type": str(source_type),
                    "source_id": source_id,
                    "target_type": str(target_type),
                    "target_id": target_id,
                    "relationship_type": rel.relationship_type,
                    "description": rel.description,
                    "is_bidirectional": True,
                }
            )
        except EntityNotFoundError as e:
            logger.warning("Failed to create relationship to {!r}: {}", rel.target_name, e)
            return None
        return record["id"]

    def _find_by_name(self, entity_type: EntityType, name: str) -> str | None:
        """Exact, case-insensitive name match among the store's search hits."""
        wanted = name.lower()
        for hit in self._store.search(name, entity_types=[entity_type]):
            if hit.name.lower() == wanted:
                return hit.entity_id
        return None

    def _write_changes(
        self, entity_type: EntityType, entity_id: str, changes: Mapping[str, Any]
    ) -> AcceptResult:
        self._store.update(entity_type, entity_id, convert_rich_text_fields(changes))
        return AcceptResult(True, f"Updated {entity_type} {entity_id}", entity_id=entity_id)

    def _execute_patch(
        self, proposal: PatchProposal, edited_data: Mapping[str, Any] | None
    ) -> AcceptResult:
        if edited_data is not None:
            return self._write_changes(proposal.entity_type, proposal.entity_id, edited_data)

        entity = self._store.get(proposal.entity_type, proposal.entity_id)
        if entity is None:
            return AcceptResult(
                False, f"{proposal.entity_type} {proposal.entity_id} no longer exists"
            )
        # Re-run against fresh data: the entity may have changed since the proposal.
        result = try_apply_patches(entity_to_markdown(entity), proposal.patches)
        if not result.success or result.result is None:
            details = "; ".join(f"{e.field}: {e.message}" for e in result.errors)
            logger.warning("Patch proposal {} no longer applies: {}", proposal.id, details)
            return AcceptResult(False, f"Patches no longer apply: {details}")
        changes = {p.field: result.result[p.field] for p in proposal.patches}
        return self._write_changes(proposal.entity_type, proposal.entity_id, changes)

    def _execute_relationship(self, proposal: RelationshipProposal) -> AcceptResult:
        record = self._store.create_relationship(
            {
                "source_type": str(proposal.source_type),
                "source_id": proposal.source_id,
                "target_type": str(proposal.target_type),
                "target_id": proposal.target_id,
                "relationship_type": proposal.relationship_type,
                "description": proposal.description,
                "is_bidirectional": proposal.is_bidirectional,
            }
        )
        return AcceptResult(
            True,
            f"Linked {proposal.source_name} to {proposal.target_name}",
            relationship_ids=(record["id"],),
        )

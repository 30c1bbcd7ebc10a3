"""Session-scoped registry of entity proposals awaiting review.

Each chat session owns one tracker. Proposals start pending and are moved to
accepted or rejected by ``update_status``; they leave the registry only when
the whole tracker is cleared.
"""

import time
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from campaign_assist.models.entity import EntityType
from campaign_assist.models.proposal import (
    CreateProposal,
    EntityProposal,
    FieldPatch,
    PatchProposal,
    ProposalStatus,
    RelationshipProposal,
    SuggestedRelationship,
    UpdateProposal,
)

ProposalCallback = Callable[[EntityProposal], None]

_STATUS_LABELS: dict[ProposalStatus, str] = {
    ProposalStatus.PENDING: "[Pending]",
    ProposalStatus.ACCEPTED: "[Accepted]",
    ProposalStatus.REJECTED: "[Rejected]",
}


def proposal_to_markdown(proposal: EntityProposal) -> str:
    """One summary line for ``proposal``, prefixed by its status label."""
    label = _STATUS_LABELS[proposal.status]
    if isinstance(proposal, CreateProposal):
        return (
            f"{label} Create {proposal.entity_type}: **{proposal.data.get('name', '')}** "
            f"(id: {proposal.id})"
        )
    if isinstance(proposal, UpdateProposal):
        fields = ", ".join(proposal.changes)
        return (
            f"{label} Update {proposal.entity_type} ({proposal.entity_id}): "
            f"fields [{fields}] (id: {proposal.id})"
        )
    if isinstance(proposal, PatchProposal):
        fields = ", ".join(p.field for p in proposal.patches)
        return (
            f"{label} Patch {proposal.entity_type} ({proposal.entity_id}): "
            f"fields [{fields}] (id: {proposal.id})"
        )
    return (
        f"{label} Relationship: {proposal.source_name} → {proposal.relationship_type} → "
        f"{proposal.target_name} (id: {proposal.id})"
    )


class ProposalTracker:
    """Tracks proposals for one chat session. Not safe to share between sessions."""

    def __init__(
        self,
        *,
        on_proposal_created: ProposalCallback | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._proposals: dict[str, EntityProposal] = {}
        self._counter = 0
        self._on_proposal_created = on_proposal_created
        self._clock = clock or (lambda: datetime.now(UTC))

    def set_on_proposal_created(self, callback: ProposalCallback | None) -> None:
        self._on_proposal_created = callback

    def _generate_id(self) -> str:
        self._counter += 1
        proposal_id = f"proposal_{time.time_ns() // 1_000_000}_{self._counter}"
        if proposal_id in self._proposals:
            raise RuntimeError(f"Proposal id collision: {proposal_id}")
        return proposal_id

    def _register(self, proposal: EntityProposal) -> None:
        self._proposals[proposal.id] = proposal
        logger.debug("Recorded {} proposal {}", proposal.operation, proposal.id)
        if self._on_proposal_created is not None:
            self._on_proposal_created(proposal)

    def add_create_proposal(
        self,
        entity_type: EntityType,
        data: Mapping[str, Any],
        *,
        reasoning: str | None = None,
        suggested_relationships: Iterable[SuggestedRelationship] = (),
        parent_id: str | None = None,
    ) -> CreateProposal:
        proposal = CreateProposal(
            id=self._generate_id(),
            created_at=self._clock(),
            entity_type=entity_type,
            data=dict(data),
            reasoning=reasoning,
            suggested_relationships=tuple(suggested_relationships),
            parent_id=parent_id,
        )
        self._register(proposal)
        return proposal

    def add_update_proposal(
        self,
        entity_type: EntityType,
        entity_id: str,
        changes: Mapping[str, Any],
        *,
        reasoning: str | None = None,
        current_data: Mapping[str, Any] | None = None,
    ) -> UpdateProposal:
        proposal = UpdateProposal(
            id=self._generate_id(),
            created_at=self._clock(),
            entity_type=entity_type,
            entity_id=entity_id,
            changes=dict(changes),
            reasoning=reasoning,
            current_data=dict(current_data) if current_data is not None else None,
        )
        self._register(proposal)
        return proposal

    def add_patch_proposal(
        self,
        entity_type: EntityType,
        entity_id: str,
        patches: Iterable[FieldPatch],
        *,
        reasoning: str | None = None,
        current_data: Mapping[str, Any] | None = None,
        preview_data: Mapping[str, Any] | None = None,
    ) -> PatchProposal:
        proposal = PatchProposal(
            id=self._generate_id(),
            created_at=self._clock(),
            entity_type=entity_type,
            entity_id=entity_id,
            patches=tuple(patches),
            reasoning=reasoning,
            current_data=dict(current_data) if current_data is not None else None,
            preview_data=dict(preview_data) if preview_data is not None else None,
        )
        self._register(proposal)
        return proposal

    def add_relationship_proposal(
        self,
        source_type: EntityType,
        source_id: str,
        source_name: str,
        target_type: EntityType,
        target_id: str,
        target_name: str,
        relationship_type: str,
        *,
        description: str | None = None,
        is_bidirectional: bool = True,
        reasoning: str | None = None,
    ) -> RelationshipProposal:
        proposal = RelationshipProposal(
            id=self._generate_id(),
            created_at=self._clock(),
            source_type=source_type,
            source_id=source_id,
            source_name=source_name,
            target_type=target_type,
            target_id=target_id,
            target_name=target_name,
            relationship_type=relationship_type,
            description=description,
            is_bidirectional=is_bidirectional,
            reasoning=reasoning,
        )
        self._register(proposal)
        return proposal

    def get(self, proposal_id: str) -> EntityProposal | None:
        return self._proposals.get(proposal_id)

    def update_status(
        self, proposal_id: str, status: ProposalStatus | str
    ) -> EntityProposal | None:
        """Set a proposal's status in place.

        Returns None if the id is unknown. Moving a proposal out of accepted
        or rejected is allowed but logged, since normal review flow decides
        each proposal once.
        """
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            return None
        new_status = ProposalStatus(status)
        if proposal.status != ProposalStatus.PENDING and proposal.status != new_status:
            logger.warning(
                "Proposal {} moved from {} to {}", proposal_id, proposal.status, new_status
            )
        proposal.status = new_status
        return proposal

    def get_pending(self) -> list[EntityProposal]:
        return [p for p in self._proposals.values() if p.status == ProposalStatus.PENDING]

    def get_accepted(self) -> list[EntityProposal]:
        return [p for p in self._proposals.values() if p.status == ProposalStatus.ACCEPTED]

    # Defined after the other views so the name does not shadow the builtin in their annotations.
    def list(self) -> list[EntityProposal]:
        return list(self._proposals.values())

    def has_pending(self) -> bool:
        return any(p.status == ProposalStatus.PENDING for p in self._proposals.values())

    def clear(self) -> None:
        """Drop every proposal and restart id numbering (e.g. on a new chat)."""
        self._proposals.clear()
        self._counter = 0

    def proposal_to_markdown(self, proposal: EntityProposal) -> str:
        return proposal_to_markdown(proposal)

    def to_markdown(self) -> str:
        """Summary of all proposals, one line each, for re-injection into agent context."""
        if not self._proposals:
            return "No proposals."
        return "\n".join(proposal_to_markdown(p) for p in self._proposals.values())

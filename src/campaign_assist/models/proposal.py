"""Proposal records: reviewable descriptions of entity mutations."""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, ClassVar

from campaign_assist.models.entity import EntityType


class ProposalOperation(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    PATCH = "patch"
    RELATIONSHIP = "relationship"


class ProposalStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class PatchType(StrEnum):
    UNIFIED_DIFF = "unified_diff"
    JSON_PATCH = "json_patch"


@dataclass(frozen=True)
class FieldPatch:
    """Intent to mutate one named field with one patch formalism."""

    field: str
    patch_type: PatchType
    patch: str


@dataclass(frozen=True)
class SuggestedRelationship:
    """Relationship to create alongside a new entity, resolved by target name on acceptance."""

    target_type: str
    target_name: str
    relationship_type: str
    description: str | None = None
    is_new_entity: bool = False


@dataclass(kw_only=True, eq=False)
class BaseProposal:
    """Fields shared by every proposal.

    Everything except ``status`` is write-once: assigning to any other field
    after construction raises AttributeError.
    """

    operation: ClassVar[ProposalOperation]

    id: str
    created_at: datetime
    status: ProposalStatus = ProposalStatus.PENDING
    reasoning: str | None = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name != "status" and name in self.__dict__:
            raise AttributeError(f"Proposal field {name!r} cannot be changed after creation")
        object.__setattr__(self, name, value)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation for tool results."""
        data = asdict(self)
        data["operation"] = self.operation.value
        data["created_at"] = self.created_at.isoformat()
        return data


@dataclass(kw_only=True, eq=False)
class CreateProposal(BaseProposal):
    operation: ClassVar[ProposalOperation] = ProposalOperation.CREATE

    entity_type: EntityType
    data: dict[str, Any]
    suggested_relationships: tuple[SuggestedRelationship, ...] = ()
    parent_id: str | None = None


@dataclass(kw_only=True, eq=False)
class UpdateProposal(BaseProposal):
    operation: ClassVar[ProposalOperation] = ProposalOperation.UPDATE

    entity_type: EntityType
    entity_id: str
    changes: dict[str, Any]
    current_data: dict[str, Any] | None = None


@dataclass(kw_only=True, eq=False)
class PatchProposal(BaseProposal):
    operation: ClassVar[ProposalOperation] = ProposalOperation.PATCH

    entity_type: EntityType
    entity_id: str
    patches: tuple[FieldPatch, ...]
    current_data: dict[str, Any] | None = None
    preview_data: dict[str, Any] | None = None


@dataclass(kw_only=True, eq=False)
class RelationshipProposal(BaseProposal):
    operation: ClassVar[ProposalOperation] = ProposalOperation.RELATIONSHIP

    source_type: EntityType
    source_id: str
    source_name: str
    target_type: EntityType
    target_id: str
    target_name: str
    relationship_type: str
    description: str | None = None
    is_bidirectional: bool = True


EntityProposal = CreateProposal | UpdateProposal | PatchProposal | RelationshipProposal


@dataclass(frozen=True)
class ToolResult:
    """Reply returned to the agent by a proposal tool."""

    success: bool
    content: str
    proposal: EntityProposal | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success, "content": self.content}
        if self.proposal is not None:
            data["proposal"] = self.proposal.to_dict()
        return data

"""Tests for the session proposal tracker."""

import re

from loguru import logger

from campaign_assist.core.proposals.tracker import ProposalTracker, proposal_to_markdown
from campaign_assist.models.entity import EntityType
from campaign_assist.models.proposal import (
    CreateProposal,
    EntityProposal,
    FieldPatch,
    PatchType,
    ProposalStatus,
    SuggestedRelationship,
)


def _add_one_of_each(tracker: ProposalTracker) -> list[EntityProposal]:
    return [
        tracker.add_create_proposal(EntityType.QUEST, {"name": "Find the Relic"}),
        tracker.add_update_proposal(EntityType.CHARACTER, "c1", {"occupation": "Smith", "name": "B"}),
        tracker.add_patch_proposal(
            EntityType.LOCATION,
            "l1",
            [FieldPatch("description", PatchType.UNIFIED_DIFF, "@@ -1 +1 @@\n-a\n+b")],
        ),
        tracker.add_relationship_proposal(
            EntityType.CHARACTER, "c1", "Aldric", EntityType.ORGANIZATION, "o1", "Guild", "member_of"
        ),
    ]


def test_accepting_moves_proposal_from_pending_to_accepted(tracker: ProposalTracker) -> None:
    proposal = tracker.add_create_proposal(EntityType.QUEST, {"name": "Find the Relic"})
    updated = tracker.update_status(proposal.id, "accepted")

    assert updated is proposal
    assert tracker.get_accepted() == [proposal]
    assert tracker.get_pending() == []
    assert not tracker.has_pending()


def test_new_proposals_are_pending_with_clock_timestamp(tracker: ProposalTracker) -> None:
    proposal = tracker.add_create_proposal(
        EntityType.LOCATION,
        {"name": "Keep", "location_type": "building"},
        reasoning="Mentioned twice",
        suggested_relationships=[SuggestedRelationship("location", "Harbor", "located_in")],
        parent_id="parent-1",
    )
    assert proposal.status == ProposalStatus.PENDING
    assert proposal.created_at.year == 2026
    assert proposal.parent_id == "parent-1"
    assert proposal.suggested_relationships[0].target_name == "Harbor"
    assert tracker.has_pending()


def test_ids_are_unique_and_resolvable(tracker: ProposalTracker) -> None:
    proposals = [
        tracker.add_create_proposal(EntityType.CHARACTER, {"name": str(i)}) for i in range(50)
    ]
    ids = [p.id for p in proposals]
    assert len(set(ids)) == len(ids)
    assert all(re.fullmatch(r"proposal_\d+_\d+", i) for i in ids)
    for proposal in proposals:
        assert tracker.get(proposal.id) is proposal


def test_proposal_data_is_copied(tracker: ProposalTracker) -> None:
    data = {"name": "Mira"}
    proposal = tracker.add_create_proposal(EntityType.CHARACTER, data)
    data["name"] = "Changed"
    assert proposal.data == {"name": "Mira"}


def test_unknown_ids_return_none(tracker: ProposalTracker) -> None:
    assert tracker.get("proposal_0_0") is None
    assert tracker.update_status("proposal_0_0", ProposalStatus.ACCEPTED) is None


def test_views_preserve_insertion_order(tracker: ProposalTracker) -> None:
    proposals = _add_one_of_each(tracker)
    tracker.update_status(proposals[1].id, ProposalStatus.REJECTED)
    tracker.update_status(proposals[3].id, ProposalStatus.ACCEPTED)

    assert tracker.list() == proposals
    assert tracker.get_pending() == [proposals[0], proposals[2]]
    assert tracker.get_accepted() == [proposals[3]]


def test_leaving_terminal_state_is_allowed_but_logged(tracker: ProposalTracker) -> None:
    messages: list[str] = []
    sink_id = logger.add(messages.append, level="WARNING", format="{message}")
    try:
        proposal = tracker.add_create_proposal(EntityType.QUEST, {"name": "Q"})
        tracker.update_status(proposal.id, ProposalStatus.REJECTED)
        tracker.update_status(proposal.id, ProposalStatus.ACCEPTED)
    finally:
        logger.remove(sink_id)

    assert proposal.status == ProposalStatus.ACCEPTED
    assert len(messages) == 1
    assert "rejected" in messages[0]


def test_callback_receives_each_new_proposal() -> None:
    seen: list[EntityProposal] = []
    tracker = ProposalTracker(on_proposal_created=seen.append)
    first = tracker.add_create_proposal(EntityType.CHARACTER, {"name": "A"})
    tracker.set_on_proposal_created(None)
    tracker.add_create_proposal(EntityType.CHARACTER, {"name": "B"})
    assert seen == [first]


def test_clear_empties_registry_and_restarts_numbering(tracker: ProposalTracker) -> None:
    first = tracker.add_create_proposal(EntityType.CHARACTER, {"name": "A"})
    tracker.add_create_proposal(EntityType.CHARACTER, {"name": "B"})
    tracker.clear()

    assert tracker.list() == []
    assert tracker.get(first.id) is None
    again = tracker.add_create_proposal(EntityType.CHARACTER, {"name": "C"})
    assert again.id.endswith("_1")


def test_proposal_to_markdown_renders_each_kind(tracker: ProposalTracker) -> None:
    create, update, patch, relationship = _add_one_of_each(tracker)
    tracker.update_status(relationship.id, ProposalStatus.ACCEPTED)

    assert proposal_to_markdown(create) == (
        f"[Pending] Create quest: **Find the Relic** (id: {create.id})"
    )
    assert proposal_to_markdown(update) == (
        f"[Pending] Update character (c1): fields [occupation, name] (id: {update.id})"
    )
    assert proposal_to_markdown(patch) == (
        f"[Pending] Patch location (l1): fields [description] (id: {patch.id})"
    )
    assert tracker.proposal_to_markdown(relationship) == (
        f"[Accepted] Relationship: Aldric → member_of → Guild (id: {relationship.id})"
    )


def test_to_markdown_lists_every_proposal(tracker: ProposalTracker) -> None:
    assert tracker.to_markdown() == "No proposals."
    proposals = _add_one_of_each(tracker)
    lines = tracker.to_markdown().split("\n")
    assert len(lines) == len(proposals)
    assert all(line.startswith("[Pending]") for line in lines)
    assert tracker.to_markdown() == tracker.to_markdown()


def test_create_proposal_type(tracker: ProposalTracker) -> None:
    proposal = tracker.add_create_proposal(EntityType.SECRET, {"name": "The heir"})
    assert isinstance(proposal, CreateProposal)
    assert proposal.to_dict()["status"] == "pending"

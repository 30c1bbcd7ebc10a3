"""Tests for executing accepted proposals against the store."""

import json

from campaign_assist.core.content.text import entity_to_markdown, extract_plain_text
from campaign_assist.core.proposals.executor import AcceptResult, ProposalExecutor
from campaign_assist.core.proposals.tracker import ProposalTracker
from campaign_assist.models.entity import EntityType
from campaign_assist.models.proposal import (
    FieldPatch,
    PatchType,
    ProposalStatus,
    SuggestedRelationship,
)
from campaign_assist.store.memory import MemoryCampaignStore
from tests.unit.campaign_data import ALDRIC_ID, GUILD_ID, TOWER_ID
from tests.unit.fakes import RecordingStore

DESCRIPTION_PATCH = FieldPatch(
    "description",
    PatchType.UNIFIED_DIFF,
    "@@ -1 +1 @@\n-A grizzled veteran of the harbor watch.\n+A weary veteran of the harbor watch.",
)


def _is_stored_document(value: str) -> bool:
    return json.loads(value)["type"] == "doc"


def test_accept_create_converts_rich_text_and_links_known_targets(
    store: MemoryCampaignStore, tracker: ProposalTracker
) -> None:
    proposal = tracker.add_create_proposal(
        EntityType.CHARACTER,
        {"name": "Mira", "description": "A **bold** smuggler.", "occupation": "Smuggler"},
        suggested_relationships=[
            SuggestedRelationship("organization", "the silver guild", "member_of"),
            SuggestedRelationship("location", "Nowhere", "lives_in"),
            SuggestedRelationship("character", "Ghost", "knows", is_new_entity=True),
        ],
    )
    result = ProposalExecutor(store, tracker).accept(proposal.id)

    assert result.success
    assert result.entity_id is not None
    assert len(result.relationship_ids) == 1
    record = store.get(EntityType.CHARACTER, result.entity_id)
    assert record is not None
    assert record["occupation"] == "Smuggler"
    assert _is_stored_document(record["description"])
    assert entity_to_markdown(record)["description"] == "A **bold** smuggler."
    (relationship,) = store.list_relationships(result.entity_id)
    assert relationship["target_id"] == GUILD_ID
    assert relationship["relationship_type"] == "member_of"
    assert proposal.status == ProposalStatus.ACCEPTED


def test_accept_create_location_sets_parent(
    store: MemoryCampaignStore, tracker: ProposalTracker
) -> None:
    proposal = tracker.add_create_proposal(
        EntityType.LOCATION, {"name": "Top Floor", "location_type": "room"}, parent_id=TOWER_ID
    )
    result = ProposalExecutor(store, tracker).accept(proposal.id)
    record = store.get(EntityType.LOCATION, result.entity_id or "")
    assert record is not None
    assert record["parent_id"] == TOWER_ID


def test_accept_create_with_edited_data(
    store: MemoryCampaignStore, tracker: ProposalTracker
) -> None:
    proposal = tracker.add_create_proposal(EntityType.QUEST, {"name": "Draft"})
    result = ProposalExecutor(store, tracker).accept(proposal.id, {"name": "Final"})
    record = store.get(EntityType.QUEST, result.entity_id or "")
    assert record is not None
    assert record["name"] == "Final"


def test_accept_update_writes_changes(
    recording_store: RecordingStore, tracker: ProposalTracker
) -> None:
    proposal = tracker.add_update_proposal(
        EntityType.CHARACTER, ALDRIC_ID, {"description": "Now retired.", "occupation": "None"}
    )
    result = ProposalExecutor(recording_store, tracker).accept(proposal.id)

    assert result == AcceptResult(True, f"Updated character {ALDRIC_ID}", entity_id=ALDRIC_ID)
    record = recording_store.get(EntityType.CHARACTER, ALDRIC_ID)
    assert record is not None
    assert extract_plain_text(record["description"]) == "Now retired."
    assert record["occupation"] == "None"
    assert [kind for kind, _ in recording_store.writes] == ["update"]


def test_accept_patch_writes_only_patched_fields(
    recording_store: RecordingStore, tracker: ProposalTracker
) -> None:
    proposal = tracker.add_patch_proposal(EntityType.CHARACTER, ALDRIC_ID, [DESCRIPTION_PATCH])
    result = ProposalExecutor(recording_store, tracker).accept(proposal.id)

    assert result.success
    (write,) = recording_store.writes
    assert write[0] == "update"
    assert set(write[1][2]) == {"description"}
    record = recording_store.get(EntityType.CHARACTER, ALDRIC_ID)
    assert record is not None
    assert entity_to_markdown(record)["description"] == (
        "A weary veteran of the harbor watch.\n\nHe keeps a ledger of every ship."
    )


def test_accept_stale_patch_fails_without_writing(
    recording_store: RecordingStore, tracker: ProposalTracker
) -> None:
    proposal = tracker.add_patch_proposal(EntityType.CHARACTER, ALDRIC_ID, [DESCRIPTION_PATCH])
    recording_store.update(EntityType.CHARACTER, ALDRIC_ID, {"description": "Rewritten."})
    writes_before = len(recording_store.writes)

    result = ProposalExecutor(recording_store, tracker).accept(proposal.id)

    assert not result.success
    assert result.message.startswith("Patches no longer apply: description:")
    assert len(recording_store.writes) == writes_before
    assert proposal.status == ProposalStatus.PENDING


def test_accept_patch_with_edited_data_writes_it_directly(
    store: MemoryCampaignStore, tracker: ProposalTracker
) -> None:
    proposal = tracker.add_patch_proposal(EntityType.CHARACTER, ALDRIC_ID, [DESCRIPTION_PATCH])
    result = ProposalExecutor(store, tracker).accept(proposal.id, {"description": "Edited by hand."})
    assert result.success
    record = store.get(EntityType.CHARACTER, ALDRIC_ID)
    assert record is not None
    assert extract_plain_text(record["description"]) == "Edited by hand."


def test_accept_relationship(store: MemoryCampaignStore, tracker: ProposalTracker) -> None:
    proposal = tracker.add_relationship_proposal(
        EntityType.CHARACTER,
        ALDRIC_ID,
        "Captain Aldric",
        EntityType.ORGANIZATION,
        GUILD_ID,
        "The Silver Guild",
        "member_of",
        is_bidirectional=False,
    )
    result = ProposalExecutor(store, tracker).accept(proposal.id)

    assert result.message == "Linked Captain Aldric to The Silver Guild"
    (relationship,) = store.list_relationships(ALDRIC_ID)
    assert relationship["id"] == result.relationship_ids[0]
    assert relationship["is_bidirectional"] is False


def test_accept_relationship_to_removed_entity_stays_pending(
    store: MemoryCampaignStore, tracker: ProposalTracker
) -> None:
    proposal = tracker.add_relationship_proposal(
        EntityType.CHARACTER,
        ALDRIC_ID,
        "Captain Aldric",
        EntityType.ORGANIZATION,
        GUILD_ID,
        "The Silver Guild",
        "member_of",
    )
    store.remove(EntityType.ORGANIZATION, GUILD_ID)
    result = ProposalExecutor(store, tracker).accept(proposal.id)
    assert not result.success
    assert proposal.status == ProposalStatus.PENDING


def test_accept_update_of_removed_entity_fails(
    store: MemoryCampaignStore, tracker: ProposalTracker
) -> None:
    proposal = tracker.add_update_proposal(EntityType.LOCATION, TOWER_ID, {"name": "Ruin"})
    store.remove(EntityType.LOCATION, TOWER_ID)
    result = ProposalExecutor(store, tracker).accept(proposal.id)
    assert not result.success
    assert "not found" in result.message


def test_accept_unknown_or_decided_proposals(
    store: MemoryCampaignStore, tracker: ProposalTracker
) -> None:
    executor = ProposalExecutor(store, tracker)
    assert executor.accept("proposal_0_0").message == "Proposal not found: proposal_0_0"

    proposal = tracker.add_create_proposal(EntityType.QUEST, {"name": "Once"})
    assert executor.accept(proposal.id).success
    again = executor.accept(proposal.id)
    assert not again.success
    assert again.message == f"Proposal {proposal.id} is already accepted"
    assert len(store.list(EntityType.QUEST)) == 1


def test_reject_marks_proposal_without_writing(
    recording_store: RecordingStore, tracker: ProposalTracker
) -> None:
    executor = ProposalExecutor(recording_store, tracker)
    proposal = tracker.add_create_proposal(EntityType.QUEST, {"name": "Never"})

    result = executor.reject(proposal.id)

    assert result.to_dict() == {"success": True, "message": f"Rejected proposal {proposal.id}"}
    assert proposal.status == ProposalStatus.REJECTED
    assert recording_store.writes == []
    assert not executor.reject("proposal_0_0").success

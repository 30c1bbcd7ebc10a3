"""Tests for MCP tool core functions."""

from campaign_assist.core.proposals.tracker import ProposalTracker
from campaign_assist.mcp.server import get_entity, list_proposals, search_entities
from campaign_assist.models.entity import EntityType
from campaign_assist.store.memory import MemoryCampaignStore
from tests.unit.campaign_data import ALDRIC_ID, GUILD_ID, SESSION_ID


def test_search_entities_returns_citations(store: MemoryCampaignStore) -> None:
    result = search_entities(store, query="silver")
    assert result["count"] == 2
    first = result["results"][0]
    assert first["entity_type"] == "organization"
    assert first["entity_id"] == GUILD_ID
    assert first["citation"] == f"[[organization:{GUILD_ID}:The Silver Guild]]"
    # Aldric matches through the citation text in his secrets.
    assert result["results"][1]["entity_id"] == ALDRIC_ID


def test_search_entities_filters_by_type(store: MemoryCampaignStore) -> None:
    result = search_entities(store, query="harbor", entity_types=["session"])
    assert [r["entity_id"] for r in result["results"]] == [SESSION_ID]


def test_search_entities_clamps_limit(store: MemoryCampaignStore) -> None:
    assert search_entities(store, query="harbor", limit=0)["count"] == 1
    assert search_entities(store, query="harbor", limit=500)["count"] == 3


def test_search_entities_rejects_empty_query_and_unknown_types(
    store: MemoryCampaignStore,
) -> None:
    assert search_entities(store, query="   ")["error"] == "No search query provided."
    result = search_entities(store, query="harbor", entity_types=["dragon", "character"])
    assert result["error"] == "Unknown entity type(s): dragon"
    assert result["count"] == 0


def test_get_entity_renders_markdown_and_citations(store: MemoryCampaignStore) -> None:
    store.create_relationship(
        {
            "source_type": "character",
            "source_id": ALDRIC_ID,
            "target_type": "organization",
            "target_id": GUILD_ID,
            "relationship_type": "member_of",
        }
    )
    result = get_entity(store, entity_type="character", entity_id=ALDRIC_ID)

    assert "error" not in result
    entity = result["entity"]
    assert entity["description"] == (
        "A grizzled veteran of the harbor watch.\n\nHe keeps a ledger of every ship."
    )
    assert result["citations"] == [
        {
            "field": "secrets",
            "entity_type": "organization",
            "entity_id": GUILD_ID,
            "display_name": "The Silver Guild",
        }
    ]
    assert len(result["relationships"]) == 1


def test_get_entity_errors(store: MemoryCampaignStore) -> None:
    assert get_entity(store, entity_type="dragon", entity_id=ALDRIC_ID) == {
        "error": "Unknown entity type: dragon"
    }
    assert get_entity(store, entity_type="location", entity_id="missing") == {
        "error": "location 'missing' not found."
    }


def test_list_proposals_summarizes_session(tracker: ProposalTracker) -> None:
    assert list_proposals(tracker) == {"summary": "No proposals.", "proposals": [], "pending": 0}

    proposal = tracker.add_create_proposal(EntityType.QUEST, {"name": "Find the Relic"})
    result = list_proposals(tracker)
    assert result["pending"] == 1
    assert result["proposals"][0]["id"] == proposal.id
    assert result["proposals"][0]["operation"] == "create"
    assert "Find the Relic" in result["summary"]

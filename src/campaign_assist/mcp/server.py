"""MCP server exposing campaign lookup and entity proposal tools."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from campaign_assist.config import DEFAULT_SEARCH_LIMIT, resolve_snapshot_path
from campaign_assist.core.citations.parser import format_citation, parse_citations
from campaign_assist.core.content.text import entity_to_markdown
from campaign_assist.core.proposals.tools import (
    propose_create,
    propose_patch,
    propose_relationship,
    propose_update,
)
from campaign_assist.core.proposals.tracker import ProposalTracker
from campaign_assist.models.entity import RICH_TEXT_FIELDS, parse_entity_type
from campaign_assist.protocols import EntityStoreProtocol
from campaign_assist.store.memory import MemoryCampaignStore

# --- Core functions (testable without MCP context) ---


def search_entities(
    store: EntityStoreProtocol,
    *,
    query: str,
    entity_types: list[str] | None = None,
    limit: int = DEFAULT_SEARCH_LIMIT,
) -> dict[str, Any]:
    """Search campaign entities by name and rich-text content.

    Each result carries a ready-made citation for referencing the entity
    in replies.

    Args:
        query: Search words; every word must prefix-match.
        entity_types: Restrict to these entity types.
        limit: Max results (1-50, default 10).
    """
    if not query.strip():
        return {"error": "No search query provided.", "results": [], "count": 0}

    types = None
    if entity_types:
        types = [parse_entity_type(t) for t in entity_types]
        unknown = [t for t, parsed in zip(entity_types, types, strict=True) if parsed is None]
        if unknown:
            return {
                "error": f"Unknown entity type(s): {', '.join(unknown)}",
                "results": [],
                "count": 0,
            }

    hits = store.search(query, entity_types=types, limit=max(1, min(limit, 50)))  # type: ignore[arg-type]
    results = [
        {
            "entity_type": str(hit.entity_type),
            "entity_id": hit.entity_id,
            "name": hit.name,
            "snippet": hit.snippet,
            "citation": format_citation(hit.entity_type, hit.entity_id, hit.name),
        }
        for hit in hits
    ]
    return {"results": results, "count": len(results)}


def get_entity(store: EntityStoreProtocol, *, entity_type: str, entity_id: str) -> dict[str, Any]:
    """Fetch one entity with rich-text fields rendered as Markdown.

    Also lists the entity's relationships and every citation its text contains.
    """
    parsed = parse_entity_type(entity_type)
    if parsed is None:
        return {"error": f"Unknown entity type: {entity_type}"}
    record = store.get(parsed, entity_id)
    if record is None:
        return {"error": f"{entity_type} '{entity_id}' not found."}

    entity = entity_to_markdown(record)
    citations = [
        {
            "field": key,
            "entity_type": c.entity_type,
            "entity_id": c.entity_id,
            "display_name": c.display_name,
        }
        for key, value in entity.items()
        if key in RICH_TEXT_FIELDS and isinstance(value, str)
        for c in parse_citations(value)
    ]
    return {
        "entity_type": str(parsed),
        "entity": entity,
        "citations": citations,
        "relationships": store.list_relationships(entity_id),
    }


def list_proposals(tracker: ProposalTracker) -> dict[str, Any]:
    """Summarize this session's proposals."""
    proposals = tracker.list()
    return {
        "summary": tracker.to_markdown(),
        "proposals": [p.to_dict() for p in proposals],
        "pending": len(tracker.get_pending()),
    }


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    store: EntityStoreProtocol
    tracker: ProposalTracker


def _load_store() -> EntityStoreProtocol:
    snapshot = resolve_snapshot_path()
    if snapshot is None:
        logger.warning("No campaign snapshot configured; starting with an empty campaign")
        return MemoryCampaignStore()
    return MemoryCampaignStore.from_snapshot(snapshot)


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Load the campaign on startup; proposals live for the server session."""
    tracker = ProposalTracker()
    try:
        yield ServerContext(store=_load_store(), tracker=tracker)
    finally:
        if tracker.has_pending():
            logger.info("Discarding {} pending proposal(s)", len(tracker.get_pending()))
        tracker.clear()


mcp_server = FastMCP(
    "campaign-assist",
    instructions="""\
You help a game master maintain a tabletop RPG campaign. You can read the
campaign but never change it directly: every change is a *proposal* that the
user reviews and accepts or rejects.

## Workflow

1. Find entities with search_entities_tool, then read them with get_entity_tool.
2. Propose changes:
   - propose_create_tool for new entities,
   - propose_update_tool to replace whole fields,
   - propose_patch_tool for targeted edits to long text (unified diff) or
     JSON fields (JSON Patch),
   - propose_relationship_tool to link two existing entities.
3. Check list_proposals_tool before proposing again to avoid duplicates.

## Citations

Refer to entities as [[entity_type:uuid:Display Name]]. Search results include
the citation to use.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def search_entities_tool(
    ctx: Context,
    query: str,
    entity_types: list[str] | None = None,
    limit: int = DEFAULT_SEARCH_LIMIT,
) -> dict[str, Any]:
    """Search campaign entities (characters, locations, quests, ...).

    Args:
        query: Search words.
        entity_types: Optional filter, e.g. ["character", "location"].
        limit: Max results (1-50, default 10).
    """
    return search_entities(_ctx(ctx).store, query=query, entity_types=entity_types, limit=limit)


@mcp_server.tool()
async def get_entity_tool(ctx: Context, entity_type: str, entity_id: str) -> dict[str, Any]:
    """Get full details of an entity. Rich text is returned as Markdown.

    Args:
        entity_type: Entity type, e.g. "character".
        entity_id: Entity UUID (from search results or citations).
    """
    return get_entity(_ctx(ctx).store, entity_type=entity_type, entity_id=entity_id)


@mcp_server.tool()
async def propose_create_tool(
    ctx: Context,
    entity_type: str,
    data: dict[str, Any],
    reasoning: str | None = None,
    suggested_relationships: list[dict[str, Any]] | None = None,
    parent_id: str | None = None,
) -> dict[str, Any]:
    """Propose creating a new entity. Nothing is created until the user accepts.

    Args:
        entity_type: Type of entity to create (not "campaign").
        data: Entity fields; "name" is required. Locations need location_type,
            organizations org_type, quests plot_type and status.
        reasoning: Why you suggest this entity (shown to the user).
        suggested_relationships: Links to existing entities, each with
            target_type, target_name, relationship_type and optional
            description / is_new_entity.
        parent_id: Parent location ID (locations only).
    """
    result = propose_create(
        _ctx(ctx).tracker,
        {
            "entity_type": entity_type,
            "data": data,
            "reasoning": reasoning,
            "suggested_relationships": suggested_relationships,
            "parent_id": parent_id,
        },
    )
    return result.to_dict()


@mcp_server.tool()
async def propose_update_tool(
    ctx: Context,
    entity_type: str,
    entity_id: str,
    changes: dict[str, Any],
    reasoning: str | None = None,
) -> dict[str, Any]:
    """Propose replacing field values on an existing entity.

    Args:
        entity_type: Type of the entity.
        entity_id: ID of the entity (use search_entities_tool to find it).
        changes: Only the fields to change. Rich text may be Markdown.
        reasoning: Why you suggest these changes (shown to the user).
    """
    c = _ctx(ctx)
    result = propose_update(
        c.tracker,
        c.store,
        {
            "entity_type": entity_type,
            "entity_id": entity_id,
            "changes": changes,
            "reasoning": reasoning,
        },
    )
    return result.to_dict()


@mcp_server.tool()
async def propose_patch_tool(
    ctx: Context,
    entity_type: str,
    entity_id: str,
    patches: list[dict[str, str]],
    reasoning: str | None = None,
) -> dict[str, Any]:
    """Propose targeted edits to large fields.

    Text fields take a unified diff against the Markdown returned by
    get_entity_tool. JSON fields (stat_block_json, character_sheet_json,
    settings_json) take an RFC 6902 JSON Patch array.

    Args:
        entity_type: Type of the entity.
        entity_id: ID of the entity.
        patches: Items with field, patch_type ("unified_diff" or
            "json_patch") and patch.
        reasoning: Why you suggest these edits (shown to the user).
    """
    c = _ctx(ctx)
    result = propose_patch(
        c.tracker,
        c.store,
        {
            "entity_type": entity_type,
            "entity_id": entity_id,
            "patches": patches,
            "reasoning": reasoning,
        },
    )
    return result.to_dict()


@mcp_server.tool()
async def propose_relationship_tool(
    ctx: Context,
    source_type: str,
    source_id: str,
    target_type: str,
    target_id: str,
    relationship_type: str,
    description: str | None = None,
    is_bidirectional: bool = True,
    reasoning: str | None = None,
) -> dict[str, Any]:
    """Propose linking two existing entities.

    Args:
        source_type: Type of the "from" entity.
        source_id: ID of the "from" entity.
        target_type: Type of the "to" entity.
        target_id: ID of the "to" entity.
        relationship_type: e.g. member_of, located_in, ally_of, enemy_of.
        description: Optional description of the relationship.
        is_bidirectional: False for directed relationships like parent_of.
        reasoning: Why you suggest this link (shown to the user).
    """
    c = _ctx(ctx)
    result = propose_relationship(
        c.tracker,
        c.store,
        {
            "source_type": source_type,
            "source_id": source_id,
            "target_type": target_type,
            "target_id": target_id,
            "relationship_type": relationship_type,
            "description": description,
            "is_bidirectional": is_bidirectional,
            "reasoning": reasoning,
        },
    )
    return result.to_dict()


@mcp_server.tool()
async def list_proposals_tool(ctx: Context) -> dict[str, Any]:
    """List the proposals made in this session and their review status."""
    return list_proposals(_ctx(ctx).tracker)


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from campaign_assist.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")

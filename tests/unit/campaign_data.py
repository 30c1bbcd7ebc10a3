"""Sample campaign used across the unit tests."""

import json
from typing import Any

ALDRIC_ID = "550e8400-e29b-41d4-a716-446655440000"
TOWER_ID = "7c9e6679-7425-40de-944b-e07fc1f90ae7"
GUILD_ID = "9b2f4c1e-3d5a-4e6f-8a7b-0c1d2e3f4a5b"
SESSION_ID = "1a2b3c4d-5e6f-4a7b-8c9d-0e1f2a3b4c5d"


def _doc(*paragraphs: str) -> str:
    """Stored document string with one plain paragraph per argument."""
    return json.dumps(
        {
            "type": "doc",
            "content": [
                {"type": "paragraph", "content": [{"type": "text", "text": p}]} for p in paragraphs
            ],
        },
        separators=(",", ":"),
    )


CAMPAIGN_SNAPSHOT: dict[str, Any] = {
    "entities": {
        "character": [
            {
                "id": ALDRIC_ID,
                "name": "Captain Aldric",
                "occupation": "Harbor captain",
                "description": _doc(
                    "A grizzled veteran of the harbor watch.",
                    "He keeps a ledger of every ship.",
                ),
                "secrets": _doc(f"Owes money to [[organization:{GUILD_ID}:The Silver Guild]]."),
                "stat_block_json": json.dumps({"hp": {"max": 30, "current": 30}, "ac": 15}),
            }
        ],
        "location": [
            {
                "id": TOWER_ID,
                "name": "The Obsidian Tower",
                "location_type": "building",
                "description": _doc("A black spire on the cliffs."),
            }
        ],
        "organization": [
            {
                "id": GUILD_ID,
                "name": "The Silver Guild",
                "org_type": "mercantile",
                "goals": "Control the harbor trade",
            }
        ],
        "session": [
            {
                "id": SESSION_ID,
                "session_number": 1,
                "title": "Arrival at the Harbor",
                "summary": _doc("The party lands."),
            }
        ],
    },
    "relationships": [],
}

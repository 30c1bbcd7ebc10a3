"""Configuration constants for campaign-assist."""

import os
from pathlib import Path

# Environment variable pointing at a campaign snapshot file. Takes precedence over SNAPSHOT_FILES.
STORE_SNAPSHOT_ENV: str = "CAMPAIGN_ASSIST_SNAPSHOT"

# Campaign snapshot location. First file found is used.
SNAPSHOT_FILES: list[Path] = [
    Path("~/.local/share/campaign-assist/campaign.json").expanduser(),
    Path("~/.config/campaign-assist/campaign.json").expanduser(),
]

# Entity names longer than this are rejected in create proposals.
MAX_NAME_LENGTH: int = 200

# Patch text shown back to the agent is cut after this many characters.
PATCH_PREVIEW_CHARS: int = 100

# The editor only renders h1-h3; deeper headings are clamped.
MAX_HEADING_LEVEL: int = 3

DEFAULT_SEARCH_LIMIT: int = 10


def resolve_snapshot_path() -> Path | None:
    """Return the campaign snapshot to load, or None when none is configured."""
    env_value = os.environ.get(STORE_SNAPSHOT_ENV)
    if env_value:
        return Path(env_value).expanduser()
    for candidate in SNAPSHOT_FILES:
        if candidate.is_file():
            return candidate
    return None

"""Shared test fixtures."""

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from campaign_assist.core.proposals.tracker import ProposalTracker
from campaign_assist.store.memory import MemoryCampaignStore
from tests.unit.campaign_data import CAMPAIGN_SNAPSHOT
from tests.unit.fakes import FixedClock, RecordingStore


@pytest.fixture
def store() -> MemoryCampaignStore:
    """Return a store seeded with a small campaign."""
    return MemoryCampaignStore(CAMPAIGN_SNAPSHOT["entities"], CAMPAIGN_SNAPSHOT["relationships"])


@pytest.fixture
def recording_store() -> RecordingStore:
    """Return a seeded store that records every write."""
    return RecordingStore(CAMPAIGN_SNAPSHOT["entities"], CAMPAIGN_SNAPSHOT["relationships"])


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 1, 15, 12, 0, tzinfo=UTC))


@pytest.fixture
def tracker(clock: FixedClock) -> ProposalTracker:
    return ProposalTracker(clock=clock)


@pytest.fixture
def snapshot_file(tmp_path: Path) -> Path:
    """Write the sample campaign to a snapshot file."""
    path = tmp_path / "campaign.json"
    path.write_text(json.dumps(CAMPAIGN_SNAPSHOT))
    return path

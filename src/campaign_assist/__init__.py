"""AI-assisted campaign editing: rich-text conversion, patching and reviewable proposals."""

from campaign_assist.core.proposals.executor import ProposalExecutor
from campaign_assist.core.proposals.tracker import ProposalTracker
from campaign_assist.protocols import EntityStoreProtocol
from campaign_assist.store.memory import MemoryCampaignStore

__all__ = ["EntityStoreProtocol", "MemoryCampaignStore", "ProposalExecutor", "ProposalTracker"]

"""Campaign-level progress, summaries and the admin overview.

Example:
    >>> from src.annotation.campaigns import campaign_summaries
    >>> for summary in campaign_summaries(store):
    ...     print(summary.to_summary())
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel

from src.annotation.agreement import agreement_from_votes
from src.annotation.disagreements import find_disagreements
from src.annotation.models import CampaignStatus
from src.annotation.tallies import tally_votes

if TYPE_CHECKING:
    from src.annotation.models import Campaign
    from src.annotation.storage import ReviewStore


class CampaignProgress(BaseModel):
    """Pairs with at least one vote out of all pairs."""

    reviewed: int = 0
    total: int = 0


class CampaignSummary(BaseModel):
    """Headline numbers for one campaign.

    Attributes:
        campaign_id: The campaign.
        name: Campaign name.
        status: Lifecycle status.
        total_pairs: Pairs in the campaign.
        reviewed_pairs: Pairs with at least one vote.
        completion_percent: reviewed / total as a whole percentage.
        total_votes: Votes in the campaign.
        unique_reviewers: Distinct users who voted.
        avg_votes_per_pair: Votes per reviewed pair, one decimal.
        alpha: Agreement coefficient, or None when data is insufficient.
        disagreement_count: Pairs in the disagreement band (uncapped).
        days_since_last_activity: Whole days since the latest vote, or None.
    """

    campaign_id: str
    name: str
    status: CampaignStatus
    total_pairs: int = 0
    reviewed_pairs: int = 0
    completion_percent: int = 0
    total_votes: int = 0
    unique_reviewers: int = 0
    avg_votes_per_pair: float = 0.0
    alpha: float | None = None
    disagreement_count: int = 0
    days_since_last_activity: int | None = None

    def to_summary(self) -> str:
        """Generate a human-readable summary.

        Returns:
            Summary string for the campaign.
        """
        alpha = "N/A" if self.alpha is None else f"{self.alpha:.2f}"
        return (
            f"{self.name} [{self.status.value}]: {self.reviewed_pairs}/{self.total_pairs} "
            f"reviewed ({self.completion_percent}%), {self.total_votes} votes from "
            f"{self.unique_reviewers} reviewers, alpha {alpha}, "
            f"{self.disagreement_count} disagreements"
        )


class AdminOverview(BaseModel):
    """Platform-wide counts."""

    total_users: int = 0
    total_campaigns: int = 0
    total_votes: int = 0
    active_campaigns: int = 0


def campaign_progress(store: ReviewStore, campaign_id: str) -> CampaignProgress:
    """Count reviewed pairs in a campaign.

    Raises:
        NotFoundError: If the campaign does not exist.
    """
    store.require_campaign(campaign_id)
    pairs = store.list_pairs(campaign_id)
    voted = {v.pair_id for v in store.list_votes(campaign_id)}
    return CampaignProgress(reviewed=len(voted), total=len(pairs))


def campaign_summary(
    store: ReviewStore,
    campaign: Campaign,
    now: datetime | None = None,
) -> CampaignSummary:
    """Summarize one campaign.

    Args:
        store: Data-access backend.
        campaign: The campaign to summarize.
        now: Reference time for days-since-activity (current time if None).

    Returns:
        CampaignSummary for the campaign.
    """
    pairs = store.list_pairs(campaign.campaign_id)
    votes = store.list_votes(campaign.campaign_id)
    tallies = tally_votes(votes)

    reviewed = len(tallies)
    total = len(pairs)

    days_since = None
    if votes:
        last = max(v.created_at for v in votes)
        days_since = max(0, ((now or datetime.now()) - last).days)

    return CampaignSummary(
        campaign_id=campaign.campaign_id,
        name=campaign.name,
        status=campaign.status,
        total_pairs=total,
        reviewed_pairs=reviewed,
        completion_percent=round(reviewed / total * 100) if total else 0,
        total_votes=len(votes),
        unique_reviewers=len({v.user_id for v in votes}),
        avg_votes_per_pair=round(len(votes) / reviewed, 1) if reviewed else 0.0,
        alpha=agreement_from_votes(votes).alpha,
        disagreement_count=len(find_disagreements(pairs, tallies)),
        days_since_last_activity=days_since,
    )


def campaign_summaries(store: ReviewStore, now: datetime | None = None) -> list[CampaignSummary]:
    """Summarize every campaign, newest first."""
    return [campaign_summary(store, campaign, now) for campaign in store.list_campaigns()]


def admin_overview(store: ReviewStore) -> AdminOverview:
    """Count users, campaigns and votes across the platform."""
    campaigns = store.list_campaigns()
    return AdminOverview(
        total_users=len(store.list_users()),
        total_campaigns=len(campaigns),
        total_votes=len(store.list_votes()),
        active_campaigns=sum(1 for c in campaigns if c.status == CampaignStatus.ACTIVE),
    )

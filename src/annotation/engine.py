"""Analytics facade over an injected vote ledger.

Example:
    >>> from src.annotation.engine import AgreementEngine
    >>> from src.annotation.storage import SQLiteReviewStore
    >>> engine = AgreementEngine(SQLiteReviewStore("annotation.db"))
    >>> print(engine.agreement(campaign_id).to_summary())
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from src.annotation import agreement, campaigns, disagreements, distribution, reviewers, skips
from src.config import AnalyticsConfig

if TYPE_CHECKING:
    from src.annotation.agreement import AgreementResult
    from src.annotation.campaigns import AdminOverview, CampaignProgress, CampaignSummary
    from src.annotation.disagreements import ConfidenceBucket, DisagreementPair
    from src.annotation.distribution import TimelinePoint, VoteDistribution
    from src.annotation.reviewers import ReviewerStat, UserStats
    from src.annotation.skips import SkipAnalysis
    from src.annotation.storage import ReviewStore


class AgreementEngine:
    """Read-only analytics over a campaign's votes.

    Every call re-reads the ledger; nothing is cached between calls.

    Attributes:
        store: Data-access backend.
        config: Analytics thresholds and limits.
    """

    def __init__(self, store: ReviewStore, config: AnalyticsConfig | None = None) -> None:
        self.store = store
        self.config = config or AnalyticsConfig()

    def agreement(self, campaign_id: str) -> AgreementResult:
        """Compute the inter-rater agreement coefficient."""
        return agreement.compute_agreement(self.store, campaign_id)

    def vote_distribution(self, campaign_id: str) -> VoteDistribution:
        """Break down votes by mode, outcome and day."""
        return distribution.vote_distribution(self.store, campaign_id)

    def votes_over_time(self, campaign_id: str | None = None) -> list[TimelinePoint]:
        """Per-day vote counts, for one campaign or globally."""
        return distribution.votes_over_time(self.store, campaign_id)

    def reviewer_stats(self, campaign_id: str, now: datetime | None = None) -> list[ReviewerStat]:
        """Per-reviewer rates, activity and flags."""
        return reviewers.reviewer_stats(self.store, campaign_id, self.config, now)

    def user_stats(self, user_id: str, now: datetime | None = None) -> UserStats:
        """A user's activity across campaigns."""
        return reviewers.user_stats(self.store, user_id, now)

    def high_disagreement_pairs(
        self,
        campaign_id: str,
        limit: int | None = None,
    ) -> list[DisagreementPair]:
        """Most ambiguous pairs, capped at ``limit`` (configured default if None)."""
        return disagreements.high_disagreement_pairs(
            self.store,
            campaign_id,
            limit if limit is not None else self.config.disagreement_limit,
        )

    def disagreement_by_confidence(self, campaign_id: str) -> list[ConfidenceBucket]:
        """Disagreement frequency per LLM-confidence range."""
        return disagreements.disagreement_by_confidence(self.store, campaign_id)

    def skip_analysis(self, campaign_id: str) -> SkipAnalysis:
        """Skip counts and rates."""
        return skips.skip_analysis(self.store, campaign_id, self.config.top_skipped_limit)

    def campaign_progress(self, campaign_id: str) -> CampaignProgress:
        """Reviewed pairs out of total."""
        return campaigns.campaign_progress(self.store, campaign_id)

    def campaign_summaries(self, now: datetime | None = None) -> list[CampaignSummary]:
        """Headline numbers for every campaign."""
        return campaigns.campaign_summaries(self.store, now)

    def admin_overview(self) -> AdminOverview:
        """Platform-wide counts."""
        return campaigns.admin_overview(self.store)

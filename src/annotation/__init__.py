"""Human-in-the-loop pair annotation.

This module lets reviewers vote on machine-proposed source/target pairs,
picks which pair each reviewer sees next, and measures how well reviewers
agree with each other.

Example:
    >>> from src.annotation import (
    ...     AgreementEngine,
    ...     PairSelector,
    ...     SQLiteReviewStore,
    ...     build_vote_submission,
    ... )
    >>> store = SQLiteReviewStore("annotation.db")
    >>> pair = PairSelector(store).next_pair(campaign_id, "reviewer_1")
    >>> store.record_vote(pair.pair_id, "reviewer_1", build_vote_submission(score_binary="match"))
    >>> print(AgreementEngine(store).agreement(campaign_id).to_summary())
"""

from src.annotation.agreement import AgreementResult, compute_agreement, krippendorff_alpha
from src.annotation.campaigns import (
    AdminOverview,
    CampaignProgress,
    CampaignSummary,
    admin_overview,
    campaign_progress,
    campaign_summaries,
)
from src.annotation.disagreements import (
    ConfidenceBucket,
    DisagreementPair,
    disagreement_by_confidence,
    high_disagreement_pairs,
)
from src.annotation.distribution import (
    TimelinePoint,
    VoteDistribution,
    vote_distribution,
    votes_over_time,
)
from src.annotation.engine import AgreementEngine
from src.annotation.exceptions import (
    AlreadyVotedError,
    AnnotationError,
    ConflictError,
    ImportValidationError,
    InvalidTransitionError,
    NotFoundError,
    VoteValidationError,
)
from src.annotation.importer import export_campaign, import_pairs
from src.annotation.models import (
    BinaryScore,
    Campaign,
    CampaignStatus,
    MatchOutcome,
    NumericScore,
    Pair,
    PairEntity,
    ScoringMode,
    SkippedPair,
    User,
    UserRole,
    Vote,
    VoteSubmission,
    build_vote_submission,
)
from src.annotation.reviewers import ReviewerStat, UserStats, reviewer_stats, user_stats
from src.annotation.selector import PairSelector, PriorityBucket, priority_bucket
from src.annotation.skips import SkipAnalysis, skip_analysis
from src.annotation.storage import (
    InMemoryReviewStore,
    ReviewStore,
    SQLiteReviewStore,
    create_store,
)

__all__ = [
    "AdminOverview",
    "AgreementEngine",
    "AgreementResult",
    "AlreadyVotedError",
    "AnnotationError",
    "BinaryScore",
    "Campaign",
    "CampaignProgress",
    "CampaignStatus",
    "CampaignSummary",
    "ConfidenceBucket",
    "ConflictError",
    "DisagreementPair",
    "ImportValidationError",
    "InMemoryReviewStore",
    "InvalidTransitionError",
    "MatchOutcome",
    "NotFoundError",
    "NumericScore",
    "Pair",
    "PairEntity",
    "PairSelector",
    "PriorityBucket",
    "ReviewStore",
    "ReviewerStat",
    "SQLiteReviewStore",
    "ScoringMode",
    "SkipAnalysis",
    "SkippedPair",
    "TimelinePoint",
    "User",
    "UserRole",
    "UserStats",
    "Vote",
    "VoteDistribution",
    "VoteSubmission",
    "VoteValidationError",
    "admin_overview",
    "build_vote_submission",
    "campaign_progress",
    "campaign_summaries",
    "compute_agreement",
    "create_store",
    "disagreement_by_confidence",
    "export_campaign",
    "high_disagreement_pairs",
    "import_pairs",
    "krippendorff_alpha",
    "priority_bucket",
    "reviewer_stats",
    "skip_analysis",
    "user_stats",
    "vote_distribution",
    "votes_over_time",
]

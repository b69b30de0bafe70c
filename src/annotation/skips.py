"""Skip analysis.

Example:
    >>> from src.annotation.skips import skip_analysis
    >>> analysis = skip_analysis(store, campaign_id)
    >>> print(f"Skip rate: {analysis.skip_rate:.1%}")
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from src.annotation.models import Pair

if TYPE_CHECKING:
    from src.annotation.storage import ReviewStore

DEFAULT_TOP_SKIPPED = 20


class SkippedPairStat(BaseModel):
    """How often a pair was skipped and how many votes it received."""

    pair: Pair
    skip_count: int
    vote_count: int


class ReviewerSkipStat(BaseModel):
    """A reviewer's skips relative to all pairs they handled."""

    user_id: str
    email: str = ""
    skip_count: int
    skip_rate: float


class SkipAnalysis(BaseModel):
    """Skip behavior in a campaign.

    Attributes:
        total_skips: Skip records in the campaign.
        unique_pairs_skipped: Pairs skipped by at least one reviewer.
        skip_rate: unique_pairs_skipped / (reviewed pairs + unique_pairs_skipped).
        most_skipped: Most-skipped pairs, most skips first.
        by_reviewer: Per-reviewer skips / (skips + votes), most skips first.
    """

    total_skips: int = 0
    unique_pairs_skipped: int = 0
    skip_rate: float = 0.0
    most_skipped: list[SkippedPairStat] = Field(default_factory=list)
    by_reviewer: list[ReviewerSkipStat] = Field(default_factory=list)


def skip_analysis(
    store: ReviewStore,
    campaign_id: str,
    top: int = DEFAULT_TOP_SKIPPED,
) -> SkipAnalysis:
    """Analyze skips in a campaign.

    Args:
        store: Data-access backend.
        campaign_id: Campaign to analyze.
        top: Number of most-skipped pairs to report.

    Returns:
        SkipAnalysis; zeros and empty lists when nothing was skipped.
    """
    skips = store.list_skips(campaign_id)
    if not skips:
        return SkipAnalysis()

    votes = store.list_votes(campaign_id)
    skips_per_pair = Counter(s.pair_id for s in skips)
    votes_per_pair = Counter(v.pair_id for v in votes)
    reviewed = len(votes_per_pair)
    unique_skipped = len(skips_per_pair)

    most_skipped = []
    for pair_id, count in sorted(skips_per_pair.items(), key=lambda item: (-item[1], item[0]))[:top]:
        pair = store.get_pair(pair_id)
        if pair is not None:
            most_skipped.append(
                SkippedPairStat(pair=pair, skip_count=count, vote_count=votes_per_pair[pair_id])
            )

    skips_per_user = Counter(s.user_id for s in skips)
    votes_per_user = Counter(v.user_id for v in votes)
    by_reviewer = []
    for user_id, count in sorted(skips_per_user.items(), key=lambda item: (-item[1], item[0])):
        user = store.get_user(user_id)
        by_reviewer.append(
            ReviewerSkipStat(
                user_id=user_id,
                email=user.email if user else "",
                skip_count=count,
                skip_rate=count / (count + votes_per_user[user_id]),
            )
        )

    return SkipAnalysis(
        total_skips=len(skips),
        unique_pairs_skipped=unique_skipped,
        skip_rate=unique_skipped / (reviewed + unique_skipped),
        most_skipped=most_skipped,
        by_reviewer=by_reviewer,
    )

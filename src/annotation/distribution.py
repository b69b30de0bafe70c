"""Vote distribution and votes-over-time aggregations.

Example:
    >>> from src.annotation.distribution import vote_distribution
    >>> dist = vote_distribution(store, campaign_id)
    >>> print(dist.to_summary())
"""

from __future__ import annotations

import statistics
from collections import defaultdict
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from src.annotation.models import BinaryScore, MatchOutcome, NumericScore

if TYPE_CHECKING:
    from collections.abc import Sequence

    from src.annotation.models import Vote
    from src.annotation.storage import ReviewStore

NUMERIC_SCORES = (1, 2, 3, 4, 5)


class ScoreBucket(BaseModel):
    """Count of numeric votes with a given score."""

    score: int
    count: int = 0


class NumericStats(BaseModel):
    """Summary statistics of numeric votes (population standard deviation)."""

    mean: float
    median: float
    std_dev: float


class DailyModeCount(BaseModel):
    """Votes cast on one day, split by scoring mode."""

    date: str
    binary: int = 0
    numeric: int = 0


class VoteDistribution(BaseModel):
    """Breakdown of a campaign's votes.

    Unsure votes are left out of the match / no_match breakdown but are
    still counted in ``binary_votes`` and ``unsure_votes``.

    Attributes:
        binary_votes: Votes in binary mode, unsure included.
        numeric_votes: Votes in numeric mode.
        match_votes: Binary votes with outcome "match".
        no_match_votes: Binary votes with outcome "no_match".
        unsure_votes: Binary votes with outcome "unsure".
        numeric_score_distribution: Histogram over scores 1-5.
        numeric_stats: Mean, median and standard deviation, or None without numeric votes.
        votes_by_day: Per-day counts by mode, oldest first.
    """

    binary_votes: int = 0
    numeric_votes: int = 0
    match_votes: int = 0
    no_match_votes: int = 0
    unsure_votes: int = 0
    numeric_score_distribution: list[ScoreBucket] = Field(
        default_factory=lambda: [ScoreBucket(score=s) for s in NUMERIC_SCORES]
    )
    numeric_stats: NumericStats | None = None
    votes_by_day: list[DailyModeCount] = Field(default_factory=list)

    def to_summary(self) -> str:
        """Generate a human-readable summary.

        Returns:
            Summary string of the distribution.
        """
        lines = [
            "Vote Distribution",
            "=" * 40,
            f"Binary Votes: {self.binary_votes}",
            f"  Match: {self.match_votes}",
            f"  No Match: {self.no_match_votes}",
            f"  Unsure: {self.unsure_votes}",
            f"Numeric Votes: {self.numeric_votes}",
        ]
        if self.numeric_stats:
            lines.append(
                f"  Mean {self.numeric_stats.mean}, median {self.numeric_stats.median}, "
                f"std dev {self.numeric_stats.std_dev}"
            )
            for bucket in self.numeric_score_distribution:
                lines.append(f"  {bucket.score}: {bucket.count}")
        return "\n".join(lines)


class TimelinePoint(BaseModel):
    """Votes cast on one day and the running total up to that day."""

    date: str
    count: int
    cumulative: int


def distribution_from_votes(votes: Sequence[Vote]) -> VoteDistribution:
    """Build the vote distribution for a set of votes."""
    dist = VoteDistribution()
    numeric_values: list[int] = []
    by_day: dict[str, DailyModeCount] = {}

    for vote in votes:
        day = vote.created_at.date().isoformat()
        daily = by_day.setdefault(day, DailyModeCount(date=day))
        score = vote.score

        if isinstance(score, BinaryScore):
            dist.binary_votes += 1
            daily.binary += 1
            if score.outcome == MatchOutcome.MATCH:
                dist.match_votes += 1
            elif score.outcome == MatchOutcome.NO_MATCH:
                dist.no_match_votes += 1
            else:
                dist.unsure_votes += 1
        elif isinstance(score, NumericScore):
            dist.numeric_votes += 1
            daily.numeric += 1
            numeric_values.append(score.value)
            dist.numeric_score_distribution[score.value - 1].count += 1

    if numeric_values:
        dist.numeric_stats = NumericStats(
            mean=round(statistics.fmean(numeric_values), 2),
            median=round(float(statistics.median(numeric_values)), 2),
            std_dev=round(statistics.pstdev(numeric_values), 2),
        )

    dist.votes_by_day = [by_day[day] for day in sorted(by_day)]
    return dist


def vote_distribution(store: ReviewStore, campaign_id: str) -> VoteDistribution:
    """Compute the vote distribution of a campaign.

    Args:
        store: Data-access backend.
        campaign_id: Campaign to analyze.

    Returns:
        VoteDistribution; all zeros with empty lists when there are no votes.
    """
    return distribution_from_votes(store.list_votes(campaign_id))


def timeline_from_votes(votes: Sequence[Vote]) -> list[TimelinePoint]:
    """Build per-day vote counts with a running total."""
    counts: dict[str, int] = defaultdict(int)
    for vote in votes:
        counts[vote.created_at.date().isoformat()] += 1

    points = []
    cumulative = 0
    for day in sorted(counts):
        cumulative += counts[day]
        points.append(TimelinePoint(date=day, count=counts[day], cumulative=cumulative))
    return points


def votes_over_time(store: ReviewStore, campaign_id: str | None = None) -> list[TimelinePoint]:
    """Compute per-day vote counts, for one campaign or across all campaigns.

    Args:
        store: Data-access backend.
        campaign_id: Campaign to scope to, or None for every vote.

    Returns:
        TimelinePoints ordered by date, empty without votes.
    """
    return timeline_from_votes(store.list_votes(campaign_id))

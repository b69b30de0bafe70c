"""Reviewer-level statistics and bias flags.

Agreement and positive rates only consider definitive binary votes
(match / no_match). Within a campaign they are reported only once a
reviewer has cast enough binary votes, unsure ones included; below that
floor both are None and no flags are raised.

Example:
    >>> from src.annotation.reviewers import reviewer_stats
    >>> for stat in reviewer_stats(store, campaign_id):
    ...     print(stat.user_id, stat.agreement_rate, stat.flags)
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from src.annotation.models import BinaryScore
from src.annotation.tallies import tally_votes
from src.config import AnalyticsConfig

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from src.annotation.models import Vote
    from src.annotation.storage import ReviewStore
    from src.annotation.tallies import PairTally

LOW_AGREEMENT = "low_agreement"
HIGH_POSITIVE_BIAS = "high_positive_bias"
HIGH_NEGATIVE_BIAS = "high_negative_bias"

RECENT_ACTIVITY_DAYS = 30


class ReviewerStat(BaseModel):
    """Statistics for one reviewer within a campaign.

    Attributes:
        user_id: The reviewer.
        email: Reviewer email, empty if the user record is missing.
        display_name: Reviewer display name.
        total_votes: Votes cast in the campaign, in any mode.
        activity_last_days: Votes per day, oldest first; the last entry is today.
        agreement_rate: Share of definitive votes matching the pair consensus.
        positive_rate: Share of definitive votes that are matches.
        skip_count: Pairs skipped in the campaign.
        flags: Quality flags such as "low_agreement".
    """

    user_id: str
    email: str = ""
    display_name: str | None = None
    total_votes: int = 0
    activity_last_days: list[int] = Field(default_factory=list)
    agreement_rate: float | None = None
    positive_rate: float | None = None
    skip_count: int = 0
    flags: list[str] = Field(default_factory=list)


class CampaignVoteCount(BaseModel):
    """Number of votes a user cast in one campaign."""

    campaign_id: str
    campaign_name: str
    vote_count: int


class DailyCount(BaseModel):
    """Votes cast on one day."""

    date: str
    count: int


class UserStats(BaseModel):
    """A user's activity across all campaigns.

    Attributes:
        total_votes: Votes cast overall.
        votes_per_campaign: Vote counts per campaign.
        agreement_rate: Share of definitive votes matching consensus, no floor.
        recent_activity: Per-day counts over the last 30 days.
    """

    total_votes: int = 0
    votes_per_campaign: list[CampaignVoteCount] = Field(default_factory=list)
    agreement_rate: float | None = None
    recent_activity: list[DailyCount] = Field(default_factory=list)


def consensus_agreement(
    votes: Sequence[Vote],
    tallies: Mapping[str, PairTally],
) -> float | None:
    """Share of definitive binary votes that match their pair's consensus.

    Pairs without a defined consensus are not comparable and are skipped.

    Args:
        votes: One reviewer's votes.
        tallies: Tallies of every pair those votes were cast on.

    Returns:
        Agreement rate, or None when no vote is comparable.
    """
    agreements = 0
    comparable = 0
    for vote in votes:
        score = vote.score
        if not isinstance(score, BinaryScore) or not score.is_definitive:
            continue
        tally = tallies.get(vote.pair_id)
        if tally is None or tally.consensus is None:
            continue
        comparable += 1
        if score.outcome == tally.consensus:
            agreements += 1
    return agreements / comparable if comparable else None


def bias_flags(
    agreement_rate: float | None,
    positive_rate: float | None,
    config: AnalyticsConfig | None = None,
) -> list[str]:
    """Flag reviewers whose rates fall outside the expected range.

    Flags are only raised when both rates are defined.
    """
    config = config or AnalyticsConfig()
    if agreement_rate is None or positive_rate is None:
        return []

    flags = []
    if agreement_rate < config.low_agreement_threshold:
        flags.append(LOW_AGREEMENT)
    if positive_rate > config.high_positive_threshold:
        flags.append(HIGH_POSITIVE_BIAS)
    if positive_rate < config.high_negative_threshold:
        flags.append(HIGH_NEGATIVE_BIAS)
    return flags


def daily_activity(votes: Sequence[Vote], days: int, today: date) -> list[int]:
    """Count votes per day over the trailing window ending today."""
    start = today - timedelta(days=days - 1)
    activity = [0] * days
    for vote in votes:
        offset = (vote.created_at.date() - start).days
        if 0 <= offset < days:
            activity[offset] += 1
    return activity


def reviewer_stats(
    store: ReviewStore,
    campaign_id: str,
    config: AnalyticsConfig | None = None,
    now: datetime | None = None,
) -> list[ReviewerStat]:
    """Compute per-reviewer statistics for a campaign.

    Args:
        store: Data-access backend.
        campaign_id: Campaign to analyze.
        config: Floors and flag thresholds (defaults used if None).
        now: Reference time for the activity window (current time if None).

    Returns:
        One ReviewerStat per user who voted or skipped in the campaign,
        most active first.
    """
    config = config or AnalyticsConfig()
    today = (now or datetime.now()).date()

    votes = store.list_votes(campaign_id)
    skips = store.list_skips(campaign_id)
    tallies = tally_votes(votes)

    votes_by_user: dict[str, list[Vote]] = defaultdict(list)
    for vote in votes:
        votes_by_user[vote.user_id].append(vote)

    skips_by_user: dict[str, int] = defaultdict(int)
    for skip in skips:
        skips_by_user[skip.user_id] += 1

    stats = []
    for user_id in sorted(set(votes_by_user) | set(skips_by_user)):
        user_votes = votes_by_user.get(user_id, [])
        user = store.get_user(user_id)

        binary = [v.score for v in user_votes if isinstance(v.score, BinaryScore)]
        definitive = [s for s in binary if s.is_definitive]

        agreement_rate = None
        positive_rate = None
        if len(binary) >= config.min_votes_for_rates and definitive:
            agreement_rate = consensus_agreement(user_votes, tallies)
            positive_rate = sum(1 for s in definitive if s.is_positive) / len(definitive)

        stats.append(
            ReviewerStat(
                user_id=user_id,
                email=user.email if user else "",
                display_name=user.display_name if user else None,
                total_votes=len(user_votes),
                activity_last_days=daily_activity(user_votes, config.activity_days, today),
                agreement_rate=agreement_rate,
                positive_rate=positive_rate,
                skip_count=skips_by_user.get(user_id, 0),
                flags=bias_flags(agreement_rate, positive_rate, config),
            )
        )

    stats.sort(key=lambda s: s.total_votes, reverse=True)
    return stats


def user_stats(store: ReviewStore, user_id: str, now: datetime | None = None) -> UserStats:
    """Compute a user's activity across all campaigns.

    Args:
        store: Data-access backend.
        user_id: The user to analyze.
        now: Reference time for the recent-activity window (current time if None).

    Returns:
        UserStats for the user; zeros and None for a user with no votes.
    """
    votes = store.list_user_votes(user_id)
    if not votes:
        return UserStats()

    campaign_of: dict[str, str] = {}
    for vote in votes:
        pair = store.get_pair(vote.pair_id)
        if pair is not None:
            campaign_of[vote.pair_id] = pair.campaign_id

    per_campaign: dict[str, int] = defaultdict(int)
    for vote in votes:
        if vote.pair_id in campaign_of:
            per_campaign[campaign_of[vote.pair_id]] += 1

    votes_per_campaign = []
    campaign_votes: list[Vote] = []
    for campaign_id, count in sorted(per_campaign.items(), key=lambda item: -item[1]):
        campaign = store.get_campaign(campaign_id)
        votes_per_campaign.append(
            CampaignVoteCount(
                campaign_id=campaign_id,
                campaign_name=campaign.name if campaign else "",
                vote_count=count,
            )
        )
        campaign_votes.extend(store.list_votes(campaign_id))

    tallies = tally_votes(campaign_votes)

    today = (now or datetime.now()).date()
    start = today - timedelta(days=RECENT_ACTIVITY_DAYS - 1)
    recent: dict[str, int] = defaultdict(int)
    for vote in votes:
        day = vote.created_at.date()
        if start <= day <= today:
            recent[day.isoformat()] += 1

    return UserStats(
        total_votes=len(votes),
        votes_per_campaign=votes_per_campaign,
        agreement_rate=consensus_agreement(votes, tallies),
        recent_activity=[DailyCount(date=day, count=recent[day]) for day in sorted(recent)],
    )

"""Pairs on which reviewers genuinely split.

A pair is in disagreement when it has at least two definitive binary votes
and its positive rate lies within the disagreement band [0.4, 0.6].

Example:
    >>> from src.annotation.disagreements import high_disagreement_pairs
    >>> for item in high_disagreement_pairs(store, campaign_id, limit=10):
    ...     print(item.pair.pair_id, item.positive_rate)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from src.annotation.models import Pair
from src.annotation.tallies import (
    DISAGREEMENT_HIGH,
    DISAGREEMENT_LOW,
    PairTally,
    round_or_none,
    tally_votes,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from src.annotation.storage import ReviewStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MIN_DEFINITIVE_VOTES = 2

# (label, inclusive lower bound); upper bounds are the previous lower bound.
CONFIDENCE_BUCKETS = (
    ("0.9-1.0", 0.9),
    ("0.8-0.9", 0.8),
    ("0.7-0.8", 0.7),
    ("0.6-0.7", 0.6),
    ("<0.6", 0.0),
)


class DisagreementPair(BaseModel):
    """A pair in the disagreement band with its vote breakdown."""

    pair: Pair
    vote_count: int
    positive_votes: int
    negative_votes: int
    positive_rate: float
    numeric_scores: list[int] = Field(default_factory=list)
    numeric_mean: float | None = None
    numeric_std_dev: float | None = None


class ConfidenceBucket(BaseModel):
    """Disagreement frequency among pairs in one confidence range.

    Attributes:
        bucket: Range label, e.g. "0.8-0.9".
        total_pairs: Pairs in the range with at least two definitive votes.
        disagreement_count: Of those, pairs in the disagreement band.
        disagreement_rate: disagreement_count / total_pairs (0 when empty).
    """

    bucket: str
    total_pairs: int = 0
    disagreement_count: int = 0
    disagreement_rate: float = 0.0


def is_disagreement(
    tally: PairTally,
    low: float = DISAGREEMENT_LOW,
    high: float = DISAGREEMENT_HIGH,
) -> bool:
    """Check whether a pair's votes form a genuine split."""
    return tally.definitive_count >= MIN_DEFINITIVE_VOTES and tally.in_disagreement_band(low, high)


def find_disagreements(
    pairs: Sequence[Pair],
    tallies: Mapping[str, PairTally],
) -> list[DisagreementPair]:
    """List every pair in disagreement, most ambiguous first.

    Ordered by distance of the positive rate from 0.5, then by pair ID.
    """
    found = []
    for pair in pairs:
        tally = tallies.get(pair.pair_id)
        if tally is None or not is_disagreement(tally):
            continue
        found.append(
            DisagreementPair(
                pair=pair,
                vote_count=tally.vote_count,
                positive_votes=tally.positive,
                negative_votes=tally.negative,
                positive_rate=tally.positive_rate,
                numeric_scores=list(tally.numeric_scores),
                numeric_mean=round_or_none(tally.numeric_mean, 2),
                numeric_std_dev=round_or_none(tally.numeric_std_dev, 2),
            )
        )

    found.sort(key=lambda d: (abs(d.positive_rate - 0.5), d.pair.pair_id))
    return found


def high_disagreement_pairs(
    store: ReviewStore,
    campaign_id: str,
    limit: int = DEFAULT_LIMIT,
) -> list[DisagreementPair]:
    """Get the most ambiguous pairs of a campaign.

    Args:
        store: Data-access backend.
        campaign_id: Campaign to analyze.
        limit: Maximum number of pairs returned.

    Returns:
        Up to ``limit`` DisagreementPairs, most ambiguous first.
    """
    pairs = store.list_pairs(campaign_id)
    tallies = tally_votes(store.list_votes(campaign_id))
    found = find_disagreements(pairs, tallies)
    logger.debug(f"Campaign {campaign_id} has {len(found)} high-disagreement pairs")
    return found[: max(limit, 0)]


def confidence_bucket_label(confidence: float) -> str:
    """Get the label of the confidence range containing a value."""
    for label, lower in CONFIDENCE_BUCKETS:
        if confidence >= lower:
            return label
    return CONFIDENCE_BUCKETS[-1][0]


def disagreement_by_confidence(store: ReviewStore, campaign_id: str) -> list[ConfidenceBucket]:
    """Measure how often reviewers split, per LLM-confidence range.

    Pairs without a confidence or with fewer than two definitive votes
    are left out. Unsure votes never count toward the tallies.

    Args:
        store: Data-access backend.
        campaign_id: Campaign to analyze.

    Returns:
        One ConfidenceBucket per range, highest confidence first.
    """
    buckets = {label: ConfidenceBucket(bucket=label) for label, _ in CONFIDENCE_BUCKETS}
    tallies = tally_votes(store.list_votes(campaign_id))

    for pair in store.list_pairs(campaign_id):
        tally = tallies.get(pair.pair_id)
        if pair.llm_confidence is None or tally is None:
            continue
        if tally.definitive_count < MIN_DEFINITIVE_VOTES:
            continue
        bucket = buckets[confidence_bucket_label(pair.llm_confidence)]
        bucket.total_pairs += 1
        if is_disagreement(tally):
            bucket.disagreement_count += 1

    for bucket in buckets.values():
        if bucket.total_pairs:
            bucket.disagreement_rate = bucket.disagreement_count / bucket.total_pairs

    return list(buckets.values())

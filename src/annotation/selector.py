"""Next-pair selection for reviewers.

This module decides which unreviewed pair a reviewer sees next. Pairs are
ranked into priority buckets (unreviewed first, then under-sampled
low-confidence pairs, then pairs reviewers disagree on, then the rest),
then by vote count, with a random tiebreak so concurrent reviewers do not
converge on the same ordering.

Example:
    >>> from src.annotation.selector import PairSelector
    >>> selector = PairSelector(store)
    >>> pair = selector.next_pair(campaign_id, "reviewer_1")
    >>> if pair is None:
    ...     print("Campaign fully reviewed")
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING

from src.annotation.tallies import PairTally, is_in_disagreement_band, tally_votes
from src.config import SelectorConfig

if TYPE_CHECKING:
    from src.annotation.models import Pair
    from src.annotation.storage import ReviewStore

logger = logging.getLogger(__name__)


class PriorityBucket(IntEnum):
    """Priority classes for candidate pairs, lowest value served first."""

    UNREVIEWED = 0
    LOW_CONFIDENCE = 1
    DISAGREEMENT = 2
    COVERED = 3


def priority_bucket(
    llm_confidence: float | None,
    vote_count: int,
    positive_rate: float | None,
    config: SelectorConfig | None = None,
) -> PriorityBucket:
    """Assign a pair to its priority bucket.

    A null confidence never satisfies the low-confidence condition.

    Args:
        llm_confidence: Matcher confidence, or None if unknown.
        vote_count: Votes cast on the pair so far.
        positive_rate: Share of definitive votes that are matches, or None.
        config: Selection thresholds (defaults used if None).

    Returns:
        The pair's PriorityBucket.
    """
    config = config or SelectorConfig()

    if vote_count == 0:
        return PriorityBucket.UNREVIEWED
    if (
        llm_confidence is not None
        and llm_confidence < config.low_confidence_threshold
        and vote_count < config.under_sampled_votes
    ):
        return PriorityBucket.LOW_CONFIDENCE
    if is_in_disagreement_band(positive_rate, config.disagreement_low, config.disagreement_high):
        return PriorityBucket.DISAGREEMENT
    return PriorityBucket.COVERED


@dataclass
class Candidate:
    """A pair eligible for review with its ranking inputs.

    Attributes:
        pair: The candidate pair.
        tally: Current vote tally for the pair.
        bucket: Assigned priority bucket.
        tiebreak: Random key breaking ties within (bucket, vote_count).
    """

    pair: Pair
    tally: PairTally
    bucket: PriorityBucket
    tiebreak: float

    @property
    def sort_key(self) -> tuple[int, int, float]:
        """Ordering key: bucket, then vote count, then the random key."""
        return (int(self.bucket), self.tally.vote_count, self.tiebreak)


class PairSelector:
    """Picks the next pair for a reviewer.

    Each call re-reads the ledger and records nothing; serving the same pair
    to two reviewers at once is expected and harmless.

    Attributes:
        store: Data-access backend to read pairs, votes and skips from.
        config: Selection thresholds.
    """

    def __init__(
        self,
        store: ReviewStore,
        config: SelectorConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the selector.

        Args:
            store: Data-access backend.
            config: Selection thresholds (defaults used if None).
            rng: Random source for tiebreaks. When None, a freshly seeded
                generator is created for every call.
        """
        self.store = store
        self.config = config or SelectorConfig()
        self._rng = rng

    def candidates(self, campaign_id: str, user_id: str) -> list[Candidate]:
        """Rank every pair the user has neither voted on nor skipped.

        Args:
            campaign_id: Campaign to select from.
            user_id: Reviewer requesting a pair.

        Returns:
            Candidates in serving order.
        """
        rng = self._rng or random.Random()
        excluded = self.store.excluded_pair_ids(user_id)
        pairs = [p for p in self.store.list_pairs(campaign_id) if p.pair_id not in excluded]
        if not pairs:
            return []

        tallies = tally_votes(
            self.store.list_votes(campaign_id),
            pair_ids=[p.pair_id for p in pairs],
        )

        candidates = []
        for pair in pairs:
            tally = tallies[pair.pair_id]
            bucket = priority_bucket(
                pair.llm_confidence,
                tally.vote_count,
                tally.positive_rate,
                self.config,
            )
            candidates.append(Candidate(pair=pair, tally=tally, bucket=bucket, tiebreak=rng.random()))

        candidates.sort(key=lambda c: c.sort_key)
        return candidates

    def next_pair(self, campaign_id: str, user_id: str) -> Pair | None:
        """Select the next pair for a reviewer.

        Args:
            campaign_id: Campaign to select from.
            user_id: Reviewer requesting a pair.

        Returns:
            The highest-priority eligible pair, or None when the user has
            voted on or skipped every pair in the campaign.
        """
        ranked = self.candidates(campaign_id, user_id)
        if not ranked:
            logger.debug(f"No eligible pair for user {user_id} in campaign {campaign_id}")
            return None

        top = ranked[0]
        logger.debug(
            f"Selected pair {top.pair.pair_id} for user {user_id} "
            f"(bucket={top.bucket.name}, votes={top.tally.vote_count}, "
            f"{len(ranked)} candidates)"
        )
        return top.pair

"""Per-pair vote tallies shared by selection and analytics.

Every read path groups the vote ledger by pair and derives the same
counts from it. Unsure votes count toward ``vote_count`` but never toward
the positive/negative tallies, so they cannot skew ``positive_rate``.
Numeric votes likewise contribute only to ``vote_count`` and
``numeric_scores``.
"""

from __future__ import annotations

import statistics
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from src.annotation.models import BinaryScore, MatchOutcome, NumericScore, Vote

DISAGREEMENT_LOW = 0.4
DISAGREEMENT_HIGH = 0.6


@dataclass
class PairTally:
    """Vote counts for a single pair.

    Attributes:
        pair_id: The pair these counts belong to.
        vote_count: All votes on the pair, in any mode.
        positive: Binary votes with outcome "match".
        negative: Binary votes with outcome "no_match".
        unsure: Binary votes with outcome "unsure".
        numeric_scores: Ratings from numeric votes, in ledger order.
        last_vote_at: Creation time of the most recent vote.
    """

    pair_id: str
    vote_count: int = 0
    positive: int = 0
    negative: int = 0
    unsure: int = 0
    numeric_scores: list[int] = field(default_factory=list)
    last_vote_at: datetime | None = None

    def add(self, vote: Vote) -> None:
        """Fold one vote into the tally."""
        self.vote_count += 1
        score = vote.score
        if isinstance(score, BinaryScore):
            if score.outcome == MatchOutcome.MATCH:
                self.positive += 1
            elif score.outcome == MatchOutcome.NO_MATCH:
                self.negative += 1
            else:
                self.unsure += 1
        elif isinstance(score, NumericScore):
            self.numeric_scores.append(score.value)

        if self.last_vote_at is None or vote.created_at > self.last_vote_at:
            self.last_vote_at = vote.created_at

    @property
    def definitive_count(self) -> int:
        """Number of match + no_match votes."""
        return self.positive + self.negative

    @property
    def positive_rate(self) -> float | None:
        """Share of definitive votes that are matches, or None without any."""
        if self.definitive_count == 0:
            return None
        return self.positive / self.definitive_count

    @property
    def consensus(self) -> MatchOutcome | None:
        """Majority definitive outcome; undefined below two definitive votes.

        Ties resolve to no_match since a match needs a strict majority.
        """
        if self.definitive_count < 2:
            return None
        return MatchOutcome.MATCH if self.positive > self.negative else MatchOutcome.NO_MATCH

    @property
    def numeric_mean(self) -> float | None:
        """Mean of numeric ratings, or None without any."""
        if not self.numeric_scores:
            return None
        return statistics.fmean(self.numeric_scores)

    @property
    def numeric_std_dev(self) -> float | None:
        """Population standard deviation of numeric ratings, or None without any."""
        if not self.numeric_scores:
            return None
        return statistics.pstdev(self.numeric_scores)

    def in_disagreement_band(
        self,
        low: float = DISAGREEMENT_LOW,
        high: float = DISAGREEMENT_HIGH,
    ) -> bool:
        """Check whether the positive rate falls within [low, high]."""
        return is_in_disagreement_band(self.positive_rate, low, high)


def is_in_disagreement_band(
    rate: float | None,
    low: float = DISAGREEMENT_LOW,
    high: float = DISAGREEMENT_HIGH,
) -> bool:
    """Check whether a positive rate signals a genuine reviewer split.

    Args:
        rate: Positive rate, or None when undefined.
        low: Lower bound (inclusive).
        high: Upper bound (inclusive).

    Returns:
        True if the rate is defined and within the band.
    """
    return rate is not None and low <= rate <= high


def tally_votes(
    votes: Iterable[Vote],
    pair_ids: Iterable[str] | None = None,
) -> dict[str, PairTally]:
    """Group votes by pair.

    Args:
        votes: Votes to tally.
        pair_ids: Pairs to include with zero counts even if they have no votes.

    Returns:
        Dictionary mapping pair ID to its tally.
    """
    tallies: dict[str, PairTally] = {}
    if pair_ids is not None:
        for pair_id in pair_ids:
            tallies[pair_id] = PairTally(pair_id=pair_id)

    for vote in votes:
        tally = tallies.get(vote.pair_id)
        if tally is None:
            tally = tallies[vote.pair_id] = PairTally(pair_id=vote.pair_id)
        tally.add(vote)

    return tallies


def round_or_none(value: float | None, digits: int) -> float | None:
    """Round a value that may be undefined."""
    return None if value is None else round(value, digits)

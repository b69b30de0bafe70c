"""Inter-rater agreement for a campaign.

This module computes a Krippendorff-style alpha for nominal data using the
pairwise-disagreement formulation, which handles units (pairs) rated by
different numbers of reviewers.

Each vote is reduced to a nominal code: numeric votes use their 1-5 value,
binary votes use 1 for match and 0 otherwise.

Example:
    >>> from src.annotation.agreement import compute_agreement
    >>> result = compute_agreement(store, campaign_id)
    >>> if result.alpha is None:
    ...     print("Not enough votes yet")
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Mapping, Sequence
from itertools import combinations
from typing import TYPE_CHECKING

from pydantic import BaseModel

if TYPE_CHECKING:
    from src.annotation.models import Vote
    from src.annotation.storage import ReviewStore

logger = logging.getLogger(__name__)

MIN_RATERS = 2
MIN_CODES = 3


class AgreementResult(BaseModel):
    """Agreement coefficient for a campaign.

    Attributes:
        alpha: Coefficient in [-1, 1], or None when data is insufficient.
        rater_count: Distinct reviewers who voted in the campaign.
        pair_count: Pairs with at least two votes (comparable units).
        vote_count: Votes in the campaign.
    """

    alpha: float | None = None
    rater_count: int = 0
    pair_count: int = 0
    vote_count: int = 0

    def to_summary(self) -> str:
        """Generate a human-readable summary.

        Returns:
            Summary string of the agreement result.
        """
        alpha = "insufficient data" if self.alpha is None else f"{self.alpha:.3f}"
        return "\n".join(
            [
                "Agreement Summary",
                "=" * 40,
                f"Alpha: {alpha}",
                f"Raters: {self.rater_count}",
                f"Comparable Pairs: {self.pair_count}",
                f"Votes: {self.vote_count}",
            ]
        )


def krippendorff_alpha(units: Sequence[Sequence[int]], rater_count: int) -> float | None:
    """Compute nominal alpha over units of codes.

    Args:
        units: One list of codes per unit. Units with fewer than two codes
            are ignored.
        rater_count: Number of distinct raters behind the codes.

    Returns:
        Alpha clamped to [-1, 1] and rounded to three decimals, or None if
        there are fewer than two raters, no comparable unit, or fewer than
        three codes.
    """
    comparable = [list(unit) for unit in units if len(unit) >= 2]
    total_codes = sum(len(unit) for unit in comparable)

    if rater_count < MIN_RATERS or not comparable or total_codes < MIN_CODES:
        return None

    mismatches = 0
    comparisons = 0
    for unit in comparable:
        for a, b in combinations(unit, 2):
            comparisons += 1
            if a != b:
                mismatches += 1
    observed = mismatches / comparisons

    frequencies = Counter(code for unit in comparable for code in unit)
    values = list(frequencies)
    expected_pairs = 0
    for i, j in combinations(range(len(values)), 2):
        expected_pairs += frequencies[values[i]] * frequencies[values[j]]
    expected = expected_pairs / (total_codes * (total_codes - 1) / 2)

    if expected == 0:
        return 1.0

    alpha = 1 - observed / expected
    return round(max(-1.0, min(1.0, alpha)), 3)


def units_from_votes(votes: Sequence[Vote]) -> Mapping[str, list[int]]:
    """Group vote codes by pair."""
    units: dict[str, list[int]] = defaultdict(list)
    for vote in votes:
        units[vote.pair_id].append(vote.score.code)
    return units


def agreement_from_votes(votes: Sequence[Vote]) -> AgreementResult:
    """Compute the agreement result for a set of votes.

    Args:
        votes: Votes of a single campaign.

    Returns:
        AgreementResult with alpha set to None when data is insufficient.
    """
    units = units_from_votes(votes)
    raters = {v.user_id for v in votes}
    alpha = krippendorff_alpha(list(units.values()), len(raters))

    return AgreementResult(
        alpha=alpha,
        rater_count=len(raters),
        pair_count=sum(1 for codes in units.values() if len(codes) >= 2),
        vote_count=len(votes),
    )


def compute_agreement(store: ReviewStore, campaign_id: str) -> AgreementResult:
    """Compute inter-rater agreement over all votes in a campaign.

    Args:
        store: Data-access backend.
        campaign_id: Campaign to analyze.

    Returns:
        AgreementResult for the campaign.
    """
    result = agreement_from_votes(store.list_votes(campaign_id))
    logger.debug(
        f"Agreement for campaign {campaign_id}: alpha={result.alpha} "
        f"({result.rater_count} raters, {result.pair_count} pairs)"
    )
    return result

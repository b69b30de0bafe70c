#!/usr/bin/env python3
"""Simulated review session example.

This example demonstrates how to:
1. Create a campaign and load candidate pairs
2. Serve pairs to several reviewers and record their votes
3. Read agreement, disagreement and reviewer analytics

Usage:
    python examples/review_session.py
"""

from __future__ import annotations

import random
import sys
from pathlib import Path

# Ensure the parent directory is in the path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.annotation import (
    AgreementEngine,
    Campaign,
    CampaignStatus,
    InMemoryReviewStore,
    Pair,
    PairEntity,
    PairSelector,
    User,
    build_vote_submission,
)

QUESTIONS = [
    ("Body height", "8302-2", 0.95),
    ("Body weight", "29463-7", 0.91),
    ("Systolic blood pressure", "8480-6", 0.72),
    ("Do you smoke?", "72166-2", 0.58),
    ("Hours of sleep", "93832-4", 0.64),
    ("Heart rate at rest", "8867-4", 0.88),
]


def main() -> int:
    """Run a simulated review session."""
    rng = random.Random(11)
    store = InMemoryReviewStore()

    print("=" * 70)
    print(" SIMULATED REVIEW SESSION ".center(70))
    print("=" * 70)

    # Step 1: Campaign and pairs
    campaign = store.create_campaign(Campaign(name="Vitals survey", campaign_type="loinc_mapping"))
    store.set_campaign_status(campaign.campaign_id, CampaignStatus.ACTIVE)
    store.add_pairs(
        [
            Pair(
                campaign_id=campaign.campaign_id,
                pair_type="loinc_mapping",
                source=PairEntity(text=text, entity_id=f"Q{i}", dataset="vitals_survey"),
                target=PairEntity(text=text, entity_id=code, dataset="loinc"),
                llm_confidence=confidence,
            )
            for i, (text, code, confidence) in enumerate(QUESTIONS)
        ]
    )
    print(f"\n[1] Created campaign '{campaign.name}' with {len(QUESTIONS)} pairs")

    # Step 2: Reviewers work through the queue
    reviewers = [f"reviewer_{n}" for n in range(1, 5)]
    for user_id in reviewers:
        store.add_user(User(user_id=user_id, email=f"{user_id}@example.org", display_name=user_id))

    selector = PairSelector(store, rng=rng)
    for user_id in reviewers:
        while True:
            pair = selector.next_pair(campaign.campaign_id, user_id)
            if pair is None:
                break
            if rng.random() < 0.1:
                store.record_skip(pair.pair_id, user_id)
                continue
            confident = (pair.llm_confidence or 0.0) >= 0.7
            outcome = "match" if rng.random() < (0.9 if confident else 0.5) else "no_match"
            store.record_vote(pair.pair_id, user_id, build_vote_submission(score_binary=outcome))
    print(f"[2] Recorded {len(store.list_votes(campaign.campaign_id))} votes")

    # Step 3: Analytics
    engine = AgreementEngine(store)
    print("\n" + engine.agreement(campaign.campaign_id).to_summary())

    print("\nMost ambiguous pairs:")
    for item in engine.high_disagreement_pairs(campaign.campaign_id, limit=3):
        print(f"  {item.pair.source.text}: {item.positive_votes}/{item.vote_count} match")

    print("\nReviewers:")
    for stat in engine.reviewer_stats(campaign.campaign_id):
        flags = ", ".join(stat.flags) or "none"
        print(f"  {stat.user_id}: {stat.total_votes} votes, {stat.skip_count} skips, flags: {flags}")

    return 0


if __name__ == "__main__":
    sys.exit(main())

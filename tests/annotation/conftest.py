"""Shared fixtures for annotation tests."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from src.annotation.models import Campaign, Pair, PairEntity, User, Vote, build_vote_submission
from src.annotation.storage import InMemoryReviewStore, ReviewStore


@pytest.fixture
def store() -> InMemoryReviewStore:
    """Create an empty in-memory store."""
    return InMemoryReviewStore()


@pytest.fixture
def campaign(store: ReviewStore) -> Campaign:
    """Create a campaign in the store."""
    return store.create_campaign(Campaign(name="LOINC mapping", campaign_type="loinc_mapping"))


@pytest.fixture
def make_pair(store: ReviewStore, campaign: Campaign) -> Callable[..., Pair]:
    """Factory adding pairs to the campaign."""
    counter = {"n": 0}

    def _make(pair_id: str | None = None, llm_confidence: float | None = None) -> Pair:
        counter["n"] += 1
        n = counter["n"]
        pair = Pair(
            pair_id=pair_id or f"P{n:03d}",
            campaign_id=campaign.campaign_id,
            pair_type="loinc_mapping",
            source=PairEntity(text=f"Question {n}", entity_id=f"Q{n}", dataset="survey"),
            target=PairEntity(text=f"Code {n}", entity_id=f"L{n}", dataset="loinc"),
            llm_confidence=llm_confidence,
        )
        store.add_pairs([pair])
        return pair

    return _make


@pytest.fixture
def make_user(store: ReviewStore) -> Callable[[str], User]:
    """Factory registering users."""

    def _make(user_id: str) -> User:
        existing = store.get_user(user_id)
        if existing is not None:
            return existing
        return store.add_user(
            User(user_id=user_id, email=f"{user_id}@example.org", display_name=user_id)
        )

    return _make


@pytest.fixture
def cast(store: ReviewStore, make_user: Callable[[str], User]) -> Callable[..., Vote]:
    """Record a vote, registering the voter if needed.

    Pass ``outcome`` for a binary vote or ``score`` for a numeric one.
    """

    def _cast(pair_id: str, user_id: str, outcome: str | None = None, score: int | None = None) -> Vote:
        make_user(user_id)
        if score is not None:
            submission = build_vote_submission(scoring_mode="numeric", score_numeric=score)
        else:
            submission = build_vote_submission(scoring_mode="binary", score_binary=outcome)
        return store.record_vote(pair_id, user_id, submission)

    return _cast

"""Tests for the vote ledger storage backends."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from src.annotation.exceptions import (
    AlreadyVotedError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from src.annotation.models import (
    Campaign,
    CampaignStatus,
    MatchOutcome,
    NumericScore,
    Pair,
    PairEntity,
    ScoringMode,
    User,
    UserRole,
    Vote,
    build_vote_submission,
)
from src.annotation.storage import (
    InMemoryReviewStore,
    ReviewStore,
    SQLiteReviewStore,
    create_store,
)
from src.config import StorageConfig


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> ReviewStore:
    """Run every test against both backends."""
    if request.param == "memory":
        return InMemoryReviewStore()
    return SQLiteReviewStore(tmp_path / "annotation.db")


@pytest.fixture
def pair(make_pair: Callable[..., Pair]) -> Pair:
    """Create a single pair."""
    return make_pair(llm_confidence=0.8)


@pytest.fixture
def reviewer(make_user: Callable[[str], User]) -> User:
    """Register a reviewer."""
    return make_user("reviewer_1")


MATCH = build_vote_submission(score_binary="match")
NO_MATCH = build_vote_submission(score_binary="no_match")


class TestUsers:
    """Tests for the user registry."""

    def test_add_and_get(self, store: ReviewStore) -> None:
        """Test round-tripping a user."""
        store.add_user(User(user_id="u1", email="u1@example.org", display_name="One"))

        user = store.get_user("u1")
        assert user is not None
        assert user.email == "u1@example.org"
        assert user.role == UserRole.REVIEWER

    def test_duplicate_email(self, store: ReviewStore) -> None:
        """Test emails are unique."""
        store.add_user(User(user_id="u1", email="same@example.org", display_name="One"))
        with pytest.raises(ConflictError):
            store.add_user(User(user_id="u2", email="same@example.org", display_name="Two"))

    def test_set_role(self, store: ReviewStore, reviewer: User) -> None:
        """Test promoting a user to admin."""
        store.set_user_role(reviewer.user_id, UserRole.ADMIN)
        assert store.require_user(reviewer.user_id).role == UserRole.ADMIN

    def test_set_role_unknown_user(self, store: ReviewStore) -> None:
        """Test changing the role of an unknown user."""
        with pytest.raises(NotFoundError):
            store.set_user_role("ghost", UserRole.ADMIN)


class TestCampaigns:
    """Tests for campaign persistence and lifecycle."""

    def test_new_campaign_is_draft(self, store: ReviewStore, campaign: Campaign) -> None:
        """Test campaigns start in draft."""
        stored = store.require_campaign(campaign.campaign_id)
        assert stored.status == CampaignStatus.DRAFT
        assert stored.name == "LOINC mapping"

    def test_lifecycle(self, store: ReviewStore, campaign: Campaign) -> None:
        """Test draft -> active -> completed -> archived."""
        for status in ("active", "completed", "archived"):
            updated = store.set_campaign_status(campaign.campaign_id, status)
            assert updated.status == CampaignStatus(status)
            assert store.require_campaign(campaign.campaign_id).status == CampaignStatus(status)

    def test_invalid_transition(self, store: ReviewStore, campaign: Campaign) -> None:
        """Test skipping a lifecycle step is rejected."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            store.set_campaign_status(campaign.campaign_id, CampaignStatus.COMPLETED)

        assert exc_info.value.current == "draft"
        assert exc_info.value.requested == "completed"
        assert store.require_campaign(campaign.campaign_id).status == CampaignStatus.DRAFT

    def test_unknown_campaign(self, store: ReviewStore) -> None:
        """Test status change on an unknown campaign."""
        with pytest.raises(NotFoundError, match="Campaign not found"):
            store.set_campaign_status("missing", CampaignStatus.ACTIVE)


class TestPairs:
    """Tests for pair persistence."""

    def test_round_trip(self, store: ReviewStore, campaign: Campaign) -> None:
        """Test metadata and confidence survive storage."""
        pair = Pair(
            pair_id="P100",
            campaign_id=campaign.campaign_id,
            pair_type="questionnaire_match",
            source=PairEntity(
                text="How tall are you?",
                entity_id="Q1",
                dataset="survey",
                metadata={"unit": "cm"},
            ),
            target=PairEntity(text="Body height", entity_id="8302-2", dataset="loinc"),
            llm_confidence=0.65,
            llm_model="matcher-v1",
        )
        assert store.add_pairs([pair]) == 1

        stored = store.require_pair("P100")
        assert stored.source.metadata == {"unit": "cm"}
        assert stored.target.metadata is None
        assert stored.llm_confidence == 0.65
        assert stored.llm_model == "matcher-v1"
        assert [p.pair_id for p in store.list_pairs(campaign.campaign_id)] == ["P100"]

    def test_unknown_campaign(self, store: ReviewStore) -> None:
        """Test pairs must belong to an existing campaign."""
        pair = Pair(
            campaign_id="missing",
            pair_type="x",
            source=PairEntity(text="a", entity_id="a", dataset="d"),
            target=PairEntity(text="b", entity_id="b", dataset="d"),
        )
        with pytest.raises(NotFoundError):
            store.add_pairs([pair])


class TestVotes:
    """Tests for vote recording and editing."""

    def test_record_vote(self, store: ReviewStore, pair: Pair, reviewer: User) -> None:
        """Test a vote is stored with its score."""
        vote = store.record_vote(pair.pair_id, reviewer.user_id, MATCH)

        stored = store.get_vote(pair.pair_id, reviewer.user_id)
        assert stored is not None
        assert stored.vote_id == vote.vote_id
        assert stored.score_binary == MatchOutcome.MATCH
        assert stored.updated_at is None

    def test_duplicate_vote_rejected(self, store: ReviewStore, pair: Pair, reviewer: User) -> None:
        """Test a second vote raises a conflict and leaves one stored vote."""
        store.record_vote(pair.pair_id, reviewer.user_id, MATCH)

        with pytest.raises(AlreadyVotedError) as exc_info:
            store.record_vote(pair.pair_id, reviewer.user_id, NO_MATCH)

        assert exc_info.value.pair_id == pair.pair_id
        votes = store.list_user_votes(reviewer.user_id)
        assert len(votes) == 1
        assert votes[0].score_binary == MatchOutcome.MATCH

    def test_duplicate_vote_is_conflict(self, store: ReviewStore, pair: Pair, reviewer: User) -> None:
        """Test AlreadyVotedError is a ConflictError."""
        store.record_vote(pair.pair_id, reviewer.user_id, MATCH)
        with pytest.raises(ConflictError):
            store.record_vote(pair.pair_id, reviewer.user_id, MATCH)

    def test_vote_unknown_pair(self, store: ReviewStore, reviewer: User) -> None:
        """Test voting on a missing pair."""
        with pytest.raises(NotFoundError, match="Pair not found"):
            store.record_vote("missing", reviewer.user_id, MATCH)

    def test_vote_unknown_user(self, store: ReviewStore, pair: Pair) -> None:
        """Test voting as an unknown user."""
        with pytest.raises(NotFoundError, match="User not found"):
            store.record_vote(pair.pair_id, "ghost", MATCH)

    def test_update_vote_changes_mode(self, store: ReviewStore, pair: Pair, reviewer: User) -> None:
        """Test editing replaces the score, mode and notes."""
        original = store.record_vote(pair.pair_id, reviewer.user_id, MATCH)

        edited = store.update_vote(
            pair.pair_id,
            reviewer.user_id,
            build_vote_submission(
                scoring_mode="numeric",
                score_numeric=2,
                reviewer_notes="partial match",
                expert_selected_code="8302-2",
            ),
        )

        assert edited.vote_id == original.vote_id
        assert edited.updated_at is not None
        stored = store.get_vote(pair.pair_id, reviewer.user_id)
        assert stored is not None
        assert stored.scoring_mode == ScoringMode.NUMERIC
        assert stored.score == NumericScore(value=2)
        assert stored.score_binary is None
        assert stored.reviewer_notes == "partial match"
        assert stored.expert_selected_code == "8302-2"
        assert stored.updated_at is not None
        assert len(store.list_user_votes(reviewer.user_id)) == 1

    def test_update_missing_vote(self, store: ReviewStore, pair: Pair, reviewer: User) -> None:
        """Test editing requires an existing vote."""
        with pytest.raises(NotFoundError, match="Vote not found"):
            store.update_vote(pair.pair_id, reviewer.user_id, MATCH)

    def test_voting_touches_user(self, store: ReviewStore, pair: Pair, reviewer: User) -> None:
        """Test voting refreshes the user's last activity."""
        before = store.require_user(reviewer.user_id).last_active
        store.record_vote(pair.pair_id, reviewer.user_id, MATCH)
        assert store.require_user(reviewer.user_id).last_active >= before

    def test_list_votes_by_campaign(
        self,
        store: ReviewStore,
        pair: Pair,
        reviewer: User,
    ) -> None:
        """Test votes are scoped to their campaign."""
        other = store.create_campaign(Campaign(name="Other", campaign_type="x"))
        other_pair = Pair(
            campaign_id=other.campaign_id,
            pair_type="x",
            source=PairEntity(text="a", entity_id="a", dataset="d"),
            target=PairEntity(text="b", entity_id="b", dataset="d"),
        )
        store.add_pairs([other_pair])

        store.record_vote(pair.pair_id, reviewer.user_id, MATCH)
        store.record_vote(other_pair.pair_id, reviewer.user_id, NO_MATCH)

        assert [v.pair_id for v in store.list_votes(pair.campaign_id)] == [pair.pair_id]
        assert [v.pair_id for v in store.list_votes(other.campaign_id)] == [other_pair.pair_id]
        assert len(store.list_votes()) == 2

    def test_vote_history_newest_first(
        self,
        store: ReviewStore,
        make_pair: Callable[..., Pair],
        reviewer: User,
    ) -> None:
        """Test history pairs each vote with its pair, newest first."""
        first, second = make_pair(), make_pair()
        store.record_vote(first.pair_id, reviewer.user_id, MATCH)
        store.record_vote(second.pair_id, reviewer.user_id, NO_MATCH)

        history = store.vote_history(reviewer.user_id)

        assert {e.pair.pair_id for e in history} == {first.pair_id, second.pair_id}
        times = [e.vote.created_at for e in history]
        assert times == sorted(times, reverse=True)
        assert all(e.vote.pair_id == e.pair.pair_id for e in history)


class TestSkips:
    """Tests for skip markers."""

    def test_skip_is_idempotent(self, store: ReviewStore, pair: Pair, reviewer: User) -> None:
        """Test repeated skips leave one record."""
        for _ in range(3):
            store.record_skip(pair.pair_id, reviewer.user_id)

        assert len(store.list_skips(pair.campaign_id)) == 1
        assert len(store.list_user_skips(reviewer.user_id)) == 1

    def test_skip_unknown_pair(self, store: ReviewStore, reviewer: User) -> None:
        """Test skipping a missing pair."""
        with pytest.raises(NotFoundError):
            store.record_skip("missing", reviewer.user_id)

    def test_skip_does_not_block_voting(
        self,
        store: ReviewStore,
        pair: Pair,
        reviewer: User,
    ) -> None:
        """Test a skipped pair can still be voted on."""
        store.record_skip(pair.pair_id, reviewer.user_id)
        store.record_vote(pair.pair_id, reviewer.user_id, MATCH)
        assert store.get_vote(pair.pair_id, reviewer.user_id) is not None

    def test_excluded_pair_ids(
        self,
        store: ReviewStore,
        make_pair: Callable[..., Pair],
        reviewer: User,
    ) -> None:
        """Test exclusion covers voted and skipped pairs only."""
        voted, skipped, fresh = make_pair(), make_pair(), make_pair()
        store.record_vote(voted.pair_id, reviewer.user_id, MATCH)
        store.record_skip(skipped.pair_id, reviewer.user_id)

        excluded = store.excluded_pair_ids(reviewer.user_id)

        assert excluded == {voted.pair_id, skipped.pair_id}
        assert fresh.pair_id not in excluded


class TestSQLitePersistence:
    """Tests specific to the SQLite backend."""

    def test_data_survives_reopen(self, tmp_path: Path) -> None:
        """Test a new store instance sees earlier writes."""
        db_path = tmp_path / "votes.db"
        first = SQLiteReviewStore(db_path)
        campaign = first.create_campaign(Campaign(name="C", campaign_type="x"))
        first.add_user(User(user_id="u1", email="u1@example.org", display_name="u1"))
        pair = Pair(
            campaign_id=campaign.campaign_id,
            pair_type="x",
            source=PairEntity(text="a", entity_id="a", dataset="d"),
            target=PairEntity(text="b", entity_id="b", dataset="d"),
        )
        first.add_pairs([pair])
        first.record_vote(pair.pair_id, "u1", MATCH)

        second = SQLiteReviewStore(db_path)
        votes = second.list_votes(campaign.campaign_id)

        assert len(votes) == 1
        assert isinstance(votes[0], Vote)
        assert votes[0].score_binary == MatchOutcome.MATCH
        with pytest.raises(AlreadyVotedError):
            second.record_vote(pair.pair_id, "u1", NO_MATCH)


class TestCreateStore:
    """Tests for the backend factory."""

    def test_memory_backend(self) -> None:
        """Test the memory backend is selected by config."""
        assert isinstance(create_store(StorageConfig(backend="memory")), InMemoryReviewStore)

    def test_sqlite_backend(self, tmp_path: Path) -> None:
        """Test the SQLite backend uses the configured path."""
        db_path = tmp_path / "nested" / "review.db"
        store = create_store(StorageConfig(backend="sqlite", db_path=str(db_path)))
        assert isinstance(store, SQLiteReviewStore)
        assert db_path.exists()

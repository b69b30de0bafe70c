"""Tests for campaign progress, summaries, the admin overview and the engine facade."""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta

import pytest

from src.annotation.campaigns import (
    admin_overview,
    campaign_progress,
    campaign_summaries,
    campaign_summary,
)
from src.annotation.engine import AgreementEngine
from src.annotation.exceptions import NotFoundError
from src.annotation.models import Campaign, CampaignStatus, Pair, Vote
from src.annotation.storage import ReviewStore
from src.config import AnalyticsConfig


class TestCampaignProgress:
    """Tests for campaign_progress."""

    def test_counts_reviewed_pairs(
        self,
        store: ReviewStore,
        campaign: Campaign,
        make_pair: Callable[..., Pair],
        cast: Callable[..., Vote],
    ) -> None:
        """Test reviewed means at least one vote."""
        first = make_pair()
        make_pair()
        cast(first.pair_id, "u1", "match")
        cast(first.pair_id, "u2", "no_match")

        progress = campaign_progress(store, campaign.campaign_id)

        assert (progress.reviewed, progress.total) == (1, 2)

    def test_unknown_campaign(self, store: ReviewStore) -> None:
        """Test progress of a missing campaign."""
        with pytest.raises(NotFoundError):
            campaign_progress(store, "missing")


class TestCampaignSummary:
    """Tests for campaign summaries."""

    def test_empty_campaign(self, store: ReviewStore, campaign: Campaign) -> None:
        """Test a campaign without pairs or votes."""
        summary = campaign_summary(store, campaign)

        assert summary.total_pairs == 0
        assert summary.completion_percent == 0
        assert summary.avg_votes_per_pair == 0.0
        assert summary.alpha is None
        assert summary.days_since_last_activity is None
        assert "N/A" in summary.to_summary()

    def test_summary_values(
        self,
        store: ReviewStore,
        campaign: Campaign,
        make_pair: Callable[..., Pair],
        cast: Callable[..., Vote],
    ) -> None:
        """Test headline numbers."""
        disputed = make_pair()
        make_pair()
        make_pair()
        for user, outcome in [("u1", "match"), ("u2", "match"), ("u3", "no_match"), ("u4", "no_match")]:
            cast(disputed.pair_id, user, outcome)

        last = max(v.created_at for v in store.list_votes(campaign.campaign_id))
        summary = campaign_summary(store, campaign, now=last + timedelta(days=3, hours=1))

        assert summary.total_pairs == 3
        assert summary.reviewed_pairs == 1
        assert summary.completion_percent == 33
        assert summary.total_votes == 4
        assert summary.unique_reviewers == 4
        assert summary.avg_votes_per_pair == 4.0
        assert summary.alpha is not None
        assert summary.disagreement_count == 1
        assert summary.days_since_last_activity == 3

    def test_all_campaigns(self, store: ReviewStore, campaign: Campaign) -> None:
        """Test every campaign is summarized."""
        store.create_campaign(Campaign(name="Second", campaign_type="x"))
        names = {s.name for s in campaign_summaries(store)}
        assert names == {"LOINC mapping", "Second"}


class TestAdminOverview:
    """Tests for admin_overview."""

    def test_counts(
        self,
        store: ReviewStore,
        campaign: Campaign,
        make_pair: Callable[..., Pair],
        cast: Callable[..., Vote],
    ) -> None:
        """Test platform-wide counts."""
        store.create_campaign(Campaign(name="Draft", campaign_type="x"))
        store.set_campaign_status(campaign.campaign_id, CampaignStatus.ACTIVE)
        pair = make_pair()
        cast(pair.pair_id, "u1", "match")
        cast(pair.pair_id, "u2", "match")

        overview = admin_overview(store)

        assert overview.total_users == 2
        assert overview.total_campaigns == 2
        assert overview.total_votes == 2
        assert overview.active_campaigns == 1


class TestAgreementEngine:
    """Tests for the analytics facade."""

    def test_configured_limits(
        self,
        store: ReviewStore,
        campaign: Campaign,
        make_pair: Callable[..., Pair],
        cast: Callable[..., Vote],
    ) -> None:
        """Test the facade applies configured defaults."""
        for _ in range(3):
            pair = make_pair()
            cast(pair.pair_id, "u1", "match")
            cast(pair.pair_id, "u2", "no_match")

        engine = AgreementEngine(store, AnalyticsConfig(disagreement_limit=2))

        assert len(engine.high_disagreement_pairs(campaign.campaign_id)) == 2
        assert len(engine.high_disagreement_pairs(campaign.campaign_id, limit=10)) == 3
        assert engine.agreement(campaign.campaign_id).vote_count == 6
        assert engine.vote_distribution(campaign.campaign_id).binary_votes == 6
        assert engine.campaign_progress(campaign.campaign_id).reviewed == 3
        assert len(engine.reviewer_stats(campaign.campaign_id)) == 2
        assert engine.skip_analysis(campaign.campaign_id).total_skips == 0
        assert engine.votes_over_time(campaign.campaign_id)[-1].cumulative == 6

    def test_rate_floor_from_config(
        self,
        store: ReviewStore,
        campaign: Campaign,
        make_pair: Callable[..., Pair],
        cast: Callable[..., Vote],
    ) -> None:
        """Test the reviewer vote floor comes from the configuration."""
        pair = make_pair()
        cast(pair.pair_id, "u1", "match")
        cast(pair.pair_id, "u2", "match")

        engine = AgreementEngine(store, AnalyticsConfig(min_votes_for_rates=1))
        stats = engine.reviewer_stats(campaign.campaign_id)

        assert all(s.agreement_rate == 1.0 for s in stats)

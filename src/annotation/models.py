"""Data models for campaigns, pairs, votes and skips.

This module defines the records persisted in the vote ledger. A vote's
score is a tagged union: either a binary outcome (match / no_match /
unsure) or a numeric 1-5 rating, never both.

Example:
    >>> from src.annotation.models import BinaryScore, MatchOutcome, Vote
    >>> vote = Vote(
    ...     pair_id="P001",
    ...     user_id="reviewer_1",
    ...     score=BinaryScore(outcome=MatchOutcome.MATCH),
    ... )
    >>> vote.scoring_mode
    <ScoringMode.BINARY: 'binary'>
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, ValidationError, model_validator

from src.annotation.exceptions import VoteValidationError


class CampaignStatus(str, Enum):
    """Lifecycle status of a campaign."""

    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"

    def can_transition_to(self, target: CampaignStatus) -> bool:
        """Check whether the lifecycle allows moving to ``target``.

        draft -> active -> completed, and any state -> archived.
        """
        if target == CampaignStatus.ARCHIVED:
            return self != CampaignStatus.ARCHIVED
        return (self, target) in _ALLOWED_TRANSITIONS


_ALLOWED_TRANSITIONS = {
    (CampaignStatus.DRAFT, CampaignStatus.ACTIVE),
    (CampaignStatus.ACTIVE, CampaignStatus.COMPLETED),
}


class UserRole(str, Enum):
    """Role of a platform user."""

    REVIEWER = "reviewer"
    ADMIN = "admin"


class ScoringMode(str, Enum):
    """Which kind of score a vote carries."""

    BINARY = "binary"
    NUMERIC = "numeric"


class MatchOutcome(str, Enum):
    """Outcome of a binary vote."""

    MATCH = "match"
    NO_MATCH = "no_match"
    UNSURE = "unsure"


class BinaryScore(BaseModel):
    """A match / no_match / unsure judgment."""

    mode: Literal["binary"] = "binary"
    outcome: MatchOutcome

    model_config = {"frozen": True}

    @property
    def is_definitive(self) -> bool:
        """Whether the outcome is match or no_match (not unsure)."""
        return self.outcome != MatchOutcome.UNSURE

    @property
    def is_positive(self) -> bool:
        """Whether the outcome is a match."""
        return self.outcome == MatchOutcome.MATCH

    @property
    def code(self) -> int:
        """Nominal code used by the agreement coefficient (1 = match, else 0)."""
        return 1 if self.is_positive else 0


class NumericScore(BaseModel):
    """A 1-5 rating."""

    mode: Literal["numeric"] = "numeric"
    value: Annotated[int, Field(ge=1, le=5)]

    model_config = {"frozen": True}

    @property
    def code(self) -> int:
        """Nominal code used by the agreement coefficient."""
        return self.value


Score = Annotated[BinaryScore | NumericScore, Field(discriminator="mode")]


class User(BaseModel):
    """A reviewer or administrator."""

    user_id: str
    email: str
    display_name: str
    role: UserRole = UserRole.REVIEWER
    created_at: datetime = Field(default_factory=datetime.now)
    last_active: datetime = Field(default_factory=datetime.now)


class Campaign(BaseModel):
    """A container for pairs awaiting review.

    Attributes:
        campaign_id: Unique identifier for this campaign.
        name: Display name.
        description: Optional longer description.
        campaign_type: Kind of pairs the campaign holds (default pair type).
        instructions: Reviewer instructions shown on the review page.
        created_by: ID of the administrator who created it.
        created_at: When the campaign was created.
        status: Current lifecycle status.
    """

    campaign_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    description: str | None = None
    campaign_type: str
    instructions: str | None = None
    created_by: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    status: CampaignStatus = CampaignStatus.DRAFT


class PairEntity(BaseModel):
    """One side (source or target) of a candidate pair."""

    text: str
    entity_id: str
    dataset: str
    metadata: dict[str, Any] | None = None


class Pair(BaseModel):
    """A candidate match between a source and a target entity.

    Attributes:
        pair_id: Unique identifier for this pair.
        campaign_id: Campaign the pair belongs to.
        pair_type: Kind of match (e.g. questionnaire_match, loinc_mapping).
        source: The source entity.
        target: The target entity.
        llm_confidence: Matcher confidence in [0, 1], if known.
        llm_model: Model that proposed the pair.
        llm_reasoning: Model's justification.
        created_at: When the pair was imported.
    """

    pair_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    campaign_id: str
    pair_type: str
    source: PairEntity
    target: PairEntity
    llm_confidence: Annotated[float, Field(ge=0.0, le=1.0)] | None = None
    llm_model: str | None = None
    llm_reasoning: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class Vote(BaseModel):
    """One reviewer's judgment on one pair.

    Attributes:
        vote_id: Unique identifier for this vote.
        pair_id: The pair being judged.
        user_id: The reviewer.
        score: Binary or numeric score.
        expert_selected_code: Alternative code suggested by the reviewer.
        reviewer_notes: Free-form notes.
        created_at: When the vote was first submitted.
        updated_at: When the vote was last edited.
    """

    vote_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    pair_id: str
    user_id: str
    score: Score
    expert_selected_code: str | None = None
    reviewer_notes: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime | None = None

    @property
    def scoring_mode(self) -> ScoringMode:
        """The scoring mode implied by the score variant."""
        return ScoringMode(self.score.mode)

    @property
    def score_binary(self) -> MatchOutcome | None:
        """Binary outcome, or None for numeric votes."""
        return self.score.outcome if isinstance(self.score, BinaryScore) else None

    @property
    def score_numeric(self) -> int | None:
        """Numeric rating, or None for binary votes."""
        return self.score.value if isinstance(self.score, NumericScore) else None

    @property
    def is_edited(self) -> bool:
        """Whether the vote was edited more than a second after submission."""
        if self.updated_at is None:
            return False
        return (self.updated_at - self.created_at).total_seconds() > 1


class SkippedPair(BaseModel):
    """Marker that a user declined to vote on a pair."""

    skip_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    pair_id: str
    user_id: str
    created_at: datetime = Field(default_factory=datetime.now)


class VoteHistoryEntry(BaseModel):
    """A user's vote together with the pair it was cast on."""

    vote: Vote
    pair: Pair


class VoteSubmission(BaseModel):
    """Raw vote payload as received from a caller.

    The scoring mode decides which score field is authoritative; the
    other must be left empty.
    """

    scoring_mode: ScoringMode = ScoringMode.BINARY
    score_binary: MatchOutcome | None = None
    score_numeric: int | None = None
    expert_selected_code: str | None = None
    reviewer_notes: str | None = None

    @model_validator(mode="after")
    def check_score_fields(self) -> VoteSubmission:
        """Ensure exactly the field matching the scoring mode is set."""
        if self.scoring_mode == ScoringMode.BINARY:
            if self.score_binary is None:
                raise ValueError("Binary votes require score_binary")
            if self.score_numeric is not None:
                raise ValueError("Binary votes must not set score_numeric")
        else:
            if self.score_numeric is None:
                raise ValueError("Numeric votes require score_numeric")
            if not 1 <= self.score_numeric <= 5:
                raise ValueError(f"score_numeric must be between 1 and 5, got {self.score_numeric}")
            if self.score_binary is not None:
                raise ValueError("Numeric votes must not set score_binary")
        return self

    def to_score(self) -> BinaryScore | NumericScore:
        """Convert the payload into its tagged score variant."""
        if self.scoring_mode == ScoringMode.BINARY:
            return BinaryScore(outcome=self.score_binary)  # type: ignore[arg-type]
        return NumericScore(value=self.score_numeric)  # type: ignore[arg-type]


def build_vote_submission(**fields: Any) -> VoteSubmission:
    """Validate a raw vote payload.

    Args:
        **fields: VoteSubmission fields as received from the caller.

    Returns:
        The validated submission.

    Raises:
        VoteValidationError: If the payload is malformed.
    """
    try:
        return VoteSubmission(**fields)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or None
        raise VoteValidationError(first["msg"], field=location) from e


def score_from_columns(
    scoring_mode: str,
    score_binary: str | None,
    score_numeric: int | None,
) -> BinaryScore | NumericScore:
    """Rebuild a score variant from its flattened storage columns.

    Raises:
        VoteValidationError: If the columns do not form a valid score.
    """
    submission = build_vote_submission(
        scoring_mode=scoring_mode,
        score_binary=score_binary,
        score_numeric=score_numeric,
    )
    return submission.to_score()

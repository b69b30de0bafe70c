"""Storage backends for the vote ledger.

This module provides the data-access abstraction the selector and the
analytics read from, with a persistent SQLite backend and an in-memory
backend suitable for tests.

The one-vote-per-(pair, user) invariant is enforced atomically by each
backend (a UNIQUE constraint in SQLite, a locked keyed insert in memory);
a duplicate surfaces as AlreadyVotedError. Skips are idempotent.

Example:
    >>> from src.annotation.storage import SQLiteReviewStore
    >>> store = SQLiteReviewStore("annotation.db")
    >>> vote = store.record_vote(pair_id, "reviewer_1", submission)
    >>> store.record_skip(other_pair_id, "reviewer_1")
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from src.annotation.exceptions import (
    AlreadyVotedError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from src.annotation.models import (
    Campaign,
    CampaignStatus,
    Pair,
    PairEntity,
    SkippedPair,
    User,
    UserRole,
    Vote,
    VoteHistoryEntry,
    VoteSubmission,
    score_from_columns,
)

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from src.config import StorageConfig

logger = logging.getLogger(__name__)


# ============================================================================
# Storage Interface
# ============================================================================


class ReviewStore(ABC):
    """Abstract base class for vote ledger backends.

    Subclasses implement the primitive reads and writes; the public
    write operations (recording votes and skips, editing votes, changing
    campaign status) are implemented here once on top of them.
    """

    # Users
    @abstractmethod
    def add_user(self, user: User) -> User:
        """Register a user. Raises ConflictError if the ID or email exists."""

    @abstractmethod
    def get_user(self, user_id: str) -> User | None:
        """Get a user by ID."""

    @abstractmethod
    def list_users(self) -> list[User]:
        """Get all users, newest first."""

    @abstractmethod
    def set_user_role(self, user_id: str, role: UserRole) -> None:
        """Change a user's role. Raises NotFoundError for unknown users."""

    @abstractmethod
    def _save_last_active(self, user_id: str, when: datetime) -> None:
        """Persist a user's last activity time."""

    # Campaigns
    @abstractmethod
    def create_campaign(self, campaign: Campaign) -> Campaign:
        """Persist a new campaign."""

    @abstractmethod
    def get_campaign(self, campaign_id: str) -> Campaign | None:
        """Get a campaign by ID."""

    @abstractmethod
    def list_campaigns(self) -> list[Campaign]:
        """Get all campaigns, newest first."""

    @abstractmethod
    def _save_campaign_status(self, campaign_id: str, status: CampaignStatus) -> None:
        """Persist a campaign's status."""

    # Pairs
    @abstractmethod
    def add_pairs(self, pairs: Sequence[Pair]) -> int:
        """Persist pairs in bulk. Returns the number stored."""

    @abstractmethod
    def get_pair(self, pair_id: str) -> Pair | None:
        """Get a pair by ID."""

    @abstractmethod
    def list_pairs(self, campaign_id: str) -> list[Pair]:
        """Get all pairs of a campaign."""

    # Votes
    @abstractmethod
    def _insert_vote(self, vote: Vote) -> None:
        """Insert a vote. Raises AlreadyVotedError on a duplicate (pair, user)."""

    @abstractmethod
    def _replace_vote(self, vote: Vote) -> None:
        """Overwrite the stored vote for the vote's (pair, user)."""

    @abstractmethod
    def get_vote(self, pair_id: str, user_id: str) -> Vote | None:
        """Get a user's vote on a pair."""

    @abstractmethod
    def list_votes(self, campaign_id: str | None = None) -> list[Vote]:
        """Get all votes of a campaign, or every vote when campaign_id is None."""

    @abstractmethod
    def list_user_votes(self, user_id: str) -> list[Vote]:
        """Get all votes cast by a user across campaigns."""

    # Skips
    @abstractmethod
    def _insert_skip(self, skip: SkippedPair) -> bool:
        """Insert a skip marker. Returns False if one already existed."""

    @abstractmethod
    def list_skips(self, campaign_id: str | None = None) -> list[SkippedPair]:
        """Get all skips of a campaign, or every skip when campaign_id is None."""

    @abstractmethod
    def list_user_skips(self, user_id: str) -> list[SkippedPair]:
        """Get all skips recorded by a user across campaigns."""

    # ------------------------------------------------------------------
    # Operations shared by all backends
    # ------------------------------------------------------------------

    def require_campaign(self, campaign_id: str) -> Campaign:
        """Get a campaign or raise NotFoundError."""
        campaign = self.get_campaign(campaign_id)
        if campaign is None:
            raise NotFoundError("campaign", campaign_id)
        return campaign

    def require_pair(self, pair_id: str) -> Pair:
        """Get a pair or raise NotFoundError."""
        pair = self.get_pair(pair_id)
        if pair is None:
            raise NotFoundError("pair", pair_id)
        return pair

    def require_user(self, user_id: str) -> User:
        """Get a user or raise NotFoundError."""
        user = self.get_user(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    def touch_user(self, user_id: str) -> None:
        """Record that a user was just active."""
        self._save_last_active(user_id, datetime.now())

    def set_campaign_status(self, campaign_id: str, status: CampaignStatus | str) -> Campaign:
        """Move a campaign along its lifecycle.

        Args:
            campaign_id: The campaign to update.
            status: The requested status.

        Returns:
            The updated campaign.

        Raises:
            NotFoundError: If the campaign does not exist.
            InvalidTransitionError: If the lifecycle does not allow the change.
        """
        target = CampaignStatus(status)
        campaign = self.require_campaign(campaign_id)

        if not campaign.status.can_transition_to(target):
            logger.warning(
                f"Rejected status change for campaign {campaign_id}: "
                f"{campaign.status.value} -> {target.value}"
            )
            raise InvalidTransitionError(campaign.status.value, target.value)

        self._save_campaign_status(campaign_id, target)
        logger.info(f"Campaign {campaign_id} moved {campaign.status.value} -> {target.value}")
        return campaign.model_copy(update={"status": target})

    def record_vote(self, pair_id: str, user_id: str, submission: VoteSubmission) -> Vote:
        """Record a user's first vote on a pair.

        Args:
            pair_id: The pair being judged.
            user_id: The voting user.
            submission: The validated vote payload.

        Returns:
            The stored vote.

        Raises:
            NotFoundError: If the pair or user does not exist.
            AlreadyVotedError: If the user has already voted on the pair.
        """
        self.require_pair(pair_id)
        self.require_user(user_id)

        vote = Vote(
            pair_id=pair_id,
            user_id=user_id,
            score=submission.to_score(),
            expert_selected_code=submission.expert_selected_code,
            reviewer_notes=submission.reviewer_notes,
        )

        try:
            self._insert_vote(vote)
        except AlreadyVotedError:
            logger.warning(f"Duplicate vote rejected for pair {pair_id} by user {user_id}")
            raise

        self.touch_user(user_id)
        logger.info(f"Recorded {vote.scoring_mode.value} vote {vote.vote_id} on pair {pair_id}")
        return vote

    def update_vote(self, pair_id: str, user_id: str, submission: VoteSubmission) -> Vote:
        """Edit a user's existing vote on a pair.

        The score (and its mode), notes and expert code are replaced and
        ``updated_at`` is refreshed.

        Raises:
            NotFoundError: If the user has no vote on the pair.
        """
        existing = self.get_vote(pair_id, user_id)
        if existing is None:
            raise NotFoundError("vote", f"{pair_id}/{user_id}")

        updated = existing.model_copy(
            update={
                "score": submission.to_score(),
                "expert_selected_code": submission.expert_selected_code,
                "reviewer_notes": submission.reviewer_notes,
                "updated_at": datetime.now(),
            }
        )
        self._replace_vote(updated)
        self.touch_user(user_id)
        logger.info(f"Updated vote {updated.vote_id} on pair {pair_id}")
        return updated

    def record_skip(self, pair_id: str, user_id: str) -> None:
        """Mark a pair as skipped by a user. Repeated calls are no-ops.

        Raises:
            NotFoundError: If the pair or user does not exist.
        """
        self.require_pair(pair_id)
        self.require_user(user_id)

        if self._insert_skip(SkippedPair(pair_id=pair_id, user_id=user_id)):
            logger.info(f"User {user_id} skipped pair {pair_id}")
        else:
            logger.debug(f"Skip for pair {pair_id} by user {user_id} already recorded")

    def excluded_pair_ids(self, user_id: str) -> set[str]:
        """Get every pair a user has voted on or skipped."""
        voted = {v.pair_id for v in self.list_user_votes(user_id)}
        skipped = {s.pair_id for s in self.list_user_skips(user_id)}
        return voted | skipped

    def vote_history(self, user_id: str) -> list[VoteHistoryEntry]:
        """Get a user's votes with their pairs, newest first."""
        entries = []
        for vote in self.list_user_votes(user_id):
            pair = self.get_pair(vote.pair_id)
            if pair is not None:
                entries.append(VoteHistoryEntry(vote=vote, pair=pair))
        entries.sort(key=lambda e: e.vote.created_at, reverse=True)
        return entries


# ============================================================================
# In-Memory Backend
# ============================================================================


class InMemoryReviewStore(ReviewStore):
    """Dictionary-backed store.

    Holds everything in process memory; intended for tests and
    short-lived tooling. A lock makes the uniqueness checks atomic.
    """

    def __init__(self) -> None:
        """Initialize empty tables."""
        self._lock = threading.Lock()
        self._users: dict[str, User] = {}
        self._campaigns: dict[str, Campaign] = {}
        self._pairs: dict[str, Pair] = {}
        self._votes: dict[tuple[str, str], Vote] = {}
        self._skips: dict[tuple[str, str], SkippedPair] = {}

    def add_user(self, user: User) -> User:
        with self._lock:
            if user.user_id in self._users:
                raise ConflictError(f"User already exists: {user.user_id}")
            if any(u.email == user.email for u in self._users.values()):
                raise ConflictError(f"Email already registered: {user.email}")
            self._users[user.user_id] = user
        return user

    def get_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def list_users(self) -> list[User]:
        return sorted(self._users.values(), key=lambda u: u.created_at, reverse=True)

    def set_user_role(self, user_id: str, role: UserRole) -> None:
        user = self.require_user(user_id)
        self._users[user_id] = user.model_copy(update={"role": UserRole(role)})

    def _save_last_active(self, user_id: str, when: datetime) -> None:
        user = self._users.get(user_id)
        if user is not None:
            self._users[user_id] = user.model_copy(update={"last_active": when})

    def create_campaign(self, campaign: Campaign) -> Campaign:
        with self._lock:
            if campaign.campaign_id in self._campaigns:
                raise ConflictError(f"Campaign already exists: {campaign.campaign_id}")
            self._campaigns[campaign.campaign_id] = campaign
        logger.info(f"Created campaign {campaign.campaign_id} ({campaign.name})")
        return campaign

    def get_campaign(self, campaign_id: str) -> Campaign | None:
        return self._campaigns.get(campaign_id)

    def list_campaigns(self) -> list[Campaign]:
        return sorted(self._campaigns.values(), key=lambda c: c.created_at, reverse=True)

    def _save_campaign_status(self, campaign_id: str, status: CampaignStatus) -> None:
        campaign = self._campaigns[campaign_id]
        self._campaigns[campaign_id] = campaign.model_copy(update={"status": status})

    def add_pairs(self, pairs: Sequence[Pair]) -> int:
        if not pairs:
            return 0
        with self._lock:
            for pair in pairs:
                if pair.campaign_id not in self._campaigns:
                    raise NotFoundError("campaign", pair.campaign_id)
            for pair in pairs:
                self._pairs[pair.pair_id] = pair
        logger.info(f"Stored {len(pairs)} pairs")
        return len(pairs)

    def get_pair(self, pair_id: str) -> Pair | None:
        return self._pairs.get(pair_id)

    def list_pairs(self, campaign_id: str) -> list[Pair]:
        return [p for p in self._pairs.values() if p.campaign_id == campaign_id]

    def _insert_vote(self, vote: Vote) -> None:
        key = (vote.pair_id, vote.user_id)
        with self._lock:
            if key in self._votes:
                raise AlreadyVotedError(vote.pair_id, vote.user_id)
            self._votes[key] = vote

    def _replace_vote(self, vote: Vote) -> None:
        with self._lock:
            self._votes[(vote.pair_id, vote.user_id)] = vote

    def get_vote(self, pair_id: str, user_id: str) -> Vote | None:
        return self._votes.get((pair_id, user_id))

    def list_votes(self, campaign_id: str | None = None) -> list[Vote]:
        if campaign_id is None:
            return list(self._votes.values())
        return [
            v
            for v in self._votes.values()
            if self._pairs[v.pair_id].campaign_id == campaign_id
        ]

    def list_user_votes(self, user_id: str) -> list[Vote]:
        return [v for v in self._votes.values() if v.user_id == user_id]

    def _insert_skip(self, skip: SkippedPair) -> bool:
        key = (skip.pair_id, skip.user_id)
        with self._lock:
            if key in self._skips:
                return False
            self._skips[key] = skip
            return True

    def list_skips(self, campaign_id: str | None = None) -> list[SkippedPair]:
        if campaign_id is None:
            return list(self._skips.values())
        return [
            s
            for s in self._skips.values()
            if self._pairs[s.pair_id].campaign_id == campaign_id
        ]

    def list_user_skips(self, user_id: str) -> list[SkippedPair]:
        return [s for s in self._skips.values() if s.user_id == user_id]


# ============================================================================
# SQLite Backend
# ============================================================================


_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    display_name TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'reviewer',
    created_at TEXT NOT NULL,
    last_active TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS campaigns (
    campaign_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT,
    campaign_type TEXT NOT NULL,
    instructions TEXT,
    created_by TEXT,
    created_at TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'draft'
);

CREATE TABLE IF NOT EXISTS pairs (
    pair_id TEXT PRIMARY KEY,
    campaign_id TEXT NOT NULL REFERENCES campaigns(campaign_id),
    pair_type TEXT NOT NULL,
    source_text TEXT NOT NULL,
    source_id TEXT NOT NULL,
    source_dataset TEXT NOT NULL,
    source_metadata TEXT,
    target_text TEXT NOT NULL,
    target_id TEXT NOT NULL,
    target_dataset TEXT NOT NULL,
    target_metadata TEXT,
    llm_confidence REAL,
    llm_model TEXT,
    llm_reasoning TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS votes (
    vote_id TEXT PRIMARY KEY,
    pair_id TEXT NOT NULL REFERENCES pairs(pair_id),
    user_id TEXT NOT NULL REFERENCES users(user_id),
    scoring_mode TEXT NOT NULL CHECK (scoring_mode IN ('binary', 'numeric')),
    score_binary TEXT CHECK (score_binary IN ('match', 'no_match', 'unsure')),
    score_numeric INTEGER CHECK (score_numeric BETWEEN 1 AND 5),
    expert_selected_code TEXT,
    reviewer_notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT,
    UNIQUE (pair_id, user_id)
);

CREATE TABLE IF NOT EXISTS skipped_pairs (
    skip_id TEXT PRIMARY KEY,
    pair_id TEXT NOT NULL REFERENCES pairs(pair_id),
    user_id TEXT NOT NULL REFERENCES users(user_id),
    created_at TEXT NOT NULL,
    UNIQUE (pair_id, user_id)
);

CREATE INDEX IF NOT EXISTS idx_pairs_campaign ON pairs(campaign_id);
CREATE INDEX IF NOT EXISTS idx_votes_user ON votes(user_id);
CREATE INDEX IF NOT EXISTS idx_skips_user ON skipped_pairs(user_id);
"""

_VOTE_COLUMNS = (
    "v.vote_id, v.pair_id, v.user_id, v.scoring_mode, v.score_binary, v.score_numeric, "
    "v.expert_selected_code, v.reviewer_notes, v.created_at, v.updated_at"
)


class SQLiteReviewStore(ReviewStore):
    """SQLite-based vote ledger.

    Uses UNIQUE constraints for the vote and skip invariants, so
    concurrent writers from separate processes cannot create duplicates.

    Attributes:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str | Path = "data/annotation.db") -> None:
        """Initialize SQLite store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        logger.info(f"Initialized SQLite review store at {self.db_path}")

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.executescript(_SCHEMA)

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success and always close it."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # Row conversion
    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            user_id=row["user_id"],
            email=row["email"],
            display_name=row["display_name"],
            role=UserRole(row["role"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            last_active=datetime.fromisoformat(row["last_active"]),
        )

    @staticmethod
    def _row_to_campaign(row: sqlite3.Row) -> Campaign:
        return Campaign(
            campaign_id=row["campaign_id"],
            name=row["name"],
            description=row["description"],
            campaign_type=row["campaign_type"],
            instructions=row["instructions"],
            created_by=row["created_by"],
            created_at=datetime.fromisoformat(row["created_at"]),
            status=CampaignStatus(row["status"]),
        )

    @staticmethod
    def _row_to_pair(row: sqlite3.Row) -> Pair:
        def entity(prefix: str) -> PairEntity:
            metadata = row[f"{prefix}_metadata"]
            return PairEntity(
                text=row[f"{prefix}_text"],
                entity_id=row[f"{prefix}_id"],
                dataset=row[f"{prefix}_dataset"],
                metadata=json.loads(metadata) if metadata else None,
            )

        return Pair(
            pair_id=row["pair_id"],
            campaign_id=row["campaign_id"],
            pair_type=row["pair_type"],
            source=entity("source"),
            target=entity("target"),
            llm_confidence=row["llm_confidence"],
            llm_model=row["llm_model"],
            llm_reasoning=row["llm_reasoning"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_vote(row: sqlite3.Row) -> Vote:
        updated_at = row["updated_at"]
        return Vote(
            vote_id=row["vote_id"],
            pair_id=row["pair_id"],
            user_id=row["user_id"],
            score=score_from_columns(row["scoring_mode"], row["score_binary"], row["score_numeric"]),
            expert_selected_code=row["expert_selected_code"],
            reviewer_notes=row["reviewer_notes"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )

    @staticmethod
    def _row_to_skip(row: sqlite3.Row) -> SkippedPair:
        return SkippedPair(
            skip_id=row["skip_id"],
            pair_id=row["pair_id"],
            user_id=row["user_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _vote_params(vote: Vote) -> tuple[Any, ...]:
        return (
            vote.scoring_mode.value,
            vote.score_binary.value if vote.score_binary is not None else None,
            vote.score_numeric,
            vote.expert_selected_code,
            vote.reviewer_notes,
        )

    # Users
    def add_user(self, user: User) -> User:
        try:
            with self._get_connection() as conn:
                conn.execute(
                    "INSERT INTO users (user_id, email, display_name, role, created_at, last_active) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        user.user_id,
                        user.email,
                        user.display_name,
                        user.role.value,
                        user.created_at.isoformat(),
                        user.last_active.isoformat(),
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"User already exists: {user.user_id} ({user.email})") from e
        return user

    def get_user(self, user_id: str) -> User | None:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE user_id = ?", (user_id,)).fetchone()
        return self._row_to_user(row) if row else None

    def list_users(self) -> list[User]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY created_at DESC").fetchall()
        return [self._row_to_user(row) for row in rows]

    def set_user_role(self, user_id: str, role: UserRole) -> None:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE users SET role = ? WHERE user_id = ?",
                (UserRole(role).value, user_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("user", user_id)

    def _save_last_active(self, user_id: str, when: datetime) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "UPDATE users SET last_active = ? WHERE user_id = ?",
                (when.isoformat(), user_id),
            )

    # Campaigns
    def create_campaign(self, campaign: Campaign) -> Campaign:
        try:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO campaigns
                    (campaign_id, name, description, campaign_type, instructions,
                     created_by, created_at, status)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        campaign.campaign_id,
                        campaign.name,
                        campaign.description,
                        campaign.campaign_type,
                        campaign.instructions,
                        campaign.created_by,
                        campaign.created_at.isoformat(),
                        campaign.status.value,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"Campaign already exists: {campaign.campaign_id}") from e
        logger.info(f"Created campaign {campaign.campaign_id} ({campaign.name})")
        return campaign

    def get_campaign(self, campaign_id: str) -> Campaign | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM campaigns WHERE campaign_id = ?", (campaign_id,)
            ).fetchone()
        return self._row_to_campaign(row) if row else None

    def list_campaigns(self) -> list[Campaign]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM campaigns ORDER BY created_at DESC").fetchall()
        return [self._row_to_campaign(row) for row in rows]

    def _save_campaign_status(self, campaign_id: str, status: CampaignStatus) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "UPDATE campaigns SET status = ? WHERE campaign_id = ?",
                (status.value, campaign_id),
            )

    # Pairs
    def add_pairs(self, pairs: Sequence[Pair]) -> int:
        if not pairs:
            return 0

        rows = [
            (
                p.pair_id,
                p.campaign_id,
                p.pair_type,
                p.source.text,
                p.source.entity_id,
                p.source.dataset,
                json.dumps(p.source.metadata) if p.source.metadata is not None else None,
                p.target.text,
                p.target.entity_id,
                p.target.dataset,
                json.dumps(p.target.metadata) if p.target.metadata is not None else None,
                p.llm_confidence,
                p.llm_model,
                p.llm_reasoning,
                p.created_at.isoformat(),
            )
            for p in pairs
        ]

        try:
            with self._get_connection() as conn:
                conn.executemany(
                    """
                    INSERT INTO pairs
                    (pair_id, campaign_id, pair_type,
                     source_text, source_id, source_dataset, source_metadata,
                     target_text, target_id, target_dataset, target_metadata,
                     llm_confidence, llm_model, llm_reasoning, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
        except sqlite3.IntegrityError as e:
            missing = {p.campaign_id for p in pairs if self.get_campaign(p.campaign_id) is None}
            if missing:
                raise NotFoundError("campaign", sorted(missing)[0]) from e
            raise ConflictError(f"Pair import failed: {e}") from e

        logger.info(f"Stored {len(rows)} pairs")
        return len(rows)

    def get_pair(self, pair_id: str) -> Pair | None:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM pairs WHERE pair_id = ?", (pair_id,)).fetchone()
        return self._row_to_pair(row) if row else None

    def list_pairs(self, campaign_id: str) -> list[Pair]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM pairs WHERE campaign_id = ? ORDER BY created_at",
                (campaign_id,),
            ).fetchall()
        return [self._row_to_pair(row) for row in rows]

    # Votes
    def _insert_vote(self, vote: Vote) -> None:
        try:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO votes
                    (vote_id, pair_id, user_id, scoring_mode, score_binary, score_numeric,
                     expert_selected_code, reviewer_notes, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        vote.vote_id,
                        vote.pair_id,
                        vote.user_id,
                        *self._vote_params(vote),
                        vote.created_at.isoformat(),
                        vote.updated_at.isoformat() if vote.updated_at else None,
                    ),
                )
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e):
                raise AlreadyVotedError(vote.pair_id, vote.user_id) from e
            raise

    def _replace_vote(self, vote: Vote) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                UPDATE votes
                SET scoring_mode = ?, score_binary = ?, score_numeric = ?,
                    expert_selected_code = ?, reviewer_notes = ?, updated_at = ?
                WHERE pair_id = ? AND user_id = ?
                """,
                (
                    *self._vote_params(vote),
                    vote.updated_at.isoformat() if vote.updated_at else None,
                    vote.pair_id,
                    vote.user_id,
                ),
            )

    def get_vote(self, pair_id: str, user_id: str) -> Vote | None:
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT {_VOTE_COLUMNS} FROM votes v WHERE v.pair_id = ? AND v.user_id = ?",
                (pair_id, user_id),
            ).fetchone()
        return self._row_to_vote(row) if row else None

    def list_votes(self, campaign_id: str | None = None) -> list[Vote]:
        with self._get_connection() as conn:
            if campaign_id is None:
                rows = conn.execute(
                    f"SELECT {_VOTE_COLUMNS} FROM votes v ORDER BY v.created_at"
                ).fetchall()
            else:
                rows = conn.execute(
                    f"SELECT {_VOTE_COLUMNS} FROM votes v "
                    "JOIN pairs p ON p.pair_id = v.pair_id "
                    "WHERE p.campaign_id = ? ORDER BY v.created_at",
                    (campaign_id,),
                ).fetchall()
        return [self._row_to_vote(row) for row in rows]

    def list_user_votes(self, user_id: str) -> list[Vote]:
        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT {_VOTE_COLUMNS} FROM votes v WHERE v.user_id = ? ORDER BY v.created_at",
                (user_id,),
            ).fetchall()
        return [self._row_to_vote(row) for row in rows]

    # Skips
    def _insert_skip(self, skip: SkippedPair) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO skipped_pairs (skip_id, pair_id, user_id, created_at) "
                "VALUES (?, ?, ?, ?)",
                (skip.skip_id, skip.pair_id, skip.user_id, skip.created_at.isoformat()),
            )
            return cursor.rowcount > 0

    def list_skips(self, campaign_id: str | None = None) -> list[SkippedPair]:
        with self._get_connection() as conn:
            if campaign_id is None:
                rows = conn.execute("SELECT * FROM skipped_pairs ORDER BY created_at").fetchall()
            else:
                rows = conn.execute(
                    "SELECT s.* FROM skipped_pairs s "
                    "JOIN pairs p ON p.pair_id = s.pair_id "
                    "WHERE p.campaign_id = ? ORDER BY s.created_at",
                    (campaign_id,),
                ).fetchall()
        return [self._row_to_skip(row) for row in rows]

    def list_user_skips(self, user_id: str) -> list[SkippedPair]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM skipped_pairs WHERE user_id = ? ORDER BY created_at",
                (user_id,),
            ).fetchall()
        return [self._row_to_skip(row) for row in rows]


def create_store(config: StorageConfig) -> ReviewStore:
    """Create the storage backend named by the configuration.

    Args:
        config: Storage configuration.

    Returns:
        A ReviewStore instance.
    """
    if config.backend == "memory":
        return InMemoryReviewStore()
    return SQLiteReviewStore(config.db_path)

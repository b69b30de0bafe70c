"""Custom exceptions for the annotation core."""

from __future__ import annotations


class AnnotationError(Exception):
    """Base exception for annotation errors.

    Raised for failures callers are expected to surface to the user.
    Insufficient data for a statistic is never an error; results carry None.
    """


class NotFoundError(AnnotationError):
    """Raised when a referenced campaign, pair, user or vote does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        """Initialize NotFoundError.

        Args:
            entity: Kind of entity that was looked up (e.g. "campaign").
            entity_id: The identifier that was not found.
        """
        super().__init__(f"{entity.capitalize()} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(AnnotationError):
    """Raised when a write would violate a uniqueness invariant."""


class AlreadyVotedError(ConflictError):
    """Raised when a user submits a second vote for the same pair.

    Callers should offer the edit-vote path instead.
    """

    def __init__(self, pair_id: str, user_id: str) -> None:
        """Initialize AlreadyVotedError.

        Args:
            pair_id: The pair that already has a vote from this user.
            user_id: The user who already voted.
        """
        super().__init__(f"User {user_id} has already voted on pair {pair_id}")
        self.pair_id = pair_id
        self.user_id = user_id


class VoteValidationError(AnnotationError):
    """Raised when a vote payload is malformed.

    This includes numeric scores outside 1-5 and scoring mode / score
    field mismatches.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize VoteValidationError.

        Args:
            message: Human-readable error description.
            field: Name of the offending field (optional).
        """
        super().__init__(message)
        self.field = field


class ImportValidationError(AnnotationError):
    """Raised when an import file or one of its pair records is invalid."""

    def __init__(self, message: str, row: int | None = None) -> None:
        """Initialize ImportValidationError.

        Args:
            message: Human-readable error description.
            row: 1-based index of the offending record (optional).
        """
        super().__init__(message)
        self.row = row


class InvalidTransitionError(AnnotationError):
    """Raised when a campaign status change is not allowed by its lifecycle."""

    def __init__(self, current: str, requested: str) -> None:
        """Initialize InvalidTransitionError.

        Args:
            current: The campaign's current status.
            requested: The status that was requested.
        """
        super().__init__(f"Cannot move campaign from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested

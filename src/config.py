"""Centralized configuration management.

This module provides configuration classes for the application,
loading values from environment variables with sensible defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, message: str, missing_vars: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing_vars = missing_vars or []


@dataclass(frozen=True)
class StorageConfig:
    """Configuration for the vote ledger storage backend.

    Attributes:
        backend: Storage backend to use ("sqlite" or "memory").
        db_path: Path to the SQLite database file.
    """

    backend: Literal["sqlite", "memory"] = "sqlite"
    db_path: str = "data/annotation.db"

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ConfigurationError: If the backend is unknown or the path is missing.
        """
        if self.backend not in ("sqlite", "memory"):
            raise ConfigurationError(f"Unknown storage backend: {self.backend}")

        if self.backend == "sqlite" and not self.db_path:
            raise ConfigurationError(
                "SQLite backend requires a database path",
                missing_vars=["REVIEW_DB_PATH"],
            )


@dataclass(frozen=True)
class SelectorConfig:
    """Thresholds for the next-pair priority policy.

    Attributes:
        low_confidence_threshold: LLM confidence below which a pair is low-confidence.
        under_sampled_votes: Vote count below which a low-confidence pair is under-sampled.
        disagreement_low: Lower bound (inclusive) of the disagreement band.
        disagreement_high: Upper bound (inclusive) of the disagreement band.
    """

    low_confidence_threshold: float = 0.7
    under_sampled_votes: int = 3
    disagreement_low: float = 0.4
    disagreement_high: float = 0.6

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ConfigurationError: If a threshold is out of range.
        """
        if not 0.0 <= self.low_confidence_threshold <= 1.0:
            raise ConfigurationError(
                f"low_confidence_threshold must be within [0, 1], got {self.low_confidence_threshold}"
            )
        if self.under_sampled_votes < 0:
            raise ConfigurationError(
                f"under_sampled_votes must be non-negative, got {self.under_sampled_votes}"
            )
        if not 0.0 <= self.disagreement_low <= self.disagreement_high <= 1.0:
            raise ConfigurationError(
                "Disagreement band must satisfy 0 <= low <= high <= 1, "
                f"got [{self.disagreement_low}, {self.disagreement_high}]"
            )


@dataclass(frozen=True)
class AnalyticsConfig:
    """Thresholds and limits for reviewer and disagreement analytics.

    Attributes:
        min_votes_for_rates: Definitive binary votes a reviewer needs before rates are reported.
        low_agreement_threshold: Flag reviewers whose agreement rate is below this.
        high_positive_threshold: Flag reviewers whose positive rate is above this.
        high_negative_threshold: Flag reviewers whose positive rate is below this.
        disagreement_limit: Default cap on high-disagreement pairs returned.
        top_skipped_limit: Number of most-skipped pairs reported.
        activity_days: Length of the per-reviewer daily activity vector.
    """

    min_votes_for_rates: int = 5
    low_agreement_threshold: float = 0.75
    high_positive_threshold: float = 0.85
    high_negative_threshold: float = 0.35
    disagreement_limit: int = 50
    top_skipped_limit: int = 20
    activity_days: int = 7

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ConfigurationError: If a limit or threshold is out of range.
        """
        for name in ("low_agreement_threshold", "high_positive_threshold", "high_negative_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be within [0, 1], got {value}")

        for name in ("min_votes_for_rates", "disagreement_limit", "top_skipped_limit", "activity_days"):
            value = getattr(self, name)
            if value < 1:
                raise ConfigurationError(f"{name} must be at least 1, got {value}")


@dataclass
class AppConfig:
    """Main application configuration.

    Attributes:
        storage: Storage backend configuration.
        selector: Next-pair selection thresholds.
        analytics: Analytics thresholds and limits.
        log_level: Logging level.
        debug: Debug mode flag.
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    selector: SelectorConfig = field(default_factory=SelectorConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    log_level: str = "INFO"
    debug: bool = False

    @classmethod
    def from_env(cls) -> AppConfig:
        """Create configuration from environment variables.

        Returns:
            AppConfig instance populated from environment.
        """
        backend_env = os.getenv("REVIEW_STORE_BACKEND", "sqlite")
        backend: Literal["sqlite", "memory"] = "memory" if backend_env == "memory" else "sqlite"

        storage_config = StorageConfig(
            backend=backend,
            db_path=os.getenv("REVIEW_DB_PATH", "data/annotation.db"),
        )

        selector_config = SelectorConfig(
            low_confidence_threshold=float(os.getenv("SELECTOR_LOW_CONFIDENCE", "0.7")),
            under_sampled_votes=int(os.getenv("SELECTOR_UNDER_SAMPLED_VOTES", "3")),
            disagreement_low=float(os.getenv("SELECTOR_DISAGREEMENT_LOW", "0.4")),
            disagreement_high=float(os.getenv("SELECTOR_DISAGREEMENT_HIGH", "0.6")),
        )

        analytics_config = AnalyticsConfig(
            min_votes_for_rates=int(os.getenv("ANALYTICS_MIN_VOTES_FOR_RATES", "5")),
            low_agreement_threshold=float(os.getenv("ANALYTICS_LOW_AGREEMENT", "0.75")),
            high_positive_threshold=float(os.getenv("ANALYTICS_HIGH_POSITIVE", "0.85")),
            high_negative_threshold=float(os.getenv("ANALYTICS_HIGH_NEGATIVE", "0.35")),
            disagreement_limit=int(os.getenv("ANALYTICS_DISAGREEMENT_LIMIT", "50")),
            top_skipped_limit=int(os.getenv("ANALYTICS_TOP_SKIPPED", "20")),
            activity_days=int(os.getenv("ANALYTICS_ACTIVITY_DAYS", "7")),
        )

        return cls(
            storage=storage_config,
            selector=selector_config,
            analytics=analytics_config,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            debug=os.getenv("DEBUG", "false").lower() == "true",
        )

    def validate(self) -> None:
        """Validate all configuration sections.

        Raises:
            ConfigurationError: If any configuration value is invalid.
        """
        self.storage.validate()
        self.selector.validate()
        self.analytics.validate()


# Global configuration instance (lazy loaded)
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get the global application configuration.

    Returns:
        AppConfig instance loaded from environment.
    """
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _config
    _config = None

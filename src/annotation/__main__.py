"""CLI entry point for the annotation module.

Usage:
    # Create a campaign and load pairs
    python -m src.annotation init-campaign --name "LOINC v2" --type loinc_mapping
    python -m src.annotation import-pairs <campaign_id> pairs.csv

    # Review
    python -m src.annotation next-pair <campaign_id> reviewer_1
    python -m src.annotation vote <pair_id> reviewer_1 --outcome match

    # Analytics
    python -m src.annotation agreement <campaign_id>
    python -m src.annotation reviewers <campaign_id>
"""

from __future__ import annotations

import argparse
import json
import logging
import random
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from src.annotation.engine import AgreementEngine
from src.annotation.exceptions import AnnotationError
from src.annotation.importer import export_campaign, import_pairs
from src.annotation.models import (
    Campaign,
    CampaignStatus,
    MatchOutcome,
    ScoringMode,
    User,
    UserRole,
    build_vote_submission,
)
from src.annotation.selector import PairSelector
from src.annotation.storage import ReviewStore, create_store
from src.config import AppConfig, ConfigurationError, StorageConfig, get_config

logger = logging.getLogger(__name__)


def emit(result: Any) -> None:
    """Print a result as JSON on stdout."""
    if isinstance(result, BaseModel):
        data = result.model_dump(mode="json")
    elif isinstance(result, list):
        data = [r.model_dump(mode="json") if isinstance(r, BaseModel) else r for r in result]
    else:
        data = result
    print(json.dumps(data, indent=2))


def non_negative_int(value: str) -> int:
    """Parse a count argument that must be zero or more."""
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be zero or more, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        description="Human-in-the-loop pair annotation: campaigns, voting and agreement analytics.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m src.annotation init-campaign --name "LOINC v2" --type loinc_mapping
  python -m src.annotation set-status <campaign_id> active
  python -m src.annotation add-user reviewer_1 r1@example.org --name "Reviewer One"
  python -m src.annotation next-pair <campaign_id> reviewer_1
  python -m src.annotation vote <pair_id> reviewer_1 --outcome no_match
  python -m src.annotation vote <pair_id> reviewer_2 --mode numeric --score 4
  python -m src.annotation disagreements <campaign_id> --by-confidence
  python -m src.annotation export <campaign_id> results.csv
        """,
    )

    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="SQLite database path (default: REVIEW_DB_PATH or data/annotation.db)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Campaigns
    init_parser = subparsers.add_parser("init-campaign", help="Create a draft campaign")
    init_parser.add_argument("--name", required=True, help="Campaign name")
    init_parser.add_argument("--type", dest="campaign_type", required=True, help="Campaign type")
    init_parser.add_argument("--description", help="Campaign description")
    init_parser.add_argument("--instructions", help="Reviewer instructions")
    init_parser.add_argument("--created-by", help="ID of the creating administrator")

    status_parser = subparsers.add_parser("set-status", help="Change a campaign's status")
    status_parser.add_argument("campaign_id")
    status_parser.add_argument("status", choices=[s.value for s in CampaignStatus])

    import_parser = subparsers.add_parser("import-pairs", help="Import pairs from CSV or JSON")
    import_parser.add_argument("campaign_id")
    import_parser.add_argument("path", type=Path)

    export_parser = subparsers.add_parser("export", help="Export campaign results to CSV")
    export_parser.add_argument("campaign_id")
    export_parser.add_argument("path", type=Path)

    # Users
    user_parser = subparsers.add_parser("add-user", help="Register a user")
    user_parser.add_argument("user_id")
    user_parser.add_argument("email")
    user_parser.add_argument("--name", help="Display name (default: email)")
    user_parser.add_argument(
        "--role",
        choices=[r.value for r in UserRole],
        default=UserRole.REVIEWER.value,
    )

    user_stats_parser = subparsers.add_parser("user-stats", help="Show a user's activity")
    user_stats_parser.add_argument("user_id")

    history_parser = subparsers.add_parser("history", help="Show a user's votes, newest first")
    history_parser.add_argument("user_id")

    # Reviewing
    next_parser = subparsers.add_parser("next-pair", help="Select the next pair for a reviewer")
    next_parser.add_argument("campaign_id")
    next_parser.add_argument("user_id")
    next_parser.add_argument("--seed", type=int, default=None, help="Seed for the tiebreak")

    for name, help_text in (("vote", "Submit a vote"), ("edit-vote", "Edit an existing vote")):
        vote_parser = subparsers.add_parser(name, help=help_text)
        vote_parser.add_argument("pair_id")
        vote_parser.add_argument("user_id")
        vote_parser.add_argument(
            "--mode",
            choices=[m.value for m in ScoringMode],
            default=ScoringMode.BINARY.value,
        )
        vote_parser.add_argument("--outcome", choices=[o.value for o in MatchOutcome])
        vote_parser.add_argument("--score", type=int, help="Numeric score (1-5)")
        vote_parser.add_argument("--code", help="Expert-selected alternative code")
        vote_parser.add_argument("--notes", help="Reviewer notes")

    skip_parser = subparsers.add_parser("skip", help="Skip a pair")
    skip_parser.add_argument("pair_id")
    skip_parser.add_argument("user_id")

    # Analytics
    for name, help_text in (
        ("agreement", "Compute inter-rater agreement"),
        ("distribution", "Show the vote distribution"),
        ("reviewers", "Show reviewer statistics and flags"),
        ("skips", "Show skip analysis"),
        ("progress", "Show reviewed pairs out of total"),
    ):
        analytics_parser = subparsers.add_parser(name, help=help_text)
        analytics_parser.add_argument("campaign_id")

    disagreement_parser = subparsers.add_parser("disagreements", help="Show high-disagreement pairs")
    disagreement_parser.add_argument("campaign_id")
    disagreement_parser.add_argument("--limit", type=non_negative_int, default=None)
    disagreement_parser.add_argument(
        "--by-confidence",
        action="store_true",
        help="Group disagreement by LLM confidence range instead",
    )

    timeline_parser = subparsers.add_parser("timeline", help="Show votes over time")
    timeline_parser.add_argument("--campaign", dest="campaign_id", default=None)

    subparsers.add_parser("summary", help="Summarize all campaigns")

    return parser


def run_command(args: argparse.Namespace, store: ReviewStore, config: AppConfig) -> int:
    """Dispatch a parsed command.

    Args:
        args: Parsed command line arguments.
        store: Storage backend.
        config: Application configuration.

    Returns:
        Exit code.
    """
    engine = AgreementEngine(store, config.analytics)
    command = args.command

    if command == "init-campaign":
        campaign = store.create_campaign(
            Campaign(
                name=args.name,
                campaign_type=args.campaign_type,
                description=args.description,
                instructions=args.instructions,
                created_by=args.created_by,
            )
        )
        emit(campaign)
    elif command == "set-status":
        emit(store.set_campaign_status(args.campaign_id, args.status))
    elif command == "import-pairs":
        emit({"imported": import_pairs(store, args.campaign_id, args.path)})
    elif command == "export":
        emit({"exported": export_campaign(store, args.campaign_id, args.path)})
    elif command == "add-user":
        user = User(
            user_id=args.user_id,
            email=args.email,
            display_name=args.name or args.email,
            role=UserRole(args.role),
        )
        emit(store.add_user(user))
    elif command == "user-stats":
        store.require_user(args.user_id)
        emit(engine.user_stats(args.user_id))
    elif command == "history":
        store.require_user(args.user_id)
        emit(store.vote_history(args.user_id))
    elif command == "next-pair":
        store.require_campaign(args.campaign_id)
        store.require_user(args.user_id)
        rng = random.Random(args.seed) if args.seed is not None else None
        pair = PairSelector(store, config.selector, rng).next_pair(args.campaign_id, args.user_id)
        emit(pair if pair is not None else {"pair": None, "message": "No pairs left to review"})
    elif command in ("vote", "edit-vote"):
        submission = build_vote_submission(
            scoring_mode=args.mode,
            score_binary=args.outcome,
            score_numeric=args.score,
            expert_selected_code=args.code,
            reviewer_notes=args.notes,
        )
        if command == "vote":
            emit(store.record_vote(args.pair_id, args.user_id, submission))
        else:
            emit(store.update_vote(args.pair_id, args.user_id, submission))
    elif command == "skip":
        store.record_skip(args.pair_id, args.user_id)
        emit({"skipped": args.pair_id})
    elif command == "agreement":
        store.require_campaign(args.campaign_id)
        emit(engine.agreement(args.campaign_id))
    elif command == "distribution":
        store.require_campaign(args.campaign_id)
        emit(engine.vote_distribution(args.campaign_id))
    elif command == "reviewers":
        store.require_campaign(args.campaign_id)
        emit(engine.reviewer_stats(args.campaign_id))
    elif command == "skips":
        store.require_campaign(args.campaign_id)
        emit(engine.skip_analysis(args.campaign_id))
    elif command == "progress":
        emit(engine.campaign_progress(args.campaign_id))
    elif command == "disagreements":
        store.require_campaign(args.campaign_id)
        if args.by_confidence:
            emit(engine.disagreement_by_confidence(args.campaign_id))
        else:
            emit(engine.high_disagreement_pairs(args.campaign_id, args.limit))
    elif command == "timeline":
        if args.campaign_id is not None:
            store.require_campaign(args.campaign_id)
        emit(engine.votes_over_time(args.campaign_id))
    elif command == "summary":
        emit(
            {
                "overview": engine.admin_overview().model_dump(mode="json"),
                "campaigns": [s.model_dump(mode="json") for s in engine.campaign_summaries()],
            }
        )

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    config = get_config()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose or config.debug else config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    if args.db is not None:
        config = AppConfig(
            storage=StorageConfig(backend="sqlite", db_path=str(args.db)),
            selector=config.selector,
            analytics=config.analytics,
            log_level=config.log_level,
            debug=config.debug,
        )

    try:
        config.validate()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    store = create_store(config.storage)

    try:
        return run_command(args, store, config)
    except AnnotationError as e:
        logger.error(str(e))
        print(json.dumps({"error": type(e).__name__, "message": str(e)}), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

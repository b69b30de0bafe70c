"""Pair import from CSV/JSON files and campaign results export.

JSON files hold either a list of pair records or an object with a
``pairs`` list; keys may be snake_case or camelCase. CSV files have a
header row with snake_case columns, and ``*_metadata`` columns hold JSON.

Example:
    >>> from src.annotation.importer import import_pairs, export_campaign
    >>> import_pairs(store, campaign_id, "pairs.csv")
    120
    >>> export_campaign(store, campaign_id, "results.csv")
    120
"""

from __future__ import annotations

import csv
import json
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

from src.annotation.exceptions import ImportValidationError
from src.annotation.models import Pair, PairEntity
from src.annotation.tallies import round_or_none, tally_votes

if TYPE_CHECKING:
    from src.annotation.models import Campaign
    from src.annotation.storage import ReviewStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "source_text",
    "source_id",
    "source_dataset",
    "target_text",
    "target_id",
    "target_dataset",
)

EXPORT_FIELDS = [
    "pair_id",
    "source_text",
    "source_dataset",
    "source_id",
    "target_text",
    "target_dataset",
    "target_id",
    "llm_confidence",
    "llm_model",
    "vote_count",
    "positive_votes",
    "negative_votes",
    "unsure_votes",
    "positive_rate",
    "consensus",
]

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake_case(key: str) -> str:
    """Convert a camelCase key to snake_case."""
    return _CAMEL_BOUNDARY.sub("_", key.strip()).lower()


def load_records(path: str | Path) -> list[dict[str, Any]]:
    """Read raw pair records from a JSON or CSV file.

    Args:
        path: File to read; the suffix selects the format.

    Returns:
        Records with snake_case keys.

    Raises:
        ImportValidationError: If the file is missing, unreadable, in an
            unsupported format or malformed.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix not in (".json", ".csv"):
        raise ImportValidationError(f"Unsupported import format: {path.suffix or path.name}")
    if not path.is_file():
        raise ImportValidationError(f"Import file not found: {path}")

    try:
        if suffix == ".json":
            with path.open(encoding="utf-8") as f:
                data = json.load(f)
        else:
            with path.open(encoding="utf-8", newline="") as f:
                data = list(csv.DictReader(f))
    except json.JSONDecodeError as e:
        raise ImportValidationError(f"Invalid JSON in {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ImportValidationError(f"{path} is not valid UTF-8: {e}") from e
    except (OSError, csv.Error) as e:
        raise ImportValidationError(f"Failed to read {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("pairs")
    if not isinstance(data, list):
        raise ImportValidationError(f"{path} must contain a list of pairs")

    records = []
    for index, record in enumerate(data, start=1):
        if not isinstance(record, dict):
            raise ImportValidationError("Pair record must be an object", row=index)
        # csv.DictReader files surplus cells under a None key
        if None in record:
            raise ImportValidationError(f"Row {index}: more values than header columns", row=index)
        records.append({to_snake_case(str(k)): v for k, v in record.items()})
    return records


def _parse_metadata(value: Any, row: int) -> dict[str, Any] | None:
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        return value
    try:
        parsed = json.loads(value)
    except (TypeError, json.JSONDecodeError) as e:
        raise ImportValidationError(f"Row {row}: metadata is not valid JSON", row=row) from e
    if not isinstance(parsed, dict):
        raise ImportValidationError(f"Row {row}: metadata must be a JSON object", row=row)
    return parsed


def _parse_confidence(value: Any, row: int) -> float | None:
    if value is None or value == "":
        return None
    try:
        confidence = float(value)
    except (TypeError, ValueError) as e:
        raise ImportValidationError(f"Row {row}: llm_confidence is not a number", row=row) from e
    if not 0.0 <= confidence <= 1.0:
        raise ImportValidationError(f"Row {row}: llm_confidence must be within [0, 1]", row=row)
    return confidence


def _optional_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def parse_record(record: dict[str, Any], row: int, campaign: Campaign) -> Pair:
    """Build a pair from a raw record.

    Args:
        record: Record with snake_case keys.
        row: 1-based position of the record, used in error messages.
        campaign: Campaign the pair is imported into.

    Returns:
        The parsed Pair.

    Raises:
        ImportValidationError: If a required field is missing or a value is malformed.
    """
    missing = [name for name in REQUIRED_FIELDS if record.get(name) in (None, "")]
    if missing:
        raise ImportValidationError(f"Row {row}: missing {', '.join(missing)}", row=row)

    def entity(prefix: str) -> PairEntity:
        return PairEntity(
            text=str(record[f"{prefix}_text"]),
            entity_id=str(record[f"{prefix}_id"]),
            dataset=str(record[f"{prefix}_dataset"]),
            metadata=_parse_metadata(record.get(f"{prefix}_metadata"), row),
        )

    return Pair(
        campaign_id=campaign.campaign_id,
        pair_type=_optional_text(record.get("pair_type")) or campaign.campaign_type,
        source=entity("source"),
        target=entity("target"),
        llm_confidence=_parse_confidence(record.get("llm_confidence"), row),
        llm_model=_optional_text(record.get("llm_model")),
        llm_reasoning=_optional_text(record.get("llm_reasoning")),
    )


def import_pairs(store: ReviewStore, campaign_id: str, path: str | Path) -> int:
    """Import pairs from a file into a campaign.

    Every record is validated before anything is stored, so a bad row
    leaves the campaign unchanged.

    Args:
        store: Data-access backend.
        campaign_id: Target campaign.
        path: JSON or CSV file.

    Returns:
        Number of pairs imported.

    Raises:
        NotFoundError: If the campaign does not exist.
        ImportValidationError: If any record is invalid.
    """
    campaign = store.require_campaign(campaign_id)
    records = load_records(path)
    pairs = [parse_record(record, row, campaign) for row, record in enumerate(records, start=1)]
    count = store.add_pairs(pairs)
    logger.info(f"Imported {count} pairs from {path} into campaign {campaign_id}")
    return count


def export_campaign(store: ReviewStore, campaign_id: str, path: str | Path) -> int:
    """Export a campaign's pairs with their vote tallies to CSV.

    Args:
        store: Data-access backend.
        campaign_id: Campaign to export.
        path: Path for the CSV file.

    Returns:
        Number of rows exported.

    Raises:
        NotFoundError: If the campaign does not exist.
    """
    store.require_campaign(campaign_id)
    pairs = store.list_pairs(campaign_id)
    tallies = tally_votes(store.list_votes(campaign_id), pair_ids=[p.pair_id for p in pairs])

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=EXPORT_FIELDS)
        writer.writeheader()

        for pair in pairs:
            tally = tallies[pair.pair_id]
            rate = tally.positive_rate
            consensus = "" if rate is None else ("match" if rate > 0.5 else "no_match")
            writer.writerow(
                {
                    "pair_id": pair.pair_id,
                    "source_text": pair.source.text,
                    "source_dataset": pair.source.dataset,
                    "source_id": pair.source.entity_id,
                    "target_text": pair.target.text,
                    "target_dataset": pair.target.dataset,
                    "target_id": pair.target.entity_id,
                    "llm_confidence": "" if pair.llm_confidence is None else pair.llm_confidence,
                    "llm_model": pair.llm_model or "",
                    "vote_count": tally.vote_count,
                    "positive_votes": tally.positive,
                    "negative_votes": tally.negative,
                    "unsure_votes": tally.unsure,
                    "positive_rate": "" if rate is None else round_or_none(rate, 3),
                    "consensus": consensus,
                }
            )

    logger.info(f"Exported {len(pairs)} pairs of campaign {campaign_id} to {path}")
    return len(pairs)

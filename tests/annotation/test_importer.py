"""Tests for pair import and campaign export."""

from __future__ import annotations

import csv
import json
from collections.abc import Callable
from pathlib import Path

import pytest

from src.annotation.exceptions import ImportValidationError, NotFoundError
from src.annotation.importer import export_campaign, import_pairs, load_records, to_snake_case
from src.annotation.models import Campaign, Pair, Vote
from src.annotation.storage import ReviewStore


@pytest.fixture
def json_pairs(tmp_path: Path) -> Path:
    """Write a camelCase JSON import file."""
    path = tmp_path / "pairs.json"
    path.write_text(
        json.dumps(
            {
                "pairs": [
                    {
                        "sourceText": "Body height",
                        "sourceId": "Q1",
                        "sourceDataset": "survey",
                        "sourceMetadata": {"unit": "cm"},
                        "targetText": "Body height [Length]",
                        "targetId": "8302-2",
                        "targetDataset": "loinc",
                        "llmConfidence": 0.92,
                        "llmModel": "matcher-v1",
                    },
                    {
                        "sourceText": "Weight",
                        "sourceId": "Q2",
                        "sourceDataset": "survey",
                        "targetText": "Body weight",
                        "targetId": "29463-7",
                        "targetDataset": "loinc",
                        "pairType": "questionnaire_match",
                    },
                ]
            }
        )
    )
    return path


@pytest.fixture
def csv_pairs(tmp_path: Path) -> Path:
    """Write a snake_case CSV import file."""
    path = tmp_path / "pairs.csv"
    with path.open("w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(
            [
                "source_text",
                "source_id",
                "source_dataset",
                "source_metadata",
                "target_text",
                "target_id",
                "target_dataset",
                "llm_confidence",
            ]
        )
        writer.writerow(["Smoker?", "Q7", "survey", '{"section": "habits"}', "Tobacco use", "72166-2", "loinc", "0.55"])
        writer.writerow(["Age", "Q8", "survey", "", "Age", "30525-0", "loinc", ""])
    return path


class TestLoadRecords:
    """Tests for reading raw records."""

    @pytest.mark.parametrize(
        ("key", "expected"),
        [
            ("sourceText", "source_text"),
            ("llmConfidence", "llm_confidence"),
            ("source_text", "source_text"),
        ],
    )
    def test_snake_case(self, key: str, expected: str) -> None:
        """Test key normalization."""
        assert to_snake_case(key) == expected

    def test_json_list(self, tmp_path: Path) -> None:
        """Test a bare JSON list is accepted."""
        path = tmp_path / "list.json"
        path.write_text(json.dumps([{"sourceText": "a"}]))
        assert load_records(path) == [{"source_text": "a"}]

    def test_unsupported_format(self, tmp_path: Path) -> None:
        """Test unknown extensions are rejected."""
        path = tmp_path / "pairs.xlsx"
        path.write_text("")
        with pytest.raises(ImportValidationError, match="Unsupported"):
            load_records(path)

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Test malformed JSON is reported."""
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ImportValidationError, match="Invalid JSON"):
            load_records(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test a nonexistent file is reported."""
        with pytest.raises(ImportValidationError, match="not found"):
            load_records(tmp_path / "absent.csv")

    def test_invalid_utf8(self, tmp_path: Path) -> None:
        """Test undecodable bytes are reported."""
        path = tmp_path / "latin1.csv"
        path.write_bytes("source_text,source_id\nCaf\xe9,Q1\n".encode("latin-1"))

        with pytest.raises(ImportValidationError, match="UTF-8"):
            load_records(path)

    def test_csv_row_wider_than_header(self, tmp_path: Path) -> None:
        """Test a CSV row with surplus cells names the row."""
        path = tmp_path / "wide.csv"
        path.write_text("source_text,source_id\nHeight,Q1\nWeight,Q2,extra\n")

        with pytest.raises(ImportValidationError) as exc_info:
            load_records(path)

        assert exc_info.value.row == 2
        assert "more values" in str(exc_info.value)


class TestImportPairs:
    """Tests for import_pairs."""

    def test_json_import(self, store: ReviewStore, campaign: Campaign, json_pairs: Path) -> None:
        """Test camelCase JSON records are imported."""
        assert import_pairs(store, campaign.campaign_id, json_pairs) == 2

        pairs = {p.source.entity_id: p for p in store.list_pairs(campaign.campaign_id)}
        assert pairs["Q1"].source.metadata == {"unit": "cm"}
        assert pairs["Q1"].llm_confidence == 0.92
        assert pairs["Q1"].llm_model == "matcher-v1"
        assert pairs["Q1"].pair_type == "loinc_mapping"
        assert pairs["Q2"].pair_type == "questionnaire_match"
        assert pairs["Q2"].llm_confidence is None

    def test_csv_import(self, store: ReviewStore, campaign: Campaign, csv_pairs: Path) -> None:
        """Test CSV rows with JSON metadata columns are imported."""
        assert import_pairs(store, campaign.campaign_id, csv_pairs) == 2

        pairs = {p.source.entity_id: p for p in store.list_pairs(campaign.campaign_id)}
        assert pairs["Q7"].source.metadata == {"section": "habits"}
        assert pairs["Q7"].llm_confidence == 0.55
        assert pairs["Q8"].source.metadata is None
        assert pairs["Q8"].llm_confidence is None

    def test_missing_field_names_row(self, store: ReviewStore, campaign: Campaign, tmp_path: Path) -> None:
        """Test a row missing required fields is rejected and nothing is stored."""
        path = tmp_path / "bad.json"
        path.write_text(
            json.dumps(
                [
                    {
                        "source_text": "ok",
                        "source_id": "Q1",
                        "source_dataset": "s",
                        "target_text": "ok",
                        "target_id": "T1",
                        "target_dataset": "t",
                    },
                    {"source_text": "no target", "source_id": "Q2", "source_dataset": "s"},
                ]
            )
        )

        with pytest.raises(ImportValidationError) as exc_info:
            import_pairs(store, campaign.campaign_id, path)

        assert exc_info.value.row == 2
        assert "target_text" in str(exc_info.value)
        assert store.list_pairs(campaign.campaign_id) == []

    def test_bad_confidence(self, store: ReviewStore, campaign: Campaign, tmp_path: Path) -> None:
        """Test confidence must be a number in [0, 1]."""
        record = {
            "source_text": "a",
            "source_id": "a",
            "source_dataset": "s",
            "target_text": "b",
            "target_id": "b",
            "target_dataset": "t",
            "llm_confidence": "high",
        }
        path = tmp_path / "conf.json"
        path.write_text(json.dumps([record]))

        with pytest.raises(ImportValidationError, match="not a number"):
            import_pairs(store, campaign.campaign_id, path)

    def test_unknown_campaign(self, store: ReviewStore, json_pairs: Path) -> None:
        """Test importing into a missing campaign."""
        with pytest.raises(NotFoundError):
            import_pairs(store, "missing", json_pairs)


class TestExportCampaign:
    """Tests for export_campaign."""

    def test_export(
        self,
        store: ReviewStore,
        campaign: Campaign,
        make_pair: Callable[..., Pair],
        cast: Callable[..., Vote],
        tmp_path: Path,
    ) -> None:
        """Test tallies, rates and consensus are written per pair."""
        voted = make_pair(pair_id="P-voted", llm_confidence=0.8)
        make_pair(pair_id="P-fresh")
        cast(voted.pair_id, "u1", "match")
        cast(voted.pair_id, "u2", "match")
        cast(voted.pair_id, "u3", "no_match")
        cast(voted.pair_id, "u4", "unsure")

        output = tmp_path / "out" / "results.csv"
        assert export_campaign(store, campaign.campaign_id, output) == 2

        with output.open(newline="") as f:
            rows = {row["pair_id"]: row for row in csv.DictReader(f)}

        assert rows["P-voted"]["vote_count"] == "4"
        assert rows["P-voted"]["positive_votes"] == "2"
        assert rows["P-voted"]["negative_votes"] == "1"
        assert rows["P-voted"]["unsure_votes"] == "1"
        assert rows["P-voted"]["positive_rate"] == "0.667"
        assert rows["P-voted"]["consensus"] == "match"
        assert rows["P-voted"]["llm_confidence"] == "0.8"
        assert rows["P-fresh"]["positive_rate"] == ""
        assert rows["P-fresh"]["consensus"] == ""
        assert rows["P-fresh"]["llm_confidence"] == ""

    def test_even_split_is_no_match(
        self,
        store: ReviewStore,
        campaign: Campaign,
        make_pair: Callable[..., Pair],
        cast: Callable[..., Vote],
        tmp_path: Path,
    ) -> None:
        """Test consensus needs a rate above one half."""
        pair = make_pair()
        cast(pair.pair_id, "u1", "match")
        cast(pair.pair_id, "u2", "no_match")

        output = tmp_path / "split.csv"
        export_campaign(store, campaign.campaign_id, output)

        with output.open(newline="") as f:
            row = next(csv.DictReader(f))
        assert row["consensus"] == "no_match"
        assert row["positive_rate"] == "0.5"

"""Tests for row sanitization and tag extraction."""

import pytest

from node_intake.ingestion.csv_parser import parse_csv_content
from node_intake.ingestion.validator import validate_rows
from node_intake.preprocessing import (
    calculate_confidence_score,
    extract_tags,
    normalize_website,
    parse_list_field,
    sanitize_entity_name,
    sanitize_node_name,
    sanitize_row,
    strip_corporate_suffixes,
)

from conftest import csv_text


class TestEntityName:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Cloudbeds Inc", "Cloudbeds"),
            ("SiteMinder Ltd.", "Siteminder"),
            ("hotel systems gmbh", "Hotel Systems"),
            ("www.siteminder.com", "Siteminder"),
            ("  Acme Corporation ", "Acme"),
        ],
    )
    def test_sanitize_entity_name(self, raw, expected):
        assert sanitize_entity_name(raw) == expected

    def test_suffix_inside_a_word_is_kept(self):
        # "ag" only as a trailing word
        assert strip_corporate_suffixes("travelag") == "travelag"

    def test_suffix_only_at_the_end(self):
        assert strip_corporate_suffixes("inc systems") == "inc systems"


def test_node_name_keeps_casing():
    assert sanitize_node_name("  RoomRaccoon PMS Ltd ") == "RoomRaccoon PMS"


class TestWebsite:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("https://www.Example.com/path/", "example.com"),
            ("http://cloudbeds.com", "cloudbeds.com"),
            ("www.siteminder.com/", "siteminder.com"),
            ("api.mews.com/v1/docs", "api.mews.com"),
        ],
    )
    def test_normalize_website(self, raw, expected):
        assert normalize_website(raw) == expected

    @pytest.mark.parametrize("raw", ["https://www.Example.com/path/", "HTTP://WWW.A.IO", "plain"])
    def test_normalize_is_idempotent(self, raw):
        once = normalize_website(raw)
        assert normalize_website(once) == once


def test_parse_list_field_mixed_separators():
    assert parse_list_field(" a; b |c,, ") == ["a", "b", "c"]
    assert parse_list_field("") == []
    assert parse_list_field(None) == []


class TestTags:
    def test_tech_count_and_connectivity(self):
        tags = extract_tags("Cloud PMS with REST API, 5000 hotels, integrates with siteminder")
        assert tags == ["pms", "api", "rest", "5000 hotels", "integrates with siteminder"]

    def test_word_boundaries(self):
        # "restaurant" must not produce "rest"
        assert extract_tags("restaurant software") == []

    def test_duplicates_removed(self):
        assert extract_tags("10 rooms and 10 rooms") == ["10 rooms"]

    def test_empty_notes(self):
        assert extract_tags("") == []
        assert extract_tags(None) == []


def _csv_row(**overrides) -> dict[str, str]:
    row = {
        "node_name": "Cloudbeds PMS",
        "website": "https://www.cloudbeds.com/",
        "entity_name": "Cloudbeds Inc",
        "node_category": "PMS",
        "direction": "Supply",
        "notes": "Cloud PMS, 5000 hotels",
        "connect_targets": "SiteMinder;Booking.com",
        "protocols_supported": "PushAPI,Bogus",
        "data_types_supported": "Availability|Rates|Nonsense",
    }
    row.update(overrides)
    return row


def test_sanitize_row():
    row = sanitize_row(_csv_row(), 2)
    assert row.row_number == 2
    assert row.entity_name == "Cloudbeds"
    assert row.node_name == "Cloudbeds PMS"
    assert row.website == "cloudbeds.com"
    assert row.connect_targets == ["SiteMinder", "Booking.com"]
    assert row.protocols_supported == ["PushAPI"]
    assert row.data_types_supported == ["Availability", "Rates"]
    assert row.extracted_tags == ["pms", "5000 hotels"]
    assert row.original_data == {
        "original_node_name": "Cloudbeds PMS",
        "original_entity_name": "Cloudbeds Inc",
        "original_website": "https://www.cloudbeds.com/",
    }
    assert row.potential_duplicates == []
    assert row.lookup_failed is False


class TestConfidenceScore:
    def test_clean_row_is_capped_at_one(self):
        row = sanitize_row(_csv_row(), 2)
        assert calculate_confidence_score(row) == 1.0

    def test_duplicates_lower_the_score(self):
        row = sanitize_row(_csv_row(notes="", website="localhost"), 2)
        row.potential_duplicates = ["ent-1"]
        # 1.0 - 0.3 (duplicate) + 0.1 (entity name)
        assert calculate_confidence_score(row) == pytest.approx(0.8)

    def test_score_stays_in_range(self):
        row = sanitize_row(_csv_row(entity_name="X", website="nodot", notes=""), 2)
        row.potential_duplicates = ["a", "b"]
        assert 0.0 <= calculate_confidence_score(row) <= 1.0


def test_parsed_row_end_to_end():
    content = csv_text(
        'Cloudbeds,https://cloudbeds.com,Cloudbeds Inc,PMS,Supply,"cloud PMS, 5000 hotels",'
        '"cloudbeds-cm","PushAPI|PullAPI","Availability|Rates"'
    )
    outcome = validate_rows(parse_csv_content(content))
    assert outcome.errors == []

    row_number, raw = outcome.valid_rows[0]
    row = sanitize_row(raw, row_number)
    assert row.entity_name == "Cloudbeds"
    assert row.website == "cloudbeds.com"
    assert row.protocols_supported == ["PushAPI", "PullAPI"]
    assert row.connect_targets == ["cloudbeds-cm"]
    assert "5000 hotels" in row.extracted_tags


def test_unknown_entity_gets_no_name_bonus():
    row = sanitize_row(_csv_row(entity_name="Unknown Vendor", notes="", website="nodot"), 2)
    assert calculate_confidence_score(row) == 1.0
    row.potential_duplicates = ["x"]
    assert calculate_confidence_score(row) == pytest.approx(0.7)

"""
Unit tests for the column mapping resolver.

Run with:
    python3 -m pytest claimflow/logics/test_column_mapping.py -v
"""

import pytest

from claimflow.logics.exceptions import ConfigurationError
from claimflow.logics.column_mapping import (
    ColumnMapping,
    col_letter_to_index,
    index_to_col_letter,
    resolve_column_mapping,
    letters_for_client,
)


def make_letters(**overrides):
    letters = {
        "cleanAge": "Q", "claimStatus": "I", "claimNumber": "C", "payer": "A", "networkStatus": "V",
        "dsnp": "Y", "claimType": "B", "totalCharges": "T", "notes": "AA",
    }
    letters.update(overrides)
    return letters


class TestColLetterToIndex:
    """Excel-style letters are a 1-indexed base-26 numbering."""

    @pytest.mark.parametrize("letter,expected", [
        ("A", 0), ("Z", 25), ("AA", 26), ("AZ", 51), ("BA", 52), ("ZZ", 701), ("AAA", 702),
    ])
    def test_known_letters(self, letter, expected):
        assert col_letter_to_index(letter) == expected

    def test_lowercase_and_whitespace_accepted(self):
        assert col_letter_to_index(" aa ") == 26

    @pytest.mark.parametrize("letter", ["", "   ", "A1", "1", "A-B", None])
    def test_invalid_letters_raise(self, letter):
        with pytest.raises(ValueError):
            col_letter_to_index(letter)

    @pytest.mark.parametrize("index", [0, 25, 26, 51, 52, 701, 702])
    def test_index_to_letter_inverse(self, index):
        assert col_letter_to_index(index_to_col_letter(index)) == index


class TestResolveColumnMapping:
    """Whole-mapping validation is all-or-nothing."""

    def test_resolves_all_fields(self):
        mapping = resolve_column_mapping(make_letters())

        assert isinstance(mapping, ColumnMapping)
        assert mapping.clean_age == 16
        assert mapping.claim_status == 8
        assert mapping.claim_number == 2
        assert mapping.notes == 26
        assert mapping.max_index() == 26

    def test_extra_keys_ignored(self):
        mapping = resolve_column_mapping(make_letters(dateCols="E,O,P", label="Clean Age (Q):"))
        assert mapping.total_charges == 19

    def test_missing_field_rejected(self):
        letters = make_letters()
        del letters["payer"]

        with pytest.raises(ConfigurationError) as exc_info:
            resolve_column_mapping(letters)

        assert exc_info.value.context["invalid_fields"]["payer"] == "missing"
        assert exc_info.value.http_status == 400

    def test_every_bad_field_reported(self):
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_column_mapping(make_letters(notes="", dsnp="Y2"))

        invalid = exc_info.value.context["invalid_fields"]
        assert set(invalid) == {"notes", "dsnp"}

    def test_header_width_checked(self):
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_column_mapping(make_letters(), header_width=20)

        invalid = exc_info.value.context["invalid_fields"]
        assert set(invalid) == {"network_status", "dsnp", "notes"}
        assert invalid["notes"] == "AA"

    def test_header_width_wide_enough(self):
        mapping = resolve_column_mapping(make_letters(), header_width=27)
        assert mapping.notes == 26


class TestLettersForClient:
    """Client presets and per-field overrides."""

    def test_preset_letters(self):
        letters = letters_for_client("liberty")

        assert letters["cleanAge"] == "R"
        assert "dateCols" not in letters
        assert "label" not in letters

    def test_client_key_case_insensitive(self):
        assert letters_for_client("CSH")["networkStatus"] == "U"

    def test_overrides_replace_preset(self):
        letters = letters_for_client("solis", {"notes": "AB", "payer": "", "unknown": "Z"})

        assert letters["notes"] == "AB"
        assert letters["payer"] == "A"
        assert "unknown" not in letters

    def test_unknown_client(self):
        with pytest.raises(ConfigurationError):
            letters_for_client("acme")

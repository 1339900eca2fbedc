"""
Unit tests for the claim classifier and the age bucket schemes.

Run with:
    python3 -m pytest claimflow/logics/test_claim_classifier.py -v
"""

import pytest

from claimflow.logics.column_mapping import ColumnMapping
from claimflow.logics.config.age_buckets import (
    CANONICAL_SCHEME,
    LEGACY_SCHEME,
    BUCKET_CRITICAL,
    BUCKET_PRIORITY,
    BUCKET_BACKLOG,
    BUCKET_QUEUE,
    BUCKET_UNKNOWN,
)
from claimflow.logics.config.note_categories import (
    CATEGORY_W9,
    CATEGORY_MANUAL_REVIEW,
    CATEGORY_ADJUDICATION_ERRORS,
    CATEGORY_HIGH_DOLLAR,
    CATEGORY_CONTRACT_PROVIDER,
    CATEGORY_SYSTEM_ACTIONS,
    CATEGORY_AUTH_DUPLICATE,
    CATEGORY_MISCELLANEOUS,
)
from claimflow.logics.claim_classifier import (
    cell_to_text,
    classify,
    classify_rows,
    derive_default_owner,
    get_dsnp_status,
    get_network_type,
    get_note_category,
    is_high_cost_claim,
    normalize_state,
    parse_clean_age,
    parse_currency,
    build_assignment_key,
)


# ============================================================================
# HELPERS
# ============================================================================

# Claim Number, Claim State, Clean Age, Payer, Network Status, DSNP, Claim Type, Total Charges, Notes
MAPPING = ColumnMapping(
    claim_number=0, claim_status=1, clean_age=2, payer=3, network_status=4,
    dsnp=5, claim_type=6, total_charges=7, notes=8,
)


def make_row(claim_number="C100", state="PEND", age=10, payer="Aetna", network="In Network",
             dsnp="DSNP", claim_type="Professional", charges="$100.00", note=""):
    return [claim_number, state, age, payer, network, dsnp, claim_type, charges, note]


# ============================================================================
# AGE BUCKETS
# ============================================================================

class TestAgeBuckets:
    """Canonical boundaries are 28-30 / 21-27 / 31+ / otherwise Queue."""

    @pytest.mark.parametrize("age,bucket", [
        (0, BUCKET_QUEUE), (20, BUCKET_QUEUE), (21, BUCKET_PRIORITY), (27, BUCKET_PRIORITY),
        (28, BUCKET_CRITICAL), (30, BUCKET_CRITICAL), (31, BUCKET_BACKLOG), (400, BUCKET_BACKLOG),
        (-2, BUCKET_QUEUE), (None, BUCKET_UNKNOWN),
    ])
    def test_canonical_boundaries(self, age, bucket):
        assert CANONICAL_SCHEME.bucket_for(age) == bucket

    def test_legacy_boundaries(self):
        assert LEGACY_SCHEME.bucket_for(29) == BUCKET_CRITICAL
        assert LEGACY_SCHEME.bucket_for(30) == BUCKET_BACKLOG

    def test_stat_labels(self):
        assert CANONICAL_SCHEME.stat_labels() == ["28-30", "21-27", "31+", "0-20"]
        assert LEGACY_SCHEME.stat_label(BUCKET_BACKLOG) == "30+"


# ============================================================================
# FIELD PARSING
# ============================================================================

class TestParseCleanAge:
    """Unknown ages are None, never zero."""

    @pytest.mark.parametrize("value,expected", [
        (12, 12), (27.0, 27), ("45", 45), (" 31 days", 31), ("0", 0),
        ("abc", None), ("", None), (None, None), (float("nan"), None),
    ])
    def test_parse(self, value, expected):
        assert parse_clean_age(value) == expected

    def test_unknown_age_lands_in_unknown_bucket(self):
        claim = classify(make_row(age="pending"), MAPPING)
        assert claim.clean_age is None
        assert claim.age_bucket == BUCKET_UNKNOWN


class TestParseCurrency:
    """Charges strip everything but digits, '.' and '-'."""

    @pytest.mark.parametrize("value,expected", [
        ("$3,500.00", 3500.0), ("N/A", 0.0), ("", 0.0), (None, 0.0),
        (1234.5, 1234.5), ("-$20.50", -20.5), ("USD 7,000", 7000.0),
    ])
    def test_parse(self, value, expected):
        assert parse_currency(value) == expected


class TestCellHelpers:

    def test_integral_float_drops_decimal(self):
        assert cell_to_text(100234.0) == "100234"

    def test_empty_values(self):
        assert cell_to_text(None) == ""
        assert cell_to_text("   ") == ""

    @pytest.mark.parametrize("raw,expected", [
        ("pend", "PEND"),
        ("  Management Review ", "MANAGEMENTREVIEW"),
        ("MANAGEMENT-REVIEW", "MANAGEMENTREVIEW"),
        ("OnHold", "ONHOLD"),
    ])
    def test_normalize_state(self, raw, expected):
        assert normalize_state(raw) == expected


class TestNetworkAndDsnp:

    def test_network_type(self):
        assert get_network_type("Out of Network") == "nonpar"
        assert get_network_type("out-of-network") == "nonpar"
        assert get_network_type("In Network") == "par"
        assert get_network_type(None) == "par"

    @pytest.mark.parametrize("value,expected", [
        ("NON DSNP", "NonDSNP"), ("Non DSNP Plan", "NonDSNP"), ("DSNP", "DSNP"),
        ("y", "DSNP"), ("N", ""), (None, ""),
    ])
    def test_dsnp_status(self, value, expected):
        assert get_dsnp_status(value) == expected


class TestNoteCategory:
    """First matching rule wins, case-insensitive."""

    @pytest.mark.parametrize("note,category", [
        ("W9 requested - due 5/1", CATEGORY_W9),
        ("w9 past due, auth missing", CATEGORY_W9),
        ("Hold for Rachael", CATEGORY_MANUAL_REVIEW),
        ("Move to PR per payer", CATEGORY_MANUAL_REVIEW),
        ("Error - wrong modifier", CATEGORY_ADJUDICATION_ERRORS),
        ("error-auth on file", CATEGORY_ADJUDICATION_ERRORS),
        ("Line priced incorrectly", CATEGORY_ADJUDICATION_ERRORS),
        ("Net pay > allowed", CATEGORY_HIGH_DOLLAR),
        ("Provider not found in system", CATEGORY_CONTRACT_PROVIDER),
        ("Rerun after fix", CATEGORY_SYSTEM_ACTIONS),
        ("Possible duplicate", CATEGORY_AUTH_DUPLICATE),
        ("Called provider", CATEGORY_MISCELLANEOUS),
        ("", CATEGORY_MISCELLANEOUS),
    ])
    def test_category(self, note, category):
        assert get_note_category(note) == category

    def test_error_prefix_only_at_start(self):
        assert get_note_category("see error - below") == CATEGORY_MISCELLANEOUS


# ============================================================================
# HIGH COST AND OWNERSHIP
# ============================================================================

class TestHighCost:

    def test_professional_threshold_is_strict(self):
        assert is_high_cost_claim("MANAGEMENTREVIEW", "PROFESSIONAL", 3500.01)
        assert not is_high_cost_claim("MANAGEMENTREVIEW", "PROFESSIONAL", 3500)

    def test_institutional_threshold(self):
        assert is_high_cost_claim("MANAGEMENT REVIEW", "INSTITUTIONAL", 6500.5)
        assert not is_high_cost_claim("MANAGEMENTREVIEW", "INSTITUTIONAL", 6000)

    def test_requires_management_review(self):
        assert not is_high_cost_claim("DENY", "PROFESSIONAL", 4000)
        assert not is_high_cost_claim("PEND", "INSTITUTIONAL", 90000)


class TestDefaultOwner:
    """Prior owner first, then state rules ending in a PV fallback."""

    def test_prior_owner_wins_over_rules(self):
        assert derive_default_owner("C123", "PEND", False, "Aetna", {"C123": "PV"}) == "PV"
        assert derive_default_owner("C123", "MANAGEMENTREVIEW", True, "", {"C123": "Sam"}) == "Sam"

    def test_empty_prior_owner_ignored(self):
        assert derive_default_owner("C1", "PEND", False, "", {"C1": ""}) == "Claims"

    @pytest.mark.parametrize("state,high_cost,expected", [
        ("MANAGEMENTREVIEW", True, "Claims"),
        ("MANAGEMENTREVIEW", False, "PV"),
        ("ONHOLD", False, "PV"),
        ("PEND", False, "Claims"),
        ("APPROVED", False, "Claims"),
        ("DENY", False, "Claims"),
        ("SUSPENDED", False, "PV"),
        ("", False, "PV"),
    ])
    def test_state_rules(self, state, high_cost, expected):
        assert derive_default_owner("C1", state, high_cost, "Aetna", None) == expected

    def test_payer_review_goes_to_payer(self):
        assert derive_default_owner("C1", "PR", False, "Humana", None) == "Humana"
        assert derive_default_owner("C1", "PR", False, "", None) == ""


# ============================================================================
# CLASSIFY
# ============================================================================

class TestClassify:

    def test_full_row(self):
        row = make_row(
            claim_number=100234.0, state=" management review ", age="29", payer="Aetna",
            network="Out of Network", dsnp="NON DSNP", claim_type="professional",
            charges="$4,000.00", note="  Contract rate missing  ",
        )
        claim = classify(row, MAPPING)

        assert claim.claim_number == "100234"
        assert claim.claim_state == "MANAGEMENTREVIEW"
        assert claim.clean_age == 29
        assert claim.age_bucket == BUCKET_CRITICAL
        assert claim.network_type == "nonpar"
        assert claim.dsnp_status == "NonDSNP"
        assert claim.claim_type == "PROFESSIONAL"
        assert claim.total_charges == 4000.0
        assert claim.note_text == "Contract rate missing"
        assert claim.note_category == CATEGORY_CONTRACT_PROVIDER
        assert claim.is_high_cost is True
        assert claim.default_owner == "Claims"
        assert claim.final_owner == claim.default_owner
        assert claim.owner_from_prior_day is False
        assert claim.original_row == tuple(row)

    @pytest.mark.parametrize("state", ["PREBATCH", " prebatch ", "Prebatch-Hold"])
    def test_prebatch_rows_skipped(self, state):
        assert classify(make_row(state=state), MAPPING) is None

    def test_empty_row_skipped(self):
        assert classify([None, "", "  ", None, None, None, None, None, None], MAPPING) is None

    def test_short_row_reads_missing_cells_as_empty(self):
        claim = classify(["C9", "PEND", 3], MAPPING)

        assert claim.note_text == ""
        assert claim.total_charges == 0.0
        assert claim.network_type == "par"

    def test_owner_continuity(self):
        claim = classify(make_row(claim_number="C123", state="PEND"), MAPPING, {"C123": "PV"})

        assert claim.default_owner == "PV"
        assert claim.owner_from_prior_day is True

    def test_assignment_key(self):
        assert classify(make_row(note=""), MAPPING).assignment_key == "PEND||No Note"
        assert classify(make_row(note="Auth"), MAPPING).assignment_key == "PEND||Auth"
        assert build_assignment_key("DENY", None) == "DENY||No Note"

    def test_legacy_scheme_bucket(self):
        claim = classify(make_row(age=30), MAPPING, scheme=LEGACY_SCHEME)
        assert claim.age_bucket == BUCKET_BACKLOG


class TestClassifyRows:

    def test_splits_prebatch_and_skips_empty(self):
        rows = [
            make_row(claim_number="C1"),
            make_row(claim_number="C2", state="PREBATCH"),
            [None] * 9,
            make_row(claim_number="C3", state="DENY"),
            make_row(claim_number="", state="PREBATCH"),
        ]
        result = classify_rows(rows, MAPPING)

        assert [c.claim_number for c in result.claims] == ["C1", "C3"]
        assert len(result.prebatch_rows) == 2
        assert result.prebatch_claim_numbers == {"C2"}
        assert result.empty_rows == 1

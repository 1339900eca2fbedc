"""
Unit tests for the Daily Action workbook.

Run with:
    python3 -m pytest claimflow/logics/test_workbook_builder.py -v
"""

from dataclasses import replace
from datetime import date
from io import BytesIO

import pytest
from openpyxl import load_workbook

from claimflow.logics.column_mapping import ColumnMapping
from claimflow.logics.config.age_buckets import BUCKET_ORDER, BUCKET_UNKNOWN, CANONICAL_SCHEME, LEGACY_SCHEME
from claimflow.logics.claim_run import start_run, finalize_run
from claimflow.logics.workbook_builder import (
    COVER_SHEET,
    HIGH_DOLLAR_SHEET,
    MASTER_SHEET,
    PREBATCH_SHEET,
    ASSIGNMENT_SHEET,
    W9_FOLLOW_UP,
    W9_LETTER_NEEDED,
    W9_RECEIVED,
    build_assignment_workbook,
    build_daily_action_workbook,
    build_prebatch_workbook,
    breakout_tab_for,
    breakout_tab_name,
    bucket_tab_label,
    get_formatted_date,
    plan_daily_action_workbook,
    sanitize_sheet_name,
    w9_tab_for,
)


MAPPING = ColumnMapping(
    claim_number=0, claim_status=1, clean_age=2, payer=3, network_status=4,
    dsnp=5, claim_type=6, total_charges=7, notes=8,
)
HEADER = [
    "Claim Number", "Claim State", "Clean Age", "Payer", "Network Status",
    "DSNP", "Claim Type", "Total Charges", "Notes",
]

CRITICAL_PEND_TAB = "CRITICAL (28-30d) Par Pend DSNP"
BACKLOG_ONHOLD_TAB = "Backlog (31+d) Par OnHold DSNP"
QUEUE_DENY_TAB = "Queue (0-20d) Par Deny DSNP"
PRIORITY_MGMT_TAB = "PRIORITY NonPar MgmtRev NDSNP"


def row(claim_number, state, age, network="In Network", dsnp="DSNP", claim_type="PROFESSIONAL",
        charges="100", note=""):
    return [claim_number, state, age, "Aetna", network, dsnp, claim_type, charges, note]


@pytest.fixture
def run():
    rows = [
        HEADER,
        row("C1", "PEND", 29),
        row("C2", "PEND", 28),
        row("C3", "MANAGEMENT REVIEW", 22, network="Out of Network", dsnp="NON DSNP", charges="$5,000"),
        row("C4", "ONHOLD", 40, note="W9 req sent 5/1"),
        row("C5", "DENY", 5),
        row("C6", "PEND", "?"),
        row("C7", "PR", 10, dsnp=""),
        row("C8", "APPROVED", 29),
        row("C9", "PREBATCH", 3),
    ]
    return finalize_run(start_run(rows, MAPPING, client="solis"))


def plan_for(run, owner_filter=None):
    return plan_daily_action_workbook(
        run.claims, run.output_header, "Solis Daily Action Report",
        owner_filter=owner_filter, report_date=date(2026, 10, 19),
    )


class TestHelpers:

    @pytest.mark.parametrize("day,expected", [
        (date(2026, 10, 1), "1st Oct 2026"),
        (date(2026, 10, 2), "2nd Oct 2026"),
        (date(2026, 10, 3), "3rd Oct 2026"),
        (date(2026, 10, 11), "11th Oct 2026"),
        (date(2026, 10, 12), "12th Oct 2026"),
        (date(2026, 10, 22), "22nd Oct 2026"),
        (date(2026, 10, 19), "19th Oct 2026"),
    ])
    def test_formatted_date(self, day, expected):
        assert get_formatted_date(day) == expected

    def test_sanitize_sheet_name(self):
        assert sanitize_sheet_name("A/B:C*D?[E]") == "ABCDE"
        assert len(sanitize_sheet_name("X" * 40)) == 31

    @pytest.mark.parametrize("note,expected", [
        ("W9 req sent", (W9_FOLLOW_UP, "Claims")),
        ("W9 denied by provider", (W9_LETTER_NEEDED, "PV")),
        ("w9 missing", (W9_LETTER_NEEDED, "PV")),
        ("W9 received, reprocess", (W9_RECEIVED, "Claims")),
        ("W9 on file", None),
        ("Auth missing", None),
    ])
    def test_w9_tab(self, note, expected):
        assert w9_tab_for(note) == expected


class TestBreakoutTabs:

    def test_dsnp_split_survives_name_limit(self, run):
        claim = next(c for c in run.claims if c.claim_number == "C4")
        dsnp = replace(claim, clean_age=29, network_type="nonpar", dsnp_status="DSNP")
        non_dsnp = replace(dsnp, dsnp_status="NonDSNP")

        dsnp_tab = breakout_tab_for(dsnp)
        non_dsnp_tab = breakout_tab_for(non_dsnp)

        assert dsnp_tab == ("CRITICAL NonPar OnHold DSNP", "PV", 1)
        assert non_dsnp_tab == ("CRITICAL NonPar OnHold NDSNP", "PV", 1)

    def test_short_names_kept_whole(self):
        assert breakout_tab_name("Queue (0-20d)", "Queue", "Par", "Deny", "NonDSNP") == "Queue (0-20d) Par Deny NonDSNP"
        assert breakout_tab_name("CRITICAL (28-30d)", "Critical", "Par", "Pend", "NonDSNP") == "CRITICAL (28-30d) Par Pend NDSNP"

    @pytest.mark.parametrize("scheme", [CANONICAL_SCHEME, LEGACY_SCHEME])
    def test_every_combination_distinct(self, scheme):
        names = set()
        combos = 0
        for bucket in BUCKET_ORDER:
            if bucket == BUCKET_UNKNOWN:
                continue
            label = bucket_tab_label(bucket, scheme)
            for network in ("Par", "NonPar"):
                for status in ("MgmtRev", "OnHold", "Pend", "Deny", "PayerRev"):
                    for dsnp in ("DSNP", "NonDSNP"):
                        name = breakout_tab_name(label, bucket, network, status, dsnp)
                        assert len(name) <= 31
                        names.add(name)
                        combos += 1

        assert len(names) == combos


class TestPlanDailyActionWorkbook:

    def test_full_report_sheet_order(self, run):
        plan = plan_for(run)

        assert plan.sheet_names == [
            COVER_SHEET,
            HIGH_DOLLAR_SHEET,
            CRITICAL_PEND_TAB,
            BACKLOG_ONHOLD_TAB,
            QUEUE_DENY_TAB,
            W9_FOLLOW_UP,
            MASTER_SHEET,
        ]

    def test_tab_contents(self, run):
        plan = plan_for(run)

        assert plan.sheets[CRITICAL_PEND_TAB][0] == run.output_header
        assert [r[0] for r in plan.sheets[CRITICAL_PEND_TAB][1:]] == ["C1", "C2"]
        assert [r[0] for r in plan.sheets[HIGH_DOLLAR_SHEET][1:]] == ["C3"]
        assert [r[0] for r in plan.sheets[W9_FOLLOW_UP][1:]] == ["C4"]
        # prebatch rows are not part of the processed data
        assert len(plan.sheets[MASTER_SHEET]) == 9

    def test_high_cost_claim_not_in_breakout(self, run):
        plan = plan_for(run)
        assert PRIORITY_MGMT_TAB not in plan.sheets

    def test_pv_filter(self, run):
        plan = plan_for(run, owner_filter="PV")

        assert HIGH_DOLLAR_SHEET not in plan.sheets
        assert PRIORITY_MGMT_TAB in plan.sheets
        assert QUEUE_DENY_TAB not in plan.sheets

    def test_claims_filter_drops_queue_and_other_owner_index(self, run):
        plan = plan_for(run, owner_filter="Claims")

        assert QUEUE_DENY_TAB not in plan.sheets
        indexed = [r[0] for r in plan.sheets[COVER_SHEET] if r and r[0] in plan.sheets]
        assert CRITICAL_PEND_TAB in indexed
        assert W9_FOLLOW_UP in indexed
        assert BACKLOG_ONHOLD_TAB not in indexed

    def test_cover_page(self, run):
        cover = plan_for(run).sheets[COVER_SHEET]

        assert cover[0] == ["Solis Daily Action Report"]
        assert cover[1] == ["Date: 19th Oct 2026"]
        assert cover[5] == ["Par Claims", 3, 0, 1, 2, 7]
        assert cover[6] == ["Non-Par Claims", 0, 1, 0, 0, 1]
        assert [CRITICAL_PEND_TAB, 2, "PV (0) Claims (2)"] in cover
        assert [BACKLOG_ONHOLD_TAB, 1, "PV (1) Claims (0)"] in cover

    def test_tab_metadata(self, run):
        metadata = plan_for(run).tab_metadata

        assert metadata[CRITICAL_PEND_TAB] == {"owner": "Claims", "priority": 1}
        assert metadata[BACKLOG_ONHOLD_TAB] == {"owner": "PV", "priority": 3}
        assert metadata[W9_FOLLOW_UP]["priority"] == 5


class TestWriteWorkbooks:

    def test_daily_action_workbook(self, run):
        output = build_daily_action_workbook(run.claims, run.output_header, "Solis Daily Action Report")
        wb = load_workbook(output)

        assert wb.sheetnames == plan_for(run).sheet_names
        ws = wb[CRITICAL_PEND_TAB]
        assert ws.auto_filter.ref == ws.dimensions
        assert ws["A1"].value == "Claim Number"
        assert ws["A1"].font.bold
        assert ws["A2"].value == "C1"
        assert wb[COVER_SHEET]["A1"].value == "Solis Daily Action Report"

    def test_prebatch_workbook(self, run):
        wb = load_workbook(build_prebatch_workbook(run.header, run.prebatch_rows))

        ws = wb[PREBATCH_SHEET]
        assert [c.value for c in ws[1]] == HEADER
        assert ws["A2"].value == "C9"
        assert ws.max_row == 2

    def test_assignment_workbook(self):
        records = [{
            "Note Category": "W9 Form Management",
            "Claim State": "ONHOLD",
            "Note / Edit Text": "W9 req sent 5/1",
            "Claim Count": 1,
            "Default Assignment": "PV",
            "Assign To (Claims or PV)": "",
        }]
        wb = load_workbook(BytesIO(build_assignment_workbook(records).getvalue()))

        ws = wb[ASSIGNMENT_SHEET]
        assert ws["A1"].value == "Note Category"
        assert ws["C2"].value == "W9 req sent 5/1"
        assert ws["D2"].value == 1

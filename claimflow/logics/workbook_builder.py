"""
Daily Action workbook generation.

Lays out the multi-tab report (cover page, high-dollar tab, prioritized breakout
tabs, W9 task tabs and the full processed data) and writes it with openpyxl.
Sheet planning is kept separate from writing so the layout can be inspected
without producing a file.
"""

import re
import logging
from dataclasses import dataclass, field
from datetime import date
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from claimflow.logics.config.age_buckets import (
    AgeBucketScheme,
    CANONICAL_SCHEME,
    BUCKET_CRITICAL,
    BUCKET_PRIORITY,
    BUCKET_BACKLOG,
    BUCKET_QUEUE,
    BUCKET_UNKNOWN,
)
from claimflow.logics.claim_classifier import (
    ClassifiedClaim,
    NETWORK_PAR,
    NON_DSNP,
    OWNER_CLAIMS,
    OWNER_PV,
    STATE_MANAGEMENT_REVIEW,
    STATE_ONHOLD,
    STATE_PEND,
    STATE_DENY,
    STATE_PR,
)
from claimflow.logics.assignment_overlay import ASSIGNMENT_TEMPLATE_COLUMNS

logger = logging.getLogger(__name__)

COVER_SHEET = "Cover Page"
HIGH_DOLLAR_SHEET = "High Dollar"
MASTER_SHEET = "All Processed Data"
PREBATCH_SHEET = "Prebatch Claims"
ASSIGNMENT_SHEET = "Assignments"

W9_FOLLOW_UP = "W9 Follow-Up"
W9_LETTER_NEEDED = "W9 Letter Needed"
W9_RECEIVED = "W9 Received - Reprocess"

# Breakout tab priority levels
PRIORITY_LEVELS = {BUCKET_CRITICAL: 1, BUCKET_PRIORITY: 2, BUCKET_BACKLOG: 3, BUCKET_QUEUE: 4}
W9_PRIORITY = 5

MAX_SHEET_NAME = 31
_INVALID_SHEET_CHARS = re.compile(r"[\\/?*\[\]:]")

# state -> (tab fragment, tab owner)
STATUS_TABS = {
    STATE_MANAGEMENT_REVIEW: ("MgmtRev", OWNER_PV),
    STATE_ONHOLD: ("OnHold", OWNER_PV),
    STATE_PEND: ("Pend", OWNER_CLAIMS),
    STATE_DENY: ("Deny", OWNER_CLAIMS),
    STATE_PR: ("PayerRev", OWNER_CLAIMS),
}

# short NonDSNP suffix, used only when the full tab name is too long
SHORT_NON_DSNP = "NDSNP"

BUCKET_TAB_NAMES = {
    BUCKET_CRITICAL: "CRITICAL",
    BUCKET_PRIORITY: "PRIORITY",
    BUCKET_BACKLOG: "Backlog",
    BUCKET_QUEUE: "Queue",
}


def get_formatted_date(day: Optional[date] = None) -> str:
    """'19th Oct 2026' style date used in report titles and file names."""
    day = day or date.today()
    n = day.day
    if n % 10 == 1 and n != 11:
        suffix = "st"
    elif n % 10 == 2 and n != 12:
        suffix = "nd"
    elif n % 10 == 3 and n != 13:
        suffix = "rd"
    else:
        suffix = "th"
    return f"{n}{suffix} {day.strftime('%b')} {day.year}"


def sanitize_sheet_name(name: str) -> str:
    return _INVALID_SHEET_CHARS.sub("", name)[:MAX_SHEET_NAME]


def bucket_tab_label(bucket: str, scheme: AgeBucketScheme = CANONICAL_SCHEME) -> str:
    """E.g. 'CRITICAL (28-30d)' or 'Backlog (31+d)'."""
    return f"{BUCKET_TAB_NAMES[bucket]} ({scheme.stat_label(bucket)}d)"


def breakout_tab_name(bucket_label: str, bucket: str, network: str, status_tab: str, dsnp_status: str) -> str:
    """
    Breakout tab name that fits Excel's 31 character limit without losing any part.

    Falls back to 'NDSNP' for NonDSNP, then drops the age range from the
    bucket label. Every (bucket, network, status, DSNP) combination keeps a
    distinct name.
    """
    short_dsnp = SHORT_NON_DSNP if dsnp_status == NON_DSNP else dsnp_status
    candidates = [
        f"{bucket_label} {network} {status_tab} {dsnp_status}",
        f"{bucket_label} {network} {status_tab} {short_dsnp}",
        f"{BUCKET_TAB_NAMES[bucket]} {network} {status_tab} {short_dsnp}",
    ]
    for name in candidates:
        name = _INVALID_SHEET_CHARS.sub("", name)
        if len(name) <= MAX_SHEET_NAME:
            return name
    return sanitize_sheet_name(candidates[-1])


def breakout_tab_for(claim: ClassifiedClaim, scheme: AgeBucketScheme = CANONICAL_SCHEME) -> Optional[Tuple[str, str, int]]:
    """(tab name, tab owner, priority level) for a claim, or None when it has no breakout tab."""
    status = STATUS_TABS.get(claim.claim_state)
    if status is None or not claim.dsnp_status:
        return None
    bucket = scheme.bucket_for(claim.clean_age)
    if bucket == BUCKET_UNKNOWN:
        return None
    status_tab, tab_owner = status
    network = "Par" if claim.network_type == NETWORK_PAR else "NonPar"
    name = breakout_tab_name(bucket_tab_label(bucket, scheme), bucket, network, status_tab, claim.dsnp_status)
    return name, tab_owner, PRIORITY_LEVELS[bucket]


def w9_tab_for(note_text: str) -> Optional[Tuple[str, str]]:
    """(tab name, owner) for W9 task notes, or None."""
    note_lower = (note_text or "").lower()
    if "w9" not in note_lower:
        return None
    if "req" in note_lower:
        return W9_FOLLOW_UP, OWNER_CLAIMS
    if "denied" in note_lower or "missing" in note_lower:
        return W9_LETTER_NEEDED, OWNER_PV
    if "received" in note_lower or "reprocess" in note_lower:
        return W9_RECEIVED, OWNER_CLAIMS
    return None


@dataclass
class WorkbookPlan:
    """Ordered sheet name -> rows (header row first on data sheets)."""
    sheets: Dict[str, List[List[Any]]] = field(default_factory=dict)
    tab_metadata: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def sheet_names(self) -> List[str]:
        return list(self.sheets.keys())


def _overall_summary(claims: Sequence[ClassifiedClaim], scheme: AgeBucketScheme) -> Dict[str, Dict[str, int]]:
    summary = {}
    for network in ("par", "nonpar"):
        summary[network] = {label: 0 for label in scheme.stat_labels()}
        summary[network]["total"] = 0
    for claim in claims:
        block = summary[claim.network_type]
        block["total"] += 1
        bucket = scheme.bucket_for(claim.clean_age)
        if bucket != BUCKET_UNKNOWN:
            block[scheme.stat_label(bucket)] += 1
    return summary


def plan_daily_action_workbook(
    claims: Sequence[ClassifiedClaim],
    output_header: Sequence[Any],
    report_title: str,
    owner_filter: Optional[str] = None,
    report_date: Optional[date] = None,
    scheme: AgeBucketScheme = CANONICAL_SCHEME
) -> WorkbookPlan:
    """
    Decide which sheets the Daily Action report has and what goes in them.

    Args:
        claims: Classified claims with processed rows and final owners
        output_header: Header matching processed_row
        report_title: Title on the cover page
        owner_filter: 'PV' or 'Claims' for a team-specific report; Queue tabs are dropped
        report_date: Date printed on the cover page (today by default)
        scheme: Bucket boundaries for tab names and the summary
    """
    header = list(output_header)
    tabs: Dict[str, List[List[Any]]] = {}
    metadata: Dict[str, Dict[str, Any]] = {}
    master = [header]
    high_dollar = [header]

    for claim in claims:
        master.append(claim.processed_row)
        if claim.is_high_cost and owner_filter != OWNER_PV:
            high_dollar.append(claim.processed_row)

        breakout = breakout_tab_for(claim, scheme)
        if breakout and (owner_filter == OWNER_PV or not claim.is_high_cost):
            name, tab_owner, priority = breakout
            if not (owner_filter and priority == PRIORITY_LEVELS[BUCKET_QUEUE]):
                if name not in tabs:
                    tabs[name] = [header]
                    metadata[name] = {"owner": tab_owner, "priority": priority}
                tabs[name].append(claim.processed_row)

        w9 = w9_tab_for(claim.note_text)
        if w9:
            name, tab_owner = w9
            if name not in tabs:
                tabs[name] = [header]
                metadata[name] = {"owner": tab_owner, "priority": W9_PRIORITY}
            tabs[name].append(claim.processed_row)

    summary = _overall_summary(claims, scheme)
    labels = scheme.stat_labels()
    cover: List[List[Any]] = [
        [report_title],
        [f"Date: {get_formatted_date(report_date)}"],
        [],
        ["Overall Claim Summary"],
        ["Category"]
        + [f"{labels[i]} Days ({name})" for i, name in enumerate(["Critical", "Priority", "Backlog", "Queue"])]
        + ["Total Active Claims"],
        ["Par Claims"] + [summary["par"][label] for label in labels] + [summary["par"]["total"]],
        ["Non-Par Claims"] + [summary["nonpar"][label] for label in labels] + [summary["nonpar"]["total"]],
        [],
        [f"Core Strategy: Focus on claims nearing the {scheme.critical_max}-day threshold. "
         f"Work tabs in priority order."],
        [],
    ]

    sections = [
        (f"Priority 1: CRITICAL ({labels[0]} days)", 1),
        (f"Priority 2: PRIORITY ({labels[1]} days)", 2),
        (f"Priority 3: Backlog ({labels[2]} days)", 3),
        ("W9 and Other Tasks", W9_PRIORITY),
    ]
    for title, priority in sections:
        section_tabs = sorted(
            name for name, meta in metadata.items()
            if meta["priority"] == priority and (not owner_filter or meta["owner"] == owner_filter)
        )
        if not section_tabs:
            continue
        cover.append([title])
        cover.append(["Tab Name", "Claim Count", "Assigned Owner"])
        for name in section_tabs:
            rows = tabs[name][1:]
            pv_count = sum(1 for row in rows if row[-1] == OWNER_PV)
            claims_count = sum(1 for row in rows if row[-1] == OWNER_CLAIMS)
            cover.append([name, len(rows), f"PV ({pv_count}) Claims ({claims_count})"])
        cover.append([])

    plan = WorkbookPlan(tab_metadata=metadata)
    plan.sheets[COVER_SHEET] = cover
    if owner_filter != OWNER_PV and len(high_dollar) > 1:
        plan.sheets[HIGH_DOLLAR_SHEET] = high_dollar
    for name in sorted(tabs, key=lambda n: (metadata[n]["priority"], n)):
        if len(tabs[name]) > 1:
            plan.sheets[name] = tabs[name]
    if len(master) > 1:
        plan.sheets[MASTER_SHEET] = master

    logger.info(f"[Workbook] Planned {len(plan.sheets)} sheets for '{report_title}' (owner filter: {owner_filter})")
    return plan


def write_workbook(sheets: Dict[str, List[List[Any]]], cover_sheet: Optional[str] = COVER_SHEET) -> BytesIO:
    """
    Write sheets of raw rows to an xlsx stream.

    Data sheets get an autofilter over their used range; the cover sheet gets
    wider columns and a bold title.
    """
    output = BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        for sheet_name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, index=False, header=False)
            ws = writer.sheets[sheet_name]
            if sheet_name == cover_sheet:
                for col_idx, width in enumerate([35, 20, 22], start=1):
                    ws.column_dimensions[get_column_letter(col_idx)].width = width
                ws["A1"].font = Font(bold=True, size=14)
            elif len(rows) > 1:
                ws.auto_filter.ref = ws.dimensions
                for cell in ws[1]:
                    cell.font = Font(bold=True)
    output.seek(0)
    return output


def build_daily_action_workbook(
    claims: Sequence[ClassifiedClaim],
    output_header: Sequence[Any],
    report_title: str,
    owner_filter: Optional[str] = None,
    report_date: Optional[date] = None,
    scheme: AgeBucketScheme = CANONICAL_SCHEME
) -> BytesIO:
    plan = plan_daily_action_workbook(claims, output_header, report_title, owner_filter, report_date, scheme)
    return write_workbook(plan.sheets)


def build_prebatch_workbook(header: Sequence[Any], prebatch_rows: Sequence[Sequence[Any]]) -> BytesIO:
    rows = [list(header)] + [list(row) for row in prebatch_rows]
    return write_workbook({PREBATCH_SHEET: rows}, cover_sheet=None)


def build_assignment_workbook(worksheet_rows: Sequence[Dict[str, Any]]) -> BytesIO:
    """Assignment worksheet the user fills in and uploads back."""
    rows = [list(ASSIGNMENT_TEMPLATE_COLUMNS)]
    for record in worksheet_rows:
        rows.append([record.get(column, "") for column in ASSIGNMENT_TEMPLATE_COLUMNS])
    return write_workbook({ASSIGNMENT_SHEET: rows}, cover_sheet=None)

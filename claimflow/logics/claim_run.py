"""
Claim processing run.

A ClaimRun is the explicit context of one report run. Stage one (start_run)
classifies today's export and loads the optional snapshot; stage two
(finalize_run) applies the user's assignment overrides and runs the day-over-day
movement analysis. Each stage takes the context and returns it.
"""

import uuid
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from claimflow.logics.exceptions import SchemaError
from claimflow.logics.config.age_buckets import AgeBucketScheme, CANONICAL_SCHEME
from claimflow.logics.config.note_categories import CATEGORY_MISCELLANEOUS
from claimflow.logics.column_mapping import ColumnMapping
from claimflow.logics.claim_classifier import (
    ClassifiedClaim,
    cell_at,
    cell_to_text,
    classify_rows,
    parse_currency,
)
from claimflow.logics.snapshot_loader import YesterdaySnapshot, load_snapshot, OWNER_HEADER
from claimflow.logics.assignment_overlay import apply_assignments
from claimflow.logics.cohort_movement import MovementAnalysis, analyze_movement
from claimflow.logics.report_metrics import (
    KpiSummary,
    calculate_kpis,
    calculate_cycle_time_metrics,
    calculate_today_stats,
    get_approaching_critical,
    build_summary_points,
    build_flow_chart_series,
    build_pend_composition,
    build_critical_outcomes,
    build_cohort_tables,
)

logger = logging.getLogger(__name__)

YESTERDAY_STATE_HEADER = "Yesterday's Claim State"
ROOT_CAUSE_HEADER = "Root Cause"
NEW_CLAIM_STATE = "NEW"

# Note-column sanity check
NOTE_WARNING_MIN_NOTES = 10
NOTE_WARNING_MISC_SHARE = 0.9


@dataclass
class ClaimRun:
    """Everything one report run knows; replaces shared module state."""
    mapping: ColumnMapping
    header: List[Any]
    claims: List[ClassifiedClaim]
    prebatch_rows: List[tuple]
    prebatch_claim_numbers: set
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    client: str = ""
    column_letters: Dict[str, str] = field(default_factory=dict)
    scheme: AgeBucketScheme = CANONICAL_SCHEME
    snapshot: Optional[YesterdaySnapshot] = None
    snapshot_error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    output_header: List[Any] = field(default_factory=list)
    assignment_map: Dict[str, str] = field(default_factory=dict)
    assignments_accepted: int = 0
    assignments_rejected: int = 0
    movement: Optional[MovementAnalysis] = None
    kpis: Optional[KpiSummary] = None
    finalized: bool = False
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def has_snapshot(self) -> bool:
        return self.snapshot is not None

    def prebatch_charges(self) -> Dict[str, float]:
        charges = {}
        for row in self.prebatch_rows:
            claim_number = cell_to_text(cell_at(row, self.mapping.claim_number)).strip()
            if claim_number:
                charges[claim_number] = parse_currency(cell_at(row, self.mapping.total_charges))
        return charges

    def summary(self) -> Dict[str, Any]:
        data = {
            "run_id": self.run_id,
            "client": self.client,
            "created_at": self.created_at,
            "claims_processed": len(self.claims),
            "prebatch_claims": len(self.prebatch_rows),
            "has_yesterday_file": self.has_snapshot,
            "snapshot_error": self.snapshot_error,
            "warnings": list(self.warnings),
            "finalized": self.finalized,
        }
        if self.finalized:
            data["assignments"] = {
                "accepted": self.assignments_accepted,
                "rejected": self.assignments_rejected,
            }
        return data


def build_output_header(header: Sequence[Any], mapping: ColumnMapping, with_yesterday: bool) -> List[Any]:
    output = list(header)
    if with_yesterday:
        output.insert(mapping.claim_status, YESTERDAY_STATE_HEADER)
    output.extend([ROOT_CAUSE_HEADER, OWNER_HEADER])
    return output


def build_processed_row(
    claim: ClassifiedClaim,
    mapping: ColumnMapping,
    width: int,
    snapshot: Optional[YesterdaySnapshot]
) -> List[Any]:
    """Original row padded or cut to the header width, plus yesterday's state, root cause and owner."""
    row = (list(claim.original_row) + [None] * max(0, width - len(claim.original_row)))[:width]
    if snapshot is not None:
        entry = snapshot.get(claim.claim_number)
        row.insert(mapping.claim_status, entry.state if entry and entry.state else NEW_CLAIM_STATE)
    row.extend([claim.note_category, claim.final_owner])
    return row


def check_note_column(claims: Sequence[ClassifiedClaim], notes_letter: str = "") -> Optional[str]:
    """Warn when nearly every note is Miscellaneous, which usually means a wrong notes column."""
    with_notes = [claim for claim in claims if claim.note_text]
    if len(with_notes) <= NOTE_WARNING_MIN_NOTES:
        return None
    misc = sum(1 for claim in with_notes if claim.note_category == CATEGORY_MISCELLANEOUS)
    if misc / len(with_notes) <= NOTE_WARNING_MISC_SHARE:
        return None
    column = f" (currently set to column '{notes_letter.upper()}')" if notes_letter else ""
    return (
        f"Warning: Over 90% of notes were categorized as '{CATEGORY_MISCELLANEOUS}'. This often means "
        f"the configured notes column{column} is incorrect for this report. "
        f"Please verify all column configurations."
    )


def start_run(
    today_rows: Sequence[Sequence[Any]],
    mapping: ColumnMapping,
    snapshot_rows: Optional[Sequence[Sequence[Any]]] = None,
    client: str = "",
    column_letters: Optional[Mapping[str, str]] = None,
    scheme: AgeBucketScheme = CANONICAL_SCHEME,
    snapshot_error: Optional[str] = None
) -> ClaimRun:
    """
    Stage one: classify today's export and prepare processed rows.

    A snapshot with a bad schema does not stop the run; its error is recorded and
    the run continues without day-over-day comparison.
    snapshot_error carries a failure from reading the prior-day file, which
    likewise leaves the run without a snapshot.

    Raises:
        ConfigurationError: If the mapping does not fit today's header
    """
    header = list(today_rows[0]) if today_rows else []
    mapping.validate_width(len(header))

    snapshot = None
    if snapshot_error:
        logger.warning(f"[ClaimRun] Continuing without yesterday comparison: {snapshot_error}")
    elif snapshot_rows is not None:
        try:
            snapshot = load_snapshot(snapshot_rows, scheme)
        except SchemaError as e:
            logger.warning(f"[ClaimRun] Continuing without yesterday comparison: {e.message}")
            snapshot_error = e.message

    prior_owners = snapshot.owner_lookup() if snapshot else None
    result = classify_rows(today_rows[1:], mapping, prior_owners, scheme)

    run = ClaimRun(
        mapping=mapping,
        header=header,
        claims=result.claims,
        prebatch_rows=result.prebatch_rows,
        prebatch_claim_numbers=result.prebatch_claim_numbers,
        client=client,
        column_letters=dict(column_letters or {}),
        scheme=scheme,
        snapshot=snapshot,
        snapshot_error=snapshot_error,
    )
    run.output_header = build_output_header(header, mapping, run.has_snapshot)
    for claim in run.claims:
        claim.processed_row = build_processed_row(claim, mapping, len(header), snapshot)

    warning = check_note_column(run.claims, run.column_letters.get("notes", ""))
    if warning:
        logger.warning(f"[ClaimRun] {warning}")
        run.warnings.append(warning)

    logger.info(f"[ClaimRun] Started run {run.run_id}: {run.summary()}")
    return run


def finalize_run(
    run: ClaimRun,
    assignment_map: Optional[Mapping[str, str]] = None,
    accepted: int = 0,
    rejected: int = 0,
    should_cancel: Optional[Callable[[], bool]] = None
) -> ClaimRun:
    """
    Stage two: apply assignment overrides and, with a snapshot, analyze movement.

    Re-finalizing with the same map gives the same result.
    """
    run.assignment_map = dict(assignment_map or {})
    run.assignments_accepted = accepted
    run.assignments_rejected = rejected
    apply_assignments(run.claims, run.assignment_map)

    if run.snapshot is not None:
        run.movement = analyze_movement(
            run.snapshot,
            run.claims,
            run.prebatch_claim_numbers,
            scheme=run.scheme,
            should_cancel=should_cancel,
        )
        run.kpis = calculate_kpis(run.claims, run.snapshot, run.movement, run.prebatch_charges(), run.scheme)
    else:
        run.movement = None
        run.kpis = None

    run.finalized = True
    logger.info(f"[ClaimRun] Finalized run {run.run_id}")
    return run


def build_run_report(run: ClaimRun) -> Dict[str, Any]:
    """JSON-ready numbers for the report layer (stats, KPIs, cycle times, movement)."""
    report = {
        "summary": run.summary(),
        "today_stats": calculate_today_stats(run.claims, run.scheme),
        "cycle_time": calculate_cycle_time_metrics(run.claims),
        "approaching_critical": [claim.claim_number for claim in get_approaching_critical(run.claims)],
    }
    if run.snapshot is not None:
        report["yesterday_stats"] = run.snapshot.stats
    if run.kpis is not None:
        report["kpis"] = run.kpis.to_dict()
        report["kpi_tiles"] = run.kpis.tiles()
        report["summary_points"] = build_summary_points(run.kpis, run.scheme)
    if run.movement is not None:
        report["movement"] = run.movement.to_dict()
        report["flow_chart"] = build_flow_chart_series(run.movement)
        report["pend_composition"] = build_pend_composition(run.movement)
        report["critical_outcomes"] = build_critical_outcomes(run.movement)
        report["cohort_tables"] = build_cohort_tables(run.movement)
    return report

"""
Report metrics for the daily claim-flow analysis.

Turns the classified claims, yesterday's snapshot and the cohort movement analysis
into the numbers the report layer shows: day-over-day stats, KPI tiles, cycle-time
performance, summary-of-findings sentences and the series behind the flow charts
and cohort tables. Rendering is left to the caller.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Mapping, Optional, Sequence

from claimflow.logics.config.age_buckets import (
    AgeBucketScheme,
    CANONICAL_SCHEME,
    APPROACHING_CRITICAL_AGE,
    BUCKET_CRITICAL,
    BUCKET_PRIORITY,
    BUCKET_BACKLOG,
    BUCKET_QUEUE,
)
from claimflow.logics.claim_classifier import (
    ClassifiedClaim,
    normalize_state,
    NETWORK_NONPAR,
    STATE_PEND,
    STATE_DENY,
    STATE_APPROVED,
    STATE_PR,
)
from claimflow.logics.snapshot_loader import YesterdaySnapshot, calculate_stats
from claimflow.logics.cohort_movement import (
    MovementAnalysis,
    split_destination,
    bucket_sort_key,
)

logger = logging.getLogger(__name__)

IMPACT_POSITIVE = "Positive"
IMPACT_NEGATIVE = "Negative"
IMPACT_NEUTRAL = "Neutral"

CLEAN_STATES = [STATE_PEND, STATE_APPROVED, STATE_DENY, STATE_PR]
CLEAN_CLAIM_GOAL_DAYS = 30
OTHER_CLAIM_GOAL_DAYS = 60

PREBATCH_DESTINATION = "Prebatch"
RESOLVED_DESTINATION = "Resolved/Removed"


def format_currency(value: Optional[float]) -> str:
    """
    Compact dollar amount.

    Examples:
        >>> format_currency(950)
        '$950'
        >>> format_currency(12500)
        '$12.5K'
        >>> format_currency(3400000)
        '$3.4M'
    """
    if value is None:
        return "$0"
    if value < 1000:
        return f"${value:.0f}"
    if value < 1000000:
        return f"${value / 1000:.1f}K"
    return f"${value / 1000000:.1f}M"


def format_rate(value: Optional[float], digits: int = 1) -> str:
    return "N/A" if value is None else f"{value:.{digits}f}%"


def _percent(part: float, whole: float) -> Optional[float]:
    return (part / whole * 100) if whole > 0 else None


def calculate_today_stats(
    claims: Sequence[ClassifiedClaim],
    scheme: AgeBucketScheme = CANONICAL_SCHEME
) -> Dict[str, Dict[str, int]]:
    return calculate_stats(((claim.claim_state, claim.clean_age) for claim in claims), scheme)


def get_approaching_critical(claims: Sequence[ClassifiedClaim]) -> List[ClassifiedClaim]:
    """Claims one day away from the Critical bucket."""
    return [claim for claim in claims if claim.clean_age == APPROACHING_CRITICAL_AGE]


def calculate_cycle_time_metrics(claims: Sequence[ClassifiedClaim]) -> Dict[str, Any]:
    """
    Share of claims within their cycle-time goal, split clean/other x par/non-par.

    Clean claims (anything not in management review) have a 30-day goal, the rest
    60 days. Claims with an unknown age never meet the goal.
    """
    totals = {"clean_nonpar": 0, "other_nonpar": 0, "clean_par": 0, "other_par": 0}
    met = dict.fromkeys(totals, 0)

    for claim in claims:
        is_clean = claim.claim_state in CLEAN_STATES or "MANAGEMENT" not in claim.claim_state
        network = "nonpar" if claim.network_type == NETWORK_NONPAR else "par"
        key = f"{'clean' if is_clean else 'other'}_{network}"
        goal = CLEAN_CLAIM_GOAL_DAYS if is_clean else OTHER_CLAIM_GOAL_DAYS
        totals[key] += 1
        if claim.clean_age is not None and claim.clean_age <= goal:
            met[key] += 1

    def rate(key: str) -> float:
        return round(_percent(met[key], totals[key]) or 0.0, 2)

    return {
        "cleanNonPar30": rate("clean_nonpar"),
        "otherNonPar60": rate("other_nonpar"),
        "cleanPar30": rate("clean_par"),
        "otherPar60": rate("other_par"),
        "totals": totals,
        "met": met,
    }


@dataclass
class KpiSummary:
    total_claims_processed: int
    value_recovered_from_denials: float
    critical_success_rate: Optional[float]
    backlog_delta: int
    value_in_pend: float
    denied_dollars: float
    average_pend_age: Optional[float]
    denial_overturn_rate: Optional[float]
    out_of_network_pct: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def tiles(self) -> List[Dict[str, str]]:
        """Label/value pairs in display order."""
        return [
            {"label": "Total Claims Processed", "value": f"{self.total_claims_processed:,}"},
            {"label": "Value in PEND Inventory", "value": format_currency(self.value_in_pend)},
            {"label": "Denied Dollars at Risk", "value": format_currency(self.denied_dollars)},
            {
                "label": "Average Clean Age (PEND)",
                "value": "N/A" if self.average_pend_age is None else f"{self.average_pend_age:.1f} Days",
            },
            {"label": "Denial Overturn Rate", "value": format_rate(self.denial_overturn_rate)},
            {"label": "Out-of-Network %", "value": format_rate(self.out_of_network_pct)},
        ]


def calculate_kpis(
    claims: Sequence[ClassifiedClaim],
    snapshot: YesterdaySnapshot,
    movement: MovementAnalysis,
    prebatch_charges: Optional[Mapping[str, float]] = None,
    scheme: AgeBucketScheme = CANONICAL_SCHEME
) -> KpiSummary:
    """
    Compute the KPI tiles from one day-over-day comparison.

    Args:
        claims: Today's classified claims
        snapshot: Yesterday's snapshot
        movement: Result of analyze_movement for the same inputs
        prebatch_charges: Today's prebatch claim number -> total charges
        scheme: Bucket boundaries used for the backlog comparison
    """
    prebatch_charges = prebatch_charges or {}
    today_by_number = {claim.claim_number: claim for claim in claims if claim.claim_number}

    total_processed = 0
    for _, _, breakdown in movement.iter_cohorts():
        for key, count in breakdown.moved_to.items():
            new_state, _ = split_destination(key)
            if new_state in (STATE_APPROVED, STATE_DENY):
                total_processed += count

    recovered = 0.0
    for claim_number, entry in snapshot.per_claim.items():
        if normalize_state(entry.state) != STATE_DENY:
            continue
        today_claim = today_by_number.get(claim_number)
        if today_claim is not None and today_claim.claim_state == STATE_APPROVED:
            recovered += today_claim.total_charges
        elif claim_number in prebatch_charges:
            recovered += prebatch_charges[claim_number]

    focus_critical = movement.get_cohort(movement.focus_state, BUCKET_CRITICAL)
    critical_rate = None
    if focus_critical is not None:
        critical_rate = _percent(movement.workflow.critical_worked, focus_critical.total_yesterday)

    backlog_label = scheme.stat_label(BUCKET_BACKLOG)
    today_stats = calculate_today_stats(claims, scheme)
    backlog_delta = (
        today_stats.get(STATE_PEND, {}).get(backlog_label, 0)
        - snapshot.stats.get(STATE_PEND, {}).get(backlog_label, 0)
    )

    value_in_pend = 0.0
    denied_dollars = 0.0
    pend_ages = []
    out_of_network = 0
    for claim in claims:
        if claim.claim_state == STATE_PEND:
            value_in_pend += claim.total_charges
            if claim.clean_age is not None:
                pend_ages.append(claim.clean_age)
        if claim.claim_state == STATE_DENY:
            denied_dollars += claim.total_charges
        if claim.network_type == NETWORK_NONPAR:
            out_of_network += 1

    overturned = 0
    for breakdown in movement.cohorts.get(STATE_DENY, {}).values():
        overturned += breakdown.moved_to_prebatch
        for key, count in breakdown.moved_to.items():
            if split_destination(key)[0].startswith(STATE_APPROVED):
                overturned += count
    denied_yesterday = snapshot.stats.get(STATE_DENY, {}).get("total", 0)

    kpis = KpiSummary(
        total_claims_processed=total_processed,
        value_recovered_from_denials=recovered,
        critical_success_rate=critical_rate,
        backlog_delta=backlog_delta,
        value_in_pend=value_in_pend,
        denied_dollars=denied_dollars,
        average_pend_age=(sum(pend_ages) / len(pend_ages)) if pend_ages else None,
        denial_overturn_rate=_percent(overturned, denied_yesterday),
        out_of_network_pct=_percent(out_of_network, len(claims)),
    )
    logger.info(f"[Metrics] KPIs: {kpis.to_dict()}")
    return kpis


def build_summary_points(kpis: KpiSummary, scheme: AgeBucketScheme = CANONICAL_SCHEME) -> List[str]:
    """Summary-of-findings sentences for the analysis cover page."""
    if kpis.backlog_delta > 0:
        backlog_text = f"increased by {kpis.backlog_delta} claims."
    elif kpis.backlog_delta < 0:
        backlog_text = f"decreased by {abs(kpis.backlog_delta)} claims."
    else:
        backlog_text = "remained stable."

    return [
        f"A total of {kpis.total_claims_processed:,} claims reached a final adjudication status "
        f"(Approved or Denied).",
        f"The team achieved a {format_rate(kpis.critical_success_rate)} success rate in resolving claims "
        f"from yesterday's critical aging bucket.",
        f"Approximately {format_currency(kpis.value_recovered_from_denials)} in revenue was recovered "
        f"from overturned denials.",
        f"The high-priority Backlog ({scheme.stat_label(BUCKET_BACKLOG)} Days) inventory has {backlog_text}",
    ]


def build_flow_chart_series(movement: MovementAnalysis) -> Dict[str, Any]:
    """
    Stacked-bar data: one label per cohort ("PEND - Critical"), one series per destination.
    """
    flow: Dict[str, Dict[str, int]] = {}
    destinations = {PREBATCH_DESTINATION, RESOLVED_DESTINATION}
    for state, bucket, breakdown in movement.iter_cohorts():
        row = {
            PREBATCH_DESTINATION: breakdown.moved_to_prebatch,
            RESOLVED_DESTINATION: breakdown.resolved_or_removed,
        }
        for key, count in breakdown.moved_to.items():
            destinations.add(key)
            row[key] = count
        flow[f"{state} - {bucket}"] = row

    labels = list(flow.keys())
    totals = [sum(flow[label].values()) for label in labels]
    series = []
    for destination in sorted(destinations):
        series.append({
            "destination": destination,
            "label": destination.replace("_", " - "),
            "data": [flow[label].get(destination, 0) for label in labels],
        })
    return {"labels": labels, "totals": totals, "series": series}


def build_pend_composition(movement: MovementAnalysis) -> Dict[str, int]:
    """Yesterday's focus-state inventory per bucket (Queue, Priority, Critical, Backlog)."""
    composition = {BUCKET_QUEUE: 0, BUCKET_PRIORITY: 0, BUCKET_CRITICAL: 0, BUCKET_BACKLOG: 0}
    for bucket, breakdown in movement.cohorts.get(movement.focus_state, {}).items():
        composition[bucket] = breakdown.total_yesterday
    return composition


def build_critical_outcomes(movement: MovementAnalysis) -> Dict[str, int]:
    outcomes = {
        "Moved to Prebatch": 0,
        "Approved": 0,
        "Remained Critical": 0,
        "Aged to Backlog": 0,
        "Denied": 0,
    }
    critical = movement.get_cohort(movement.focus_state, BUCKET_CRITICAL)
    if critical is None:
        return outcomes

    outcomes["Moved to Prebatch"] = critical.moved_to_prebatch
    outcomes["Aged to Backlog"] = movement.workflow.critical_to_backlog
    for key, count in critical.moved_to.items():
        new_state, new_bucket = split_destination(key)
        if new_state == STATE_APPROVED:
            outcomes["Approved"] += count
        elif new_state == STATE_DENY:
            outcomes["Denied"] += count
        elif new_bucket == BUCKET_CRITICAL:
            outcomes["Remained Critical"] += count
    return outcomes


def destination_impact(cohort_bucket: str, destination: str) -> str:
    new_state, new_bucket = split_destination(destination)
    if new_state.startswith(STATE_APPROVED):
        return IMPACT_POSITIVE
    if new_bucket == BUCKET_BACKLOG and cohort_bucket != BUCKET_BACKLOG:
        return IMPACT_NEGATIVE
    return IMPACT_NEUTRAL


def build_cohort_tables(movement: MovementAnalysis) -> List[Dict[str, Any]]:
    """
    Per-cohort destination tables, states alphabetical and buckets in priority order.
    Destinations are sorted by count (descending), then name.
    """
    tables = []
    for state in sorted(movement.cohorts):
        for bucket in sorted(movement.cohorts[state], key=bucket_sort_key):
            breakdown = movement.cohorts[state][bucket]
            total = breakdown.total_yesterday
            if total == 0:
                continue

            rows = []
            if breakdown.resolved_or_removed > 0:
                rows.append({
                    "destination": "Resolved/Removed from report",
                    "count": breakdown.resolved_or_removed,
                    "percentage": round(breakdown.resolved_or_removed / total * 100, 1),
                    "impact": IMPACT_POSITIVE,
                })
            if breakdown.moved_to_prebatch > 0:
                rows.append({
                    "destination": "Moved to Prebatch",
                    "count": breakdown.moved_to_prebatch,
                    "percentage": round(breakdown.moved_to_prebatch / total * 100, 1),
                    "impact": IMPACT_POSITIVE,
                })
            for key, count in sorted(breakdown.moved_to.items(), key=lambda item: (-item[1], item[0])):
                new_state, new_bucket = split_destination(key)
                rows.append({
                    "destination": f"Moved to: {new_state} - {new_bucket}",
                    "count": count,
                    "percentage": round(count / total * 100, 1),
                    "impact": destination_impact(bucket, key),
                })

            tables.append({
                "state": state,
                "bucket": bucket,
                "title": f"From: {state} - {bucket} (Yesterday's Total: {total})",
                "total_yesterday": total,
                "rows": rows,
            })
    return tables

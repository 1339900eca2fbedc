"""
Cohort Movement Analyzer.

Groups yesterday's claims into (state, age bucket) cohorts and follows each claim
into today's report: moved to prebatch, resolved/removed (absent today), or landed
in a new state/bucket. Also derives the owner handoff and critical-cohort counters
that back the KPI tiles.

Results are built with sorted keys so the output never depends on the iteration
order of the input maps.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from claimflow.logics.exceptions import AnalysisCancelled
from claimflow.logics.config.age_buckets import (
    AgeBucketScheme,
    CANONICAL_SCHEME,
    BUCKET_ORDER,
    BUCKET_CRITICAL,
    BUCKET_BACKLOG,
)
from claimflow.logics.claim_classifier import (
    ClassifiedClaim,
    normalize_state,
    OWNER_CLAIMS,
    OWNER_PV,
    STATE_PEND,
)
from claimflow.logics.snapshot_loader import YesterdaySnapshot

logger = logging.getLogger(__name__)


def destination_key(state: str, bucket: str) -> str:
    return f"{state}_{bucket}"


def split_destination(key: str) -> Tuple[str, str]:
    """'DENY_Critical' -> ('DENY', 'Critical'). Bucket names never contain '_'."""
    state, _, bucket = key.rpartition("_")
    return state, bucket


def bucket_sort_key(bucket: str) -> Tuple[int, str]:
    return (BUCKET_ORDER.index(bucket) if bucket in BUCKET_ORDER else len(BUCKET_ORDER), bucket)


@dataclass
class CohortBreakdown:
    """Where one of yesterday's (state, bucket) cohorts ended up today."""
    total_yesterday: int = 0
    moved_to_prebatch: int = 0
    resolved_or_removed: int = 0
    moved_to: Dict[str, int] = field(default_factory=dict)

    def is_balanced(self) -> bool:
        return self.total_yesterday == (
            self.moved_to_prebatch + self.resolved_or_removed + sum(self.moved_to.values())
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalYesterday": self.total_yesterday,
            "movedToPrebatch": self.moved_to_prebatch,
            "resolvedOrRemoved": self.resolved_or_removed,
            "movedTo": dict(self.moved_to),
        }


@dataclass
class WorkflowMovement:
    pv_to_claims: int = 0
    claims_to_pv: int = 0
    critical_to_backlog: int = 0
    critical_worked: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "pvToClaims": self.pv_to_claims,
            "claimsToPv": self.claims_to_pv,
            "criticalToBacklog": self.critical_to_backlog,
            "criticalWorked": self.critical_worked,
        }


@dataclass
class MovementAnalysis:
    cohorts: Dict[str, Dict[str, CohortBreakdown]]
    workflow: WorkflowMovement
    focus_state: str = STATE_PEND

    def get_cohort(self, state: str, bucket: str) -> Optional[CohortBreakdown]:
        return self.cohorts.get(state, {}).get(bucket)

    def iter_cohorts(self) -> Iterable[Tuple[str, str, CohortBreakdown]]:
        for state, buckets in self.cohorts.items():
            for bucket, breakdown in buckets.items():
                yield state, bucket, breakdown

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cohorts": {
                state: {bucket: breakdown.to_dict() for bucket, breakdown in buckets.items()}
                for state, buckets in self.cohorts.items()
            },
            "workflowMovement": self.workflow.to_dict(),
        }


def group_yesterday_cohorts(
    snapshot: YesterdaySnapshot,
    scheme: AgeBucketScheme = CANONICAL_SCHEME
) -> Dict[Tuple[str, str], List[str]]:
    """(normalized state, bucket of yesterday's age) -> sorted claim numbers."""
    cohorts: Dict[Tuple[str, str], List[str]] = {}
    for claim_number, entry in snapshot.per_claim.items():
        key = (normalize_state(entry.state), scheme.bucket_for(entry.clean_age))
        cohorts.setdefault(key, []).append(claim_number)
    for claim_numbers in cohorts.values():
        claim_numbers.sort()
    return cohorts


def count_owner_handoffs(
    snapshot: YesterdaySnapshot,
    today_by_number: Dict[str, ClassifiedClaim]
) -> Tuple[int, int]:
    """(PV -> Claims, Claims -> PV) owner changes for claims present on both days."""
    pv_to_claims = 0
    claims_to_pv = 0
    for claim_number, entry in snapshot.per_claim.items():
        today_claim = today_by_number.get(claim_number)
        if today_claim is None:
            continue
        if entry.owner == OWNER_PV and today_claim.final_owner == OWNER_CLAIMS:
            pv_to_claims += 1
        elif entry.owner == OWNER_CLAIMS and today_claim.final_owner == OWNER_PV:
            claims_to_pv += 1
    return pv_to_claims, claims_to_pv


def analyze_movement(
    snapshot: YesterdaySnapshot,
    today_claims: Sequence[ClassifiedClaim],
    prebatch_claim_numbers: Set[str],
    scheme: AgeBucketScheme = CANONICAL_SCHEME,
    focus_state: str = STATE_PEND,
    should_cancel: Optional[Callable[[], bool]] = None
) -> MovementAnalysis:
    """
    Follow every cohort of yesterday's claims into today's report.

    Args:
        snapshot: Yesterday's per-claim lookup
        today_claims: Today's classified (non-prebatch) claims, with final owners applied
        prebatch_claim_numbers: Claim numbers found in today's prebatch rows
        scheme: Bucket boundaries applied to both days' ages
        focus_state: State whose Critical cohort drives the critical counters
        should_cancel: Optional callable checked between cohorts

    Returns:
        MovementAnalysis with cohorts keyed state -> bucket, both in sorted order

    Raises:
        AnalysisCancelled: If should_cancel returns True between cohorts
    """
    today_by_number = {claim.claim_number: claim for claim in today_claims if claim.claim_number}
    grouped = group_yesterday_cohorts(snapshot, scheme)

    cohorts: Dict[str, Dict[str, CohortBreakdown]] = {}
    completed = 0
    for state, bucket in sorted(grouped, key=lambda k: (k[0], bucket_sort_key(k[1]))):
        if should_cancel is not None and should_cancel():
            logger.warning(f"[Movement] Cancelled after {completed} cohorts")
            raise AnalysisCancelled(completed)

        claim_numbers = grouped[(state, bucket)]
        breakdown = CohortBreakdown(total_yesterday=len(claim_numbers))
        destinations: Dict[str, int] = {}
        for claim_number in claim_numbers:
            if claim_number in prebatch_claim_numbers:
                breakdown.moved_to_prebatch += 1
            elif claim_number in today_by_number:
                today_claim = today_by_number[claim_number]
                key = destination_key(
                    normalize_state(today_claim.claim_state),
                    scheme.bucket_for(today_claim.clean_age)
                )
                destinations[key] = destinations.get(key, 0) + 1
            else:
                breakdown.resolved_or_removed += 1
        breakdown.moved_to = dict(sorted(destinations.items()))

        cohorts.setdefault(state, {})[bucket] = breakdown
        completed += 1

    workflow = WorkflowMovement()
    workflow.pv_to_claims, workflow.claims_to_pv = count_owner_handoffs(snapshot, today_by_number)

    focus = cohorts.get(focus_state, {}).get(BUCKET_CRITICAL)
    if focus is not None:
        workflow.critical_worked = focus.resolved_or_removed + focus.moved_to_prebatch
        for key, count in focus.moved_to.items():
            _, new_bucket = split_destination(key)
            if new_bucket == BUCKET_BACKLOG:
                workflow.critical_to_backlog += count
            elif new_bucket != BUCKET_CRITICAL:
                workflow.critical_worked += count

    logger.info(
        f"[Movement] Analyzed {completed} cohorts covering {len(snapshot.per_claim)} claims; "
        f"workflow={workflow.to_dict()}"
    )
    return MovementAnalysis(cohorts=cohorts, workflow=workflow, focus_state=focus_state)

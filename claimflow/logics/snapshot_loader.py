"""
Snapshot Loader.

Parses a prior-day ("yesterday") export into a per-claim lookup of state, owner
and clean age plus aggregate state x age-bucket statistics. The export is located
by header names rather than column letters, so the previous day's processed
report can be uploaded as-is.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from claimflow.logics.exceptions import SchemaError
from claimflow.logics.config.age_buckets import AgeBucketScheme, CANONICAL_SCHEME, BUCKET_UNKNOWN
from claimflow.logics.claim_classifier import (
    cell_at,
    cell_to_text,
    is_empty_row,
    normalize_state,
    parse_clean_age,
    STATE_PEND,
    STATE_ONHOLD,
    STATE_MANAGEMENT_REVIEW,
    STATE_DENY,
    STATE_PR,
    STATE_APPROVED,
)

logger = logging.getLogger(__name__)

CLAIM_NUMBER_HEADER = "Claim Number"
OWNER_HEADER = "Added (Owner)"
CLAIM_STATE_HEADER = "Claim State"
# Prefixes searched in order; the first header starting with one of them wins
CLEAN_AGE_HEADER_PREFIXES = ["Clean Age", "Age"]

STATS_STATES = [
    STATE_PEND,
    STATE_ONHOLD,
    STATE_MANAGEMENT_REVIEW,
    STATE_DENY,
    STATE_PR,
    STATE_APPROVED,
]


@dataclass(frozen=True)
class SnapshotEntry:
    state: str
    owner: str
    clean_age: Optional[int]


@dataclass
class YesterdaySnapshot:
    """Read-only view of the prior day's export."""
    per_claim: Dict[str, SnapshotEntry]
    stats: Dict[str, Dict[str, int]]
    row_count: int = 0
    rows_without_owner: int = 0

    def owner_lookup(self) -> Dict[str, str]:
        return {claim_number: entry.owner for claim_number, entry in self.per_claim.items()}

    def get(self, claim_number: str) -> Optional[SnapshotEntry]:
        return self.per_claim.get(claim_number)


def empty_stats(scheme: AgeBucketScheme = CANONICAL_SCHEME) -> Dict[str, Dict[str, int]]:
    stats = {}
    for state in STATS_STATES:
        block = {"total": 0}
        for label in scheme.stat_labels():
            block[label] = 0
        stats[state] = block
    return stats


def calculate_stats(
    claims: Iterable[Tuple[str, Optional[int]]],
    scheme: AgeBucketScheme = CANONICAL_SCHEME
) -> Dict[str, Dict[str, int]]:
    """
    Count claims per tracked state, in total and per day-range label.

    Args:
        claims: (claim state, clean age) pairs; states outside STATS_STATES are ignored
        scheme: Bucket boundaries used for the day-range labels

    Returns:
        {"PEND": {"total": n, "28-30": n, "21-27": n, "31+": n, "0-20": n}, ...}
        Claims with an unknown age count toward the total only.
    """
    stats = empty_stats(scheme)
    for claim_state, clean_age in claims:
        state_key = normalize_state(claim_state)
        if state_key not in stats:
            continue
        stats[state_key]["total"] += 1
        bucket = scheme.bucket_for(clean_age)
        if bucket != BUCKET_UNKNOWN:
            stats[state_key][scheme.stat_label(bucket)] += 1
    return stats


def locate_snapshot_columns(header: Sequence[Any]) -> Dict[str, Optional[int]]:
    """
    Find the snapshot columns by name.

    Raises:
        SchemaError: If Claim Number, Added (Owner) or a clean-age column is missing
    """
    headers = [cell_to_text(h).strip() for h in header]

    def index_of(name: str) -> Optional[int]:
        return headers.index(name) if name in headers else None

    clean_age_index = None
    for prefix in CLEAN_AGE_HEADER_PREFIXES:
        matches = [i for i, h in enumerate(headers) if h.startswith(prefix)]
        if matches:
            clean_age_index = matches[0]
            break

    columns = {
        "claim_number": index_of(CLAIM_NUMBER_HEADER),
        "owner": index_of(OWNER_HEADER),
        "claim_state": index_of(CLAIM_STATE_HEADER),
        "clean_age": clean_age_index,
    }

    missing = []
    if columns["claim_number"] is None:
        missing.append(CLAIM_NUMBER_HEADER)
    if columns["owner"] is None:
        missing.append(OWNER_HEADER)
    if columns["clean_age"] is None:
        missing.append("Clean Age/Age")
    if missing:
        logger.warning(f"[Snapshot] Missing required columns: {missing}")
        raise SchemaError(missing)

    return columns


def load_snapshot(
    aoa: Sequence[Sequence[Any]],
    scheme: AgeBucketScheme = CANONICAL_SCHEME
) -> YesterdaySnapshot:
    """
    Build a YesterdaySnapshot from a header row followed by data rows.

    Rows lacking a claim number or owner are counted in the stats but are not
    placed in the per-claim lookup. A repeated claim number keeps its last row.

    Raises:
        SchemaError: If the header lacks a required column
    """
    if not aoa:
        raise SchemaError([CLAIM_NUMBER_HEADER, OWNER_HEADER, "Clean Age/Age"])

    columns = locate_snapshot_columns(aoa[0])
    state_index = columns["claim_state"]

    per_claim: Dict[str, SnapshotEntry] = {}
    stat_items: List[Tuple[str, Optional[int]]] = []
    row_count = 0
    without_owner = 0

    for row in aoa[1:]:
        if is_empty_row(row):
            continue
        row_count += 1
        claim_number = cell_to_text(cell_at(row, columns["claim_number"])).strip()
        owner = cell_to_text(cell_at(row, columns["owner"])).strip()
        claim_state = ""
        if state_index is not None:
            claim_state = cell_to_text(cell_at(row, state_index)).strip().upper()
        clean_age = parse_clean_age(cell_at(row, columns["clean_age"]))

        if claim_number and owner:
            per_claim[claim_number] = SnapshotEntry(state=claim_state, owner=owner, clean_age=clean_age)
        else:
            without_owner += 1
        stat_items.append((claim_state, clean_age))

    if state_index is None:
        logger.warning("[Snapshot] No 'Claim State' column; snapshot states will be blank")

    logger.info(
        f"[Snapshot] Loaded {len(per_claim)} claims from {row_count} rows "
        f"({without_owner} without claim number or owner)"
    )
    return YesterdaySnapshot(
        per_claim=per_claim,
        stats=calculate_stats(stat_items, scheme),
        row_count=row_count,
        rows_without_owner=without_owner,
    )

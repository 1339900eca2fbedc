"""
Assignment Overlay.

Users review the distinct (claim state, note text) pairs of a run and decide who
owns each one. The completed worksheet is loaded into an assignment map that
overrides default owners. Applying the same map twice gives the same result.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from claimflow.logics.claim_classifier import (
    ClassifiedClaim,
    build_assignment_key,
    cell_to_text,
    normalize_state,
    get_note_category,
    OWNER_CLAIMS,
    OWNER_PV,
    NO_NOTE,
)

logger = logging.getLogger(__name__)

STATE_COLUMN = "Claim State"
NOTE_COLUMN = "Note / Edit Text"
ASSIGNEE_COLUMN = "Assign To (Claims or PV)"
CATEGORY_COLUMN = "Note Category"
COUNT_COLUMN = "Claim Count"
DEFAULT_OWNER_COLUMN = "Default Assignment"

ASSIGNMENT_TEMPLATE_COLUMNS = [
    CATEGORY_COLUMN,
    STATE_COLUMN,
    NOTE_COLUMN,
    COUNT_COLUMN,
    DEFAULT_OWNER_COLUMN,
    ASSIGNEE_COLUMN,
]

_ASSIGNEES = {"CLAIMS": OWNER_CLAIMS, "PV": OWNER_PV}


@dataclass
class AssignmentLoadResult:
    """Assignment map built from an uploaded file, with row bookkeeping."""
    assignments: Dict[str, str] = field(default_factory=dict)
    accepted: int = 0
    rejected: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "accepted": self.accepted,
            "rejected": self.rejected,
            "distinct_rules": len(self.assignments),
        }


def normalize_assignee(value: Any) -> str:
    """Return 'Claims' or 'PV' for a case-insensitive match, '' otherwise."""
    return _ASSIGNEES.get(cell_to_text(value).strip().upper(), "")


def build_assignment_map(records: Iterable[Mapping[str, Any]]) -> AssignmentLoadResult:
    """
    Build the (state, note) -> owner map from assignment-file rows.

    Each row needs a claim state, note text and an assignee of Claims or PV
    (any case). Other rows are skipped and counted as rejected. Later rows for the
    same key overwrite earlier ones.

    Args:
        records: Rows keyed by 'Claim State', 'Note / Edit Text', 'Assign To (Claims or PV)'

    Returns:
        AssignmentLoadResult
    """
    result = AssignmentLoadResult()
    for record in records:
        claim_state = normalize_state(record.get(STATE_COLUMN))
        note_text = cell_to_text(record.get(NOTE_COLUMN)).strip()
        assignee = normalize_assignee(record.get(ASSIGNEE_COLUMN))

        if not claim_state or not note_text or not assignee:
            result.rejected += 1
            continue

        result.assignments[build_assignment_key(claim_state, note_text)] = assignee
        result.accepted += 1

    if result.rejected:
        logger.warning(f"[Assignments] Skipped {result.rejected} incomplete or invalid assignment rows")
    logger.info(
        f"[Assignments] Loaded {result.accepted} assignments "
        f"({len(result.assignments)} distinct state/note pairs)"
    )
    return result


def apply_assignments(
    claims: Sequence[ClassifiedClaim],
    assignment_map: Mapping[str, str]
) -> List[ClassifiedClaim]:
    """
    Set each claim's final owner from the map, falling back to its default owner.

    Only final_owner (and the owner cell of processed_row, when present) change.

    Returns:
        The same claim objects, for chaining
    """
    overridden = 0
    for claim in claims:
        assigned = assignment_map.get(claim.assignment_key)
        if assigned:
            claim.final_owner = assigned
            overridden += 1
        else:
            claim.final_owner = claim.default_owner
        if claim.processed_row:
            claim.processed_row[-1] = claim.final_owner

    logger.info(f"[Assignments] Applied overrides to {overridden} of {len(claims)} claims")
    return list(claims)


def build_assignment_worksheet(claims: Sequence[ClassifiedClaim]) -> List[Dict[str, Any]]:
    """
    One row per distinct (claim state, note text) pair for the user to fill in.

    Claims without notes are left out. Rows are grouped by note category
    (alphabetical), then by claim count (descending), then state and note text.
    """
    counts = Counter()
    default_owners: Dict[tuple, str] = {}
    for claim in claims:
        if not claim.note_text or claim.note_text == NO_NOTE:
            continue
        key = (claim.claim_state, claim.note_text)
        counts[key] += 1
        default_owners.setdefault(key, claim.default_owner)

    rows = []
    for (claim_state, note_text), count in counts.items():
        rows.append({
            CATEGORY_COLUMN: get_note_category(note_text),
            STATE_COLUMN: claim_state,
            NOTE_COLUMN: note_text,
            COUNT_COLUMN: count,
            DEFAULT_OWNER_COLUMN: default_owners[(claim_state, note_text)] or "N/A",
            ASSIGNEE_COLUMN: "",
        })

    rows.sort(key=lambda r: (r[CATEGORY_COLUMN], -r[COUNT_COLUMN], r[STATE_COLUMN], r[NOTE_COLUMN]))
    logger.debug(f"[Assignments] Worksheet has {len(rows)} distinct state/note pairs")
    return rows

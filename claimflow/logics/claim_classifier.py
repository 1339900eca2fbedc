"""
Claim Classifier.

Derives the operational view of one raw export row: trimmed claim state, clean age,
age bucket, network type, DSNP status, charges, note category, high-cost flag and
the default owner. Rows that are entirely empty, or whose state contains PREBATCH,
produce no classified claim.
"""

import math
import re
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from claimflow.logics.column_mapping import ColumnMapping
from claimflow.logics.config.age_buckets import AgeBucketScheme, CANONICAL_SCHEME
from claimflow.logics.config.note_categories import NOTE_CATEGORY_RULES, CATEGORY_MISCELLANEOUS

logger = logging.getLogger(__name__)

STATE_PREBATCH = "PREBATCH"
STATE_MANAGEMENT_REVIEW = "MANAGEMENTREVIEW"
STATE_ONHOLD = "ONHOLD"
STATE_PEND = "PEND"
STATE_APPROVED = "APPROVED"
STATE_DENY = "DENY"
STATE_PR = "PR"

OWNER_CLAIMS = "Claims"
OWNER_PV = "PV"

NETWORK_PAR = "par"
NETWORK_NONPAR = "nonpar"

DSNP = "DSNP"
NON_DSNP = "NonDSNP"

NO_NOTE = "No Note"

# Charges above these amounts make a management-review claim high-cost
PROFESSIONAL_HIGH_COST_THRESHOLD = 3500
INSTITUTIONAL_HIGH_COST_THRESHOLD = 6500

_CURRENCY_STRIP_RE = re.compile(r"[^0-9.\-]")
_LEADING_FLOAT_RE = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")
_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")


# ---------- Cell helpers ----------

def is_empty_cell(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def is_empty_row(row: Sequence[Any]) -> bool:
    return all(is_empty_cell(value) for value in row)


def cell_at(row: Sequence[Any], index: int) -> Any:
    return row[index] if 0 <= index < len(row) else None


def cell_to_text(value: Any) -> str:
    """Render a cell as text; empty cells become '' and integral floats drop the '.0'."""
    if is_empty_cell(value):
        return ""
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_state(raw_state: Any) -> str:
    """Trim and upper-case a claim state; any state naming both MANAGEMENT and REVIEW collapses."""
    state = cell_to_text(raw_state).strip().upper()
    if is_management_review(state):
        return STATE_MANAGEMENT_REVIEW
    return state


def is_management_review(state: str) -> bool:
    return "MANAGEMENT" in state and "REVIEW" in state


def parse_clean_age(value: Any) -> Optional[int]:
    """
    Parse a clean-age cell into whole days.

    Returns None when the cell holds no leading integer. None means "unknown" and must
    never be treated as zero.
    """
    if is_empty_cell(value) or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isinf(value):
            return None
        return int(value)
    match = _LEADING_INT_RE.match(str(value))
    if not match:
        logger.debug(f"[Classifier] Unparseable clean age: {value!r}")
        return None
    return int(match.group(1))


def parse_currency(value: Any) -> float:
    """
    Parse a charges cell: strip everything but digits, '.' and '-', then read the
    leading number. Empty or unparseable cells give 0.0.

    Examples:
        >>> parse_currency("$3,500.00")
        3500.0
        >>> parse_currency("N/A")
        0.0
    """
    if is_empty_cell(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    cleaned = _CURRENCY_STRIP_RE.sub("", str(value))
    match = _LEADING_FLOAT_RE.match(cleaned)
    if not match:
        if cleaned:
            logger.debug(f"[Classifier] Unparseable charges: {value!r}")
        return 0.0
    return float(match.group(0))


def get_network_type(network_status: Any) -> str:
    return NETWORK_NONPAR if "OUT" in cell_to_text(network_status).upper() else NETWORK_PAR


def get_dsnp_status(dsnp_value: Any) -> str:
    """'NON DSNP' -> NonDSNP, any other DSNP text or 'Y' -> DSNP, else ''."""
    raw = cell_to_text(dsnp_value).strip().upper()
    if "NON DSNP" in raw:
        return NON_DSNP
    if "DSNP" in raw or raw == "Y":
        return DSNP
    return ""


def get_note_category(note_text: str) -> str:
    """First matching category for the note (case-insensitive), else Miscellaneous."""
    note_lower = (note_text or "").lower()
    for rule in NOTE_CATEGORY_RULES:
        if any(note_lower.startswith(phrase) for phrase in rule["startswith"]):
            return rule["category"]
        if any(phrase in note_lower for phrase in rule["contains"]):
            return rule["category"]
    return CATEGORY_MISCELLANEOUS


def is_high_cost_claim(claim_state: str, claim_type: str, total_charges: float) -> bool:
    if not is_management_review(claim_state):
        return False
    claim_type = (claim_type or "").upper()
    if "PROFESSIONAL" in claim_type and total_charges > PROFESSIONAL_HIGH_COST_THRESHOLD:
        return True
    if "INSTITUTIONAL" in claim_type and total_charges > INSTITUTIONAL_HIGH_COST_THRESHOLD:
        return True
    return False


def derive_default_owner(
    claim_number: str,
    claim_state: str,
    high_cost: bool,
    payer: str,
    prior_owner_lookup: Optional[Mapping[str, str]] = None
) -> str:
    """
    Default owner for a claim. Yesterday's owner always wins; otherwise state rules
    apply, ending in an unconditional PV fallback.
    """
    if claim_number and prior_owner_lookup:
        prior_owner = prior_owner_lookup.get(claim_number)
        if prior_owner:
            return prior_owner

    if high_cost:
        return OWNER_CLAIMS
    if claim_state == STATE_MANAGEMENT_REVIEW or claim_state == STATE_ONHOLD:
        return OWNER_PV
    if claim_state in (STATE_PEND, STATE_APPROVED, STATE_DENY):
        return OWNER_CLAIMS
    if claim_state == STATE_PR:
        return payer
    return OWNER_PV


# ---------- Classified claim ----------

@dataclass
class ClassifiedClaim:
    """
    One active (non-prebatch) claim derived from a raw export row.

    final_owner starts equal to default_owner and is only changed by the
    assignment overlay. processed_row is the output copy of the original row.
    """
    claim_number: str
    claim_state: str
    raw_state: str
    clean_age: Optional[int]
    age_bucket: str
    network_type: str
    dsnp_status: str
    claim_type: str
    payer: str
    total_charges: float
    note_text: str
    note_category: str
    is_high_cost: bool
    default_owner: str
    final_owner: str
    owner_from_prior_day: bool
    original_row: tuple
    processed_row: List[Any] = field(default_factory=list)

    @property
    def assignment_key(self) -> str:
        return build_assignment_key(self.claim_state, self.note_text)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "claim_number": self.claim_number,
            "claim_state": self.claim_state,
            "clean_age": self.clean_age,
            "age_bucket": self.age_bucket,
            "network_type": self.network_type,
            "dsnp_status": self.dsnp_status,
            "claim_type": self.claim_type,
            "payer": self.payer,
            "total_charges": self.total_charges,
            "note_text": self.note_text,
            "note_category": self.note_category,
            "is_high_cost": self.is_high_cost,
            "default_owner": self.default_owner,
            "final_owner": self.final_owner,
        }


def build_assignment_key(claim_state: str, note_text: str) -> str:
    return f"{claim_state}||{note_text or NO_NOTE}"


@dataclass
class ClassificationResult:
    claims: List[ClassifiedClaim]
    prebatch_rows: List[tuple]
    prebatch_claim_numbers: Set[str]
    empty_rows: int = 0


def is_prebatch_row(row: Sequence[Any], mapping: ColumnMapping) -> bool:
    return STATE_PREBATCH in cell_to_text(cell_at(row, mapping.claim_status)).strip().upper()


def classify(
    row: Sequence[Any],
    mapping: ColumnMapping,
    prior_owner_lookup: Optional[Mapping[str, str]] = None,
    scheme: AgeBucketScheme = CANONICAL_SCHEME
) -> Optional[ClassifiedClaim]:
    """
    Classify a single raw row.

    Args:
        row: Raw cell values positioned per the mapping
        mapping: Validated column mapping
        prior_owner_lookup: claim number -> yesterday's owner
        scheme: Bucket boundaries (canonical by default)

    Returns:
        ClassifiedClaim, or None for empty and prebatch rows
    """
    if is_empty_row(row) or is_prebatch_row(row, mapping):
        return None

    raw_state = cell_to_text(cell_at(row, mapping.claim_status)).strip().upper()
    claim_state = normalize_state(raw_state)
    claim_number = cell_to_text(cell_at(row, mapping.claim_number)).strip()
    clean_age = parse_clean_age(cell_at(row, mapping.clean_age))
    total_charges = parse_currency(cell_at(row, mapping.total_charges))
    claim_type = cell_to_text(cell_at(row, mapping.claim_type)).strip().upper()
    payer = cell_to_text(cell_at(row, mapping.payer)).strip()
    note_text = cell_to_text(cell_at(row, mapping.notes)).strip()

    high_cost = is_high_cost_claim(claim_state, claim_type, total_charges)
    from_prior = bool(claim_number and prior_owner_lookup and prior_owner_lookup.get(claim_number))
    default_owner = derive_default_owner(claim_number, claim_state, high_cost, payer, prior_owner_lookup)

    return ClassifiedClaim(
        claim_number=claim_number,
        claim_state=claim_state,
        raw_state=raw_state,
        clean_age=clean_age,
        age_bucket=scheme.bucket_for(clean_age),
        network_type=get_network_type(cell_at(row, mapping.network_status)),
        dsnp_status=get_dsnp_status(cell_at(row, mapping.dsnp)),
        claim_type=claim_type,
        payer=payer,
        total_charges=total_charges,
        note_text=note_text,
        note_category=get_note_category(note_text),
        is_high_cost=high_cost,
        default_owner=default_owner,
        final_owner=default_owner,
        owner_from_prior_day=from_prior,
        original_row=tuple(row),
    )


def classify_rows(
    rows: Sequence[Sequence[Any]],
    mapping: ColumnMapping,
    prior_owner_lookup: Optional[Mapping[str, str]] = None,
    scheme: AgeBucketScheme = CANONICAL_SCHEME
) -> ClassificationResult:
    """
    Classify every data row (header excluded), splitting prebatch rows out.

    Returns:
        ClassificationResult with claims in row order, prebatch rows and the empty-row count
    """
    claims = []
    prebatch_rows = []
    empty_rows = 0

    for row in rows:
        if is_empty_row(row):
            empty_rows += 1
            continue
        if is_prebatch_row(row, mapping):
            prebatch_rows.append(tuple(row))
            continue
        claims.append(classify(row, mapping, prior_owner_lookup, scheme))

    prebatch_claim_numbers = {
        cell_to_text(cell_at(row, mapping.claim_number)).strip() for row in prebatch_rows
    }
    prebatch_claim_numbers.discard("")
    result = ClassificationResult(
        claims=claims,
        prebatch_rows=prebatch_rows,
        prebatch_claim_numbers=prebatch_claim_numbers,
        empty_rows=empty_rows
    )

    logger.info(
        f"[Classifier] Classified {len(claims)} claims, "
        f"{len(prebatch_rows)} prebatch, {empty_rows} empty rows skipped"
    )
    return result

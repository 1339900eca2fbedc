"""
Column Mapping Resolver.

Converts spreadsheet column letters (A, B, ..., AA, ...) supplied per field into
zero-based indices and validates the whole mapping at once. A mapping is either
complete and valid or rejected; callers never classify rows with a partial mapping.
"""

import re
import logging
from dataclasses import dataclass, asdict
from typing import Dict, Mapping, Optional

from claimflow.logics.exceptions import ConfigurationError
from claimflow.logics.config.client_presets import get_client_preset

logger = logging.getLogger(__name__)

# Field name as entered/preset (camelCase) -> ColumnMapping attribute
FIELD_NAMES = {
    "cleanAge": "clean_age",
    "claimStatus": "claim_status",
    "claimNumber": "claim_number",
    "payer": "payer",
    "networkStatus": "network_status",
    "dsnp": "dsnp",
    "claimType": "claim_type",
    "totalCharges": "total_charges",
    "notes": "notes",
}

_LETTERS_RE = re.compile(r"^[A-Z]+$")


@dataclass(frozen=True)
class ColumnMapping:
    """Zero-based column indices of the fields the classifier reads."""
    clean_age: int
    claim_status: int
    claim_number: int
    payer: int
    network_status: int
    dsnp: int
    claim_type: int
    total_charges: int
    notes: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    def max_index(self) -> int:
        return max(self.to_dict().values())

    def validate_width(self, row_width: int) -> None:
        """
        Check every index fits inside a row of the given width.

        Raises:
            ConfigurationError: If any index is outside the row
        """
        out_of_range = {
            field: index for field, index in self.to_dict().items()
            if index < 0 or index >= row_width
        }
        if out_of_range:
            raise ConfigurationError(
                f"{len(out_of_range)} column(s) are outside the report width of {row_width}",
                {field: index_to_col_letter(index) for field, index in out_of_range.items()}
            )


def col_letter_to_index(letter: str) -> int:
    """
    Convert an Excel-style column letter to a zero-based index.

    Examples:
        >>> col_letter_to_index("A")
        0
        >>> col_letter_to_index("AA")
        26
        >>> col_letter_to_index("BA")
        52

    Raises:
        ValueError: If the letter is empty or not purely alphabetic
    """
    if letter is None:
        raise ValueError("column letter is empty")
    cleaned = str(letter).strip().upper()
    if not cleaned:
        raise ValueError("column letter is empty")
    if not _LETTERS_RE.match(cleaned):
        raise ValueError(f"column letter must be alphabetic: {letter!r}")

    index = 0
    for char in cleaned:
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index - 1


def index_to_col_letter(index: int) -> str:
    """Inverse of col_letter_to_index (0 -> 'A', 26 -> 'AA')."""
    if index < 0:
        return "?"
    letters = ""
    n = index + 1
    while n > 0:
        n, remainder = divmod(n - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def resolve_column_mapping(
    letters: Mapping[str, str],
    header_width: Optional[int] = None
) -> ColumnMapping:
    """
    Resolve a field -> column letter map into a validated ColumnMapping.

    Args:
        letters: Map keyed by field name (e.g. {"cleanAge": "Q", ...}); extra keys are ignored
        header_width: When given, every index must also fall inside this width

    Returns:
        ColumnMapping with all nine indices

    Raises:
        ConfigurationError: If any field is missing, empty, non-alphabetic or out of range
    """
    invalid = {}
    indices = {}
    for field, attribute in FIELD_NAMES.items():
        if field not in letters:
            invalid[field] = "missing"
            continue
        try:
            indices[attribute] = col_letter_to_index(letters[field])
        except ValueError as e:
            invalid[field] = str(e)

    if invalid:
        logger.warning(f"[ColumnMapping] Rejected column configuration: {invalid}")
        raise ConfigurationError("Invalid or empty column letter entered.", invalid)

    mapping = ColumnMapping(**indices)
    if header_width is not None:
        mapping.validate_width(header_width)

    logger.debug(f"[ColumnMapping] Resolved mapping: {mapping.to_dict()}")
    return mapping


def letters_for_client(client: str, overrides: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Build the field -> letter map for a client preset, with optional per-field overrides.

    Raises:
        ConfigurationError: If the client has no preset
    """
    try:
        preset = get_client_preset(client)
    except KeyError:
        raise ConfigurationError(f"Unknown client preset: {client}", {"client": client})

    letters = {field: preset[field] for field in FIELD_NAMES if field in preset}
    for field, letter in (overrides or {}).items():
        if field in FIELD_NAMES and letter not in (None, ""):
            letters[field] = letter
    return letters

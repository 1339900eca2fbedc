"""
Request validation utilities for the claims endpoints.
"""

import json
from typing import Dict, Optional

from fastapi import HTTPException
from pydantic import BaseModel, ValidationError

from claimflow.api.utils.responses import error_response
from claimflow.logics.claim_classifier import OWNER_CLAIMS, OWNER_PV
from claimflow.logics.config.client_presets import CLIENT_PRESETS, get_all_clients
from claimflow.logics.tabular_reader import SUPPORTED_EXTENSIONS

VALID_OWNER_FILTERS = [OWNER_PV, OWNER_CLAIMS]


class ColumnLetters(BaseModel):
    """Per-field column-letter overrides on top of a client preset."""
    cleanAge: Optional[str] = None
    claimStatus: Optional[str] = None
    claimNumber: Optional[str] = None
    payer: Optional[str] = None
    networkStatus: Optional[str] = None
    dsnp: Optional[str] = None
    claimType: Optional[str] = None
    totalCharges: Optional[str] = None
    notes: Optional[str] = None

    def overrides(self) -> Dict[str, str]:
        return {field: value for field, value in self.model_dump().items() if value}


def validate_client(client: str) -> str:
    """
    Raises:
        HTTPException: If the client has no preset (400)
    """
    key = (client or "").strip().lower()
    if key not in CLIENT_PRESETS:
        raise HTTPException(
            status_code=400,
            detail=error_response(f"Invalid client: {client}", {"valid_clients": get_all_clients()})
        )
    return key


def validate_owner_filter(owner: Optional[str]) -> Optional[str]:
    """Accept 'PV' / 'Claims' in any case; empty means the full report."""
    if not owner:
        return None
    for valid in VALID_OWNER_FILTERS:
        if owner.strip().lower() == valid.lower():
            return valid
    raise HTTPException(
        status_code=400,
        detail=error_response(f"Invalid owner filter: {owner}", {"valid_owners": VALID_OWNER_FILTERS})
    )


def validate_upload_filename(filename: Optional[str]) -> str:
    if not filename or not filename.lower().endswith(SUPPORTED_EXTENSIONS):
        raise HTTPException(
            status_code=400,
            detail=error_response("Invalid file type. Expected .xlsx, .xlsm, or .csv", {"filename": filename})
        )
    return filename


def parse_column_letters(columns: Optional[str]) -> Dict[str, str]:
    """
    Parse the optional JSON form field of column-letter overrides.

    Raises:
        HTTPException: If the value is not a JSON object of letters (400)
    """
    if not columns:
        return {}
    try:
        return ColumnLetters.model_validate(json.loads(columns)).overrides()
    except (json.JSONDecodeError, ValidationError) as e:
        raise HTTPException(
            status_code=400,
            detail=error_response("Invalid columns field", {"reason": str(e)})
        )

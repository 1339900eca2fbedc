"""
Custom exceptions for claim processing runs.

Provides specific exception types for the failure scenarios of a run with
structured error messages, context, and recommendations. Configuration errors
abort the whole run; schema errors only disable the day-over-day comparison.
"""

from typing import Optional, Dict, Any, List


class ClaimFlowException(Exception):
    """Base exception for claim processing operations."""

    kind = "ClaimFlowError"

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        recommendation: Optional[str] = None,
        http_status: int = 400
    ):
        self.message = message
        self.context = context or {}
        self.recommendation = recommendation
        self.http_status = http_status
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to structured error response."""
        error_dict = {
            "success": False,
            "kind": self.kind,
            "error": self.message
        }
        if self.context:
            error_dict["context"] = self.context
        if self.recommendation:
            error_dict["recommendation"] = self.recommendation
        return error_dict


class ConfigurationError(ClaimFlowException):
    """Raised when the column-letter mapping is invalid or incomplete."""

    kind = "ConfigurationError"

    def __init__(self, reason: str, invalid_fields: Optional[Dict[str, Any]] = None):
        context = {"reason": reason}
        if invalid_fields:
            context["invalid_fields"] = invalid_fields
        super().__init__(
            message=f"Invalid column configuration: {reason}",
            context=context,
            recommendation="Check the entered column letters against the uploaded report.",
            http_status=400
        )


class SchemaError(ClaimFlowException):
    """Raised when a prior-day snapshot lacks required named columns."""

    kind = "SchemaError"

    def __init__(self, missing_columns: List[str]):
        super().__init__(
            message=(
                "Yesterday's report must contain 'Claim Number', 'Added (Owner)', "
                "and a 'Clean Age'/'Age' column."
            ),
            context={"missing_columns": missing_columns},
            recommendation="Upload the 'All Processed Data' export from the previous day's report.",
            http_status=422
        )


class UnreadableFileError(ClaimFlowException):
    """Raised when an uploaded file cannot be parsed into rows."""

    kind = "UnreadableFileError"

    def __init__(self, filename: str, reason: str):
        super().__init__(
            message=f"Could not read file '{filename}': {reason}",
            context={"filename": filename, "reason": reason},
            recommendation="Upload an .xlsx, .xlsm or .csv export with a header row.",
            http_status=400
        )


class RunNotFoundError(ClaimFlowException):
    """Raised when a run id is unknown or its session has expired."""

    kind = "RunNotFoundError"

    def __init__(self, run_id: str):
        super().__init__(
            message=f"Processing run not found: {run_id}",
            context={"run_id": run_id},
            recommendation="Runs are kept in memory for one session. Upload the daily report again.",
            http_status=404
        )


class RunNotFinalizedError(ClaimFlowException):
    """Raised when final reports are requested before assignments were applied."""

    kind = "RunNotFinalizedError"

    def __init__(self, run_id: str):
        super().__init__(
            message=f"Final assignments have not been applied for run {run_id}",
            context={"run_id": run_id},
            recommendation="Upload the completed assignment file (or submit without one) first.",
            http_status=409
        )


class AnalysisCancelled(ClaimFlowException):
    """Raised when a movement analysis is cancelled between cohorts."""

    kind = "AnalysisCancelled"

    def __init__(self, cohorts_completed: int):
        super().__init__(
            message="Cohort movement analysis was cancelled",
            context={"cohorts_completed": cohorts_completed},
            http_status=503
        )

"""
Standard response formatters for API endpoints.

Provides consistent response structure across all API endpoints:
- Success responses with optional message
- Error responses with optional details
"""

from typing import Any, Dict, Optional


def success_response(data: Any = None, message: Optional[str] = None) -> Dict:
    """
    Create a standardized success response.

    Returns:
        {
            "success": true,
            "message": "...",  # Optional
            "data": {...}       # Optional
        }

    Examples:
        success_response(run.summary(), "Run created")
        success_response(message="Claim-flow API")
    """
    response = {"success": True}

    if message:
        response["message"] = message

    if data is not None:
        response["data"] = data

    return response


def error_response(message: str, details: Optional[Any] = None) -> Dict:
    """
    Create a standardized error response body.

    The HTTPException status_code is set separately when raising.

    Examples:
        raise HTTPException(status_code=400, detail=error_response("Invalid owner filter"))
    """
    response = {
        "success": False,
        "error": message
    }

    if details is not None:
        response["details"] = details

    return response

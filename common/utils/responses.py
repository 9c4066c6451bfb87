"""
Error envelope shared by the mock server and the client's error parser.

Success bodies follow the notification wire contract as-is; only failures
are wrapped:

    {"success": false, "error": {"message": "...", "code": "..."}}

raise_for_response() in common.utils.exceptions reads this shape back.
"""

from typing import Any, Optional, Dict


def error_response(
    message: str,
    code: Optional[str] = None,
    details: Optional[Any] = None,
    errors: Optional[list] = None,
) -> Dict[str, Any]:
    """
    Build an error body.

    Args:
        message: Human-readable error message
        code: Machine-readable code (e.g. "NOTIFICATION_NOT_FOUND")
        details: Extra context for the caller
        errors: Per-field problems for validation failures

    Returns:
        The wrapped error body
    """
    error: Dict[str, Any] = {"message": message}

    if code:
        error["code"] = code
    if details is not None:
        error["details"] = details
    if errors:
        error["errors"] = errors

    return {"success": False, "error": error}

"""
Standard error response builders for relaybot.

Provides consistent response formats for the HTTP control surface.
"""

from typing import Any, Optional
from .codes import ErrorCode
from .exceptions import RelayError


def error_response(error: RelayError | Exception, scope: Optional[str] = None, include_context: bool = True) -> dict:
    """Build a standard error response dictionary.

    Args:
        error: The exception to convert to a response
        scope: Optional operation/worker name for context
        include_context: Whether to include the context dict (disable for privacy)

    Returns:
        Standard error response dict with success=False

    Example:
        >>> from errors import NotFoundError, error_response
        >>> err = NotFoundError("No such worker", resource_type="worker", resource_id="worker9")
        >>> error_response(err, scope="send")
        {
            "success": False,
            "error": {
                "code": "NOT_FOUND_WORKER",
                "message": "No such worker",
                "details": None,
                "scope": "send",
                "recoverable": True,
                "context": {"resource_type": "worker", "resource_id": "worker9"}
            }
        }
    """
    if isinstance(error, RelayError):
        return {
            "success": False,
            "error": {
                "code": error.code.value,
                "message": error.message,
                "details": error.details,
                "scope": scope,
                "recoverable": error.recoverable,
                "context": error.context if include_context else None,
            },
        }

    # Fallback for non-relay exceptions
    return {
        "success": False,
        "error": {
            "code": ErrorCode.INTERNAL_UNEXPECTED.value,
            "message": str(error),
            "details": None,
            "scope": scope,
            "recoverable": False,
            "context": None,
        },
    }


def success_response(data: Optional[dict] = None, **kwargs: Any) -> dict:
    """Build a standard success response dictionary.

    Example:
        >>> success_response(worker_id="worker0")
        {"success": True, "worker_id": "worker0"}
    """
    response = {"success": True}

    if data:
        response.update(data)
    if kwargs:
        response.update(kwargs)

    return response

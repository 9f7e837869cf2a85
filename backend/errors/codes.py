"""
Error codes for relaybot.

Provides a standardized taxonomy of error codes organized by category.
Use these codes consistently across all error responses.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for relaybot.

    Categories:
    - CONDUIT_*: UI automation surface errors (page gone, timeouts, actions)
    - AUTH_*: Credential acquisition errors
    - SESSION_*: Credential persistence errors
    - EXTRACTION_*: Incoming message extraction errors
    - HANDLER_*: Response handler errors
    - VALIDATION_*: Input validation errors
    - NOT_FOUND_*: Resource not found errors
    - INTERNAL_*: Internal/unexpected errors
    """

    # Conduit errors (browser/page)
    CONDUIT_UNAVAILABLE = "CONDUIT_UNAVAILABLE"
    CONDUIT_TIMEOUT = "CONDUIT_TIMEOUT"
    CONDUIT_ACTION_FAILED = "CONDUIT_ACTION_FAILED"

    # Authentication errors
    AUTH_TIMEOUT = "AUTH_TIMEOUT"
    AUTH_CREDENTIAL_REJECTED = "AUTH_CREDENTIAL_REJECTED"

    # Session persistence errors
    SESSION_LOAD_FAILED = "SESSION_LOAD_FAILED"
    SESSION_SAVE_FAILED = "SESSION_SAVE_FAILED"
    SESSION_REMOVE_FAILED = "SESSION_REMOVE_FAILED"

    # Extraction errors
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    EXTRACTION_INCOMPLETE = "EXTRACTION_INCOMPLETE"

    # Handler errors
    HANDLER_FAILED = "HANDLER_FAILED"

    # Validation errors (input checking)
    VALIDATION_MISSING_PARAM = "VALIDATION_MISSING_PARAM"
    VALIDATION_INVALID_TYPE = "VALIDATION_INVALID_TYPE"
    VALIDATION_OUT_OF_RANGE = "VALIDATION_OUT_OF_RANGE"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"

    # Not found errors (missing resources)
    NOT_FOUND_WORKER = "NOT_FOUND_WORKER"
    NOT_FOUND_CONTACT = "NOT_FOUND_CONTACT"
    NOT_FOUND_FILE = "NOT_FOUND_FILE"

    # Internal errors (unexpected failures)
    INTERNAL_UNEXPECTED = "INTERNAL_UNEXPECTED"
    INTERNAL_CONFIG_ERROR = "INTERNAL_CONFIG_ERROR"
    INTERNAL_STATE_ERROR = "INTERNAL_STATE_ERROR"

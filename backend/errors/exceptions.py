"""
Custom exception hierarchy for relaybot.

All exceptions inherit from RelayError and include:
- code: ErrorCode for categorization
- message: Human-readable error message
- details: Optional additional context
- recoverable: Whether a retry/restart can resolve the issue
- context: Additional key-value pairs for debugging
"""

from typing import Any, Optional
from .codes import ErrorCode


class RelayError(Exception):
    """Base exception for all relaybot errors.

    Attributes:
        code: The ErrorCode categorizing this error
        message: Human-readable error message
        details: Optional additional context
        recoverable: Whether the error can be resolved by retrying
        context: Additional debugging information
    """

    code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        recoverable: Optional[bool] = None,
        **context: Any,
    ):
        self.message = message
        self.details = details
        self.context = context if context else None

        # Allow overriding class defaults
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable

        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message

    def to_dict(self) -> dict:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class ConduitError(RelayError):
    """Error raised by the UI automation surface (page closed, timeout, failed action)."""

    code = ErrorCode.CONDUIT_UNAVAILABLE
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        locator: Optional[str] = None,
        error_type: Optional[str] = None,
        **context: Any,
    ):
        if error_type == "timeout":
            code = ErrorCode.CONDUIT_TIMEOUT
        elif error_type == "action":
            code = ErrorCode.CONDUIT_ACTION_FAILED
        else:
            code = ErrorCode.CONDUIT_UNAVAILABLE

        ctx = {**context}
        if locator:
            ctx["locator"] = locator
        super().__init__(message, details, code=code, **ctx)


class AuthenticationError(RelayError):
    """Credential acquisition failed (attempt budget exhausted or credential rejected)."""

    code = ErrorCode.AUTH_TIMEOUT
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        attempts: Optional[int] = None,
        rejected: bool = False,
        **context: Any,
    ):
        code = ErrorCode.AUTH_CREDENTIAL_REJECTED if rejected else ErrorCode.AUTH_TIMEOUT
        ctx = {**context}
        if attempts is not None:
            ctx["attempts"] = attempts
        super().__init__(message, details, code=code, **ctx)


class SessionStoreError(RelayError):
    """Error reading, writing or removing persisted credentials."""

    code = ErrorCode.SESSION_LOAD_FAILED
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        operation: Optional[str] = None,
        identity: Optional[str] = None,
        **context: Any,
    ):
        if operation == "save":
            code = ErrorCode.SESSION_SAVE_FAILED
        elif operation == "remove":
            code = ErrorCode.SESSION_REMOVE_FAILED
        else:
            code = ErrorCode.SESSION_LOAD_FAILED

        ctx = {**context}
        if identity:
            ctx["identity"] = identity
        super().__init__(message, details, code=code, **ctx)


class ExtractionError(RelayError):
    """A candidate message could not be read from a change notification."""

    code = ErrorCode.EXTRACTION_FAILED
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        incomplete: bool = False,
        **context: Any,
    ):
        code = ErrorCode.EXTRACTION_INCOMPLETE if incomplete else ErrorCode.EXTRACTION_FAILED
        super().__init__(message, details, code=code, **context)


class HandlerError(RelayError):
    """A response handler failed while processing a message."""

    code = ErrorCode.HANDLER_FAILED
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        handler: Optional[str] = None,
        data_id: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if handler:
            ctx["handler"] = handler
        if data_id:
            ctx["data_id"] = data_id
        super().__init__(message, details, **ctx)


class LifecycleError(RelayError):
    """Invalid connection state transition."""

    code = ErrorCode.INTERNAL_STATE_ERROR
    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        current: Optional[str] = None,
        requested: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if current:
            ctx["current"] = current
        if requested:
            ctx["requested"] = requested
        super().__init__(message, details, **ctx)


class ValidationError(RelayError):
    """Error during input validation."""

    code = ErrorCode.VALIDATION_MISSING_PARAM
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        parameter: Optional[str] = None,
        expected: Optional[str] = None,
        received: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if parameter:
            ctx["parameter"] = parameter
        if expected:
            ctx["expected"] = expected
        if received:
            ctx["received"] = received
        super().__init__(message, details, **ctx)


class NotFoundError(RelayError):
    """Error when a required resource is not found."""

    code = ErrorCode.NOT_FOUND_FILE
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        **context: Any,
    ):
        # Set appropriate code based on resource type
        if resource_type == "worker":
            code = ErrorCode.NOT_FOUND_WORKER
        elif resource_type == "contact":
            code = ErrorCode.NOT_FOUND_CONTACT
        else:
            code = ErrorCode.NOT_FOUND_FILE

        ctx = {**context}
        if resource_type:
            ctx["resource_type"] = resource_type
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message, details, code=code, **ctx)

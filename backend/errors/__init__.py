"""
relaybot Error Handling Module

Provides standardized error codes, exceptions, and response builders
for consistent error handling across the application.

Usage:
    from errors import (
        # Error codes
        ErrorCode,

        # Exceptions
        RelayError,
        ConduitError,
        AuthenticationError,
        SessionStoreError,
        ExtractionError,
        HandlerError,
        LifecycleError,
        ValidationError,
        NotFoundError,

        # Response builders
        error_response,
        success_response,

        # Decorators / helpers
        handle_async_errors,
        log_error,
    )

Example:
    from errors import ConduitError

    async def read_text(self, locator):
        if self._page is None:
            raise ConduitError("Page is not open", locator=locator)
"""

from .codes import ErrorCode
from .exceptions import (
    RelayError,
    ConduitError,
    AuthenticationError,
    SessionStoreError,
    ExtractionError,
    HandlerError,
    LifecycleError,
    ValidationError,
    NotFoundError,
)
from .response import (
    error_response,
    success_response,
)
from .handlers import (
    handle_async_errors,
    log_error,
)

__all__ = [
    # Error codes
    "ErrorCode",
    # Exceptions
    "RelayError",
    "ConduitError",
    "AuthenticationError",
    "SessionStoreError",
    "ExtractionError",
    "HandlerError",
    "LifecycleError",
    "ValidationError",
    "NotFoundError",
    # Response builders
    "error_response",
    "success_response",
    # Decorators
    "handle_async_errors",
    "log_error",
]

"""
Error handling decorators and utilities for relaybot.

Provides a decorator for async operations exposed to callers outside a
worker (HTTP routes), plus a logging helper used wherever an error is
scoped to one worker, one message or one attempt.
"""

import logging
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from .exceptions import RelayError
from .response import error_response

# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., Any])


def handle_async_errors(scope: str, logger: Optional[logging.Logger] = None):
    """Decorator that catches exceptions from an async operation and returns
    a standard error response instead.

    Args:
        scope: Name of the operation for error response context
        logger: Optional logger instance (defaults to a scope-specific logger)

    Example:
        >>> @handle_async_errors("send_message")
        ... async def send(worker, to, text):
        ...     await worker.messenger.send_message(to, text)
        ...     return success_response(to=to)
    """

    def decorator(func: F) -> F:
        log = logger or logging.getLogger(f"relaybot.{scope}")

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> dict:
            try:
                return await func(*args, **kwargs)
            except RelayError as e:
                log.error(f"[{scope}] {e.code.value}: {e.message}", exc_info=True)
                return error_response(e, scope=scope)
            except Exception as e:
                log.error(f"[{scope}] Unexpected error: {e}", exc_info=True)
                return error_response(e, scope=scope)

        return wrapper  # type: ignore

    return decorator


def log_error(
    logger: logging.Logger, error: Exception, context: Optional[str] = None, include_traceback: bool = True
) -> None:
    """Log an error with consistent formatting.

    Example:
        >>> log_error(logger, err, context="worker0")
        # Logs: "[worker0] CONDUIT_TIMEOUT: Timed out reading message text"
    """
    if isinstance(error, RelayError):
        message = f"{error.code.value}: {error.message}"
    else:
        message = str(error)

    if context:
        message = f"[{context}] {message}"

    logger.error(message, exc_info=include_traceback)

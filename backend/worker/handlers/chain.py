"""
Response Chain - runs every registered handler for a message, in order.
"""

import asyncio
import logging
from typing import List

from errors import HandlerError, log_error
from ..models import CandidateMessage, DispatchResult
from .base import ResponseHandler

logger = logging.getLogger(__name__)


class ResponseChain:
    """
    Ordered list of response handlers.

    Usage:
        chain = ResponseChain()
        chain.register(FuzzyAutoResponder(messenger, rules, matcher))

        result = await chain.dispatch(message)
    """

    def __init__(self):
        self._handlers: List[ResponseHandler] = []

    def register(self, handler: ResponseHandler) -> None:
        """Append a handler; it runs after every handler registered before it."""
        self._handlers.append(handler)
        logger.info(f"Registered response handler: {handler.name}")

    def get_handlers(self) -> List[ResponseHandler]:
        return self._handlers.copy()

    def __len__(self) -> int:
        return len(self._handlers)

    async def dispatch(self, message: CandidateMessage) -> DispatchResult:
        """Await each handler in turn. A failing handler is logged and skipped."""
        result = DispatchResult()
        for handler in list(self._handlers):
            logger.debug(f"Handling {message.data_id} with {handler.name}")
            try:
                await handler.handle(message)
                result.handled.append(handler.name)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = HandlerError(
                    f"Handler {handler.name} failed", details=str(e), handler=handler.name, data_id=message.data_id
                )
                log_error(logger, error)
                result.failed.append(handler.name)
        return result

"""
Base Handler - Abstract base class for response handlers.

A handler receives every message drained from the ingestion queue and
decides on its own whether to act (reply, forward, record, ...).
"""

from abc import ABC, abstractmethod

from ..models import CandidateMessage


class ResponseHandler(ABC):
    """
    Abstract base class for response handlers.

    Handlers run in registration order; each one is awaited to completion
    before the next one sees the message.
    """

    name: str = "base"

    @abstractmethod
    async def handle(self, message: CandidateMessage) -> None:
        """
        Process one incoming message.

        Raising marks this handler as failed for the message; the chain
        still runs the remaining handlers.
        """
        pass

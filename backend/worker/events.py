"""
relaybot Event Bus - lifecycle and processing notifications

A small async emitter. Listeners are awaited in registration order, so an
emitter that awaits ``emit`` knows every listener has finished. A listener
that raises is logged and skipped.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

from errors import log_error

logger = logging.getLogger(__name__)

# Event names
QR = "qr"
AUTHENTICATED = "authenticated"
AUTH_FAILED = "auth_failed"
READY = "ready"
DISCONNECTED = "disconnected"
INCOMING_MESSAGE = "incomingMessage"
MESSAGE_RECEIVED = "message_received"

EVENT_NAMES = (QR, AUTHENTICATED, AUTH_FAILED, READY, DISCONNECTED, INCOMING_MESSAGE, MESSAGE_RECEIVED)

Listener = Callable[..., Any]


class EventBus:
    """Named-event emitter with sync or async listeners."""

    def __init__(self, name: str = "events"):
        self.name = name
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def on(self, event: str, listener: Listener) -> None:
        """Register a listener for an event."""
        self._listeners[event].append(listener)

    def off(self, event: str, listener: Listener) -> None:
        """Remove a listener. Unknown listeners are ignored."""
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            pass

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    async def emit(self, event: str, *args: Any) -> None:
        """Call every listener of ``event`` in order, awaiting coroutine results."""
        for listener in list(self._listeners.get(event, ())):
            try:
                result = listener(*args)
                if asyncio.iscoroutine(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log_error(logger, e, context=f"{self.name}:{event}")

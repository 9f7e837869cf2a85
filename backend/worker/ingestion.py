"""
Ingestion Pipeline - change notifications in, handled messages out.

One pipeline instance lives exactly as long as one Ready session:

1. Subscribe to changes under the chat list
2. Keep text changes and new nodes carrying a message marker
3. Open the conversation the change points at, then read the data-id of
   the latest incoming row and the text inside that same row (bounded
   retries), all under the worker's page lock
4. Drop ids already seen this session, queue the rest (FIFO)
5. Drain the queue one message at a time through the ResponseChain,
   pausing ``drain_delay`` after each

The processed-id set and the queue belong to the instance and are
discarded by ``stop()``; a reconnection builds a new pipeline, so ids are
remembered for one session only.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Deque, Dict, Optional, Set

from errors import ConduitError, ExtractionError, log_error
from logging_config import log_message_in
from services.ui_conduit import UIConduit
from . import events
from .events import EventBus
from .handlers.chain import ResponseChain
from .models import CandidateMessage, ChangeKind, RawChangeEvent, sender_from_data_id
from .selectors import DEFAULT_SELECTORS, Selectors

logger = logging.getLogger(__name__)

# Pause between read attempts when the message element exists but is incomplete
RETRY_PAUSE = 0.5


class IngestionPipeline:
    """Filter, deduplicate, queue and drain incoming messages for one session."""

    def __init__(
        self,
        conduit: UIConduit,
        chain: ResponseChain,
        bus: EventBus,
        selectors: Selectors = DEFAULT_SELECTORS,
        drain_delay: float = 1.0,
        read_timeout: float = 5.0,
        read_attempts: int = 3,
        name: str = "pipeline",
        page_lock: Optional[asyncio.Lock] = None,
    ):
        self.conduit = conduit
        self.chain = chain
        self.bus = bus
        self.selectors = selectors
        self.drain_delay = drain_delay
        self.read_timeout = read_timeout
        self.read_attempts = max(1, read_attempts)
        self.name = name

        self.processed: Set[str] = set()
        self.queue: Deque[CandidateMessage] = deque()
        self.active = False

        self.accepted = 0
        self.duplicates = 0
        self.handled = 0
        self.dropped = 0

        self._stopping = asyncio.Event()
        # shared with the Messenger: one holder drives the page at a time
        self.page_lock = page_lock or asyncio.Lock()
        self._drain_task: Optional[asyncio.Task] = None
        self._subscription_task: Optional[asyncio.Task] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Begin consuming chat-list changes."""
        if self.active:
            return
        self.active = True
        self._stopping.clear()
        self._subscription_task = asyncio.create_task(self._consume())
        logger.info(f"[{self.name}] Ingestion started")

    async def _consume(self) -> None:
        try:
            async for event in self.conduit.subscribe_to_changes(self.selectors.chat_list):
                if not self.active:
                    return
                await self.on_change_event(event)
        except ConduitError as e:
            log_error(logger, e, context=f"{self.name} subscription", include_traceback=False)

    async def stop(self) -> None:
        """Stop ingesting. The in-flight message finishes; queued ones are dropped."""
        if not self.active and self._drain_task is None and self._subscription_task is None:
            return
        self.active = False
        self._stopping.set()
        current = asyncio.current_task()

        task, self._subscription_task = self._subscription_task, None
        if task is not None and task is not current and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        task, self._drain_task = self._drain_task, None
        if task is not None and task is not current:
            await task

        self.dropped += len(self.queue)
        if self.queue:
            logger.warning(f"[{self.name}] Dropping {len(self.queue)} queued message(s)")
        self.queue.clear()
        self.processed.clear()
        logger.info(f"[{self.name}] Ingestion stopped")

    # -------------------------------------------------------------------------
    # Filter + extraction
    # -------------------------------------------------------------------------

    def is_candidate(self, event: RawChangeEvent) -> bool:
        """Whether a change plausibly signals a new incoming message."""
        if event.kind == ChangeKind.TEXT:
            return True
        if event.kind == ChangeKind.SUBTREE:
            return self.selectors.is_message_payload(event.payload_text)
        return False

    async def on_change_event(self, event: RawChangeEvent) -> Optional[CandidateMessage]:
        """Turn one change into a queued message, if it yields a new one."""
        if not self.active or not self.is_candidate(event):
            return None

        async with self.page_lock:
            candidate = await self._extract(event)
        if candidate is None:
            return None
        return candidate if self.enqueue(candidate) else None

    async def _extract(self, event: RawChangeEvent) -> Optional[CandidateMessage]:
        if event.locator_hint:
            try:
                await self.conduit.click(event.locator_hint)
            except ConduitError as e:
                log_error(logger, e, context=f"{self.name} open chat", include_traceback=False)
                return None

        last_error: Optional[Exception] = None
        for attempt in range(1, self.read_attempts + 1):
            try:
                if await self.conduit.wait_for(self.selectors.incoming_row, self.read_timeout):
                    data_id = await self.conduit.read_attribute(
                        self.selectors.incoming_row, self.selectors.incoming_id_attribute, timeout=self.read_timeout
                    )
                    text = None
                    if data_id:
                        text = await self.conduit.read_text(
                            self.selectors.message_text(data_id), timeout=self.read_timeout
                        )
                    if text and text.strip() and data_id:
                        return CandidateMessage(
                            data_id=data_id,
                            sender_hint=sender_from_data_id(data_id),
                            text=text.strip(),
                            chat_locator=event.locator_hint,
                        )
                    last_error = ExtractionError("Message text or id missing", incomplete=True, data_id=data_id)
                else:
                    last_error = ExtractionError("No incoming message element")
            except ConduitError as e:
                last_error = e

            logger.debug(f"[{self.name}] Read attempt {attempt}/{self.read_attempts} failed: {last_error}")
            if attempt < self.read_attempts:
                await asyncio.sleep(min(RETRY_PAUSE, self.read_timeout))

        log_error(
            logger,
            ExtractionError("Candidate dropped", details=str(last_error), locator=event.locator_hint),
            context=self.name,
            include_traceback=False,
        )
        return None

    # -------------------------------------------------------------------------
    # Queue
    # -------------------------------------------------------------------------

    def enqueue(self, candidate: CandidateMessage) -> bool:
        """Queue a message unless its data_id was already seen this session."""
        if not self.active:
            return False
        if candidate.data_id in self.processed:
            self.duplicates += 1
            logger.debug(f"[{self.name}] Duplicate ignored: {candidate.data_id}")
            return False

        self.processed.add(candidate.data_id)
        self.queue.append(candidate)
        self.accepted += 1
        log_message_in(logger, candidate.text, worker=self.name, sender=candidate.sender_hint)

        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.create_task(self._drain())
        return True

    async def _drain(self) -> None:
        while self.queue and self.active:
            message = self.queue.popleft()
            try:
                await self._process(message)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log_error(logger, e, context=f"{self.name} {message.data_id}")

            # rate limit between handled messages; stop() cuts it short
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.drain_delay)
            except asyncio.TimeoutError:
                pass

    async def _process(self, message: CandidateMessage) -> None:
        logger.info(f"[{self.name}] Processing message: {message.text}")
        await self.bus.emit(events.INCOMING_MESSAGE, message)
        # handlers reach the page through the Messenger, which takes the page lock
        result = await self.chain.dispatch(message)
        self.handled += 1
        await self.bus.emit(events.MESSAGE_RECEIVED, message, result)

    def status(self) -> Dict[str, Any]:
        return {
            "active": self.active,
            "queued": len(self.queue),
            "processed": len(self.processed),
            "accepted": self.accepted,
            "duplicates": self.duplicates,
            "handled": self.handled,
            "dropped": self.dropped,
        }

"""
Messenger - outbound actions for one worker.

Replies go into a given conversation (or the one currently open); sends to
a specific number first open that contact through the new-chat search.

``page_lock`` is the worker's single page lock. Every sequence of clicks
and keystrokes here runs under it, and the ingestion pipeline takes the
same lock while it opens a chat and reads from it, so an auto-reply, an
API-triggered send and a message read never interleave on the page.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence

from errors import ConduitError, NotFoundError
from logging_config import log_message_out
from services.ui_conduit import UIConduit
from .selectors import DEFAULT_SELECTORS, Selectors
from .similarity import levenshtein_distance

logger = logging.getLogger(__name__)


class Messenger:
    """Types and sends messages through a UIConduit."""

    def __init__(
        self,
        conduit: UIConduit,
        selectors: Selectors = DEFAULT_SELECTORS,
        send_delay: float = 3.0,
        search_delay: float = 3.0,
        wait_timeout: float = 10.0,
        name: str = "messenger",
    ):
        self.conduit = conduit
        self.selectors = selectors
        self.send_delay = send_delay
        self.search_delay = search_delay
        self.wait_timeout = wait_timeout
        self.name = name
        self.page_lock = asyncio.Lock()

    async def _require(self, locator: str) -> None:
        if not await self.conduit.wait_for(locator, self.wait_timeout):
            raise ConduitError("Element did not appear", locator=locator, error_type="timeout")

    async def _type_and_send(self, text: str) -> None:
        await self._require(self.selectors.compose_box)
        await self.conduit.click(self.selectors.compose_box)
        await self.conduit.type(self.selectors.compose_box, text)
        await self.conduit.press(self.selectors.compose_box, "Enter")

    async def _open_chat(self, phone: str) -> None:
        logger.info(f"[{self.name}] Searching for contact: {phone}")
        await self._require(self.selectors.new_chat_button)
        await self.conduit.click(self.selectors.new_chat_button)
        await self._require(self.selectors.search_box)
        await self.conduit.type(self.selectors.search_box, phone)

        # search results render asynchronously
        await asyncio.sleep(self.search_delay)

        titles = await self.conduit.read_attributes(self.selectors.search_results, "title")
        best_index: Optional[int] = None
        best_distance: Optional[int] = None
        for index, title in enumerate(titles):
            if not title:
                continue
            distance = levenshtein_distance(phone, title)
            if best_distance is None or distance < best_distance:
                best_index, best_distance = index, distance

        if best_index is None:
            raise NotFoundError("No matching contact found", resource_type="contact", resource_id=phone)

        await self.conduit.click(self.selectors.search_results, index=best_index)
        logger.debug(f"[{self.name}] Opened chat '{titles[best_index]}' (distance {best_distance})")

    async def reply(self, text: str, chat_locator: Optional[str] = None) -> None:
        """Send ``text`` in the conversation at ``chat_locator``.

        Opening the conversation and typing happen under one hold of the
        page lock. Without a locator the reply goes to the open conversation.
        """
        async with self.page_lock:
            if chat_locator:
                await self.conduit.click(chat_locator)
            await self._type_and_send(text)
        log_message_out(logger, text, worker=self.name)

    async def send_message(self, to: str, text: str) -> None:
        async with self.page_lock:
            await self._open_chat(to)
            await self._type_and_send(text)
        log_message_out(logger, text, to=to, worker=self.name)

    async def send_messages(self, to: str, texts: Sequence[str], delay: Optional[float] = None) -> None:
        """Send several messages to one contact, pausing ``delay`` seconds after each."""
        delay = self.send_delay if delay is None else delay
        async with self.page_lock:
            await self._open_chat(to)
            for text in texts:
                await self._type_and_send(text)
                log_message_out(logger, text, to=to, worker=self.name)
                await asyncio.sleep(delay)

    async def send_file(self, to: str, path: str, caption: Optional[str] = None) -> None:
        """Attach a file (image, document) and send it, with an optional caption."""
        if not await asyncio.to_thread(Path(path).is_file):
            raise NotFoundError("File to send does not exist", resource_type="file", resource_id=path)

        async with self.page_lock:
            await self._open_chat(to)
            await self._require(self.selectors.attach_button)
            await self.conduit.click(self.selectors.attach_button)
            await self.conduit.upload_file(self.selectors.file_input, path)
            await self._require(self.selectors.media_send)
            if caption:
                await self.conduit.type(self.selectors.media_caption, caption)
            await self.conduit.click(self.selectors.media_send)
        log_message_out(logger, f"[file] {Path(path).name}", to=to, worker=self.name)

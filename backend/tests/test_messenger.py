"""
Tests for outbound actions: replies, contact search, files.
"""

import asyncio

import pytest

from conftest import FakeConduit
from errors import ConduitError, ErrorCode, NotFoundError
from worker.messenger import Messenger
from worker.selectors import DEFAULT_SELECTORS

SEL = DEFAULT_SELECTORS


def _messenger(conduit=None):
    conduit = conduit or FakeConduit()
    conduit.present.update({SEL.compose_box, SEL.new_chat_button, SEL.search_box, SEL.attach_button, SEL.media_send})
    return Messenger(conduit, SEL, send_delay=0, search_delay=0, wait_timeout=0.01), conduit


class TestReply:
    """Typing into a conversation."""

    def test_reply_types_and_sends(self):
        messenger, conduit = _messenger()

        asyncio.run(messenger.reply("Hi!"))

        assert conduit.clicks == [(SEL.compose_box, None)]
        assert conduit.typed == [(SEL.compose_box, "Hi!")]
        assert conduit.pressed == [(SEL.compose_box, "Enter")]

    def test_reply_reopens_conversation_first(self):
        messenger, conduit = _messenger()

        asyncio.run(messenger.reply("Hi!", chat_locator='[aria-label="Maria"]'))

        assert conduit.clicks == [('[aria-label="Maria"]', None), (SEL.compose_box, None)]
        assert conduit.typed == [(SEL.compose_box, "Hi!")]

    def test_reply_waits_for_page_lock(self):
        async def scenario():
            messenger, conduit = _messenger()
            await messenger.page_lock.acquire()
            reply = asyncio.create_task(messenger.reply("Hi!", chat_locator='[aria-label="Maria"]'))
            await asyncio.sleep(0.01)
            blocked = list(conduit.clicks)
            messenger.page_lock.release()
            await asyncio.wait_for(reply, timeout=2)
            return blocked, conduit

        blocked, conduit = asyncio.run(scenario())

        assert blocked == []
        assert conduit.typed == [(SEL.compose_box, "Hi!")]

    def test_missing_compose_box_raises_timeout(self):
        messenger, conduit = _messenger()
        conduit.present.discard(SEL.compose_box)

        with pytest.raises(ConduitError) as exc_info:
            asyncio.run(messenger.reply("Hi!"))

        assert exc_info.value.code == ErrorCode.CONDUIT_TIMEOUT
        assert conduit.typed == []


class TestSendMessage:
    """Opening a contact through the new-chat search."""

    def test_picks_closest_search_result(self):
        messenger, conduit = _messenger()
        conduit.attribute_lists[(SEL.search_results, "title")] = ["Maria", "+55 11 99999-0000", "5511999990000"]

        asyncio.run(messenger.send_message("5511999990000", "bom dia"))

        assert (SEL.search_box, "5511999990000") in conduit.typed
        assert (SEL.search_results, 2) in conduit.clicks
        assert conduit.typed[-1] == (SEL.compose_box, "bom dia")

    def test_first_result_wins_ties(self):
        messenger, conduit = _messenger()
        conduit.attribute_lists[(SEL.search_results, "title")] = ["5511999990001", "5511999990002"]

        asyncio.run(messenger.send_message("5511999990000", "oi"))

        assert (SEL.search_results, 0) in conduit.clicks

    def test_empty_titles_are_skipped(self):
        messenger, conduit = _messenger()
        conduit.attribute_lists[(SEL.search_results, "title")] = [None, "", "5511"]

        asyncio.run(messenger.send_message("5511", "oi"))

        assert (SEL.search_results, 2) in conduit.clicks

    def test_no_results_raises_contact_not_found(self):
        messenger, conduit = _messenger()

        with pytest.raises(NotFoundError) as exc_info:
            asyncio.run(messenger.send_message("5511999990000", "oi"))

        assert exc_info.value.code == ErrorCode.NOT_FOUND_CONTACT
        assert (SEL.compose_box, "oi") not in conduit.typed

    def test_send_messages_opens_chat_once(self):
        messenger, conduit = _messenger()
        conduit.attribute_lists[(SEL.search_results, "title")] = ["5511"]

        asyncio.run(messenger.send_messages("5511", ["um", "dois", "três"]))

        assert conduit.typed.count((SEL.search_box, "5511")) == 1
        sent = [text for locator, text in conduit.typed if locator == SEL.compose_box]
        assert sent == ["um", "dois", "três"]


class TestSendFile:
    """Attaching and sending a file."""

    def test_sends_file_with_caption(self, tmp_path):
        path = tmp_path / "catalogo.pdf"
        path.write_bytes(b"%PDF-1.4")
        messenger, conduit = _messenger()
        conduit.attribute_lists[(SEL.search_results, "title")] = ["5511"]

        asyncio.run(messenger.send_file("5511", str(path), caption="Nosso catálogo"))

        assert conduit.uploads == [(SEL.file_input, str(path))]
        assert (SEL.media_caption, "Nosso catálogo") in conduit.typed
        assert conduit.clicks[-1] == (SEL.media_send, None)

    def test_missing_file_raises_before_touching_page(self, tmp_path):
        messenger, conduit = _messenger()

        with pytest.raises(NotFoundError) as exc_info:
            asyncio.run(messenger.send_file("5511", str(tmp_path / "missing.png")))

        assert exc_info.value.code == ErrorCode.NOT_FOUND_FILE
        assert conduit.clicks == []

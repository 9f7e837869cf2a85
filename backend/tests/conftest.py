"""
Shared pytest fixtures and fakes for the worker tests.

FakeConduit stands in for the browser: tests decide which locators are
present, what they read back, and push change notifications into the
streams a component subscribed to. Every wait yields to the event loop so
polling loops never spin.
"""

import asyncio
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

import pytest

from config import RuntimeConfig
from errors import ConduitError
from services.session_store import SessionStore
from services.ui_conduit import UIConduit
from worker.models import ChangeKind, Credential, Identity, RawChangeEvent
from worker.selectors import DEFAULT_SELECTORS, Selectors


class FakeConduit(UIConduit):
    """In-memory UIConduit. Records every action it receives."""

    def __init__(self, selectors: Selectors = DEFAULT_SELECTORS):
        self.selectors = selectors

        # Page behaviour
        self.alive = True
        self.ready = False
        self.ready_on_navigate = True
        self.accept_credential = True
        self.navigate_failures = 0
        self.present: set = set()
        self.texts: Dict[str, Optional[str]] = {}
        self.attributes: Dict[Tuple[str, str], Optional[str]] = {}
        self.attribute_lists: Dict[Tuple[str, str], List[Optional[str]]] = {}
        self.failing_clicks: set = set()
        self.credential = Credential(
            cookies=[{"name": "wa_session", "value": "abc", "domain": ".web.whatsapp.com", "path": "/"}],
            local_storage={"WAToken1": "token"},
        )

        # Recorded calls
        self.navigations = 0
        self.waits: List[Tuple[str, float]] = []
        self.clicks: List[Tuple[str, Optional[int]]] = []
        self.typed: List[Tuple[str, str]] = []
        self.pressed: List[Tuple[str, str]] = []
        self.uploads: List[Tuple[str, str]] = []
        self.applied: List[Credential] = []
        self.closes: List[bool] = []

        self._streams: Dict[str, List[asyncio.Queue]] = defaultdict(list)

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def subscribers(self, scope: str) -> int:
        return len(self._streams[scope])

    def push(self, scope: str, event: RawChangeEvent) -> None:
        for queue in list(self._streams[scope]):
            queue.put_nowait(event)

    def ready_waits(self) -> int:
        return sum(1 for locator, _ in self.waits if locator == self.selectors.ready)

    @property
    def closed(self) -> bool:
        return bool(self.closes)

    # -------------------------------------------------------------------------
    # UIConduit
    # -------------------------------------------------------------------------

    async def navigate(self) -> None:
        await asyncio.sleep(0)
        self.navigations += 1
        if self.navigate_failures > 0:
            self.navigate_failures -= 1
            raise ConduitError("Navigation failed", error_type="timeout")
        self.alive = True
        self.ready = self.ready_on_navigate

    async def is_alive(self) -> bool:
        await asyncio.sleep(0)
        return self.alive

    async def wait_for(self, locator: str, timeout: float) -> bool:
        self.waits.append((locator, timeout))
        if locator == self.selectors.ready:
            # a missing marker costs the full timeout, like the browser
            await asyncio.sleep(0 if self.ready else timeout)
            return self.ready
        await asyncio.sleep(0)
        return locator in self.present or self.texts.get(locator) is not None

    async def _stream(self, scope: str):
        queue: asyncio.Queue = asyncio.Queue()
        self._streams[scope].append(queue)
        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield event
        finally:
            self._streams[scope].remove(queue)

    def subscribe_to_changes(self, scope, attributes=None):
        return self._stream(scope)

    async def read_text(self, locator: str, timeout: Optional[float] = None) -> Optional[str]:
        await asyncio.sleep(0)
        return self.texts.get(locator)

    async def read_attribute(self, locator: str, name: str, timeout: Optional[float] = None) -> Optional[str]:
        await asyncio.sleep(0)
        return self.attributes.get((locator, name))

    async def read_attributes(self, locator: str, name: str) -> List[Optional[str]]:
        await asyncio.sleep(0)
        return list(self.attribute_lists.get((locator, name), []))

    async def click(self, locator: str, index: Optional[int] = None) -> None:
        await asyncio.sleep(0)
        if locator in self.failing_clicks:
            raise ConduitError("Click failed", locator=locator, error_type="action")
        self.clicks.append((locator, index))

    async def type(self, locator: str, text: str) -> None:
        await asyncio.sleep(0)
        self.typed.append((locator, text))

    async def press(self, locator: str, key: str) -> None:
        await asyncio.sleep(0)
        self.pressed.append((locator, key))

    async def upload_file(self, locator: str, path: str) -> None:
        await asyncio.sleep(0)
        self.uploads.append((locator, path))

    async def export_credential(self) -> Credential:
        await asyncio.sleep(0)
        return self.credential

    async def apply_credential(self, credential: Credential) -> None:
        await asyncio.sleep(0)
        self.applied.append(credential)
        self.ready = self.accept_credential

    async def close(self, discard_profile: bool = False) -> None:
        await asyncio.sleep(0)
        self.closes.append(discard_profile)
        self.alive = False
        self.ready = False
        for queues in self._streams.values():
            for queue in list(queues):
                queue.put_nowait(None)


class InMemorySessionStore(SessionStore):
    """SessionStore keeping credentials in a dict."""

    def __init__(self):
        self.credentials: Dict[str, Credential] = {}
        self.saved: List[str] = []
        self.removed: List[str] = []

    async def load(self, identity: Identity) -> Optional[Credential]:
        return self.credentials.get(identity.key)

    async def save(self, identity: Identity, credential: Credential) -> bool:
        self.credentials[identity.key] = credential
        self.saved.append(identity.key)
        return True

    async def remove(self, identity: Identity) -> bool:
        self.credentials.pop(identity.key, None)
        self.removed.append(identity.key)
        return True


class EventRecorder:
    """Listener that records (event, args) pairs in arrival order."""

    def __init__(self, bus, names):
        self.events: List[Tuple[str, Tuple[Any, ...]]] = []
        for name in names:
            bus.on(name, self._make(name))

    def _make(self, name):
        def listener(*args):
            self.events.append((name, args))

        return listener

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def count(self, name: str) -> int:
        return self.names.count(name)


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> None:
    """Poll ``predicate`` until it holds; fail the test after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)


def chat_event(label: str = "Maria", kind: ChangeKind = ChangeKind.TEXT, payload: str = "1") -> RawChangeEvent:
    """A chat-list change pointing at the conversation row labelled ``label``."""
    return RawChangeEvent(kind=kind, locator_hint=f'[aria-label="{label}"]', payload_text=payload)


def make_settings(**overrides) -> RuntimeConfig:
    """RuntimeConfig with every delay shrunk for tests."""
    values = dict(
        account_id="test",
        worker_count=1,
        sequential_startup=True,
        check_interval_ms=1,
        max_attempts=3,
        restore_timeout_ms=1,
        drain_delay_ms=0,
        read_timeout_ms=1,
        read_attempts=2,
        send_delay_ms=0,
        search_delay_ms=0,
    )
    values.update(overrides)
    return RuntimeConfig(**values)


@pytest.fixture
def identity():
    """The identity most tests run as."""
    return Identity("test", "worker0")


@pytest.fixture
def conduit():
    """A fresh FakeConduit."""
    return FakeConduit()


@pytest.fixture
def store():
    """An empty in-memory session store."""
    return InMemorySessionStore()


@pytest.fixture
def settings():
    """Fast runtime settings."""
    return make_settings()

"""
relaybot Worker Models - Shared value types

Dataclasses and enums passed between the conduit, the lifecycle, the
ingestion pipeline and the response handlers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class ConnectionState(str, Enum):
    """Connection state of one worker. Exactly one is current at a time."""

    INITIALIZING = "initializing"
    AWAITING_CREDENTIAL = "awaiting_credential"
    READY = "ready"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


class ChangeKind(str, Enum):
    """Kind of UI change reported by a conduit subscription."""

    ATTRIBUTE = "attribute"
    TEXT = "text"
    SUBTREE = "subtree"


@dataclass(frozen=True)
class Identity:
    """Stable (account, worker) pair identifying one logical session."""

    account_id: str
    worker_id: str

    @property
    def key(self) -> str:
        return f"{self.account_id}/{self.worker_id}"

    def __str__(self) -> str:
        return self.key


@dataclass
class Credential:
    """Opaque session material: a cookie jar plus a localStorage snapshot."""

    cookies: List[Dict[str, Any]] = field(default_factory=list)
    local_storage: Dict[str, str] = field(default_factory=dict)

    @property
    def is_usable(self) -> bool:
        return bool(self.cookies) or bool(self.local_storage)


@dataclass(frozen=True)
class RawChangeEvent:
    """One change notification from a conduit subscription.

    Attributes:
        kind: What changed (attribute, text content, subtree)
        locator_hint: Locator of the element the change is about, if known
            (for chat-list changes, the conversation row to open)
        payload_text: Text carried by the change, if any
    """

    kind: ChangeKind
    locator_hint: Optional[str] = None
    payload_text: Optional[str] = None


@dataclass(frozen=True)
class CandidateMessage:
    """An incoming message extracted from the UI. data_id is the dedup key.

    chat_locator is the conversation row the message was read from; replies
    reopen it before typing.
    """

    data_id: str
    sender_hint: Optional[str]
    text: str
    chat_locator: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"data_id": self.data_id, "sender_hint": self.sender_hint, "text": self.text}


@dataclass(frozen=True)
class ResponseRule:
    """Question/answer pair used by the fuzzy auto-responder."""

    question: str
    answer: str


@dataclass
class DispatchResult:
    """Outcome of running one message through the response chain."""

    handled: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {"handled": list(self.handled), "failed": list(self.failed)}


# Canonical key -> normalized surface forms (key included)
SynonymGroups = Mapping[str, frozenset]


def sender_from_data_id(data_id: Optional[str]) -> Optional[str]:
    """Extract the sender's number from a message data-id.

    Message ids look like ``false_5511999999999@c.us_3EB0C767D26A1D0B1A36``:
    direction flag, chat jid, message hash. Returns None when the id does
    not follow that shape.
    """
    if not data_id:
        return None
    parts = data_id.split("_")
    if len(parts) < 2:
        return None
    number = parts[1].split("@")[0]
    return number or None

"""
relaybot Worker - one automated messaging session per identity.

Architecture:
    ConnectionLifecycle (worker.lifecycle) drives the session to Ready (QR
    or stored credential) and recovers it after a disconnection. While
    Ready, an IngestionPipeline (worker.ingestion) turns chat-list changes
    into deduplicated messages and drains them through a ResponseChain
    (worker.handlers), e.g. the FuzzyAutoResponder.

    Worker composes these for one Identity; WorkerManager runs N workers
    (worker.orchestrator).

Only the leaf modules are re-exported here; services import the models,
and the composing modules import services.
"""

from .events import EventBus
from .models import (
    CandidateMessage,
    ChangeKind,
    ConnectionState,
    Credential,
    DispatchResult,
    Identity,
    RawChangeEvent,
    ResponseRule,
    sender_from_data_id,
)
from .similarity import SimilarityMatcher, levenshtein_distance, load_synonyms, normalize

__all__ = [
    "EventBus",
    "CandidateMessage",
    "ChangeKind",
    "ConnectionState",
    "Credential",
    "DispatchResult",
    "Identity",
    "RawChangeEvent",
    "ResponseRule",
    "sender_from_data_id",
    "SimilarityMatcher",
    "levenshtein_distance",
    "load_synonyms",
    "normalize",
]

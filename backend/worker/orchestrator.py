"""
Orchestrator - composes lifecycle, pipeline and handlers per worker.

A Worker is one Identity with its own browser, event bus, lifecycle and
(while Ready) ingestion pipeline. The WorkerManager builds ``worker_count``
workers for an account; they share only the read-only response rules and
synonym groups.

Usage:
    manager = get_worker_manager()
    await manager.start_all()
    manager.get("worker0").on("qr", print)
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from config import RuntimeConfig, get_config
from errors import NotFoundError, log_error
from services.qr_render import render_terminal
from services.session_store import FileSessionStore, SessionStore
from services.ui_conduit import UIConduit
from . import events
from .events import EventBus, Listener
from .handlers import FuzzyAutoResponder, ResponseChain, ResponseHandler, load_response_rules
from .ingestion import IngestionPipeline
from .lifecycle import ConnectionLifecycle
from .messenger import Messenger
from .models import ConnectionState, Identity, ResponseRule, SynonymGroups
from .selectors import DEFAULT_SELECTORS, Selectors
from .similarity import SimilarityMatcher, load_synonyms

logger = logging.getLogger(__name__)

ConduitFactory = Callable[[Identity], UIConduit]


class Worker:
    """One independent session: lifecycle events drive the ingestion pipeline."""

    def __init__(
        self,
        identity: Identity,
        conduit: UIConduit,
        store: SessionStore,
        settings: RuntimeConfig,
        chain: Optional[ResponseChain] = None,
        selectors: Selectors = DEFAULT_SELECTORS,
    ):
        self.identity = identity
        self.conduit = conduit
        self.settings = settings
        self.selectors = selectors
        self.chain = chain or ResponseChain()
        self.bus = EventBus(identity.key)
        self.messenger = Messenger(
            conduit,
            selectors,
            send_delay=settings.send_delay,
            search_delay=settings.search_delay,
            name=identity.key,
        )
        self.lifecycle = ConnectionLifecycle(
            identity,
            conduit,
            store,
            self.bus,
            check_interval=settings.check_interval,
            max_attempts=settings.max_attempts,
            restore_timeout=settings.restore_timeout,
            selectors=selectors,
        )
        self.pipeline: Optional[IngestionPipeline] = None
        self.qr_code: Optional[str] = None
        self._start_task: Optional[asyncio.Task] = None

        # registered first so the pipeline exists before user listeners run
        self.bus.on(events.QR, self._on_qr)
        self.bus.on(events.AUTHENTICATED, self._on_authenticated)
        self.bus.on(events.READY, self._on_ready)
        self.bus.on(events.DISCONNECTED, self._stop_pipeline)
        self.bus.on(events.AUTH_FAILED, self._stop_pipeline)

    @property
    def worker_id(self) -> str:
        return self.identity.worker_id

    @property
    def state(self) -> ConnectionState:
        return self.lifecycle.state

    def on(self, event: str, listener: Listener) -> None:
        """Subscribe to a worker event (see worker.events)."""
        self.bus.on(event, listener)

    def add_response_handler(self, handler: ResponseHandler) -> None:
        self.chain.register(handler)

    def apply_settings(self) -> None:
        """Push the current runtime settings into the running components.

        Pacing and thresholds apply from the next use; the credential wait
        budget applies from the next connection cycle.
        """
        settings = self.settings
        self.lifecycle.check_interval = settings.check_interval
        self.lifecycle.max_attempts = settings.max_attempts
        self.lifecycle.restore_timeout = settings.restore_timeout
        self.messenger.send_delay = settings.send_delay
        self.messenger.search_delay = settings.search_delay
        if self.pipeline is not None:
            self.pipeline.drain_delay = settings.drain_delay
            self.pipeline.read_timeout = settings.read_timeout
            self.pipeline.read_attempts = max(1, settings.read_attempts)
        for handler in self.chain.get_handlers():
            if isinstance(handler, FuzzyAutoResponder):
                handler.threshold = settings.similarity_threshold

    # -------------------------------------------------------------------------
    # Event reactions
    # -------------------------------------------------------------------------

    def _on_qr(self, code: str) -> None:
        self.qr_code = code
        logger.info(f"[{self.identity.key}] Scan this QR code with the phone:\n{render_terminal(code)}")

    def _on_authenticated(self) -> None:
        self.qr_code = None

    async def _on_ready(self) -> None:
        await self._stop_pipeline()
        self.pipeline = IngestionPipeline(
            self.conduit,
            self.chain,
            self.bus,
            selectors=self.selectors,
            drain_delay=self.settings.drain_delay,
            read_timeout=self.settings.read_timeout,
            read_attempts=self.settings.read_attempts,
            name=self.identity.key,
            page_lock=self.messenger.page_lock,
        )
        self.pipeline.start()

    async def _stop_pipeline(self) -> None:
        pipeline, self.pipeline = self.pipeline, None
        if pipeline is not None:
            await pipeline.stop()

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    async def start(self) -> ConnectionState:
        """Run a connection cycle; returns once Ready or Failed."""
        if self._start_task is not None and not self._start_task.done():
            logger.warning(f"[{self.identity.key}] Start ignored: already starting")
            return await asyncio.shield(self._start_task)
        self._start_task = asyncio.create_task(self.lifecycle.start())
        return await asyncio.shield(self._start_task)

    async def restart(self) -> None:
        """Reconnect when Ready, otherwise begin a new cycle in the background."""
        if self.lifecycle.is_ready:
            await self.lifecycle.disconnect()
            return
        if self._start_task is not None and not self._start_task.done():
            logger.info(f"[{self.identity.key}] Restart ignored: a connection cycle is running")
            return
        self._start_task = asyncio.create_task(self.lifecycle.start())

    async def logout(self) -> None:
        await self.lifecycle.logout()

    async def stop(self) -> None:
        # ends a running cycle; the start task then returns the stopped state
        await self.lifecycle.stop()
        task, self._start_task = self._start_task, None
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        await self._stop_pipeline()

    def status(self) -> Dict[str, Any]:
        return {
            "worker_id": self.identity.worker_id,
            "account_id": self.identity.account_id,
            "state": self.state.value,
            "qr_available": self.qr_code is not None,
            "cycles": self.lifecycle.cycles,
            "recoveries": self.lifecycle.recoveries,
            "handlers": [h.name for h in self.chain.get_handlers()],
            "pipeline": self.pipeline.status() if self.pipeline else None,
        }


def _playwright_factory(config: RuntimeConfig) -> ConduitFactory:
    def build(identity: Identity) -> UIConduit:
        from services.playwright_conduit import PlaywrightConduit

        return PlaywrightConduit(identity, user_data_dir=config.user_data_dir, headless=config.headless)

    return build


class WorkerManager:
    """Builds and runs the workers of one account."""

    def __init__(
        self,
        config: RuntimeConfig,
        account_id: Optional[str] = None,
        conduit_factory: Optional[ConduitFactory] = None,
        store: Optional[SessionStore] = None,
        rules: Optional[Sequence[ResponseRule]] = None,
        synonyms: Optional[SynonymGroups] = None,
        selectors: Selectors = DEFAULT_SELECTORS,
    ):
        self.config = config
        self.account_id = account_id or config.account_id
        self.store = store or FileSessionStore(config.sessions_dir)
        self.rules = tuple(rules) if rules is not None else load_response_rules(config.responses_file_path)
        self.matcher = SimilarityMatcher(synonyms if synonyms is not None else load_synonyms(config.synonyms_file_path))
        conduit_factory = conduit_factory or _playwright_factory(config)

        self.workers: Dict[str, Worker] = {}
        for index in range(config.worker_count):
            identity = Identity(self.account_id, f"worker{index}")
            worker = Worker(identity, conduit_factory(identity), self.store, config, selectors=selectors)
            worker.add_response_handler(
                FuzzyAutoResponder(worker.messenger, self.rules, self.matcher, threshold=config.similarity_threshold)
            )
            self.workers[identity.worker_id] = worker

        logger.info(f"WorkerManager created {len(self.workers)} worker(s) for account '{self.account_id}'")

    def get(self, worker_id: str) -> Worker:
        worker = self.workers.get(worker_id)
        if worker is None:
            raise NotFoundError(f"Worker '{worker_id}' not found", resource_type="worker", resource_id=worker_id)
        return worker

    def statuses(self) -> List[Dict[str, Any]]:
        return [worker.status() for worker in self.workers.values()]

    def apply_config(self) -> None:
        """Propagate runtime config changes to every worker."""
        for worker in self.workers.values():
            worker.apply_settings()
        logger.info(f"Runtime config applied to {len(self.workers)} worker(s)")

    async def start_all(self, sequential: Optional[bool] = None) -> None:
        """Start every worker; sequentially waits for each to reach Ready or Failed."""
        sequential = self.config.sequential_startup if sequential is None else sequential
        if sequential:
            for worker in self.workers.values():
                state = await worker.start()
                logger.info(f"[{worker.identity.key}] Startup finished in state {state.value}")
            return

        results = await asyncio.gather(*(w.start() for w in self.workers.values()), return_exceptions=True)
        for worker, result in zip(self.workers.values(), results):
            if isinstance(result, Exception):
                log_error(logger, result, context=worker.identity.key)

    async def stop_all(self) -> None:
        results = await asyncio.gather(*(w.stop() for w in self.workers.values()), return_exceptions=True)
        for worker, result in zip(self.workers.values(), results):
            if isinstance(result, Exception):
                log_error(logger, result, context=worker.identity.key)
        logger.info("All workers stopped")


# Global manager instance
_manager: Optional[WorkerManager] = None


def get_worker_manager() -> WorkerManager:
    """Get or create the global WorkerManager from the runtime config."""
    global _manager

    if _manager is None:
        _manager = WorkerManager(get_config())

    return _manager

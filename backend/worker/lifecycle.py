"""
Connection Lifecycle - drives one worker's session to Ready and back.

States:
    INITIALIZING -> AWAITING_CREDENTIAL -> READY -> DISCONNECTED -> INITIALIZING ...
                 \\-> READY (stored credential accepted)
    INITIALIZING / AWAITING_CREDENTIAL -> FAILED (attempt budget exhausted)

Every wait is bounded: navigation and credential confirmation each get
``max_attempts`` tries spaced ``check_interval`` apart, and a restored
credential gets one wait of ``restore_timeout``. Exhaustion fails the
cycle (``auth_failed``, browser released) but never the process; the
worker can be started again.

While Ready, a background task watches the page for a disconnection
marker and runs recovery: leave Ready, drop the remotely invalidated
credential, release the browser and start a fresh cycle.
"""

import asyncio
import logging
from typing import Dict, FrozenSet, Optional

from errors import AuthenticationError, ConduitError, LifecycleError, log_error
from logging_config import log_lifecycle
from services.session_store import SessionStore
from services.ui_conduit import UIConduit
from . import events
from .events import EventBus
from .models import ChangeKind, ConnectionState, Credential, Identity
from .selectors import DEFAULT_SELECTORS, Selectors

logger = logging.getLogger(__name__)

S = ConnectionState

ALLOWED_TRANSITIONS: Dict[ConnectionState, FrozenSet[ConnectionState]] = {
    S.INITIALIZING: frozenset({S.AWAITING_CREDENTIAL, S.READY, S.FAILED, S.DISCONNECTED}),
    S.AWAITING_CREDENTIAL: frozenset({S.READY, S.FAILED, S.DISCONNECTED}),
    S.READY: frozenset({S.DISCONNECTED}),
    S.DISCONNECTED: frozenset({S.INITIALIZING}),
    S.FAILED: frozenset({S.INITIALIZING}),
}


class ConnectionLifecycle:
    """State machine for one Identity's session."""

    def __init__(
        self,
        identity: Identity,
        conduit: UIConduit,
        store: SessionStore,
        bus: EventBus,
        check_interval: float = 10.0,
        max_attempts: int = 12,
        restore_timeout: float = 60.0,
        selectors: Selectors = DEFAULT_SELECTORS,
    ):
        self.identity = identity
        self.conduit = conduit
        self.store = store
        self.bus = bus
        self.check_interval = check_interval
        self.max_attempts = max_attempts
        self.restore_timeout = restore_timeout
        self.selectors = selectors

        self.state = ConnectionState.INITIALIZING
        self.cycles = 0
        self.recoveries = 0

        self._stopping = False
        self._cycle_task: Optional[asyncio.Task] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._challenge_task: Optional[asyncio.Task] = None
        self._recovery_task: Optional[asyncio.Task] = None

    @property
    def is_ready(self) -> bool:
        return self.state == ConnectionState.READY

    def _transition(self, new_state: ConnectionState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise LifecycleError(
                f"Invalid transition {self.state.value} -> {new_state.value}",
                current=self.state.value,
                requested=new_state.value,
                identity=self.identity.key,
            )
        old_state = self.state
        self.state = new_state
        log_lifecycle(logger, self.identity.key, old_state.value, new_state.value)

    # -------------------------------------------------------------------------
    # Cycle
    # -------------------------------------------------------------------------

    async def start(self) -> ConnectionState:
        """Run one connection cycle until Ready or Failed.

        A call while a cycle is already running is ignored. ``stop()`` ends
        a running cycle; the caller then gets the stopped state back.
        """
        if self._cycle_task is not None and not self._cycle_task.done():
            logger.warning(f"[{self.identity.key}] Start ignored: a connection cycle is already running")
            return self.state

        self._stopping = False
        self._cycle_task = asyncio.create_task(self._run_cycle())
        try:
            return await self._cycle_task
        except asyncio.CancelledError:
            if self._stopping and self._cycle_task is None:
                return self.state
            raise

    async def _run_cycle(self) -> ConnectionState:
        if self.state == ConnectionState.READY:
            logger.info(f"[{self.identity.key}] Already ready")
            return self.state
        if self.state in (ConnectionState.DISCONNECTED, ConnectionState.FAILED):
            self._transition(ConnectionState.INITIALIZING)

        self.cycles += 1
        logger.info(f"[{self.identity.key}] Starting connection cycle #{self.cycles}")

        if not await self._open():
            await self._fail(AuthenticationError("Page could not be opened", attempts=self.max_attempts))
            return self.state

        credential = await self.store.load(self.identity)
        if credential is not None and credential.is_usable:
            if await self._restore(credential):
                return self.state
            log_error(
                logger,
                AuthenticationError("Stored session was not accepted, requesting a new one", rejected=True),
                context=self.identity.key,
                include_traceback=False,
            )

        self._transition(ConnectionState.AWAITING_CREDENTIAL)
        self._challenge_task = asyncio.create_task(self._watch_challenge())
        try:
            await self.await_credential_confirmation(self.check_interval, self.max_attempts)
        finally:
            await self._cancel(self._challenge_task)
            self._challenge_task = None

        return self.state

    async def _open(self) -> bool:
        """Navigate to the application, retrying up to max_attempts."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                await self.conduit.navigate()
                return True
            except ConduitError as e:
                log_error(logger, e, context=f"{self.identity.key} navigate {attempt}/{self.max_attempts}",
                          include_traceback=False)
            if attempt < self.max_attempts:
                await asyncio.sleep(self.check_interval)
        return False

    async def _restore(self, credential: Credential) -> bool:
        """Apply a stored credential and wait once for the ready marker."""
        logger.info(f"[{self.identity.key}] Restoring stored session")
        try:
            await self.conduit.apply_credential(credential)
            accepted = await self.conduit.wait_for(self.selectors.ready, self.restore_timeout)
        except ConduitError as e:
            log_error(logger, e, context=f"{self.identity.key} restore", include_traceback=False)
            return False

        if not accepted:
            return False

        self._transition(ConnectionState.READY)
        await self.bus.emit(events.AUTHENTICATED)
        await self._on_ready()
        return True

    async def await_credential_confirmation(self, check_interval: float, max_attempts: int) -> bool:
        """Poll for the ready marker at most ``max_attempts`` times.

        Returns:
            True once Ready; False after the budget is exhausted (state FAILED)
        """
        for attempt in range(1, max_attempts + 1):
            try:
                if await self.conduit.is_alive():
                    if await self.conduit.wait_for(self.selectors.ready, check_interval):
                        await self._confirm()
                        return True
                    logger.info(
                        f"[{self.identity.key}] Waiting for confirmation (attempt {attempt}/{max_attempts})"
                    )
                else:
                    logger.warning(
                        f"[{self.identity.key}] Page not active (attempt {attempt}/{max_attempts})"
                    )
                    await asyncio.sleep(check_interval)
            except ConduitError as e:
                log_error(logger, e, context=f"{self.identity.key} attempt {attempt}/{max_attempts}",
                          include_traceback=False)
                await asyncio.sleep(check_interval)

        await self._fail(AuthenticationError(f"Not confirmed after {max_attempts} attempts", attempts=max_attempts))
        return False

    async def _confirm(self) -> None:
        """Capture and persist the fresh credential, then enter Ready."""
        try:
            credential = await self.conduit.export_credential()
        except ConduitError as e:
            log_error(logger, e, context=f"{self.identity.key} export", include_traceback=False)
            credential = None

        if credential is not None and not await self.store.save(self.identity, credential):
            logger.warning(f"[{self.identity.key}] Session could not be saved; next start will need a new QR scan")

        self._transition(ConnectionState.READY)
        await self.bus.emit(events.AUTHENTICATED)
        await self._on_ready()

    async def _on_ready(self) -> None:
        self._watch_task = asyncio.create_task(self.watch_for_disconnection())
        logger.info(f"[{self.identity.key}] Ready")
        await self.bus.emit(events.READY)

    async def _fail(self, error: AuthenticationError) -> None:
        log_error(logger, error, context=self.identity.key, include_traceback=False)
        self._transition(ConnectionState.FAILED)
        await self.bus.emit(events.AUTH_FAILED)
        await self.conduit.close()

    # -------------------------------------------------------------------------
    # Watchers
    # -------------------------------------------------------------------------

    async def _watch_challenge(self) -> None:
        """Emit ``qr`` for the current challenge and every later change of it."""
        last: Optional[str] = None

        async def publish(code: Optional[str]) -> None:
            nonlocal last
            if code and code != last:
                last = code
                logger.info(f"[{self.identity.key}] QR challenge updated, scan it to log in")
                await self.bus.emit(events.QR, code)

        try:
            await publish(await self.conduit.read_attribute(self.selectors.qr_code, self.selectors.qr_attribute))
            async for event in self.conduit.subscribe_to_changes(
                self.selectors.qr_code, attributes=[self.selectors.qr_attribute]
            ):
                if event.kind == ChangeKind.ATTRIBUTE:
                    await publish(event.payload_text)
        except ConduitError as e:
            log_error(logger, e, context=f"{self.identity.key} qr", include_traceback=False)

    async def watch_for_disconnection(self) -> None:
        """While Ready, watch for the disconnection marker and trigger recovery."""
        try:
            async for event in self.conduit.subscribe_to_changes(self.selectors.disconnect_scope):
                if self.state != ConnectionState.READY:
                    return
                if self.selectors.is_disconnect_payload(event.payload_text):
                    logger.warning(f"[{self.identity.key}] Disconnection detected")
                    self._recovery_task = asyncio.create_task(self._recover(discard_session=True))
                    return
        except ConduitError as e:
            log_error(logger, e, context=f"{self.identity.key} watch", include_traceback=False)

    # -------------------------------------------------------------------------
    # Leaving Ready
    # -------------------------------------------------------------------------

    async def _leave_ready(self, discard_session: bool) -> None:
        """Ready -> Disconnected: notify listeners, then release the browser."""
        self._transition(ConnectionState.DISCONNECTED)
        if self._watch_task is not asyncio.current_task():
            await self._cancel(self._watch_task)
        self._watch_task = None

        # listeners are awaited: the pipeline finishes its in-flight message here
        await self.bus.emit(events.DISCONNECTED)

        if discard_session:
            await self.store.remove(self.identity)
        await self.conduit.close(discard_profile=discard_session)

    async def _recover(self, discard_session: bool) -> None:
        self.recoveries += 1
        await self._leave_ready(discard_session)
        await self.start()

    async def disconnect(self) -> asyncio.Task:
        """Request a reconnection. Only valid while Ready.

        Returns the recovery task (teardown followed by a new cycle).
        """
        if self.state != ConnectionState.READY:
            raise LifecycleError(
                "Disconnect is only valid while ready",
                current=self.state.value,
                requested=ConnectionState.DISCONNECTED.value,
            )
        self._recovery_task = asyncio.create_task(self._recover(discard_session=False))
        return self._recovery_task

    async def logout(self) -> None:
        """Leave Ready, drop the stored credential and stay disconnected."""
        if self.state != ConnectionState.READY:
            raise LifecycleError(
                "Logout is only valid while ready",
                current=self.state.value,
                requested=ConnectionState.DISCONNECTED.value,
            )
        await self._leave_ready(discard_session=True)
        logger.info(f"[{self.identity.key}] Logged out")

    async def stop(self) -> None:
        """Shut down: end a running cycle, cancel watchers and recovery, leave
        Ready, release the browser."""
        self._stopping = True
        current = asyncio.current_task()
        cycle, self._cycle_task = self._cycle_task, None
        # state first: a cancelled start() returns whatever state it sees
        if self.state in (ConnectionState.INITIALIZING, ConnectionState.AWAITING_CREDENTIAL):
            self._transition(ConnectionState.DISCONNECTED)
        for task in (cycle, self._challenge_task, self._recovery_task):
            if task is not current:
                await self._cancel(task)
        self._challenge_task = self._recovery_task = None

        if self.state == ConnectionState.READY:
            await self._leave_ready(discard_session=False)
            return

        await self._cancel(self._watch_task)
        self._watch_task = None
        await self.conduit.close()

    async def _cancel(self, task: Optional[asyncio.Task]) -> None:
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            log_error(logger, e, context=f"{self.identity.key} {task.get_name()}")

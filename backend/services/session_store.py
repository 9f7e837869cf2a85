"""
Session Store - credential persistence per worker identity.

A credential is stored as two JSON documents so either half can be
inspected or edited by hand:

    <base>/<account_id>/<worker_id>/session.json       cookie jar
    <base>/<account_id>/<worker_id>/localStorage.json  localStorage snapshot

Usage:
    from services.session_store import FileSessionStore

    store = FileSessionStore("data/sessions")
    await store.save(identity, credential)
    credential = await store.load(identity)
"""

import asyncio
import json
import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from errors import SessionStoreError, log_error
from worker.models import Credential, Identity

logger = logging.getLogger(__name__)

COOKIES_FILE = "session.json"
LOCAL_STORAGE_FILE = "localStorage.json"


class SessionStore(ABC):
    """Persists opaque credentials keyed by Identity."""

    @abstractmethod
    async def load(self, identity: Identity) -> Optional[Credential]:
        """Return the stored credential, or None when there is none."""
        ...

    @abstractmethod
    async def save(self, identity: Identity, credential: Credential) -> bool:
        """Persist a credential. Returns True on success."""
        ...

    @abstractmethod
    async def remove(self, identity: Identity) -> bool:
        """Delete a stored credential. Returns True on success (or nothing to delete)."""
        ...


class FileSessionStore(SessionStore):
    """
    JSON-file credential store.

    Loads and saves for one identity are serialized with a per-identity
    asyncio.Lock; the blocking file work runs in a thread.
    """

    def __init__(self, base_dir: str | Path = "data/sessions"):
        self.base_dir = Path(base_dir)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, identity: Identity) -> asyncio.Lock:
        lock = self._locks.get(identity.key)
        if lock is None:
            lock = self._locks[identity.key] = asyncio.Lock()
        return lock

    def session_dir(self, identity: Identity) -> Path:
        """Directory holding one identity's credential files."""
        return self.base_dir / identity.account_id / identity.worker_id

    # -------------------------------------------------------------------------
    # Blocking helpers (run via asyncio.to_thread)
    # -------------------------------------------------------------------------

    def _read(self, identity: Identity) -> Optional[Credential]:
        directory = self.session_dir(identity)
        cookies_path = directory / COOKIES_FILE
        storage_path = directory / LOCAL_STORAGE_FILE

        if not cookies_path.exists() and not storage_path.exists():
            return None

        try:
            cookies = json.loads(cookies_path.read_text(encoding="utf-8")) if cookies_path.exists() else []
            storage = json.loads(storage_path.read_text(encoding="utf-8")) if storage_path.exists() else {}
        except (OSError, json.JSONDecodeError) as e:
            raise SessionStoreError(
                "Failed to read stored credential", details=str(e), operation="load", identity=identity.key
            ) from e

        if not isinstance(cookies, list) or not isinstance(storage, dict):
            raise SessionStoreError(
                "Stored credential has an unexpected shape", operation="load", identity=identity.key
            )

        return Credential(cookies=cookies, local_storage={str(k): str(v) for k, v in storage.items()})

    def _write(self, identity: Identity, credential: Credential) -> None:
        directory = self.session_dir(identity)
        directory.mkdir(parents=True, exist_ok=True)
        (directory / COOKIES_FILE).write_text(json.dumps(credential.cookies, indent=2), encoding="utf-8")
        (directory / LOCAL_STORAGE_FILE).write_text(
            json.dumps(credential.local_storage, indent=2, ensure_ascii=False), encoding="utf-8"
        )

    def _delete(self, identity: Identity) -> None:
        directory = self.session_dir(identity)
        if directory.exists():
            shutil.rmtree(directory)

    # -------------------------------------------------------------------------
    # SessionStore interface
    # -------------------------------------------------------------------------

    async def load(self, identity: Identity) -> Optional[Credential]:
        """
        Load a stored credential.

        Returns:
            Credential if found and readable, None otherwise
        """
        async with self._lock_for(identity):
            try:
                credential = await asyncio.to_thread(self._read, identity)
            except SessionStoreError as e:
                log_error(logger, e, context=identity.key, include_traceback=False)
                return None

        if credential is None:
            logger.warning(f"[{identity.key}] No stored session found")
        else:
            logger.info(
                f"[{identity.key}] Session loaded: {len(credential.cookies)} cookies, "
                f"{len(credential.local_storage)} storage entries"
            )
        return credential

    async def save(self, identity: Identity, credential: Credential) -> bool:
        """
        Save a credential.

        Returns:
            True if saved successfully
        """
        async with self._lock_for(identity):
            try:
                await asyncio.to_thread(self._write, identity, credential)
            except OSError as e:
                log_error(
                    logger,
                    SessionStoreError("Failed to save session", details=str(e), operation="save"),
                    context=identity.key,
                )
                return False

        logger.info(f"[{identity.key}] Session saved to {self.session_dir(identity)}")
        return True

    async def remove(self, identity: Identity) -> bool:
        """
        Delete a stored credential.

        Returns:
            True if removed (or nothing was stored)
        """
        async with self._lock_for(identity):
            try:
                await asyncio.to_thread(self._delete, identity)
            except OSError as e:
                log_error(
                    logger,
                    SessionStoreError("Failed to remove session", details=str(e), operation="remove"),
                    context=identity.key,
                )
                return False

        logger.info(f"[{identity.key}] Session removed")
        return True

"""
Runtime Configuration for relaybot.

Provides a singleton RuntimeConfig class holding worker, matching and
timing parameters. Values default from environment variables; the timing
and matching tunables can be adjusted while workers run (PUT /api/config),
the rest is read once at startup.

Usage:
    from config import runtime_config
    interval = runtime_config.check_interval
    runtime_config.update(similarity_threshold=80, max_attempts=6)
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Any
from threading import Lock

logger = logging.getLogger(__name__)


def _env_bool(key: str, default: str) -> bool:
    return os.environ.get(key, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class RuntimeConfig:
    """
    Singleton configuration for runtime-adjustable parameters.

    All values have defaults from environment variables. The tunables in
    _VALIDATION_RANGES can be changed at runtime via update() and are
    pushed to running workers by WorkerManager.apply_config(). Durations
    are stored in milliseconds; the matching properties return seconds.
    """

    # Account / workers
    account_id: str = field(default_factory=lambda: os.environ.get("RELAY_ACCOUNT_ID", "default"))
    worker_count: int = field(default_factory=lambda: int(os.environ.get("RELAY_WORKER_COUNT", "1")))
    sequential_startup: bool = field(default_factory=lambda: _env_bool("RELAY_SEQUENTIAL_STARTUP", "true"))

    # Credential acquisition
    check_interval_ms: int = field(
        default_factory=lambda: int(os.environ.get("RELAY_CHECK_INTERVAL_MS", "10000"))
    )
    max_attempts: int = field(default_factory=lambda: int(os.environ.get("RELAY_MAX_ATTEMPTS", "12")))
    restore_timeout_ms: int = field(
        default_factory=lambda: int(os.environ.get("RELAY_RESTORE_TIMEOUT_MS", "60000"))
    )

    # Auto-responder
    similarity_threshold: int = field(
        default_factory=lambda: int(os.environ.get("RELAY_SIMILARITY_THRESHOLD", "70"))
    )
    synonyms_file_path: str = field(
        default_factory=lambda: os.environ.get("RELAY_SYNONYMS_FILE", "synonyms.json")
    )
    responses_file_path: str = field(
        default_factory=lambda: os.environ.get("RELAY_RESPONSES_FILE", "responses.json")
    )

    # Storage / browser
    sessions_dir: str = field(default_factory=lambda: os.environ.get("RELAY_SESSIONS_DIR", "data/sessions"))
    user_data_dir: str = field(default_factory=lambda: os.environ.get("RELAY_USER_DATA_DIR", "data/user_data"))
    headless: bool = field(default_factory=lambda: _env_bool("RELAY_HEADLESS", "false"))

    # Ingestion and outbound pacing
    drain_delay_ms: int = field(default_factory=lambda: int(os.environ.get("RELAY_DRAIN_DELAY_MS", "1000")))
    read_timeout_ms: int = field(default_factory=lambda: int(os.environ.get("RELAY_READ_TIMEOUT_MS", "5000")))
    read_attempts: int = field(default_factory=lambda: int(os.environ.get("RELAY_READ_ATTEMPTS", "3")))
    send_delay_ms: int = field(default_factory=lambda: int(os.environ.get("RELAY_SEND_DELAY_MS", "3000")))
    search_delay_ms: int = field(
        default_factory=lambda: int(os.environ.get("RELAY_SEARCH_DELAY_MS", "3000"))
    )

    # Logging
    debug: bool = field(default_factory=lambda: _env_bool("RELAY_DEBUG", "false"))
    log_dir: str = field(default_factory=lambda: os.environ.get("RELAY_LOG_DIR", "logs"))

    # Internal state
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)
    _update_count: int = field(default=0, repr=False)

    # Validation ranges for numeric config values
    _VALIDATION_RANGES: Dict[str, tuple] = field(default_factory=lambda: {
        "check_interval_ms": (100, 600000),
        "max_attempts": (1, 1000),
        "restore_timeout_ms": (100, 600000),
        "similarity_threshold": (0, 100),
        "drain_delay_ms": (0, 60000),
        "read_timeout_ms": (100, 120000),
        "read_attempts": (1, 20),
        "send_delay_ms": (0, 60000),
        "search_delay_ms": (0, 60000),
    }, repr=False, compare=False)

    @property
    def check_interval(self) -> float:
        return self.check_interval_ms / 1000

    @property
    def restore_timeout(self) -> float:
        return self.restore_timeout_ms / 1000

    @property
    def drain_delay(self) -> float:
        return self.drain_delay_ms / 1000

    @property
    def read_timeout(self) -> float:
        return self.read_timeout_ms / 1000

    @property
    def send_delay(self) -> float:
        return self.send_delay_ms / 1000

    @property
    def search_delay(self) -> float:
        return self.search_delay_ms / 1000

    def update(self, **kwargs) -> Dict[str, Any]:
        """
        Update runtime-adjustable values.

        Only the numeric tunables in _VALIDATION_RANGES can change while
        workers run; the account, paths and browser options are read once
        at startup.

        Args:
            **kwargs: Key-value pairs to update (e.g., similarity_threshold=80)

        Returns:
            Dict with 'updated' (changed keys) and 'ignored' (unknown or rejected keys)
        """
        updated = []
        ignored = []

        with self._lock:
            for key, value in kwargs.items():
                if key not in self._VALIDATION_RANGES:
                    ignored.append(key)
                    logger.warning(f"Config ignored key not adjustable at runtime: {key}")
                    continue

                lo, hi = self._VALIDATION_RANGES[key]
                if isinstance(value, bool) or not isinstance(value, (int, float)) or not (lo <= value <= hi):
                    ignored.append(key)
                    logger.warning(f"Config rejected {key}={value} (must be {lo}-{hi})")
                    continue

                old_value = getattr(self, key)
                setattr(self, key, value)
                updated.append(key)
                logger.info(f"Config updated: {key} = {value} (was {old_value})")

            self._update_count += 1

        return {"updated": updated, "ignored": ignored, "update_count": self._update_count}

    def to_dict(self) -> Dict[str, Any]:
        """Export current config as dict (excludes internal fields)."""
        from dataclasses import fields as dataclass_fields

        result = {}
        for field_info in dataclass_fields(self):
            if not field_info.name.startswith("_"):
                result[field_info.name] = getattr(self, field_info.name)
        return result

    def reset_to_defaults(self) -> Dict[str, Any]:
        """Reset runtime-adjustable values to environment defaults."""
        defaults = RuntimeConfig()
        changes = {}

        with self._lock:
            for key in self._VALIDATION_RANGES:
                old_value = getattr(self, key)
                new_value = getattr(defaults, key)
                if old_value != new_value:
                    setattr(self, key, new_value)
                    changes[key] = {"old": old_value, "new": new_value}
                    logger.info(f"Config reset: {key} = {new_value}")

            self._update_count += 1

        return {"reset": True, "changes": changes, "update_count": self._update_count}


# Singleton instance
runtime_config = RuntimeConfig()


def get_config() -> RuntimeConfig:
    """Get the singleton config instance."""
    return runtime_config

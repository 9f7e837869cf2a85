"""
Tests for RuntimeConfig: environment defaults and runtime updates.
"""

from config import RuntimeConfig, get_config, runtime_config


class TestDefaults:
    """Values read from the environment."""

    def test_builtin_defaults(self, monkeypatch):
        for key in ("RELAY_CHECK_INTERVAL_MS", "RELAY_MAX_ATTEMPTS", "RELAY_SIMILARITY_THRESHOLD"):
            monkeypatch.delenv(key, raising=False)

        config = RuntimeConfig()

        assert config.check_interval_ms == 10000
        assert config.max_attempts == 12
        assert config.similarity_threshold == 70

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("RELAY_ACCOUNT_ID", "acme")
        monkeypatch.setenv("RELAY_WORKER_COUNT", "3")
        monkeypatch.setenv("RELAY_HEADLESS", "true")
        monkeypatch.setenv("RELAY_SEQUENTIAL_STARTUP", "0")

        config = RuntimeConfig()

        assert config.account_id == "acme"
        assert config.worker_count == 3
        assert config.headless is True
        assert config.sequential_startup is False

    def test_durations_in_seconds(self):
        config = RuntimeConfig(check_interval_ms=2500, restore_timeout_ms=60000, drain_delay_ms=1000)
        assert config.check_interval == 2.5
        assert config.restore_timeout == 60.0
        assert config.drain_delay == 1.0

    def test_singleton(self):
        assert get_config() is runtime_config


class TestUpdate:
    """Runtime updates with validation."""

    def setup_method(self):
        self.config = RuntimeConfig()

    def test_valid_update(self):
        result = self.config.update(similarity_threshold=80, max_attempts=6)

        assert sorted(result["updated"]) == ["max_attempts", "similarity_threshold"]
        assert result["ignored"] == []
        assert self.config.similarity_threshold == 80
        assert self.config.max_attempts == 6

    def test_out_of_range_rejected(self):
        before = self.config.similarity_threshold
        result = self.config.update(similarity_threshold=150)

        assert result["ignored"] == ["similarity_threshold"]
        assert self.config.similarity_threshold == before

    def test_non_numeric_rejected(self):
        result = self.config.update(max_attempts="12", worker_count=True)
        assert sorted(result["ignored"]) == ["max_attempts", "worker_count"]

    def test_unknown_and_private_keys_ignored(self):
        result = self.config.update(nonsense=1, _update_count=99)

        assert sorted(result["ignored"]) == ["_update_count", "nonsense"]
        assert result["update_count"] == 1

    def test_startup_only_keys_ignored(self):
        """Account, worker count and browser options need a restart."""
        before = (self.config.account_id, self.config.worker_count, self.config.headless)

        result = self.config.update(account_id="acme", worker_count=4, headless=False)

        assert result["updated"] == []
        assert sorted(result["ignored"]) == ["account_id", "headless", "worker_count"]
        assert (self.config.account_id, self.config.worker_count, self.config.headless) == before

    def test_to_dict_excludes_internal_fields(self):
        exported = self.config.to_dict()
        assert "similarity_threshold" in exported
        assert not any(key.startswith("_") for key in exported)

    def test_reset_to_defaults(self):
        default = RuntimeConfig().max_attempts
        self.config.update(max_attempts=default + 1)

        result = self.config.reset_to_defaults()

        assert result["changes"]["max_attempts"] == {"old": default + 1, "new": default}
        assert self.config.max_attempts == default

    def test_reset_leaves_startup_keys(self):
        config = RuntimeConfig(account_id="acme", worker_count=3)

        result = config.reset_to_defaults()

        assert "account_id" not in result["changes"]
        assert (config.account_id, config.worker_count) == ("acme", 3)

"""
Tests for courtbot/core/config.py
"""

import pytest

from courtbot.core.config import ConfigValidationError, load_config
from courtbot.core.constants import DEFAULT_CACHE_MAX_ENTRIES, DEFAULT_RATE_LIMIT_MAX


@pytest.fixture
def env(monkeypatch):
    """Minimal valid environment."""
    for name in (
        "COMMAND_PREFIX", "SCOPE_LOCK", "AUTHORIZED_SCOPE_IDS", "RATE_LIMIT_MAX", "RATE_LIMIT_WINDOW",
        "ADMIN_CACHE_TTL", "SILENCE_CACHE_TTL", "CACHE_SWEEP_INTERVAL", "STORE_TIMEOUT",
        "SILENCE_CHECK_INTERVAL", "AUDIT_RETENTION_DAYS", "ERROR_WEBHOOK_URL", "CACHE_MAX_ENTRIES",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DISCORD_TOKEN", "token")
    monkeypatch.setenv("MASTER_ACTOR_ID", "1000")
    return monkeypatch


class TestLoadConfig:
    """Tests for environment parsing."""

    def test_defaults(self, env):
        config = load_config()
        assert config.master_actor_id == "1000"
        assert config.command_prefix == "!"
        assert config.rate_limit_max == DEFAULT_RATE_LIMIT_MAX
        assert config.scope_lock is False
        assert config.authorized_scope_ids == frozenset()
        assert config.cache_max_entries == DEFAULT_CACHE_MAX_ENTRIES
        assert config.error_webhook_url is None

    @pytest.mark.parametrize("missing", ["DISCORD_TOKEN", "MASTER_ACTOR_ID"])
    def test_required(self, env, missing):
        env.delenv(missing)
        with pytest.raises(ConfigValidationError, match=missing):
            load_config()

    def test_overrides(self, env):
        env.setenv("COMMAND_PREFIX", "/")
        env.setenv("SCOPE_LOCK", "yes")
        env.setenv("AUTHORIZED_SCOPE_IDS", "1, 2,,3")
        env.setenv("RATE_LIMIT_MAX", "7")
        env.setenv("STORE_TIMEOUT", "0.5")
        env.setenv("ERROR_WEBHOOK_URL", "https://example.com/hook")

        config = load_config()
        assert config.command_prefix == "/"
        assert config.scope_lock is True
        assert config.authorized_scope_ids == frozenset({"1", "2", "3"})
        assert config.rate_limit_max == 7
        assert config.store_timeout == 0.5
        assert config.error_webhook_url == "https://example.com/hook"

    def test_invalid_values_fall_back(self, env):
        env.setenv("RATE_LIMIT_MAX", "lots")
        env.setenv("RATE_LIMIT_WINDOW", "0")
        env.setenv("STORE_TIMEOUT", "-1")
        env.setenv("ERROR_WEBHOOK_URL", "not a url")

        config = load_config()
        assert config.rate_limit_max == DEFAULT_RATE_LIMIT_MAX
        assert config.rate_limit_window == 1
        assert config.store_timeout > 0
        assert config.error_webhook_url is None

    def test_silence_ttl_capped_by_admin_ttl(self, env):
        env.setenv("ADMIN_CACHE_TTL", "60")
        env.setenv("SILENCE_CACHE_TTL", "600")
        config = load_config()
        assert config.silence_cache_ttl == 60

    def test_invalid_prefix(self, env):
        env.setenv("COMMAND_PREFIX", "a b")
        with pytest.raises(ConfigValidationError):
            load_config()

    def test_pipeline_settings(self, env):
        env.setenv("ADMIN_CACHE_TTL", "120")
        settings = load_config().pipeline_settings()
        assert settings.master_actor_id == "1000"
        assert settings.admin_ttl_seconds == 120

    def test_cache_max_entries(self, env):
        env.setenv("CACHE_MAX_ENTRIES", "500")
        assert load_config().pipeline_settings().cache_max_entries == 500

        env.setenv("CACHE_MAX_ENTRIES", "1")
        assert load_config().cache_max_entries == 10

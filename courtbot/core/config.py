"""
CourtBot - Configuration Module
===============================

Centralized configuration management with environment variable validation.

DESIGN:
    A single source of truth for all configuration, loaded from environment
    variables at startup. Using a dataclass keeps it typed and in one place.

    Key patterns:
    - Singleton pattern via get_config() ensures one Config instance
    - Validation happens once at load time, not on every access
    - PipelineSettings is the frozen subset handed to the admission
      pipeline, so tests can build one without touching the environment
"""

import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from courtbot.core.constants import (
    DEFAULT_ADMIN_CACHE_TTL,
    DEFAULT_AUDIT_RETENTION_DAYS,
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_CACHE_SWEEP_INTERVAL,
    DEFAULT_COMMAND_PREFIX,
    DEFAULT_RATE_LIMIT_MAX,
    DEFAULT_RATE_LIMIT_WINDOW,
    DEFAULT_SILENCE_CACHE_TTL,
    DEFAULT_SILENCE_CHECK_INTERVAL,
    DEFAULT_STORE_TIMEOUT,
)


# =============================================================================
# Pipeline Settings
# =============================================================================

@dataclass(frozen=True)
class PipelineSettings:
    """
    Tunables of the admission pipeline.

    Attributes:
        master_actor_id: Actor that is authorized for everything everywhere.
        max_per_window: Commands an actor may send per rate window.
        window_seconds: Length of the fixed rate window.
        admin_ttl_seconds: Lifetime of a cached admin flag.
        silence_ttl_seconds: Lifetime of a cached silence flag.
        sweep_interval_seconds: Cadence of the cache memory sweep.
        cache_max_entries: Flags kept per permission cache table.
        store_timeout_seconds: Upper bound on one store lookup.
    """

    master_actor_id: str
    max_per_window: int = DEFAULT_RATE_LIMIT_MAX
    window_seconds: float = DEFAULT_RATE_LIMIT_WINDOW
    admin_ttl_seconds: float = DEFAULT_ADMIN_CACHE_TTL
    silence_ttl_seconds: float = DEFAULT_SILENCE_CACHE_TTL
    sweep_interval_seconds: float = DEFAULT_CACHE_SWEEP_INTERVAL
    store_timeout_seconds: float = DEFAULT_STORE_TIMEOUT
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES


# =============================================================================
# Configuration Dataclass
# =============================================================================

@dataclass
class Config:
    """
    Bot configuration loaded from environment variables.

    DESIGN:
        Required fields raise ConfigValidationError if missing.
        Optional fields have sensible defaults for development.
        Actor and scope ids stay strings: they are opaque to the pipeline.
    """

    # -------------------------------------------------------------------------
    # Required
    # -------------------------------------------------------------------------

    discord_token: str
    master_actor_id: str

    # -------------------------------------------------------------------------
    # Optional: Commands
    # -------------------------------------------------------------------------

    command_prefix: str = DEFAULT_COMMAND_PREFIX
    scope_lock: bool = False                  # Restricted commands only run in listed groups
    authorized_scope_ids: FrozenSet[str] = field(default_factory=frozenset)

    # -------------------------------------------------------------------------
    # Optional: Rate Limiting
    # -------------------------------------------------------------------------

    rate_limit_max: int = DEFAULT_RATE_LIMIT_MAX
    rate_limit_window: int = DEFAULT_RATE_LIMIT_WINDOW

    # -------------------------------------------------------------------------
    # Optional: Permission Cache
    # -------------------------------------------------------------------------

    admin_cache_ttl: int = DEFAULT_ADMIN_CACHE_TTL
    silence_cache_ttl: int = DEFAULT_SILENCE_CACHE_TTL
    cache_sweep_interval: int = DEFAULT_CACHE_SWEEP_INTERVAL
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES
    store_timeout: float = DEFAULT_STORE_TIMEOUT

    # -------------------------------------------------------------------------
    # Optional: Scheduler Intervals (seconds)
    # -------------------------------------------------------------------------

    silence_check_interval: int = DEFAULT_SILENCE_CHECK_INTERVAL

    # -------------------------------------------------------------------------
    # Optional: Housekeeping
    # -------------------------------------------------------------------------

    audit_retention_days: int = DEFAULT_AUDIT_RETENTION_DAYS

    # -------------------------------------------------------------------------
    # Optional: Webhooks
    # -------------------------------------------------------------------------

    error_webhook_url: Optional[str] = None

    def pipeline_settings(self) -> PipelineSettings:
        """Build the pipeline view of this configuration."""
        return PipelineSettings(
            master_actor_id=self.master_actor_id,
            max_per_window=self.rate_limit_max,
            window_seconds=self.rate_limit_window,
            admin_ttl_seconds=self.admin_cache_ttl,
            silence_ttl_seconds=self.silence_cache_ttl,
            sweep_interval_seconds=self.cache_sweep_interval,
            store_timeout_seconds=self.store_timeout,
            cache_max_entries=self.cache_max_entries,
        )


# =============================================================================
# Validation
# =============================================================================

class ConfigValidationError(Exception):
    """
    Raised when required configuration is missing or invalid.

    DESIGN:
        Custom exception type allows callers to distinguish config
        errors from other startup failures.
    """

    pass


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse "1/true/yes/on" style flags."""
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_str_set(value: Optional[str]) -> FrozenSet[str]:
    """
    Parse comma-separated string to a frozen set of ids.

    Args:
        value: Comma-separated ids (e.g., "123,456").

    Returns:
        Frozen set of stripped, non-empty ids.
    """
    if not value:
        return frozenset()
    return frozenset(part.strip() for part in value.split(",") if part.strip())


def _parse_int_with_default(value: Optional[str], default: int, name: str, min_val: int = None, max_val: int = None) -> int:
    """
    Parse optional integer with default and range validation.

    Args:
        value: String value from environment variable.
        default: Default value if not set or invalid.
        name: Variable name for warning messages.
        min_val: Minimum allowed value (inclusive).
        max_val: Maximum allowed value (inclusive).

    Returns:
        Parsed integer within valid range, or default.
    """
    if not value:
        return default
    from courtbot.core.logger import logger
    try:
        parsed = int(value)
    except ValueError:
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default
    if min_val is not None and parsed < min_val:
        logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
        return min_val
    if max_val is not None and parsed > max_val:
        logger.warning(f"Config {name}={parsed} above max {max_val}, using {max_val}")
        return max_val
    return parsed


def _parse_float_with_default(value: Optional[str], default: float, name: str) -> float:
    """Parse a positive float, falling back to the default."""
    if not value:
        return default
    try:
        parsed = float(value)
    except ValueError:
        parsed = -1.0
    if parsed <= 0:
        from courtbot.core.logger import logger
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default
    return parsed


def _validate_url(value: Optional[str], name: str) -> Optional[str]:
    """
    Validate URL format for webhooks.

    Returns:
        URL if valid, None if invalid or empty.
    """
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        from courtbot.core.logger import logger
        logger.warning(f"Config {name} invalid URL format, ignoring")
        return None
    return value


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    DESIGN:
        Validates all required variables upfront before creating the
        Config object. The silence TTL is clamped to the admin TTL since
        silence status must never be cached longer than admin structure.

    Returns:
        Validated Config object with all settings.

    Raises:
        ConfigValidationError: If any required variable is missing or invalid.
    """
    missing = []

    discord_token = os.getenv("DISCORD_TOKEN")
    if not discord_token:
        missing.append("DISCORD_TOKEN")

    master_actor_id = (os.getenv("MASTER_ACTOR_ID") or "").strip()
    if not master_actor_id:
        missing.append("MASTER_ACTOR_ID")

    if missing:
        raise ConfigValidationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    prefix = os.getenv("COMMAND_PREFIX", DEFAULT_COMMAND_PREFIX).strip()
    if not prefix or " " in prefix:
        raise ConfigValidationError(f"Invalid COMMAND_PREFIX: '{prefix}'")

    admin_ttl = _parse_int_with_default(
        os.getenv("ADMIN_CACHE_TTL"), DEFAULT_ADMIN_CACHE_TTL, "ADMIN_CACHE_TTL", min_val=1, max_val=86400
    )
    silence_ttl = _parse_int_with_default(
        os.getenv("SILENCE_CACHE_TTL"), DEFAULT_SILENCE_CACHE_TTL, "SILENCE_CACHE_TTL", min_val=1, max_val=86400
    )
    if silence_ttl > admin_ttl:
        from courtbot.core.logger import logger
        logger.warning(f"Config SILENCE_CACHE_TTL={silence_ttl} above ADMIN_CACHE_TTL, using {admin_ttl}")
        silence_ttl = admin_ttl

    return Config(
        discord_token=discord_token,
        master_actor_id=master_actor_id,
        command_prefix=prefix,
        scope_lock=_parse_bool(os.getenv("SCOPE_LOCK")),
        authorized_scope_ids=_parse_str_set(os.getenv("AUTHORIZED_SCOPE_IDS")),
        rate_limit_max=_parse_int_with_default(
            os.getenv("RATE_LIMIT_MAX"), DEFAULT_RATE_LIMIT_MAX, "RATE_LIMIT_MAX", min_val=1, max_val=1000
        ),
        rate_limit_window=_parse_int_with_default(
            os.getenv("RATE_LIMIT_WINDOW"), DEFAULT_RATE_LIMIT_WINDOW, "RATE_LIMIT_WINDOW", min_val=1, max_val=3600
        ),
        admin_cache_ttl=admin_ttl,
        silence_cache_ttl=silence_ttl,
        cache_sweep_interval=_parse_int_with_default(
            os.getenv("CACHE_SWEEP_INTERVAL"), DEFAULT_CACHE_SWEEP_INTERVAL, "CACHE_SWEEP_INTERVAL", min_val=1
        ),
        cache_max_entries=_parse_int_with_default(
            os.getenv("CACHE_MAX_ENTRIES"), DEFAULT_CACHE_MAX_ENTRIES, "CACHE_MAX_ENTRIES", min_val=10, max_val=1000000
        ),
        store_timeout=_parse_float_with_default(os.getenv("STORE_TIMEOUT"), DEFAULT_STORE_TIMEOUT, "STORE_TIMEOUT"),
        silence_check_interval=_parse_int_with_default(
            os.getenv("SILENCE_CHECK_INTERVAL"), DEFAULT_SILENCE_CHECK_INTERVAL, "SILENCE_CHECK_INTERVAL", min_val=5
        ),
        audit_retention_days=_parse_int_with_default(
            os.getenv("AUDIT_RETENTION_DAYS"), DEFAULT_AUDIT_RETENTION_DAYS, "AUDIT_RETENTION_DAYS", min_val=0
        ),
        error_webhook_url=_validate_url(os.getenv("ERROR_WEBHOOK_URL"), "ERROR_WEBHOOK_URL"),
    )


# =============================================================================
# Global Config Instance
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance, loading if needed.

    Raises:
        ConfigValidationError: On first call if config is invalid.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def validate_and_log_config() -> Config:
    """
    Validate configuration and log the summary at startup.

    Raises:
        ConfigValidationError: If required configuration is missing.
    """
    from courtbot.core.logger import logger

    config = get_config()

    if not config.error_webhook_url:
        logger.info("Optional config not set: ERROR_WEBHOOK_URL")

    logger.tree("Configuration Validated", [
        ("Master", config.master_actor_id),
        ("Prefix", config.command_prefix),
        ("Rate Limit", f"{config.rate_limit_max}/{config.rate_limit_window}s"),
        ("Cache TTL", f"admin {config.admin_cache_ttl}s, silence {config.silence_cache_ttl}s"),
        ("Scope Lock", "On" if config.scope_lock else "Off"),
        ("Authorized Scopes", str(len(config.authorized_scope_ids))),
    ], emoji="⚙️")
    return config


__all__ = [
    "Config",
    "PipelineSettings",
    "ConfigValidationError",
    "load_config",
    "get_config",
    "validate_and_log_config",
]

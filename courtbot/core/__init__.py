"""
CourtBot - Core Package
=======================

Configuration, logging, errors, domain models and the durable store.

DESIGN:
    Core modules are singletons or global instances so state is shared
    across the application:
    - get_config() returns the same Config instance
    - get_db() returns the same DatabaseManager instance
    - logger is a global TreeLogger instance
"""

# =============================================================================
# Core Imports
# =============================================================================

from .config import (
    Config,
    ConfigValidationError,
    PipelineSettings,
    get_config,
)

from .errors import (
    CommandFault,
    CommandRejected,
    ConfigMissing,
    CourtBotError,
    InvariantViolation,
    StoreUnavailable,
)

from .logger import logger, TreeLogger


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # Config
    "Config",
    "ConfigValidationError",
    "PipelineSettings",
    "get_config",
    # Errors
    "CommandFault",
    "CommandRejected",
    "ConfigMissing",
    "CourtBotError",
    "InvariantViolation",
    "StoreUnavailable",
    # Logger
    "logger",
    "TreeLogger",
]

"""
CourtBot - Admission Pipeline
=============================

Rate limiting, authorization, cooldowns and dispatch for inbound commands.
"""

from courtbot.pipeline.authorization import AuthorizationResolver
from courtbot.pipeline.cooldowns import CooldownTracker
from courtbot.pipeline.dispatcher import Dispatcher, scope_permitted
from courtbot.pipeline.permission_cache import PermissionCache
from courtbot.pipeline.rate_limiter import CommandRateLimiter
from courtbot.pipeline.registry import CommandRegistry, CommandSettings, ConfigSnapshot

__all__ = [
    "AuthorizationResolver",
    "CommandRateLimiter",
    "CommandRegistry",
    "CommandSettings",
    "ConfigSnapshot",
    "CooldownTracker",
    "Dispatcher",
    "PermissionCache",
    "scope_permitted",
]

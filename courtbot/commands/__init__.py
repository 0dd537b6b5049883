"""
CourtBot - Commands
===================

Built-in command bodies and their descriptors.
"""

from typing import FrozenSet

from courtbot.commands.admin import admin_commands
from courtbot.commands.basic import basic_commands
from courtbot.commands.context import CommandContext, ReplyChannel, parse_actor
from courtbot.core.logger import logger
from courtbot.pipeline.registry import CommandRegistry


def register_builtin_commands(
    registry: CommandRegistry,
    restricted_scopes: FrozenSet[str] = frozenset(),
) -> int:
    """
    Register every built-in command.

    Returns:
        Number of commands registered.
    """
    registered = 0
    for descriptor, body in [*basic_commands(), *admin_commands(restricted_scopes)]:
        if registry.register(descriptor, body):
            registered += 1

    logger.tree("Commands Registered", [
        ("Commands", str(registered)),
        ("Restricted To", f"{len(restricted_scopes)} group(s)" if restricted_scopes else "All groups"),
    ], emoji="📜")
    return registered


__all__ = [
    "CommandContext",
    "ReplyChannel",
    "parse_actor",
    "register_builtin_commands",
]

"""
CourtBot - Command Context
==========================

What a command body receives when the dispatcher runs it.
"""

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol, Tuple

from courtbot.core.errors import CommandRejected
from courtbot.core.models import REASON_INVALID_USAGE, CommandDescriptor, InboundMessage, Scope

if TYPE_CHECKING:
    from courtbot.runtime import CourtRuntime


MENTION_PATTERN = re.compile(r"^<@!?(\d+)>$")


class ReplyChannel(Protocol):
    """Transport side of a message: where replies go."""

    async def send(self, text: str) -> None: ...

    async def delete_message(self) -> None: ...


def parse_actor(raw: str) -> Optional[str]:
    """
    Turn a command argument into an actor id.

    Accepts a bare id, "@id" or a mention ("<@id>", "<@!id>").
    """
    raw = raw.strip()
    match = MENTION_PATTERN.match(raw)
    if match:
        return match.group(1)
    raw = raw.lstrip("@")
    return raw or None


@dataclass
class CommandContext:
    """Inputs of one command execution."""

    message: InboundMessage
    args: Tuple[str, ...]
    descriptor: CommandDescriptor
    channel: ReplyChannel
    runtime: "CourtRuntime"

    @property
    def actor_id(self) -> str:
        return self.message.actor_id

    @property
    def scope(self) -> Scope:
        return self.message.scope

    @property
    def is_master(self) -> bool:
        return self.actor_id == self.runtime.settings.master_actor_id

    async def reply(self, text: str) -> None:
        await self.channel.send(text)

    def usage_error(self) -> CommandRejected:
        """Refusal carrying the command's usage line. Raise it from a body."""
        invocation = f"{self.runtime.registry.prefix}{self.descriptor.name}"
        if self.descriptor.usage:
            invocation = f"{invocation} {self.descriptor.usage}"
        return CommandRejected(REASON_INVALID_USAGE, f"⚠️ Usage: `{invocation}`")


__all__ = [
    "CommandContext",
    "ReplyChannel",
    "parse_actor",
]

"""
CourtBot - Error Types
======================

Exception hierarchy for the admission pipeline.

DESIGN:
    Only two of these ever cross a public boundary as raised exceptions:
    InvariantViolation (from mutation APIs) and ConfigValidationError
    (from startup, defined in core.config). StoreUnavailable is raised by
    the store wrappers and recovered by the permission cache and resolver.
    CommandFault is recorded by the dispatcher as the ERRORED state and
    never re-raised out of Dispatcher.handle(). CommandRejected is raised
    by a command body that refuses a request without changing anything;
    the dispatcher records it as DENIED and gives back the cooldown.
"""

from typing import Optional


class CourtBotError(Exception):
    """Base class for every error raised by CourtBot."""


class StoreUnavailable(CourtBotError):
    """The durable store failed or did not answer within the timeout."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"store unavailable during {operation}{detail}")


class ConfigMissing(CourtBotError):
    """No configuration exists for the requested command."""

    def __init__(self, command: str) -> None:
        self.command = command
        super().__init__(f"no configuration for command '{command}'")


class CommandFault(CourtBotError):
    """A command body raised while executing."""

    def __init__(self, command: str, cause: BaseException) -> None:
        self.command = command
        self.cause = cause
        super().__init__(str(cause) or type(cause).__name__)


class InvariantViolation(CourtBotError):
    """A mutation would break a standing invariant, e.g. touching the master actor."""


class CommandRejected(CourtBotError):
    """
    A command body refused the request and changed nothing.

    Attributes:
        reason: Short code written to the audit record.
        reply: Text shown to the sender.
    """

    def __init__(self, reason: str, reply: str) -> None:
        self.reason = reason
        self.reply = reply
        super().__init__(reason)


__all__ = [
    "CourtBotError",
    "StoreUnavailable",
    "ConfigMissing",
    "CommandFault",
    "CommandRejected",
    "InvariantViolation",
]

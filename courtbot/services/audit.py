"""
CourtBot - Audit Sink
=====================

Writes one immutable record per dispatch decision and serves the
reporting queries built on the audit log.

DESIGN:
    record() is best-effort: a store failure is logged and swallowed so an
    audit outage never changes the outcome of a command. Arguments are
    redacted before the record is built, so nothing unredacted is ever
    held in an AuditRecord.
"""

import re
import time
from typing import Iterable, List, Optional, Protocol, Tuple

from courtbot.core.constants import (
    AUDIT_ARGUMENT_MAX_LENGTH,
    DEFAULT_AUDIT_RETENTION_DAYS,
    DEFAULT_STORE_TIMEOUT,
    SUSPICIOUS_FAILURE_THRESHOLD,
)
from courtbot.core.database.models import AuditStatsRow, FailureSummaryRow
from courtbot.core.errors import StoreUnavailable
from courtbot.core.logger import logger
from courtbot.core.models import AuditRecord
from courtbot.utils.async_utils import call_blocking
from courtbot.utils.metrics import metrics


PHONE_PATTERN = re.compile(r"^\+?\d{10,15}$")
"""Arguments that look like phone numbers are masked."""


def redact_arguments(arguments: Iterable[str]) -> Tuple[str, ...]:
    """
    Mask phone-like arguments and truncate long ones.

    Example:
        redact_arguments(["5511999990000", "10"]) == ("***0000", "10")
    """
    redacted = []
    for arg in arguments:
        arg = str(arg)
        if PHONE_PATTERN.match(arg):
            redacted.append(f"***{arg[-4:]}")
        elif len(arg) > AUDIT_ARGUMENT_MAX_LENGTH:
            redacted.append(arg[:AUDIT_ARGUMENT_MAX_LENGTH] + "…")
        else:
            redacted.append(arg)
    return tuple(redacted)


class AuditStore(Protocol):
    def append_audit(self, record: AuditRecord) -> int: ...

    def get_audit_history(self, actor_id: str, scope_id: Optional[str] = None, limit: int = 50) -> List[AuditRecord]: ...

    def get_audit_stats(self, scope_id: Optional[str] = None, days: int = 30) -> List[AuditStatsRow]: ...

    def get_failed_audit_summary(self, days: int = 7, threshold: int = SUSPICIOUS_FAILURE_THRESHOLD, limit: int = 20) -> List[FailureSummaryRow]: ...

    def cleanup_audit_log(self, retention_days: int) -> int: ...


class AuditSink:
    """Append-only audit trail of dispatch decisions."""

    def __init__(self, store: AuditStore, timeout: float = DEFAULT_STORE_TIMEOUT) -> None:
        self._store = store
        self.timeout = timeout

    async def record(
        self,
        actor_id: str,
        scope_id: str,
        command: str,
        arguments: Iterable[str] = (),
        success: bool = True,
        reason: Optional[str] = None,
    ) -> Optional[AuditRecord]:
        """
        Build and append one audit record.

        Returns:
            The record, or None if the store rejected it.
        """
        record = AuditRecord(
            actor_id=actor_id,
            scope_id=scope_id,
            command=command,
            arguments=redact_arguments(arguments),
            success=success,
            reason=reason,
            timestamp=time.time(),
        )
        try:
            await call_blocking("append_audit", self._store.append_audit, record, timeout=self.timeout)
        except StoreUnavailable as e:
            metrics.increment("audit.write_failed")
            logger.error("Audit Write Failed", [
                ("Actor", actor_id),
                ("Command", command),
                ("Success", str(success)),
                ("Error", str(e)[:100]),
            ])
            return None

        metrics.increment("audit.written")
        return record

    # =========================================================================
    # Reporting
    # =========================================================================

    async def history(self, actor_id: str, scope_id: Optional[str] = None, limit: int = 50) -> List[AuditRecord]:
        """An actor's recent records, newest first."""
        return await call_blocking(
            "get_audit_history", self._store.get_audit_history, actor_id, scope_id, limit,
            timeout=self.timeout,
        )

    async def stats(self, scope_id: Optional[str] = None, days: int = 30) -> List[AuditStatsRow]:
        """Per-command usage over the last `days` days."""
        return await call_blocking(
            "get_audit_stats", self._store.get_audit_stats, scope_id, days,
            timeout=self.timeout,
        )

    async def suspicious_actors(self, days: int = 7) -> List[FailureSummaryRow]:
        """Actors with repeated failed attempts."""
        return await call_blocking(
            "get_failed_audit_summary", self._store.get_failed_audit_summary, days,
            timeout=self.timeout,
        )

    async def cleanup(self, retention_days: int = DEFAULT_AUDIT_RETENTION_DAYS) -> int:
        """Delete records past retention. Returns the number deleted."""
        deleted = await call_blocking(
            "cleanup_audit_log", self._store.cleanup_audit_log, retention_days,
            timeout=max(self.timeout, 30.0),
        )
        if deleted:
            logger.tree("Audit Log Cleaned", [
                ("Deleted", str(deleted)),
                ("Retention", f"{retention_days} days"),
            ], emoji="🧹")
        return deleted


__all__ = [
    "AuditSink",
    "AuditStore",
    "redact_arguments",
]

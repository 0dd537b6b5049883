"""
CourtBot - Database Module
==========================

Durable store behind the permission cache and the audit sink.
"""

from courtbot.core.database.manager import (
    DatabaseManager,
    get_db,
    DATA_DIR,
    DB_PATH,
)
from courtbot.core.database.models import (
    AuditStatsRow,
    FailureSummaryRow,
)

__all__ = [
    "DatabaseManager",
    "get_db",
    "DATA_DIR",
    "DB_PATH",
    "AuditStatsRow",
    "FailureSummaryRow",
]

"""
CourtBot - Database Type Definitions
====================================

TypedDict rows returned by the reporting queries.
"""

from typing import List, TypedDict


class AuditStatsRow(TypedDict):
    """Usage of one command over a period."""
    command: str
    total: int
    successes: int
    failures: int
    actors: int


class FailureSummaryRow(TypedDict):
    """An actor with repeated failed attempts."""
    actor_id: str
    failures: int
    commands: List[str]
    last_failure: float


__all__ = [
    "AuditStatsRow",
    "FailureSummaryRow",
]

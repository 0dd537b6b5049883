"""
CourtBot - Test Fixtures
========================

Shared fixtures for all tests.
"""

import os
import threading
import time
from typing import Dict, List, Optional, Tuple

import pytest

# Set up test environment before importing modules
os.environ["TESTING"] = "1"

from courtbot.core.config import PipelineSettings  # noqa: E402
from courtbot.core.models import AuditRecord, SilenceRecord, SpecialPermission  # noqa: E402
from courtbot.utils.metrics import metrics  # noqa: E402


MASTER = "1000"
ADMIN = "2000"
MEMBER = "3000"
GROUP = "555"
OTHER_GROUP = "666"
DIRECT = "dm-3000"


# =============================================================================
# Fakes
# =============================================================================

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStore:
    """
    In-memory store with switchable failure.

    Attributes:
        fail: When True every lookup raises.
        calls: Lookup call counts by method name.
    """

    def __init__(self) -> None:
        self.admins: set = set()
        self.silences: Dict[Tuple[str, str], SilenceRecord] = {}
        self.permissions: Dict[Tuple[str, str, str], SpecialPermission] = {}
        self.audit: List[AuditRecord] = []
        self.fail = False
        self.fail_audit = False
        self.delay = 0.0
        self.calls: Dict[str, int] = {}
        self.gate: Optional[threading.Event] = None
        self.held = threading.Event()

    def _enter(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise ConnectionError("store offline")

    def _hold(self) -> None:
        """Block the worker thread after the answer is computed, while gate is set."""
        if self.gate is not None:
            self.held.set()
            self.gate.wait(5)

    def find_admin_grant(self, scope_id: str, actor_id: str) -> bool:
        self._enter("find_admin_grant")
        result = (scope_id, actor_id) in self.admins
        self._hold()
        return result

    def find_silence_record(self, scope_id: str, actor_id: str) -> Optional[SilenceRecord]:
        self._enter("find_silence_record")
        result = self.silences.get((scope_id, actor_id))
        self._hold()
        return result

    def find_special_permission(self, scope_id: str, actor_id: str, command: str) -> Optional[SpecialPermission]:
        self._enter("find_special_permission")
        return self.permissions.get((scope_id, actor_id, command))

    def append_audit(self, record: AuditRecord) -> int:
        if self.fail_audit:
            raise ConnectionError("audit offline")
        self.audit.append(record)
        return len(self.audit)

    # Helpers used by tests to shape store state

    def silence(self, scope_id: str, actor_id: str, expires_at: Optional[float] = None) -> None:
        self.silences[(scope_id, actor_id)] = SilenceRecord(
            scope_id=scope_id,
            actor_id=actor_id,
            silenced_by=ADMIN,
            created_at=time.time(),
            expires_at=expires_at,
        )

    def permit(self, scope_id: str, actor_id: str, command: str, allowed: bool,
               expires_at: Optional[float] = None) -> None:
        self.permissions[(scope_id, actor_id, command)] = SpecialPermission(
            scope_id=scope_id,
            actor_id=actor_id,
            command=command,
            allowed=allowed,
            granted_by=ADMIN,
            granted_at=time.time(),
            expires_at=expires_at,
        )


class RecordingChannel:
    """ReplyChannel that remembers what was sent."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: List[str] = []
        self.deleted = 0
        self.fail = fail

    async def send(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("send failed")
        self.sent.append(text)

    async def delete_message(self) -> None:
        self.deleted += 1

    @property
    def last(self) -> str:
        return self.sent[-1] if self.sent else ""


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def reset_metrics():
    """Start every test with empty counters."""
    metrics.clear()
    yield
    metrics.clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return PipelineSettings(
        master_actor_id=MASTER,
        max_per_window=5,
        window_seconds=10,
        admin_ttl_seconds=300,
        silence_ttl_seconds=120,
        sweep_interval_seconds=30,
        store_timeout_seconds=1.0,
    )


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def temp_db_path(tmp_path):
    """Create a temporary database path for testing."""
    return tmp_path / "test_courtbot.db"


@pytest.fixture
def test_db(temp_db_path, monkeypatch):
    """Create a fresh test database instance."""
    # Reset the singleton and patch the DB path
    from courtbot.core.database import manager as db_module

    db_module.DatabaseManager._instance = None
    monkeypatch.setattr(db_module, "DB_PATH", temp_db_path)
    monkeypatch.setattr(db_module, "DATA_DIR", temp_db_path.parent)

    db = db_module.DatabaseManager()
    db.set_master(MASTER)

    yield db

    db.close()
    db_module.DatabaseManager._instance = None


@pytest.fixture
def runtime(settings, test_db, clock):
    """Fully wired runtime over the temporary database."""
    from courtbot.runtime import build_runtime

    return build_runtime(settings, test_db, clock=clock)

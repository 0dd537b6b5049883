"""
CourtBot - Database Tests
=========================

Tests for the database layer to ensure data integrity.
"""

import time

import pytest

from courtbot.core.errors import InvariantViolation
from courtbot.core.models import AuditRecord

from tests.conftest import ADMIN, GROUP, MASTER, MEMBER, OTHER_GROUP


class TestBotState:
    """Tests for bot state operations."""

    def test_set_and_get_bot_state_string(self, test_db):
        test_db.set_bot_state("test_key", "test_value")
        assert test_db.get_bot_state("test_key") == "test_value"

    def test_set_and_get_bot_state_bool(self, test_db):
        test_db.set_bot_state("scope_lock", True)
        assert test_db.get_bot_state("scope_lock") is True

        test_db.set_bot_state("scope_lock", False)
        assert test_db.get_bot_state("scope_lock") is False

    def test_set_and_get_bot_state_dict(self, test_db):
        data = {"ping": {"enabled": False}}
        test_db.set_bot_state("command_overrides", data)
        assert test_db.get_bot_state("command_overrides") == data

    def test_get_bot_state_default(self, test_db):
        assert test_db.get_bot_state("nonexistent", "default_value") == "default_value"

    def test_delete_bot_state(self, test_db):
        test_db.set_bot_state("key", 1)
        test_db.delete_bot_state("key")
        assert test_db.get_bot_state("key") is None


class TestAdminGrants:
    """Tests for admin grant operations."""

    def test_add_and_find(self, test_db):
        assert test_db.add_admin_grant(GROUP, ADMIN, MASTER) is True
        assert test_db.find_admin_grant(GROUP, ADMIN) is True
        assert test_db.find_admin_grant(OTHER_GROUP, ADMIN) is False

    def test_add_twice_is_idempotent(self, test_db):
        test_db.add_admin_grant(GROUP, ADMIN, MASTER)
        assert test_db.add_admin_grant(GROUP, ADMIN, MASTER) is False
        assert len(test_db.list_admin_grants(GROUP)) == 2

    def test_master_is_admin_everywhere(self, test_db):
        assert test_db.find_admin_grant("anywhere", MASTER) is True

    def test_list_puts_master_first(self, test_db):
        test_db.add_admin_grant(GROUP, ADMIN, MASTER)
        grants = test_db.list_admin_grants(GROUP)
        assert [g.actor_id for g in grants] == [MASTER, ADMIN]

    def test_remove(self, test_db):
        test_db.add_admin_grant(GROUP, ADMIN, MASTER)
        assert test_db.remove_admin_grant(GROUP, ADMIN) is True
        assert test_db.remove_admin_grant(GROUP, ADMIN) is False
        assert test_db.find_admin_grant(GROUP, ADMIN) is False

    def test_master_cannot_be_granted_or_revoked(self, test_db):
        with pytest.raises(InvariantViolation):
            test_db.add_admin_grant(GROUP, MASTER, ADMIN)
        with pytest.raises(InvariantViolation):
            test_db.remove_admin_grant(GROUP, MASTER)


class TestSpecialPermissions:
    """Tests for special permission operations."""

    def test_set_and_find(self, test_db):
        test_db.set_special_permission(GROUP, MEMBER, "ping", False, ADMIN)
        permission = test_db.find_special_permission(GROUP, MEMBER, "ping")
        assert permission is not None
        assert permission.allowed is False
        assert test_db.find_special_permission(GROUP, MEMBER, "dados") is None

    def test_set_replaces(self, test_db):
        test_db.set_special_permission(GROUP, MEMBER, "ping", False, ADMIN)
        test_db.set_special_permission(GROUP, MEMBER, "ping", True, ADMIN)
        assert test_db.find_special_permission(GROUP, MEMBER, "ping").allowed is True
        assert len(test_db.list_special_permissions(GROUP, MEMBER)) == 1

    def test_expired_permission_not_found(self, test_db):
        test_db.set_special_permission(GROUP, MEMBER, "ping", True, ADMIN, expires_at=time.time() + 60)
        assert test_db.find_special_permission(GROUP, MEMBER, "ping") is not None
        assert test_db.find_special_permission(GROUP, MEMBER, "ping", now=time.time() + 61) is None

    def test_remove_one_or_all(self, test_db):
        test_db.set_special_permission(GROUP, MEMBER, "ping", True, ADMIN)
        test_db.set_special_permission(GROUP, MEMBER, "dados", True, ADMIN)
        test_db.set_special_permission(GROUP, ADMIN, "ping", True, MASTER)

        assert test_db.remove_special_permission(GROUP, MEMBER, "ping") == 1
        assert test_db.remove_special_permission(GROUP, MEMBER) == 1
        assert len(test_db.list_special_permissions(GROUP)) == 1

    def test_master_cannot_receive_permissions(self, test_db):
        with pytest.raises(InvariantViolation):
            test_db.set_special_permission(GROUP, MASTER, "ping", False, ADMIN)


class TestSilenceRecords:
    """Tests for silence record operations."""

    def test_permanent_silence(self, test_db):
        record = test_db.add_silence_record(GROUP, MEMBER, ADMIN)
        assert record.is_permanent
        assert test_db.find_silence_record(GROUP, MEMBER) is not None
        assert test_db.get_expired_silence_records(now=time.time() + 10 ** 9) == []

    def test_timed_silence_expires(self, test_db):
        expires = time.time() + 60
        test_db.add_silence_record(GROUP, MEMBER, ADMIN, expires_at=expires)

        assert test_db.find_silence_record(GROUP, MEMBER, now=expires - 1) is not None
        assert test_db.find_silence_record(GROUP, MEMBER, now=expires) is None
        expired = test_db.get_expired_silence_records(now=expires)
        assert [r.actor_id for r in expired] == [MEMBER]

    def test_silence_replaces_previous(self, test_db):
        test_db.add_silence_record(GROUP, MEMBER, ADMIN, expires_at=time.time() + 60)
        test_db.add_silence_record(GROUP, MEMBER, ADMIN)
        assert test_db.find_silence_record(GROUP, MEMBER).is_permanent
        assert len(test_db.list_silence_records(GROUP)) == 1

    def test_remove_all(self, test_db):
        test_db.add_silence_record(GROUP, MEMBER, ADMIN)
        test_db.add_silence_record(GROUP, "4000", ADMIN)
        test_db.add_silence_record(OTHER_GROUP, MEMBER, ADMIN)

        assert sorted(test_db.remove_all_silence_records(GROUP)) == sorted([MEMBER, "4000"])
        assert test_db.list_silence_records(GROUP) == []
        assert test_db.find_silence_record(OTHER_GROUP, MEMBER) is not None

    def test_master_cannot_be_silenced(self, test_db):
        with pytest.raises(InvariantViolation):
            test_db.add_silence_record(GROUP, MASTER, ADMIN)


class TestAuditLog:
    """Tests for audit log operations."""

    def _record(self, actor_id=MEMBER, command="ping", success=True, scope_id=GROUP, timestamp=None):
        return AuditRecord(
            actor_id=actor_id,
            scope_id=scope_id,
            command=command,
            arguments=("a", "b"),
            success=success,
            reason=None if success else "not_group_admin",
            timestamp=timestamp if timestamp is not None else time.time(),
        )

    def test_append_and_history(self, test_db):
        test_db.append_audit(self._record(command="ping", timestamp=100.0))
        test_db.append_audit(self._record(command="dados", timestamp=200.0))

        history = test_db.get_audit_history(MEMBER)
        assert [r.command for r in history] == ["dados", "ping"]
        assert history[0].arguments == ("a", "b")

    def test_history_filters_scope_and_limit(self, test_db):
        for _ in range(3):
            test_db.append_audit(self._record())
        test_db.append_audit(self._record(scope_id=OTHER_GROUP))

        assert len(test_db.get_audit_history(MEMBER, GROUP)) == 3
        assert len(test_db.get_audit_history(MEMBER, limit=2)) == 2

    def test_stats(self, test_db):
        test_db.append_audit(self._record(command="ping"))
        test_db.append_audit(self._record(command="ping", actor_id=ADMIN, success=False))
        test_db.append_audit(self._record(command="dados"))

        stats = test_db.get_audit_stats()
        assert stats[0]["command"] == "ping"
        assert stats[0]["total"] == 2
        assert stats[0]["failures"] == 1
        assert stats[0]["actors"] == 2

    def test_failed_summary(self, test_db):
        for _ in range(5):
            test_db.append_audit(self._record(command="silenciar", success=False))
        test_db.append_audit(self._record(actor_id=ADMIN, success=False))

        summary = test_db.get_failed_audit_summary(threshold=5)
        assert len(summary) == 1
        assert summary[0]["actor_id"] == MEMBER
        assert summary[0]["commands"] == ["silenciar"]

    def test_cleanup(self, test_db):
        test_db.append_audit(self._record(timestamp=time.time() - 100 * 86400))
        test_db.append_audit(self._record())

        assert test_db.cleanup_audit_log(0) == 0
        assert test_db.cleanup_audit_log(90) == 1
        assert test_db.count_audit_records() == {"total": 1, "successes": 1, "failures": 0}

"""
Tests for courtbot/services/audit.py
"""

import pytest

from courtbot.services.audit import AuditSink, redact_arguments
from courtbot.utils.metrics import metrics

from tests.conftest import GROUP, MEMBER


class TestRedactArguments:
    """Tests for argument redaction."""

    def test_phone_numbers_are_masked(self):
        assert redact_arguments(["5511999990000", "+5511999990000"]) == ("***0000", "***0000")

    def test_short_numbers_kept(self):
        assert redact_arguments(["10", "123456789"]) == ("10", "123456789")

    def test_long_arguments_truncated(self):
        (redacted,) = redact_arguments(["x" * 500])
        assert len(redacted) == 201
        assert redacted.endswith("…")

    def test_non_strings_converted(self):
        assert redact_arguments([5, None]) == ("5", "None")


class TestAuditSink:
    """Tests for the best-effort writer."""

    @pytest.mark.asyncio
    async def test_record_is_redacted_before_write(self, fake_store):
        sink = AuditSink(fake_store)
        record = await sink.record(MEMBER, GROUP, "silenciar", ["5511999990000"], success=False, reason="x")

        assert record is not None
        assert fake_store.audit == [record]
        assert record.arguments == ("***0000",)
        assert metrics.get_counter("audit.written") == 1

    @pytest.mark.asyncio
    async def test_store_failure_returns_none(self, fake_store):
        fake_store.fail_audit = True
        sink = AuditSink(fake_store)

        assert await sink.record(MEMBER, GROUP, "ping") is None
        assert metrics.get_counter("audit.write_failed") == 1

    @pytest.mark.asyncio
    async def test_reporting_queries(self, test_db):
        sink = AuditSink(test_db)
        for _ in range(5):
            await sink.record(MEMBER, GROUP, "addadm", success=False, reason="not_group_admin")
        await sink.record(MEMBER, GROUP, "ping")

        history = await sink.history(MEMBER, GROUP, limit=3)
        assert len(history) == 3

        stats = await sink.stats(GROUP)
        assert {row["command"] for row in stats} == {"addadm", "ping"}

        suspicious = await sink.suspicious_actors()
        assert [row["actor_id"] for row in suspicious] == [MEMBER]

        assert await sink.cleanup(retention_days=90) == 0

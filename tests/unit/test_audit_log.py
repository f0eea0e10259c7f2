"""Unit tests for the bounded execution log."""

from malbouche.scheduler.audit_log import AuditLog, ExecutionAuditEntry


def _entry(i: int) -> ExecutionAuditEntry:
    return ExecutionAuditEntry(
        event_id=f"evt-{i}",
        event_name=f"Event {i}",
        timestamp=f"2024-06-20T14:{i:02d}:00",
        outcome='success',
        phase='dispatch',
        message='ok'
    )


class TestAuditLog:

    def test_append_and_persist(self, tmp_path):
        log_file = tmp_path / "log.json"
        log = AuditLog(str(log_file))
        log.append(_entry(1))
        log.append(_entry(2))

        reloaded = AuditLog(str(log_file))

        assert [e.event_id for e in reloaded.entries()] == ['evt-1', 'evt-2']

    def test_oldest_evicted(self, tmp_path):
        log = AuditLog(str(tmp_path / "log.json"), max_entries=3)
        for i in range(5):
            log.append(_entry(i))

        assert len(log) == 3
        assert [e.event_id for e in log.entries()] == ['evt-2', 'evt-3', 'evt-4']

    def test_recent_is_newest_first(self, tmp_path):
        log = AuditLog(str(tmp_path / "log.json"))
        for i in range(4):
            log.append(_entry(i))

        assert [e.event_id for e in log.recent(2)] == ['evt-3', 'evt-2']
        assert log.recent(0) == []

    def test_corrupt_file_starts_fresh(self, tmp_path):
        log_file = tmp_path / "log.json"
        log_file.write_text("[{\"event_id\": ")

        log = AuditLog(str(log_file))

        assert len(log) == 0

    def test_clear(self, tmp_path):
        log = AuditLog(str(tmp_path / "log.json"))
        log.append(_entry(1))
        log.clear()

        assert AuditLog(str(tmp_path / "log.json")).entries() == []

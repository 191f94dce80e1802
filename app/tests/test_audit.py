import json
import threading
from datetime import datetime, timedelta, timezone

import pytest

from alshifa.audit import AuditLog, InMemoryAuditStore, JsonlAuditStore, build_audit_log, build_entry
from alshifa.config import Settings
from alshifa.errors import AuditWriteError


def test_record_appends_in_order_with_tokens():
    log = AuditLog()

    first = log.record("SYSTEM", "ELIGIBILITY_FILTER", "Total: 3, Eligible: 1", patient_id="p-1")
    second = log.record("dr-1", "EMERGENCY_OVERRIDE", "Reason: test", actor_role="DOCTOR")

    assert [entry.entry_id for entry in log.entries()] == [first.entry_id, second.entry_id]
    assert len(log) == 2
    assert all(AuditLog.verify(entry) for entry in log.entries())
    assert first.entry_id != second.entry_id


def test_duplicate_entry_is_rejected():
    log = AuditLog()
    entry = build_entry("SYSTEM", "ONLINE_BLOCKED", "x")
    log.append(entry)

    with pytest.raises(AuditWriteError):
        log.append(entry)
    assert len(log) == 1


def test_query_filters():
    log = AuditLog()
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    log.append(build_entry("SYSTEM", "ONLINE_BLOCKED", "a", patient_id="p-1", timestamp=base))
    log.append(build_entry("dr-9", "EMERGENCY_OVERRIDE", "b", patient_id="p-2", timestamp=base + timedelta(hours=1)))
    log.append(build_entry("SYSTEM", "DOCTOR_RECOMMENDATION", "c", patient_id="p-1", timestamp=base + timedelta(hours=2)))

    assert len(log.query(actor_id="SYSTEM")) == 2
    assert [e.details for e in log.query(action="EMERGENCY_OVERRIDE")] == ["b"]
    assert [e.details for e in log.query(patient_id="p-1")] == ["a", "c"]
    assert [e.details for e in log.query(start=base + timedelta(minutes=30))] == ["b", "c"]
    # Naive bounds are read as UTC.
    assert [e.details for e in log.query(end=datetime(2026, 1, 1, 1, 0))] == ["a", "b"]
    assert log.query(actor_id="nobody") == []


def test_edited_entry_fails_verification():
    entry = build_entry("SYSTEM", "DOCTOR_RECOMMENDATION", "Doctors: d1")
    edited = entry.model_copy(update={"details": "Doctors: d2"})

    assert AuditLog.verify(entry)
    assert not AuditLog.verify(edited)


def test_jsonl_store_persists_and_detects_tampering(tmp_path):
    path = tmp_path / "audit" / "audit.jsonl"
    log = AuditLog(JsonlAuditStore(path))
    kept = log.record("SYSTEM", "ELIGIBILITY_FILTER", "Eligible: 2", patient_id="p-1")
    target = log.record("SYSTEM", "DOCTOR_RECOMMENDATION", "Doctors: d1")

    reopened = AuditLog(JsonlAuditStore(path))
    assert [e.entry_id for e in reopened.entries()] == [kept.entry_id, target.entry_id]
    assert reopened.find_tampered() == []

    lines = path.read_text(encoding="utf-8").splitlines()
    row = json.loads(lines[1])
    row["details"] = "Doctors: d7"
    lines[1] = json.dumps(row)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    assert reopened.find_tampered() == [target.entry_id]


def test_concurrent_records_are_all_kept(tmp_path):
    log = AuditLog(JsonlAuditStore(tmp_path / "audit.jsonl"))

    def worker(n: int) -> None:
        for i in range(25):
            log.record(f"actor-{n}", "ELIGIBILITY_FILTER", f"n={n} i={i}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    entries = log.entries()
    assert len(entries) == 200
    assert len({e.entry_id for e in entries}) == 200
    assert log.failed_writes == 0


class BrokenStore:
    def append(self, entry):
        raise AuditWriteError("disk full")

    def entries(self):
        return []

    def unreadable(self):
        return []

    def __len__(self):
        return 0


def test_record_never_raises_on_store_failure(caplog):
    log = AuditLog(BrokenStore())

    with caplog.at_level("ERROR"):
        assert log.record("SYSTEM", "ONLINE_BLOCKED", "x") is None

    assert log.failed_writes == 1
    assert "Audit write failed" in caplog.text


def test_statistics_and_export():
    log = AuditLog(InMemoryAuditStore())
    log.record("SYSTEM", "ONLINE_BLOCKED", "a")
    log.record("SYSTEM", "EMERGENCY_REDIRECT", "b")
    log.record("dr-1", "EMERGENCY_OVERRIDE", "c", actor_role="DOCTOR")

    stats = log.statistics()
    assert stats["total"] == 3
    assert stats["by_action"]["ONLINE_BLOCKED"] == 1
    assert stats["by_actor"] == {"SYSTEM": 2, "dr-1": 1}
    assert stats["recent"][0]["details"] == "c"

    exported = json.loads(log.export_json())
    assert [row["action"] for row in exported] == ["ONLINE_BLOCKED", "EMERGENCY_REDIRECT", "EMERGENCY_OVERRIDE"]


def test_build_audit_log_backend(tmp_path):
    jsonl = build_audit_log(Settings(audit_backend="jsonl", audit_log_path=str(tmp_path / "a.jsonl")))
    jsonl.record("SYSTEM", "ONLINE_BLOCKED", "x")

    assert (tmp_path / "a.jsonl").exists()
    assert len(build_audit_log(Settings(audit_backend="memory"))) == 0


def test_concurrent_store_failures_are_all_counted():
    log = AuditLog(BrokenStore())

    def worker() -> None:
        for _ in range(50):
            log.record("SYSTEM", "ONLINE_BLOCKED", "x")

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert log.failed_writes == 400


def test_jsonl_rows_that_no_longer_parse_are_reported(tmp_path):
    path = tmp_path / "audit.jsonl"
    log = AuditLog(JsonlAuditStore(path))
    kept = log.record("SYSTEM", "ELIGIBILITY_FILTER", "Eligible: 2")
    rewritten = log.record("SYSTEM", "DOCTOR_RECOMMENDATION", "Doctors: d1")

    lines = path.read_text(encoding="utf-8").splitlines()
    row = json.loads(lines[1])
    row["action"] = "DELETED_BY_ADMIN"
    lines[1] = json.dumps(row)
    lines.append('{"entry_id": "log-trunc')
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    assert log.find_tampered() == [rewritten.entry_id, "line-3"]
    assert [e.entry_id for e in log.entries()] == [kept.entry_id]

    reopened = AuditLog(JsonlAuditStore(path))
    assert len(reopened) == 3
    assert reopened.find_tampered() == [rewritten.entry_id, "line-3"]
    assert reopened.query(action="ELIGIBILITY_FILTER")[0].entry_id == kept.entry_id


def test_jsonl_length_tracks_appends(tmp_path):
    store = JsonlAuditStore(tmp_path / "audit.jsonl")
    log = AuditLog(store)
    for i in range(3):
        log.record("SYSTEM", "ELIGIBILITY_FILTER", f"i={i}")

    assert len(store) == 3
    assert len(log) == 3

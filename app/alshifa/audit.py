"""Append-only audit trail for gating, filtering and ranking decisions.

Two stores are provided: an in-memory list for tests and embedding, and a
JSON-lines file where each entry is one line. Both serialize appends with a
lock owned by the store, and both refuse to write an entry id twice.

Each entry carries an integrity token derived from its other fields. The
token is a truncated, unkeyed SHA-256 digest: it detects edits to stored
entries but is not a signature.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol
from uuid import uuid4

from pydantic import ValidationError

from alshifa.config import Settings
from alshifa.errors import AuditWriteError
from alshifa.schemas import ActorRole, AuditAction, AuditEntry
from alshifa.utils import utc_now

logger = logging.getLogger(__name__)

TOKEN_LENGTH = 16


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_integrity_token(entry: AuditEntry) -> str:
    payload = {
        "entry_id": entry.entry_id,
        "timestamp": entry.timestamp.astimezone(timezone.utc).isoformat(),
        "actor_id": entry.actor_id,
        "actor_role": entry.actor_role,
        "action": entry.action,
        "details": entry.details,
        "patient_id": entry.patient_id,
    }
    raw = json.dumps(payload, ensure_ascii=True, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:TOKEN_LENGTH]


def build_entry(
    actor_id: str,
    action: AuditAction,
    details: str,
    *,
    actor_role: ActorRole = "SYSTEM",
    patient_id: str | None = None,
    timestamp: datetime | None = None,
) -> AuditEntry:
    draft = AuditEntry(
        entry_id=f"log-{uuid4().hex[:12]}",
        timestamp=timestamp or utc_now(),
        actor_id=actor_id,
        actor_role=actor_role,
        action=action,
        details=details,
        patient_id=patient_id,
    )
    return draft.model_copy(update={"integrity_token": compute_integrity_token(draft)})


class AuditStore(Protocol):
    def append(self, entry: AuditEntry) -> None: ...

    def entries(self) -> list[AuditEntry]: ...

    def unreadable(self) -> list[str]: ...

    def __len__(self) -> int: ...


class InMemoryAuditStore:
    def __init__(self) -> None:
        self._entries: list[AuditEntry] = []
        self._ids: set[str] = set()
        self._lock = threading.Lock()

    def append(self, entry: AuditEntry) -> None:
        with self._lock:
            if entry.entry_id in self._ids:
                raise AuditWriteError("audit entry already written", {"entry_id": entry.entry_id})
            self._entries.append(entry)
            self._ids.add(entry.entry_id)

    def entries(self) -> list[AuditEntry]:
        with self._lock:
            return list(self._entries)

    def unreadable(self) -> list[str]:
        return []

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _row_label(raw: str, line_no: int) -> str:
    try:
        row = json.loads(raw)
    except ValueError:
        return f"line-{line_no}"
    entry_id = row.get("entry_id") if isinstance(row, dict) else None
    return entry_id if isinstance(entry_id, str) and entry_id else f"line-{line_no}"


class JsonlAuditStore:
    """One JSON document per line.

    Rows that no longer parse as an ``AuditEntry`` are skipped by ``entries``
    and reported by ``unreadable`` (entry id when recoverable, else
    ``line-<n>``).
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        entries, bad = self._scan()
        self._ids = {entry.entry_id for entry in entries} | set(bad)
        self._count = len(entries) + len(bad)
        if bad:
            logger.warning("Audit file %s has %d unreadable rows", self._path, len(bad))

    @property
    def path(self) -> Path:
        return self._path

    def _scan(self) -> tuple[list[AuditEntry], list[str]]:
        if not self._path.exists():
            return [], []
        entries: list[AuditEntry] = []
        bad: list[str] = []
        with self._path.open("r", encoding="utf-8") as fp:
            for line_no, line in enumerate(fp, start=1):
                raw = line.strip()
                if not raw:
                    continue
                try:
                    entries.append(AuditEntry.model_validate_json(raw))
                except ValidationError:
                    bad.append(_row_label(raw, line_no))
        return entries, bad

    def append(self, entry: AuditEntry) -> None:
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=True, separators=(",", ":"))
        with self._lock:
            if entry.entry_id in self._ids:
                raise AuditWriteError("audit entry already written", {"entry_id": entry.entry_id})
            try:
                with self._path.open("a", encoding="utf-8") as fp:
                    fp.write(line + "\n")
            except OSError as exc:
                raise AuditWriteError(f"failed to append audit entry: {exc}", {"path": str(self._path)}) from exc
            self._ids.add(entry.entry_id)
            self._count += 1

    def entries(self) -> list[AuditEntry]:
        with self._lock:
            return self._scan()[0]

    def unreadable(self) -> list[str]:
        with self._lock:
            return self._scan()[1]

    def __len__(self) -> int:
        with self._lock:
            return self._count


class AuditLog:
    def __init__(self, store: AuditStore | None = None):
        self._store: AuditStore = store if store is not None else InMemoryAuditStore()
        self._lock = threading.Lock()
        self.failed_writes = 0

    def append(self, entry: AuditEntry) -> None:
        """Append a prepared entry. Store failures propagate."""
        self._store.append(entry)

    def record(
        self,
        actor_id: str,
        action: AuditAction,
        details: str,
        *,
        actor_role: ActorRole = "SYSTEM",
        patient_id: str | None = None,
    ) -> AuditEntry | None:
        """Build and append an entry; never raises.

        A failed write is logged and counted so the decision that triggered it
        can still be returned to the caller.
        """
        entry = build_entry(actor_id, action, details, actor_role=actor_role, patient_id=patient_id)
        try:
            self._store.append(entry)
        except Exception:
            with self._lock:
                self.failed_writes += 1
                failed = self.failed_writes
            logger.exception(
                "Audit write failed (action=%s, actor=%s, failed_writes=%d)",
                action,
                actor_id,
                failed,
            )
            return None
        return entry

    def entries(self) -> list[AuditEntry]:
        return self._store.entries()

    def __len__(self) -> int:
        return len(self._store)

    def query(
        self,
        *,
        actor_id: str | None = None,
        action: AuditAction | None = None,
        patient_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[AuditEntry]:
        start, end = _aware(start), _aware(end)
        matched: list[AuditEntry] = []
        for entry in self._store.entries():
            if actor_id is not None and entry.actor_id != actor_id:
                continue
            if action is not None and entry.action != action:
                continue
            if patient_id is not None and entry.patient_id != patient_id:
                continue
            if start is not None and entry.timestamp < start:
                continue
            if end is not None and entry.timestamp > end:
                continue
            matched.append(entry)
        return matched

    @staticmethod
    def verify(entry: AuditEntry) -> bool:
        return entry.integrity_token == compute_integrity_token(entry)

    def find_tampered(self) -> list[str]:
        """Ids of entries whose token no longer matches, plus rows that no longer parse."""
        mismatched = [entry.entry_id for entry in self._store.entries() if not self.verify(entry)]
        return [*self._store.unreadable(), *mismatched]

    def statistics(self) -> dict[str, Any]:
        entries = self._store.entries()
        return {
            "total": len(entries),
            "by_action": dict(Counter(entry.action for entry in entries)),
            "by_actor": dict(Counter(entry.actor_id for entry in entries)),
            "recent": [entry.model_dump(mode="json") for entry in reversed(entries[-10:])],
            "failed_writes": self.failed_writes,
        }

    def export_json(self) -> str:
        return json.dumps([entry.model_dump(mode="json") for entry in self._store.entries()], indent=2)


def build_audit_log(settings: Settings) -> AuditLog:
    if settings.audit_backend == "jsonl":
        return AuditLog(JsonlAuditStore(settings.audit_log_path))
    return AuditLog(InMemoryAuditStore())

import itertools
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from security.otp_codes import OtpRecord, Purpose
from storage.base import CodeStore


class MemoryCodeStore(CodeStore):
    """Process-local store. Thread-safe; hands out copies, never live rows."""

    def __init__(self):
        self._rows: List[OtpRecord] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._email_locks: Dict[str, threading.Lock] = {}

    def insert(self, record: OtpRecord) -> int:
        with self._lock:
            row = replace(record, id=next(self._ids))
            self._rows.append(row)
            return row.id

    def latest(self, email: str, purpose: Purpose, now: Optional[datetime] = None) -> Optional[OtpRecord]:
        with self._lock:
            found = None
            # later inserts win ties on created_at
            for row in self._rows:
                if row.email != email or row.purpose != purpose:
                    continue
                if now is None or row.created_at <= now:
                    if found is None or row.created_at >= found.created_at:
                        found = row
            return replace(found) if found else None

    def update(self, record_id: int, expected_attempts: int, attempts: int, consumed: bool) -> bool:
        with self._lock:
            row = self._find(record_id)
            if row is None or row.consumed or row.attempts != expected_attempts:
                return False
            row.attempts = attempts
            row.consumed = consumed
            return True

    def get(self, record_id: int) -> Optional[OtpRecord]:
        with self._lock:
            row = self._find(record_id)
            return replace(row) if row else None

    def count_since(self, email: str, since: datetime) -> int:
        with self._lock:
            return len(self._issued_since(email, since))

    def latest_issued_at(self, email: str) -> Optional[datetime]:
        with self._lock:
            times = [r.created_at for r in self._rows if r.email == email]
            return max(times) if times else None

    def oldest_issued_since(self, email: str, since: datetime) -> Optional[datetime]:
        with self._lock:
            times = self._issued_since(email, since)
            return min(times) if times else None

    @contextmanager
    def reserve(self, email: str, now: Optional[datetime] = None):
        while True:
            with self._lock:
                email_lock = self._email_locks.setdefault(email, threading.Lock())
            email_lock.acquire()
            with self._lock:
                # purge may have dropped this lock while we waited on it
                if self._email_locks.get(email) is email_lock:
                    break
            email_lock.release()
        try:
            yield
        finally:
            email_lock.release()

    def purge_before(self, cutoff: datetime) -> int:
        with self._lock:
            kept = [r for r in self._rows if r.created_at >= cutoff]
            purged = len(self._rows) - len(kept)
            self._rows = kept
            live = {r.email for r in kept}
            for email, email_lock in list(self._email_locks.items()):
                if email not in live and not email_lock.locked():
                    del self._email_locks[email]
            return purged

    def _find(self, record_id: int) -> Optional[OtpRecord]:
        for row in self._rows:
            if row.id == record_id:
                return row
        return None

    def _issued_since(self, email: str, since: datetime) -> List[datetime]:
        return [r.created_at for r in self._rows if r.email == email and r.created_at >= since]

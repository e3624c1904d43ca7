from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, update
from sqlalchemy.exc import IntegrityError

from models import db
from models.otp_code import OtpCode, OtpIssueLock
from security.otp_codes import OtpRecord, Purpose
from services.errors import StoreConflict
from storage.base import CodeStore
from utils.clock import utcnow


def _to_record(row: OtpCode) -> OtpRecord:
    return OtpRecord(
        id=row.id,
        email=row.email,
        purpose=Purpose(row.purpose),
        code_hash=row.code_hash,
        created_at=row.created_at,
        expires_at=row.expires_at,
        attempts=row.attempts,
        consumed=row.consumed,
    )


class SqlCodeStore(CodeStore):
    """
    Store backed by the `otp_codes` table through the Flask-SQLAlchemy
    session. Must be used inside an app context.
    """

    def insert(self, record: OtpRecord) -> int:
        row = OtpCode(
            email=record.email,
            purpose=record.purpose.value,
            code_hash=record.code_hash,
            created_at=record.created_at,
            expires_at=record.expires_at,
            attempts=record.attempts,
            consumed=record.consumed,
        )
        db.session.add(row)
        db.session.commit()
        return row.id

    def latest(self, email: str, purpose: Purpose, now: Optional[datetime] = None) -> Optional[OtpRecord]:
        query = OtpCode.query.filter_by(email=email, purpose=purpose.value)
        if now is not None:
            query = query.filter(OtpCode.created_at <= now)
        row = query.order_by(OtpCode.created_at.desc(), OtpCode.id.desc()).first()
        return _to_record(row) if row else None

    def update(self, record_id: int, expected_attempts: int, attempts: int, consumed: bool) -> bool:
        result = db.session.execute(
            update(OtpCode)
            .where(
                OtpCode.id == record_id,
                OtpCode.attempts == expected_attempts,
                OtpCode.consumed.is_(False),
            )
            .values(attempts=attempts, consumed=consumed)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return result.rowcount == 1

    def get(self, record_id: int) -> Optional[OtpRecord]:
        row = db.session.get(OtpCode, record_id)
        if row is None:
            return None
        db.session.refresh(row)
        return _to_record(row)

    def count_since(self, email: str, since: datetime) -> int:
        return OtpCode.query.filter(OtpCode.email == email, OtpCode.created_at >= since).count()

    def latest_issued_at(self, email: str) -> Optional[datetime]:
        return db.session.query(func.max(OtpCode.created_at)).filter(OtpCode.email == email).scalar()

    def oldest_issued_since(self, email: str, since: datetime) -> Optional[datetime]:
        return (
            db.session.query(func.min(OtpCode.created_at))
            .filter(OtpCode.email == email, OtpCode.created_at >= since)
            .scalar()
        )

    @contextmanager
    def reserve(self, email: str, now: Optional[datetime] = None):
        """
        Holds a write lock on the email's `otp_issue_locks` row for the
        duration of the block. The lock is released by the commit in
        `insert`, or by the commit/rollback here when nothing is inserted.
        """
        try:
            self._lock_email(email, now or utcnow())
            yield
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def purge_before(self, cutoff: datetime) -> int:
        result = db.session.execute(
            delete(OtpCode)
            .where(OtpCode.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        db.session.execute(
            delete(OtpIssueLock)
            .where(OtpIssueLock.locked_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return result.rowcount

    def _lock_email(self, email: str, now: datetime) -> None:
        # Two tries: a concurrent first request for the same email may create
        # the lock row between our UPDATE and INSERT.
        for _ in range(2):
            result = db.session.execute(
                update(OtpIssueLock)
                .where(OtpIssueLock.email == email)
                .values(locked_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                return
            db.session.add(OtpIssueLock(email=email, locked_at=now))
            try:
                db.session.flush()
                return
            except IntegrityError:
                db.session.rollback()
        raise StoreConflict(f"could not lock issuance for {email}")

from datetime import timedelta

import pytest

from models import db
from models.otp_code import OtpCode, OtpIssueLock
from security.otp_codes import OtpRecord, Purpose, hash_code
from storage import SqlCodeStore
from tests.conftest import T0

EMAIL = "user@example.com"
KEY = "test-key"


@pytest.fixture
def sql_store(app):
    return SqlCodeStore()


def make_record(at=T0, purpose=Purpose.SIGNUP, code="123456", email=EMAIL):
    return OtpRecord(
        email=email,
        purpose=purpose,
        code_hash=hash_code(code, KEY),
        created_at=at,
        expires_at=at + timedelta(minutes=10),
    )


def test_insert_and_latest(sql_store):
    first = sql_store.insert(make_record(code="111111"))
    second = sql_store.insert(make_record(at=T0 + timedelta(seconds=5), code="222222"))
    assert first != second

    latest = sql_store.latest(EMAIL, Purpose.SIGNUP)
    assert latest.id == second
    assert latest.code_hash == hash_code("222222", KEY)
    assert latest.purpose is Purpose.SIGNUP
    assert latest.attempts == 0
    assert latest.consumed is False


def test_latest_breaks_ties_by_insert_order(sql_store):
    sql_store.insert(make_record(code="111111"))
    second = sql_store.insert(make_record(code="222222"))
    assert sql_store.latest(EMAIL, Purpose.SIGNUP).id == second


def test_latest_is_scoped_by_purpose(sql_store):
    sql_store.insert(make_record(purpose=Purpose.PASSWORD_RESET))
    assert sql_store.latest(EMAIL, Purpose.SIGNUP) is None


def test_latest_ignores_records_created_after_now(sql_store):
    first = sql_store.insert(make_record(at=T0))
    later = sql_store.insert(make_record(at=T0 + timedelta(minutes=5)))

    assert sql_store.latest(EMAIL, Purpose.SIGNUP, T0 + timedelta(minutes=1)).id == first
    assert sql_store.latest(EMAIL, Purpose.SIGNUP, T0 + timedelta(minutes=5)).id == later
    assert sql_store.latest(EMAIL, Purpose.SIGNUP, T0 - timedelta(seconds=1)) is None


def test_update_is_compare_and_set(sql_store):
    record_id = sql_store.insert(make_record())

    assert sql_store.update(record_id, 0, 1, False)
    # stale expectation loses
    assert not sql_store.update(record_id, 0, 1, True)
    assert sql_store.update(record_id, 1, 2, True)
    # consumed rows never change again
    assert not sql_store.update(record_id, 2, 3, False)

    record = sql_store.get(record_id)
    assert record.attempts == 2
    assert record.consumed


def test_counts_span_purposes(sql_store):
    sql_store.insert(make_record(at=T0))
    sql_store.insert(make_record(at=T0 + timedelta(minutes=1), purpose=Purpose.PASSWORD_RESET))
    sql_store.insert(make_record(at=T0 + timedelta(minutes=2), email="other@example.com"))

    assert sql_store.count_since(EMAIL, T0) == 2
    assert sql_store.count_since(EMAIL, T0 + timedelta(seconds=1)) == 1
    assert sql_store.latest_issued_at(EMAIL) == T0 + timedelta(minutes=1)
    assert sql_store.oldest_issued_since(EMAIL, T0) == T0
    assert sql_store.latest_issued_at("nobody@example.com") is None


def test_reserve_creates_lock_row_once(sql_store):
    with sql_store.reserve(EMAIL):
        sql_store.insert(make_record())
    with sql_store.reserve(EMAIL):
        pass

    assert OtpIssueLock.query.filter_by(email=EMAIL).count() == 1
    assert sql_store.count_since(EMAIL, T0) == 1


def test_reserve_rolls_back_on_error(sql_store):
    with pytest.raises(RuntimeError):
        with sql_store.reserve(EMAIL):
            raise RuntimeError("boom")
    assert db.session.get(OtpIssueLock, EMAIL) is None


def test_purge_before(sql_store):
    sql_store.insert(make_record(at=T0))
    sql_store.insert(make_record(at=T0 + timedelta(hours=30), code="999999"))

    assert sql_store.purge_before(T0 + timedelta(hours=6)) == 1
    assert sql_store.latest(EMAIL, Purpose.SIGNUP).code_hash == hash_code("999999", KEY)


def test_stored_row_holds_only_the_digest(sql_store):
    record_id = sql_store.insert(make_record(code="482913"))
    row = db.session.get(OtpCode, record_id)
    assert row.code_hash == hash_code("482913", KEY)
    assert "482913" not in row.code_hash


def test_lock_row_is_stamped_with_the_callers_clock(sql_store):
    with sql_store.reserve(EMAIL, T0):
        pass
    assert db.session.get(OtpIssueLock, EMAIL).locked_at == T0


def test_purge_drops_lock_rows_on_the_same_clock(sql_store):
    with sql_store.reserve(EMAIL, T0):
        sql_store.insert(make_record(at=T0))
    with sql_store.reserve("other@example.com", T0 + timedelta(hours=2)):
        pass

    sql_store.purge_before(T0 + timedelta(hours=1))

    assert db.session.get(OtpIssueLock, EMAIL) is None
    assert db.session.get(OtpIssueLock, "other@example.com") is not None

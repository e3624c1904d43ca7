"""
Simultaneous requests for one email: exactly one code may come out, whichever
store backs the service.
"""
import threading

import pytest

from app import create_app
from models import db
from services.otp_service import OtpService
from services.registry import init_otp_service
from storage import MemoryCodeStore
from tests.conftest import T0, AppTestConfig

EMAIL = "user@example.com"


def run_together(workers, target):
    barrier = threading.Barrier(workers)
    results, errors = [], []
    lock = threading.Lock()

    def run():
        barrier.wait()
        try:
            outcome = target()
        except Exception as exc:
            with lock:
                errors.append(exc)
            return
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=run) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results, errors


def test_concurrent_requests_issue_one_code_in_memory(notifier, clock):
    store = MemoryCodeStore()
    service = OtpService(store, notifier, clock=clock)
    workers = 12

    results, errors = run_together(workers, lambda: service.request_code(EMAIL, "signup"))

    assert errors == []
    assert sum(1 for r in results if r.issued) == 1
    assert all(r.reason == "cooldown" for r in results if not r.issued)
    assert store.count_since(EMAIL, T0) == 1
    assert len(notifier.sent) == 1


@pytest.fixture
def file_app(tmp_path, notifier, clock):
    uri = f"sqlite:///{tmp_path / 'otp.db'}"

    class FileConfig(AppTestConfig):
        SQLALCHEMY_DATABASE_URI = uri
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30}}

    app = create_app(FileConfig)
    init_otp_service(app, notifier=notifier, clock=clock)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()


def test_concurrent_requests_issue_one_code_in_sqlite(file_app, notifier):
    service = file_app.extensions["otp_service"]
    workers = 8

    def request():
        with file_app.app_context():
            return service.request_code(EMAIL, "password_reset")

    results, errors = run_together(workers, request)

    assert errors == []
    assert sum(1 for r in results if r.issued) == 1
    assert len(notifier.sent) == 1
    with file_app.app_context():
        assert service.store.count_since(EMAIL, T0) == 1

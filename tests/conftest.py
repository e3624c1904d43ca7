"""
Shared fixtures: a frozen clock, a notifier that records instead of mailing,
an in-memory service for the core, and a Flask app on in-memory SQLite for
the SQL store and the HTTP layer.
"""
from datetime import datetime

import pytest

from app import create_app
from config import Config
from models import db
from services.otp_service import OtpService
from services.registry import init_otp_service
from storage import MemoryCodeStore
from utils.clock import ManualClock
from utils.notifier import Notifier

T0 = datetime(2026, 1, 1, 12, 0, 0)


class AppTestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    OTP_STORE = "sql"
    OTP_NOTIFIER = "console"
    LOG_LEVEL = "WARNING"


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent = []
        self.fail_with = None

    def send(self, email, purpose, code):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((email, purpose, code))

    @property
    def last_code(self):
        return self.sent[-1][2]


@pytest.fixture
def clock():
    return ManualClock(T0)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store():
    return MemoryCodeStore()


@pytest.fixture
def service(store, notifier, clock):
    return OtpService(store, notifier, clock=clock)


@pytest.fixture
def app(notifier, clock):
    app = create_app(AppTestConfig)
    init_otp_service(app, notifier=notifier, clock=clock)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()

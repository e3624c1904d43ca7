from flask import current_app

from security.otp_verifier import Verifier
from security.rate_limit import IssuanceLimiter
from services.otp_service import OtpService
from storage import MemoryCodeStore, SqlCodeStore
from utils.notifier import ConsoleNotifier, EmailNotifier

EXTENSION_KEY = "otp_service"


def build_store(config):
    kind = config.get("OTP_STORE", "sql")
    if kind == "memory":
        return MemoryCodeStore()
    if kind == "sql":
        return SqlCodeStore()
    raise ValueError(f"Unknown OTP_STORE: {kind}")


def build_notifier(config):
    ttl_minutes = max(config.get("OTP_TTL_SECONDS", 600) // 60, 1)
    kind = config.get("OTP_NOTIFIER", "smtp")
    if kind == "console":
        return ConsoleNotifier(ttl_minutes)
    if kind == "smtp":
        return EmailNotifier(ttl_minutes)
    raise ValueError(f"Unknown OTP_NOTIFIER: {kind}")


def init_otp_service(app, store=None, notifier=None, clock=None) -> OtpService:
    """Builds the service from app config and registers it on the app."""
    config = app.config
    store = store or build_store(config)

    service = OtpService(
        store,
        notifier or build_notifier(config),
        clock=clock,
        limiter=IssuanceLimiter(
            store,
            cooldown_seconds=config.get("OTP_COOLDOWN_SECONDS", 60),
            hourly_limit=config.get("OTP_HOURLY_LIMIT", 3),
            daily_limit=config.get("OTP_DAILY_LIMIT", 10),
        ),
        verifier=Verifier(
            store,
            max_attempts=config.get("OTP_MAX_ATTEMPTS", 5),
            secret_key=config.get("OTP_HASH_KEY") or config.get("SECRET_KEY"),
        ),
        ttl_seconds=config.get("OTP_TTL_SECONDS", 600),
        code_length=config.get("OTP_LENGTH", 6),
    )
    app.extensions[EXTENSION_KEY] = service
    return service


def get_otp_service() -> OtpService:
    return current_app.extensions[EXTENSION_KEY]

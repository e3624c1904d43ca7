import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from security.otp_codes import (
    DEFAULT_CODE_LENGTH,
    DEFAULT_TTL_SECONDS,
    OtpRecord,
    Purpose,
    generate_code,
    hash_code,
)
from security.otp_verifier import Verifier, VerifyOutcome
from security.rate_limit import IssuanceLimiter
from services.errors import DeliveryError, InvalidEmail, MissingCode
from utils.clock import SystemClock
from utils.validators import is_valid_email, normalize_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssueResult:
    issued: bool
    reason: Optional[str] = None
    retry_after: int = 0
    record_id: Optional[int] = None
    expires_at: Optional[datetime] = None


class OtpService:
    """
    Entry point for issuing and checking one-time codes.

    request_code: validate -> rate limit -> generate -> persist -> notify.
    verify_code:  validate -> verifier (which persists attempts/consumption).
    Rate denials and verification failures are returned, not raised.
    """

    def __init__(
        self,
        store,
        notifier,
        clock=None,
        limiter: IssuanceLimiter = None,
        verifier: Verifier = None,
        secret_key=None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        code_length: int = DEFAULT_CODE_LENGTH,
    ):
        self.store = store
        self.notifier = notifier
        self.clock = clock or SystemClock()
        self.limiter = limiter or IssuanceLimiter(store)
        self.verifier = verifier or Verifier(store, secret_key=secret_key)
        self.ttl_seconds = ttl_seconds
        self.code_length = code_length

    def request_code(self, email: str, purpose) -> IssueResult:
        email = self._clean_email(email)
        purpose = Purpose.parse(purpose)
        now = self.clock.now()

        with self.store.reserve(email, now):
            decision = self.limiter.check(email, now)
            if not decision.allowed:
                return IssueResult(issued=False, reason=decision.reason, retry_after=decision.retry_after)

            code, expires_at = generate_code(now, self.ttl_seconds, self.code_length)
            record_id = self.store.insert(OtpRecord(
                email=email,
                purpose=purpose,
                code_hash=hash_code(code, self.verifier.secret_key),
                created_at=now,
                expires_at=expires_at,
            ))

        logger.info("otp issued email=%s purpose=%s record=%s", email, purpose.value, record_id)

        # The record stays even if delivery fails: the issuance still counts
        # against the ceilings.
        try:
            self.notifier.send(email, purpose, code)
        except DeliveryError:
            logger.warning("otp delivery failed email=%s record=%s", email, record_id)
            raise
        except Exception as exc:
            logger.exception("otp notifier error email=%s record=%s", email, record_id)
            raise DeliveryError(str(exc)) from exc

        return IssueResult(issued=True, record_id=record_id, expires_at=expires_at)

    def verify_code(self, email: str, purpose, code: str) -> VerifyOutcome:
        email = self._clean_email(email)
        if not isinstance(code, str) or not code.strip():
            raise MissingCode()
        purpose = Purpose.parse(purpose)
        return self.verifier.verify(email, purpose, code, self.clock.now())

    def purge_expired(self, retention_hours: int = 24) -> int:
        cutoff = self.clock.now() - timedelta(hours=retention_hours)
        purged = self.store.purge_before(cutoff)
        logger.info("purged %s otp records created before %s", purged, cutoff.isoformat())
        return purged

    @staticmethod
    def _clean_email(email) -> str:
        email = normalize_email(email if isinstance(email, str) else "")
        if not is_valid_email(email):
            raise InvalidEmail()
        return email

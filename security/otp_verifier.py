import enum
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from security.otp_codes import Purpose, hash_code
from services.errors import StoreConflict
from utils.validators import normalize_email

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


class VerifyResult(str, enum.Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    ALREADY_USED = "already_used"
    EXPIRED = "expired"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class VerifyOutcome:
    result: VerifyResult
    attempts: int = 0
    record_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.result is VerifyResult.SUCCESS


def codes_match(expected_hash: str, submitted: str, key: Union[str, bytes]) -> bool:
    return hmac.compare_digest(expected_hash, hash_code(submitted, key))


class Verifier:
    """
    Checks a submitted code against the newest record for (email, purpose).

    Only a real comparison costs an attempt. Not found, already used,
    expired and exhausted records are reported without touching the row.
    """

    def __init__(self, store, max_attempts: int = DEFAULT_MAX_ATTEMPTS, secret_key: Union[str, bytes] = None):
        self.store = store
        self.max_attempts = max_attempts
        # without a configured key, codes only verify within this process
        self.secret_key = secret_key or secrets.token_bytes(32)

    def verify(self, email: str, purpose: Purpose, submitted_code: str, now: datetime) -> VerifyOutcome:
        email = normalize_email(email)
        submitted_code = (submitted_code or "").strip()

        # Each lost compare-and-set means another caller wrote the record, and
        # a record takes at most max_attempts writes before it is terminal.
        for _ in range(self.max_attempts + 1):
            record = self.store.latest(email, purpose, now)
            if record is None:
                return self._fail(email, purpose, VerifyOutcome(VerifyResult.NOT_FOUND))

            if record.consumed:
                return self._fail(email, purpose, VerifyOutcome(VerifyResult.ALREADY_USED, record.attempts, record.id))
            if record.is_expired(now):
                return self._fail(email, purpose, VerifyOutcome(VerifyResult.EXPIRED, record.attempts, record.id))
            if record.attempts >= self.max_attempts:
                return self._fail(email, purpose, VerifyOutcome(VerifyResult.TOO_MANY_ATTEMPTS, record.attempts, record.id))

            matched = codes_match(record.code_hash, submitted_code, self.secret_key)
            attempts = record.attempts + 1
            if not self.store.update(record.id, record.attempts, attempts, matched):
                # someone else wrote this record first; re-evaluate from scratch
                logger.debug("otp verify conflict record=%s, retrying", record.id)
                continue

            if matched:
                logger.info("otp verified email=%s purpose=%s record=%s", email, purpose.value, record.id)
                return VerifyOutcome(VerifyResult.SUCCESS, attempts, record.id)
            return self._fail(email, purpose, VerifyOutcome(VerifyResult.MISMATCH, attempts, record.id))

        raise StoreConflict(f"verification of {email}/{purpose.value} kept conflicting")

    def _fail(self, email: str, purpose: Purpose, outcome: VerifyOutcome) -> VerifyOutcome:
        logger.info(
            "otp verify failed email=%s purpose=%s reason=%s attempts=%s",
            email, purpose.value, outcome.result.value, outcome.attempts,
        )
        return outcome

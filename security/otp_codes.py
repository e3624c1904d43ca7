import enum
import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple, Union

from services.errors import InvalidPurpose

DEFAULT_CODE_LENGTH = 6
DEFAULT_TTL_SECONDS = 10 * 60


class Purpose(str, enum.Enum):
    SIGNUP = "signup"
    PASSWORD_RESET = "password_reset"

    @classmethod
    def parse(cls, value) -> "Purpose":
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip())
        except (ValueError, AttributeError):
            raise InvalidPurpose() from None


@dataclass
class OtpRecord:
    email: str
    purpose: Purpose
    code_hash: str
    created_at: datetime
    expires_at: datetime
    attempts: int = 0
    consumed: bool = False
    id: Optional[int] = None

    def is_expired(self, now: datetime) -> bool:
        # valid strictly before expires_at
        return now >= self.expires_at


def generate_code(
    now: datetime,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    length: int = DEFAULT_CODE_LENGTH,
) -> Tuple[str, datetime]:
    """
    Returns (code, expires_at). The code is drawn from the CSPRNG, uniform
    over the `length`-digit numbers without a leading zero.
    """
    low = 10 ** (length - 1)
    code = str(low + secrets.randbelow(10 ** length - low))
    return code, now + timedelta(seconds=ttl_seconds)


def hash_code(code: str, key: Union[str, bytes]) -> str:
    """Keyed digest of a code; only this is ever stored."""
    if isinstance(key, str):
        key = key.encode("utf-8")
    return hmac.new(key, code.encode("utf-8"), hashlib.sha256).hexdigest()

from datetime import datetime
from typing import Optional

from security.otp_codes import OtpRecord, Purpose


class CodeStore:
    """
    Durable storage of issued codes. No business logic lives here; the
    limiter and verifier decide, the store only reads and writes rows.

    Two guarantees are required of every implementation:
    - `reserve(email, now)` serialises issuance for one email, so a limiter check
      and the following `insert` cannot interleave with another request's.
    - `update` is a compare-and-set on (attempts, consumed), so concurrent
      verifications of one record never both win.
    """

    def insert(self, record: OtpRecord) -> int:
        raise NotImplementedError

    def latest(self, email: str, purpose: Purpose, now: Optional[datetime] = None) -> Optional[OtpRecord]:
        """
        Newest record for (email, purpose); ties go to the later insert.
        With `now`, records created after it are not considered.
        """
        raise NotImplementedError

    def update(self, record_id: int, expected_attempts: int, attempts: int, consumed: bool) -> bool:
        """
        Writes the new counters only if the stored record still has
        `expected_attempts` and is not consumed. Returns False on conflict.
        """
        raise NotImplementedError

    def get(self, record_id: int) -> Optional[OtpRecord]:
        raise NotImplementedError

    def count_since(self, email: str, since: datetime) -> int:
        raise NotImplementedError

    def latest_issued_at(self, email: str) -> Optional[datetime]:
        raise NotImplementedError

    def oldest_issued_since(self, email: str, since: datetime) -> Optional[datetime]:
        raise NotImplementedError

    def reserve(self, email: str, now: Optional[datetime] = None):
        """
        Context manager holding the issuance lock for `email`. `now` stamps
        the lock so that `purge_before` ages it on the same clock as the codes.
        """
        raise NotImplementedError

    def purge_before(self, cutoff: datetime) -> int:
        raise NotImplementedError

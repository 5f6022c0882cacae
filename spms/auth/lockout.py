# auth/lockout.py
"""
Failed-login bookkeeping.

Records live in the session under ``sha256(username + client_address)`` as
``{"count": int, "last_attempt": float}``. Concurrent requests in the same
session may lose an increment; the lockout is best effort, not a hard
security boundary.
"""
import math
import time
from typing import Callable, Optional, Dict, Any

from ..core.security import attempt_key
from ..sessions import Session


class LockoutTracker:
    """Counts failed logins per username/client pair inside a session."""

    def __init__(
        self,
        session: Session,
        client_address: str,
        max_attempts: int = 5,
        lockout_seconds: int = 900,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.session = session
        self.client_address = client_address
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self.clock = clock

    def _key(self, username: str) -> str:
        return attempt_key(username, self.client_address)

    def _record(self, username: str) -> Optional[Dict[str, Any]]:
        return self.session.login_attempts.get(self._key(username))

    def is_locked_out(self, username: str) -> bool:
        """True while the record is at the threshold and inside the window.

        A record whose window has passed is cleared here, before the caller
        re-evaluates the login.
        """
        record = self._record(username)
        if record is None or record["count"] < self.max_attempts:
            return False

        if self.clock() - record["last_attempt"] < self.lockout_seconds:
            return True

        self.clear(username)
        return False

    def record_failure(self, username: str) -> int:
        key = self._key(username)
        record = self.session.login_attempts.setdefault(key, {"count": 0, "last_attempt": 0})
        record["count"] += 1
        record["last_attempt"] = self.clock()
        return record["count"]

    def clear(self, username: str) -> None:
        self.session.login_attempts.pop(self._key(username), None)

    def failed_attempts(self, username: str) -> int:
        record = self._record(username)
        return record["count"] if record else 0

    def remaining_attempts(self, username: str) -> int:
        return max(0, self.max_attempts - self.failed_attempts(username))

    def remaining_lockout_seconds(self, username: str) -> int:
        record = self._record(username)
        if record is None or record["count"] < self.max_attempts:
            return 0
        remaining = self.lockout_seconds - (self.clock() - record["last_attempt"])
        return max(0, math.ceil(remaining))

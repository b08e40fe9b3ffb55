"""In-memory login throttle: temporary lockout after repeated failed logins."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass
class FailureRecord:
    failures: int = 0
    locked_until: float = 0.0


class AccountGuard:
    """Count failed logins per (username, client address) and lock after ``max_attempts``."""

    def __init__(self, max_attempts: int = 5, lockout_seconds: int = 15 * 60, clock=time.monotonic):
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._records: Dict[Tuple[str, str], FailureRecord] = {}

    @staticmethod
    def _key(username: str, ip_address: str) -> Tuple[str, str]:
        return (username.lower().strip(), ip_address or 'unknown')

    def retry_after(self, username: str, ip_address: str) -> float:
        """Seconds until the pair may try again; 0 when not locked."""
        now = self._clock()
        with self._lock:
            record = self._records.get(self._key(username, ip_address))
            if record is None:
                return 0.0
            if record.locked_until > now:
                return record.locked_until - now
            if record.locked_until:
                # Lock expired: start counting from scratch
                self._records.pop(self._key(username, ip_address), None)
            return 0.0

    def register_failure(self, username: str, ip_address: str) -> Tuple[int, float]:
        """Record a failure; returns (remaining attempts, lock duration or 0)."""
        now = self._clock()
        with self._lock:
            record = self._records.setdefault(self._key(username, ip_address), FailureRecord())
            if record.locked_until > now:
                return 0, record.locked_until - now

            record.failures += 1
            if record.failures >= self.max_attempts:
                record.locked_until = now + self.lockout_seconds
                return 0, float(self.lockout_seconds)
            return self.max_attempts - record.failures, 0.0

    def reset(self, username: str, ip_address: str) -> None:
        with self._lock:
            self._records.pop(self._key(username, ip_address), None)

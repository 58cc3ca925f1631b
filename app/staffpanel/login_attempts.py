"""
Per-identifier login throttling with exponential back-off and IP blocking.

State lives in process memory (one limiter per app in ``app.extensions``).
Multi-worker deployments each keep their own counters.
"""
from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

IP_COUNTER_TTL = 60 * 60
IP_BLOCK_THRESHOLD = 10
IP_BLOCK_SECONDS = 24 * 60 * 60
MAX_DECAY_MINUTES = 60
PRUNE_THRESHOLD = 1000
SWEEP_INTERVAL = 5 * 60


@dataclass
class _Counter:
    hits: int
    expires_at: float


class LoginAttemptService:
    def __init__(
        self,
        max_attempts: int = 5,
        clock: Callable[[], float] = time.time,
        prune_threshold: int = PRUNE_THRESHOLD,
    ):
        self.max_attempts = max_attempts
        self.prune_threshold = prune_threshold
        self._prune_at = prune_threshold
        self._clock = clock
        self._next_sweep = clock() + SWEEP_INTERVAL
        self._lock = threading.Lock()
        self._counters: dict[str, _Counter] = {}
        self._blocked_until: dict[str, float] = {}

    @staticmethod
    def throttle_key(identifier: str, ip: str | None) -> str:
        return f"login:{(identifier or '').strip().lower()}|{ip or 'unknown'}"

    def _live(self, key: str) -> _Counter | None:
        counter = self._counters.get(key)
        if counter is None:
            return None
        if counter.expires_at <= self._clock():
            del self._counters[key]
            return None
        return counter

    def _prune(self) -> None:
        now = self._clock()
        for key in [k for k, c in self._counters.items() if c.expires_at <= now]:
            del self._counters[key]
        for ip in [i for i, until in self._blocked_until.items() if until <= now]:
            del self._blocked_until[ip]
        self._prune_at = max(self.prune_threshold, 2 * (len(self._counters) + len(self._blocked_until)))
        self._next_sweep = now + SWEEP_INTERVAL

    def _hit(self, key: str, decay_seconds: int) -> int:
        counter = self._live(key)
        if counter is None:
            counter = _Counter(hits=0, expires_at=self._clock() + decay_seconds)
            self._counters[key] = counter
        counter.hits += 1
        return counter.hits

    def get_attempts(self, identifier: str, ip: str | None) -> int:
        with self._lock:
            counter = self._live(self.throttle_key(identifier, ip))
            return counter.hits if counter else 0

    def has_too_many_attempts(self, identifier: str, ip: str | None) -> bool:
        return self.get_attempts(identifier, ip) >= self.max_attempts

    def decay_minutes(self, attempts: int) -> int:
        return min(int(round(1 * math.pow(2, attempts))), MAX_DECAY_MINUTES)

    def increment(self, identifier: str, ip: str | None) -> int:
        key = self.throttle_key(identifier, ip)
        with self._lock:
            size = len(self._counters) + len(self._blocked_until)
            if size >= self._prune_at or self._clock() >= self._next_sweep:
                self._prune()
            counter = self._live(key)
            current = counter.hits if counter else 0
            attempts = self._hit(key, self.decay_minutes(current) * 60)
            if ip and attempts % 3 == 0:
                self._note_suspicious_ip(ip)
        return attempts

    def _note_suspicious_ip(self, ip: str) -> None:
        hits = self._hit(f"ip_attempts:{ip}", IP_COUNTER_TTL)
        if hits >= IP_BLOCK_THRESHOLD:
            self._blocked_until[ip] = self._clock() + IP_BLOCK_SECONDS
            logger.warning("IP blocked after repeated failed logins ip=%s counter=%s", ip, hits)

    def is_ip_blocked(self, ip: str | None) -> bool:
        if not ip:
            return False
        with self._lock:
            until = self._blocked_until.get(ip)
            if until is None:
                return False
            if until <= self._clock():
                del self._blocked_until[ip]
                return False
            return True

    def available_in(self, identifier: str, ip: str | None) -> int:
        with self._lock:
            counter = self._live(self.throttle_key(identifier, ip))
            if counter is None:
                return 0
            return max(0, int(math.ceil(counter.expires_at - self._clock())))

    def remaining_minutes(self, identifier: str, ip: str | None) -> int:
        return int(math.ceil(self.available_in(identifier, ip) / 60))

    def clear(self, identifier: str, ip: str | None) -> None:
        with self._lock:
            self._counters.pop(self.throttle_key(identifier, ip), None)

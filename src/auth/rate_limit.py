"""
Attempt throttling backed by the key-value medium.

Attempts are a JSON list of millisecond timestamps under
``rate_limit_<key>``. This is client-side throttling only: anyone who can
clear the medium resets it.
"""

import json
import logging
import time
from typing import Callable, List

from ..storage.codec import rate_limit_key
from ..storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

LOGIN_MAX_ATTEMPTS = 5
LOGIN_WINDOW_SECONDS = 15 * 60
REGISTER_MAX_ATTEMPTS = 3
REGISTER_WINDOW_SECONDS = 60 * 60


class RateLimiter:
    """Sliding-window attempt counter."""

    def __init__(self, kv: KeyValueStore, clock: Callable[[], float] = time.time):
        self.kv = kv
        self._clock = clock

    def _attempts(self, key: str) -> List[int]:
        raw = self.kv.get(rate_limit_key(key))
        if not raw:
            return []
        try:
            attempts = json.loads(raw)
            if not isinstance(attempts, list):
                raise ValueError(f"expected a list, got {type(attempts).__name__}")
            return [int(a) for a in attempts]
        except (TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable rate limit state for '{key}': {e}")
            return []

    def check(
        self,
        key: str,
        max_attempts: int = LOGIN_MAX_ATTEMPTS,
        window_seconds: int = LOGIN_WINDOW_SECONDS,
    ) -> bool:
        """
        Record an attempt for ``key``.

        Returns:
            True if the attempt is allowed, False if the window is already full
            (a refused attempt is not recorded)
        """
        now_ms = int(self._clock() * 1000)
        window_ms = window_seconds * 1000
        recent = [a for a in self._attempts(key) if now_ms - a < window_ms]

        if len(recent) >= max_attempts:
            logger.warning(f"Rate limit reached for '{key}' ({len(recent)}/{max_attempts})")
            return False

        recent.append(now_ms)
        self.kv.set(rate_limit_key(key), json.dumps(recent))
        return True

    def clear(self, key: str) -> None:
        """Forget attempts for ``key`` (after a successful operation)."""
        self.kv.remove(rate_limit_key(key))

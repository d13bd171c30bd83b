"""Chronologically ordered push ids for append-only keyed collections.

Ids are 20 characters: 8 characters of millisecond timestamp followed by
12 random characters. When two ids are generated within the same millisecond
the random part is incremented instead of redrawn, so lexicographic order of
ids generated by one process is always generation order.
"""

import secrets
import threading
import time


PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"
TIMESTAMP_LENGTH = 8
RANDOM_LENGTH = 12


class PushIdGenerator:
    """Generates push ids; one instance per store."""

    def __init__(self) -> None:
        self._last_push_time = 0
        self._last_rand_chars: list[int] = [0] * RANDOM_LENGTH
        self._lock = threading.Lock()

    def generate(self, now_ms: int | None = None) -> str:
        """Return a new push id for the given (or current) millisecond timestamp."""
        now = int(time.time() * 1000) if now_ms is None else now_ms

        with self._lock:
            duplicate_time = now <= self._last_push_time
            if duplicate_time:
                # Keep ids increasing even if the clock stalls or goes backwards
                now = self._last_push_time
                self._increment_rand_chars()
            else:
                self._last_rand_chars = [secrets.randbelow(len(PUSH_CHARS)) for _ in range(RANDOM_LENGTH)]
            self._last_push_time = now

            timestamp_chars = []
            remaining = now
            for _ in range(TIMESTAMP_LENGTH):
                timestamp_chars.append(PUSH_CHARS[remaining % len(PUSH_CHARS)])
                remaining //= len(PUSH_CHARS)
            if remaining:
                raise ValueError(f"Timestamp {now} does not fit in a push id")

            return "".join(reversed(timestamp_chars)) + "".join(PUSH_CHARS[i] for i in self._last_rand_chars)

    def _increment_rand_chars(self) -> None:
        for i in range(RANDOM_LENGTH - 1, -1, -1):
            if self._last_rand_chars[i] != len(PUSH_CHARS) - 1:
                self._last_rand_chars[i] += 1
                return
            self._last_rand_chars[i] = 0

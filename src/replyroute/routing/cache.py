"""Fingerprint rate-limit cache for warning routing."""

from __future__ import annotations

import time
from collections.abc import Callable

from replyroute.routing.policy import DEFAULT_WARNING_DEDUPE_WINDOW_MS

WARNING_FINGERPRINT_CACHE_LIMIT = 1024
STALE_WINDOWS = 6


def _now_ms() -> int:
    return int(time.time() * 1000)


class WarningFingerprintCache:
    """Maps warning fingerprints to the epoch milliseconds they were last emitted.

    Bounded by `capacity`: once over it, the oldest timestamps are evicted
    first, then entries older than six default dedupe windows are swept.
    """

    def __init__(self, capacity: int = WARNING_FINGERPRINT_CACHE_LIMIT, clock: Callable[[], int] = _now_ms) -> None:
        self.capacity = capacity
        self._clock = clock
        self._seen_at: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._seen_at)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._seen_at

    def get(self, fingerprint: str) -> int | None:
        return self._seen_at.get(fingerprint)

    def set(self, fingerprint: str, seen_at: int) -> None:
        self._seen_at[fingerprint] = seen_at

    def clear(self) -> None:
        self._seen_at.clear()

    def prune(self, now: int | None = None) -> None:
        if len(self._seen_at) <= self.capacity:
            return
        now = self._clock() if now is None else now
        excess = len(self._seen_at) - self.capacity
        oldest = sorted(self._seen_at.items(), key=lambda item: item[1])[:excess]
        for fingerprint, _ in oldest:
            del self._seen_at[fingerprint]
        if len(self._seen_at) <= self.capacity:
            return
        for fingerprint, seen_at in list(self._seen_at.items()):
            if now - seen_at > DEFAULT_WARNING_DEDUPE_WINDOW_MS * STALE_WINDOWS:
                del self._seen_at[fingerprint]
            if len(self._seen_at) <= self.capacity:
                break

    def should_emit(self, fingerprint: str, window_ms: int) -> bool:
        """Record and allow the fingerprint unless it was emitted within `window_ms`."""
        now = self._clock()
        last_seen = self._seen_at.get(fingerprint)
        if last_seen is not None and now - last_seen < window_ms:
            return False
        self.set(fingerprint, now)
        self.prune(now)
        return True


default_fingerprint_cache = WarningFingerprintCache()


def reset_warning_routing() -> None:
    """Clear the process-wide fingerprint cache."""
    default_fingerprint_cache.clear()

"""In-memory rate limiter.

Thread-safe sliding window keyed by (category, client_ip).  Raises
:class:`~loginrelay.core.errors.RateLimited` (429) with a
``Retry-After`` header when a limit is exceeded.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING

from loginrelay.core.errors import RateLimited
from loginrelay.logging import security_events

if TYPE_CHECKING:
    from collections.abc import Callable

    from loginrelay.config.settings import RateLimitSettings

log = logging.getLogger(__name__)

CATEGORIES = ("login", "callback", "status")


class InMemoryRateLimiter:
    """Sliding-window counter rate limiter."""

    def __init__(
        self,
        settings: RateLimitSettings,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._windows: dict[str, dict[str, list[float]]] = {}
        self._lock = threading.Lock()

    def check(self, key: str, category: str) -> None:
        if not self._settings.enabled:
            return

        rule = getattr(self._settings, category, None)
        if rule is None:
            return

        now = self._clock()
        window_start = now - rule.window_seconds

        with self._lock:
            bucket = self._windows.setdefault(category, {})
            timestamps = bucket.get(key)

            if timestamps is None:
                bucket[key] = [now]
                return

            timestamps[:] = [t for t in timestamps if t > window_start]

            if len(timestamps) >= rule.requests:
                oldest = timestamps[0] if timestamps else now
                retry_after = int(oldest + rule.window_seconds - now) + 1
                security_events.rate_limit_exceeded(key, category)
                raise RateLimited(
                    f"Rate limit exceeded for {category}. Try again in {retry_after} seconds.",
                    headers={"Retry-After": str(retry_after)},
                )

            timestamps.append(now)

    def gc(self) -> int:
        """Drop buckets with no timestamps inside their window.  Returns buckets removed."""
        now = self._clock()
        removed = 0
        with self._lock:
            for category, bucket in self._windows.items():
                rule = getattr(self._settings, category, None)
                if rule is None:
                    continue
                window_start = now - rule.window_seconds
                for key in list(bucket):
                    bucket[key] = [t for t in bucket[key] if t > window_start]
                    if not bucket[key]:
                        del bucket[key]
                        removed += 1
        return removed


def create_rate_limiter(settings: RateLimitSettings) -> InMemoryRateLimiter | None:
    """Factory: build the rate limiter, or ``None`` when disabled."""
    if not settings.enabled:
        log.info("Rate limiting disabled")
        return None
    log.info("Using in-memory rate limiter")
    return InMemoryRateLimiter(settings)

"""
Fixed-window rate limiter.

- In-memory and process-local, keyed by client IP.
- Expired windows are swept at most once per window length.
- X-Forwarded-For is only honoured behind a trusted proxy (TRUST_FORWARDED_FOR),
  and then only its last entry, the one that proxy appended.
- Enforced outside development, or in development when GUARDS_ENABLED is set.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple


@dataclass
class RateLimitConfig:
    enabled: bool = False
    window_seconds: int = 60
    max_requests: int = 30
    trust_forwarded_for: bool = False


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int


class FixedWindowLimiter:
    def __init__(self, limit: int, window_seconds: int, time_fn: Callable[[], float] = time.monotonic):
        self.limit = max(1, limit)
        self.window_seconds = max(1, window_seconds)
        self.time_fn = time_fn
        self.windows: Dict[str, Tuple[float, int]] = {}
        self._last_sweep = time_fn()

    def _sweep(self, now: float) -> None:
        expired = [key for key, (start, _) in self.windows.items() if now - start >= self.window_seconds]
        for key in expired:
            del self.windows[key]
        self._last_sweep = now

    def check(self, key: str) -> RateLimitDecision:
        now = self.time_fn()
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)
        window_start, count = self.windows.get(key, (now, 0))
        if now - window_start >= self.window_seconds:
            window_start, count = now, 0
        retry_after = max(1, int(window_start + self.window_seconds - now))
        if count >= self.limit:
            self.windows[key] = (window_start, count)
            return RateLimitDecision(False, self.limit, 0, retry_after)
        count += 1
        self.windows[key] = (window_start, count)
        return RateLimitDecision(True, self.limit, self.limit - count, retry_after)

    def allow(self, key: str) -> bool:
        return self.check(key).allowed

    def reset(self) -> None:
        self.windows.clear()


def build_rate_limit_config(settings_obj) -> RateLimitConfig:
    env = (getattr(settings_obj, "ENV", "development") or "development").lower()
    guards = bool(getattr(settings_obj, "GUARDS_ENABLED", False))
    return RateLimitConfig(
        enabled=env != "development" or guards,
        window_seconds=getattr(settings_obj, "RATE_LIMIT_WINDOW_SECONDS", 60),
        max_requests=getattr(settings_obj, "RATE_LIMIT_MAX_REQUESTS", 30),
        trust_forwarded_for=bool(getattr(settings_obj, "TRUST_FORWARDED_FOR", False)),
    )

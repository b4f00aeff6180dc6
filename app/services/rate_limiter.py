"""
Request Rate Limiter
====================
Counts requests per client IP in a sliding window. Once a client reaches the
limit further requests are refused until the oldest hit in the window ages
out. State is process-local and is not shared between workers.
"""

from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from app.core.config import settings

_SWEEP_EVERY = 1000  # hits between sweeps of idle clients


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int


class RateLimiter:
    def __init__(self, max_requests: int, window_seconds: int) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: dict[str, deque[datetime]] = defaultdict(deque)
        self._calls = 0

    def hit(self, client_ip: str, now: datetime | None = None) -> RateLimitResult:
        """Record a request from `client_ip` unless it is over the limit."""
        now = now or datetime.now(timezone.utc)
        self._calls += 1
        if self._calls % _SWEEP_EVERY == 0:
            self.sweep(now)

        window_start = now - timedelta(seconds=self.window_seconds)
        hits = self._hits[client_ip]

        # Prune hits outside the window
        while hits and hits[0] <= window_start:
            hits.popleft()

        allowed = len(hits) < self.max_requests
        if allowed:
            hits.append(now)

        reset_at = (hits[0] if hits else now) + timedelta(seconds=self.window_seconds)
        return RateLimitResult(
            allowed=allowed,
            limit=self.max_requests,
            remaining=max(self.max_requests - len(hits), 0),
            reset_seconds=max(int((reset_at - now).total_seconds()), 0),
        )

    def sweep(self, now: datetime | None = None) -> None:
        """Forget clients with no hits left in the window."""
        now = now or datetime.now(timezone.utc)
        window_start = now - timedelta(seconds=self.window_seconds)
        for client_ip in list(self._hits):
            hits = self._hits[client_ip]
            while hits and hits[0] <= window_start:
                hits.popleft()
            if not hits:
                del self._hits[client_ip]

    def reset(self) -> None:
        self._hits.clear()


rate_limiter = RateLimiter(settings.RATE_LIMIT_MAX_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)

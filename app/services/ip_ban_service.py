"""
IP Ban Service
==============
Registers and checks temporary IP bans kept in a shared remote document.

Writes are read-modify-write cycles against the document store: fetch the list
and its version token, reconcile the request into it, then write back only if
the token is still current. A cycle that loses the race is restarted from the
fetch, since the reconciled list was computed from stale data. Nothing is
cached between calls; every request reads the store.
"""

import asyncio
import random
from typing import Awaitable, Callable

from app.core.config import DEFAULT_BAN_DURATION_SECONDS, settings
from app.core.exceptions import ConflictExhausted, InvalidRequest, VersionConflict
from app.models.ban import BanOutcome, BanRequest, BanStatus, now_ms
from app.services.document_store import DocumentStore, build_document_store
from app.services.reconciliation import reconcile


class IPBanService:
    def __init__(
        self,
        store: DocumentStore,
        default_duration: int = DEFAULT_BAN_DURATION_SECONDS,
        max_attempts: int = 4,
        backoff_seconds: float = 0.1,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.default_duration = default_duration
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._clock = clock
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Write

    async def submit_ban(
        self,
        identifier: str | None,
        reason: str | None = None,
        ban_duration: int | None = None,
    ) -> BanOutcome:
        """Ban an identifier, or extend and refresh its existing ban.

        Retries the whole fetch/reconcile/write cycle on VersionConflict up to
        max_attempts times, then raises ConflictExhausted. Store failures
        propagate immediately.
        """
        if not identifier or not identifier.strip():
            raise InvalidRequest("IP is required")
        if ban_duration is not None and ban_duration < 0:
            raise InvalidRequest("banDuration cannot be negative")

        request = BanRequest(identifier=identifier, reason=reason, ban_duration_seconds=ban_duration)

        for attempt in range(1, self.max_attempts + 1):
            document = await self.store.fetch()
            now = self._clock()
            entries = reconcile(document.entries, request, now, self.default_duration)
            try:
                await self.store.write(entries, document.version_token)
            except VersionConflict:
                if attempt < self.max_attempts:
                    await self._backoff(attempt)
                continue

            entry = next(e for e in entries if e.identifier == identifier)
            created = not any(
                e.identifier == identifier and e.is_active(now) for e in document.entries
            )
            return BanOutcome(
                identifier=identifier,
                created=created,
                ban_expiry=entry.ban_expiry,
                attempts=attempt,
            )

        raise ConflictExhausted(self.max_attempts)

    async def _backoff(self, attempt: int) -> None:
        if self.backoff_seconds <= 0:
            return
        # Full jitter so racing writers spread out
        await self._sleep(random.uniform(0, self.backoff_seconds * 2 ** (attempt - 1)))

    # ------------------------------------------------------------------
    # Check

    async def check_ban(self, identifier: str | None) -> BanStatus:
        """Report whether the identifier has an active ban.

        Read-only: expired entries are filtered here but stay in the document
        until the next successful write prunes them.
        """
        if not identifier or not identifier.strip():
            raise InvalidRequest("IP to check is required")

        document = await self.store.fetch()
        now = self._clock()
        active = [e for e in document.entries if e.identifier == identifier and e.is_active(now)]
        if not active:
            return BanStatus(identifier=identifier, banned=False)

        entry = max(active, key=lambda e: e.ban_expiry)
        return BanStatus(
            identifier=identifier,
            banned=True,
            reason=entry.reason,
            ban_expiry=entry.ban_expiry,
            time_left_seconds=-(-(entry.ban_expiry - now) // 1000),
        )


ip_ban_service = IPBanService(
    build_document_store(settings),
    default_duration=settings.DEFAULT_BAN_DURATION_SECONDS,
    max_attempts=settings.BAN_WRITE_MAX_ATTEMPTS,
    backoff_seconds=settings.BAN_CONFLICT_BACKOFF_SECONDS,
)


def get_ban_service() -> IPBanService:
    """Dependency: the process-wide ban service."""
    return ip_ban_service

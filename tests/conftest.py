"""
Test fixtures for the ban list API.

Uses an in-memory document store and a controllable clock so tests never
touch GitHub and never depend on wall-clock time.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.models.ban import BanEntry
from app.services.document_store import InMemoryDocumentStore
from app.services.ip_ban_service import IPBanService, get_ban_service
from app.services.rate_limiter import rate_limiter


T0 = 1_700_000_000_000  # ms


class FakeClock:
    """Callable clock returning a settable time in milliseconds."""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


def make_entry(ip: str, expiry: int, reason: str = "spam", banned_at: int | None = None) -> BanEntry:
    """Build a stored ban entry expiring at `expiry` (ms)."""
    banned_at = banned_at if banned_at is not None else expiry - 300_000
    return BanEntry(
        identifier=ip,
        reason=reason,
        banned_at=banned_at,
        ban_duration_seconds=(expiry - banned_at) // 1000,
        ban_expiry=expiry,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """An empty store: the ban list document does not exist yet."""
    return InMemoryDocumentStore()


@pytest.fixture
def ban_service(store: InMemoryDocumentStore, clock: FakeClock) -> IPBanService:
    return IPBanService(store, max_attempts=4, backoff_seconds=0, clock=clock)


@pytest_asyncio.fixture
async def client(ban_service: IPBanService) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with the test ban service injected."""
    from main import app

    app.dependency_overrides[get_ban_service] = lambda: ban_service
    rate_limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    rate_limiter.reset()

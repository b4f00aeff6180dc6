"""
Reconciliation of a ban request against the current ban list.

Both functions are pure: they never touch the store and never read the clock,
`now` (ms) is always passed in by the caller.
"""

from app.core.config import DEFAULT_BAN_DURATION_SECONDS
from app.models.ban import DEFAULT_REASON, BanEntry, BanRequest


def prune(entries: list[BanEntry], now: int) -> list[BanEntry]:
    """Drop expired entries and collapse duplicate identifiers.

    A duplicate can only come from an external edit of the document; the
    entry with the latest expiry wins. Order of first appearance is kept.
    """
    kept: dict[str, BanEntry] = {}
    for entry in entries:
        if not entry.is_active(now):
            continue
        current = kept.get(entry.identifier)
        if current is None or entry.ban_expiry > current.ban_expiry:
            kept[entry.identifier] = entry
    return list(kept.values())


def reconcile(
    entries: list[BanEntry],
    request: BanRequest,
    now: int,
    default_duration: int = DEFAULT_BAN_DURATION_SECONDS,
) -> list[BanEntry]:
    """Return the ban list that results from applying `request` at `now`.

    An active entry for the same identifier is refreshed: its expiry is
    extended (never shortened), its reason replaced when one is given and
    `banned_at` reset to `now`. Otherwise a new entry is appended.
    """
    duration = request.ban_duration_seconds or default_duration
    requested_expiry = now + duration * 1000

    updated: list[BanEntry] = []
    found = False
    for entry in prune(entries, now):
        if entry.identifier == request.identifier:
            found = True
            entry = entry.model_copy(update={
                "ban_expiry": max(entry.ban_expiry, requested_expiry),
                "reason": request.reason or entry.reason,
                "banned_at": now,
            })
        updated.append(entry)

    if not found:
        updated.append(BanEntry(
            identifier=request.identifier,
            reason=request.reason or DEFAULT_REASON,
            banned_at=now,
            ban_duration_seconds=duration,
            ban_expiry=requested_expiry,
        ))

    return updated

"""Tests for ban list reconciliation and pruning."""

from app.models.ban import BanEntry, BanRequest, is_active
from app.services.reconciliation import prune, reconcile
from tests.conftest import T0, make_entry


def _by_ip(entries: list[BanEntry]) -> dict[str, BanEntry]:
    return {e.identifier: e for e in entries}


# --- Active predicate ---


def test_is_active_strictly_before_expiry():
    entry = make_entry("1.2.3.4", expiry=T0)
    assert is_active(entry, T0 - 1)
    assert not is_active(entry, T0)
    assert not is_active(entry, T0 + 1)


def test_entry_without_expiry_is_inactive():
    entry = BanEntry(identifier="1.2.3.4", ban_expiry=None)
    assert not entry.is_active(T0)


# --- Prune ---


def test_prune_drops_expired_entries():
    entries = [make_entry("1.1.1.1", expiry=T0 - 1), make_entry("2.2.2.2", expiry=T0 + 1000)]
    assert [e.identifier for e in prune(entries, T0)] == ["2.2.2.2"]


def test_prune_collapses_duplicates_keeping_latest_expiry():
    entries = [
        make_entry("1.1.1.1", expiry=T0 + 1000, reason="first"),
        make_entry("1.1.1.1", expiry=T0 + 5000, reason="second"),
        make_entry("1.1.1.1", expiry=T0 + 2000, reason="third"),
    ]
    pruned = prune(entries, T0)
    assert len(pruned) == 1
    assert pruned[0].reason == "second"


# --- Reconcile ---


def test_new_entry_uses_defaults():
    """A request without reason or duration gets 'Unknown' and 5 minutes."""
    result = reconcile([], BanRequest(identifier="5.6.7.8"), T0)
    assert len(result) == 1
    entry = result[0]
    assert entry.identifier == "5.6.7.8"
    assert entry.reason == "Unknown"
    assert entry.banned_at == T0
    assert entry.ban_duration_seconds == 300
    assert entry.ban_expiry == T0 + 300_000


def test_new_entry_uses_requested_values():
    request = BanRequest(identifier="5.6.7.8", reason="spam", ban_duration_seconds=60)
    entry = reconcile([], request, T0)[0]
    assert entry.reason == "spam"
    assert entry.ban_duration_seconds == 60
    assert entry.ban_expiry == T0 + 60_000


def test_zero_duration_falls_back_to_default():
    entry = reconcile([], BanRequest(identifier="5.6.7.8", ban_duration_seconds=0), T0)[0]
    assert entry.ban_expiry == T0 + 300_000


def test_custom_default_duration():
    entry = reconcile([], BanRequest(identifier="5.6.7.8"), T0, default_duration=30)[0]
    assert entry.ban_expiry == T0 + 30_000


def test_refresh_extends_expiry():
    existing = make_entry("1.1.1.1", expiry=T0 + 10_000, reason="spam", banned_at=T0 - 1000)
    request = BanRequest(identifier="1.1.1.1", reason="abuse", ban_duration_seconds=60)
    result = reconcile([existing], request, T0)
    assert len(result) == 1
    entry = result[0]
    assert entry.ban_expiry == T0 + 60_000
    assert entry.reason == "abuse"
    assert entry.banned_at == T0


def test_refresh_never_shortens_expiry():
    existing = make_entry("1.1.1.1", expiry=T0 + 3_600_000)
    result = reconcile([existing], BanRequest(identifier="1.1.1.1", ban_duration_seconds=10), T0)
    assert result[0].ban_expiry == T0 + 3_600_000


def test_refresh_without_reason_keeps_existing_reason():
    existing = make_entry("1.1.1.1", expiry=T0 + 10_000, reason="spam")
    result = reconcile([existing], BanRequest(identifier="1.1.1.1", reason=""), T0)
    assert result[0].reason == "spam"


def test_refresh_keeps_other_entries_untouched():
    other = make_entry("2.2.2.2", expiry=T0 + 10_000, reason="other")
    existing = make_entry("1.1.1.1", expiry=T0 + 10_000)
    result = _by_ip(reconcile([other, existing], BanRequest(identifier="1.1.1.1"), T0))
    assert set(result) == {"1.1.1.1", "2.2.2.2"}
    assert result["2.2.2.2"] == other


def test_expired_entry_is_replaced_not_extended():
    """An expired entry is pruned first, so the request creates a fresh ban."""
    expired = make_entry("1.2.3.4", expiry=T0)
    now = T0 + 1
    request = BanRequest(identifier="1.2.3.4", reason="spam", ban_duration_seconds=300)
    result = reconcile([expired], request, now)
    assert len(result) == 1
    assert result[0].ban_expiry == now + 300_000
    assert result[0].banned_at == now


def test_reconcile_prunes_unrelated_expired_entries():
    stale = make_entry("9.9.9.9", expiry=T0 - 1)
    result = reconcile([stale], BanRequest(identifier="1.1.1.1"), T0)
    assert [e.identifier for e in result] == ["1.1.1.1"]


def test_reconcile_does_not_mutate_input():
    existing = make_entry("1.1.1.1", expiry=T0 + 10_000, reason="spam")
    entries = [existing]
    reconcile(entries, BanRequest(identifier="1.1.1.1", reason="abuse", ban_duration_seconds=60), T0)
    assert entries == [existing]
    assert existing.reason == "spam"
    assert existing.ban_expiry == T0 + 10_000

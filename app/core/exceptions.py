"""
Error taxonomy for the ban list.

Every failure the services can raise derives from BanListError so the HTTP
layer can map them to status codes in one place.
"""


class BanListError(Exception):
    """Base class for ban list errors."""


class InvalidRequest(BanListError):
    """The request was rejected before touching the store."""


class StoreUnavailable(BanListError):
    """The document store could not be reached or refused the call."""


class StoreCorrupt(BanListError):
    """The stored document could not be parsed as a ban list."""


class VersionConflict(BanListError):
    """The document changed since it was read; the write was not applied."""

    def __init__(self, expected_token: str | None, message: str | None = None) -> None:
        self.expected_token = expected_token
        super().__init__(message or f"Document version {expected_token!r} is no longer current")


class ConflictExhausted(BanListError):
    """Every write attempt lost the race against a concurrent writer."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Ban list is busy, gave up after {attempts} conflicting write(s)")

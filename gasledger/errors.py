from __future__ import annotations


class LedgerError(Exception):
    """Base exception for ledger storage operations."""
    pass


class NotInitialized(LedgerError):
    """Query or write issued before Engine.init() completed."""
    pass


class SeedUnavailable(LedgerError):
    """Seed image could not be loaded; no usable database handle exists."""
    pass


class InvalidSnapshot(LedgerError):
    """A database image is unreadable or lacks the required tables."""
    pass


class LegacyStoreUnavailable(LedgerError):
    """The predecessor key/value store is missing or unreadable."""
    pass


class TransactionFailure(LedgerError):
    """A statement inside Engine.transaction() failed; everything was rolled back.

    `index` is the position of the failing operation, `cause` the original error.
    """

    def __init__(self, index: int, cause: BaseException):
        super().__init__(f"transaction rolled back at operation {index}: {cause}")
        self.index = index
        self.cause = cause

"""
Exception hierarchy for the reconciliation stack.

Fatal errors abort a whole invocation; RecordSyncError subclasses are
per-record failures that are logged, counted and skipped.
"""


class ReconciliationError(Exception):
    """Base error for the reconciliation stack"""


class ConfigurationError(ReconciliationError):
    """Missing or invalid configuration (fatal)"""


class ChainUnavailableError(ReconciliationError):
    """Collection-wide chain read failed (fatal for the invocation)"""


class RecordSyncError(ReconciliationError):
    """Failure scoped to a single record (non-fatal)"""

    def __init__(self, record_id: int, message: str):
        self.record_id = record_id
        super().__init__(f"#{record_id}: {message}")


class ChainReadError(RecordSyncError):
    """Chain read for one record returned an ambiguous result"""


class TokenNotOnChainError(RecordSyncError):
    """Chain definitively reports the token does not exist"""


class ImmutableFieldError(RecordSyncError):
    """Write would change a write-once field of a cached record"""

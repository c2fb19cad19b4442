"""
Core module - shared result types and errors for the whole stack.
"""

from src.core.enums import LookupStatus, SyncOutcome
from src.core.errors import (
    ReconciliationError,
    ConfigurationError,
    ChainUnavailableError,
    RecordSyncError,
    ChainReadError,
    TokenNotOnChainError,
    ImmutableFieldError,
)

__all__ = [
    "LookupStatus",
    "SyncOutcome",
    "ReconciliationError",
    "ConfigurationError",
    "ChainUnavailableError",
    "RecordSyncError",
    "ChainReadError",
    "TokenNotOnChainError",
    "ImmutableFieldError",
]

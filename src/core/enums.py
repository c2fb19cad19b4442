"""
Core Enums - shared result types for the reconciliation stack.

Defines:
- LookupStatus: outcome of a single chain read
- SyncOutcome: outcome of one sync unit of work
"""

from enum import Enum


class LookupStatus(str, Enum):
    """Chain read outcome.

    Only DOES_NOT_EXIST is definitive enough to delete a cached row.
    UNKNOWN covers transport failures, rate limits, timeouts and
    undecodable responses.
    """

    EXISTS = "exists"
    DOES_NOT_EXIST = "does_not_exist"
    UNKNOWN = "unknown"


class SyncOutcome(str, Enum):
    """Result of applying one sync unit to one record."""

    UPDATED = "updated"  # cache row changed
    UNCHANGED = "unchanged"  # already correct, no write
    NOT_MINTED = "not_minted"  # token id not assigned on-chain yet
    MISSING = "missing"  # cache row deleted since the batch was read

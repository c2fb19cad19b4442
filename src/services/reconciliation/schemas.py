"""
Reconciliation Schemas - record snapshots and summary models.

Summaries are returned as-is by the admin API and the CLI script, so every
invocation reports counts and id lists regardless of partial failures.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from src.database.models import NFT


# =============================================================================
# Record snapshot
# =============================================================================


@dataclass(frozen=True)
class TokenRecord:
    """
    Detached copy of a cached NFT row.

    Units of work receive snapshots instead of live ORM objects, so a
    rollback after one failed record never expires the rest of the batch.
    """

    fid: int
    token_id: Optional[int]
    minted: bool
    owner_address: Optional[str] = None
    traits: Optional[Dict[str, str]] = None
    contract_address: Optional[str] = None
    tx_hash: Optional[str] = None

    @classmethod
    def from_model(cls, nft: NFT) -> "TokenRecord":
        return cls(
            fid=nft.fid,
            token_id=nft.token_id,
            minted=nft.minted,
            owner_address=nft.owner_address,
            traits=dict(nft.traits) if nft.traits else None,
            contract_address=nft.contract_address,
            tx_hash=nft.tx_hash,
        )


@dataclass(frozen=True)
class SyncItem:
    """One unit of sync work: the ordering id plus an optional payload"""

    item_id: int
    record: Optional[TokenRecord] = None


# =============================================================================
# Gap detection
# =============================================================================


class GapReport(BaseModel):
    """Missing ids in the dense range [1, total_checked]."""

    total_checked: int
    existing_count: int
    missing_count: int
    missing_ids: List[int] = Field(default_factory=list)
    missing_ranges: List[str] = Field(default_factory=list)
    first_missing: Optional[int] = None
    percent_complete: float
    out_of_range_count: int = 0


# =============================================================================
# Sync orchestrator
# =============================================================================


class SyncSummary(BaseModel):
    """Result of one checkpointed sync invocation."""

    task_name: str
    start_cursor: Optional[int] = None  # checkpoint before the run (None = no checkpoint)
    end_cursor: Optional[int] = None  # checkpoint after the run
    batches: int = 0
    processed: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    processed_ids: List[int] = Field(default_factory=list)
    failed_ids: List[int] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    has_more: bool = False
    checkpoint_advanced: bool = False

    @property
    def succeeded(self) -> int:
        return self.processed - self.failed

    def merge(self, other: "SyncSummary") -> None:
        """Fold a later batch of the same task into this summary"""
        self.end_cursor = other.end_cursor
        self.batches += other.batches
        self.processed += other.processed
        self.updated += other.updated
        self.unchanged += other.unchanged
        self.skipped += other.skipped
        self.failed += other.failed
        self.processed_ids.extend(other.processed_ids)
        self.failed_ids.extend(other.failed_ids)
        self.errors.extend(other.errors)
        self.has_more = other.has_more
        self.checkpoint_advanced = self.checkpoint_advanced or other.checkpoint_advanced

    def to_response(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["succeeded"] = self.succeeded
        return data


# =============================================================================
# Orphan reconciler
# =============================================================================


class OrphanSweepSummary(BaseModel):
    """Result of a full-table orphan sweep."""

    dry_run: bool = False
    total: int = 0
    verified_ids: List[int] = Field(default_factory=list)
    orphaned_ids: List[int] = Field(default_factory=list)
    deleted_ids: List[int] = Field(default_factory=list)
    repaired_ids: List[int] = Field(default_factory=list)  # minted flag corrected
    unknown_ids: List[int] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        data = self.model_dump()
        data.update(
            verified=len(self.verified_ids),
            orphaned=len(self.orphaned_ids),
            deleted=len(self.deleted_ids),
            repaired=len(self.repaired_ids),
            unknown=len(self.unknown_ids),
        )
        return data


# =============================================================================
# Trait backfill
# =============================================================================


class BackfillSummary(BaseModel):
    """Result of one trait backfill pass."""

    total_candidates: int = 0
    attempted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    updated_fids: List[int] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump()

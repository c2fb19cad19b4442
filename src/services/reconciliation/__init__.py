"""
NFT Cache Reconciliation

Keeps the database cache of NFT records consistent with the chain.
- Checkpointed chain sync and ownership verification
- Gap detection over the token id range
- Orphan sweep (deletes only on a definitive "does not exist")
- Trait backfill (never overwrites populated traits)

NOTE: The scheduler and service are imported from their own modules to avoid
importing the chain stack on package import:
    from src.services.reconciliation.service import ReconciliationService
    from src.services.reconciliation.scheduler import ReconciliationScheduler
"""
from src.services.reconciliation.config import (
    CHAIN_SYNC_TASK,
    OWNERSHIP_VERIFY_TASK,
    SyncConfig,
    ScheduleConfig,
    ReconciliationConfig,
    get_config,
)
from src.services.reconciliation.schemas import (
    TokenRecord,
    SyncItem,
    GapReport,
    SyncSummary,
    OrphanSweepSummary,
    BackfillSummary,
)
from src.services.reconciliation.gap_detector import detect_gaps, format_range, expand_range
from src.services.reconciliation.checkpoint import CheckpointManager

__all__ = [
    # Config
    "CHAIN_SYNC_TASK",
    "OWNERSHIP_VERIFY_TASK",
    "SyncConfig",
    "ScheduleConfig",
    "ReconciliationConfig",
    "get_config",
    # Schemas
    "TokenRecord",
    "SyncItem",
    "GapReport",
    "SyncSummary",
    "OrphanSweepSummary",
    "BackfillSummary",
    # Components
    "detect_gaps",
    "format_range",
    "expand_range",
    "CheckpointManager",
]

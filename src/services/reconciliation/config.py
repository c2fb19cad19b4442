"""
Reconciliation Configuration

Defaults for sync batches, orphan sweeps and the background schedule.
Built from config.config once at wiring time and passed to components.
"""
from dataclasses import dataclass, field

from config.config import (
    SYNC_BATCH_SIZE,
    SYNC_MAX_BATCH_SIZE,
    SYNC_BATCH_DELAY_SECONDS,
    ORPHAN_SWEEP_PAGE_SIZE,
    NFT_MAX_SUPPLY,
)

# Checkpoint task names
CHAIN_SYNC_TASK = "nft_sync_token_progress"
OWNERSHIP_VERIFY_TASK = "nft_ownership_verify"


@dataclass
class SyncConfig:
    """Batch settings for the checkpointed sync."""
    batch_size: int = 100
    max_batch_size: int = 500
    batch_delay_sec: float = 3.0    # pause between batches (RPC rate limits)
    max_batches_per_run: int = 1    # scheduled runs stay bounded

    def clamp_batch_size(self, requested: int | None) -> int:
        """Requested size limited to [1, max_batch_size], default if unset."""
        if not requested or requested <= 0:
            return self.batch_size
        return min(requested, self.max_batch_size)


@dataclass
class ScheduleConfig:
    """Background jobs schedule (UTC)."""
    chain_sync_interval_minutes: int = 10
    ownership_verify_interval_minutes: int = 30
    backfill_interval_minutes: int = 60
    orphan_sweep_hour: int = 3
    orphan_sweep_minute: int = 30


@dataclass
class ReconciliationConfig:
    """Main reconciliation configuration."""
    sync: SyncConfig = field(default_factory=SyncConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    orphan_page_size: int = 200
    max_supply: int = 3000


def get_config() -> ReconciliationConfig:
    """Configuration built from environment settings."""
    return ReconciliationConfig(
        sync=SyncConfig(
            batch_size=SYNC_BATCH_SIZE,
            max_batch_size=SYNC_MAX_BATCH_SIZE,
            batch_delay_sec=SYNC_BATCH_DELAY_SECONDS,
        ),
        orphan_page_size=ORPHAN_SWEEP_PAGE_SIZE,
        max_supply=NFT_MAX_SUPPLY,
    )

"""
Reconciliation Service - single entry point for every reconciliation job.

Used by the admin API, the scheduler and scripts/run_reconciliation.py so
all three run exactly the same code paths.
"""

from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.crud import list_token_ids
from src.services.chain_reader import ChainReader, get_chain_reader
from src.services.reconciliation.checkpoint import CheckpointManager
from src.services.reconciliation.config import (
    CHAIN_SYNC_TASK,
    OWNERSHIP_VERIFY_TASK,
    ReconciliationConfig,
    get_config,
)
from src.services.reconciliation.gap_detector import detect_gaps
from src.services.reconciliation.orphan_reconciler import OrphanReconciler
from src.services.reconciliation.schemas import (
    BackfillSummary,
    GapReport,
    OrphanSweepSummary,
    SyncSummary,
)
from src.services.reconciliation.sync_orchestrator import (
    CachedTokenSource,
    ChainTokenSource,
    SyncOrchestrator,
)
from src.services.reconciliation.token_sync import ChainTokenImporter, OwnershipVerifier
from src.services.reconciliation.trait_backfill import TraitBackfill


class ReconciliationService:
    """Wires the chain reader, checkpoints and jobs together."""

    def __init__(
        self,
        chain_reader: ChainReader,
        config: Optional[ReconciliationConfig] = None,
    ):
        self.config = config or get_config()
        self.chain = chain_reader
        self.checkpoints = CheckpointManager()
        self.orchestrator = SyncOrchestrator(self.checkpoints, self.config.sync)
        self.orphans = OrphanReconciler(chain_reader, page_size=self.config.orphan_page_size)
        self.backfill = TraitBackfill(chain_reader)

    async def check_missing_tokens(
        self, session: AsyncSession, max_token_id: Optional[int] = None
    ) -> GapReport:
        """Gap report for cached token ids over [1, max_token_id]"""
        upper_bound = self.config.max_supply if max_token_id is None else max_token_id
        token_ids = await list_token_ids(session)
        return detect_gaps(token_ids, upper_bound)

    async def get_sync_checkpoint(
        self, session: AsyncSession, task_name: str = CHAIN_SYNC_TASK
    ) -> Dict[str, Any]:
        cursor = await self.checkpoints.get_checkpoint(session, task_name)
        return {
            "task_name": task_name,
            "last_processed_id": cursor,
            "status": "not_started" if cursor is None else "in_progress",
        }

    async def sync_from_chain(
        self,
        session: AsyncSession,
        batch_size: Optional[int] = None,
        start_token_id: Optional[int] = None,
        max_batches: Optional[int] = None,
    ) -> SyncSummary:
        """
        Import on-chain tokens into the cache, resuming from the checkpoint

        Args:
            session: Database session
            batch_size: Tokens per batch
            start_token_id: Manual restart point (first token id to process)
            max_batches: Batches this invocation (default from config)

        Raises:
            ChainUnavailableError: totalSupply could not be read
        """
        start_after = start_token_id - 1 if start_token_id is not None else None
        return await self.orchestrator.run(
            session,
            CHAIN_SYNC_TASK,
            ChainTokenSource(self.chain),
            ChainTokenImporter(self.chain),
            batch_size=batch_size,
            start_after=start_after,
            max_batches=max_batches,
        )

    async def verify_ownership(
        self,
        session: AsyncSession,
        batch_size: Optional[int] = None,
        max_batches: Optional[int] = None,
    ) -> SyncSummary:
        """Re-check cached tokens against ownerOf, resuming from the checkpoint"""
        return await self.orchestrator.run(
            session,
            OWNERSHIP_VERIFY_TASK,
            CachedTokenSource(),
            OwnershipVerifier(self.chain),
            batch_size=batch_size,
            max_batches=max_batches,
        )

    async def sweep_orphans(
        self, session: AsyncSession, dry_run: bool = False
    ) -> OrphanSweepSummary:
        return await self.orphans.run(session, dry_run=dry_run)

    async def backfill_traits(
        self, session: AsyncSession, limit: Optional[int] = None
    ) -> BackfillSummary:
        return await self.backfill.run(session, limit=limit)


# Global instance
_reconciliation_service: Optional[ReconciliationService] = None


def get_reconciliation_service() -> ReconciliationService:
    """Get or create the process-wide ReconciliationService"""
    global _reconciliation_service
    if _reconciliation_service is None:
        _reconciliation_service = ReconciliationService(get_chain_reader())
        logger.info("Reconciliation service initialized")
    return _reconciliation_service

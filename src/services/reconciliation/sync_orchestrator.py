"""
Sync Orchestrator - bounded, checkpointed batches of idempotent work.

Flow per batch:
1. read the task checkpoint (None = start from the lowest known id)
2. fetch the next candidates ordered by id ascending
3. apply the unit of work to each, one failing record never stops the batch
4. advance the checkpoint to the highest id attempted
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Protocol, Tuple

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.enums import SyncOutcome
from src.core.errors import ChainUnavailableError, RecordSyncError
from src.database.crud import list_nfts_after_token_id
from src.services.chain_reader import ChainReader
from src.services.reconciliation.checkpoint import CheckpointManager
from src.services.reconciliation.config import SyncConfig
from src.services.reconciliation.schemas import SyncItem, SyncSummary, TokenRecord


ApplyFn = Callable[[AsyncSession, SyncItem], Awaitable[SyncOutcome]]


class CandidateSource(Protocol):
    """Supplies the next batch of work after a cursor."""

    async def fetch(
        self, session: AsyncSession, after: Optional[int], limit: int
    ) -> Tuple[List[SyncItem], bool]:
        """Return (items ordered by item_id ascending, has_more)."""
        ...


class CachedTokenSource:
    """Cached NFTs with a token_id above the cursor."""

    async def fetch(
        self, session: AsyncSession, after: Optional[int], limit: int
    ) -> Tuple[List[SyncItem], bool]:
        rows = await list_nfts_after_token_id(session, after, limit + 1)
        items = [
            SyncItem(item_id=row.token_id, record=TokenRecord.from_model(row))
            for row in rows[:limit]
        ]
        return items, len(rows) > limit


class ChainTokenSource:
    """Token ids 1..totalSupply read from the contract."""

    def __init__(self, chain_reader: ChainReader):
        self.chain = chain_reader

    async def fetch(
        self, session: AsyncSession, after: Optional[int], limit: int
    ) -> Tuple[List[SyncItem], bool]:
        supply = await self.chain.total_supply()
        if not supply.found:
            raise ChainUnavailableError(f"Cannot read totalSupply: {supply.error}")

        total = supply.value
        start = (after or 0) + 1
        end = min(start + limit - 1, total)
        items = [SyncItem(item_id=token_id) for token_id in range(start, end + 1)]
        return items, end < total


class SyncOrchestrator:
    """
    Drives checkpointed sync batches.

    Not safe for concurrent runs of the same task; callers serialize them
    (scheduler jobs use max_instances=1).
    """

    def __init__(self, checkpoints: CheckpointManager, config: SyncConfig):
        self.checkpoints = checkpoints
        self.config = config

    async def run_batch(
        self,
        session: AsyncSession,
        task_name: str,
        source: CandidateSource,
        apply: ApplyFn,
        batch_size: Optional[int] = None,
        start_after: Optional[int] = None,
    ) -> SyncSummary:
        """
        Process one batch after the checkpoint

        Args:
            session: Database session
            task_name: Checkpoint owner
            source: Candidate source
            apply: Idempotent unit of work
            batch_size: Items per batch (clamped to the configured maximum)
            start_after: Manual cursor override for this batch only

        Returns:
            SyncSummary for the batch
        """
        size = self.config.clamp_batch_size(batch_size)
        checkpoint = await self.checkpoints.get_checkpoint(session, task_name)
        cursor = start_after if start_after is not None else checkpoint

        summary = SyncSummary(task_name=task_name, start_cursor=checkpoint, end_cursor=checkpoint)

        items, has_more = await source.fetch(session, cursor, size)
        summary.has_more = has_more

        if not items:
            logger.info(f"Sync {task_name}: nothing after cursor {cursor}")
            return summary

        summary.batches = 1
        logger.info(
            f"Sync {task_name}: processing #{items[0].item_id}-#{items[-1].item_id} "
            f"({len(items)} items, cursor {cursor})"
        )

        for item in items:
            summary.processed += 1
            summary.processed_ids.append(item.item_id)
            try:
                outcome = await apply(session, item)
            except RecordSyncError as e:
                self._record_failure(summary, item, str(e))
                logger.warning(f"Sync {task_name}: {e}")
                continue
            except SQLAlchemyError as e:
                await session.rollback()
                self._record_failure(summary, item, f"#{item.item_id}: {e}")
                logger.error(f"Sync {task_name}: write failed for #{item.item_id}: {e}")
                continue
            except Exception as e:
                self._record_failure(summary, item, f"#{item.item_id}: {e}")
                logger.exception(f"Sync {task_name}: unexpected error on #{item.item_id}: {e}")
                continue

            if outcome is SyncOutcome.UPDATED:
                summary.updated += 1
            elif outcome is SyncOutcome.UNCHANGED:
                summary.unchanged += 1
            else:
                summary.skipped += 1

        # Forward progress even past failed ids; the orphan sweep catches them
        highest = items[-1].item_id
        summary.end_cursor = await self.checkpoints.advance_checkpoint(session, task_name, highest)
        summary.checkpoint_advanced = summary.end_cursor != checkpoint

        logger.info(
            f"Sync {task_name}: {summary.updated} updated, {summary.unchanged} unchanged, "
            f"{summary.skipped} skipped, {summary.failed} failed | cursor -> {summary.end_cursor}"
        )
        return summary

    async def run(
        self,
        session: AsyncSession,
        task_name: str,
        source: CandidateSource,
        apply: ApplyFn,
        batch_size: Optional[int] = None,
        start_after: Optional[int] = None,
        max_batches: Optional[int] = None,
    ) -> SyncSummary:
        """
        Run batches until caught up or max_batches is reached

        Sleeps batch_delay_sec between batches. Safe to cancel between
        batches: every write and checkpoint advance is already committed.
        """
        max_batches = max_batches or self.config.max_batches_per_run

        summary = await self.run_batch(
            session, task_name, source, apply, batch_size=batch_size, start_after=start_after
        )
        batches_run = 1

        while summary.has_more and batches_run < max_batches:
            if self.config.batch_delay_sec > 0:
                await asyncio.sleep(self.config.batch_delay_sec)
            summary.merge(
                await self.run_batch(session, task_name, source, apply, batch_size=batch_size)
            )
            batches_run += 1

        return summary

    @staticmethod
    def _record_failure(summary: SyncSummary, item: SyncItem, error: str) -> None:
        summary.failed += 1
        summary.failed_ids.append(item.item_id)
        summary.errors.append(error)

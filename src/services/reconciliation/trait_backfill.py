"""
Trait Backfill - populate traits for minted tokens that have none.

Traits are immutable once written: the write is conditional on the column
still being NULL, so a concurrent writer always wins.
"""

from typing import Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.crud import (
    count_minted_without_traits,
    list_minted_without_traits,
    set_traits_if_empty,
)
from src.services.chain_reader import ChainReader
from src.services.reconciliation.schemas import BackfillSummary, TokenRecord


class TraitBackfill:
    """Reads on-chain metadata by fid and fills empty traits."""

    def __init__(self, chain_reader: ChainReader):
        self.chain = chain_reader

    async def run(self, session: AsyncSession, limit: Optional[int] = None) -> BackfillSummary:
        """
        Backfill traits for minted tokens with empty traits

        Args:
            session: Database session
            limit: Max records this pass (None = all candidates)

        Returns:
            BackfillSummary
        """
        summary = BackfillSummary(total_candidates=await count_minted_without_traits(session))
        if summary.total_candidates == 0:
            logger.info("Trait backfill: nothing to do")
            return summary

        candidates = [
            TokenRecord.from_model(nft)
            for nft in await list_minted_without_traits(session, limit)
        ]
        logger.info(
            f"Trait backfill: {len(candidates)} of {summary.total_candidates} candidates this pass"
        )

        for record in candidates:
            summary.attempted += 1
            try:
                await self._backfill_one(session, record, summary)
            except Exception as e:
                summary.failed += 1
                summary.errors.append(f"FID {record.fid}: {e}")
                logger.exception(f"Trait backfill: unexpected error on FID {record.fid}: {e}")

        logger.info(
            f"Trait backfill finished: {summary.updated} updated, "
            f"{summary.skipped} skipped, {summary.failed} failed"
        )
        return summary

    async def _backfill_one(
        self, session: AsyncSession, record: TokenRecord, summary: BackfillSummary
    ) -> None:
        lookup = await self.chain.read_metadata(record.fid)

        if lookup.missing:
            summary.skipped += 1
            logger.debug(f"FID {record.fid}: no on-chain metadata yet")
            return
        if not lookup.found:
            summary.failed += 1
            summary.errors.append(f"FID {record.fid}: {lookup.error}")
            return

        traits = lookup.value.traits
        if not traits:
            summary.skipped += 1
            return

        try:
            written = await set_traits_if_empty(session, record.fid, traits)
        except SQLAlchemyError as e:
            await session.rollback()
            summary.failed += 1
            summary.errors.append(f"FID {record.fid}: write failed: {e}")
            logger.error(f"FID {record.fid}: trait write failed: {e}")
            return

        if written:
            summary.updated += 1
            summary.updated_fids.append(record.fid)
            logger.debug(f"FID {record.fid}: traits populated")
        else:
            # Populated by someone else in the meantime
            summary.skipped += 1

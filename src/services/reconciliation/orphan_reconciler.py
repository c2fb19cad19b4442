"""
Orphan Reconciler - full sweep of cached tokens against the chain.

Per cached token (ordered by token_id, keyset paging):
- EXISTS: verified; a minted=false row is repaired to minted=true
- DOES_NOT_EXIST: orphaned; deleted unless dry_run
- UNKNOWN: reported, never deleted
"""

from typing import Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.sentry import capture_message
from src.database.crud import delete_nft, list_nfts_after_token_id, mark_minted
from src.services.chain_reader import ChainReader
from src.services.reconciliation.schemas import OrphanSweepSummary, TokenRecord


class OrphanReconciler:
    """Deletes cached tokens the chain definitively reports as nonexistent."""

    def __init__(self, chain_reader: ChainReader, page_size: int = 200):
        self.chain = chain_reader
        self.page_size = page_size

    async def run(self, session: AsyncSession, dry_run: bool = False) -> OrphanSweepSummary:
        """
        Sweep every cached token that has a token_id

        Args:
            session: Database session
            dry_run: Report orphans without deleting or repairing anything

        Returns:
            OrphanSweepSummary with per-category id lists
        """
        summary = OrphanSweepSummary(dry_run=dry_run)
        after: Optional[int] = None

        logger.info(f"Orphan sweep started (dry_run={dry_run})")

        while True:
            page = await list_nfts_after_token_id(session, after, self.page_size)
            if not page:
                break

            # Snapshot before any write, a rollback must not expire the page
            records = [TokenRecord.from_model(nft) for nft in page]
            after = records[-1].token_id

            for record in records:
                try:
                    await self._reconcile(session, record, summary, dry_run)
                except Exception as e:
                    # Unclassified, so never a deletion candidate
                    if record.token_id not in summary.unknown_ids:
                        summary.unknown_ids.append(record.token_id)
                    summary.errors.append(f"#{record.token_id}: {e}")
                    logger.exception(f"Orphan sweep: unexpected error on #{record.token_id}: {e}")

        logger.info(
            f"Orphan sweep finished: {summary.total} checked, "
            f"{len(summary.verified_ids)} verified, {len(summary.orphaned_ids)} orphaned, "
            f"{len(summary.deleted_ids)} deleted, {len(summary.unknown_ids)} unknown"
        )
        if summary.deleted_ids:
            capture_message(
                f"Orphan sweep deleted {len(summary.deleted_ids)} cached tokens",
                level="warning",
                deleted_token_ids=summary.deleted_ids,
            )
        if summary.unknown_ids:
            logger.warning(f"Orphan sweep could not verify tokens: {summary.unknown_ids}")

        return summary

    async def _reconcile(
        self,
        session: AsyncSession,
        record: TokenRecord,
        summary: OrphanSweepSummary,
        dry_run: bool,
    ) -> None:
        token_id = record.token_id
        summary.total += 1

        lookup = await self.chain.owner_of(token_id)

        if lookup.found:
            summary.verified_ids.append(token_id)
            if record.minted or dry_run:
                return
            try:
                if await mark_minted(session, record.fid, owner_address=lookup.value):
                    summary.repaired_ids.append(token_id)
                    logger.info(f"Token #{token_id} (FID {record.fid}) repaired: minted=true")
            except SQLAlchemyError as e:
                await session.rollback()
                summary.errors.append(f"#{token_id}: repair failed: {e}")
                logger.error(f"Token #{token_id}: repair failed: {e}")
            return

        if lookup.missing:
            summary.orphaned_ids.append(token_id)
            if dry_run:
                logger.info(f"[DRY RUN] Token #{token_id} (FID {record.fid}) would be deleted")
                return
            try:
                if await delete_nft(session, record.fid):
                    summary.deleted_ids.append(token_id)
                    logger.warning(
                        f"Token #{token_id} (FID {record.fid}) not on-chain, deleted from cache"
                    )
            except SQLAlchemyError as e:
                await session.rollback()
                summary.errors.append(f"#{token_id}: delete failed: {e}")
                logger.error(f"Token #{token_id}: delete failed: {e}")
            return

        summary.unknown_ids.append(token_id)
        summary.errors.append(f"#{token_id}: {lookup.error}")

"""
Reconciliation Scheduler

APScheduler jobs:
- Chain sync: every 10 min (one checkpointed batch)
- Ownership verify: every 30 min (one checkpointed batch)
- Trait backfill: every 60 min
- Orphan sweep: once a day 03:30 UTC

Every job runs with max_instances=1, so a slow run is never overlapped by
the next tick of the same job.
"""
from typing import Any, Dict, Optional

from loguru import logger
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from src.core.errors import ReconciliationError
from src.database.engine import get_session_maker
from src.services.reconciliation.config import ScheduleConfig, get_config
from src.services.reconciliation.service import (
    ReconciliationService,
    get_reconciliation_service,
)


class ReconciliationScheduler:
    """
    APScheduler for reconciliation jobs.

    Jobs:
    - nft_chain_sync
    - nft_ownership_verify
    - nft_trait_backfill
    - nft_orphan_sweep
    """

    def __init__(
        self,
        service: Optional[ReconciliationService] = None,
        schedule: Optional[ScheduleConfig] = None,
        session_maker=None,
    ):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._service = service
        self.schedule = schedule or get_config().schedule
        self._session_maker = session_maker

    @property
    def service(self) -> ReconciliationService:
        if self._service is None:
            self._service = get_reconciliation_service()
        return self._service

    @property
    def session_maker(self):
        if self._session_maker is None:
            self._session_maker = get_session_maker()
        return self._session_maker

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the scheduler."""
        if self._running:
            logger.warning("Reconciliation scheduler already running")
            return

        self.scheduler = AsyncIOScheduler(timezone="UTC")
        schedule = self.schedule
        job_defaults = dict(max_instances=1, coalesce=True, replace_existing=True)

        self.scheduler.add_job(
            self._job_chain_sync,
            IntervalTrigger(minutes=schedule.chain_sync_interval_minutes),
            id="nft_chain_sync",
            name="NFT Chain Sync",
            **job_defaults,
        )

        self.scheduler.add_job(
            self._job_verify_ownership,
            IntervalTrigger(minutes=schedule.ownership_verify_interval_minutes),
            id="nft_ownership_verify",
            name="NFT Ownership Verify",
            **job_defaults,
        )

        self.scheduler.add_job(
            self._job_backfill_traits,
            IntervalTrigger(minutes=schedule.backfill_interval_minutes),
            id="nft_trait_backfill",
            name="NFT Trait Backfill",
            **job_defaults,
        )

        self.scheduler.add_job(
            self._job_orphan_sweep,
            CronTrigger(hour=schedule.orphan_sweep_hour, minute=schedule.orphan_sweep_minute),
            id="nft_orphan_sweep",
            name="NFT Orphan Sweep",
            **job_defaults,
        )

        self.scheduler.start()
        self._running = True

        logger.info(
            f"Reconciliation scheduler started: "
            f"sync every {schedule.chain_sync_interval_minutes}m, "
            f"verify every {schedule.ownership_verify_interval_minutes}m, "
            f"backfill every {schedule.backfill_interval_minutes}m, "
            f"orphan sweep at {schedule.orphan_sweep_hour}:{schedule.orphan_sweep_minute:02d} UTC"
        )

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Reconciliation scheduler stopped")

    async def _job_chain_sync(self) -> Dict[str, Any]:
        """Job: one batch of chain -> cache import."""
        try:
            async with self.session_maker() as session:
                summary = await self.service.sync_from_chain(session)
                return summary.to_response()
        except ReconciliationError as e:
            logger.error(f"Chain sync job failed: {e}")
            return {"error": str(e)}

    async def _job_verify_ownership(self) -> Dict[str, Any]:
        """Job: one batch of ownership verification."""
        try:
            async with self.session_maker() as session:
                summary = await self.service.verify_ownership(session)
                return summary.to_response()
        except ReconciliationError as e:
            logger.error(f"Ownership verify job failed: {e}")
            return {"error": str(e)}

    async def _job_backfill_traits(self) -> Dict[str, Any]:
        """Job: trait backfill."""
        try:
            async with self.session_maker() as session:
                summary = await self.service.backfill_traits(session)
                return summary.to_response()
        except ReconciliationError as e:
            logger.error(f"Trait backfill job failed: {e}")
            return {"error": str(e)}

    async def _job_orphan_sweep(self) -> Dict[str, Any]:
        """Job: daily orphan sweep."""
        try:
            async with self.session_maker() as session:
                summary = await self.service.sweep_orphans(session)
                return summary.to_response()
        except ReconciliationError as e:
            logger.error(f"Orphan sweep job failed: {e}")
            return {"error": str(e)}

"""
Growth Scheduler Service.

Background loop that keeps the daily acquisition stats fresh.  Every cycle
re-aggregates yesterday and today for each active business (in the
business's own timezone) and prunes old landing page visits.  Aggregation is
idempotent, so re-running a day only overwrites its rows.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select

from core.domain.growth import local_day, resolve_zone
from infrastructure.config import settings
from infrastructure.database import async_session_maker
from infrastructure.database.models.business import Business
from services.growth_aggregation import aggregate_daily_stats, prune_landing_page_visits

logger = logging.getLogger(__name__)


class GrowthSchedulerService:
    """Service for periodic acquisition aggregation."""

    def __init__(self, session_factory=None, check_interval: Optional[int] = None):
        self.is_running = False
        self.check_interval = check_interval or settings.growth_aggregation_interval_seconds
        self._session_factory = session_factory or async_session_maker

    async def start(self):
        """Start the scheduler background loop."""
        if self.is_running:
            logger.warning("Growth scheduler is already running")
            return

        self.is_running = True
        logger.info(
            "Growth scheduler started - aggregating every %d seconds", self.check_interval
        )

        while self.is_running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Growth scheduler error: {e}", exc_info=True)

            # Sleep until next cycle
            await asyncio.sleep(self.check_interval)

    async def stop(self):
        """Stop the scheduler."""
        if not self.is_running:
            return

        self.is_running = False
        logger.info("Growth scheduler stopped")

    async def run_once(self, now: Optional[datetime] = None) -> dict:
        """Run one aggregation cycle for every active business.

        A failing business is rolled back and logged; the others still run.
        """
        async with self._session_factory() as db:
            result = await db.execute(
                select(Business.id, Business.timezone)
                .where(Business.is_active.is_(True))
                .order_by(Business.id)
            )
            businesses = result.all()

        succeeded: list[str] = []
        failed: list[str] = []
        rows_written = 0

        for business_id, tz_name in businesses:
            tz = resolve_zone(tz_name, settings.default_timezone)
            today = local_day(now, tz)
            try:
                rows_written += await self.aggregate_business(
                    business_id, [today - timedelta(days=1), today]
                )
                succeeded.append(business_id)
            except Exception as e:
                failed.append(business_id)
                logger.error(
                    "Growth aggregation failed for business %s: %s",
                    business_id,
                    e,
                    exc_info=True,
                    extra={"business_id": business_id, "operation": "growth_scheduler"},
                )

        pruned = await self.prune_visits()

        logger.info(
            "Growth aggregation cycle finished: %d succeeded, %d failed, %d rows",
            len(succeeded),
            len(failed),
            rows_written,
        )
        return {
            "businesses": len(businesses),
            "succeeded": succeeded,
            "failed": failed,
            "rows_written": rows_written,
            "visits_pruned": pruned,
        }

    async def aggregate_business(self, business_id: str, days) -> int:
        """Aggregate the given local days for one business in one transaction."""
        rows = 0
        async with self._session_factory() as db:
            try:
                for day in days:
                    result = await aggregate_daily_stats(business_id, db, day)
                    rows += result["rows_written"]
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        return rows

    async def prune_visits(self) -> int:
        async with self._session_factory() as db:
            try:
                removed = await prune_landing_page_visits(db)
                await db.commit()
                return removed
            except Exception as e:
                await db.rollback()
                logger.error(f"Landing page visit pruning failed: {e}", exc_info=True)
                return 0


# Global scheduler instance
growth_scheduler = GrowthSchedulerService()

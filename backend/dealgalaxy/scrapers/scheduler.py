"""APScheduler-based pipeline scheduler.

Runs the deal refresh and the tracked-price refresh at fixed intervals.
Each job opens its own database session and its own scraper, so the proxy
pool is reloaded and the browser relaunched once per run.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import AsyncContextManager, Callable, Dict, Optional

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dealgalaxy.config import PipelineConfig
from dealgalaxy.scrapers.base import BaseProductSource
from dealgalaxy.scrapers.scraper_service import (
    DealsRefreshSummary,
    ScraperService,
    TrackingRefreshSummary,
)
from dealgalaxy.services.tracking_service import TrackingService

logger = structlog.get_logger(__name__)

DEALS_JOB_ID = "refresh_deals"
TRACKING_JOB_ID = "refresh_tracked_prices"

SourceFactory = Callable[[], AsyncContextManager[BaseProductSource]]


class PipelineScheduler:
    """Manages the periodic pipeline jobs.

    This scheduler:
    - Starts and stops the two background refresh jobs
    - Never runs two instances of the same job at once
    - Signals running jobs to stop between items on shutdown
    - Logs job failures without stopping the scheduler
    """

    def __init__(
        self,
        db_session_factory: async_sessionmaker[AsyncSession],
        source_factory: SourceFactory,
        config: PipelineConfig,
    ):
        """Initialize pipeline scheduler.

        Args:
            db_session_factory: Async session factory for database access
            source_factory: Returns an async context manager yielding a started source
            config: Pipeline configuration passed into each run
        """
        self.db_session_factory = db_session_factory
        self.source_factory = source_factory
        self.config = config
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.cancel_event = asyncio.Event()
        self.logger = logger.bind(service="pipeline_scheduler")

    def start(
        self,
        deals_interval_minutes: int = 60,
        tracking_interval_minutes: int = 120,
    ) -> None:
        """Register both jobs and start the scheduler."""
        if self.scheduler.running:
            self.logger.warning("scheduler_already_running")
            return

        self.cancel_event.clear()
        self.add_job(DEALS_JOB_ID, self._run_deals_job, deals_interval_minutes)
        # Stagger so the two jobs do not launch browsers at the same moment
        self.add_job(
            TRACKING_JOB_ID,
            self._run_tracking_job,
            tracking_interval_minutes,
            offset_seconds=30,
        )
        self.scheduler.start()
        self.logger.info("scheduler_started")

    def stop(self) -> None:
        """Stop the scheduler; running jobs finish their current item first."""
        if not self.scheduler.running:
            self.logger.warning("scheduler_not_running")
            return
        self.cancel_event.set()
        self.scheduler.shutdown(wait=False)
        self.logger.info("scheduler_stopped")

    def add_job(
        self,
        job_id: str,
        func: Callable,
        interval_minutes: int,
        offset_seconds: int = 0,
    ) -> Job:
        start_date = datetime.now(timezone.utc) + timedelta(seconds=offset_seconds)
        trigger = IntervalTrigger(minutes=interval_minutes, start_date=start_date, timezone="UTC")
        job = self.scheduler.add_job(
            func=func,
            trigger=trigger,
            id=job_id,
            name=job_id.replace("_", " ").capitalize(),
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info(
            "job_added",
            job_id=job_id,
            interval_minutes=interval_minutes,
            offset_seconds=offset_seconds,
        )
        return job

    async def _run_deals_job(self) -> None:
        try:
            await self.run_deals_refresh()
        except Exception as e:
            self.logger.error("deals_job_failed", error=str(e), exc_info=True)

    async def _run_tracking_job(self) -> None:
        try:
            await self.run_tracking_refresh()
        except Exception as e:
            self.logger.error("tracking_job_failed", error=str(e), exc_info=True)

    async def run_deals_refresh(self) -> DealsRefreshSummary:
        """Execute one deal refresh run."""
        self.logger.info("starting_deals_job")
        async with self.db_session_factory() as db, self.source_factory() as source:
            service = ScraperService(db, source, self.config)
            return await service.refresh_deals(cancel_event=self.cancel_event)

    async def run_tracking_refresh(self) -> Dict[str, TrackingRefreshSummary]:
        """Refresh tracked prices for every owner with active products.

        Returns:
            Summary per owner id
        """
        async with self.db_session_factory() as db:
            owners = await TrackingService(db).list_active_owners()

        self.logger.info("starting_tracking_job", owners=len(owners))
        summaries: Dict[str, TrackingRefreshSummary] = {}
        if not owners:
            return summaries

        async with self.db_session_factory() as db, self.source_factory() as source:
            service = ScraperService(db, source, self.config)
            for owner_id in owners:
                if self.cancel_event.is_set():
                    break
                summaries[owner_id] = await service.refresh_tracked_prices(
                    owner_id, cancel_event=self.cancel_event
                )
        return summaries

    def get_jobs_status(self) -> dict:
        """Status of the scheduled jobs keyed by job id."""
        jobs = {}
        for job in self.scheduler.get_jobs():
            jobs[job.id] = {
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger),
            }
        return jobs

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.scheduler.get_job(job_id)

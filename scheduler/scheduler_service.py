"""
Scheduler service for periodic WebUntis refreshes.

This module provides:
- Interval scheduling with APScheduler
- Job outcome logging through scheduler listeners
- Run-once mode for manual refreshes
- Scheduler status reporting
"""

from datetime import datetime
from typing import Dict

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MAX_INSTANCES
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from scheduler.models import CycleResult, SchedulerConfig
from scheduler.update_orchestrator import UpdateOrchestrator

logger = structlog.get_logger(__name__)

REFRESH_JOB_ID = "untis_refresh"


class SchedulerService:
    """Triggers refresh cycles at a fixed interval."""

    def __init__(self, config: SchedulerConfig, orchestrator: UpdateOrchestrator):
        """
        Initialize scheduler service.

        Args:
            config: Scheduler configuration
            orchestrator: Runs the individual refresh cycles
        """
        self.config = config
        self.orchestrator = orchestrator
        self.scheduler = AsyncIOScheduler(timezone=config.timezone)
        self.logger = logger.bind(component="scheduler_service")

        self._setup_scheduler_listeners()

    def _setup_scheduler_listeners(self) -> None:
        """Setup scheduler event listeners."""
        def job_executed_listener(event):
            retval = event.retval
            self.logger.info(
                "Job executed successfully",
                job_id=event.job_id,
                cycle_id=retval.cycle_id if retval else None,
                skipped=retval.skipped if retval else False,
                duration=retval.duration_seconds if retval else 0
            )

        def job_error_listener(event):
            self.logger.error(
                "Job execution failed",
                job_id=event.job_id,
                error=str(event.exception)
            )

        def job_missed_listener(event):
            self.logger.warning(
                "Refresh still running, trigger skipped",
                job_id=event.job_id
            )

        self.scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)
        self.scheduler.add_listener(job_missed_listener, EVENT_JOB_MAX_INSTANCES)

    def add_refresh_job(self) -> None:
        """Register the interval job. The first run happens immediately."""
        self.scheduler.add_job(
            func=self._refresh_job,
            trigger=IntervalTrigger(
                seconds=self.config.update_interval_seconds,
                timezone=self.config.timezone
            ),
            id=REFRESH_JOB_ID,
            name="WebUntis Refresh",
            next_run_time=datetime.now(self.scheduler.timezone),
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self.logger.info(
            "Added refresh job",
            interval_seconds=self.config.update_interval_seconds,
            timezone=self.config.timezone
        )

    async def start(self, run_once: bool = False) -> None:
        """
        Start the scheduler service.

        In run-once mode a single cycle is executed and the method returns
        without starting the scheduler.
        """
        if run_once:
            self.logger.info("Starting scheduler service in RUN ONCE MODE")
            await self._run_once_mode()
            return

        self.logger.info("Starting scheduler service")
        self.add_refresh_job()
        self.scheduler.start()
        self.logger.info(
            "Scheduler service started",
            timezone=self.config.timezone,
            categories=[c.value for c in self.config.enabled_categories()]
        )

    async def _run_once_mode(self) -> CycleResult:
        result = await self.orchestrator.run_cycle()
        if result.success:
            self.logger.info(
                "Refresh completed successfully",
                notifications_emitted=result.notifications_emitted,
                changes_detected=result.changes_detected,
                errors=result.errors,
                duration=result.duration_seconds
            )
        else:
            self.logger.error("Refresh failed", errors=result.errors)

        self.logger.info("Run once mode completed. Exiting...")
        return result

    def stop(self) -> None:
        """Stop the scheduler service."""
        try:
            self.logger.info("Stopping scheduler service")

            if self.scheduler.running:
                self.scheduler.shutdown(wait=False)

            self.logger.info("Scheduler service stopped")

        except Exception as e:
            self.logger.error(
                "Error stopping scheduler service",
                error=str(e)
            )

    async def _refresh_job(self) -> CycleResult:
        """Scheduled refresh job."""
        try:
            return await self.orchestrator.run_cycle()
        except Exception as e:
            # A failed cycle never stops the schedule.
            self.logger.error("Refresh job failed", error=str(e))
            return CycleResult(cycle_id=f"failed_{datetime.now().strftime('%Y%m%d_%H%M%S')}", success=False, errors=[str(e)])

    async def run_manual_refresh(self) -> CycleResult:
        """Run a refresh cycle outside the schedule."""
        self.logger.info("Running manual refresh")
        return await self._refresh_job()

    def get_scheduler_status(self) -> Dict:
        """Get current scheduler status."""
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append({
                'id': job.id,
                'name': job.name,
                'next_run_time': job.next_run_time.isoformat() if job.next_run_time else None,
                'trigger': str(job.trigger)
            })

        return {
            'running': self.scheduler.running,
            'cycle_in_progress': self.orchestrator.is_running,
            'timezone': self.config.timezone,
            'jobs': jobs,
            'job_count': len(jobs)
        }

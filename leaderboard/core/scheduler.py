"""
Background Job Scheduler

Runs the daily metrics refresh using APScheduler and records every run,
scheduled or triggered through the cron endpoint, in job_execution_logs.
"""

import logging
from typing import Optional, List

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leaderboard.core.exceptions import RefreshInProgressError
from leaderboard.models.job_execution_log import JobExecutionLog
from leaderboard.schemas.refresh import RefreshReport
from leaderboard.services.metrics_refresh_service import MetricsRefreshService

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "metrics-refresh"
REFRESH_JOB_NAME = "Daily RevenueCat Metrics Refresh"


class BackgroundScheduler:
    """Manages background job scheduling"""

    def __init__(
        self,
        refresh_service: MetricsRefreshService,
        session_factory: async_sessionmaker[AsyncSession],
        hour: int = 0,
        minute: int = 0
    ):
        self.refresh_service = refresh_service
        self.session_factory = session_factory
        self.hour = hour
        self.minute = minute
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.is_running = False

    async def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        try:
            self.scheduler = AsyncIOScheduler(
                timezone='UTC',
                job_defaults={
                    'coalesce': True,  # Combine multiple pending executions into one
                    'max_instances': 1,  # Only one instance of each job at a time
                    'misfire_grace_time': 3600
                }
            )

            self.scheduler.add_listener(
                self._job_executed_listener,
                EVENT_JOB_EXECUTED
            )
            self.scheduler.add_listener(
                self._job_error_listener,
                EVENT_JOB_ERROR
            )

            self.scheduler.add_job(
                func=self._scheduled_refresh_job,
                trigger=CronTrigger(hour=self.hour, minute=self.minute),
                id=REFRESH_JOB_ID,
                name=REFRESH_JOB_NAME,
                replace_existing=True
            )

            self.scheduler.start()
            self.is_running = True

            logger.info("Background scheduler started successfully")
            logger.info(f"Scheduled jobs: {[job.id for job in self.scheduler.get_jobs()]}")

        except Exception as e:
            logger.error(f"Failed to start background scheduler: {str(e)}", exc_info=True)
            raise

    async def stop(self):
        """Stop the background scheduler"""
        if not self.is_running or not self.scheduler:
            return

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Background scheduler stopped successfully")

        except Exception as e:
            logger.error(f"Error stopping background scheduler: {str(e)}", exc_info=True)

    async def _scheduled_refresh_job(self):
        try:
            await self.run_refresh_job(triggered_manually=False)
        except RefreshInProgressError:
            logger.warning("Skipping scheduled metrics refresh: a run is already in progress")
        except Exception as e:
            # Already recorded in the job log
            logger.error(f"Scheduled metrics refresh failed: {e}")

    async def run_refresh_job(self, triggered_manually: bool = False) -> RefreshReport:
        """
        Run the metrics refresh and record it in the job log.

        Raises:
            RefreshInProgressError: a run is already in progress (nothing is logged)
        """
        if self.refresh_service.is_running:
            raise RefreshInProgressError()

        log_entry = JobExecutionLog.begin(
            job_name=REFRESH_JOB_NAME,
            job_id=REFRESH_JOB_ID,
            triggered_manually=triggered_manually
        )

        try:
            report = await self.refresh_service.run()
        except RefreshInProgressError:
            raise
        except Exception as e:
            log_entry.record_failure(e)
            logger.error(
                f"Metrics refresh failed after {log_entry.duration_seconds:.1f}s: {str(e)}",
                exc_info=True
            )
            await self._save_job_log(log_entry)
            raise

        log_entry.record_report(report)
        if report.errors:
            logger.warning(f"Refresh errors: {log_entry.error_message}")

        await self._save_job_log(log_entry)
        return report

    def _job_executed_listener(self, event):
        """Listener for successful job executions"""
        logger.info(f"Job '{event.job_id}' executed successfully")

    def _job_error_listener(self, event):
        """Listener for job execution errors"""
        logger.error(
            f"Job '{event.job_id}' failed: {event.exception}",
            exc_info=event.exception
        )

    def get_job_status(self) -> dict:
        """Get status of all scheduled jobs"""
        if not self.scheduler:
            return {
                "status": "not_started",
                "jobs": [],
                "refresh_in_progress": self.refresh_service.is_running
            }

        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger)
            })

        return {
            "status": "running" if self.is_running else "stopped",
            "jobs": jobs,
            "refresh_in_progress": self.refresh_service.is_running
        }

    async def _save_job_log(self, log_entry: JobExecutionLog):
        """Save job execution log to database"""
        try:
            async with self.session_factory() as db:
                db.add(log_entry)
                await db.commit()
                logger.debug(f"Saved job execution log: {log_entry.job_name} - {log_entry.status}")
        except Exception as e:
            logger.error(f"Failed to save job execution log: {str(e)}", exc_info=True)

    async def get_recent_job_logs(self, limit: int = 10) -> List[dict]:
        """Get recent job execution logs"""
        async with self.session_factory() as db:
            result = await db.execute(
                select(JobExecutionLog)
                .order_by(desc(JobExecutionLog.started_at))
                .limit(limit)
            )
            logs = result.scalars().all()
            return [log.execution_summary for log in logs]

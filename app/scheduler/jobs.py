"""NAPWATCH — Scheduler Jobs.

APScheduler interval jobs driving the audit engine:
- full_audit           every ``audit_frequency_hours``
- consistency_recheck  every ``recheck_interval_hours``
- alert_sweep          every ``alert_sweep_interval_hours``

Every job is registered under a fixed id, so a restart removes exactly the
jobs this scheduler created before adding new ones.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.analyzer.pipeline import AuditEngine
from app.config import settings
from app.core.logging import get_logger
from app.models.config_models import AuditConfiguration

logger = get_logger("scheduler")

FULL_AUDIT_JOB = "full_audit"
RECHECK_JOB = "consistency_recheck"
ALERT_SWEEP_JOB = "alert_sweep"
JOB_IDS = (FULL_AUDIT_JOB, RECHECK_JOB, ALERT_SWEEP_JOB)


class AuditScheduler:
    """Owns the periodic tasks for one AuditEngine."""

    def __init__(self, engine: AuditEngine, scheduler: AsyncIOScheduler | None = None):
        self.engine = engine
        self.scheduler = scheduler or AsyncIOScheduler()
        engine.add_config_listener(self._on_config_change)

    # ── Jobs ──

    async def full_audit_job(self):
        """Run the full audit pipeline."""
        logger.info("Scheduled NAP audit starting...")
        try:
            report = await self.engine.run_full_audit()
            logger.info(f"Scheduled audit complete. Score: {report.overall_score}")
        except Exception as e:
            logger.error(f"Scheduled audit failed: {e}")

    async def recheck_job(self):
        try:
            changed = await self.engine.run_consistency_recheck()
            if changed:
                logger.info(f"Consistency drift on: {', '.join(changed)}")
        except Exception as e:
            logger.error(f"Consistency re-check failed: {e}")

    async def alert_sweep_job(self):
        try:
            await self.engine.run_alert_sweep()
        except Exception as e:
            logger.error(f"Alert sweep failed: {e}")

    # ── Lifecycle ──

    def _schedule(self, config: AuditConfiguration) -> list[str]:
        """Add the jobs the configuration calls for. Returns their ids."""
        if not config.enabled:
            logger.info("Audits disabled via config, nothing scheduled")
            return []

        self.scheduler.add_job(
            self.full_audit_job,
            "interval",
            hours=config.audit_frequency_hours,
            id=FULL_AUDIT_JOB,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )
        scheduled = [FULL_AUDIT_JOB]

        if config.monitoring_enabled:
            self.scheduler.add_job(
                self.recheck_job,
                "interval",
                hours=config.recheck_interval_hours,
                id=RECHECK_JOB,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self.scheduler.add_job(
                self.alert_sweep_job,
                "interval",
                hours=config.alert_sweep_interval_hours,
                id=ALERT_SWEEP_JOB,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            scheduled += [RECHECK_JOB, ALERT_SWEEP_JOB]

        logger.info(
            f"Scheduled {scheduled}; full audit every {config.audit_frequency_hours}h"
        )
        return scheduled

    def _cancel_all(self) -> None:
        for job_id in JOB_IDS:
            if self.scheduler.get_job(job_id) is not None:
                self.scheduler.remove_job(job_id)

    def start(self) -> list[str]:
        """Configure and start the scheduler."""
        if not settings.scheduler_enabled:
            logger.info("Scheduler disabled via settings")
            return []
        scheduled = self._schedule(self.engine.get_config())
        if not self.scheduler.running:
            self.scheduler.start()
        logger.info("Scheduler started")
        return scheduled

    def restart(self, config: AuditConfiguration | None = None) -> list[str]:
        """Cancel every job, then schedule again with ``config``."""
        self._cancel_all()
        return self._schedule(config or self.engine.get_config())

    def _on_config_change(self, config: AuditConfiguration) -> None:
        if not self.scheduler.running:
            return
        logger.info("Configuration changed, restarting scheduled jobs")
        self.restart(config)

    def stop(self) -> None:
        """Shutdown the scheduler gracefully."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    def job_ids(self) -> list[str]:
        return sorted(job.id for job in self.scheduler.get_jobs())

"""In-process escalation scheduler built on APScheduler.

Production runs the scan from Celery beat
(prflow.workers.escalation_tasks). This scheduler serves single-process
deployments and tests: the session factory, clock and policy are
injected, and run_once() performs a scan synchronously.
"""
import logging
from collections.abc import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from prflow.core.clock import Clock, utcnow
from prflow.services.escalation import EscalationPolicy, run_escalation_scan

logger = logging.getLogger(__name__)

JOB_ID = "escalation-scan"


class EscalationScheduler:
    """Runs the escalation scan on a fixed interval."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock = utcnow,
        policy: EscalationPolicy | None = None,
        interval_minutes: int = 15,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.policy = policy or EscalationPolicy.from_settings()
        self.interval_minutes = interval_minutes
        self.scheduler = BackgroundScheduler(
            job_defaults={"coalesce": True, "max_instances": 1},
            timezone="UTC",
        )

    def run_once(self) -> dict[str, int]:
        """Scan now using the injected clock."""
        with self.session_factory() as db:
            return run_escalation_scan(db, now=self.clock(), policy=self.policy)

    def _tick(self) -> None:
        try:
            self.run_once()
        except Exception:
            logger.exception("Scheduled escalation scan failed")

    def start(self) -> None:
        if self.scheduler.running:
            return
        self.scheduler.add_job(
            self._tick,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=JOB_ID,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("Escalation scheduler started (every %d min)", self.interval_minutes)

    def stop(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Escalation scheduler stopped")

    def is_running(self) -> bool:
        return self.scheduler.running

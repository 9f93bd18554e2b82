"""Celery task for the periodic escalation scan."""
import logging

from prflow.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="prflow.workers.escalation_tasks.run_escalation_scan")
def run_escalation_scan():
    """Escalate stale level 1/2 requests and auto-reject level 3 timeouts.

    Runs every ESCALATION_SCAN_INTERVAL_MINUTES from beat. Safe to run
    repeatedly: requests already escalated or rejected are skipped.
    """
    logger.info("run_escalation_scan: starting")
    try:
        from prflow.db.session import SyncSessionLocal
        from prflow.services import escalation as escalation_svc

        with SyncSessionLocal() as db:
            stats = escalation_svc.run_escalation_scan(db)

        logger.info(
            "run_escalation_scan: complete, escalated=%d rejected=%d errors=%d",
            stats["escalated"], stats["rejected"], stats["errors"],
        )
        return stats

    except Exception as exc:
        logger.exception("run_escalation_scan failed: %s", exc)
        return {"status": "error", "error": str(exc)}

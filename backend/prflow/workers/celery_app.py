from datetime import timedelta

from celery import Celery

from prflow.core.config import settings

celery_app = Celery(
    "prflow_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "prflow.workers.escalation_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
)

celery_app.conf.beat_schedule = {
    "run-escalation-scan": {
        "task": "prflow.workers.escalation_tasks.run_escalation_scan",
        "schedule": timedelta(minutes=settings.ESCALATION_SCAN_INTERVAL_MINUTES),
    },
}

"""Gunicorn production configuration.

Run with: gunicorn -c gunicorn.conf.py prflow.main:app (from backend/).

Escalation scans belong to Celery beat in multi-worker deployments; leave
ESCALATION_INPROCESS_SCHEDULER off here or every worker starts its own
scheduler.
"""
import multiprocessing
import os

bind = os.getenv("PRFLOW_BIND", "0.0.0.0:8000")
workers = int(os.getenv("PRFLOW_WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
# sync handlers run in the threadpool; long DB waits on row locks stay under this
timeout = 60
keepalive = 5
max_requests = 1000
max_requests_jitter = 100
preload_app = True
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

"""Celery application configuration and beat schedule.

Celery only fires the invocations. Claims and leases live in the database,
so a duplicated or overlapping task run is harmless.
"""

from celery import Celery
from celery.schedules import crontab

from pricetrack.config import get_settings

settings = get_settings()

celery_app = Celery(
    "pricetrack",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "pricetrack.tasks.pricing_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    task_track_started=True,
    task_time_limit=600,
    task_soft_time_limit=540,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

celery_app.conf.beat_schedule = {
    "run-daily-pricing": {
        "task": "pricetrack.tasks.pricing_tasks.run_daily_pricing",
        "schedule": crontab(minute="*/10"),
    },
    "drain-pending-jobs": {
        "task": "pricetrack.tasks.pricing_tasks.drain_pending_jobs",
        "schedule": crontab(minute="*"),
    },
}

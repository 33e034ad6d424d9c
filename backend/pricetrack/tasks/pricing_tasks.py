"""Scheduled pricing work: the daily run and the scrape job queue."""

import logging
import socket

from pricetrack.tasks.celery_app import celery_app
from pricetrack.config import get_settings
from pricetrack.models.base import SyncSessionLocal
from pricetrack.services.daily_run import process_due_work
from pricetrack.services.job_runner import run_next

logger = logging.getLogger(__name__)
settings = get_settings()


def task_worker_id(task) -> str:
    return f"celery:{socket.gethostname()}:{task.request.id}"


@celery_app.task(bind=True, name="pricetrack.tasks.pricing_tasks.run_daily_pricing")
def run_daily_pricing(self):
    """One time-bounded slice of today's run. Repeated calls drain it."""
    db = SyncSessionLocal()
    try:
        report = process_due_work(db, worker_id=task_worker_id(self))
        return {
            "run_id": report.run_id,
            "date": report.date.isoformat(),
            "processed_ok": report.processed_ok,
            "processed_fail": report.processed_fail,
            "pending_remaining": report.pending_remaining,
        }
    finally:
        db.close()


@celery_app.task(bind=True, name="pricetrack.tasks.pricing_tasks.drain_pending_jobs")
def drain_pending_jobs(self, limit: int | None = None):
    """Claim and run due scrape jobs until the queue is empty or ``limit`` is hit."""
    limit = limit or settings.job_drain_limit
    worker_id = task_worker_id(self)

    db = SyncSessionLocal()
    try:
        states: dict[str, int] = {}
        processed = 0
        while processed < limit:
            outcome = run_next(db, worker_id)
            if outcome is None:
                break
            processed += 1
            states[outcome.state.value] = states.get(outcome.state.value, 0) + 1

        if processed:
            logger.info(f"Drained {processed} jobs: {states}")
        return {"processed": processed, "states": states}
    finally:
        db.close()

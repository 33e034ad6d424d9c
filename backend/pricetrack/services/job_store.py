"""Job store and lease manager.

The database is the only coordination medium between workers. A claim is a
single transaction that locks one eligible row with ``FOR UPDATE SKIP
LOCKED``, so concurrent claimants skip each other's rows instead of
blocking, and each job is handed to at most one worker. A lease that is
never released simply expires; the next claimer picks the job up again.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from pricetrack.config import get_settings
from pricetrack.exceptions import InvalidJobState, JobNotFound
from pricetrack.models.base import store_now
from pricetrack.models.job import Job, JobState, JobType
from pricetrack.models.tracked_item import TrackedItem
from pricetrack.schemas.job import JobChangeSet
from pricetrack.services.changeset import build_update_values

logger = logging.getLogger(__name__)
settings = get_settings()


def _lease_expired(model, now: datetime):
    return or_(model.lease_expires_at.is_(None), model.lease_expires_at < now)


def _lease_live(job: Job, now: datetime) -> bool:
    return job.lease_expires_at is not None and job.lease_expires_at >= now


def claim_next(
    db: Session,
    worker_id: str,
    lease_seconds: int | None = None,
    now: datetime | None = None,
) -> Job | None:
    """Lease the next due job to ``worker_id``. Returns None when nothing is claimable.

    Eligible rows are PENDING jobs without a live lease, plus RUNNING jobs
    whose lease expired (their worker died mid-run).
    """
    if not worker_id:
        raise ValueError("worker_id is required")
    lease_seconds = lease_seconds or settings.job_lease_seconds
    now = now or store_now(db)

    job = (
        db.query(Job)
        .filter(
            Job.next_run_at <= now,
            or_(
                and_(Job.state == JobState.PENDING, _lease_expired(Job, now)),
                and_(Job.state == JobState.RUNNING, Job.lease_expires_at < now),
            ),
        )
        .order_by(Job.priority.desc().nullslast(), Job.next_run_at.asc(), Job.id.asc())
        .with_for_update(skip_locked=True)
        .first()
    )

    if job is None:
        db.commit()
        return None

    previous_owner = job.lease_owner if job.state == JobState.RUNNING else None

    job.state = JobState.RUNNING
    job.lease_owner = worker_id
    job.lease_expires_at = now + timedelta(seconds=lease_seconds)
    if job.started_at is None:
        job.started_at = now
    db.commit()

    if previous_owner:
        logger.warning(f"Job {job.id} reclaimed by {worker_id} after lease of {previous_owner} expired")
    else:
        logger.info(f"Job {job.id} claimed by {worker_id} (lease {lease_seconds}s)")
    return job


def record_attempt(db: Session, job_id: int, worker_id: str, attempt: int) -> bool:
    """Persist the attempt number while holding the lease. False if the lease was lost."""
    updated = db.query(Job).filter(
        Job.id == job_id,
        Job.lease_owner == worker_id,
    ).update({"attempts": attempt}, synchronize_session=False)
    db.commit()
    return updated == 1


def release_lease(db: Session, job_id: int, worker_id: str, **changes) -> bool:
    """Apply a terminal transition and clear the lease, only if ``worker_id`` still owns it."""
    values = {"lease_owner": None, "lease_expires_at": None, **changes}
    updated = db.query(Job).filter(
        Job.id == job_id,
        Job.lease_owner == worker_id,
    ).update(values, synchronize_session=False)
    db.commit()

    if updated != 1:
        logger.warning(f"Job {job_id}: lease no longer held by {worker_id}, transition dropped")
        return False
    return True


def create_jobs(
    db: Session,
    item_ids: Iterable[int],
    priority: int | None = None,
    source: str = "manual_ui",
    max_attempts: int | None = None,
) -> tuple[list[int], list[int]]:
    """Create one PENDING scrape job per distinct item id.

    Returns (created job ids, skipped item ids that do not exist).
    """
    wanted: list[int] = []
    for raw in item_ids:
        try:
            item_id = int(raw)
        except (TypeError, ValueError):
            continue
        if item_id > 0 and item_id not in wanted:
            wanted.append(item_id)

    if not wanted:
        return [], []

    existing = {
        row.id for row in db.query(TrackedItem.id).filter(TrackedItem.id.in_(wanted)).all()
    }
    skipped = [item_id for item_id in wanted if item_id not in existing]

    jobs = [
        Job(
            job_type=JobType.SCRAPE_URL,
            state=JobState.PENDING,
            priority=settings.job_default_priority if priority is None else priority,
            item_id=item_id,
            payload={"source": source, "item_id": item_id},
            attempts=0,
            max_attempts=max_attempts or settings.job_max_attempts,
        )
        for item_id in wanted
        if item_id in existing
    ]
    db.add_all(jobs)
    db.commit()

    created = [job.id for job in jobs]
    logger.info(f"Created {len(created)} jobs (skipped {len(skipped)} unknown items)")
    return created, skipped


def get_job(db: Session, job_id: int) -> Job:
    job = db.get(Job, job_id)
    if job is None:
        raise JobNotFound(job_id)
    return job


def cancel_job(db: Session, job_id: int, now: datetime | None = None) -> Job:
    """Operator cancel. A job running under a live lease cannot be cancelled."""
    job = get_job(db, job_id)
    now = now or store_now(db)

    if job.state in (JobState.SUCCEEDED, JobState.CANCELLED):
        raise InvalidJobState(f"Job {job_id} is already {job.state.value}")
    if job.state == JobState.RUNNING and _lease_live(job, now):
        raise InvalidJobState(f"Job {job_id} is running under lease of {job.lease_owner}")

    job.state = JobState.CANCELLED
    job.lease_owner = None
    job.lease_expires_at = None
    job.finished_at = now
    db.commit()
    logger.info(f"Job {job_id} cancelled")
    return job


def update_job(db: Session, job_id: int, change_set: JobChangeSet, now: datetime | None = None) -> Job:
    """Partial update of a job's scheduling fields through one parameterized UPDATE."""
    job = get_job(db, job_id)
    now = now or store_now(db)

    if job.state == JobState.RUNNING and _lease_live(job, now):
        raise InvalidJobState(f"Job {job_id} is running under lease of {job.lease_owner}")

    values = build_update_values(change_set)
    if values:
        db.query(Job).filter(Job.id == job_id).update(values, synchronize_session=False)
    db.commit()
    db.refresh(job)
    return job

"""Job runner — executes one claimed scrape job and drives its state transition.

Every attempt is committed before the engine is called, so the backoff
sleep never holds a transaction open. Terminal transitions go through
``release_lease`` and are dropped if another worker reclaimed the job.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

import httpx
from sqlalchemy import func
from sqlalchemy.orm import Session

from pricetrack.config import get_settings
from pricetrack.engines.base import ExtractResult
from pricetrack.engines.registry import extract, get_engine_class
from pricetrack.exceptions import EngineUnresolved, MalformedPayload, PricingError, is_retryable, truncate_error
from pricetrack.models.base import dialect_insert, store_now
from pricetrack.models.job import Job, JobResult, JobState, ResultStatus
from pricetrack.models.tracked_item import ItemState, TrackedItem
from pricetrack.services.job_store import claim_next, record_attempt, release_lease
from pricetrack.services.retry import backoff_seconds

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class RunOutcome:
    job_id: int
    state: JobState
    error: str | None = None
    lease_lost: bool = False


def _as_engine_id(value) -> int | None:
    try:
        engine_id = int(value)
    except (TypeError, ValueError):
        return None
    return engine_id if engine_id > 0 else None


def resolve_engine_id(job: Job, item: TrackedItem | None) -> int:
    """Payload engine first, then the item's default engine."""
    payload = job.payload or {}
    engine_id = _as_engine_id(payload.get("engine_id"))
    if engine_id is None and item is not None:
        engine_id = _as_engine_id(item.engine_id)
    if engine_id is None:
        raise EngineUnresolved(f"engine_id not found for item_id={job.item_id}")
    return engine_id


def resolve_source_url(job: Job, item: TrackedItem | None) -> str:
    payload = job.payload or {}
    url = payload.get("url") or (item.source_url if item is not None else None)
    if not isinstance(url, str) or not url.strip():
        raise MalformedPayload(f"no source url for job_id={job.id} item_id={job.item_id}")
    return url.strip()


def build_candidates(job: Job, engine_id: int, source_url: str, result: ExtractResult) -> list[dict]:
    """One offer candidate per presentation found on the page."""
    return [
        {
            "item_id": job.item_id,
            "engine_id": engine_id,
            "url_original": source_url,
            "url_canonical": result.canonical_url,
            "presentation": point.presentation,
            "price": point.price,
            "source": point.source,
        }
        for point in result.prices
    ]


def upsert_job_result(
    db: Session,
    job_id: int,
    status: ResultStatus,
    candidates: list | None = None,
    warnings: list | None = None,
    errors: list | None = None,
    engine_id: int | None = None,
    engine_version: str | None = None,
) -> None:
    values = {
        "job_id": job_id,
        "status": status,
        "candidates": candidates or [],
        "warnings": warnings or [],
        "errors": errors or [],
        "engine_id": engine_id,
        "engine_version": engine_version,
    }
    stmt = dialect_insert(db, JobResult).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[JobResult.job_id],
        set_={
            "status": stmt.excluded.status,
            "candidates": stmt.excluded.candidates,
            "warnings": stmt.excluded.warnings,
            "errors": stmt.excluded.errors,
            "engine_id": stmt.excluded.engine_id,
            "engine_version": stmt.excluded.engine_version,
            "updated_at": func.now(),
        },
    )
    db.execute(stmt)
    db.commit()


def _set_item_state(db: Session, item_id: int | None, state: ItemState, message: str | None = None) -> None:
    if item_id is None:
        return
    db.query(TrackedItem).filter(TrackedItem.id == item_id).update(
        {"state": state, "error_message": message},
        synchronize_session=False,
    )
    db.commit()


def _fail(
    db: Session,
    job: Job,
    worker_id: str,
    error: BaseException,
    attempts: int,
    engine_id: int | None = None,
) -> RunOutcome:
    message = truncate_error(error, settings.error_message_max_length)
    upsert_job_result(
        db,
        job.id,
        ResultStatus.ERROR,
        errors=[{"code": getattr(error, "code", error.__class__.__name__), "message": message}],
        engine_id=engine_id,
    )
    released = release_lease(
        db,
        job.id,
        worker_id,
        state=JobState.FAILED,
        attempts=attempts,
        last_error=message,
        finished_at=store_now(db),
    )
    if not released:
        return RunOutcome(job_id=job.id, state=JobState.RUNNING, error=message, lease_lost=True)

    _set_item_state(db, job.item_id, ItemState.ERROR, message)
    logger.error(f"Job {job.id} failed after {attempts} attempt(s): {message}")
    return RunOutcome(job_id=job.id, state=JobState.FAILED, error=message)


def run_job(
    db: Session,
    job: Job,
    worker_id: str,
    sleep: Callable[[float], None] = time.sleep,
    client: httpx.Client | None = None,
) -> RunOutcome:
    """Run a job this worker holds the lease on, through retries, to a terminal state."""
    job_id = job.id
    item = db.get(TrackedItem, job.item_id) if job.item_id is not None else None

    try:
        engine_id = resolve_engine_id(job, item)
        source_url = resolve_source_url(job, item)
    except (EngineUnresolved, MalformedPayload) as e:
        # Configuration errors are terminal: retrying cannot fix them
        return _fail(db, job, worker_id, e, attempts=job.attempts + 1)

    engine_class = get_engine_class(engine_id)
    engine_version = engine_class.version if engine_class else None

    max_attempts = job.max_attempts
    first_attempt = job.attempts + 1
    last_error: BaseException | None = None
    result: ExtractResult | None = None
    attempt = job.attempts

    for attempt in range(first_attempt, max_attempts + 1):
        if not record_attempt(db, job_id, worker_id, attempt):
            logger.warning(f"Job {job_id}: lease lost before attempt {attempt}")
            return RunOutcome(job_id=job_id, state=JobState.RUNNING, lease_lost=True)

        try:
            result = extract(engine_id, source_url, client=client)
            break
        except Exception as e:
            last_error = e
            logger.warning(f"Job {job_id} attempt {attempt}/{max_attempts} failed: {e}")
            if not is_retryable(e):
                break
            if attempt < max_attempts:
                sleep(backoff_seconds(attempt))

    if result is None:
        if last_error is None:
            last_error = PricingError(f"attempts_exhausted ({job.attempts}/{max_attempts})")
        return _fail(db, job, worker_id, last_error, attempts=attempt, engine_id=engine_id)

    candidates = build_candidates(job, engine_id, source_url, result)
    warnings = []
    status = ResultStatus.OK
    if result.canonical_url and result.canonical_url != source_url:
        status = ResultStatus.WARNING
        warnings.append({
            "code": "CANONICAL_URL_CHANGED",
            "message": f"Page declares canonical URL {result.canonical_url}",
        })

    upsert_job_result(
        db,
        job_id,
        status,
        candidates=candidates,
        warnings=warnings,
        engine_id=engine_id,
        engine_version=engine_version,
    )
    released = release_lease(
        db,
        job_id,
        worker_id,
        state=JobState.WAITING_REVIEW,
        last_error=None,
        finished_at=store_now(db),
    )
    if not released:
        return RunOutcome(job_id=job_id, state=JobState.RUNNING, lease_lost=True)

    _set_item_state(db, job.item_id, ItemState.WAITING_REVIEW)
    logger.info(f"Job {job_id} waiting review with {len(candidates)} candidate(s)")
    return RunOutcome(job_id=job_id, state=JobState.WAITING_REVIEW)


def run_next(
    db: Session,
    worker_id: str,
    lease_seconds: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
    client: httpx.Client | None = None,
) -> RunOutcome | None:
    """Claim and execute exactly one job. None when no job is due."""
    job = claim_next(db, worker_id, lease_seconds)
    if job is None:
        return None
    return run_job(db, job, worker_id, sleep=sleep, client=client)

"""Scrape job API endpoints."""

from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from pricetrack.exceptions import InvalidJobState, JobNotFound, NoCandidate
from pricetrack.models.base import get_db, get_sync_db
from pricetrack.models.job import Job, JobResult, JobState
from pricetrack.models.offer import Offer
from pricetrack.models.tracked_item import TrackedItem
from pricetrack.schemas.job import (
    ApproveRequest,
    ApproveResponse,
    JobChangeSet,
    JobCreate,
    JobCreateResponse,
    JobDetail,
    JobRead,
    JobSummary,
    RunNextRequest,
    RunNextResponse,
)
from pricetrack.services import job_store
from pricetrack.services.approval import approve_job
from pricetrack.services.job_runner import run_next

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("/run-next", response_model=RunNextResponse)
def run_next_job(
    body: RunNextRequest | None = None,
    db: Session = Depends(get_sync_db),
):
    """Claim the next due job and run it to a terminal state."""
    body = body or RunNextRequest()
    worker_id = body.worker_id or f"api:run-next:{uuid4().hex[:12]}"

    outcome = run_next(db, worker_id, lease_seconds=body.lease_duration_seconds)
    if outcome is None:
        return RunNextResponse(claimed=False)

    return RunNextResponse(
        claimed=True,
        job_id=outcome.job_id,
        status=outcome.state,
        error=outcome.error if not outcome.lease_lost else "lease_lost",
    )


@router.post("", response_model=JobCreateResponse)
def create_jobs(
    body: JobCreate,
    db: Session = Depends(get_sync_db),
):
    """Queue one scrape job per item."""
    created, skipped = job_store.create_jobs(db, body.item_ids, priority=body.priority)
    return JobCreateResponse(created_job_ids=created, skipped_item_ids=skipped)


@router.get("", response_model=list[JobSummary])
async def list_jobs(
    db: AsyncSession = Depends(get_db),
    state: JobState | None = Query(None, description="Filter by job state"),
    item_id: int | None = Query(None, description="Filter by item"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    """List jobs with result and offer rollups."""
    offers_count = (
        select(func.count(Offer.id))
        .where(Offer.item_id == Job.item_id)
        .correlate(Job)
        .scalar_subquery()
    )
    query = (
        select(Job, JobResult, TrackedItem, offers_count.label("offers_count"))
        .outerjoin(JobResult, JobResult.job_id == Job.id)
        .outerjoin(TrackedItem, TrackedItem.id == Job.item_id)
    )

    if state:
        query = query.where(Job.state == state)
    if item_id:
        query = query.where(Job.item_id == item_id)

    query = query.order_by(Job.id.desc()).offset(skip).limit(limit)
    result = await db.execute(query)

    return [
        JobSummary(
            **JobRead.model_validate(job).model_dump(),
            engine_id=(job_result.engine_id if job_result else None) or (item.engine_id if item else None),
            url_canonical=item.url_canonical if item else None,
            result_status=job_result.status if job_result else None,
            candidates_count=len(job_result.candidates or []) if job_result else 0,
            warnings_count=len(job_result.warnings or []) if job_result else 0,
            errors_count=len(job_result.errors or []) if job_result else 0,
            offers_count=count or 0,
        )
        for job, job_result, item, count in result.all()
    ]


@router.get("/{job_id}", response_model=JobDetail)
def get_job(
    job_id: int,
    db: Session = Depends(get_sync_db),
):
    """Get a single job with its engine result."""
    try:
        job = job_store.get_job(db, job_id)
    except JobNotFound:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobDetail.model_validate(job)


@router.patch("/{job_id}", response_model=JobRead)
def update_job(
    job_id: int,
    change_set: JobChangeSet,
    db: Session = Depends(get_sync_db),
):
    """Partially update a job's scheduling fields."""
    try:
        job = job_store.update_job(db, job_id, change_set)
    except JobNotFound:
        raise HTTPException(status_code=404, detail="Job not found")
    except InvalidJobState as e:
        raise HTTPException(status_code=409, detail=str(e))
    return JobRead.model_validate(job)


@router.post("/{job_id}/cancel", response_model=JobRead)
def cancel_job(
    job_id: int,
    db: Session = Depends(get_sync_db),
):
    try:
        job = job_store.cancel_job(db, job_id)
    except JobNotFound:
        raise HTTPException(status_code=404, detail="Job not found")
    except InvalidJobState as e:
        raise HTTPException(status_code=409, detail=str(e))
    return JobRead.model_validate(job)


@router.post("/{job_id}/approve", response_model=ApproveResponse)
def approve(
    job_id: int,
    body: ApproveRequest | None = None,
    db: Session = Depends(get_sync_db),
):
    """Promote a reviewed job's candidates into offers."""
    body = body or ApproveRequest()
    try:
        result = approve_job(db, job_id, candidate_index=body.candidate_index, candidate=body.candidate)
    except JobNotFound:
        raise HTTPException(status_code=404, detail="Job not found")
    except (InvalidJobState, NoCandidate) as e:
        raise HTTPException(status_code=409, detail=str(e))

    return ApproveResponse(
        offer_ids=result.offer_ids,
        inserted_count=result.inserted_count,
        updated_count=result.updated_count,
        already_succeeded=result.already_succeeded,
    )

"""Daily pricing run API endpoints."""

from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from pricetrack.dependencies.auth import require_cron_secret
from pricetrack.models.base import get_db, get_sync_db
from pricetrack.models.pricing_run import PricingRun, RunStatus
from pricetrack.schemas.pricing_run import (
    DailyRunResponse,
    PricingRunDetail,
    PricingRunItemRead,
    PricingRunRead,
)
from pricetrack.services.daily_run import get_run_detail, process_due_work

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.post("/daily-run", response_model=DailyRunResponse, dependencies=[Depends(require_cron_secret)])
def daily_run(db: Session = Depends(get_sync_db)):
    """Process one time-bounded batch of today's pricing run.

    Safe to call repeatedly: each call resumes where the previous one stopped.
    """
    report = process_due_work(db, worker_id=f"api:daily-run:{uuid4().hex[:12]}")
    return DailyRunResponse(
        run_id=report.run_id,
        date=report.date,
        batch_size=report.batch_size,
        processed_ok=report.processed_ok,
        processed_fail=report.processed_fail,
        processed_skipped=report.processed_skipped,
        inserted_rows=report.inserted_rows,
        pending_remaining=report.pending_remaining,
        time_ms=report.time_ms,
    )


@router.get("/runs", response_model=list[PricingRunRead])
async def list_runs(
    db: AsyncSession = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(30, ge=1, le=100),
    status: RunStatus | None = Query(None, description="Filter by status"),
):
    """List recent pricing runs, newest date first."""
    query = select(PricingRun)
    if status:
        query = query.where(PricingRun.status == status)

    query = query.order_by(PricingRun.as_of_date.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/runs/{run_id}", response_model=PricingRunDetail)
def get_run(
    run_id: int,
    db: Session = Depends(get_sync_db),
):
    """Get a single run with per-offer status and errors."""
    run, items = get_run_detail(db, run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Run not found")

    return PricingRunDetail(
        **PricingRunRead.model_validate(run).model_dump(),
        items=[PricingRunItemRead(**row) for row in items],
    )

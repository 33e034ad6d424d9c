"""Tracked item API endpoints: price history, offers and bulk ingestion."""

import time
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from pricetrack.dependencies.auth import require_cron_secret
from pricetrack.exceptions import EngineNotImplemented
from pricetrack.models.base import get_db, get_sync_db
from pricetrack.models.daily_price import DailyPricePoint
from pricetrack.models.offer import Offer, OfferState
from pricetrack.models.tracked_item import TrackedItem
from pricetrack.schemas.item import BulkIngestRequest, BulkIngestResponse, BulkIngestResult
from pricetrack.schemas.offer import OfferRead, PriceHistoryResponse, PricePointRead
from pricetrack.services.ingestion import ingest_urls

router = APIRouter(prefix="/items", tags=["items"])


async def _require_item(db: AsyncSession, item_id: int) -> None:
    found = (await db.execute(select(TrackedItem.id).where(TrackedItem.id == item_id))).scalar_one_or_none()
    if found is None:
        raise HTTPException(status_code=404, detail="Item not found")


@router.get("/{item_id}/price-history", response_model=PriceHistoryResponse)
async def price_history(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    days: int = Query(30, ge=1, le=365),
):
    """Daily prices of an item over the last ``days`` days, oldest first."""
    await _require_item(db, item_id)

    today = (await db.execute(select(func.current_date()))).scalar_one()
    since = today - timedelta(days=days)

    query = (
        select(DailyPricePoint)
        .where(DailyPricePoint.item_id == item_id)
        .where(DailyPricePoint.as_of_date >= since)
        .order_by(DailyPricePoint.as_of_date.asc(), DailyPricePoint.presentation.asc())
    )
    result = await db.execute(query)
    rows = [PricePointRead.model_validate(p) for p in result.scalars().all()]
    return PriceHistoryResponse(item_id=item_id, days=days, rows=rows)


@router.get("/{item_id}/offers", response_model=list[OfferRead])
async def list_offers(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    state: OfferState | None = Query(None, description="Filter by offer state"),
):
    await _require_item(db, item_id)

    query = select(Offer).where(Offer.item_id == item_id)
    if state:
        query = query.where(Offer.state == state)

    query = query.order_by(Offer.presentation.asc(), Offer.id.asc())
    result = await db.execute(query)
    return result.scalars().all()


@router.post("/bulk", response_model=BulkIngestResponse, dependencies=[Depends(require_cron_secret)])
def bulk_ingest(
    body: BulkIngestRequest,
    db: Session = Depends(get_sync_db),
):
    """Track a list of supplier URLs, one offer per presentation found on each page."""
    started = time.monotonic()
    urls = body.url_list()
    if not urls:
        raise HTTPException(status_code=400, detail="No URLs provided")

    try:
        report = ingest_urls(db, urls, body.engine_id)
    except EngineNotImplemented as e:
        raise HTTPException(status_code=400, detail=str(e))

    return BulkIngestResponse(
        created_items=report.created_items,
        created_offers=report.created_offers,
        results=[
            BulkIngestResult(url=r.url, ok=r.ok, item_id=r.item_id, offers=r.offers, error=r.error)
            for r in report.results
        ],
        time_ms=int((time.monotonic() - started) * 1000),
    )

"""Daily run orchestrator — one pricing run per calendar day.

Each invocation is bounded and resumable: it seeds the day's run, claims a
batch of due run items with ``FOR UPDATE SKIP LOCKED``, prices them one at a
time until the wall-clock budget runs out, and leaves the rest PENDING for
the next invocation. Seeding and price snapshots are idempotent upserts, so
an external scheduler can call this as often as it likes.
"""

import logging
import math
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable

import httpx
from sqlalchemy import func, literal, select, update
from sqlalchemy.orm import Session

from pricetrack.config import get_settings
from pricetrack.engines.registry import extract
from pricetrack.exceptions import PresentationNotFound, PricingError, is_retryable, truncate_error
from pricetrack.models.base import dialect_insert, store_now, store_today
from pricetrack.models.daily_price import DailyPricePoint
from pricetrack.models.offer import Offer, OfferState
from pricetrack.models.pricing_run import PricingRun, PricingRunItem, RunItemStatus, RunStatus
from pricetrack.models.tracked_item import TrackedItem
from pricetrack.services.retry import backoff_seconds

logger = logging.getLogger(__name__)
settings = get_settings()

# Claimed items stay leased for the whole budget plus one item's worst case
RUN_ITEM_LEASE_MARGIN_SECONDS = 120


@dataclass
class DailyRunReport:
    run_id: int
    date: date
    batch_size: int
    processed_ok: int = 0
    processed_fail: int = 0
    processed_skipped: int = 0
    inserted_rows: int = 0
    pending_remaining: int = 0
    time_ms: int = 0


def get_or_create_run(db: Session, as_of_date: date) -> PricingRun:
    """Unique-date upsert. An existing run keeps its status."""
    stmt = dialect_insert(db, PricingRun).values(as_of_date=as_of_date, status=RunStatus.RUNNING)
    stmt = stmt.on_conflict_do_nothing(index_elements=[PricingRun.as_of_date])
    db.execute(stmt)
    run = db.query(PricingRun).filter(PricingRun.as_of_date == as_of_date).one()
    db.commit()
    return run


def seed_run_items(db: Session, run_id: int) -> int:
    """Add a PENDING item for every active offer of a selected item not yet in the run. Returns rows inserted."""
    active_offers = (
        select(literal(run_id), Offer.id)
        .join(TrackedItem, TrackedItem.id == Offer.item_id)
        .where(Offer.state == OfferState.OK, TrackedItem.selected.is_(True))
    )

    stmt = dialect_insert(db, PricingRunItem).from_select(["run_id", "offer_id"], active_offers)
    stmt = stmt.on_conflict_do_nothing(index_elements=["run_id", "offer_id"])
    result = db.execute(stmt)

    inserted = max(result.rowcount or 0, 0)
    if inserted:
        # New offers reopen a run that an earlier invocation had finalized
        db.query(PricingRun).filter(
            PricingRun.id == run_id,
            PricingRun.status != RunStatus.RUNNING,
        ).update({"status": RunStatus.RUNNING, "finished_at": None}, synchronize_session=False)

    db.execute(
        update(PricingRun)
        .where(PricingRun.id == run_id)
        .values(total_items=_count_items())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return inserted


def _count_items(*conditions):
    return (
        select(func.count(PricingRunItem.id))
        .where(PricingRunItem.run_id == PricingRun.id, *conditions)
        .scalar_subquery()
    )


def claim_run_items(
    db: Session,
    run_id: int,
    worker_id: str,
    batch_size: int,
    max_attempts: int,
    lease_seconds: int,
    now: datetime | None = None,
) -> list[int]:
    """Lease up to ``batch_size`` due items of a run to ``worker_id``. Returns their ids in order."""
    now = now or store_now(db)
    items = (
        db.query(PricingRunItem)
        .filter(
            PricingRunItem.run_id == run_id,
            PricingRunItem.status == RunItemStatus.PENDING,
            PricingRunItem.attempts < max_attempts,
            (PricingRunItem.lease_expires_at.is_(None)) | (PricingRunItem.lease_expires_at < now),
        )
        .order_by(PricingRunItem.updated_at.asc(), PricingRunItem.id.asc())
        .limit(batch_size)
        .with_for_update(skip_locked=True)
        .all()
    )

    claimed = [item.id for item in items]
    for item in items:
        item.lease_owner = worker_id
        item.lease_expires_at = now + timedelta(seconds=lease_seconds)
    db.commit()
    return claimed


def _finish_item(db: Session, run_item_id: int, worker_id: str, **values) -> bool:
    """Commit the item's outcome and drop its lease, or roll back if the lease was lost."""
    updated = db.query(PricingRunItem).filter(
        PricingRunItem.id == run_item_id,
        PricingRunItem.lease_owner == worker_id,
    ).update({"lease_owner": None, "lease_expires_at": None, **values}, synchronize_session=False)

    if updated != 1:
        db.rollback()
        logger.warning(f"Run item {run_item_id}: lease no longer held by {worker_id}")
        return False
    db.commit()
    return True


def release_run_items(db: Session, run_item_ids: list[int], worker_id: str) -> None:
    """Return claimed but unprocessed items to the pool immediately."""
    if not run_item_ids:
        return
    db.query(PricingRunItem).filter(
        PricingRunItem.id.in_(run_item_ids),
        PricingRunItem.lease_owner == worker_id,
    ).update({"lease_owner": None, "lease_expires_at": None}, synchronize_session=False)
    db.commit()


def upsert_price_point(
    db: Session,
    item_id: int,
    as_of_date: date,
    presentation: float,
    price: float,
    source_url: str | None,
    offer_id: int | None,
    run_id: int | None,
) -> None:
    """One row per (item, date, presentation); the latest price wins. Does not commit."""
    stmt = dialect_insert(db, DailyPricePoint).values(
        item_id=item_id,
        as_of_date=as_of_date,
        presentation=presentation,
        price=price,
        source_url=source_url,
        offer_id=offer_id,
        run_id=run_id,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[DailyPricePoint.item_id, DailyPricePoint.as_of_date, DailyPricePoint.presentation],
        set_={
            "price": stmt.excluded.price,
            "source_url": stmt.excluded.source_url,
            "offer_id": stmt.excluded.offer_id,
            "run_id": stmt.excluded.run_id,
            "updated_at": func.now(),
        },
    )
    db.execute(stmt)


def process_run_item(
    db: Session,
    run: PricingRun,
    run_item_id: int,
    worker_id: str,
    max_attempts: int,
    sleep: Callable[[float], None] = time.sleep,
    client: httpx.Client | None = None,
) -> RunItemStatus | None:
    """Price one offer for the run's date. Returns the item's new status, None if the lease was lost."""
    run_id, as_of_date = run.id, run.as_of_date
    run_item = db.get(PricingRunItem, run_item_id)
    offer = db.get(Offer, run_item.offer_id)

    if offer is None or offer.state != OfferState.OK:
        ok = _finish_item(db, run_item_id, worker_id, status=RunItemStatus.SKIPPED, last_error="offer_inactive")
        return RunItemStatus.SKIPPED if ok else None

    # Items deselected after seeding stay in the run but are not priced
    if offer.item is None or not offer.item.selected:
        ok = _finish_item(db, run_item_id, worker_id, status=RunItemStatus.SKIPPED, last_error="item_deselected")
        return RunItemStatus.SKIPPED if ok else None

    offer_id, item_id = offer.id, offer.item_id
    presentation = offer.presentation
    engine_id = offer.engine_id or (offer.item.engine_id if offer.item is not None else None)
    url = offer.source_url

    if not engine_id or not url:
        ok = _finish_item(
            db,
            run_item_id,
            worker_id,
            status=RunItemStatus.FAIL,
            attempts=max(run_item.attempts, max_attempts),
            last_error=f"missing_engine_or_url(engine_id={engine_id},url={url})",
        )
        return RunItemStatus.FAIL if ok else None

    last_error: BaseException | None = None
    for attempt in range(run_item.attempts + 1, max_attempts + 1):
        updated = db.query(PricingRunItem).filter(
            PricingRunItem.id == run_item_id,
            PricingRunItem.lease_owner == worker_id,
        ).update({"attempts": attempt}, synchronize_session=False)
        db.commit()
        if updated != 1:
            logger.warning(f"Run item {run_item_id}: lease lost before attempt {attempt}")
            return None

        try:
            result = extract(engine_id, url, client=client)
            point = result.price_for(presentation)
            if point is None:
                raise PresentationNotFound(presentation, [p.presentation for p in result.prices])
        except Exception as e:
            last_error = e
            logger.warning(f"Offer {offer_id} attempt {attempt}/{max_attempts} failed: {e}")
            if not is_retryable(e):
                break
            if attempt < max_attempts:
                sleep(backoff_seconds(attempt))
            continue

        upsert_price_point(
            db,
            item_id=item_id,
            as_of_date=as_of_date,
            presentation=presentation,
            price=point.price,
            source_url=result.canonical_url,
            offer_id=offer_id,
            run_id=run_id,
        )
        ok = _finish_item(db, run_item_id, worker_id, status=RunItemStatus.OK, last_error=None)
        return RunItemStatus.OK if ok else None

    message = truncate_error(last_error or PricingError("attempts_exhausted"), settings.error_message_max_length)
    ok = _finish_item(db, run_item_id, worker_id, status=RunItemStatus.FAIL, last_error=message)
    return RunItemStatus.FAIL if ok else None


def refresh_run_counters(db: Session, run_id: int, max_attempts: int) -> PricingRun:
    """Recompute rollups; finalize the run once nothing PENDING and retryable is left."""
    db.execute(
        update(PricingRun)
        .where(PricingRun.id == run_id)
        .values(
            total_items=_count_items(),
            ok_count=_count_items(PricingRunItem.status == RunItemStatus.OK),
            fail_count=_count_items(PricingRunItem.status == RunItemStatus.FAIL),
            skipped_count=_count_items(PricingRunItem.status == RunItemStatus.SKIPPED),
            pending_count=_count_items(
                PricingRunItem.status == RunItemStatus.PENDING,
                PricingRunItem.attempts < max_attempts,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()

    run = db.get(PricingRun, run_id)
    db.refresh(run)
    if run.pending_count == 0 and run.status == RunStatus.RUNNING:
        run.status = RunStatus.PARTIAL if run.fail_count > 0 else RunStatus.DONE
        run.finished_at = store_now(db)
        db.commit()
        logger.info(f"Pricing run {run_id} finalized as {run.status.value}")
    return run


def process_due_work(
    db: Session,
    worker_id: str,
    time_budget: float | None = None,
    batch_size: int | None = None,
    max_attempts: int | None = None,
    as_of_date: date | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    client: httpx.Client | None = None,
) -> DailyRunReport:
    """Run one bounded invocation of the day's pricing run."""
    started = clock()
    time_budget = settings.pricing_time_budget_seconds if time_budget is None else time_budget
    batch_size = batch_size or settings.pricing_batch_size
    max_attempts = max_attempts or settings.pricing_max_attempts

    # The store's clock decides "today", not the worker's timezone
    as_of_date = as_of_date or store_today(db)
    run = get_or_create_run(db, as_of_date)
    run_id = run.id
    seeded = seed_run_items(db, run_id)
    if seeded:
        logger.info(f"Pricing run {run_id} ({as_of_date}): seeded {seeded} items")

    claimed = claim_run_items(
        db,
        run_id,
        worker_id,
        batch_size=batch_size,
        max_attempts=max_attempts,
        lease_seconds=math.ceil(time_budget) + RUN_ITEM_LEASE_MARGIN_SECONDS,
    )
    report = DailyRunReport(run_id=run_id, date=as_of_date, batch_size=len(claimed))

    processed = 0
    for run_item_id in claimed:
        if clock() - started > time_budget:
            logger.info(f"Pricing run {run_id}: time budget of {time_budget}s exhausted after {processed} items")
            break

        status = process_run_item(
            db, run, run_item_id, worker_id,
            max_attempts=max_attempts,
            sleep=sleep,
            client=client,
        )
        processed += 1
        if status == RunItemStatus.OK:
            report.processed_ok += 1
            report.inserted_rows += 1
        elif status == RunItemStatus.FAIL:
            report.processed_fail += 1
        elif status == RunItemStatus.SKIPPED:
            report.processed_skipped += 1

    release_run_items(db, claimed[processed:], worker_id)

    run = refresh_run_counters(db, run_id, max_attempts)
    report.pending_remaining = run.pending_count
    report.time_ms = int((clock() - started) * 1000)

    logger.info(
        f"Pricing run {run_id} ({as_of_date}): batch={report.batch_size} ok={report.processed_ok} "
        f"fail={report.processed_fail} skipped={report.processed_skipped} pending={report.pending_remaining}"
    )
    return report


def get_run_detail(db: Session, run_id: int) -> tuple[PricingRun | None, list[dict]]:
    """A run with one row per run item, joined to its offer for context."""
    run = db.get(PricingRun, run_id)
    if run is None:
        return None, []

    rows = (
        db.query(PricingRunItem, Offer)
        .outerjoin(Offer, Offer.id == PricingRunItem.offer_id)
        .filter(PricingRunItem.run_id == run_id)
        .order_by(PricingRunItem.status.asc(), PricingRunItem.id.asc())
        .all()
    )
    items = [
        {
            "id": run_item.id,
            "offer_id": run_item.offer_id,
            "item_id": offer.item_id if offer else None,
            "presentation": offer.presentation if offer else None,
            "url_canonical": offer.url_canonical if offer else None,
            "status": run_item.status,
            "attempts": run_item.attempts,
            "last_error": run_item.last_error,
            "updated_at": run_item.updated_at,
        }
        for run_item, offer in rows
    ]
    return run, items

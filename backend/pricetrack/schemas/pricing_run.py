"""Pydantic schemas for daily pricing runs."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict

from pricetrack.models.pricing_run import RunItemStatus, RunStatus


class DailyRunResponse(BaseModel):
    """Outcome of one daily run invocation."""

    run_id: int
    date: dt.date
    batch_size: int
    processed_ok: int
    processed_fail: int
    processed_skipped: int = 0
    inserted_rows: int
    pending_remaining: int
    time_ms: int


class PricingRunRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    as_of_date: dt.date
    status: RunStatus
    started_at: dt.datetime
    finished_at: dt.datetime | None = None
    total_items: int = 0
    ok_count: int = 0
    fail_count: int = 0
    skipped_count: int = 0
    pending_count: int = 0


class PricingRunItemRead(BaseModel):
    """Per-offer status within a run."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    offer_id: int
    item_id: int | None = None
    presentation: float | None = None
    url_canonical: str | None = None
    status: RunItemStatus
    attempts: int = 0
    last_error: str | None = None
    updated_at: dt.datetime


class PricingRunDetail(PricingRunRead):
    items: list[PricingRunItemRead] = []

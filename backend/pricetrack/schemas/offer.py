"""Pydantic schemas for offers and daily price points."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from pricetrack.models.offer import OfferState


class OfferRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    item_id: int
    engine_id: int | None = None
    url_original: str | None = None
    url_canonical: str | None = None
    presentation: float
    description: str | None = None
    state: OfferState
    created_at: datetime
    updated_at: datetime


class OfferChangeSet(BaseModel):
    """Optional fields of a partial offer update. Unset fields are left untouched."""

    model_config = ConfigDict(extra="forbid")

    engine_id: int | None = Field(None, ge=1)
    url_canonical: str | None = Field(None, max_length=1000)
    presentation: float | None = Field(None, gt=0)
    description: str | None = Field(None, max_length=500)
    state: OfferState | None = None


class PricePointRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    as_of_date: date
    presentation: float
    price: float
    source_url: str | None = None


class PriceHistoryResponse(BaseModel):
    item_id: int
    days: int
    rows: list[PricePointRead] = []

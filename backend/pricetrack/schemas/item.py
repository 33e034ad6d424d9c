"""Pydantic schemas for bulk URL ingestion."""

from __future__ import annotations

from pydantic import BaseModel, Field


class BulkIngestRequest(BaseModel):
    """URLs as a list, or as newline-separated text pasted from a spreadsheet."""

    urls: list[str] | None = None
    urls_text: str | None = None
    engine_id: int = Field(1, ge=1)

    def url_list(self) -> list[str]:
        if self.urls:
            return [str(u) for u in self.urls]
        return [line.strip() for line in (self.urls_text or "").splitlines() if line.strip()]


class BulkIngestResult(BaseModel):
    url: str
    ok: bool
    item_id: int | None = None
    offers: int = 0
    error: str | None = None


class BulkIngestResponse(BaseModel):
    created_items: int
    created_offers: int
    results: list[BulkIngestResult]
    time_ms: int

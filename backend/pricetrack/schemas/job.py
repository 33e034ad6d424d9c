"""Pydantic schemas for Job and JobResult models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pricetrack.models.job import JobState, JobType, ResultStatus


class JobCreate(BaseModel):
    """Create one job per item id."""

    item_ids: list[int] = Field(..., min_length=1)
    priority: int = 100


class JobCreateResponse(BaseModel):
    created_job_ids: list[int]
    skipped_item_ids: list[int] = []


class JobChangeSet(BaseModel):
    """Optional fields of a partial job update. Unset fields are left untouched."""

    model_config = ConfigDict(extra="forbid")

    priority: int | None = None
    max_attempts: int | None = Field(None, ge=1, le=20)
    next_run_at: datetime | None = None
    payload: dict[str, Any] | None = None


class RunNextRequest(BaseModel):
    lease_duration_seconds: int = Field(300, ge=10, le=3600)
    worker_id: str | None = Field(None, max_length=200)


class RunNextResponse(BaseModel):
    claimed: bool
    job_id: int | None = None
    status: JobState | None = None
    error: str | None = None


class JobResultRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_id: int
    status: ResultStatus
    candidates: list[dict[str, Any]] = []
    warnings: list[Any] = []
    errors: list[Any] = []
    engine_id: int | None = None
    engine_version: str | None = None
    created_at: datetime
    updated_at: datetime


class JobRead(BaseModel):
    """Full job output."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    job_type: JobType
    state: JobState
    priority: int | None = None
    item_id: int | None = None
    payload: dict[str, Any] = {}
    attempts: int = 0
    max_attempts: int = 3
    next_run_at: datetime
    lease_owner: str | None = None
    lease_expires_at: datetime | None = None
    last_error: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None
    updated_at: datetime


class JobSummary(JobRead):
    """Job with result and offer rollups for list views."""

    engine_id: int | None = None
    url_canonical: str | None = None
    result_status: ResultStatus | None = None
    candidates_count: int = 0
    warnings_count: int = 0
    errors_count: int = 0
    offers_count: int = 0


class JobDetail(JobRead):
    result: JobResultRead | None = None


class ApproveRequest(BaseModel):
    """Pick one candidate by index, or provide an edited candidate. Neither approves all."""

    candidate_index: int | None = Field(None, ge=0)
    candidate: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _one_selector(self):
        if self.candidate_index is not None and self.candidate is not None:
            raise ValueError("Provide candidate_index or candidate, not both")
        return self


class ApproveResponse(BaseModel):
    offer_ids: list[int]
    inserted_count: int = 0
    updated_count: int = 0
    already_succeeded: bool = False

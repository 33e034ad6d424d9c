"""Job queue models — scrape jobs and their engine results."""

import enum

from sqlalchemy import Column, String, Integer, DateTime, Text, Enum, ForeignKey, Index, func
from sqlalchemy.orm import relationship

from pricetrack.models.base import Base, BigIntId, IdMixin, JSONType, TimestampMixin


class JobType(str, enum.Enum):
    SCRAPE_URL = "SCRAPE_URL"


class JobState(str, enum.Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    WAITING_REVIEW = "WAITING_REVIEW"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class ResultStatus(str, enum.Enum):
    OK = "OK"
    WARNING = "WARNING"
    ERROR = "ERROR"


class Job(IdMixin, TimestampMixin, Base):
    __tablename__ = "jobs"

    job_type = Column(Enum(JobType, name="job_type"), default=JobType.SCRAPE_URL, nullable=False)
    state = Column(Enum(JobState, name="job_state"), default=JobState.PENDING, nullable=False)
    priority = Column(Integer, default=100)
    item_id = Column(BigIntId, ForeignKey("tracked_items.id"), index=True)
    payload = Column(JSONType, default=dict, nullable=False)

    attempts = Column(Integer, default=0, nullable=False)
    max_attempts = Column(Integer, default=3, nullable=False)
    next_run_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Lease: owner and expiry are set together and cleared together
    lease_owner = Column(String(200))
    lease_expires_at = Column(DateTime(timezone=True))

    last_error = Column(Text)
    started_at = Column(DateTime(timezone=True))
    finished_at = Column(DateTime(timezone=True))

    # Relationships
    item = relationship("TrackedItem", back_populates="jobs")
    result = relationship("JobResult", back_populates="job", uselist=False)

    __table_args__ = (
        Index("idx_job_claim", "state", "next_run_at", "priority"),
    )


class JobResult(IdMixin, TimestampMixin, Base):
    __tablename__ = "job_results"

    job_id = Column(BigIntId, ForeignKey("jobs.id"), unique=True, nullable=False)
    status = Column(Enum(ResultStatus, name="job_result_status"), nullable=False)
    candidates = Column(JSONType, default=list, nullable=False)
    warnings = Column(JSONType, default=list, nullable=False)
    errors = Column(JSONType, default=list, nullable=False)
    engine_id = Column(Integer)
    engine_version = Column(String(50))

    job = relationship("Job", back_populates="result")

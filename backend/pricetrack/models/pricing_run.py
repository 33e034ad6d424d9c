"""Daily pricing run models — one run per calendar day, one item per tracked offer."""

import enum

from sqlalchemy import Column, String, Integer, Date, DateTime, Text, Enum, ForeignKey, Index, UniqueConstraint, func, text
from sqlalchemy.orm import relationship

from pricetrack.models.base import Base, BigIntId, IdMixin


class RunStatus(str, enum.Enum):
    RUNNING = "RUNNING"
    DONE = "DONE"
    PARTIAL = "PARTIAL"


class RunItemStatus(str, enum.Enum):
    PENDING = "PENDING"
    OK = "OK"
    FAIL = "FAIL"
    SKIPPED = "SKIPPED"


class PricingRun(IdMixin, Base):
    __tablename__ = "pricing_runs"

    as_of_date = Column(Date, unique=True, nullable=False)
    status = Column(Enum(RunStatus, name="pricing_run_status"), default=RunStatus.RUNNING, nullable=False)
    started_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    finished_at = Column(DateTime(timezone=True))

    total_items = Column(Integer, default=0, nullable=False)
    ok_count = Column(Integer, default=0, nullable=False)
    fail_count = Column(Integer, default=0, nullable=False)
    skipped_count = Column(Integer, default=0, nullable=False)
    pending_count = Column(Integer, default=0, nullable=False)

    items = relationship("PricingRunItem", back_populates="run")


class PricingRunItem(IdMixin, Base):
    __tablename__ = "pricing_run_items"

    run_id = Column(BigIntId, ForeignKey("pricing_runs.id"), nullable=False)
    offer_id = Column(BigIntId, ForeignKey("offers.id"), nullable=False, index=True)
    # Server-side defaults so INSERT ... SELECT seeding needs no bound enum values
    status = Column(
        Enum(RunItemStatus, name="pricing_run_item_status"),
        server_default=RunItemStatus.PENDING.value,
        nullable=False,
    )
    attempts = Column(Integer, server_default=text("0"), nullable=False)
    last_error = Column(Text)

    lease_owner = Column(String(200))
    lease_expires_at = Column(DateTime(timezone=True))

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    run = relationship("PricingRun", back_populates="items")
    offer = relationship("Offer", back_populates="run_items")

    __table_args__ = (
        UniqueConstraint("run_id", "offer_id", name="uq_run_item_run_offer"),
        Index("idx_run_item_due", "run_id", "status", "attempts"),
    )

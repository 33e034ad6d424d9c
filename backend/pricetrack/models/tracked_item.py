"""Tracked item model — a supplier product page being watched."""

import enum

from sqlalchemy import Column, String, Integer, Boolean, Text, Enum, Index
from sqlalchemy.orm import relationship

from pricetrack.models.base import Base, IdMixin, TimestampMixin


class ItemState(str, enum.Enum):
    OK = "OK"
    WAITING_REVIEW = "WAITING_REVIEW"
    ERROR = "ERROR"


class TrackedItem(IdMixin, TimestampMixin, Base):
    __tablename__ = "tracked_items"

    # Default engine for jobs that do not carry one in their payload
    engine_id = Column(Integer, index=True)
    url_original = Column(String(1000), nullable=False)
    url_canonical = Column(String(1000))
    description = Column(String(500))

    selected = Column(Boolean, default=True, nullable=False)
    state = Column(Enum(ItemState, name="item_state"), default=ItemState.OK, nullable=False)
    error_message = Column(Text)

    # Relationships
    jobs = relationship("Job", back_populates="item")
    offers = relationship("Offer", back_populates="item")

    __table_args__ = (
        Index("idx_item_selected_state", "selected", "state"),
    )

    @property
    def source_url(self) -> str | None:
        return self.url_canonical or self.url_original

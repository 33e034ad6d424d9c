"""Offer model — an (item, source URL, presentation) eligible for daily pricing."""

import enum

from sqlalchemy import Column, String, Integer, Numeric, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from pricetrack.models.base import Base, BigIntId, IdMixin, TimestampMixin


class OfferState(str, enum.Enum):
    OK = "OK"
    INACTIVE = "INACTIVE"


class Offer(IdMixin, TimestampMixin, Base):
    __tablename__ = "offers"

    item_id = Column(BigIntId, ForeignKey("tracked_items.id"), nullable=False, index=True)
    engine_id = Column(Integer)
    url_original = Column(String(1000))
    url_canonical = Column(String(1000))
    presentation = Column(Numeric(12, 4, asdecimal=False), nullable=False)
    description = Column(String(500))
    state = Column(Enum(OfferState, name="offer_state"), default=OfferState.OK, nullable=False)

    # Relationships
    item = relationship("TrackedItem", back_populates="offers")
    run_items = relationship("PricingRunItem", back_populates="offer")

    __table_args__ = (
        UniqueConstraint("item_id", "url_canonical", "presentation", name="uq_offer_item_url_presentation"),
        Index("idx_offer_state", "state"),
    )

    @property
    def source_url(self) -> str | None:
        return self.url_canonical or self.url_original

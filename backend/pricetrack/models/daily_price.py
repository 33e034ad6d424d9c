"""Daily price point model — confirmed price per (item, date, presentation)."""

from sqlalchemy import Column, String, Date, Numeric, ForeignKey, UniqueConstraint

from pricetrack.models.base import Base, BigIntId, IdMixin, TimestampMixin


class DailyPricePoint(IdMixin, TimestampMixin, Base):
    __tablename__ = "daily_price_points"

    item_id = Column(BigIntId, ForeignKey("tracked_items.id"), nullable=False)
    as_of_date = Column(Date, nullable=False)
    presentation = Column(Numeric(12, 4, asdecimal=False), nullable=False)
    price = Column(Numeric(14, 2, asdecimal=False), nullable=False)
    source_url = Column(String(1000))

    offer_id = Column(BigIntId, ForeignKey("offers.id"))
    run_id = Column(BigIntId, ForeignKey("pricing_runs.id"))

    __table_args__ = (
        UniqueConstraint("item_id", "as_of_date", "presentation", name="uq_price_item_date_presentation"),
    )

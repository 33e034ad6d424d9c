"""ORM models — import every model so relationship names resolve."""

from pricetrack.models.base import Base
from pricetrack.models.tracked_item import TrackedItem, ItemState
from pricetrack.models.job import Job, JobResult, JobState, JobType, ResultStatus
from pricetrack.models.offer import Offer, OfferState
from pricetrack.models.pricing_run import PricingRun, PricingRunItem, RunStatus, RunItemStatus
from pricetrack.models.daily_price import DailyPricePoint

__all__ = [
    "Base",
    "TrackedItem",
    "ItemState",
    "Job",
    "JobResult",
    "JobState",
    "JobType",
    "ResultStatus",
    "Offer",
    "OfferState",
    "PricingRun",
    "PricingRunItem",
    "RunStatus",
    "RunItemStatus",
    "DailyPricePoint",
]

"""Pydantic schemas package."""

from pricetrack.schemas.job import (
    ApproveRequest,
    ApproveResponse,
    JobChangeSet,
    JobCreate,
    JobCreateResponse,
    JobDetail,
    JobRead,
    JobResultRead,
    JobSummary,
    RunNextRequest,
    RunNextResponse,
)
from pricetrack.schemas.pricing_run import (
    DailyRunResponse,
    PricingRunDetail,
    PricingRunItemRead,
    PricingRunRead,
)
from pricetrack.schemas.offer import (
    OfferChangeSet,
    OfferRead,
    PriceHistoryResponse,
    PricePointRead,
)
from pricetrack.schemas.item import (
    BulkIngestRequest,
    BulkIngestResponse,
    BulkIngestResult,
)

__all__ = [
    # Job
    "ApproveRequest",
    "ApproveResponse",
    "JobChangeSet",
    "JobCreate",
    "JobCreateResponse",
    "JobDetail",
    "JobRead",
    "JobResultRead",
    "JobSummary",
    "RunNextRequest",
    "RunNextResponse",
    # PricingRun
    "DailyRunResponse",
    "PricingRunDetail",
    "PricingRunItemRead",
    "PricingRunRead",
    # Offer
    "OfferChangeSet",
    "OfferRead",
    "PriceHistoryResponse",
    "PricePointRead",
    # Item
    "BulkIngestRequest",
    "BulkIngestResponse",
    "BulkIngestResult",
]

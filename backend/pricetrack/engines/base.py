"""Base engine abstract class."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import httpx

from pricetrack.config import get_settings
from pricetrack.engines.parsing import PricePoint
from pricetrack.exceptions import FetchFailed

logger = logging.getLogger(__name__)


@dataclass
class ExtractResult:
    """Prices found on a supplier page, keyed by presentation."""

    canonical_url: str
    prices: list[PricePoint] = field(default_factory=list)

    def price_for(self, presentation: float, tolerance: float = 5e-5) -> PricePoint | None:
        for point in self.prices:
            if abs(point.presentation - presentation) <= tolerance:
                return point
        return None


class BaseEngine(ABC):
    """Abstract base class for all price engines.

    Subclasses must implement:
        extract(url) -> ExtractResult — fetch the page and return prices by presentation

    Engines never touch the database; the job runner and the daily run own persistence.
    """

    engine_id: int
    name: str = "base"
    version: str = "v1"

    def __init__(self, client: httpx.Client | None = None):
        self.client = client
        self.settings = get_settings()

    @abstractmethod
    def extract(self, url: str) -> ExtractResult:
        ...

    def fetch_html(self, url: str) -> tuple[str, str]:
        """GET a page with a bounded timeout. Returns (html, final_url)."""
        headers = {
            "User-Agent": self.settings.engine_user_agent,
            "Accept": "text/html,application/xhtml+xml",
            "Cache-Control": "no-cache",
        }
        logger.info(f"[{self.name}] Fetching {url}")

        if self.client is not None:
            resp = self.client.get(url, headers=headers, timeout=self.settings.engine_timeout, follow_redirects=True)
        else:
            resp = httpx.get(url, headers=headers, timeout=self.settings.engine_timeout, follow_redirects=True)

        if resp.status_code >= 400:
            logger.warning(f"[{self.name}] HTTP {resp.status_code} for {url}")
            raise FetchFailed(resp.status_code, url)

        return resp.text, str(resp.url)

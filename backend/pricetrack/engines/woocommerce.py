"""WooCommerce storefront engine.

Variable products embed every variation (presentation + price) as JSON in the
product page, so one GET is enough to price every presentation.
"""

import logging

from pricetrack.engines.base import BaseEngine, ExtractResult
from pricetrack.engines.parsing import clean_price_points, extract_variation_prices, find_canonical_url
from pricetrack.engines.registry import register_engine
from pricetrack.exceptions import NoPricesFound

logger = logging.getLogger(__name__)


@register_engine(1, "woocommerce")
class WooCommerceEngine(BaseEngine):

    version = "v1"

    def extract(self, url: str) -> ExtractResult:
        html, final_url = self.fetch_html(url)

        by_presentation = extract_variation_prices(html)
        if not by_presentation:
            raise NoPricesFound()

        prices = clean_price_points(by_presentation.values())
        if not prices:
            raise NoPricesFound("prices_by_presentation_empty")

        canonical_url = find_canonical_url(html) or final_url or url
        logger.info(f"[{self.name}] Found {len(prices)} presentations at {canonical_url}")
        return ExtractResult(canonical_url=canonical_url, prices=prices)

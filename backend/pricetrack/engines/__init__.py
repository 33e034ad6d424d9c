"""Engine package — import all engines to trigger @register_engine decorators."""

from pricetrack.engines.woocommerce import WooCommerceEngine  # noqa: F401

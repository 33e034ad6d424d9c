"""Locale-tolerant number parsing and embedded variation extraction.

Supplier storefronts render prices as "1.234,56", "1,234.56" or "$ 12.345",
and presentation keys as "0,5000", "0.5000" or WooCommerce slugs such as
"0-5000". Everything here is pure so engines can share it.
"""

import json
import logging
import math
import re
from dataclasses import dataclass, replace
from typing import Any, Iterable

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

_SLUG_DECIMAL = re.compile(r"^(\d+)[-_](\d+)$")
_INLINE_VARIATIONS = re.compile(r"product_variations\s*=\s*(\[[\s\S]*?\])\s*;?", re.IGNORECASE)

PRESENTATION_KEYS = ("attribute_pa_presentacion", "pa_presentacion", "presentacion")
PRICE_KEYS = ("display_price", "display_regular_price", "variation_display_price", "variation_price")

# Presentations are stored as NUMERIC(12, 4)
PRESENTATION_SCALE = 4


@dataclass(frozen=True)
class PricePoint:
    presentation: float
    price: float
    source: str


def parse_price(raw: Any) -> float | None:
    """Parse a displayed price. With both separators present the last one is the decimal point."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)

    cleaned = re.sub(r"[^\d.,]", "", str(raw).strip())
    if not cleaned:
        return None

    last_comma = cleaned.rfind(",")
    last_dot = cleaned.rfind(".")

    if last_comma != -1 and last_dot != -1:
        dec_pos = max(last_comma, last_dot)
        int_part = re.sub(r"[.,]", "", cleaned[:dec_pos])
        dec_part = re.sub(r"[.,]", "", cleaned[dec_pos + 1:])
        normalized = f"{int_part}.{dec_part}"
    elif last_comma != -1:
        # Comma only: decimal comma
        normalized = cleaned.replace(".", "").replace(",", ".", 1)
    else:
        normalized = cleaned.replace(",", "")

    try:
        value = float(normalized)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_presentation(raw: Any) -> float | None:
    """Parse a presentation key: "0,5000", "0.5000", "0-5000" and "0_5000" all give 0.5."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw) if math.isfinite(raw) else None

    s = str(raw).strip()
    if not s:
        return None

    s = s.replace(",", ".", 1)
    m = _SLUG_DECIMAL.match(s)
    if m:
        s = f"{m.group(1)}.{m.group(2)}"

    s = re.sub(r"[^\d.]", "", s)
    if not s:
        return None

    try:
        value = float(s)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _first_present(mapping: dict, keys: Iterable[str]) -> Any:
    for key in keys:
        value = mapping.get(key)
        if value is not None:
            return value
    return None


def collect_variation_prices(variations: Any, source: str) -> dict[float, PricePoint]:
    """Map presentation -> PricePoint for a list of WooCommerce variation dicts (last seen wins)."""
    by_presentation: dict[float, PricePoint] = {}
    if not isinstance(variations, list):
        return by_presentation

    for variation in variations:
        if not isinstance(variation, dict):
            continue
        attributes = variation.get("attributes") or {}
        if not isinstance(attributes, dict):
            continue

        presentation = parse_presentation(_first_present(attributes, PRESENTATION_KEYS))
        price = parse_price(_first_present(variation, PRICE_KEYS))
        if presentation is None or price is None:
            continue

        by_presentation[presentation] = PricePoint(presentation=presentation, price=price, source=source)

    return by_presentation


def extract_variation_prices(html: str) -> dict[float, PricePoint]:
    """Find embedded variation data in a product page.

    Strategy 1: the ``data-product_variations`` attribute WooCommerce puts on
    the variations form. Strategy 2: an inline ``product_variations = [...]``
    script assignment.
    """
    soup = BeautifulSoup(html, "lxml")

    for element in soup.find_all(attrs={"data-product_variations": True}):
        raw = element.get("data-product_variations")
        try:
            variations = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("Unparseable data-product_variations attribute")
            continue
        found = collect_variation_prices(variations, "wc:data-product_variations.display_price")
        if found:
            return found

    m = _INLINE_VARIATIONS.search(html)
    if m:
        try:
            variations = json.loads(m.group(1))
        except ValueError:
            logger.debug("Unparseable inline product_variations script")
            variations = None
        found = collect_variation_prices(variations, "wc:js.product_variations.display_price")
        if found:
            return found

    return {}


def find_canonical_url(html: str) -> str | None:
    soup = BeautifulSoup(html, "lxml")
    link = soup.find("link", rel="canonical")
    href = link.get("href") if link else None
    return href.strip() if href and href.strip() else None


def clean_price_points(points: Iterable[PricePoint]) -> list[PricePoint]:
    """Drop non-finite or non-positive values, round presentations to the stored scale and sort.

    Points that round to the same presentation collapse into one; the last one wins.
    """
    by_presentation: dict[float, PricePoint] = {}
    for p in points:
        if not (math.isfinite(p.presentation) and math.isfinite(p.price) and p.price > 0):
            continue
        presentation = round(p.presentation, PRESENTATION_SCALE)
        by_presentation[presentation] = replace(p, presentation=presentation)
    return [by_presentation[key] for key in sorted(by_presentation)]

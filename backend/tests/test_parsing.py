import html
import json
import math

import pytest

from pricetrack.engines.parsing import (
    PricePoint,
    clean_price_points,
    collect_variation_prices,
    extract_variation_prices,
    find_canonical_url,
    parse_presentation,
    parse_price,
)


@pytest.mark.parametrize("raw, expected", [
    ("$ 1.234,50", 1234.5),
    ("1,234.50", 1234.5),
    ("3.5", 3.5),
    ("2100", 2100.0),
    ("12,5", 12.5),
    ("USD 7,00", 7.0),
    (2100, 2100.0),
    (99.9, 99.9),
])
def test_parse_price(raw, expected):
    assert parse_price(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", [None, "", "N/A", True])
def test_parse_price_rejects_non_numbers(raw):
    assert parse_price(raw) is None


@pytest.mark.parametrize("raw, expected", [
    ("0-5000", 0.5),
    ("0_5000", 0.5),
    ("0,5000", 0.5),
    ("0.5000", 0.5),
    ("1", 1.0),
    ("4 kg", 4.0),
    (20, 20.0),
])
def test_parse_presentation(raw, expected):
    assert parse_presentation(raw) == pytest.approx(expected)


def test_parse_presentation_rejects_blank():
    assert parse_presentation("  ") is None
    assert parse_presentation(None) is None


def test_collect_variation_prices_last_seen_wins():
    variations = [
        {"attributes": {"attribute_pa_presentacion": "0-5000"}, "display_price": 2000},
        {"attributes": {"pa_presentacion": "1"}, "display_regular_price": "4.000,00"},
        {"attributes": {"attribute_pa_presentacion": "0-5000"}, "display_price": 2100},
        {"attributes": {}, "display_price": 10},
        "not a variation",
    ]
    found = collect_variation_prices(variations, "src")

    assert sorted(found) == [0.5, 1.0]
    assert found[0.5].price == 2100
    assert found[1.0].price == 4000


def _variations_page(variations, canonical=None):
    attr = html.escape(json.dumps(variations), quote=True)
    head = f'<link rel="canonical" href="{canonical}">' if canonical else ""
    return (
        f"<html><head>{head}</head><body>"
        f'<form class="variations_form" data-product_variations="{attr}"></form>'
        "</body></html>"
    )


def test_extract_variation_prices_from_form_attribute():
    doc = _variations_page([
        {"attributes": {"attribute_pa_presentacion": "0-5000"}, "display_price": 2100},
        {"attributes": {"attribute_pa_presentacion": "1-0000"}, "display_price": 4000},
    ])
    found = extract_variation_prices(doc)

    assert sorted(found) == [0.5, 1.0]
    assert found[0.5].source == "wc:data-product_variations.display_price"


def test_extract_variation_prices_falls_back_to_inline_script():
    doc = (
        "<html><body><script>"
        'var product_variations = [{"attributes": {"pa_presentacion": "1,0000"}, "display_price": "4.200,50"}];'
        "</script></body></html>"
    )
    found = extract_variation_prices(doc)

    assert list(found) == [1.0]
    assert found[1.0].price == pytest.approx(4200.5)
    assert found[1.0].source == "wc:js.product_variations.display_price"


def test_extract_variation_prices_empty_page():
    assert extract_variation_prices("<html><body><p>Out of stock</p></body></html>") == {}


def test_find_canonical_url():
    doc = _variations_page([], canonical="https://shop.example/p/solvent/")
    assert find_canonical_url(doc) == "https://shop.example/p/solvent/"
    assert find_canonical_url("<html></html>") is None


def test_clean_price_points_drops_invalid_and_sorts():
    points = [
        PricePoint(presentation=4.0, price=9000.0, source="s"),
        PricePoint(presentation=1.0, price=0.0, source="s"),
        PricePoint(presentation=0.5, price=2100.0, source="s"),
        PricePoint(presentation=2.0, price=math.inf, source="s"),
    ]
    cleaned = clean_price_points(points)
    assert [p.presentation for p in cleaned] == [0.5, 4.0]


def test_clean_price_points_rounds_presentations_to_stored_scale():
    points = [
        PricePoint(presentation=0.333333, price=100.0, source="a"),
        PricePoint(presentation=0.33334, price=110.0, source="b"),
        PricePoint(presentation=1.00004, price=400.0, source="c"),
    ]
    cleaned = clean_price_points(points)
    assert [(p.presentation, p.price, p.source) for p in cleaned] == [(0.3333, 110.0, "b"), (1.0, 400.0, "c")]

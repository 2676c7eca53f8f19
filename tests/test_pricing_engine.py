"""
Quote aggregator tests: discount parsing, subtotal/total rules, project fees
and in-place recalculation of a stored quote.
"""

from types import SimpleNamespace

import pytest

from printquote.errors import ValidationError
from printquote.pricing_engine import (
    PricingEngine,
    parse_discount,
    project_fee,
    subtotal,
    total,
)


def _engine():
    return PricingEngine(
        [SimpleNamespace(name="Economy PLA", cost_per_kg=60.0), SimpleNamespace(name="PLA", cost_per_kg=120.0)],
        hourly_rate=30.0,
    )


def _worked_item(quantity=2):
    return {
        "name": "Desk organiser",
        "quantity": quantity,
        "pieces": [
            {"name": "Divider", "quantity": 3, "material": "Economy PLA",
             "weight_grams": 10, "print_hours": 2, "additional_cost": 5},
        ],
    }


# --- parse_discount ---

@pytest.mark.parametrize("raw,expected", [
    ("0", 0.0),
    ("", 0.0),
    (None, 0.0),
    ("15", 15.0),
    ("12,50", 12.5),
    ("R$ 30", 30.0),
    ("10%", 10.0),
    (" 7.25 ", 7.25),
    ("abc", 0.0),
    ("-", 0.0),
    (20, 20.0),
    (2.5, 2.5),
])
def test_parse_discount(raw, expected):
    assert parse_discount(raw) == expected


def test_parse_discount_takes_numeric_prefix_when_malformed():
    assert parse_discount("1.000.50") == 1.0


# --- subtotal / total ---

def test_total_never_negative():
    assert total(100.0, 250.0) == 0.0
    assert total(100.0, 100.0) == 0.0


def test_total_rounds_half_up():
    assert total(10.005, 0) == 10.01


def test_subtotal_adds_project_fee_and_extras():
    products = [{"quantity": 1, "pieces": [{"quantity": 1, "computed_value": 100.0}]}]
    extras = [{"name": "Rush", "amount": 40.0}, {"name": "Packaging", "amount": 10.0}]
    assert subtotal(products, 200.0, extras) == pytest.approx(350.0)


def test_subtotal_uses_rounded_product_totals():
    products = [
        {"quantity": 1, "pieces": [{"quantity": 1, "computed_value": 0.004}]},
        {"quantity": 1, "pieces": [{"quantity": 1, "computed_value": 0.004}]},
    ]
    assert subtotal(products, 0, []) == 0.0


# --- project fee ---

def test_project_fee_lookup():
    fees = [SimpleNamespace(key="design", amount=2500.0), SimpleNamespace(key="scan", amount=200.0)]
    assert project_fee("design", fees) == 2500.0
    assert project_fee("scan", fees) == 200.0
    assert project_fee("none", fees) == 0.0
    assert project_fee(None, fees) == 0.0


def test_project_fee_falls_back_to_settings():
    assert project_fee("design", []) == 2500.0
    assert project_fee("scan", []) == 200.0


def test_project_fee_rejects_unknown_type():
    with pytest.raises(ValidationError):
        project_fee("laser", [])


# --- PricingEngine ---

def test_worked_example_total():
    priced = _engine().build_priced_quote([_worked_item()])
    item = priced["items"][0]
    assert item["pieces"][0]["computed_value"] == pytest.approx(75.2)
    assert item["unit_value"] == 225.6
    assert item["total_value"] == 451.2
    assert priced["subtotal"] == 451.2
    assert priced["total"] == 451.2


def test_discount_and_fees_flow_into_total():
    priced = _engine().build_priced_quote(
        [_worked_item()],
        project_fee_amount=200.0,
        extra_fees=[{"name": "Rush", "amount": 48.8}],
        discount_input="100",
    )
    assert priced["subtotal"] == 700.0
    assert priced["discount"] == 100.0
    assert priced["total"] == 600.0
    assert priced["extras_subtotal"] == 48.8
    assert priced["project_fee"] == 200.0


def test_discount_larger_than_subtotal_clamps_to_zero():
    priced = _engine().build_priced_quote([_worked_item()], discount_input="9999")
    assert priced["total"] == 0.0


def test_quote_without_products():
    priced = _engine().build_priced_quote([], project_fee_amount=200.0)
    assert priced["subtotal"] == 200.0
    assert priced["total"] == 200.0


def test_unknown_material_piece_prices_hours_only():
    item = {"name": "Mystery", "quantity": 1,
            "pieces": [{"quantity": 1, "material": "Nylon", "weight_grams": 100, "print_hours": 1}]}
    priced = _engine().build_priced_quote([item])
    assert priced["total"] == 30.0


def test_recalculate_updates_stored_caches():
    piece = SimpleNamespace(material="Economy PLA", quantity=3, weight_grams=10, print_hours=2,
                            additional_cost=5, computed_value=0.0)
    item = SimpleNamespace(quantity=2, pieces=[piece], unit_value=0.0, total_value=0.0)
    quote = SimpleNamespace(
        items=[item],
        project_fee=0.0,
        selected_fees=[SimpleNamespace(amount=8.8)],
        discount_input="10",
        discount=0.0,
        subtotal=0.0,
        total=0.0,
    )

    _engine().recalculate(quote)

    assert piece.computed_value == pytest.approx(75.2)
    assert item.unit_value == 225.6
    assert item.total_value == 451.2
    assert quote.subtotal == 460.0
    assert quote.discount == 10.0
    assert quote.total == 450.0


@pytest.mark.parametrize("raw", [
    "9" * 400,
    "-" + "9" * 400,
    "R$ " + "9" * 400 + ",00",
    float("inf"),
    float("-inf"),
    float("nan"),
    10 ** 400,
])
def test_parse_discount_overflow_counts_as_no_discount(raw):
    assert parse_discount(raw) == 0.0


def test_overflowing_discount_leaves_total_intact():
    priced = _engine().build_priced_quote([_worked_item()], discount_input="-" + "9" * 400)
    assert priced["discount"] == 0.0
    assert priced["total"] == 451.2

"""
Cost calculator tests: per-gram cost, piece values, product values and the
material fallback policy.
"""

import logging
from types import SimpleNamespace

import pytest

from printquote.costing import (
    cost_per_gram,
    find_material,
    piece_value,
    product_total_value,
    product_unit_value,
    resolve_cost_per_gram,
    round2,
)
from printquote.errors import ValidationError
from printquote.models import Material


def _materials():
    return [
        SimpleNamespace(name="PLA", cost_per_kg=120.0),
        SimpleNamespace(name="Economy PLA", cost_per_kg=60.0),
    ]


@pytest.mark.parametrize("cost_per_kg", [60.0, 120.0, 250.0, 0.5])
def test_cost_per_gram_uses_fixed_factor(cost_per_kg):
    assert cost_per_gram(cost_per_kg) == pytest.approx(cost_per_kg * 0.017)


def test_material_model_derives_cost_per_gram():
    assert Material(name="Economy PLA", cost_per_kg=60.0).cost_per_gram == pytest.approx(1.02)


def test_round2_is_half_up():
    assert round2(2.675) == 2.68
    assert round2(1.005) == 1.01
    assert round2(0.125) == 0.13
    assert round2(451.2) == 451.2


def test_piece_value_formula():
    piece = {"weight_grams": 10, "print_hours": 2, "additional_cost": 5}
    assert piece_value(piece, 1.02, 30.0) == pytest.approx(75.2)


def test_piece_value_treats_missing_inputs_as_zero():
    assert piece_value({}, 1.02, 30.0) == 0
    assert piece_value({"print_hours": 1}, 0.0, 30.0) == 30.0


def test_worked_example_product_values():
    """60/kg, 10 g, 2 h, +5, 3 pieces per unit, 2 units -> 225.60 / 451.20."""
    cost_g = resolve_cost_per_gram("Economy PLA", _materials())
    piece = {"quantity": 3, "weight_grams": 10, "print_hours": 2, "additional_cost": 5}
    piece["computed_value"] = piece_value(piece, cost_g, 30.0)
    product = {"quantity": 2, "pieces": [piece]}

    assert round2(product_unit_value(product)) == 225.6
    assert round2(product_total_value(product)) == 451.2


def test_unit_value_sums_over_pieces():
    product = {
        "quantity": 1,
        "pieces": [
            {"quantity": 2, "computed_value": 10.0},
            {"quantity": 1, "computed_value": 7.5},
        ],
    }
    assert product_unit_value(product) == pytest.approx(27.5)


def test_product_without_pieces_is_free():
    assert product_unit_value({"quantity": 4, "pieces": []}) == 0
    assert product_total_value({"quantity": 4, "pieces": []}) == 0


def test_zero_quantity_product_totals_zero():
    product = {"quantity": 0, "pieces": [{"quantity": 1, "computed_value": 50.0}]}
    assert product_unit_value(product) == 50.0
    assert product_total_value(product) == 0


def test_find_material_is_exact_match():
    materials = _materials()
    assert find_material("PLA", materials).cost_per_kg == 120.0
    assert find_material("pla", materials) is None
    assert find_material(None, materials) is None


def test_unknown_material_prices_at_zero(caplog):
    with caplog.at_level(logging.WARNING, logger="printquote.costing"):
        assert resolve_cost_per_gram("Nylon", _materials()) == 0.0
    assert "Nylon" in caplog.text


def test_unknown_material_still_charges_hours_and_extras():
    piece = {"weight_grams": 500, "print_hours": 1, "additional_cost": 2}
    cost_g = resolve_cost_per_gram("Unobtainium", _materials())
    assert piece_value(piece, cost_g, 30.0) == pytest.approx(32.0)


def test_round2_handles_very_large_amounts():
    assert round2(1e300) == 1e300
    assert round2(-1e30) == -1e30


@pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
def test_round2_rejects_non_finite(value):
    with pytest.raises(ValidationError):
        round2(value)

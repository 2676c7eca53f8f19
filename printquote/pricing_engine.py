"""
Quote aggregator: rolls pieces and products up into a priced quote.

Pure math, no storage. Piece values → product unit/total values →
subtotal (+ project fee + extras) → total after the manual discount.

Input: line products as dicts (name, quantity, pieces[...]) + catalog snapshot
Output: priced quote dict (items with cached values, subtotal, total)
"""

import math
import re
from typing import Iterable, List, Optional, Union

from .config import settings
from .costing import (
    piece_value,
    product_total_value,
    product_unit_value,
    resolve_cost_per_gram,
    round2,
)
from .errors import ValidationError

PROJECT_TYPES = ("design", "scan", "none")

_DISCOUNT_STRIP = re.compile(r"[^0-9.,\-]")


def parse_discount(value: Union[str, float, int, None]) -> float:
    """
    Parse the manual discount field into an absolute currency amount.

    Everything except digits, '.', ',' and '-' is dropped and ',' becomes '.'.
    NOTE: "10%" parses to 10.0, an amount, not 10% of the subtotal. The form
    hints at percentages but quotes have always been priced this way.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        try:
            parsed = float(value)
        except OverflowError:
            return 0.0
    else:
        cleaned = _DISCOUNT_STRIP.sub("", value).replace(",", ".")
        try:
            parsed = float(cleaned)
        except ValueError:
            # "1.000.50", "", "-" ... parseFloat-style: take the longest numeric prefix
            match = re.match(r"-?\d*\.?\d+", cleaned)
            parsed = float(match.group(0)) if match else 0.0
    # "9" * 400 overflows to inf; unusable amounts count as no discount
    return parsed if math.isfinite(parsed) else 0.0


def subtotal(products: Iterable[dict], project_fee: float, extra_fees: Iterable[dict]) -> float:
    """
    Σ product totals + project fee + Σ extra fee amounts.

    Product totals enter at their persisted (rounded) value so a stored quote
    total can be recomputed from stored rows alone.
    """
    return (
        sum(round2(product_total_value(p)) for p in products)
        + (project_fee or 0)
        + sum(fee.get("amount") or 0 for fee in extra_fees)
    )


def total(subtotal_value: float, discount: float) -> float:
    """Never negative; rounded half-up at this final boundary."""
    return round2(max(subtotal_value - discount, 0))


def project_fee(project_type: Optional[str], fees: Iterable) -> float:
    """Fee for the selected project type. "none" is free."""
    project_type = project_type or "none"
    if project_type not in PROJECT_TYPES:
        raise ValidationError(f"project_type must be one of {list(PROJECT_TYPES)}, got {project_type!r}")
    if project_type == "none":
        return 0.0
    for fee in fees:
        if fee.key == project_type:
            return fee.amount or 0.0
    if project_type == "design":
        return settings.DESIGN_FEE
    return settings.SCAN_FEE


class PricingEngine:
    """
    Builds the priced view of a quote from its line products.
    A materials catalog snapshot is taken at construction time.
    """

    def __init__(self, materials: Iterable, hourly_rate: Optional[float] = None):
        self.materials = list(materials)
        self.hourly_rate = settings.HOURLY_RATE if hourly_rate is None else hourly_rate

    def price_piece(self, piece: dict) -> dict:
        cost_g = resolve_cost_per_gram(piece.get("material"), self.materials)
        priced = dict(piece)
        priced["computed_value"] = piece_value(piece, cost_g, self.hourly_rate)
        return priced

    def price_product(self, product: dict) -> dict:
        """
        Returns the product with priced pieces and rounded unit/total values.
        total_value rounds the *unrounded* unit value × quantity.
        """
        priced = dict(product)
        priced["pieces"] = [self.price_piece(p) for p in product.get("pieces", [])]
        priced["unit_value"] = round2(product_unit_value(priced))
        priced["total_value"] = round2(product_total_value(priced))
        return priced

    def build_priced_quote(
        self,
        items: List[dict],
        project_fee_amount: float = 0.0,
        extra_fees: Optional[List[dict]] = None,
        discount_input: Union[str, float, None] = "0",
    ) -> dict:
        """
        Args:
            items: line products, {"name", "quantity", "pieces": [{...}]}
            project_fee_amount: resolved fee for the project type
            extra_fees: [{"name", "amount"}] selected extras
            discount_input: manual discount as typed

        Returns:
            {"items", "product_subtotal", "project_fee", "extras_subtotal",
             "subtotal", "discount", "total"}
        """
        extra_fees = extra_fees or []
        priced_items = [self.price_product(item) for item in items]

        product_subtotal = sum(item["total_value"] for item in priced_items)
        extras_subtotal = sum(fee.get("amount") or 0 for fee in extra_fees)
        quote_subtotal = subtotal(priced_items, project_fee_amount, extra_fees)

        discount = parse_discount(discount_input)

        return {
            "items": priced_items,
            "product_subtotal": round2(product_subtotal),
            "project_fee": round2(project_fee_amount or 0),
            "extras_subtotal": round2(extras_subtotal),
            "subtotal": round2(quote_subtotal),
            "discount": discount,
            "total": total(quote_subtotal, discount),
        }

    def recalculate(self, quote) -> None:
        """
        Recompute every cached value on a stored Quote in place
        (piece.computed_value, item.unit_value/total_value, quote totals).
        """
        for item in quote.items:
            for piece in item.pieces:
                cost_g = resolve_cost_per_gram(piece.material, self.materials)
                piece.computed_value = piece_value(_piece_dict(piece), cost_g, self.hourly_rate)
            product = _product_dict(item)
            item.unit_value = round2(product_unit_value(product))
            item.total_value = round2(product_total_value(product))

        quote_subtotal = (
            sum(item.total_value for item in quote.items)
            + (quote.project_fee or 0)
            + sum(fee.amount or 0 for fee in quote.selected_fees)
        )
        quote.discount = parse_discount(quote.discount_input)
        quote.subtotal = round2(quote_subtotal)
        quote.total = total(quote_subtotal, quote.discount)


def _piece_dict(piece) -> dict:
    return {
        "quantity": piece.quantity,
        "weight_grams": piece.weight_grams,
        "print_hours": piece.print_hours,
        "additional_cost": piece.additional_cost,
        "computed_value": piece.computed_value,
    }


def _product_dict(item) -> dict:
    return {
        "quantity": item.quantity,
        "pieces": [_piece_dict(p) for p in item.pieces],
    }

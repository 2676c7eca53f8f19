"""
Cost calculator: piece, product-unit and product-total values.

Pure math over already-validated inputs. Intermediate values keep full float
precision; round2() is only applied where a value is persisted or displayed
(QuoteItem.unit_value / total_value, Quote.total).
"""

import logging
import math
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Iterable, Optional

from .errors import ValidationError
from .models import COST_PER_GRAM_FACTOR

logger = logging.getLogger(__name__)


def round2(value: float) -> float:
    """Half-up rounding to cents (2.675 -> 2.68, unlike round())."""
    if not math.isfinite(value):
        raise ValidationError(f"Amount must be a finite number, got {value}")
    amount = Decimal(str(value))
    with localcontext() as ctx:
        # enough digits for every cent of very large amounts
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        return float(amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def cost_per_gram(cost_per_kg: float) -> float:
    return cost_per_kg * COST_PER_GRAM_FACTOR


def find_material(name: Optional[str], materials: Iterable):
    """Look up a catalog material by exact name. None when absent."""
    if not name:
        return None
    for material in materials:
        if material.name == name:
            return material
    return None


def resolve_cost_per_gram(name: Optional[str], materials: Iterable) -> float:
    """
    Material fallback policy: an unknown material costs 0 per gram.

    Kept permissive so existing quotes referencing a renamed/deleted material
    still price. Swap the warning for a NotFoundError here to make it strict.
    """
    material = find_material(name, materials)
    if material is None:
        logger.warning("Material %r not in catalog, pricing at 0/g", name)
        return 0.0
    return cost_per_gram(material.cost_per_kg)


def piece_value(piece: dict, material_cost_per_gram: float, hourly_rate: float) -> float:
    """weight × cost/g + print hours × hourly rate + additional cost. Unrounded."""
    return (
        (piece.get("weight_grams") or 0) * material_cost_per_gram
        + (piece.get("print_hours") or 0) * hourly_rate
        + (piece.get("additional_cost") or 0)
    )


def product_unit_value(product: dict) -> float:
    """Sum of computed piece value × piece quantity."""
    return sum(
        (piece.get("computed_value") or 0) * (piece.get("quantity") or 0)
        for piece in product.get("pieces", [])
    )


def product_total_value(product: dict) -> float:
    return product_unit_value(product) * (product.get("quantity") or 0)

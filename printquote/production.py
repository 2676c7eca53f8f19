"""
Production workflow: per-sector state of an accepted quote.

Six fixed sectors, tracked independently. There is no ordering between
sectors: logistics may be marked complete while printing is still awaiting.
Sector status is an open vocabulary. Known values get special treatment in
active_sector() and the dashboard, anything else is stored as typed.

Functions take any plan-like object exposing `.sectors` as a mapping of
sector key -> state with attributes, so they work on both the ProductionPlan
dataclass below and the ORM models.ProductionPlan.
"""

import enum
import logging
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Dict, Iterable, Optional, Union

from .deadlines import classify
from .errors import ValidationError

logger = logging.getLogger(__name__)


class SectorKey(str, enum.Enum):
    PRINTING = "printing"
    FINISHING = "finishing"
    PAINTING = "painting"
    ASSEMBLY = "assembly"
    REVIEW = "review"
    LOGISTICS = "logistics"


# Fixed order: the order sectors are walked by active_sector()
SECTOR_KEYS = [key.value for key in SectorKey]

SECTOR_LABELS = {
    "printing": "Printing",
    "finishing": "Finishing",
    "painting": "Painting",
    "assembly": "Assembly",
    "review": "Review",
    "logistics": "Logistics",
}

# Printing, finishing and painting work on pieces; the rest on whole products
PIECE_SECTORS = ("printing", "finishing", "painting")


class KnownSectorStatus(str, enum.Enum):
    AWAITING = "awaiting"
    IN_PREPARATION = "in-preparation"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


DEFAULT_SECTOR_STATUS = KnownSectorStatus.AWAITING.value
ACTIVE_STATUSES = (KnownSectorStatus.IN_PROGRESS.value, KnownSectorStatus.IN_PREPARATION.value)
# Statuses that unit counts may overwrite
DERIVED_STATUSES = (
    KnownSectorStatus.AWAITING.value,
    KnownSectorStatus.IN_PREPARATION.value,
    KnownSectorStatus.IN_PROGRESS.value,
    KnownSectorStatus.COMPLETED.value,
)


@dataclass(frozen=True)
class OtherSectorStatus:
    """A status string the shop typed that the app doesn't recognise."""
    value: str


SectorStatus = Union[KnownSectorStatus, OtherSectorStatus]


def parse_sector_status(raw: Optional[str]) -> SectorStatus:
    """Never rejects: unknown strings come back wrapped as OtherSectorStatus."""
    if raw is None:
        return KnownSectorStatus.AWAITING
    try:
        return KnownSectorStatus(raw)
    except ValueError:
        return OtherSectorStatus(raw)


# Badge colours for the dashboard; OtherSectorStatus falls back to "secondary"
STATUS_VARIANTS = {
    KnownSectorStatus.AWAITING: "secondary",
    KnownSectorStatus.IN_PREPARATION: "info",
    KnownSectorStatus.IN_PROGRESS: "warning",
    KnownSectorStatus.COMPLETED: "success",
    KnownSectorStatus.BLOCKED: "danger",
}


def status_variant(raw: Optional[str]) -> str:
    status = parse_sector_status(raw)
    if isinstance(status, KnownSectorStatus):
        return STATUS_VARIANTS[status]
    return "secondary"


@dataclass
class SectorState:
    status: str = DEFAULT_SECTOR_STATUS
    responsible: Optional[str] = None
    planned_start: Optional[datetime] = None
    planned_end: Optional[datetime] = None
    notes: Optional[str] = None
    percent_complete: Optional[float] = None
    completed_units: Optional[float] = None
    rework_units: float = 0.0


SECTOR_FIELDS = tuple(f.name for f in fields(SectorState))


@dataclass
class ProductionPlan:
    summary: Optional[str] = None
    sectors: Dict[str, SectorState] = field(default_factory=dict)


def _check_sector_key(key: str) -> str:
    key = key.value if isinstance(key, SectorKey) else key
    if key not in SECTOR_KEYS:
        raise ValidationError(f"sector must be one of {SECTOR_KEYS}, got {key!r}")
    return key


def _check_percent(value) -> None:
    if value is None:
        return
    if not 0 <= value <= 100:
        raise ValidationError(f"percent_complete must be between 0 and 100, got {value}")


def build_plan(summary: Optional[str] = None, sectors: Optional[Dict[str, dict]] = None) -> ProductionPlan:
    """
    New plan with an entry for every sector. Sectors not supplied start
    as "awaiting"; a supplied sector without a status also gets "awaiting".
    """
    sectors = sectors or {}
    for key in sectors:
        _check_sector_key(key)

    plan = ProductionPlan(summary=summary)
    for key in SECTOR_KEYS:
        data = dict(sectors.get(key) or {})
        unknown = set(data) - set(SECTOR_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown sector fields for {key}: {sorted(unknown)}")
        if not data.get("status"):
            data["status"] = DEFAULT_SECTOR_STATUS
        _check_percent(data.get("percent_complete"))
        plan.sectors[key] = SectorState(**data)
    return plan


def update_sector(plan, key: str, patch: dict):
    """
    Replace the named fields on one sector. Fields not in the patch are left
    alone; other sectors are never consulted. Returns the sector state.
    """
    key = _check_sector_key(key)
    unknown = set(patch) - set(SECTOR_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown sector fields: {sorted(unknown)}")
    if "status" in patch and not patch["status"]:
        raise ValidationError("Sector status cannot be empty")
    _check_percent(patch.get("percent_complete"))

    sector = plan.sectors[key]
    for name, value in patch.items():
        setattr(sector, name, value)

    if "status" in patch and isinstance(parse_sector_status(patch["status"]), OtherSectorStatus):
        logger.info("Sector %s set to unrecognised status %r", key, patch["status"])
    return sector


def _quantity(entry) -> float:
    value = entry.get("quantity") if isinstance(entry, dict) else entry.quantity
    return max(value or 0, 0)


def _pieces(entry) -> list:
    if isinstance(entry, dict):
        return entry.get("pieces") or []
    return list(entry.pieces)


def sector_unit_totals(items: Iterable) -> Dict[str, float]:
    """
    Units each sector has to get through for a quote's line products.

    Piece sectors count every printed piece (piece quantity x product
    quantity; a product without pieces counts as one piece per unit).
    Product sectors count product units.
    """
    items = list(items)
    piece_units = 0.0
    for item in items:
        pieces = _pieces(item)
        per_product = sum(_quantity(p) for p in pieces) if pieces else 1
        piece_units += per_product * _quantity(item)
    product_units = sum(_quantity(item) for item in items)
    return {key: piece_units if key in PIECE_SECTORS else product_units for key in SECTOR_KEYS}


def record_sector_output(plan, key: str, quantity: float, total_units: float, rework: float = 0.0):
    """
    Log units through one sector and derive its progress from counts.

    quantity: units finished now. Negative only for logistics, where it
        records a recall of shipped products.
    total_units: units the sector must produce (see sector_unit_totals).
    rework: units sent back for redoing; they raise the sector's target.

    percent_complete = completed / (total_units + rework), completed capped
    at that target; a sector with nothing to do counts as 100%. Known
    progress statuses follow the percentage (0 awaiting, partial
    in-progress, 100 completed); "blocked" and custom statuses are kept.
    """
    key = _check_sector_key(key)
    if quantity < 0 and key != SectorKey.LOGISTICS.value:
        raise ValidationError("Only logistics can record a negative quantity (recall)")
    if rework < 0:
        raise ValidationError("Rework cannot be negative")
    if total_units < 0:
        raise ValidationError("Total units cannot be negative")

    sector = plan.sectors[key]
    sector.rework_units = (sector.rework_units or 0) + rework
    # shipments minus recalls never drop below zero
    sector.completed_units = max((sector.completed_units or 0) + quantity, 0)

    target = total_units + sector.rework_units
    done = min(sector.completed_units, target)
    sector.percent_complete = round(done / target * 100, 1) if target > 0 else 100.0

    if sector.status in DERIVED_STATUSES:
        if sector.percent_complete >= 100:
            sector.status = KnownSectorStatus.COMPLETED.value
        elif sector.percent_complete > 0:
            sector.status = KnownSectorStatus.IN_PROGRESS.value
        else:
            sector.status = KnownSectorStatus.AWAITING.value
    logger.info("Sector %s: %s unit(s) logged, %.1f%% complete", key, quantity, sector.percent_complete)
    return sector


def aggregate_progress(plan) -> float:
    """
    Mean percent_complete over the sectors that define one.
    Sectors without a value are left out entirely (not counted as 0).
    """
    values = [
        plan.sectors[key].percent_complete
        for key in SECTOR_KEYS
        if key in plan.sectors and plan.sectors[key].percent_complete is not None
    ]
    if not values:
        return 0.0
    return sum(values) / len(values)


def active_sector(plan) -> Optional[str]:
    """
    First sector in progress or in preparation; otherwise the first sector
    that has left "awaiting"; otherwise None (still planning).
    """
    ordered = [key for key in SECTOR_KEYS if key in plan.sectors]
    for key in ordered:
        if plan.sectors[key].status in ACTIVE_STATUSES:
            return key
    for key in ordered:
        if plan.sectors[key].status != DEFAULT_SECTOR_STATUS:
            return key
    return None


def stage_label(plan) -> str:
    key = active_sector(plan) if plan is not None else None
    return SECTOR_LABELS[key] if key else "Planning"


def dashboard_summary(quotes: Iterable, now: Optional[datetime] = None) -> dict:
    """
    Production dashboard: one card per accepted quote plus status counts.

    Returns:
        {"counts": {status: n}, "in_production": [
            {"quote_id", "code", "client_name", "progress", "active_sector",
             "stage_label", "sectors", "deadline"}]}
    """
    now = now or datetime.utcnow()
    counts = {"draft": 0, "sent": 0, "accepted": 0, "rejected": 0}
    cards = []
    for quote in quotes:
        status = quote.status.value if hasattr(quote.status, "value") else quote.status
        counts[status] = counts.get(status, 0) + 1
        if status != "accepted":
            continue
        plan = quote.production_plan
        deadline = classify(quote.planned_delivery, now)
        cards.append({
            "quote_id": quote.id,
            "code": quote.code,
            "client_name": quote.client_name,
            "progress": round(aggregate_progress(plan), 1) if plan is not None else 0.0,
            "active_sector": active_sector(plan) if plan is not None else None,
            "stage_label": stage_label(plan),
            "sectors": {
                key: {
                    "status": plan.sectors[key].status,
                    "variant": status_variant(plan.sectors[key].status),
                    "percent_complete": plan.sectors[key].percent_complete,
                    "completed_units": plan.sectors[key].completed_units,
                }
                for key in SECTOR_KEYS if key in plan.sectors
            } if plan is not None else {},
            "deadline": deadline.to_dict(),
        })
    return {"counts": counts, "in_production": cards}

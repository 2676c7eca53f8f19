"""
Storage for quotes and the catalog snapshot the pricing engine reads.

One QuoteRepository wraps one SQLAlchemy session; routers build it per request
from get_db(). There is no module-level state.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .config import settings
from .costing import round2
from .errors import ConflictError, NotFoundError, TransientStorageError, ValidationError
from .production import SECTOR_KEYS

logger = logging.getLogger(__name__)

# Seeded on first run, editable through /api/materials
DEFAULT_MATERIALS = {
    "PLA": 120.00,
    "PETG": 130.00,
    "ABS": 110.00,
    "TPU": 180.00,
    "Resin": 250.00,
}

QUOTE_FIELDS = (
    "client_ref", "client_name", "status", "priority", "notes", "project_summary",
    "payment_terms", "delivery_address", "discount_input", "project_type", "project_fee",
    "discount", "subtotal", "total", "planned_start", "planned_delivery",
    "current_stage", "responsible",
)
PIECE_FIELDS = ("name", "quantity", "material", "weight_grams", "print_hours", "additional_cost", "computed_value")


def _is_duplicate_code(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return "quotes.code" in message or "quotes_code" in message


class QuoteRepository:

    def __init__(self, db: Session):
        self.db = db

    def _commit(self):
        """Commit or roll back everything since the last commit."""
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if _is_duplicate_code(e):
                raise ConflictError("Quote code already exists") from e
            raise TransientStorageError(f"Storage rejected the write: {e.orig}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise TransientStorageError(f"Storage failure: {e}") from e

    # --- Catalog ---

    def list_materials(self) -> List[models.Material]:
        return self.db.query(models.Material).order_by(models.Material.name).all()

    def replace_materials(self, materials: List[dict]) -> List[models.Material]:
        """Replace the whole catalog. Costs are normalised to cents."""
        cleaned = {}
        for material in materials:
            name = (material.get("name") or "").strip()
            cost = material.get("cost_per_kg")
            if not name:
                raise ValidationError("Material name is required")
            if cost is None or cost <= 0:
                raise ValidationError(f"Material {name!r} must cost more than 0 per kg")
            if name in cleaned:
                raise ValidationError(f"Material {name!r} listed twice")
            cleaned[name] = round2(cost)

        self.db.query(models.Material).delete()
        for name, cost in cleaned.items():
            self.db.add(models.Material(name=name, cost_per_kg=cost))
        self._commit()
        return self.list_materials()

    def list_service_fees(self) -> List[models.ServiceFee]:
        return self.db.query(models.ServiceFee).order_by(models.ServiceFee.id).all()

    def get_extra_fees(self, fee_ids: List[int]) -> List[models.ServiceFee]:
        if not fee_ids:
            return []
        fees = self.db.query(models.ServiceFee).filter(
            models.ServiceFee.id.in_(fee_ids),
            models.ServiceFee.kind == models.FeeKind.EXTRA,
        ).all()
        missing = set(fee_ids) - {fee.id for fee in fees}
        if missing:
            raise NotFoundError(f"Extra fee(s) not found: {sorted(missing)}")
        return fees

    def replace_service_fees(self, design: float, scan: float, extras: List[dict]) -> List[models.ServiceFee]:
        for label, amount in (("design", design), ("scan", scan)):
            if amount is None or amount < 0:
                raise ValidationError(f"{label} fee must be 0 or more")
        for extra in extras:
            if not (extra.get("name") or "").strip():
                raise ValidationError("Extra fee name is required")
            if (extra.get("amount") or 0) < 0:
                raise ValidationError(f"Extra fee {extra['name']!r} must be 0 or more")

        self.db.query(models.ServiceFee).delete()
        self.db.add(models.ServiceFee(kind=models.FeeKind.PROJECT, key="design", name="Design from scratch", amount=round2(design)))
        self.db.add(models.ServiceFee(kind=models.FeeKind.PROJECT, key="scan", name="3D scanning", amount=round2(scan)))
        for extra in extras:
            self.db.add(models.ServiceFee(
                kind=models.FeeKind.EXTRA,
                name=extra["name"].strip(),
                amount=round2(extra.get("amount") or 0),
            ))
        self._commit()
        return self.list_service_fees()

    def get_company_profile(self) -> Optional[models.CompanyProfile]:
        return self.db.query(models.CompanyProfile).order_by(models.CompanyProfile.id).first()

    def update_company_profile(self, data: dict) -> models.CompanyProfile:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Company name is required")
        profile = self.get_company_profile()
        if profile is None:
            profile = models.CompanyProfile(name=name)
            self.db.add(profile)
        for field, value in data.items():
            if isinstance(value, str):
                value = value.strip() or None
            setattr(profile, field, value)
        profile.name = name
        self._commit()
        self.db.refresh(profile)
        return profile

    def seed_defaults(self):
        """First-run catalog: materials, project fees, company profile."""
        if not self.db.query(models.Material).count():
            for name, cost in DEFAULT_MATERIALS.items():
                self.db.add(models.Material(name=name, cost_per_kg=cost))
        if not self.db.query(models.ServiceFee).count():
            self.db.add(models.ServiceFee(kind=models.FeeKind.PROJECT, key="design", name="Design from scratch", amount=settings.DESIGN_FEE))
            self.db.add(models.ServiceFee(kind=models.FeeKind.PROJECT, key="scan", name="3D scanning", amount=settings.SCAN_FEE))
        if self.get_company_profile() is None:
            self.db.add(models.CompanyProfile(
                name=settings.COMPANY_NAME,
                email=settings.COMPANY_EMAIL or None,
                phone=settings.COMPANY_PHONE or None,
            ))
        self._commit()

    # --- Quotes ---

    def generate_code(self, now: Optional[datetime] = None) -> str:
        """
        YYYYMMDD.NNN; the sequence restarts every day. Continues after the
        highest number already used that day, so hand-picked codes are skipped.
        """
        prefix = (now or datetime.utcnow()).strftime("%Y%m%d")
        codes = self.db.query(models.Quote.code).filter(models.Quote.code.like(f"{prefix}.%")).all()
        suffixes = [code[len(prefix) + 1:] for (code,) in codes]
        highest = max((int(s) for s in suffixes if s.isascii() and s.isdigit()), default=0)
        return f"{prefix}.{str(highest + 1).zfill(3)}"

    def create_quote_atomic(self, code: str, fields: dict, items: List[dict], fees: List[dict], plan=None) -> models.Quote:
        """
        Insert the quote, its products, pieces, fee snapshots, production plan
        and sectors in one transaction. Nothing is visible unless all of it is.
        """
        quote = models.Quote(code=code, **{k: v for k, v in fields.items() if k in QUOTE_FIELDS})
        for position, item in enumerate(items):
            db_item = models.QuoteItem(
                position=position,
                name=item["name"],
                quantity=item["quantity"],
                assembly=item.get("assembly"),
                painting=item.get("painting"),
                unit_value=item["unit_value"],
                total_value=item["total_value"],
            )
            for piece_position, piece in enumerate(item.get("pieces", [])):
                db_item.pieces.append(models.QuotePiece(
                    position=piece_position,
                    **{k: piece.get(k) for k in PIECE_FIELDS},
                ))
            quote.items.append(db_item)

        for fee in fees:
            quote.selected_fees.append(models.QuoteFee(name=fee["name"], amount=fee["amount"]))

        if plan is not None:
            db_plan = models.ProductionPlan(summary=plan.summary)
            for key in SECTOR_KEYS:
                state = plan.sectors[key]
                db_plan.sectors[key] = models.ProductionSector(
                    sector=key,
                    status=state.status,
                    responsible=state.responsible,
                    planned_start=state.planned_start,
                    planned_end=state.planned_end,
                    notes=state.notes,
                    percent_complete=state.percent_complete,
                    completed_units=state.completed_units,
                    rework_units=state.rework_units,
                )
            quote.production_plan = db_plan

        self.db.add(quote)
        self._commit()
        self.db.refresh(quote)
        logger.info("Created quote %s (%d product(s), total %.2f)", quote.code, len(items), quote.total)
        return quote

    def list_quotes(self, status: Optional[str] = None) -> List[models.Quote]:
        query = self.db.query(models.Quote)
        if status:
            query = query.filter(models.Quote.status == models.QuoteStatus(status))
        return query.order_by(models.Quote.created_at.desc(), models.Quote.id.desc()).all()

    def get_quote(self, quote_id: int) -> models.Quote:
        quote = self.db.query(models.Quote).filter(models.Quote.id == quote_id).first()
        if not quote:
            raise NotFoundError("Quote not found")
        return quote

    def update_quote_status(self, quote_id: int, status: models.QuoteStatus) -> models.Quote:
        """Plain assignment: any status may follow any other."""
        quote = self.get_quote(quote_id)
        previous = quote.status
        quote.status = status
        self._commit()
        self.db.refresh(quote)
        logger.info("Quote %s status %s -> %s", quote.code, previous.value if previous else None, status.value)
        return quote

    def replace_items(self, quote: models.Quote, items: List[dict]):
        quote.items.clear()
        for position, item in enumerate(items):
            db_item = models.QuoteItem(
                position=position,
                name=item["name"],
                quantity=item["quantity"],
                assembly=item.get("assembly"),
                painting=item.get("painting"),
            )
            for piece_position, piece in enumerate(item.get("pieces", [])):
                db_item.pieces.append(models.QuotePiece(
                    position=piece_position,
                    **{k: piece.get(k) for k in PIECE_FIELDS if k != "computed_value"},
                ))
            quote.items.append(db_item)

    def replace_selected_fees(self, quote: models.Quote, fees: List[models.ServiceFee]):
        quote.selected_fees.clear()
        for fee in fees:
            quote.selected_fees.append(models.QuoteFee(name=fee.name, amount=fee.amount))

    def save(self, quote: models.Quote) -> models.Quote:
        self._commit()
        self.db.refresh(quote)
        return quote

    def get_production_plan(self, quote_id: int) -> models.ProductionPlan:
        quote = self.get_quote(quote_id)
        if quote.production_plan is None:
            raise NotFoundError("Quote has no production plan")
        return quote.production_plan

    def save_artifact(self, quote: models.Quote, uri: str, file_name: str, generated_at: datetime):
        # Leave updated_at alone: regenerating the document is not a quote edit
        self.db.query(models.Quote).filter(models.Quote.id == quote.id).update(
            {
                models.Quote.artifact_uri: uri,
                models.Quote.artifact_file_name: file_name,
                models.Quote.artifact_generated_at: generated_at,
                models.Quote.updated_at: quote.updated_at,
            },
            synchronize_session=False,
        )
        self._commit()
        self.db.refresh(quote)

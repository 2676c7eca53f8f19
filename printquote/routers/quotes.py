from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from .. import models, schemas
from ..artifacts import ArtifactCache
from ..deps import get_artifact_cache, get_repository
from ..errors import NotFoundError, ValidationError
from ..pdf_generator import uri_to_path
from ..pricing_engine import PricingEngine, project_fee
from ..production import SECTOR_KEYS, active_sector, aggregate_progress, build_plan, stage_label
from ..repository import QuoteRepository

router = APIRouter(prefix="/quotes", tags=["quotes"])


def _discount_text(value) -> str:
    return "0" if value is None else str(value)


def parse_status_filter(status: Optional[str]) -> Optional[str]:
    if status is None:
        return None
    try:
        return models.QuoteStatus(status).value
    except ValueError:
        raise ValidationError(f"status must be one of {[s.value for s in models.QuoteStatus]}, got {status!r}")


# --- Endpoints ---

@router.post("/", status_code=201)
def create_quote(
    quote: schemas.QuoteCreate,
    repo: QuoteRepository = Depends(get_repository),
    artifacts: ArtifactCache = Depends(get_artifact_cache),
):
    if quote.status not in models.CREATION_STATUSES:
        raise ValidationError(f"New quotes must be draft or sent, got {quote.status.value!r}")
    if not quote.client_name.strip():
        raise ValidationError("client_name is required")

    engine = PricingEngine(repo.list_materials())
    fee_amount = project_fee(quote.project_type, repo.list_service_fees())
    extras = [{"name": f.name, "amount": f.amount} for f in repo.get_extra_fees(quote.extra_fee_ids)]
    priced = engine.build_priced_quote(
        [item.model_dump() for item in quote.items],
        project_fee_amount=fee_amount,
        extra_fees=extras,
        discount_input=quote.discount,
    )

    plan = None
    if quote.production is not None:
        plan = build_plan(
            quote.production.summary,
            {key: state.model_dump(exclude_none=True) for key, state in quote.production.sectors.items()},
        )

    fields = quote.model_dump(exclude={"code", "items", "production", "discount", "extra_fee_ids"})
    fields.update(
        client_name=quote.client_name.strip(),
        discount_input=_discount_text(quote.discount),
        project_fee=priced["project_fee"],
        discount=priced["discount"],
        subtotal=priced["subtotal"],
        total=priced["total"],
    )

    db_quote = repo.create_quote_atomic(
        code=quote.code or repo.generate_code(),
        fields=fields,
        items=priced["items"],
        fees=extras,
        plan=plan,
    )
    artifacts.on_quote_created(db_quote)
    return _quote_to_dict(db_quote)


@router.get("/")
def list_quotes(status: Optional[str] = None, repo: QuoteRepository = Depends(get_repository)):
    return [_quote_to_dict(q) for q in repo.list_quotes(parse_status_filter(status))]


@router.get("/{quote_id}")
def get_quote(quote_id: int, repo: QuoteRepository = Depends(get_repository)):
    return _quote_to_dict(repo.get_quote(quote_id))


@router.patch("/{quote_id}")
def update_quote(
    quote_id: int,
    update: schemas.QuoteUpdate,
    repo: QuoteRepository = Depends(get_repository),
    artifacts: ArtifactCache = Depends(get_artifact_cache),
):
    """
    Edit quote fields. Pricing caches are recomputed from the (possibly new)
    items, fees and discount, then the document is regenerated.
    """
    quote = repo.get_quote(quote_id)
    data = update.model_dump(exclude_unset=True)
    items = data.pop("items", None)
    fee_ids = data.pop("extra_fee_ids", None)

    for required in ("client_name", "priority"):
        if required in data and data[required] is None:
            data.pop(required)
    if "client_name" in data:
        if not data["client_name"].strip():
            raise ValidationError("client_name is required")
        data["client_name"] = data["client_name"].strip()
    if "discount" in data:
        quote.discount_input = _discount_text(data.pop("discount"))
    if "project_type" in data:
        project_type = data.pop("project_type") or "none"
        quote.project_fee = project_fee(project_type, repo.list_service_fees())
        quote.project_type = project_type

    for field, value in data.items():
        setattr(quote, field, value)
    if items is not None:
        repo.replace_items(quote, items)
    if fee_ids is not None:
        repo.replace_selected_fees(quote, repo.get_extra_fees(fee_ids))

    PricingEngine(repo.list_materials()).recalculate(quote)
    repo.save(quote)
    artifacts.on_quote_updated(quote)
    return _quote_to_dict(quote)


@router.patch("/{quote_id}/status")
def update_status(quote_id: int, update: schemas.StatusUpdate, repo: QuoteRepository = Depends(get_repository)):
    """Any status may follow any other; only membership in QuoteStatus is checked."""
    quote = repo.update_quote_status(quote_id, update.status)
    return {"id": quote.id, "status": quote.status.value}


@router.get("/{quote_id}/pdf")
def download_pdf(quote_id: int, repo: QuoteRepository = Depends(get_repository)):
    """Serve the stored document. 404 when rendering never succeeded."""
    quote = repo.get_quote(quote_id)
    if not quote.artifact_uri:
        raise NotFoundError("Quote has no generated document")
    path = uri_to_path(quote.artifact_uri)
    if not path.exists():
        raise NotFoundError("Generated document is missing from storage")
    return FileResponse(path, media_type="application/pdf", filename=quote.artifact_file_name)


def _quote_to_dict(q: models.Quote) -> dict:
    return {
        "id": q.id,
        "code": q.code,
        "client_ref": q.client_ref,
        "client_name": q.client_name,
        "status": q.status.value if q.status else "draft",
        "priority": q.priority.value if q.priority else "medium",
        "notes": q.notes,
        "project_summary": q.project_summary,
        "payment_terms": q.payment_terms,
        "delivery_address": q.delivery_address,
        "discount_input": q.discount_input,
        "discount": q.discount,
        "project_type": q.project_type,
        "project_fee": q.project_fee,
        "selected_fees": [{"id": f.id, "name": f.name, "amount": f.amount} for f in q.selected_fees],
        "subtotal": q.subtotal,
        "total": q.total,
        "planned_start": q.planned_start.isoformat() if q.planned_start else None,
        "planned_delivery": q.planned_delivery.isoformat() if q.planned_delivery else None,
        "current_stage": q.current_stage,
        "responsible": q.responsible,
        "created_at": q.created_at.isoformat() if q.created_at else None,
        "updated_at": q.updated_at.isoformat() if q.updated_at else None,
        "items": [_item_to_dict(i) for i in q.items],
        "production": plan_to_dict(q.production_plan) if q.production_plan else None,
        "artifact": {
            "uri": q.artifact_uri,
            "file_name": q.artifact_file_name,
            "generated_at": q.artifact_generated_at.isoformat() if q.artifact_generated_at else None,
        } if q.artifact_uri else None,
    }


def _item_to_dict(i: models.QuoteItem) -> dict:
    return {
        "id": i.id,
        "name": i.name,
        "quantity": i.quantity,
        "assembly": i.assembly,
        "painting": i.painting,
        "unit_value": i.unit_value,
        "total_value": i.total_value,
        "pieces": [
            {
                "id": p.id,
                "name": p.name,
                "quantity": p.quantity,
                "material": p.material,
                "weight_grams": p.weight_grams,
                "print_hours": p.print_hours,
                "additional_cost": p.additional_cost,
                "computed_value": p.computed_value,
            }
            for p in i.pieces
        ],
    }


def sector_to_dict(s: models.ProductionSector) -> dict:
    return {
        "status": s.status,
        "responsible": s.responsible,
        "planned_start": s.planned_start.isoformat() if s.planned_start else None,
        "planned_end": s.planned_end.isoformat() if s.planned_end else None,
        "notes": s.notes,
        "percent_complete": s.percent_complete,
        "completed_units": s.completed_units,
        "rework_units": s.rework_units,
    }


def plan_to_dict(plan: models.ProductionPlan) -> dict:
    return {
        "summary": plan.summary,
        "sectors": {key: sector_to_dict(plan.sectors[key]) for key in SECTOR_KEYS if key in plan.sectors},
        "progress": aggregate_progress(plan),
        "active_sector": active_sector(plan),
        "stage_label": stage_label(plan),
    }

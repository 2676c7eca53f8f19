from datetime import datetime

from fastapi import APIRouter, Depends

from .. import schemas
from ..deps import get_repository
from ..production import (
    active_sector,
    aggregate_progress,
    dashboard_summary,
    record_sector_output,
    sector_unit_totals,
    stage_label,
    update_sector,
)
from ..repository import QuoteRepository
from .quotes import sector_to_dict

router = APIRouter(tags=["production"])


def _sector_response(quote_id: int, sector: str, state, plan) -> dict:
    return {
        "quote_id": quote_id,
        "sector": sector,
        "state": sector_to_dict(state),
        "progress": aggregate_progress(plan),
        "active_sector": active_sector(plan),
        "stage_label": stage_label(plan),
    }


@router.patch("/quotes/{quote_id}/production/{sector}")
def patch_sector(
    quote_id: int,
    sector: str,
    update: schemas.SectorUpdate,
    repo: QuoteRepository = Depends(get_repository),
):
    """
    Update one sector of a quote's production plan. Other sectors are not
    checked: a later sector may finish before an earlier one starts.
    """
    plan = repo.get_production_plan(quote_id)
    state = update_sector(plan, sector, update.model_dump(exclude_unset=True))
    repo.save(plan.quote)
    return _sector_response(quote_id, sector, state, plan)


@router.post("/quotes/{quote_id}/production/{sector}/output")
def log_sector_output(
    quote_id: int,
    sector: str,
    output: schemas.SectorOutput,
    repo: QuoteRepository = Depends(get_repository),
):
    """
    Log produced (or, for logistics, recalled) units. Progress and status are
    derived from the quote's piece and product counts.
    """
    plan = repo.get_production_plan(quote_id)
    totals = sector_unit_totals(plan.quote.items)
    state = record_sector_output(
        plan, sector, output.quantity, totals.get(sector, 0), rework=output.rework,
    )
    repo.save(plan.quote)
    return _sector_response(quote_id, sector, state, plan)


@router.get("/production/dashboard")
def get_dashboard(repo: QuoteRepository = Depends(get_repository)):
    return dashboard_summary(repo.list_quotes(), datetime.utcnow())

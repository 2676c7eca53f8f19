from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends

from ..deadlines import deadline_rows
from ..deps import get_repository
from ..repository import QuoteRepository
from .quotes import parse_status_filter

router = APIRouter(prefix="/deadlines", tags=["deadlines"])


@router.get("/")
def list_deadlines(
    status: Optional[str] = None,
    q: Optional[str] = None,
    repo: QuoteRepository = Depends(get_repository),
):
    """Upcoming deliveries, soonest first; quotes without a date at the end."""
    return deadline_rows(repo.list_quotes(), datetime.utcnow(), status=parse_status_filter(status), query=q)

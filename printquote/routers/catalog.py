from typing import List

from fastapi import APIRouter, Depends

from .. import schemas
from ..deps import get_repository
from ..repository import QuoteRepository

router = APIRouter(tags=["catalog"])


@router.get("/materials/", response_model=List[schemas.Material])
def list_materials(repo: QuoteRepository = Depends(get_repository)):
    return repo.list_materials()


@router.put("/materials/", response_model=List[schemas.Material])
def replace_materials(materials: List[schemas.MaterialCreate], repo: QuoteRepository = Depends(get_repository)):
    """
    Replace the catalog. Existing quotes keep their stored values until they
    are next edited; pieces naming a removed material then price at 0/g.
    """
    return repo.replace_materials([m.model_dump() for m in materials])


@router.get("/fees/", response_model=List[schemas.ServiceFee])
def list_fees(repo: QuoteRepository = Depends(get_repository)):
    return repo.list_service_fees()


@router.put("/fees/", response_model=List[schemas.ServiceFee])
def replace_fees(update: schemas.ServiceFeesUpdate, repo: QuoteRepository = Depends(get_repository)):
    return repo.replace_service_fees(
        update.design,
        update.scan,
        [extra.model_dump() for extra in update.extras],
    )

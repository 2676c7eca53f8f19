from fastapi import APIRouter, Depends

from .. import schemas
from ..artifacts import ArtifactCache
from ..deps import get_artifact_cache, get_repository
from ..errors import NotFoundError
from ..repository import QuoteRepository

router = APIRouter(prefix="/company", tags=["company"])


@router.get("", response_model=schemas.CompanyProfile)
def get_company(repo: QuoteRepository = Depends(get_repository)):
    profile = repo.get_company_profile()
    if profile is None:
        raise NotFoundError("Company profile not configured")
    return profile


@router.put("")
def update_company(
    update: schemas.CompanyProfileBase,
    repo: QuoteRepository = Depends(get_repository),
    artifacts: ArtifactCache = Depends(get_artifact_cache),
):
    """Save the profile, then regenerate the document of every quote."""
    profile = repo.update_company_profile(update.model_dump())
    regenerated = artifacts.on_company_profile_updated(profile)
    return {
        "profile": schemas.CompanyProfile.model_validate(profile).model_dump(mode="json"),
        "artifacts_regenerated": regenerated,
    }

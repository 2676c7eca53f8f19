from fastapi import Depends
from sqlalchemy.orm import Session

from .artifacts import ArtifactCache
from .database import get_db
from .pdf_generator import PdfRenderer
from .repository import QuoteRepository


def get_repository(db: Session = Depends(get_db)) -> QuoteRepository:
    return QuoteRepository(db)


def get_renderer() -> PdfRenderer:
    return PdfRenderer()


def get_artifact_cache(
    repository: QuoteRepository = Depends(get_repository),
    renderer: PdfRenderer = Depends(get_renderer),
) -> ArtifactCache:
    return ArtifactCache(renderer, repository)

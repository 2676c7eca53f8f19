from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from .config import settings
from .database import engine, Base, SessionLocal
from .errors import QuoteError, ValidationError, NotFoundError, ConflictError, TransientStorageError
from .repository import QuoteRepository
from .routers import quotes, production, deadlines, catalog, company

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("printquote")

# Create tables (handles new tables but won't add columns to existing ones)
Base.metadata.create_all(bind=engine)

ERROR_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    TransientStorageError: 503,
}

app = FastAPI(
    title="Print Quote",
    description="Quoting and production tracking for 3D printing jobs",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(QuoteError)
async def handle_quote_error(request: Request, exc: QuoteError):
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        500,
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# API routes
app.include_router(quotes.router, prefix="/api")
app.include_router(production.router, prefix="/api")
app.include_router(deadlines.router, prefix="/api")
app.include_router(catalog.router, prefix="/api")
app.include_router(company.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok", "app": "printquote"}


@app.on_event("startup")
def auto_seed():
    """Seed materials, project fees and the company profile on first run."""
    db = SessionLocal()
    try:
        QuoteRepository(db).seed_defaults()
    finally:
        db.close()

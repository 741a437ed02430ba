import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stockledger.api.routes.adjustments import router as adjustments_router
from stockledger.api.routes.auth import router as auth_router
from stockledger.api.routes.catalog import router as catalog_router
from stockledger.core.config import settings
from stockledger.core.exceptions import (
    ConcurrencyConflict,
    InsufficientStock,
    InvalidTransition,
    LedgerError,
    NotFound,
    ValidationError,
)
from stockledger.core.logging import setup_logging
from stockledger.db.database import SessionLocal, init_schema
from stockledger.services.users import ensure_bootstrap_admin

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[LedgerError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    InsufficientStock: status.HTTP_409_CONFLICT,
    NotFound: status.HTTP_404_NOT_FOUND,
    InvalidTransition: status.HTTP_409_CONFLICT,
    ConcurrencyConflict: status.HTTP_409_CONFLICT,
}


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    if settings.auto_create_schema:
        init_schema()
    db = SessionLocal()
    try:
        ensure_bootstrap_admin(db)
    finally:
        db.close()
    logger.info("%s started (approval policy: %s)", settings.app_name, settings.approval_policy)
    yield


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error": exc.code, "context": jsonable_encoder(exc.context)},
    )


def create_app() -> FastAPI:
    application = FastAPI(title=settings.app_name, lifespan=lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(LedgerError, ledger_error_handler)
    application.include_router(auth_router)
    application.include_router(catalog_router)
    application.include_router(adjustments_router)

    @application.get("/health", tags=["System"])
    def health_check():
        return {"status": "ok"}

    return application


app = create_app()

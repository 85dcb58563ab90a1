import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import PersistenceError, VerificationError
from app.models import Base  # noqa: F401 - register models
from app.routers import health, verification

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Email Verification API",
    description="Issue and check short-lived email verification codes",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(VerificationError)
def verification_error_handler(_request: Request, exc: VerificationError) -> JSONResponse:
    """Typed failures as {"success": false, "error": CODE, "message": ...}."""
    if isinstance(exc, PersistenceError):
        logger.warning("Transient storage failure: %s", exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


app.include_router(health.router, prefix="/health")
app.include_router(verification.router, prefix="/email-verification")

if settings.VERIFICATION_DEV_MODE:
    logger.warning("VERIFICATION_DEV_MODE is on: issued codes are returned in API responses")

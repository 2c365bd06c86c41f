# backend/marketplace/main.py

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from . import models  # noqa: F401  registers tables on Base.metadata
from .api import api_booking, api_payment, api_provider, api_review, api_service
from .core.config import settings
from .core.observability import setup_logging
from .database import Base, engine

setup_logging()
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Pet Services Marketplace API", default_response_class=ORJSONResponse)

ALLOWED_ORIGINS = ["*"] if settings.CORS_ALLOW_ALL else settings.CORS_ORIGINS

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    # Browsers refuse credentials with a wildcard origin
    allow_credentials=not settings.CORS_ALLOW_ALL,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.info("CORS origins set to: %s", ALLOWED_ORIGINS)


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return validation errors with details and log them for debugging."""
    errors = jsonable_encoder(exc.errors())
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": errors},
    )


api_prefix = settings.API_V1_STR  # usually "/api/v1"


# ─── SERVICE ROUTES (under /api/v1/services) ────────────────────────────────────────
app.include_router(api_service.router, prefix=f"{api_prefix}/services", tags=["services"])

# ─── BOOKING ROUTES (under /api/v1/bookings) ────────────────────────────────────────
app.include_router(api_booking.router, prefix=f"{api_prefix}/bookings", tags=["bookings"])
app.include_router(api_payment.booking_router, prefix=f"{api_prefix}/bookings", tags=["payments"])

# ─── PAYMENT ROUTES (under /api/v1/payments) ────────────────────────────────────────
app.include_router(api_payment.router, prefix=f"{api_prefix}/payments", tags=["payments"])

# ─── REVIEW ROUTES (under /api/v1/reviews) ──────────────────────────────────────────
app.include_router(api_review.router, prefix=f"{api_prefix}/reviews", tags=["reviews"])

# ─── PROVIDER ROUTES (under /api/v1/providers) ──────────────────────────────────────
app.include_router(api_provider.router, prefix=f"{api_prefix}/providers", tags=["providers"])

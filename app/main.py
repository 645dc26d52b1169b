"""
Study Subscriptions - FastAPI Application

Main entry point for the backend API.
Provides endpoints for payments, subscriptions, referrals and AI models.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config.settings import settings
from app.infrastructure.exceptions import (
    StudySubscriptionsError,
    ValidationError,
    NotFoundError,
    DuplicateError,
    LedgerError,
    ReferralAwardError,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info(f"Study Subscriptions starting in {settings.environment} mode...")

    if settings.database_url:
        try:
            from app.infrastructure.db.database import init_db
            await init_db()
            logger.info("Database connection pool initialized")
        except Exception as e:
            logger.warning(f"Database initialization skipped: {e}")

    yield

    # Shutdown
    if settings.database_url:
        try:
            from app.infrastructure.db.database import close_db
            await close_db()
            logger.info("Database connection pool closed")
        except Exception as e:
            logger.warning(f"Database shutdown error: {e}")

    logger.info("Study Subscriptions shutting down...")


app = FastAPI(
    title="Study Subscriptions",
    description="Subscription lifecycle and referral points ledger",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS configuration from Settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """Handle validation errors."""
    return JSONResponse(
        status_code=400,
        content=exc.to_dict(),
    )


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    """Handle not found errors."""
    return JSONResponse(
        status_code=404,
        content=exc.to_dict(),
    )


@app.exception_handler(DuplicateError)
async def duplicate_error_handler(request: Request, exc: DuplicateError):
    """Handle uniqueness conflicts."""
    return JSONResponse(
        status_code=409,
        content=exc.to_dict(),
    )


@app.exception_handler(ReferralAwardError)
async def referral_award_error_handler(request: Request, exc: ReferralAwardError):
    """Award failures abort the activation; the caller may retry."""
    return JSONResponse(
        status_code=500,
        content=exc.to_dict(),
    )


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    """Handle points ledger conflicts such as insufficient balance."""
    return JSONResponse(
        status_code=409,
        content=exc.to_dict(),
    )


@app.exception_handler(StudySubscriptionsError)
async def general_error_handler(request: Request, exc: StudySubscriptionsError):
    """Handle all other application errors."""
    return JSONResponse(
        status_code=500,
        content=exc.to_dict(),
    )


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "study-subscriptions"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Study Subscriptions API",
        "version": "1.0.0",
        "docs": "/docs",
    }


# ============================================================================
# Import and register routers
# ============================================================================

from app.api.routes import payments, subscriptions, referrals, ai_models  # noqa: E402

app.include_router(payments.router, prefix="/api", tags=["Payments"])
app.include_router(subscriptions.router, prefix="/api", tags=["Subscriptions"])
app.include_router(referrals.router, prefix="/api", tags=["Referrals"])
app.include_router(ai_models.router, prefix="/api", tags=["AI Models"])

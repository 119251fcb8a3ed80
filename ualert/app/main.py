"""
FastAPI application entry point.

Run with:
    uvicorn ualert.app.main:app --port 8000
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# ── Core infrastructure ──
from ualert.app.core.config import settings
from ualert.app.core.logging_config import setup_logging, get_logger
from ualert.app.core.errors import register_error_handlers

# ── API routers ──
from ualert.app.api.v1.migration import router as migration_router

# ── Initialise logging ──
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown events."""
    logger.info(
        "Starting %s v%s [%s]",
        settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
    )
    yield
    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "One-time migration of legacy per-alert notification channels "
        "into receivers and an Alertmanager-compatible routing tree."
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS if not settings.CORS_ALLOW_ALL else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(migration_router)


@app.get("/", tags=["root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "docs": "/docs",
    }


@app.get("/health/live", tags=["health"])
async def liveness():
    """Liveness probe — is the process alive?"""
    return {"status": "alive"}

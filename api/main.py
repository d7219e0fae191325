"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.middleware import RequestContextMiddleware
from api.routes import health, runs, stats
from core.config import settings
from core.database import LocalStore
from core.logging import setup_logging
import logging

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Flex Replicator Status API",
    description="Read-only view of the sync ledger and local replica",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

app.include_router(health.router)
app.include_router(runs.router)
app.include_router(stats.router)


@app.on_event("startup")
async def startup_event():
    """Open the local store for the lifetime of the application"""
    logger.info("Starting Flex Replicator status API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    app.state.store = await LocalStore(settings.DATABASE_URL).open()


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Flex Replicator status API")
    store = getattr(app.state, "store", None)
    if store is not None:
        await store.close()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Flex Replicator Status API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "health": "/health",
            "runs": "/runs",
            "stats": "/stats"
        }
    }

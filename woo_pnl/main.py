"""
WooCommerce P&L - Main Application
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .dependencies import init_dependencies, close_dependencies
from .routes import auth_router, sync_router, reports_router, settings_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting WooCommerce P&L...")
    await init_dependencies()
    if settings.credentials() is None:
        logger.warning("WooCommerce credentials are not configured; syncs will fail")
    logger.info("Application ready")
    yield
    logger.info("Shutting down...")
    await close_dependencies()


# Create app
app = FastAPI(
    title="WooCommerce P&L",
    description="Mirror WooCommerce orders and products and report profit and loss",
    version="1.0.0",
    lifespan=lifespan
)

# Include routers
app.include_router(auth_router)
app.include_router(sync_router)
app.include_router(reports_router)
app.include_router(settings_router)


@app.get("/health")
async def health():
    """Health check endpoint (no auth required)."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "woo_pnl.main:app",
        host=settings.host,
        port=settings.port,
        reload=True
    )

"""
RegTruth FastAPI application entry point.

Pipeline: evidence → parse → extract → verify → compose → arbitrate → review → release
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy import text

from regtruth import __version__
from regtruth.api.internal import router as internal_router
from regtruth.api.rules import router as rules_router
from regtruth.concepts.loader import get_registry_version, load_concept_registry
from regtruth.config import get_settings
from regtruth.db.session import check_db_connection, engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info("RegTruth starting")
    try:
        try:
            check_db_connection()
            logger.info("Database connection verified")
        except Exception as e:
            logger.critical("Database unreachable: %s", e)
            raise

        # Registry errors are fatal at startup.
        try:
            load_concept_registry()
            logger.info("Concept registry %s validated", get_registry_version())
        except Exception as e:
            logger.critical("Concept registry validation failed at startup: %s", e)
            raise

        yield
    finally:
        logger.info("RegTruth shutting down")
        engine.dispose()
        logger.info("Database connection pool closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.include_router(rules_router, prefix="/rules", tags=["rules"])

    # Internal job endpoints (cron/scripts, token-authenticated)
    app.include_router(internal_router, tags=["internal"])

    @app.get("/health")
    def health():
        """Health check endpoint. Confirms DB connectivity."""
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {
                "status": "ok",
                "version": __version__,
                "database": "connected",
            }
        except Exception:
            logger.exception("Health check: database unreachable")
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "version": __version__,
                    "database": "disconnected",
                },
            )

    return app


app = create_app()

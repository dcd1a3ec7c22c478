"""FastAPI application factory"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from finance_ingest.api.middleware import MetricsMiddleware, RequestIDMiddleware
from finance_ingest.api.v1 import ingestion, settings as settings_routes
from finance_ingest.config import settings
from finance_ingest.infrastructure.database.session import init_db
from finance_ingest.infrastructure.observability.logging import setup_logging
from finance_ingest.services.factory import create_ingestion_manager
from finance_ingest.services.manager import CrossPlatformIngestionManager

# Setup structured logging
setup_logging(settings.log_level)


def create_app(manager: Optional[CrossPlatformIngestionManager] = None) -> FastAPI:
    """Create and configure FastAPI application"""
    owns_storage = manager is None
    manager = manager or create_ingestion_manager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if owns_storage:
            init_db()
        yield
        await manager.cleanup()

    app = FastAPI(
        title="Finance Ingest",
        description="Transaction detection and ingestion from SMS, notifications and pasted text",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.manager = manager

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {
            "status": "ok",
            "service": settings.service_name,
            "initialized": manager.is_initialized(),
            "listening": manager.is_listening(),
        }

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(ingestion.router, prefix="/v1", tags=["ingestion"])
    app.include_router(settings_routes.router, prefix="/v1", tags=["settings"])

    return app


app = create_app()

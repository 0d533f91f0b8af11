"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from obligation_engine.api.middleware import RequestIDMiddleware, MetricsMiddleware
from obligation_engine.api.v1 import entries, recurrences
from obligation_engine.infrastructure.observability.logging import setup_logging
from obligation_engine.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Obligation Engine",
        description="Scheduling, realization and reconciliation of recurring bills and incomes",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(entries.router, prefix="/v1", tags=["entries"])
    app.include_router(recurrences.router, prefix="/v1", tags=["recurrences"])

    return app


app = create_app()

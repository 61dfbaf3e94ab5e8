"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from savings_agent.api.middleware import RequestIDMiddleware, MetricsMiddleware
from savings_agent.api.v1 import savings, vault
from savings_agent.infrastructure.observability.logging import setup_logging
from savings_agent.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Savings Agent",
        description="Windfall and smart sweep detection with soft-locked vault withdrawals",
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
    app.include_router(savings.router, prefix="/v1", tags=["savings"])
    app.include_router(vault.router, prefix="/v1", tags=["vaults"])

    return app


app = create_app()

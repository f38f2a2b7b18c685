"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from debtflow.api.errors import domain_exception_handler
from debtflow.api.middleware import RequestIDMiddleware, MetricsMiddleware
from debtflow.api.v1 import accounts, debts, quota, reminders, responses
from debtflow.domain.exceptions import DomainException
from debtflow.infrastructure.observability.logging import setup_logging
from debtflow.config import settings

# Setup structured logging
setup_logging(settings.log_level, settings.service_name)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="debtflow",
        description="Debt lifecycle and reminder dispatch service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(debts.router, prefix="/v1", tags=["debts"])
    app.include_router(reminders.router, prefix="/v1", tags=["reminders"])
    app.include_router(responses.router, prefix="/v1", tags=["responses"])
    app.include_router(quota.router, prefix="/v1", tags=["quota"])

    return app


app = create_app()

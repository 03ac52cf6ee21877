"""FastAPI application factory"""

from typing import Optional

import uvicorn
from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from advisor_gateway.api.dependencies import build_orchestrator
from advisor_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from advisor_gateway.api.v1 import recommendations
from advisor_gateway.infrastructure.observability.logging import setup_logging
from advisor_gateway.config import settings
from advisor_gateway.services.recommendations import RecommendationOrchestrator

# Setup structured logging
setup_logging(settings.log_level)


def create_app(orchestrator: Optional[RecommendationOrchestrator] = None) -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Advisor Gateway",
        description="AI-assisted personal finance recommendation service",
        version=settings.service_version,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # One orchestrator (and therefore one advice cache) per application
    app.state.orchestrator = orchestrator or build_orchestrator()

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
    app.include_router(recommendations.router, prefix="/v1/recommendations", tags=["recommendations"])

    return app


app = create_app()


def serve() -> None:
    """Run the service under uvicorn"""
    uvicorn.run(
        "advisor_gateway.api.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    serve()

"""
REST API main application.
Entry point for the FastAPI server that receives payment provider webhooks.
"""

from fastapi import FastAPI

from shared.config.settings import settings
from shared.infrastructure.correlation import CorrelationIdMiddleware
from rest_api.core.lifespan import lifespan
from rest_api.routers.health import router as health_router
from rest_api.routers.webhooks import router as webhooks_router


def create_app() -> FastAPI:
    """Build the FastAPI application with middleware and routers."""
    app = FastAPI(
        title="Storefront Payments API",
        description="Payment webhook reconciliation for the storefront",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(health_router)
    app.include_router(webhooks_router)

    return app


app = create_app()


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rest_api.main:app",
        host="0.0.0.0",
        port=settings.rest_api_port,
        reload=settings.debug,
    )

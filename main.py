"""FastAPI application entry point.

Wires together: middleware, exception handlers, routes, metrics,
and the shared ROOK HTTP client. Validates config at startup.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from health.adapters.rook_client import create_http_client
from health.api import router as health_router
from shared.config import settings
from shared.database import dispose_engine
from shared.exceptions import ProblemDetailError
from shared.logging import configure_logging
from shared.metrics import create_metrics_app
from shared.middleware import (
    RequestIdMiddleware,
    http_exception_handler,
    problem_detail_handler,
    request_validation_handler,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    configure_logging(json_output=True)
    app.state.http_client = create_http_client()
    logger.info(
        "app_starting",
        rook_base_url=settings.rook_base_url,
        credentials_configured=bool(settings.rook_client_uuid and settings.rook_client_secret),
        database_url=settings.database_url.split("@")[-1],  # hide credentials
    )
    try:
        yield
    finally:
        await app.state.http_client.aclose()
        await dispose_engine()
        logger.info("app_shutting_down")


app = FastAPI(
    title="Health Data Gateway API",
    description=(
        "Fronts the ROOK health-data API: forwards requests upstream, caches "
        "per-day health snapshots, and merges partial user-profile updates."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestIdMiddleware)

# All errors emit application/problem+json (RFC 9457)
app.add_exception_handler(ProblemDetailError, problem_detail_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)

app.include_router(health_router)

metrics_app = create_metrics_app()
app.mount("/metrics", metrics_app)


@app.get("/ping")
async def ping():
    return {"status": "pong"}

"""
FILE: src/api/main.py
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.observability import setup_observability
from src.api.persistence_profile import (
    app_persistence_profile_name,
    validate_persistence_profile_guardrails,
)
from src.api.routers import proposals as proposal_routes
from src.api.routers.finance import router as finance_router
from src.api.routers.payments import router as payments_router
from src.api.routers.payments_config import payment_gateway_backend_name
from src.api.routers.proposal_http_errors import register_error_handlers
from src.api.routers.proposal_links import router as proposal_links_router
from src.api.routers.proposals_config import proposal_store_backend_name

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _app_lifespan(_app: FastAPI):
    validate_persistence_profile_guardrails()
    yield


app = FastAPI(
    title="Proposal Payments API",
    version="0.1.0",
    description=(
        "Service proposal lifecycle and Mercado Pago payment reconciliation.\n\n"
        "Proposals move through `pending`, `waiting_client`, `accepted` or `declined`, "
        "then `payment_pending`, `paid` or `payment_failed` as payment notifications arrive."
    ),
    openapi_tags=[
        {
            "name": "Proposal Lifecycle",
            "description": "Proposal persistence, dispatch, and client response endpoints.",
        },
        {
            "name": "Proposal Public Links",
            "description": "Client-facing link resolution and response endpoints.",
        },
        {
            "name": "Payments",
            "description": "Checkout preference creation and gateway webhook endpoints.",
        },
        {
            "name": "Finance",
            "description": "Revenue dashboard and monthly projection endpoints.",
        },
    ],
    lifespan=_app_lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(proposal_routes.router)
app.include_router(proposal_links_router)
app.include_router(payments_router)
app.include_router(finance_router)

register_error_handlers(app)
setup_observability(app)


@app.exception_handler(Exception)
async def unhandled_exception_to_problem_details(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception while serving request", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        media_type="application/problem+json",
        content={
            "type": "about:blank",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "An unexpected error occurred.",
            "instance": str(request.url.path),
        },
    )


@app.get("/health", tags=["meta"])
@app.get("/health/live", tags=["meta"])
def health_live() -> dict:
    return {"status": "ok", "time": datetime.now(timezone.utc).isoformat()}


@app.get("/health/ready", tags=["meta"])
def health_ready() -> JSONResponse:
    """Readiness: the proposal store can be initialized with the current configuration."""
    payload = {
        "persistence_profile": app_persistence_profile_name(),
        "proposal_store_backend": proposal_store_backend_name(),
        "payment_gateway_backend": payment_gateway_backend_name(),
    }
    try:
        proposal_routes.get_proposal_repository()
    except RuntimeError as exc:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={**payload, "status": "not_ready", "detail": str(exc)},
        )
    return JSONResponse(status_code=status.HTTP_200_OK, content={**payload, "status": "ready"})

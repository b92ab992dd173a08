import json
import logging
import os
import time
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Awaitable, Callable, Optional
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from prometheus_fastapi_instrumentator import Instrumentator

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
route_family_var: ContextVar[str] = ContextVar("route_family", default="")

# First matching prefix wins.
ROUTE_FAMILIES: tuple[tuple[str, str], ...] = (
    ("/api/webhooks/", "payment_webhook"),
    ("/api/create-payment", "payment_checkout"),
    ("/proposta/", "public_link"),
    ("/proposals", "proposals"),
    ("/finance/", "finance"),
    ("/health", "health"),
    ("/metrics", "metrics"),
)


def route_family(path: str) -> str:
    for prefix, family in ROUTE_FAMILIES:
        if path.startswith(prefix):
            return family
    return "other"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, tagged with the ids of the request being served."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "service": os.getenv("SERVICE_NAME", "proposal-payments"),
            "environment": os.getenv("ENVIRONMENT", "local"),
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": correlation_id_var.get() or None,
            "request_id": request_id_var.get() or None,
            "route_family": route_family_var.get() or None,
        }
        if hasattr(record, "extra_fields") and isinstance(record.extra_fields, dict):
            payload.update(record.extra_fields)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps({k: v for k, v in payload.items() if v is not None}, default=str)


def _route_template(request: Request) -> Optional[str]:
    # Public link paths carry the link token; log the template instead.
    route = request.scope.get("route")
    return getattr(route, "path", None)


def setup_observability(app: FastAPI) -> None:
    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        root_logger.handlers.clear()
    root_logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    Instrumentator(excluded_handlers=["/metrics", "/health.*"]).instrument(app).expose(app)

    @app.middleware("http")
    async def _request_observability_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        logger = logging.getLogger("http.access")
        started = time.perf_counter()

        # Mercado Pago sends x-request-id on webhooks; it is also part of the signed manifest.
        correlation_id = request.headers.get("X-Correlation-Id") or f"corr_{uuid4().hex[:12]}"
        request_id = request.headers.get("X-Request-Id") or f"req_{uuid4().hex[:12]}"
        family = route_family(request.url.path)

        correlation_token = correlation_id_var.set(correlation_id)
        request_token = request_id_var.set(request_id)
        family_token = route_family_var.set(family)
        status_code = 500
        try:
            response: Response = await call_next(request)
            status_code = response.status_code
        finally:
            log = logger.warning if status_code >= 500 else logger.info
            log(
                "request.completed",
                extra={
                    "extra_fields": {
                        "http_method": request.method,
                        "route": _route_template(request) or "unmatched",
                        "route_family": family,
                        "status_code": status_code,
                        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
                    }
                },
            )
            correlation_id_var.reset(correlation_token)
            request_id_var.reset(request_token)
            route_family_var.reset(family_token)

        response.headers["X-Correlation-Id"] = correlation_id
        response.headers["X-Request-Id"] = request_id
        return response

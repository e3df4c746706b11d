import logging
import os
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

log = logging.getLogger("svckit.access")

# Shared by every service so they can live in one process (tests) without
# registering the same collector twice.
REQS = Counter("http_requests_total", "Total HTTP requests", ["service", "path", "method", "status"])
LAT  = Histogram("http_request_duration_seconds", "Request latency", ["service", "path", "method"])

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = None) -> None:
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)


def instrument(app: FastAPI, service: str, display_name: str) -> None:
    """
    Attach the metrics/access-log middleware plus /health and /metrics.
    """

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        elapsed = time.time() - start
        REQS.labels(service, request.url.path, request.method, response.status_code).inc()
        LAT.labels(service, request.url.path, request.method).observe(elapsed)
        log.info("%s %s %s -> %d (%.1f ms)", service, request.method, request.url.path,
                 response.status_code, elapsed * 1000)
        return response

    @app.get("/health")
    def health():
        return {
            "status": "OK",
            "service": display_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Origin", "Content-Type", "Content-Length", "Accept-Encoding", "X-CSRF-Token", "Authorization"]


def allow_cross_origin(app: FastAPI) -> None:
    """Any origin may call the API; preflights are answered before routing."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
    )

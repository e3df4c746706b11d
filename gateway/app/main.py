import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional

import requests
from fastapi import FastAPI, Request, Response
from prometheus_client import Counter
from starlette.concurrency import run_in_threadpool

from svckit.errors import error_response, install_error_handlers
from svckit.observability import allow_cross_origin, configure_logging, instrument

APP_NAME = "gateway"
LISTEN_PORT = int(os.getenv("LISTEN_PORT", "3000"))
CONNECT_TIMEOUT = float(os.getenv("UPSTREAM_CONNECT_TIMEOUT", "2"))
READ_TIMEOUT = float(os.getenv("UPSTREAM_READ_TIMEOUT", "30"))

log = logging.getLogger(__name__)

UPSTREAM_FAILURES = Counter("gateway_upstream_failures_total", "Proxy failures", ["service"])

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]

# RFC 7230 6.1, plus headers requests/starlette recompute themselves
HOP_BY_HOP = {
    "connection", "keep-alive", "proxy-authenticate", "proxy-authorization",
    "te", "trailers", "transfer-encoding", "upgrade",
    "host", "content-length", "content-encoding",
}

@dataclass(frozen=True)
class Backend:
    name: str
    prefix: str
    url: str
    description: str

def default_backends() -> Dict[str, Backend]:
    return {
        "users": Backend("User", "/api/users",
                         os.getenv("USER_SERVICE_URL", "http://user-service:3001"), "User management"),
        "products": Backend("Product", "/api/products",
                            os.getenv("PRODUCT_SERVICE_URL", "http://product-service:8080"), "Product catalog"),
        "orders": Backend("Order", "/api/orders",
                          os.getenv("ORDER_SERVICE_URL", "http://order-service:3002"), "Order management"),
    }

def _forward_headers(headers) -> Dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() not in HOP_BY_HOP}

def create_app(backends: Optional[Dict[str, Backend]] = None,
               http: Optional[requests.Session] = None,
               timeout=(CONNECT_TIMEOUT, READ_TIMEOUT)) -> FastAPI:
    app = FastAPI(title=APP_NAME)
    app.state.backends = backends or default_backends()
    app.state.http = http or requests.Session()
    app.state.timeout = timeout

    for b in app.state.backends.values():
        log.info("route %s -> %s", b.prefix, b.url)

    @app.on_event("shutdown")
    def on_shutdown():
        app.state.http.close()

    instrument(app, APP_NAME, "API Gateway")
    allow_cross_origin(app)
    install_error_handlers(app, APP_NAME)

    # API Documentation
    @app.get("/")
    def root():
        bs = app.state.backends.values()
        return {
            "message": "Microservice API Gateway",
            "version": "1.0.0",
            "services": [
                {"name": f"{b.name} Service", "path": b.prefix, "description": b.description} for b in bs
            ],
            "endpoints": dict({"health": "/health"}, **{k: b.prefix for k, b in app.state.backends.items()}),
        }

    def make_proxy(backend: Backend):
        async def proxy(request: Request):
            target = backend.url.rstrip("/") + request.url.path
            body = await request.body()
            log.info("Proxying to %s Service: %s %s", backend.name, request.method, request.url.path)
            try:
                upstream = await run_in_threadpool(
                    app.state.http.request,
                    request.method,
                    target,
                    params=list(request.query_params.multi_items()),
                    headers=_forward_headers(request.headers),
                    data=body or None,
                    timeout=app.state.timeout,
                    allow_redirects=False,
                )
            except requests.RequestException as e:
                UPSTREAM_FAILURES.labels(backend.name.lower()).inc()
                log.error("%s Service proxy error: %s (target %s)", backend.name, e, backend.url)
                return error_response(503, f"{backend.name} service unavailable", details=str(e))

            return Response(
                content=upstream.content,
                status_code=upstream.status_code,
                headers=_forward_headers(upstream.headers),
            )
        return proxy

    # Proxy routes to microservices; paths are forwarded unchanged
    for b in app.state.backends.values():
        endpoint = make_proxy(b)
        app.add_api_route(b.prefix, endpoint, methods=PROXY_METHODS, include_in_schema=False)
        app.add_api_route(b.prefix + "/{path:path}", endpoint, methods=PROXY_METHODS, include_in_schema=False)

    return app

if __name__ == "__main__":
    import uvicorn
    configure_logging()
    uvicorn.run(create_app(), host="0.0.0.0", port=LISTEN_PORT)

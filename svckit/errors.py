import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DataError, IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

log = logging.getLogger(__name__)


def error_response(status_code: int, message: str, headers=None, **extra) -> JSONResponse:
    body = {"error": message}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def describe_validation_error(exc: RequestValidationError) -> str:
    """First validation problem as 'field: message'."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    # loc is ("body", "items", 0, "quantity"); drop the request part
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "path", "query")]
    msg = first.get("msg", "Invalid value")
    return f"{'.'.join(loc)}: {msg}" if loc else msg


def install_error_handlers(app: FastAPI, service: str) -> None:
    """
    Render every failure as {"error": "<message>"}.
    Validation failures are 400 rather than FastAPI's 422.
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            return error_response(404, "Route not found")
        return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return error_response(400, describe_validation_error(exc))

    @app.exception_handler(IntegrityError)
    @app.exception_handler(DataError)
    async def store_rejected(request: Request, exc: Exception):
        # unique-key paths map their own 409 before this
        log.warning("%s: store rejected %s %s: %s", service, request.method, request.url.path,
                    getattr(exc, "orig", exc))
        return error_response(400, "Request violates a data constraint")

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        log.error("%s: unhandled error on %s %s", service, request.method, request.url.path, exc_info=exc)
        return error_response(500, "Internal server error")

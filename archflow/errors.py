import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from archflow.exceptions import CoreError

logger = logging.getLogger(__name__)


def error_response(status_code: int, code: str, message: str, details=None):
    return JSONResponse(
        status_code=status_code,
        content={"code": code, "message": message, "details": details},
    )


def _unpack_http_detail(exc: StarletteHTTPException) -> tuple[str, str, object]:
    detail = exc.detail
    if isinstance(detail, dict):
        return (
            detail.get("code", f"http_{exc.status_code}"),
            detail.get("message", "Request failed"),
            detail.get("details"),
        )
    if isinstance(detail, str):
        return f"http_{exc.status_code}", detail, None
    return f"http_{exc.status_code}", "Request failed", detail


def register_error_handlers(app) -> None:
    """Render every failure as ``{"code", "message", "details"}``."""

    @app.exception_handler(CoreError)
    async def core_error_handler(request: Request, exc: CoreError):
        if exc.status_code >= 500:
            logger.warning("%s on %s: %s", exc.code, request.url.path, exc.message)
        return error_response(exc.status_code, exc.code, exc.message, exc.details)

    # Starlette's class also covers unknown routes and disallowed methods.
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        code, message, details = _unpack_http_detail(exc)
        return error_response(exc.status_code, code, message, details)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        # ctx can hold the raw exception object.
        errors = [
            {key: str(value) if key == "ctx" else value for key, value in err.items()}
            for err in exc.errors()
        ]
        return error_response(422, "validation_error", "Validation error", errors)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return error_response(500, "internal_error", "Internal server error")

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from langextract_api.core.errors import ExtractionServiceError
from langextract_api.interfaces.api.schemas import ErrorResponse

logger = logging.getLogger("api")


def failure_response(status_code: int, error: str, **extra: Any) -> JSONResponse:
    body = ErrorResponse(error=error, **extra)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _describe_validation(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors()[:3]:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "Invalid request: " + "; ".join(parts)


async def service_error_handler(request: Request, exc: ExtractionServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", extra={"path": request.url.path, "error_kind": exc.kind})
    return failure_response(exc.status_code, exc.message)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return failure_response(status.HTTP_400_BAD_REQUEST, _describe_validation(exc))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = failure_response(exc.status_code, str(exc.detail))
    if getattr(exc, "headers", None):
        response.headers.update(exc.headers)
    return response


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_unhandled_error", extra={"path": request.url.path})
    return failure_response(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Internal error: {exc}")


def register_exception_handlers(app: FastAPI) -> None:
    """Every failure leaves the API as `{"success": false, "error": ...}`."""
    app.add_exception_handler(ExtractionServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

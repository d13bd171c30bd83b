"""Global exception handlers mapping housemate errors to HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from housemate.core.errors import ErrorCode, ErrorSeverity, HousemateError, classify_error_with_response


logger = logging.getLogger(__name__)


def _envelope(code: str, message: str, severity: ErrorSeverity) -> dict:
    return {"error": {"code": code, "message": message, "severity": severity.value}}


def register_error_handlers(app: FastAPI) -> None:
    """Register domain, validation and catch-all handlers on the app."""

    @app.exception_handler(HousemateError)
    async def housemate_error_handler(request: Request, exc: HousemateError) -> JSONResponse:
        response = classify_error_with_response(exc)
        level = logging.ERROR if response.status >= status.HTTP_500_INTERNAL_SERVER_ERROR else logging.WARNING
        logger.log(
            level,
            "Request failed: %s",
            exc.message,
            extra={"error_code": response.code, "path": request.url.path},
        )
        return JSONResponse(
            status_code=response.status,
            content=_envelope(response.code, response.message, response.severity),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_envelope(ErrorCode.ERR_INVALID_INPUT, "Request validation failed", ErrorSeverity.LOW),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
        response = classify_error_with_response(exc)
        return JSONResponse(
            status_code=response.status,
            content=_envelope(response.code, response.message, response.severity),
        )

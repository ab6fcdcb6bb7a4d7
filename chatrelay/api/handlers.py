"""Exception handlers producing the structured `{success, error}` body."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chatrelay.errors import GatewayError
from chatrelay.models.conversation import ErrorResponse
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return error_response(exc.status_code, exc.message)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # A known path with the wrong method is reported as unknown too
    if exc.status_code in (404, 405):
        return error_response(404, "Endpoint not found")
    return error_response(exc.status_code, str(exc.detail))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    logger.warning(f"{request.method} {request.url.path} failed validation: {errors}")
    return error_response(400, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Detail stays in the server log
    logger.error(f"Unhandled error processing {request.method} {request.url.path}: {exc}", exc_info=exc)
    return error_response(500, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    """Attach every error handler to the application."""
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

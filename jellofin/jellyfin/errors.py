"""Error responses of the Jellyfin API"""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..services.log_service import log_service

logger = log_service.get_logger("server")

ERR_INVALID_JSON = "Invalid JSON payload"
ERR_ITEM_NOT_FOUND = "Item not found"
ERR_USER_NOT_FOUND = "User not found"
ERR_FORBIDDEN = "Forbidden"


class JellyfinError(Exception):
    """Request failed with a client visible status and message"""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def error_body(status_code: int, message: str) -> dict:
    return {"status": status_code, "message": message}


async def jellyfin_error_handler(request: Request, exc: JellyfinError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code, content=error_body(exc.status_code, exc.message)
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, message),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    logger.debug(f"Invalid request {request.url.path}: {errors}")
    if any(e.get("type") in ("json_invalid", "model_attributes_type") for e in errors):
        return JSONResponse(status_code=400, content=error_body(400, ERR_INVALID_JSON))
    return JSONResponse(status_code=400, content=error_body(400, "Invalid request"))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content=error_body(500, "Internal server error"))


def register_error_handlers(app):
    """Render every error as {status, message}"""
    app.add_exception_handler(JellyfinError, jellyfin_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

"""Global error handlers: every error leaves the API as ``{"detail": ...}`` JSON."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coachchat.chat.client import ChatTransportError
from coachchat.notifications.errors import NotificationError

logger = structlog.get_logger()


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": exc.errors()},
        )

    @app.exception_handler(NotificationError)
    async def notification_exception_handler(request: Request, exc: NotificationError) -> JSONResponse:
        """Map the notification taxonomy onto status codes."""
        if exc.status_code >= 500:
            logger.warning(
                "notification_request_failed",
                path=request.url.path,
                error=exc.detail,
                error_type=type(exc).__name__,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(ChatTransportError)
    async def chat_transport_exception_handler(request: Request, exc: ChatTransportError) -> JSONResponse:
        logger.warning("chat_transport_failed", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=502,
            content={"detail": f"Chat service error: {exc}"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions. Always returns JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

"""
Error Handlers
Centralized error formatting: every failure path resolves to the same envelope
"""

import http
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response
import structlog

from gateway.errors import (
    GENERIC_ERROR_MESSAGE,
    ErrorKind,
    GatewayError,
    RouteNotFoundError,
)

logger = structlog.get_logger(__name__)

FALLBACK_BODY = b'{"error":"Something went wrong!"}'

# Statuses the router uses for "nothing here answers this request"
NOT_FOUND_STATUSES = (404, 405)


def is_router_miss(exc: StarletteHTTPException) -> bool:
    """
    True for the router's own not-found and method-not-allowed answers.

    The router raises these with the bare status phrase as detail; a handler
    group raising a 404 with its own message keeps that message.
    """
    return (
        exc.status_code in NOT_FOUND_STATUSES
        and exc.detail == http.HTTPStatus(exc.status_code).phrase
    )


class ErrorFormatter:
    """
    Turns exceptions into the uniform error envelope.

    Internal detail (exception messages) is only added under ``details`` when
    ``expose_details`` is set, which the app does for explicit development mode.
    """

    def __init__(self, expose_details: bool = False):
        self.expose_details = expose_details

    def format(self, request: Request, exc: Exception) -> Response:
        """Build the error response for ``exc``; never raises"""
        try:
            return self._format(request, exc)
        except Exception:
            logger.error(
                "Error formatter failed",
                original_error=repr(exc),
                method=request.method,
                path=request.url.path,
                exc_info=True,
            )
            return self.fallback_response()

    def _format(self, request: Request, exc: Exception) -> Response:
        if isinstance(exc, StarletteHTTPException) and is_router_miss(exc):
            exc = RouteNotFoundError()

        if isinstance(exc, GatewayError):
            logger.warning(
                "Request rejected",
                kind=exc.kind,
                status_code=exc.status_code,
                error=str(exc),
                method=request.method,
                path=request.url.path,
            )
            return self.render(exc.status_code, exc.message, exc.detail, exc.headers)

        if isinstance(exc, StarletteHTTPException):
            return self.render(exc.status_code, str(exc.detail), headers=exc.headers)

        if isinstance(exc, RequestValidationError):
            logger.warning(
                "Request validation failed",
                kind=ErrorKind.BAD_REQUEST,
                method=request.method,
                path=request.url.path,
            )
            return self.render(400, "Invalid request", str(exc.errors()))

        logger.error(
            "Unhandled exception",
            kind=ErrorKind.INTERNAL,
            error=str(exc),
            method=request.method,
            url=str(request.url),
            exc_info=exc,
        )
        return self.render(500, GENERIC_ERROR_MESSAGE, str(exc) or type(exc).__name__)

    def render(
        self,
        status_code: int,
        message: str,
        details: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Response:
        content: Dict[str, Any] = {"error": message}
        if self.expose_details and details:
            content["details"] = details
        try:
            return JSONResponse(status_code=status_code, content=content, headers=headers)
        except (TypeError, ValueError):
            logger.error("Error envelope could not be serialized", status_code=status_code, exc_info=True)
            return self.fallback_response()

    @staticmethod
    def fallback_response() -> Response:
        return Response(content=FALLBACK_BODY, status_code=500, media_type="application/json")


def register_exception_handlers(app: FastAPI, formatter: ErrorFormatter) -> None:
    """Route errors raised inside the router through the formatter"""

    async def handle(request: Request, exc: Exception) -> Response:
        return formatter.format(request, exc)

    app.add_exception_handler(GatewayError, handle)
    app.add_exception_handler(StarletteHTTPException, handle)
    app.add_exception_handler(RequestValidationError, handle)

"""
CORS Policy
Cross-origin headers for the configured origin allow-list
"""

from typing import Sequence

from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response
from starlette.types import Receive, Scope, Send
import structlog

from gateway.errors import BadRequestError
from gateway.policies.base import CallNext, Policy

logger = structlog.get_logger(__name__)

DEFAULT_ALLOW_METHODS = ("GET", "HEAD", "PUT", "PATCH", "POST", "DELETE")


async def _rules_only(scope: Scope, receive: Receive, send: Send) -> None:
    raise RuntimeError("CORS rules are applied by CorsPolicy, not called as an ASGI app")


class CorsPolicy(Policy):
    """
    Apply Starlette's CORS rules inside the policy chain.

    Allowed origins get the permissive headers and have their preflights
    answered here. Requests from any other origin carry on without those
    headers; the browser enforces the block.
    """

    name = "cors"

    def __init__(
        self,
        allowed_origins: Sequence[str],
        allow_credentials: bool = True,
        allow_methods: Sequence[str] = DEFAULT_ALLOW_METHODS,
        allow_headers: Sequence[str] = ("*",),
    ):
        self.allowed_origins = tuple(allowed_origins)
        self.allow_credentials = allow_credentials
        self._rules = CORSMiddleware(
            _rules_only,
            allow_origins=list(self.allowed_origins),
            allow_methods=list(allow_methods),
            allow_headers=list(allow_headers),
            allow_credentials=allow_credentials,
        )

    def is_allowed_origin(self, origin: str) -> bool:
        return self._rules.is_allowed_origin(origin=origin)

    async def process(self, request: Request, call_next: CallNext) -> Response:
        origin = request.headers.get("origin")
        if origin is None:
            return await call_next(request)

        allowed = self.is_allowed_origin(origin)
        is_preflight = (
            request.method == "OPTIONS"
            and "access-control-request-method" in request.headers
        )

        if is_preflight and allowed:
            response = self._rules.preflight_response(request_headers=request.headers)
            if response.status_code != 200:
                # Requested method or headers fall outside the allow-lists
                raise BadRequestError(
                    "Disallowed CORS request",
                    detail=bytes(response.body).decode("utf-8", "replace"),
                )
            return response

        if not allowed:
            logger.debug("Origin not allowed", origin=origin, path=request.url.path)
            return await call_next(request)

        response = await call_next(request)
        response.headers.update(self._rules.simple_headers)
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers.add_vary_header("Origin")
        return response

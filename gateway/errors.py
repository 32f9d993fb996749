"""
Gateway Errors
Error kinds raised by policies and handler groups, resolved by the error formatter
"""

from typing import Dict, Optional


class ErrorKind:
    """Error kind names reported in logs"""

    BAD_REQUEST = "bad_request"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


GENERIC_ERROR_MESSAGE = "Something went wrong!"
ROUTE_NOT_FOUND_MESSAGE = "Route not found"


class GatewayError(Exception):
    """
    Base error carrying an HTTP status and a client-safe message.

    Raise a subclass from a policy or a handler to keep its status instead of
    the generic 500 answer.
    """

    kind: str = ErrorKind.INTERNAL
    status_code: int = 500
    message: str = GENERIC_ERROR_MESSAGE

    def __init__(
        self,
        message: Optional[str] = None,
        detail: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message or self.message
        self.detail = detail
        self.headers = dict(headers or {})
        super().__init__(detail or self.message)


class BadRequestError(GatewayError):
    """Malformed input, e.g. an unparsable JSON body"""

    kind = ErrorKind.BAD_REQUEST
    status_code = 400
    message = "Bad request"


class PayloadTooLargeError(GatewayError):
    """Request body exceeds the configured limit"""

    kind = ErrorKind.PAYLOAD_TOO_LARGE
    status_code = 413
    message = "Payload too large"


class RateLimitedError(GatewayError):
    """Client exceeded its request quota"""

    kind = ErrorKind.RATE_LIMITED
    status_code = 429
    message = "Too many requests, please try again later."


class RouteNotFoundError(GatewayError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    message = ROUTE_NOT_FOUND_MESSAGE


class ConfigurationError(Exception):
    """Invalid startup configuration (bad route group, bad prefix)"""

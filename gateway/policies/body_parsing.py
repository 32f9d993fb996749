"""
Body Parsing Policy
Parses JSON and URL-encoded bodies up to a fixed size before any handler runs
"""

import json
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qsl

from fastapi import Request
from starlette.responses import Response

from gateway.errors import BadRequestError, PayloadTooLargeError
from gateway.policies.base import CallNext, Policy

FormValue = Union[str, List[str]]


def _media_type(request: Request) -> str:
    content_type = request.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower()


def is_json(media_type: str) -> bool:
    return media_type == "application/json" or media_type.endswith("+json")


def is_urlencoded(media_type: str) -> bool:
    return media_type == "application/x-www-form-urlencoded"


def _reject_constant(name: str) -> Any:
    raise BadRequestError("Invalid JSON payload", detail=f"{name} is not valid JSON")


def parse_json_body(raw: bytes) -> Any:
    """
    Strict JSON parsing: the top-level value must be an object or an array,
    and NaN or Infinity literals are refused.

    Raises:
        BadRequestError: on undecodable or malformed JSON
    """
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise BadRequestError("Invalid JSON payload", detail=f"Body is not valid UTF-8: {e}") from e

    stripped = text.lstrip()
    if not stripped:
        return {}
    if stripped[0] not in "{[":
        raise BadRequestError(
            "Invalid JSON payload",
            detail="JSON body must be an object or an array",
        )

    try:
        return json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise BadRequestError("Invalid JSON payload", detail=str(e)) from e


def parse_urlencoded_body(raw: bytes) -> Dict[str, FormValue]:
    """Decode a form body; repeated keys collect into lists"""
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise BadRequestError("Invalid form payload", detail=f"Body is not valid UTF-8: {e}") from e

    form: Dict[str, FormValue] = {}
    for key, value in parse_qsl(text, keep_blank_values=True):
        if key not in form:
            form[key] = value
        elif isinstance(form[key], list):
            form[key].append(value)
        else:
            form[key] = [form[key], value]
    return form


class BodyParsingPolicy(Policy):
    """
    Read and parse JSON / URL-encoded request bodies.

    The parsed value is stored on ``request.state.body`` (``{}`` for an empty
    body, whatever the method). The raw bytes stay
    cached on the request, so handler groups can still read the body
    themselves. Any other content type passes through untouched.
    """

    name = "body_parsing"

    def __init__(self, max_body_bytes: int):
        self.max_body_bytes = max_body_bytes

    async def process(self, request: Request, call_next: CallNext) -> Response:
        media_type = _media_type(request)
        if is_json(media_type) or is_urlencoded(media_type):
            raw = await self.read_body(request)
            if is_json(media_type):
                request.state.body = parse_json_body(raw)
            else:
                request.state.body = parse_urlencoded_body(raw)

        return await call_next(request)

    async def read_body(self, request: Request) -> bytes:
        """
        Read the body, failing as soon as it is known to exceed the limit.

        Raises:
            PayloadTooLargeError: declared or streamed size over the limit
            BadRequestError: unparsable Content-Length
        """
        declared = self._declared_length(request)
        if declared is not None and declared > self.max_body_bytes:
            raise PayloadTooLargeError(
                detail=f"Declared body size {declared} exceeds limit {self.max_body_bytes}"
            )

        chunks = []
        received = 0
        async for chunk in request.stream():
            received += len(chunk)
            if received > self.max_body_bytes:
                raise PayloadTooLargeError(
                    detail=f"Body exceeds limit {self.max_body_bytes}"
                )
            chunks.append(chunk)

        body = b"".join(chunks)
        # Same cache Request.body() fills; downstream reads replay it
        request._body = body
        return body

    @staticmethod
    def _declared_length(request: Request) -> Optional[int]:
        value = request.headers.get("content-length")
        if value is None:
            return None
        try:
            length = int(value)
        except ValueError as e:
            raise BadRequestError("Invalid Content-Length header", detail=value) from e
        if length < 0:
            raise BadRequestError("Invalid Content-Length header", detail=value)
        return length

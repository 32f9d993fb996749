"""
Tests for the body parsing policy
"""

from unittest.mock import MagicMock

import pytest

from gateway.errors import BadRequestError
from gateway.policies.body_parsing import (
    BodyParsingPolicy,
    is_json,
    is_urlencoded,
    parse_json_body,
    parse_urlencoded_body,
)


class TestJsonBodies:

    def test_json_body_parsed(self, client):
        response = client.post("/api/courses/echo", json={"courseId": "1", "watched": 42})
        assert response.status_code == 200
        assert response.json() == {"body": {"courseId": "1", "watched": 42}}

    def test_json_array_body(self, client):
        response = client.post("/api/courses/echo", json=[1, 2, 3])
        assert response.json() == {"body": [1, 2, 3]}

    def test_vendor_json_media_type(self, client):
        response = client.post(
            "/api/courses/echo",
            content=b'{"a": 1}',
            headers={"Content-Type": "application/vnd.api+json; charset=utf-8"},
        )
        assert response.json() == {"body": {"a": 1}}

    def test_empty_json_body_is_empty_object(self, client):
        response = client.post(
            "/api/courses/echo",
            content=b"",
            headers={"Content-Type": "application/json"},
        )
        assert response.json() == {"body": {}}

    def test_handler_can_reread_raw_body(self, client):
        response = client.post("/api/courses/raw", json={"deviceId": "abc"})
        assert response.status_code == 200
        assert response.json() == {"raw": {"deviceId": "abc"}}

    def test_malformed_json_rejected_before_handler(self, client, handler_calls):
        response = client.post(
            "/api/courses/echo",
            content=b'{"a":',
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON payload"}
        assert handler_calls == []

    def test_malformed_json_details_in_development(self, make_client):
        client = make_client(environment="development")
        response = client.post(
            "/api/courses/echo",
            content=b'{"a":',
            headers={"Content-Type": "application/json"},
        )
        data = response.json()
        assert data["error"] == "Invalid JSON payload"
        assert data["details"]

    def test_scalar_json_rejected(self, client, handler_calls):
        response = client.post(
            "/api/courses/echo",
            content=b'"just a string"',
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert handler_calls == []

    def test_nan_literal_rejected_before_handler(self, client, handler_calls):
        response = client.post(
            "/api/courses/echo",
            content=b'{"a": NaN}',
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON payload"}
        assert handler_calls == []

    def test_malformed_json_on_unknown_route(self, client):
        response = client.post(
            "/does-not-exist",
            content=b"{oops",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400


class TestBodyLimit:

    def test_oversized_body_rejected_before_handler(self, make_client, handler_calls):
        client = make_client(max_body_bytes=64)
        response = client.post("/api/courses/echo", json={"notes": "x" * 200})
        assert response.status_code == 413
        assert response.json() == {"error": "Payload too large"}
        assert handler_calls == []

    def test_body_at_limit_accepted(self, make_client):
        body = b'{"notes": "' + b"x" * 50 + b'"}'
        client = make_client(max_body_bytes=len(body))
        response = client.post(
            "/api/courses/echo",
            content=body,
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 200

    def test_streamed_body_over_limit(self, make_client, handler_calls):
        """No Content-Length: the limit is enforced while streaming"""
        client = make_client(max_body_bytes=64)

        def chunks():
            for _ in range(10):
                yield b"x" * 16

        response = client.post(
            "/api/courses/echo",
            content=chunks(),
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 413
        assert handler_calls == []

    def test_default_limit_is_ten_megabytes(self, client):
        body = b'{"blob": "' + b"a" * (10 * 1024 * 1024) + b'"}'
        response = client.post(
            "/api/courses/echo",
            content=body,
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 413

    @pytest.mark.parametrize("value", ["abc", "-1"])
    def test_invalid_content_length(self, value):
        request = MagicMock()
        request.headers = {"content-length": value}
        with pytest.raises(BadRequestError):
            BodyParsingPolicy._declared_length(request)

    def test_missing_content_length(self):
        request = MagicMock()
        request.headers = {}
        assert BodyParsingPolicy._declared_length(request) is None


class TestFormBodies:

    def test_urlencoded_body_parsed(self, client):
        response = client.post(
            "/api/courses/echo",
            content=b"name=Ada&tag=ev&tag=battery&empty=",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert response.json() == {
            "body": {"name": "Ada", "tag": ["ev", "battery"], "empty": ""}
        }

    def test_other_content_types_pass_through(self, client):
        response = client.post(
            "/api/courses/raw",
            content=b'{"plain": true}',
            headers={"Content-Type": "text/plain"},
        )
        assert response.status_code == 200
        assert response.json() == {"raw": {"plain": True}}


class TestParsers:

    @pytest.mark.parametrize("media_type, expected", [
        ("application/json", True),
        ("application/problem+json", True),
        ("text/json", False),
        ("application/x-www-form-urlencoded", False),
    ])
    def test_is_json(self, media_type, expected):
        assert is_json(media_type) is expected

    def test_is_urlencoded(self):
        assert is_urlencoded("application/x-www-form-urlencoded")
        assert not is_urlencoded("multipart/form-data")

    def test_parse_json_whitespace_only(self):
        assert parse_json_body(b"  \n ") == {}

    def test_parse_json_invalid_utf8(self):
        with pytest.raises(BadRequestError):
            parse_json_body(b'{"a": "\xff"}')

    def test_parse_json_numbers_rejected(self):
        with pytest.raises(BadRequestError):
            parse_json_body(b"42")

    @pytest.mark.parametrize("raw", [b'{"a": NaN}', b"[Infinity]", b'{"a": [-Infinity]}'])
    def test_parse_json_non_finite_literals_rejected(self, raw):
        with pytest.raises(BadRequestError) as exc_info:
            parse_json_body(raw)
        assert exc_info.value.message == "Invalid JSON payload"

    def test_parse_urlencoded_encoded_values(self):
        assert parse_urlencoded_body(b"q=electric+vehicle&x=%2Fa") == {
            "q": "electric vehicle",
            "x": "/a",
        }

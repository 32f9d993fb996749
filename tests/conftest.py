"""
Pytest fixtures for gateway tests
"""

from typing import Any, Callable, Dict, List

import pytest
from fastapi import APIRouter, HTTPException, Request
from fastapi.testclient import TestClient

from gateway.config import GatewaySettings
from gateway.main import create_app
from gateway.routing import RouteGroup


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio test."
    )


@pytest.fixture
def handler_calls() -> List[str]:
    """Names of handler group endpoints that actually ran"""
    return []


@pytest.fixture
def courses_router(handler_calls) -> APIRouter:
    """Stand-in for the courses route group"""
    router = APIRouter()

    @router.get("/")
    async def list_courses():
        handler_calls.append("courses.list")
        return {"group": "courses", "courses": []}

    @router.get("/{course_id}")
    async def get_course(course_id: str):
        handler_calls.append("courses.get")
        return {"group": "courses", "id": course_id}

    @router.post("/echo")
    async def echo(request: Request):
        handler_calls.append("courses.echo")
        return {"body": request.state.body}

    @router.post("/raw")
    async def raw(request: Request):
        handler_calls.append("courses.raw")
        payload = await request.json()
        return {"raw": payload}

    @router.get("/failing/boom")
    async def boom():
        handler_calls.append("courses.boom")
        raise RuntimeError("database connection lost")

    @router.get("/failing/teapot")
    async def teapot():
        raise HTTPException(status_code=418, detail="I'm a teapot")

    return router


@pytest.fixture
def ai_router(handler_calls) -> APIRouter:
    """Stand-in for the AI route group"""
    router = APIRouter()

    @router.post("/ask")
    async def ask(request: Request):
        handler_calls.append("ai.ask")
        return {"group": "ai", "question": request.state.body.get("question")}

    return router


@pytest.fixture
def make_settings() -> Callable[..., GatewaySettings]:
    """Build settings without reading a .env file"""
    def _make(**overrides: Any) -> GatewaySettings:
        values: Dict[str, Any] = {
            "environment": "production",
            "cors_origin": "http://localhost:3000",
        }
        values.update(overrides)
        return GatewaySettings(_env_file=None, **values)
    return _make


@pytest.fixture
def route_groups(courses_router, ai_router) -> List[RouteGroup]:
    return [
        RouteGroup("/api/courses", courses_router),
        RouteGroup("/api/ai", ai_router),
    ]


@pytest.fixture
def make_client(make_settings, route_groups) -> Callable[..., TestClient]:
    """Create a test client for a gateway built with the given settings"""
    def _make(groups=None, rate_limit_store=None, **overrides: Any) -> TestClient:
        app = create_app(
            make_settings(**overrides),
            route_groups=route_groups if groups is None else groups,
            rate_limit_store=rate_limit_store,
        )
        return TestClient(app)
    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    """Gateway in production configuration with the stand-in groups mounted"""
    return make_client()

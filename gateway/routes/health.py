"""
Health Check Routes
Liveness endpoint; depends on nothing but the settings object
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter()


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a Z suffix"""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.api_route("/health", methods=["GET", "HEAD"])
async def health_check(request: Request):
    """Basic health check"""
    return {
        "status": "healthy",
        "timestamp": utc_timestamp(),
        "environment": request.app.state.settings.environment,
    }

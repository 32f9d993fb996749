"""
EV Transition Coach API Gateway
Security headers, CORS, rate limiting and body parsing in front of the mounted route groups

Run:
- python -m gateway
- uvicorn --factory gateway.main:build_app
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Iterable, Optional

from fastapi import FastAPI
import structlog
import uvicorn

from gateway import __version__
from gateway.config import GatewaySettings
from gateway.error_handlers import ErrorFormatter, register_exception_handlers
from gateway.logger import setup_logging
from gateway.policies import PolicyChainMiddleware, RateLimitStore, build_policy_chain
from gateway.routes import health
from gateway.routing import RouteGroup, RouteTable, load_route_groups

logger = structlog.get_logger(__name__)

SERVICE_NAME = "EV Transition Coach API"
SERVICE_VERSION = __version__


def create_app(
    settings: Optional[GatewaySettings] = None,
    route_groups: Optional[Iterable[RouteGroup]] = None,
    rate_limit_store: Optional[RateLimitStore] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Gateway settings; read from the environment when omitted
        route_groups: Handler groups to mount, in dispatch order; loaded from
            ``settings.route_groups`` when omitted
        rate_limit_store: Counter store for the rate limiter, when enabled

    Returns:
        Configured FastAPI application
    """
    settings = settings or GatewaySettings()
    if route_groups is None:
        route_table = load_route_groups(settings.route_groups)
    else:
        route_table = RouteTable(route_groups)

    formatter = ErrorFormatter(expose_details=settings.is_development)
    policy_chain = build_policy_chain(settings, rate_limit_store=rate_limit_store)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan events"""
        logger.info(
            f"{SERVICE_NAME} starting up",
            port=settings.port,
            environment=settings.environment,
            policies=list(policy_chain.names),
        )
        settings.log_config()

        yield

        await policy_chain.aclose()
        logger.info(f"{SERVICE_NAME} shutdown complete")

    app = FastAPI(
        title=SERVICE_NAME,
        description="Request gateway for the EV Transition Coach learning platform",
        version=SERVICE_VERSION,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.route_table = route_table
    app.state.policy_chain = policy_chain

    app.add_middleware(PolicyChainMiddleware, chain=policy_chain, formatter=formatter)
    register_exception_handlers(app, formatter)

    # Health first, then route groups in registration order
    app.include_router(health.router, tags=["Health"])
    route_table.install(app)

    return app


def build_app() -> FastAPI:
    """Factory for ``uvicorn --factory``: settings and logging from the environment"""
    settings = GatewaySettings()
    setup_logging(
        config_path=settings.logging_config_path,
        log_level=settings.log_level,
        log_format=settings.log_format,
        environment=settings.environment,
    )
    return create_app(settings)


def run() -> None:
    """Serve the gateway with uvicorn on the configured host and port"""
    app = build_app()
    settings: GatewaySettings = app.state.settings
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        access_log=False,
        server_header=False,
    )


if __name__ == "__main__":
    run()

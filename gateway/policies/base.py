"""
Policy Chain
Ordered cross-cutting policies run by a single dispatcher loop
"""

import time
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Iterable, Optional, Tuple

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from gateway.error_handlers import ErrorFormatter
from gateway.logger import RequestLogger, get_request_logger

CallNext = Callable[[Request], Awaitable[Response]]


class Policy(ABC):
    """
    A cross-cutting request policy.

    ``process`` either hands the request on through ``call_next`` (and may
    decorate the response it gets back) or short-circuits by returning its own
    response or raising a ``GatewayError``.
    """

    name: str = "policy"

    @abstractmethod
    async def process(self, request: Request, call_next: CallNext) -> Response:
        ...

    async def aclose(self) -> None:
        """Release resources held by the policy"""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"


class PolicyChain:
    """Immutable ordered sequence of policies"""

    def __init__(self, policies: Iterable[Policy]):
        self._policies: Tuple[Policy, ...] = tuple(policies)

    @property
    def policies(self) -> Tuple[Policy, ...]:
        return self._policies

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(policy.name for policy in self._policies)

    async def run(self, request: Request, endpoint: CallNext, formatter: ErrorFormatter) -> Response:
        """
        Run every policy in order, then the endpoint.

        A failure at any step is turned into an error response at that step,
        so the policies before it still see (and decorate) the response.
        """

        async def step(index: int, req: Request) -> Response:
            if index == len(self._policies):
                try:
                    return await endpoint(req)
                except Exception as exc:
                    return formatter.format(req, exc)

            policy = self._policies[index]

            async def call_next(next_request: Request) -> Response:
                return await step(index + 1, next_request)

            try:
                return await policy.process(req, call_next)
            except Exception as exc:
                return formatter.format(req, exc)

        return await step(0, request)

    async def aclose(self) -> None:
        for policy in self._policies:
            await policy.aclose()


class PolicyChainMiddleware(BaseHTTPMiddleware):
    """Installs a ``PolicyChain`` in front of the router and logs each request"""

    def __init__(
        self,
        app: ASGIApp,
        chain: PolicyChain,
        formatter: ErrorFormatter,
        request_logger: Optional[RequestLogger] = None,
    ):
        super().__init__(app)
        self.chain = chain
        self.formatter = formatter
        self.request_logger = request_logger or get_request_logger()

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        started = time.perf_counter()
        response = await self.chain.run(request, call_next, self.formatter)

        self.request_logger.log_request(
            method=request.method,
            url=str(request.url),
            status_code=response.status_code,
            response_time=time.perf_counter() - started,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
        return response

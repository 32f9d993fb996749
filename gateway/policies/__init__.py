"""
Request policies applied to every request, in a fixed order:
security headers -> CORS -> rate limiting -> body parsing
"""

from typing import Optional

from gateway.config import GatewaySettings
from gateway.policies.base import CallNext, Policy, PolicyChain, PolicyChainMiddleware
from gateway.policies.body_parsing import BodyParsingPolicy
from gateway.policies.cors import CorsPolicy
from gateway.policies.rate_limit import (
    FixedWindowRateLimitPolicy,
    MemoryRateLimitStore,
    NoopRateLimitPolicy,
    RateLimitStore,
    RedisRateLimitStore,
    build_rate_limit_policy,
)
from gateway.policies.security_headers import SecurityHeadersPolicy


def build_policy_chain(
    settings: GatewaySettings,
    rate_limit_store: Optional[RateLimitStore] = None,
) -> PolicyChain:
    """Build the gateway's policy chain from settings"""
    return PolicyChain([
        SecurityHeadersPolicy(),
        CorsPolicy(
            allowed_origins=settings.cors_origins,
            allow_credentials=settings.cors_allow_credentials,
        ),
        build_rate_limit_policy(
            enabled=settings.rate_limit_enabled,
            window_seconds=settings.rate_limit_window_seconds,
            max_requests=settings.rate_limit_max_requests,
            path_prefix=settings.rate_limit_path_prefix,
            redis_url=settings.redis_url,
            store=rate_limit_store,
        ),
        BodyParsingPolicy(max_body_bytes=settings.max_body_bytes),
    ])


__all__ = [
    "CallNext",
    "Policy",
    "PolicyChain",
    "PolicyChainMiddleware",
    "BodyParsingPolicy",
    "CorsPolicy",
    "FixedWindowRateLimitPolicy",
    "MemoryRateLimitStore",
    "NoopRateLimitPolicy",
    "RateLimitStore",
    "RedisRateLimitStore",
    "SecurityHeadersPolicy",
    "build_policy_chain",
    "build_rate_limit_policy",
]

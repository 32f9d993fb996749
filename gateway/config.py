"""
Configuration Management
Environment-based settings for the gateway, read once at startup
"""

from typing import Dict, List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

from gateway.routing import normalize_prefix

logger = structlog.get_logger(__name__)

DEFAULT_MAX_BODY_BYTES = 10 * 1024 * 1024


class GatewaySettings(BaseSettings):
    """
    Gateway configuration.

    Built once per process and handed to ``create_app``; instances are frozen
    so nothing can change them while requests are being served.
    """

    # Server
    port: int = 3000
    host: str = "0.0.0.0"
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("environment", "node_env"),
    )

    # CORS
    cors_origin: str = "http://localhost:3000"
    cors_allow_credentials: bool = True

    # Body parsing
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES

    # Rate limiting (disabled unless switched on)
    rate_limit_enabled: bool = False
    rate_limit_window_ms: int = 15 * 60 * 1000
    rate_limit_max_requests: int = 100
    rate_limit_path_prefix: str = "/api/"
    redis_url: Optional[str] = None

    # Route groups: prefix -> "package.module:attribute"
    route_groups: Dict[str, str] = Field(default_factory=dict)

    # Logging
    log_level: str = "INFO"
    log_format: str = "default"
    logging_config_path: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("port")
    @classmethod
    def validate_port(cls, v):
        if not 1 <= v <= 65535:
            raise ValueError("PORT must be between 1 and 65535")
        return v

    @field_validator("max_body_bytes", "rate_limit_window_ms", "rate_limit_max_requests")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("route_groups")
    @classmethod
    def validate_route_groups(cls, v):
        groups = {}
        for prefix, target in v.items():
            normalized = normalize_prefix(prefix)
            if normalized in groups:
                raise ValueError(f"Duplicate route group prefix: {normalized}")
            if ":" not in target:
                raise ValueError(
                    f"Route group target for {normalized} must look like 'module:attribute'"
                )
            groups[normalized] = target
        return groups

    @property
    def cors_origins(self) -> List[str]:
        """Allowed origins; CORS_ORIGIN may hold a comma-separated list"""
        return [o.strip() for o in self.cors_origin.split(",") if o.strip()]

    @property
    def is_development(self) -> bool:
        """True only when the environment was explicitly set to development"""
        return "environment" in self.model_fields_set and self.environment.lower() == "development"

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.rate_limit_window_ms / 1000.0

    def log_config(self):
        """Log configuration (without sensitive data)"""
        logger.info("Server configured", host=self.host, port=self.port, environment=self.environment)
        logger.info(
            "CORS configured",
            origins=self.cors_origins,
            allow_credentials=self.cors_allow_credentials,
        )
        logger.info(
            "Rate limiting",
            enabled=self.rate_limit_enabled,
            window_ms=self.rate_limit_window_ms,
            max_requests=self.rate_limit_max_requests,
            store="redis" if self.redis_url else "memory",
        )
        logger.info("Route groups", prefixes=list(self.route_groups))

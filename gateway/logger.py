"""
Logging utilities for the gateway

Provides centralized logging configuration and the per-request logger.
"""

import copy
import logging
import logging.config
import os
import sys
from typing import Any, Dict, Optional

import structlog
import yaml

# Default logging configuration
DEFAULT_LOGGING_CONFIG: Dict[str, Any] = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'default': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        },
        'detailed': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(module)s - %(funcName)s - %(lineno)d - %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        },
        'json': {
            'format': '{"timestamp": "%(asctime)s", "logger": "%(name)s", "level": "%(levelname)s", "module": "%(module)s", "function": "%(funcName)s", "line": %(lineno)d, "message": "%(message)s"}',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        }
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'level': 'INFO',
            'formatter': 'default',
            'stream': 'ext://sys.stdout'
        }
    },
    'loggers': {
        'gateway': {
            'level': 'INFO',
            'handlers': ['console'],
            'propagate': False
        },
        'uvicorn': {
            'level': 'INFO',
            'handlers': ['console'],
            'propagate': False
        }
    }
}


def _load_config_file(config_path: str) -> Optional[Dict[str, Any]]:
    try:
        with open(config_path, 'r') as f:
            return yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        print(f"Failed to load logging config from {config_path}: {e}", file=sys.stderr)
        return None


def setup_logging(
    config_path: Optional[str] = None,
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    environment: Optional[str] = None
) -> None:
    """
    Setup logging configuration

    Args:
        config_path: Path to a YAML logging configuration file
        log_level: Override log level
        log_format: Override log format ('default', 'detailed', 'json')
        environment: Environment name used to pick overrides from the config file
    """
    config = None
    if config_path and os.path.exists(config_path):
        config = _load_config_file(config_path)

    # Use default config if no file found
    if not config:
        config = copy.deepcopy(DEFAULT_LOGGING_CONFIG)

    # Apply environment-specific overrides
    if environment and environment in config:
        env_config = config.pop(environment)

        if 'handlers' in env_config:
            config['handlers'].update(env_config['handlers'])

        if 'loggers' in env_config:
            config['loggers'].update(env_config['loggers'])

    # Override log level if specified
    if log_level:
        log_level = log_level.upper()
        for logger_config in config['loggers'].values():
            logger_config['level'] = log_level
        for handler_config in config['handlers'].values():
            handler_config['level'] = log_level

    # Override log format if specified
    if log_format and log_format in config['formatters']:
        for handler_config in config['handlers'].values():
            handler_config['formatter'] = log_format

    try:
        logging.config.dictConfig(config)
    except (ValueError, TypeError, AttributeError, ImportError) as e:
        print(f"Failed to configure logging: {e}", file=sys.stderr)
        # Fallback to basic configuration
        logging.basicConfig(
            level=getattr(logging, log_level or 'INFO', logging.INFO),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    configure_structlog()


def configure_structlog() -> None:
    """Route structlog events through the stdlib loggers configured above"""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class RequestLogger:
    """Logger for HTTP requests"""

    def __init__(self, name: str = "gateway.requests"):
        self.logger = logging.getLogger(name)

    def log_request(
        self,
        method: str,
        url: str,
        status_code: int,
        response_time: float,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ):
        """Log HTTP request"""
        self.logger.info(
            f"{method} {url} {status_code} {response_time:.3f}s",
            extra={
                'request_method': method,
                'request_url': url,
                'response_status': status_code,
                'response_time': response_time,
                'ip_address': ip_address,
                'user_agent': user_agent,
                'event_type': 'http_request'
            }
        )


def get_request_logger() -> RequestLogger:
    """Get request logger instance"""
    return RequestLogger()

"""Logfire observability for the Cosmos DB MCP Server."""

import logging

import logfire

from .config import ObservabilityConfig
from .context import trace_cosmos_operation

logger = logging.getLogger(__name__)

_config: ObservabilityConfig | None = None


def initialize_observability(config: ObservabilityConfig | None = None) -> None:
    """Initialize Logfire with configuration."""
    global _config  # noqa: PLW0603
    _config = config or ObservabilityConfig()

    if not _config.enabled:
        logger.debug("Observability disabled via configuration")
        return

    logfire.configure(
        token=_config.token or None,
        service_name=_config.project_name,
        environment=_config.environment,
        send_to_logfire="if-token-present" if _config.send_to_logfire else False,
        console=None if _config.console_output else False,
    )
    logger.debug("Logfire configured for environment %s", _config.environment)


def get_config() -> ObservabilityConfig:
    """Get current observability configuration."""
    global _config  # noqa: PLW0603
    if _config is None:
        _config = ObservabilityConfig()
    return _config


__all__ = [
    "ObservabilityConfig",
    "get_config",
    "initialize_observability",
    "logfire",
    "trace_cosmos_operation",
]

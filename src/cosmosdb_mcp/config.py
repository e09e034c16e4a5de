"""Configuration management for the Cosmos DB MCP Server.

Server-wide settings come from the environment (or a local ``.env`` file)
and are validated with Pydantic v2:

1. Protocol metadata - name and version sent during the MCP handshake
2. Transport - stdio for local clients, streamable HTTP for remote ones
3. Credentials - an optional account key that overrides the managed
   identity credential chain
4. Limits - the deadline applied to every backend call

Per-request connection settings (account, emulator flag) are NOT part of
this module; they arrive with every tool call, see ``connection.py``.
"""

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseSettings):
    """Cosmos DB MCP Server configuration.

    Most fields use the ``COSMOSDB_MCP_`` prefix. A few also accept the
    variable names earlier deployments of this server were started with
    (``COSMOSDB_MCP_SERVER_MODE``, ``SERVER_PORT``, ``COSMOSDB_ACCOUNT_KEY``).
    """

    model_config = SettingsConfigDict(
        env_prefix="COSMOSDB_MCP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # === Server Metadata (MCP handshake) ===

    server_name: str = Field(
        default="cosmosdb-mcp",
        description="MCP server name used in protocol handshake",
        pattern=r"^[a-z0-9-]+$",
    )

    server_version: str = Field(
        default="0.1.0",
        description="Server version for capability negotiation",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    # === Transport Configuration ===

    transport: str = Field(
        default="stdio",
        description="Transport mechanism: stdio or streamable http",
        pattern=r"^(stdio|http)$",
        validation_alias=AliasChoices("COSMOSDB_MCP_SERVER_MODE", "COSMOSDB_MCP_TRANSPORT"),
    )

    http_host: str = Field(
        default="0.0.0.0",
        description="Bind address for the streamable HTTP transport",
    )

    http_port: int = Field(
        default=9090,
        description="Port for the streamable HTTP transport",
        ge=1024,
        le=65535,
        validation_alias=AliasChoices("SERVER_PORT", "COSMOSDB_MCP_HTTP_PORT"),
    )

    # === Credentials ===

    account_key: SecretStr | None = Field(
        default=None,
        description="Cosmos DB account key; when unset the managed identity chain is used",
        repr=False,
        validation_alias=AliasChoices("COSMOSDB_ACCOUNT_KEY"),
    )

    # === Limits ===

    request_timeout: float = Field(
        default=60.0,
        description="Deadline in seconds for the backend part of a single tool call",
        gt=0,
        le=3600,
    )

    # === Development Configuration ===

    debug: bool = Field(
        default=False,
        description="Enable debug logging, including Azure SDK HTTP logging",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    @field_validator("server_name")
    @classmethod
    def validate_server_name(cls, v: str) -> str:
        """Keep server names short enough for client UIs."""
        if len(v) < 3:
            raise ValueError("Server name must be at least 3 characters")
        if len(v) > 50:
            raise ValueError("Server name must not exceed 50 characters")
        return v

    @field_validator("transport", mode="before")
    @classmethod
    def normalize_transport(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip().lower()
            if v in ("streamable_http", "streamable-http"):
                return "http"
        return v

    @property
    def is_development(self) -> bool:
        return self.debug or self.log_level == "DEBUG"

    @property
    def server_info(self) -> dict[str, str]:
        """Server information sent during MCP initialization."""
        return {
            "name": self.server_name,
            "version": self.server_version,
            "transport": self.transport,
        }

    def get_account_key(self) -> str | None:
        """Return the configured account key, treating blank values as unset."""
        if self.account_key is None:
            return None
        key = self.account_key.get_secret_value().strip()
        return key or None


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Get or create the global configuration instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = ServerConfig()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]

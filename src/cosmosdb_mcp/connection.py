"""Connection resolution for Cosmos DB tool calls.

Every tool call carries its own connection settings (``account``,
``useEmulator``, ``emulatorEndpoint``). This module turns those settings into
an endpoint, a credential and an unopened async ``CosmosClient``:

- Emulator mode: the given (or default local) endpoint, the emulator's
  well-known key, and TLS verification disabled for its self-signed cert
- Service mode: ``https://<account>.documents.azure.com:443/`` with the
  configured account key, falling back to ``DefaultAzureCredential``

Resolution never touches the network. The client connects when the handle
is entered with ``async with``.

The facade receives a ``ClientFactory`` at construction time, which is how
tests substitute an in-memory backend.
"""

import logging
from typing import Annotated, Any, Protocol

from azure.cosmos.aio import CosmosClient
from azure.identity.aio import DefaultAzureCredential
from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from .errors import ConnectionResolutionError

logger = logging.getLogger(__name__)

DEFAULT_EMULATOR_ENDPOINT = "http://localhost:8081"

# Published key of the local emulator, identical on every installation
EMULATOR_KEY = (
    "C2y6yDjf5/R+ob0N8A7Cgv30VRDJIWEHLM+4QDU5DE2nQ9nDuVTqobD4b8mGGyPMbIZnqyMsEcaGQy67XIw/Jw=="
)

SERVICE_ENDPOINT_TEMPLATE = "https://{account}.documents.azure.com:443/"

ACCOUNT_REQUIRED_MESSAGE = "account name is required"

MODE_EMULATOR = "emulator"
MODE_KEY = "key"
MODE_IDENTITY = "identity"

# Names and endpoints are trimmed. Partition key values, item ids, item JSON
# and query text are passed through exactly as given.
TrimmedStr = Annotated[str, StringConstraints(strip_whitespace=True)]


class ConnectionConfig(BaseModel):
    """Connection fields shared by every tool input."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
    )

    account: TrimmedStr = Field(
        default="",
        description="Azure Cosmos DB account name (required when not using emulator)",
    )

    use_emulator: bool = Field(
        default=False,
        alias="useEmulator",
        description="Set to true to use local Cosmos DB emulator instead of Azure service",
    )

    emulator_endpoint: TrimmedStr = Field(
        default="",
        alias="emulatorEndpoint",
        description=f"Emulator endpoint URL (default: {DEFAULT_EMULATOR_ENDPOINT})",
    )

    def validate_connection(self) -> None:
        """Raise if the settings cannot identify a backend."""
        if not self.use_emulator and not self.account:
            raise ConnectionResolutionError(ACCOUNT_REQUIRED_MESSAGE)

    @property
    def endpoint(self) -> str:
        if self.use_emulator:
            return self.emulator_endpoint or DEFAULT_EMULATOR_ENDPOINT
        return SERVICE_ENDPOINT_TEMPLATE.format(account=self.account)


class ClientHandle:
    """An unopened Cosmos client plus whatever must be closed with it.

    ``async with handle as client`` opens the client and guarantees the
    client and any owned credential are closed afterwards.
    """

    def __init__(self, client: Any, endpoint: str, mode: str, credential: Any = None):
        self.client = client
        self.endpoint = endpoint
        self.mode = mode
        self._owned_credential = credential

    async def __aenter__(self) -> Any:
        try:
            return await self.client.__aenter__()
        except BaseException:
            await self._close_credential()
            raise

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await self.client.__aexit__(exc_type, exc, tb)
        finally:
            await self._close_credential()

    async def _close_credential(self) -> None:
        if self._owned_credential is not None:
            await self._owned_credential.close()

    def __repr__(self) -> str:
        return f"ClientHandle(endpoint={self.endpoint!r}, mode={self.mode!r})"


class ClientFactory(Protocol):
    """Builds a client handle for one tool call's connection settings."""

    def resolve(self, config: ConnectionConfig) -> ClientHandle: ...


class CosmosClientFactory:
    """Default factory backed by ``azure-cosmos`` and ``azure-identity``."""

    def __init__(self, account_key: str | None = None):
        self._account_key = account_key

    def resolve(self, config: ConnectionConfig) -> ClientHandle:
        config.validate_connection()
        endpoint = config.endpoint

        if config.use_emulator:
            logger.debug("Resolving emulator client for %s", endpoint)
            try:
                client = CosmosClient(endpoint, credential=EMULATOR_KEY, connection_verify=False)
            except Exception as e:
                raise ConnectionResolutionError(f"failed to create emulator client: {e}") from e
            return ClientHandle(client, endpoint, MODE_EMULATOR)

        if self._account_key:
            logger.debug("Resolving key-authenticated client for account %s", config.account)
            try:
                client = CosmosClient(endpoint, credential=self._account_key)
            except Exception as e:
                raise ConnectionResolutionError(f"error creating Cosmos client: {e}") from e
            return ClientHandle(client, endpoint, MODE_KEY)

        logger.debug("Resolving managed identity client for account %s", config.account)
        try:
            credential = DefaultAzureCredential()
        except Exception as e:
            raise ConnectionResolutionError(f"error creating credential: {e}") from e
        try:
            client = CosmosClient(endpoint, credential=credential)
        except Exception as e:
            raise ConnectionResolutionError(f"error creating Cosmos client: {e}") from e
        return ClientHandle(client, endpoint, MODE_IDENTITY, credential=credential)

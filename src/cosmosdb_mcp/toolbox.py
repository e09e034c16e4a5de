"""Tool dispatch for the Cosmos DB MCP Server.

``CosmosToolbox`` is the single entry point for every tool call. Each method
takes the raw argument mapping a client sent and runs the same pipeline:

1. Parse - build the tool's input model (aliases, types)
2. Validate - required fields and value constraints, no network
3. Resolve - ask the injected ``ClientFactory`` for a client handle
4. Execute - open the client, run the backend operation under a deadline,
   close the client
5. Shape - return the result model as a plain dict

Validation failures never reach step 3, so a malformed call costs no
backend round trip. Every failure leaves this class as a ``CosmosToolError``
subclass with a single caller-facing message.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from azure.core.exceptions import AzureError

from . import operations
from .batch import prepare_batch
from .connection import ClientFactory, CosmosClientFactory
from .documents import ItemDocument
from .errors import BackendError, CosmosToolError, OperationTimeoutError
from .models import (
    AddItemInput,
    BatchCreateItemsInput,
    BatchCreateItemsResult,
    ContainerMetadataResult,
    ContainerWriteResult,
    CreateContainerInput,
    CreateDatabaseInput,
    CreateDatabaseResult,
    ExecuteQueryInput,
    ExecuteQueryResult,
    ListContainersInput,
    ListContainersResult,
    ListDatabasesInput,
    ListDatabasesResult,
    ReadContainerMetadataInput,
    ReadItemInput,
    ReadItemResult,
    ToolInput,
)
from .observability import trace_cosmos_operation
from .validation import parse_arguments, validate_input

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_REQUEST_TIMEOUT = 60.0


class CosmosToolbox:
    """Runs the nine Cosmos DB tools against clients from ``client_factory``."""

    def __init__(
        self,
        client_factory: ClientFactory | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self.client_factory = client_factory or CosmosClientFactory()
        self.request_timeout = request_timeout

    async def _execute(
        self,
        operation: str,
        params: ToolInput,
        call: Callable[[Any], Awaitable[T]],
        database: str | None = None,
        container: str | None = None,
    ) -> T:
        """Resolve a client for ``params`` and run ``call`` with it.

        The deadline covers opening the client, the call itself and closing
        the client. Cancellation is not translated.
        """
        handle = self.client_factory.resolve(params)
        logger.info(
            "%s (account=%r, database=%r, container=%r, mode=%s)",
            operation.capitalize(),
            params.account or handle.endpoint,
            database,
            container,
            handle.mode,
        )

        async def run() -> T:
            async with handle as client:
                return await call(client)

        with trace_cosmos_operation(operation, handle.endpoint, database, container):
            try:
                return await asyncio.wait_for(run(), timeout=self.request_timeout)
            except asyncio.TimeoutError as e:
                logger.warning("%s timed out after %gs", operation, self.request_timeout)
                raise OperationTimeoutError(operation, self.request_timeout) from e
            except asyncio.CancelledError:
                logger.info("%s cancelled", operation)
                raise
            except CosmosToolError:
                raise
            except AzureError as e:
                logger.info("Backend failure while %s: %s", operation, e)
                raise BackendError(operation, e) from e

    # =========================================================================
    # DATABASES
    # =========================================================================

    async def list_databases(self, arguments: dict[str, Any]) -> dict[str, Any]:
        params = parse_arguments(ListDatabasesInput, arguments)
        validate_input(params)

        databases = await self._execute(
            "listing databases", params, operations.list_database_names
        )
        return ListDatabasesResult(account=params.account, databases=databases).to_response()

    async def create_database(self, arguments: dict[str, Any]) -> dict[str, Any]:
        params = parse_arguments(CreateDatabaseInput, arguments)
        validate_input(params)

        await self._execute(
            "creating database",
            params,
            lambda client: operations.create_database(client, params.database),
            database=params.database,
        )
        return CreateDatabaseResult(
            account=params.account,
            database=params.database,
            message=f"Database '{params.database}' created successfully",
        ).to_response()

    # =========================================================================
    # CONTAINERS
    # =========================================================================

    async def list_containers(self, arguments: dict[str, Any]) -> dict[str, Any]:
        params = parse_arguments(ListContainersInput, arguments)
        validate_input(params)

        containers = await self._execute(
            "listing containers",
            params,
            lambda client: operations.list_container_names(client, params.database),
            database=params.database,
        )
        return ListContainersResult(
            account=params.account, database=params.database, containers=containers
        ).to_response()

    async def read_container_metadata(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Container properties plus a classified throughput block."""
        params = parse_arguments(ReadContainerMetadataInput, arguments)
        validate_input(params)

        properties, throughput = await self._execute(
            "reading container",
            params,
            lambda client: operations.read_container_metadata(
                client, params.database, params.container
            ),
            database=params.database,
            container=params.container,
        )
        return ContainerMetadataResult(
            container_id=properties.get("id", params.container),
            default_ttl=properties.get("defaultTtl"),
            indexing_policy=properties.get("indexingPolicy"),
            partition_key_definition=properties.get("partitionKey"),
            conflict_resolution_policy=properties.get("conflictResolutionPolicy"),
            unique_key_policy=properties.get("uniqueKeyPolicy"),
            throughput=throughput.to_dict(),
        ).to_response()

    async def create_container(self, arguments: dict[str, Any]) -> dict[str, Any]:
        params = parse_arguments(CreateContainerInput, arguments)
        validate_input(params)

        await self._execute(
            "creating container",
            params,
            lambda client: operations.create_container(
                client,
                params.database,
                params.container,
                params.partition_key_path,
                params.throughput,
            ),
            database=params.database,
            container=params.container,
        )
        return ContainerWriteResult(
            account=params.account,
            database=params.database,
            container=params.container,
            message=(
                f"Container '{params.container}' created successfully "
                f"in database '{params.database}'"
            ),
        ).to_response()

    # =========================================================================
    # ITEMS
    # =========================================================================

    async def add_item_to_container(self, arguments: dict[str, Any]) -> dict[str, Any]:
        params = parse_arguments(AddItemInput, arguments)
        validate_input(params)
        document = ItemDocument(params.item)

        await self._execute(
            "adding item to container",
            params,
            lambda client: operations.add_item(
                client, params.database, params.container, params.partition_key, document
            ),
            database=params.database,
            container=params.container,
        )
        return ContainerWriteResult(
            account=params.account,
            database=params.database,
            container=params.container,
            message=(
                f"Item added successfully to container '{params.container}' "
                f"in database '{params.database}'"
            ),
        ).to_response()

    async def read_item(self, arguments: dict[str, Any]) -> dict[str, Any]:
        params = parse_arguments(ReadItemInput, arguments)
        validate_input(params)

        item = await self._execute(
            "reading item",
            params,
            lambda client: operations.read_item(
                client, params.database, params.container, params.item_id, params.partition_key
            ),
            database=params.database,
            container=params.container,
        )
        return ReadItemResult(item=item).to_response()

    async def execute_query(self, arguments: dict[str, Any]) -> dict[str, Any]:
        params = parse_arguments(ExecuteQueryInput, arguments)
        validate_input(params)

        results = await self._execute(
            "executing query",
            params,
            lambda client: operations.query_items(
                client, params.database, params.container, params.query, params.partition_key
            ),
            database=params.database,
            container=params.container,
        )
        return ExecuteQueryResult(results=results).to_response()

    async def batch_create_items(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Create up to 100 items atomically; all of them or none."""
        params = parse_arguments(BatchCreateItemsInput, arguments)
        validate_input(params)
        documents = prepare_batch(params.items)

        created = await self._execute(
            "creating batch",
            params,
            lambda client: operations.batch_create_items(
                client, params.database, params.container, params.partition_key, documents
            ),
            database=params.database,
            container=params.container,
        )
        return BatchCreateItemsResult(
            account=params.account,
            database=params.database,
            container=params.container,
            items_created=created,
            message=f"Successfully created {created} items in container '{params.container}'",
        ).to_response()

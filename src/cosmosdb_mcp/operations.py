"""Backend operations behind each tool.

Each function takes an opened async ``CosmosClient`` plus already validated
arguments and performs the Cosmos DB interaction for one tool. Errors the
caller should see differently from a plain failure (resource exists, not
found, partition key mismatch) are translated here; everything else
propagates to the facade, which wraps it with the operation name.
"""

import json
import logging
from typing import Any

from azure.core.exceptions import AzureError
from azure.cosmos import PartitionKey
from azure.cosmos import exceptions as cosmos_exceptions

from .batch import check_partition_consistency, write_batch
from .documents import ItemDocument
from .errors import BackendError, InputValidationError, ResourceExistsError
from .query import run_paged
from .throughput import ThroughputInfo, classify_error, classify_properties

logger = logging.getLogger(__name__)


def _container_client(client: Any, database: str, container: str) -> Any:
    return client.get_database_client(database).get_container_client(container)


async def partition_key_path(container: Any) -> str | None:
    """Return the container's single partition key path.

    Hierarchical (multi-path) keys return None; callers skip the
    consistency check for them.
    """
    properties = await container.read()
    paths = (properties.get("partitionKey") or {}).get("paths") or []
    return paths[0] if len(paths) == 1 else None


# =============================================================================
# DATABASES
# =============================================================================


async def list_database_names(client: Any) -> list[str]:
    return await run_paged(client.list_databases(), transform=lambda db: db["id"])


async def create_database(client: Any, database: str) -> None:
    try:
        await client.create_database(id=database)
    except cosmos_exceptions.CosmosResourceExistsError as e:
        raise ResourceExistsError(
            "creating database", e, f"database '{database}' already exists"
        ) from e


# =============================================================================
# CONTAINERS
# =============================================================================


async def list_container_names(client: Any, database: str) -> list[str]:
    database_client = client.get_database_client(database)
    return await run_paged(database_client.list_containers(), transform=lambda c: c["id"])


async def read_container_metadata(
    client: Any, database: str, container: str
) -> tuple[dict[str, Any], ThroughputInfo]:
    """Read container properties and classify its throughput.

    A failed properties read is an error; a failed throughput read is
    classified instead of raised.
    """
    container_client = _container_client(client, database, container)
    properties = await container_client.read()

    try:
        throughput = classify_properties(await container_client.get_throughput())
    except AzureError as e:
        throughput = classify_error(e)
        logger.debug(
            "Throughput read for %s/%s classified as %s",
            database,
            container,
            throughput.type.value,
        )
    return properties, throughput


async def create_container(
    client: Any,
    database: str,
    container: str,
    partition_key_path: str,
    throughput: int | None = None,
) -> None:
    database_client = client.get_database_client(database)
    options: dict[str, Any] = {}
    if throughput is not None:
        options["offer_throughput"] = throughput
    try:
        await database_client.create_container(
            id=container, partition_key=PartitionKey(path=partition_key_path), **options
        )
    except cosmos_exceptions.CosmosResourceExistsError as e:
        raise ResourceExistsError(
            "creating container",
            e,
            f"container '{container}' already exists in database '{database}'",
        ) from e


# =============================================================================
# ITEMS
# =============================================================================


async def add_item(
    client: Any, database: str, container: str, partition_key: str, document: ItemDocument
) -> None:
    container_client = _container_client(client, database, container)

    path = await partition_key_path(container_client)
    if path and not document.matches_partition_key(path, partition_key):
        raise InputValidationError(
            f"partition key value '{partition_key}' does not match item value "
            f"{document.partition_key_value(path)!r} at '{path}'",
            field="partition_key",
        )

    try:
        await container_client.create_item(body=document.body)
    except cosmos_exceptions.CosmosResourceExistsError as e:
        raise ResourceExistsError(
            "adding item to container",
            e,
            f"item with id '{document.id}' already exists in container '{container}'",
        ) from e


async def read_item(
    client: Any, database: str, container: str, item_id: str, partition_key: str
) -> str:
    container_client = _container_client(client, database, container)
    try:
        item = await container_client.read_item(item=item_id, partition_key=partition_key)
    except cosmos_exceptions.CosmosResourceNotFoundError as e:
        raise BackendError(
            "reading item",
            e,
            f"item '{item_id}' not found in container '{container}' "
            f"for partition key '{partition_key}'",
        ) from e
    return json.dumps(item)


async def query_items(
    client: Any, database: str, container: str, query: str, partition_key: str | None = None
) -> list[str]:
    container_client = _container_client(client, database, container)
    options: dict[str, Any] = {}
    if partition_key is not None:
        options["partition_key"] = partition_key
    pager = container_client.query_items(query=query, **options)
    return await run_paged(pager, transform=json.dumps)


async def batch_create_items(
    client: Any,
    database: str,
    container: str,
    partition_key: str,
    documents: list[ItemDocument],
) -> int:
    container_client = _container_client(client, database, container)

    path = await partition_key_path(container_client)
    if path:
        check_partition_consistency(documents, path, partition_key)

    return await write_batch(container_client, partition_key, documents)

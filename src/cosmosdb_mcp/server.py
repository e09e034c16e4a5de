"""Cosmos DB MCP Server - server assembly and entry point.

Builds a FastMCP server exposing nine Cosmos DB tools:

- Databases: list_databases, create_database
- Containers: list_containers, read_container_metadata, create_container
- Items: add_item_to_container, read_item, execute_query, batch_create_items

Tool arguments are flat (``account``, ``database``, ``partitionKey``, ...)
and every tool additionally accepts ``useEmulator`` / ``emulatorEndpoint``.
The work itself happens in ``CosmosToolbox``; this module only adapts its
results and errors to the MCP protocol.

Transports:
- stdio (default) for local clients
- streamable HTTP when ``COSMOSDB_MCP_SERVER_MODE=http``
"""

import logging
import signal
import sys
from collections.abc import Awaitable, Callable
from typing import Annotated, Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from .config import ServerConfig, get_config
from .connection import DEFAULT_EMULATOR_ENDPOINT, CosmosClientFactory
from .errors import CosmosToolError
from .models import MAX_BATCH_ITEMS
from .observability import initialize_observability
from .observability.middleware import MCPInstrumentationMiddleware
from .toolbox import CosmosToolbox

# stdout belongs to the stdio transport
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)

logger = logging.getLogger(__name__)

AZURE_LOGGERS = ("azure", "azure.core.pipeline.policies.http_logging_policy", "azure.identity")

INSTRUCTIONS = (
    "Azure Cosmos DB MCP Server - manage databases and containers, add and read items, "
    "run SQL queries and create items in atomic batches. Every tool takes the account "
    "name, or useEmulator=true to target a local emulator."
)

# =============================================================================
# ARGUMENT TYPES
# =============================================================================

Account = Annotated[
    str, Field(description="Azure Cosmos DB account name (required when not using emulator)")
]
UseEmulator = Annotated[
    bool, Field(description="Set to true to use local Cosmos DB emulator instead of Azure service")
]
EmulatorEndpoint = Annotated[
    str, Field(description=f"Emulator endpoint URL (default: {DEFAULT_EMULATOR_ENDPOINT})")
]
Database = Annotated[str, Field(description="Azure Cosmos DB database name")]
Container = Annotated[str, Field(description="Azure Cosmos DB container name")]

# =============================================================================
# TOOL DESCRIPTIONS
# =============================================================================

TOOL_DESCRIPTIONS: dict[str, str] = {
    "list_databases": "List all databases in a Cosmos DB account",
    "create_database": "Create a new database in the specified Azure Cosmos DB account",
    "list_containers": "List all containers in the specified Azure Cosmos DB database",
    "read_container_metadata": (
        "Read metadata and configuration of a specific container in an Azure Cosmos DB "
        "database, including partition key, indexing policy and throughput settings"
    ),
    "create_container": "Create a new container in the specified Azure Cosmos DB database",
    "add_item_to_container": "Add a new item to the specified Azure Cosmos DB container",
    "read_item": "Read a specific item from a container in a Cosmos DB database",
    "execute_query": (
        "Execute a general query on a Cosmos DB container. If the query fails with an error "
        "related to cross partition query, do not ask the user to provide a partition key. "
        "Instead, try a different query that does not require a partition key. Do not use "
        "the `TOP`, `ORDER BY`, `OFFSET LIMIT`, `DISTINCT` and `GROUP BY` clauses in the "
        "query as they are not supported by the SDK used to implement this tool. Simple "
        "projections and Filters are supported in the query. Ensure that the query string "
        "is valid and adheres to Cosmos DB SQL syntax. To use a partition key in the query "
        "directly, add it in the WHERE clause. "
        "Example: SELECT * FROM c WHERE c.department='HR'."
    ),
    "batch_create_items": (
        f"Create up to {MAX_BATCH_ITEMS} items in a single partition of an Azure Cosmos DB "
        "container as one atomic batch. Either every item is created or none is; each item "
        "must have an id field and the same partition key value"
    ),
}


async def _invoke(
    method: Callable[[dict[str, Any]], Awaitable[dict[str, Any]]], arguments: dict[str, Any]
) -> dict[str, Any]:
    """Run a toolbox method and report failures as MCP tool errors."""
    try:
        return await method(arguments)
    except CosmosToolError as e:
        raise ToolError(str(e)) from e
    except Exception as e:
        logger.exception("Unexpected error in %s", method.__name__)
        raise ToolError(f"An unexpected error occurred: {e!s}") from e


# =============================================================================
# SERVER ASSEMBLY
# =============================================================================


def create_server(
    toolbox: CosmosToolbox | None = None, config: ServerConfig | None = None
) -> FastMCP:
    """Build a FastMCP server with all Cosmos DB tools registered.

    Args:
        toolbox: the dispatch facade; defaults to one backed by the real
            Cosmos client factory
        config: server settings; defaults to the environment
    """
    config = config or get_config()
    if toolbox is None:
        toolbox = CosmosToolbox(
            CosmosClientFactory(account_key=config.get_account_key()),
            request_timeout=config.request_timeout,
        )

    info = config.server_info
    mcp = FastMCP(name=info["name"], version=info["version"], instructions=INSTRUCTIONS)
    mcp.add_middleware(MCPInstrumentationMiddleware())

    def connection(account: str, use_emulator: bool, emulator_endpoint: str) -> dict[str, Any]:
        return {
            "account": account,
            "useEmulator": use_emulator,
            "emulatorEndpoint": emulator_endpoint,
        }

    async def list_databases(
        account: Account = "",
        useEmulator: UseEmulator = False,
        emulatorEndpoint: EmulatorEndpoint = "",
    ) -> dict[str, Any]:
        arguments = connection(account, useEmulator, emulatorEndpoint)
        return await _invoke(toolbox.list_databases, arguments)

    async def create_database(
        account: Account = "",
        database: Annotated[str, Field(description="Name of the database to create")] = "",
        useEmulator: UseEmulator = False,
        emulatorEndpoint: EmulatorEndpoint = "",
    ) -> dict[str, Any]:
        arguments = connection(account, useEmulator, emulatorEndpoint)
        arguments["database"] = database
        return await _invoke(toolbox.create_database, arguments)

    async def list_containers(
        account: Account = "",
        database: Database = "",
        useEmulator: UseEmulator = False,
        emulatorEndpoint: EmulatorEndpoint = "",
    ) -> dict[str, Any]:
        arguments = connection(account, useEmulator, emulatorEndpoint)
        arguments["database"] = database
        return await _invoke(toolbox.list_containers, arguments)

    async def read_container_metadata(
        account: Account = "",
        database: Database = "",
        container: Container = "",
        useEmulator: UseEmulator = False,
        emulatorEndpoint: EmulatorEndpoint = "",
    ) -> dict[str, Any]:
        arguments = connection(account, useEmulator, emulatorEndpoint)
        arguments.update(database=database, container=container)
        return await _invoke(toolbox.read_container_metadata, arguments)

    async def create_container(
        account: Account = "",
        database: Database = "",
        container: Annotated[str, Field(description="Name of the container to create")] = "",
        partitionKeyPath: Annotated[
            str,
            Field(
                description="Partition key path for the container, example /id, /tenant, "
                "/category etc."
            ),
        ] = "",
        throughput: Annotated[
            int | None,
            Field(description="Provisioned manual throughput (RU/s) for the container (optional)"),
        ] = None,
        useEmulator: UseEmulator = False,
        emulatorEndpoint: EmulatorEndpoint = "",
    ) -> dict[str, Any]:
        arguments = connection(account, useEmulator, emulatorEndpoint)
        arguments.update(
            database=database,
            container=container,
            partitionKeyPath=partitionKeyPath,
            throughput=throughput,
        )
        return await _invoke(toolbox.create_container, arguments)

    async def add_item_to_container(
        account: Account = "",
        database: Database = "",
        container: Annotated[
            str, Field(description="Name of the container to add the item to")
        ] = "",
        partitionKey: Annotated[str, Field(description="Partition key value for the item")] = "",
        item: Annotated[
            str,
            Field(description="The JSON representation of the item to add. id field is mandatory"),
        ] = "",
        useEmulator: UseEmulator = False,
        emulatorEndpoint: EmulatorEndpoint = "",
    ) -> dict[str, Any]:
        arguments = connection(account, useEmulator, emulatorEndpoint)
        arguments.update(
            database=database, container=container, partitionKey=partitionKey, item=item
        )
        return await _invoke(toolbox.add_item_to_container, arguments)

    async def read_item(
        account: Account = "",
        database: Database = "",
        container: Annotated[
            str, Field(description="Name of the container to read data from")
        ] = "",
        itemID: Annotated[str, Field(description="ID of the item to read")] = "",
        partitionKey: Annotated[str, Field(description="Partition key of the item")] = "",
        useEmulator: UseEmulator = False,
        emulatorEndpoint: EmulatorEndpoint = "",
    ) -> dict[str, Any]:
        arguments = connection(account, useEmulator, emulatorEndpoint)
        arguments.update(
            database=database, container=container, itemID=itemID, partitionKey=partitionKey
        )
        return await _invoke(toolbox.read_item, arguments)

    async def execute_query(
        account: Account = "",
        database: Database = "",
        container: Annotated[str, Field(description="Name of the container to query")] = "",
        query: Annotated[str, Field(description="The SQL query string to execute")] = "",
        partitionKey: Annotated[
            str | None,
            Field(
                description="The partition key value for the query. If provided, the query "
                "will be scoped to this partition."
            ),
        ] = None,
        useEmulator: UseEmulator = False,
        emulatorEndpoint: EmulatorEndpoint = "",
    ) -> dict[str, Any]:
        arguments = connection(account, useEmulator, emulatorEndpoint)
        arguments.update(
            database=database, container=container, query=query, partitionKey=partitionKey
        )
        return await _invoke(toolbox.execute_query, arguments)

    async def batch_create_items(
        account: Account = "",
        database: Database = "",
        container: Annotated[
            str, Field(description="Name of the container to add the items to")
        ] = "",
        partitionKey: Annotated[
            str, Field(description="Partition key value shared by every item in the batch")
        ] = "",
        items: Annotated[
            list[str] | None,
            Field(
                description=f"JSON representations of the items to create (1 to "
                f"{MAX_BATCH_ITEMS}). Each item must have an id field"
            ),
        ] = None,
        useEmulator: UseEmulator = False,
        emulatorEndpoint: EmulatorEndpoint = "",
    ) -> dict[str, Any]:
        arguments = connection(account, useEmulator, emulatorEndpoint)
        arguments.update(
            database=database,
            container=container,
            partitionKey=partitionKey,
            items=items or [],
        )
        return await _invoke(toolbox.batch_create_items, arguments)

    handlers = [
        list_databases,
        create_database,
        list_containers,
        read_container_metadata,
        create_container,
        add_item_to_container,
        read_item,
        execute_query,
        batch_create_items,
    ]
    for handler in handlers:
        name = handler.__name__
        logger.debug("Registering tool: %s", name)
        mcp.tool(name=name, description=TOOL_DESCRIPTIONS[name])(handler)

    logger.info("Registered %d tools", len(handlers))
    return mcp


# =============================================================================
# ENTRY POINT
# =============================================================================


def configure_logging(config: ServerConfig) -> None:
    """Apply the configured log level; Azure SDK loggers stay quiet unless debugging."""
    root = logging.getLogger()
    if config.is_development:
        root.setLevel(logging.DEBUG)
        logger.debug("Development logging enabled - Azure SDK HTTP logging active")
        return

    root.setLevel(config.log_level)
    for name in AZURE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("fastmcp").setLevel(logging.WARNING)


def main() -> None:
    """Entry point for the ``cosmosdb-mcp-server`` console script."""
    try:
        config = get_config()
        configure_logging(config)
        initialize_observability()

        logger.info("=" * 60)
        logger.info("Cosmos DB MCP Server")
        for key, value in config.server_info.items():
            logger.info("%s: %s", key.capitalize(), value)
        logger.info("Debug Mode: %s", config.debug)
        logger.info("=" * 60)

        mcp = create_server(config=config)

        def signal_handler(signum: int, _frame: Any) -> None:
            logger.info("Received signal %s, initiating shutdown...", signum)
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        if config.transport == "http":
            logger.info(
                "Starting streamable HTTP transport on %s:%d", config.http_host, config.http_port
            )
            mcp.run(transport="http", host=config.http_host, port=config.http_port)
        else:
            logger.info("Starting stdio transport")
            mcp.run(transport="stdio")

    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Failed to start MCP server")
        sys.exit(1)


if __name__ == "__main__":
    main()

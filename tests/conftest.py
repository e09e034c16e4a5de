"""Test configuration and fixtures for the Cosmos DB MCP Server.

The tools never talk to a real account in tests. Instead a small in-memory
backend mimics the parts of the async ``azure-cosmos`` client the server
uses:

1. Pagers - ``by_page()`` yields async pages, with optional failure on a
   given page
2. Containers - properties, throughput, items keyed by (partition key, id)
3. Transactional batch - all-or-nothing, raising the SDK's own
   ``CosmosBatchOperationError``
4. Errors - the real ``azure.cosmos.exceptions`` types

The fake is injected through a ``ClientFactory``, the same seam the
production server uses for ``CosmosClientFactory``.
"""

import asyncio
from types import SimpleNamespace
from typing import Any

import pytest
from azure.cosmos import exceptions as cosmos_exceptions

from cosmosdb_mcp.config import reset_config
from cosmosdb_mcp.connection import ClientHandle, ConnectionConfig
from cosmosdb_mcp.toolbox import CosmosToolbox

ENV_VARS = (
    "COSMOSDB_MCP_SERVER_NAME",
    "COSMOSDB_MCP_SERVER_VERSION",
    "COSMOSDB_MCP_SERVER_MODE",
    "COSMOSDB_MCP_TRANSPORT",
    "COSMOSDB_MCP_HTTP_HOST",
    "COSMOSDB_MCP_HTTP_PORT",
    "SERVER_PORT",
    "COSMOSDB_ACCOUNT_KEY",
    "COSMOSDB_MCP_REQUEST_TIMEOUT",
    "COSMOSDB_MCP_DEBUG",
    "COSMOSDB_MCP_LOG_LEVEL",
)


# === Fake backend ===


def not_found(message: str) -> cosmos_exceptions.CosmosResourceNotFoundError:
    return cosmos_exceptions.CosmosResourceNotFoundError(status_code=404, message=message)


def value_at(body: dict[str, Any], path: str) -> Any:
    current: Any = body
    for segment in path.strip("/").split("/"):
        if not isinstance(current, dict) or segment not in current:
            return None
        current = current[segment]
    return current


async def _async_items(items: list[Any]):
    for item in items:
        yield item


class FakePager:
    """Stand-in for ``AsyncItemPaged``."""

    def __init__(
        self,
        items: list[Any],
        page_size: int = 2,
        error: Exception | None = None,
        fail_at_page: int = 0,
    ):
        self.items = list(items)
        self.page_size = page_size
        self.error = error
        self.fail_at_page = fail_at_page
        self.pages_served = 0

    def by_page(self):
        return self._pages()

    async def _pages(self):
        starts = range(0, max(len(self.items), 1), self.page_size)
        for index, start in enumerate(starts):
            if self.error is not None and index == self.fail_at_page:
                raise self.error
            self.pages_served += 1
            yield _async_items(self.items[start : start + self.page_size])
        if self.error is not None and self.fail_at_page >= len(starts):
            raise self.error


class ContainerState:
    def __init__(self, name: str, partition_key_paths: list[str]):
        self.name = name
        self.partition_key_paths = partition_key_paths
        self.items: list[dict[str, Any]] = []
        self.throughput: Any = not_found("Offer not found")
        self.page_size = 2
        self.query_error: Exception | None = None
        self.query_fail_at_page = 0
        self.queries: list[tuple[str, Any]] = []
        self.batches: list[tuple[list[Any], str]] = []
        self.reads = 0

    @property
    def partition_key_path(self) -> str:
        return self.partition_key_paths[0]

    def key_of(self, body: dict[str, Any]) -> tuple[Any, Any]:
        return (value_at(body, self.partition_key_path), body.get("id"))

    def find(self, partition_key: Any, item_id: str) -> dict[str, Any] | None:
        for body in self.items:
            if self.key_of(body) == (partition_key, item_id):
                return body
        return None

    def properties(self) -> dict[str, Any]:
        return {
            "id": self.name,
            "defaultTtl": None,
            "indexingPolicy": {"indexingMode": "consistent", "automatic": True},
            "partitionKey": {"paths": list(self.partition_key_paths), "kind": "Hash"},
            "conflictResolutionPolicy": {"mode": "LastWriterWins"},
            "uniqueKeyPolicy": {"uniqueKeys": []},
        }


class FakeCosmosStore:
    """Databases and containers shared by every client a test opens."""

    def __init__(self):
        self.databases: dict[str, dict[str, ContainerState]] = {}
        self.open_delay = 0.0
        self.operations: list[str] = []

    def add_database(self, name: str) -> dict[str, ContainerState]:
        return self.databases.setdefault(name, {})

    def add_container(
        self, database: str, name: str, partition_key_path: str = "/category"
    ) -> ContainerState:
        state = ContainerState(name, [partition_key_path])
        self.add_database(database)[name] = state
        return state

    def container(self, database: str, name: str) -> ContainerState:
        return self.databases[database][name]


class FakeContainer:
    def __init__(self, store: FakeCosmosStore, database: str, name: str):
        self.store = store
        self.database = database
        self.name = name

    def _state(self) -> ContainerState:
        state = self.store.databases.get(self.database, {}).get(self.name)
        if state is None:
            raise not_found(f"Resource Not Found. container '{self.name}'")
        return state

    async def read(self) -> dict[str, Any]:
        self.store.operations.append("read_container")
        state = self._state()
        state.reads += 1
        return state.properties()

    async def get_throughput(self) -> Any:
        self.store.operations.append("get_throughput")
        throughput = self._state().throughput
        if isinstance(throughput, Exception):
            raise throughput
        return throughput

    async def create_item(self, body: dict[str, Any]) -> dict[str, Any]:
        self.store.operations.append("create_item")
        state = self._state()
        if not body.get("id"):
            raise cosmos_exceptions.CosmosHttpResponseError(
                status_code=400, message="The input content is invalid because the id is missing."
            )
        if state.find(*state.key_of(body)) is not None:
            raise cosmos_exceptions.CosmosResourceExistsError(
                status_code=409,
                message="Entity with the specified id already exists in the system.",
            )
        state.items.append(dict(body))
        return body

    async def read_item(self, item: str, partition_key: Any) -> dict[str, Any]:
        self.store.operations.append("read_item")
        body = self._state().find(partition_key, item)
        if body is None:
            raise not_found("Entity with the specified id does not exist in the system.")
        return dict(body)

    def query_items(self, query: str, partition_key: Any = None, **kwargs) -> FakePager:
        self.store.operations.append("query_items")
        state = self._state()
        state.queries.append((query, partition_key))
        items = state.items
        if partition_key is not None:
            path = state.partition_key_path
            items = [body for body in items if value_at(body, path) == partition_key]
        return FakePager(
            items,
            page_size=state.page_size,
            error=state.query_error,
            fail_at_page=state.query_fail_at_page,
        )

    async def execute_item_batch(self, batch_operations: list[Any], partition_key: Any) -> list:
        self.store.operations.append("execute_item_batch")
        state = self._state()
        state.batches.append((list(batch_operations), partition_key))

        staged: list[dict[str, Any]] = []
        keys: set[Any] = set()
        responses: list[dict[str, Any]] = []
        failed_index = None
        for index, (kind, args) in enumerate(batch_operations):
            assert kind == "create"
            body = args[0]
            key = (partition_key, body.get("id"))
            if state.find(*key) is not None or key in keys:
                responses.append({"statusCode": 409})
                failed_index = index
                break
            keys.add(key)
            staged.append(dict(body))
            responses.append({"statusCode": 424})

        if failed_index is not None:
            raise cosmos_exceptions.CosmosBatchOperationError(
                error_index=failed_index,
                headers={},
                status_code=409,
                message="There was an error in the transactional batch on index "
                f"{failed_index}. Error message: Conflict",
                operation_responses=responses,
            )
        state.items.extend(staged)
        return [{"statusCode": 201, "resourceBody": body} for body in staged]


class FakeDatabase:
    def __init__(self, store: FakeCosmosStore, name: str):
        self.store = store
        self.name = name

    def list_containers(self) -> FakePager:
        self.store.operations.append("list_containers")
        containers = self.store.databases.get(self.name)
        if containers is None:
            return FakePager([], error=not_found(f"Resource Not Found. database '{self.name}'"))
        return FakePager([{"id": name} for name in containers])

    async def create_container(self, id: str, partition_key: Any, offer_throughput=None, **kwargs):
        self.store.operations.append("create_container")
        containers = self.store.databases.get(self.name)
        if containers is None:
            raise not_found(f"Resource Not Found. database '{self.name}'")
        if id in containers:
            raise cosmos_exceptions.CosmosResourceExistsError(
                status_code=409, message="Resource with specified id or name already exists."
            )
        state = ContainerState(id, list(partition_key["paths"]))
        if offer_throughput is not None:
            state.throughput = SimpleNamespace(
                offer_throughput=offer_throughput, auto_scale_max_throughput=None
            )
        containers[id] = state
        return self.get_container_client(id)

    def get_container_client(self, container: str) -> FakeContainer:
        return FakeContainer(self.store, self.name, container)


class FakeCosmosClient:
    """Async context manager with the ``CosmosClient`` surface the tools use."""

    def __init__(self, store: FakeCosmosStore):
        self.store = store
        self.entered = False
        self.closed = False

    async def __aenter__(self):
        if self.store.open_delay:
            await asyncio.sleep(self.store.open_delay)
        self.entered = True
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.closed = True

    def list_databases(self) -> FakePager:
        self.store.operations.append("list_databases")
        return FakePager([{"id": name} for name in self.store.databases])

    async def create_database(self, id: str, **kwargs) -> FakeDatabase:
        self.store.operations.append("create_database")
        if id in self.store.databases:
            raise cosmos_exceptions.CosmosResourceExistsError(
                status_code=409, message="Resource with specified id or name already exists."
            )
        self.store.add_database(id)
        return self.get_database_client(id)

    def get_database_client(self, database: str) -> FakeDatabase:
        return FakeDatabase(self.store, database)


class FakeClientFactory:
    """``ClientFactory`` handing out clients bound to one ``FakeCosmosStore``."""

    def __init__(self, store: FakeCosmosStore):
        self.store = store
        self.resolved: list[ConnectionConfig] = []
        self.clients: list[FakeCosmosClient] = []

    def resolve(self, config: ConnectionConfig) -> ClientHandle:
        config.validate_connection()
        self.resolved.append(config)
        client = FakeCosmosClient(self.store)
        self.clients.append(client)
        mode = "emulator" if config.use_emulator else "key"
        return ClientHandle(client, config.endpoint, mode)


# === Fixtures ===


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Isolate every test from the caller's environment and cached config."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LOGFIRE_SEND", "false")
    reset_config()
    yield
    reset_config()


@pytest.fixture
def store() -> FakeCosmosStore:
    return FakeCosmosStore()


@pytest.fixture
def factory(store: FakeCosmosStore) -> FakeClientFactory:
    return FakeClientFactory(store)


@pytest.fixture
def toolbox(factory: FakeClientFactory) -> CosmosToolbox:
    return CosmosToolbox(factory, request_timeout=5.0)


@pytest.fixture
def emulator() -> dict[str, Any]:
    """Connection arguments targeting the (fake) local emulator."""
    return {"useEmulator": True}


@pytest.fixture
def products(store: FakeCosmosStore) -> ContainerState:
    """A ``shop/products`` container partitioned on ``/category``."""
    return store.add_container("shop", "products", "/category")

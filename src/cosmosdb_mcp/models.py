"""Pydantic models for tool inputs and results.

Every input model embeds the connection fields by inheriting from
``ConnectionConfig`` and declares ``required_fields`` in the order they are
validated. Field aliases match the camelCase argument names clients send
(``partitionKey``, ``itemID``, ...).

Required fields default to empty values. Emptiness is reported by
``validation.py`` with a field-specific message, not as a schema error.
"""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .connection import ConnectionConfig, TrimmedStr

MAX_BATCH_ITEMS = 100
MIN_MANUAL_THROUGHPUT = 400


# =============================================================================
# TOOL INPUTS
# =============================================================================


class ToolInput(ConnectionConfig):
    """Base class for tool inputs."""

    required_fields: ClassVar[tuple[str, ...]] = ()


class ListDatabasesInput(ToolInput):
    """Input for ``list_databases``."""


class CreateDatabaseInput(ToolInput):
    """Input for ``create_database``."""

    required_fields: ClassVar[tuple[str, ...]] = ("database",)

    database: TrimmedStr = Field(default="", description="Name of the database to create")


class ListContainersInput(ToolInput):
    """Input for ``list_containers``."""

    required_fields: ClassVar[tuple[str, ...]] = ("database",)

    database: TrimmedStr = Field(default="", description="Azure Cosmos DB database name")


class ReadContainerMetadataInput(ToolInput):
    """Input for ``read_container_metadata``."""

    required_fields: ClassVar[tuple[str, ...]] = ("database", "container")

    database: TrimmedStr = Field(default="", description="Azure Cosmos DB database name")
    container: TrimmedStr = Field(default="", description="Azure Cosmos DB container name")


class CreateContainerInput(ToolInput):
    """Input for ``create_container``."""

    required_fields: ClassVar[tuple[str, ...]] = ("database", "container", "partition_key_path")

    database: TrimmedStr = Field(default="", description="Azure Cosmos DB database name")
    container: TrimmedStr = Field(default="", description="Name of the container to create")
    partition_key_path: TrimmedStr = Field(
        default="",
        alias="partitionKeyPath",
        description="Partition key path for the container, example /id, /tenant, /category etc.",
    )
    throughput: int | None = Field(
        default=None,
        description="Provisioned manual throughput (RU/s) for the container (optional)",
    )


class AddItemInput(ToolInput):
    """Input for ``add_item_to_container``."""

    required_fields: ClassVar[tuple[str, ...]] = ("database", "container", "partition_key", "item")

    database: TrimmedStr = Field(default="", description="Azure Cosmos DB database name")
    container: TrimmedStr = Field(
        default="", description="Name of the container to add the item to"
    )
    partition_key: str = Field(
        default="", alias="partitionKey", description="Partition key value for the item"
    )
    item: str = Field(
        default="",
        description="The JSON representation of the item to add. id field is mandatory",
    )


class ReadItemInput(ToolInput):
    """Input for ``read_item``."""

    required_fields: ClassVar[tuple[str, ...]] = (
        "database",
        "container",
        "item_id",
        "partition_key",
    )

    database: TrimmedStr = Field(default="", description="Azure Cosmos DB database name")
    container: TrimmedStr = Field(
        default="", description="Name of the container to read data from"
    )
    item_id: str = Field(default="", alias="itemID", description="ID of the item to read")
    partition_key: str = Field(
        default="", alias="partitionKey", description="Partition key of the item"
    )


class ExecuteQueryInput(ToolInput):
    """Input for ``execute_query``."""

    required_fields: ClassVar[tuple[str, ...]] = ("database", "container", "query")

    database: TrimmedStr = Field(default="", description="Azure Cosmos DB database name")
    container: TrimmedStr = Field(default="", description="Name of the container to query")
    query: str = Field(default="", description="The SQL query string to execute")
    partition_key: str | None = Field(
        default=None,
        alias="partitionKey",
        description=(
            "The partition key value for the query. "
            "If provided, the query will be scoped to this partition."
        ),
    )

    @field_validator("partition_key")
    @classmethod
    def empty_partition_key_is_none(cls, v: str | None) -> str | None:
        return v or None


class BatchCreateItemsInput(ToolInput):
    """Input for ``batch_create_items``."""

    required_fields: ClassVar[tuple[str, ...]] = ("database", "container", "partition_key", "items")

    database: TrimmedStr = Field(default="", description="Azure Cosmos DB database name")
    container: TrimmedStr = Field(
        default="", description="Name of the container to add the items to"
    )
    partition_key: str = Field(
        default="",
        alias="partitionKey",
        description="Partition key value shared by every item in the batch",
    )
    items: list[str] = Field(
        default_factory=list,
        description=(
            f"JSON representations of the items to create (1 to {MAX_BATCH_ITEMS}). "
            "Each item must have an id field"
        ),
    )


# =============================================================================
# TOOL RESULTS
# =============================================================================


class ToolResult(BaseModel):
    """Base class for tool results."""

    model_config = ConfigDict(populate_by_name=True)

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ListDatabasesResult(ToolResult):
    account: str
    databases: list[str]


class CreateDatabaseResult(ToolResult):
    account: str
    database: str
    message: str


class ListContainersResult(ToolResult):
    account: str
    database: str
    containers: list[str]


class ContainerMetadataResult(ToolResult):
    container_id: str
    default_ttl: int | None = None
    indexing_policy: dict[str, Any] | None = None
    partition_key_definition: dict[str, Any] | None = None
    conflict_resolution_policy: dict[str, Any] | None = None
    unique_key_policy: dict[str, Any] | None = None
    throughput: dict[str, Any]


class ContainerWriteResult(ToolResult):
    """Result shape shared by ``create_container`` and ``add_item_to_container``."""

    account: str
    database: str
    container: str
    message: str


class ReadItemResult(ToolResult):
    item: str


class ExecuteQueryResult(ToolResult):
    results: list[str]


class BatchCreateItemsResult(ToolResult):
    account: str
    database: str
    container: str
    items_created: int = Field(alias="itemsCreated")
    message: str

"""All-or-nothing multi-item creation.

A batch is written with a single Cosmos DB transactional batch, which the
service applies atomically within one logical partition: if any operation
fails, none of them is persisted. The writer therefore reports exactly two
outcomes, the full count on success or one ``BatchError`` for the whole
request. There is no partial count and no retry of surviving items.

Local checks run before anything is sent:

1. 1 <= len(items) <= 100
2. every item parses as a JSON object with a non-empty string ``id``
3. optionally, every item carries the batch's partition key value at the
   container's partition key path
"""

import logging
from typing import Any

from azure.cosmos import exceptions as cosmos_exceptions

from .documents import InvalidDocumentError, ItemDocument
from .errors import BatchError, describe_backend_error
from .validation import check_batch_size

logger = logging.getLogger(__name__)


def prepare_batch(items: list[str]) -> list[ItemDocument]:
    """Parse and check every item; raise ``BatchError`` on the first bad one."""
    check_batch_size(items)

    documents = []
    seen_ids: dict[str, int] = {}
    for index, raw in enumerate(items):
        document = ItemDocument(raw)
        try:
            item_id = document.id
        except InvalidDocumentError as e:
            raise BatchError(f"item {index} is not valid: {e}", failed_index=index) from e
        if item_id is None:
            raise BatchError(
                f"item {index} is missing a non-empty 'id' field", failed_index=index
            )
        if item_id in seen_ids:
            raise BatchError(
                f"item {index} repeats id '{item_id}' of item {seen_ids[item_id]}",
                failed_index=index,
            )
        seen_ids[item_id] = index
        documents.append(document)
    return documents


def check_partition_consistency(
    documents: list[ItemDocument], partition_key_path: str, partition_key: str
) -> None:
    """Reject items whose partition key value differs from the batch's."""
    for index, document in enumerate(documents):
        if not document.matches_partition_key(partition_key_path, partition_key):
            value = document.partition_key_value(partition_key_path)
            raise BatchError(
                f"item {index} ('{document.id}') has partition key value {value!r} at "
                f"'{partition_key_path}', expected '{partition_key}'",
                failed_index=index,
            )


async def write_batch(container: Any, partition_key: str, documents: list[ItemDocument]) -> int:
    """Create prepared ``documents`` atomically in ``container``.

    Args:
        container: an async ``ContainerProxy``
        partition_key: the partition key value shared by all items
        documents: items returned by ``prepare_batch``

    Returns:
        The number of items created, always ``len(documents)``.

    Raises:
        BatchError: the service rejected the batch; nothing was persisted
    """
    operations = [("create", (document.body,)) for document in documents]

    logger.info("Submitting batch of %d items to partition %r", len(operations), partition_key)
    try:
        await container.execute_item_batch(
            batch_operations=operations, partition_key=partition_key
        )
    except cosmos_exceptions.CosmosBatchOperationError as e:
        raise _batch_operation_failure(e, documents) from e
    except cosmos_exceptions.CosmosHttpResponseError as e:
        raise BatchError(describe_backend_error(e)) from e

    return len(documents)


def _batch_operation_failure(
    error: cosmos_exceptions.CosmosBatchOperationError, documents: list[ItemDocument]
) -> BatchError:
    """Describe the operation that caused the service to roll back the batch."""
    index = getattr(error, "error_index", None)
    responses = getattr(error, "operation_responses", None) or []
    status = getattr(error, "status_code", None)
    if index is not None and index < len(responses):
        status = responses[index].get("statusCode", status)

    if index is not None and 0 <= index < len(documents):
        detail = f"operation {index} (id '{documents[index].id}') returned status {status}"
    else:
        detail = f"service returned status {status}"
    if status == 409:
        detail += ", an item with this id already exists"
    return BatchError(f"{detail}; no items were created", failed_index=index)

"""Input validation for tool calls.

Validation is pure and runs before any client is resolved. Fields are
checked in a fixed precedence (connection, database, container, then the
operation-specific fields in the order the input model declares them) and
the first failure wins, so a malformed call always produces the same
message.
"""

import logging
from typing import Any, TypeVar

from pydantic import ValidationError

from .documents import InvalidDocumentError, ItemDocument
from .errors import ConnectionResolutionError, InputValidationError
from .models import (
    MAX_BATCH_ITEMS,
    MIN_MANUAL_THROUGHPUT,
    AddItemInput,
    BatchCreateItemsInput,
    CreateContainerInput,
    ToolInput,
)

logger = logging.getLogger(__name__)

InputT = TypeVar("InputT", bound=ToolInput)

# One message per field, shared by every tool that takes the field
MISSING_FIELD_MESSAGES: dict[str, str] = {
    "database": "database name missing",
    "container": "container name missing",
    "partition_key_path": "partition key path missing",
    "partition_key": "partition key value missing",
    "item": "item JSON missing",
    "item_id": "item ID missing",
    "query": "query string missing",
    "items": "items array is empty",
}

BATCH_TOO_LARGE_MESSAGE = f"batch exceeds maximum of {MAX_BATCH_ITEMS} items"


def parse_arguments(model: type[InputT], arguments: dict[str, Any]) -> InputT:
    """Build an input model from raw tool arguments.

    Only type errors surface here (e.g. ``items`` that is not a list); empty
    values are left for ``validate_input``.
    """
    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid %s arguments: %s", model.__name__, e)
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in e.errors()
        )
        raise InputValidationError(f"invalid arguments: {problems}") from e


def validate_input(params: ToolInput) -> None:
    """Check required fields and value constraints in declared order."""
    try:
        params.validate_connection()
    except ConnectionResolutionError as e:
        raise InputValidationError(str(e), field="account") from e

    for field in params.required_fields:
        if not getattr(params, field):
            raise InputValidationError(MISSING_FIELD_MESSAGES[field], field=field)

    if isinstance(params, CreateContainerInput):
        _check_create_container(params)
    elif isinstance(params, AddItemInput):
        _check_add_item(params)
    elif isinstance(params, BatchCreateItemsInput):
        check_batch_size(params.items)


def _check_create_container(params: CreateContainerInput) -> None:
    if not params.partition_key_path.startswith("/"):
        raise InputValidationError(
            "partition key path must start with '/'", field="partition_key_path"
        )
    if params.throughput is not None and params.throughput < MIN_MANUAL_THROUGHPUT:
        raise InputValidationError(
            f"throughput must be at least {MIN_MANUAL_THROUGHPUT} RU/s", field="throughput"
        )


def _check_add_item(params: AddItemInput) -> None:
    try:
        ItemDocument(params.item).body
    except InvalidDocumentError as e:
        raise InputValidationError(f"item JSON is not valid: {e}", field="item") from e


def check_batch_size(items: list[str]) -> None:
    if not items:
        raise InputValidationError(MISSING_FIELD_MESSAGES["items"], field="items")
    if len(items) > MAX_BATCH_ITEMS:
        raise InputValidationError(BATCH_TOO_LARGE_MESSAGE, field="items")

"""Opaque JSON item payloads.

Items arrive as JSON text and are forwarded to Cosmos DB as-is. The only
fields this server ever looks at are the mandatory ``id`` and, when checking
partition consistency, the value at the container's partition key path.
Both are parsed on first access.
"""

import json
from functools import cached_property
from typing import Any


class InvalidDocumentError(ValueError):
    """Raised when item text is not a JSON object."""


class ItemDocument:
    """Raw item text plus lazily parsed accessors."""

    def __init__(self, raw: str):
        self.raw = raw

    @cached_property
    def body(self) -> dict[str, Any]:
        try:
            parsed = json.loads(self.raw)
        except json.JSONDecodeError as e:
            raise InvalidDocumentError(f"invalid JSON: {e.msg}") from e
        if not isinstance(parsed, dict):
            raise InvalidDocumentError("item must be a JSON object")
        return parsed

    @property
    def id(self) -> str | None:
        """The item's ``id`` if it is a non-empty string, else None."""
        value = self.body.get("id")
        if isinstance(value, str) and value.strip():
            return value
        return None

    def partition_key_value(self, path: str) -> Any:
        """Return the value at a partition key path such as ``/address/city``.

        Returns None when any segment along the path is absent.
        """
        current: Any = self.body
        for segment in path.strip("/").split("/"):
            if not isinstance(current, dict) or segment not in current:
                return None
            current = current[segment]
        return current

    def matches_partition_key(self, path: str, expected: str) -> bool:
        return self.partition_key_value(path) == expected

    def __repr__(self) -> str:
        return f"ItemDocument({self.raw[:60]!r})"

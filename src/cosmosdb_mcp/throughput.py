"""Classification of container throughput reads.

Reading a container's offer either succeeds (manual or autoscale
throughput) or fails with a status code. Some failures are not errors from
the caller's point of view:

    404 -> the container has no dedicated offer; throughput is shared at
           database level
    400 -> the backend (typically the emulator) does not implement offers

Every outcome maps to exactly one ``ThroughputType``.
"""

import enum
from typing import Any

from azure.cosmos import exceptions as cosmos_exceptions
from pydantic import BaseModel, model_validator

from .errors import describe_backend_error

SHARED_MESSAGE = "Throughput is provisioned at database level"
UNSUPPORTED_MESSAGE = "Unable to read throughput (emulator limitation or unsupported operation)"
UNDETERMINED_MESSAGE = "Throughput settings could not be determined"


class ThroughputType(str, enum.Enum):
    MANUAL = "manual"
    AUTOSCALE = "autoscale"
    SHARED = "shared"
    UNKNOWN = "unknown"
    ERROR = "error"


# Failure status codes that are informational rather than errors.
# Anything not listed here classifies as ThroughputType.ERROR.
STATUS_CATEGORIES: dict[int, tuple[ThroughputType, str]] = {
    404: (ThroughputType.SHARED, SHARED_MESSAGE),
    400: (ThroughputType.UNKNOWN, UNSUPPORTED_MESSAGE),
}


class ThroughputInfo(BaseModel):
    """Classified throughput state of a container."""

    type: ThroughputType
    ru_per_second: int | None = None
    max_ru_per_second: int | None = None
    message: str | None = None

    @model_validator(mode="after")
    def check_fields_match_type(self) -> "ThroughputInfo":
        has_manual = self.ru_per_second is not None
        has_autoscale = self.max_ru_per_second is not None
        has_message = self.message is not None

        if self.type is ThroughputType.MANUAL:
            valid = has_manual and not has_autoscale and not has_message
        elif self.type is ThroughputType.AUTOSCALE:
            valid = has_autoscale and not has_manual and not has_message
        else:
            valid = has_message and not has_manual and not has_autoscale
        if not valid:
            raise ValueError(f"fields do not match throughput type '{self.type.value}'")
        return self

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


def classify_properties(properties: Any) -> ThroughputInfo:
    """Classify a successful throughput read.

    ``properties`` is an ``azure.cosmos.ThroughputProperties`` (or anything
    exposing ``auto_scale_max_throughput`` / ``offer_throughput``).
    """
    max_ru = getattr(properties, "auto_scale_max_throughput", None)
    if max_ru:
        return ThroughputInfo(type=ThroughputType.AUTOSCALE, max_ru_per_second=int(max_ru))
    manual_ru = getattr(properties, "offer_throughput", None)
    if manual_ru:
        return ThroughputInfo(type=ThroughputType.MANUAL, ru_per_second=int(manual_ru))
    return ThroughputInfo(type=ThroughputType.UNKNOWN, message=UNDETERMINED_MESSAGE)


def classify_status(status_code: int | None, detail: str) -> ThroughputInfo:
    """Classify a failed throughput read by its status code."""
    if status_code in STATUS_CATEGORIES:
        category, message = STATUS_CATEGORIES[status_code]
        return ThroughputInfo(type=category, message=message)
    return ThroughputInfo(type=ThroughputType.ERROR, message=f"Failed to read throughput: {detail}")


def classify_error(error: Exception) -> ThroughputInfo:
    """Classify an exception raised by ``ContainerProxy.get_throughput``."""
    if isinstance(error, cosmos_exceptions.CosmosHttpResponseError):
        sub_status = getattr(error, "sub_status", None)
        detail = describe_backend_error(error)
        if sub_status:
            detail += f" (sub-status {sub_status})"
        return classify_status(error.status_code, detail)
    return classify_status(None, str(error) or type(error).__name__)

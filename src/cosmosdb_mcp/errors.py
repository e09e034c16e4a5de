"""Exception hierarchy for Cosmos DB tool calls.

Every failure a tool call can report derives from ``CosmosToolError`` and
carries a single caller-facing message. The server layer turns these into
MCP tool errors; nothing here knows about the protocol.
"""

from azure.core.exceptions import AzureError
from azure.cosmos import exceptions as cosmos_exceptions


class CosmosToolError(Exception):
    """Base exception for tool call failures."""


class InputValidationError(CosmosToolError):
    """Raised when a required field is missing or a value is out of range.

    Always raised before any backend interaction.
    """

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class ConnectionResolutionError(CosmosToolError):
    """Raised when an endpoint or credential cannot be constructed."""


class BackendError(CosmosToolError):
    """Raised when the Cosmos DB service rejects or fails an operation."""

    def __init__(self, operation: str, error: BaseException, message: str | None = None):
        self.operation = operation
        self.status_code = getattr(error, "status_code", None)
        super().__init__(message or f"error {operation}: {describe_backend_error(error)}")


class ResourceExistsError(BackendError):
    """Raised when a create operation collides with an existing resource (409)."""


class BatchError(CosmosToolError):
    """Raised when a transactional batch is rejected as a whole.

    No item of the batch has been persisted when this is raised.
    """

    def __init__(self, detail: str, failed_index: int | None = None):
        super().__init__(f"batch failed: {detail}")
        self.failed_index = failed_index


class OperationTimeoutError(CosmosToolError):
    """Raised when the backend part of a tool call exceeds its deadline."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(f"{operation} timed out after {timeout:g} seconds")
        self.operation = operation
        self.timeout = timeout


def describe_backend_error(error: BaseException) -> str:
    """Render a backend exception as a one-line message.

    Cosmos errors keep their status code and the service's own text; the
    multi-line diagnostics the SDK appends are dropped.
    """
    if isinstance(error, cosmos_exceptions.CosmosHttpResponseError):
        raw = getattr(error, "http_error_message", None) or error.message or ""
        lines = [
            line.strip()
            for line in str(raw).splitlines()
            if line.strip() and not line.startswith("Status code:")
        ]
        detail = lines[0] if lines else ""
        return f"({error.status_code}) {detail}".rstrip()
    if isinstance(error, AzureError):
        return error.message or str(error)
    return str(error)

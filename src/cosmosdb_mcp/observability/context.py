"""Context managers for tracing Cosmos DB operations."""

from contextlib import contextmanager

import logfire


@contextmanager
def trace_cosmos_operation(
    operation: str,
    endpoint: str,
    database: str | None = None,
    container: str | None = None,
):
    """Open a span around the backend part of one tool call."""
    from . import get_config

    max_length = get_config().max_attribute_length
    with logfire.span(
        f"cosmos.{operation}",
        db_system="cosmosdb",
        db_operation=operation,
        db_endpoint=endpoint,
        db_name=database or "",
        db_container=container or "",
    ) as span:
        try:
            yield span
        except Exception as e:
            span.set_attribute("db.error.type", type(e).__name__)
            span.set_attribute("db.error", str(e)[:max_length])
            raise

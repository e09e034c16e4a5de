"""Paged read execution.

Cosmos DB list and query operations return an ``AsyncItemPaged``. The
executor drains it page by page, in arrival order, into a single list.
A failure on any page aborts the whole read; items already collected are
discarded, never returned as a partial result.

Query text is opaque here. Cross-partition ``ORDER BY``, ``TOP``,
``DISTINCT``, ``OFFSET LIMIT`` and ``GROUP BY`` are limitations of the SDK
transport that callers must know about; nothing is parsed or rewritten.
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


async def run_paged(pager: Any, transform: Callable[[Any], T] | None = None) -> list[Any]:
    """Drain every page of ``pager`` and return the items in order.

    Args:
        pager: an ``AsyncItemPaged`` (anything exposing ``by_page()``)
        transform: optional per-item projection applied while collecting

    A pager can only be consumed once; to run the read again call the
    backend method again.
    """
    results: list[Any] = []
    page_count = 0
    async for page in pager.by_page():
        page_count += 1
        async for item in page:
            results.append(transform(item) if transform else item)
    logger.debug("Collected %d items from %d pages", len(results), page_count)
    return results

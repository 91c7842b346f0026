"""Aggregates paged remote listings into one in-memory working set."""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Protocol, TypeVar

LOGGER = logging.getLogger("autolabel.engine.pagination")

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class ListingSource(Protocol[T_co]):
    async def fetch_page(self, partition: str, offset: int, limit: int) -> Sequence[T_co]:
        """Return the items at ``offset``; an empty page means the partition is exhausted."""
        ...


async def collect(
    source: ListingSource[T],
    page_size: int,
    predicate: Callable[[T], bool],
    partitions: Iterable[str],
    *,
    into: list[T] | None = None,
) -> list[T]:
    """Fetch every page of every partition and keep the items matching ``predicate``.

    Partitions are walked one after the other, each from offset zero, and their
    matches are concatenated in fetch order. Items that show up in more than one
    partition are kept every time they are seen. A failing fetch propagates
    unchanged and discards everything gathered so far.

    ``into`` lets a caller watch the list grow while pages are still arriving.
    """
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    found: list[T] = into if into is not None else []
    for partition in partitions:
        offset = 0
        while True:
            page = await source.fetch_page(partition, offset, page_size)
            if not page:
                break
            found.extend(item for item in page if predicate(item))
            offset += page_size
        LOGGER.debug(
            "partition exhausted",
            extra={"partition": partition, "offset": offset, "found": len(found)},
        )
    return found

"""Cursor pagination over a single page-fetch primitive.

A `Paginator` wraps one coroutine, `fetch_page(cursor, page_size) -> Page`,
with the query's filter and sorts already bound, and offers three ways to
consume the results:

- `page()`: one request, the caller handles cursors,
- `collect_all()`: follows cursors until exhausted and returns one list,
- `iterate()`: an async generator that fetches lazily, one page at a time.

Pages are always fetched sequentially; there is never more than one
request in flight.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Protocol

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Page:
    """
    One raw batch of results as returned by the Notion query endpoint.

    Attributes:
        results: Raw page objects.
        has_more: Whether another batch exists.
        next_cursor: Opaque cursor for the next batch, if any.
    """

    results: list[Mapping[str, Any]] = field(default_factory=list)
    has_more: bool = False
    next_cursor: str | None = None

    @classmethod
    def from_wire(cls, response: Mapping[str, Any]) -> Page:
        return cls(
            results=list(response.get("results") or []),
            has_more=bool(response.get("has_more")),
            next_cursor=response.get("next_cursor") or None,
        )


@dataclass(frozen=True)
class QueryResult:
    """A decoded batch of results plus the cursor state to continue from."""

    results: list[Any]
    has_more: bool
    next_cursor: str | None


class PageFetcher(Protocol):
    """Coroutine returning one raw page for a cursor."""

    def __call__(self, cursor: str | None, page_size: int) -> Awaitable[Page]:
        ...


def _check_page_size(page_size: int) -> int:
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
    return page_size


class Paginator:
    """Single-page, eager and lazy consumption of a cursor-paged query."""

    def __init__(
        self,
        fetch_page: PageFetcher,
        decode: Callable[[Mapping[str, Any]], Any],
    ) -> None:
        self._fetch_page = fetch_page
        self._decode = decode

    async def page(
        self, cursor: str | None = None, page_size: int = DEFAULT_PAGE_SIZE
    ) -> QueryResult:
        """Fetch and decode exactly one page."""
        raw = await self._fetch_page(cursor, _check_page_size(page_size))
        return QueryResult(
            results=[self._decode(item) for item in raw.results],
            has_more=raw.has_more,
            next_cursor=raw.next_cursor,
        )

    async def collect_all(self, page_size: int = DEFAULT_PAGE_SIZE) -> list[Any]:
        """
        Follow cursors until the query is exhausted.

        Every result is held in memory; prefer `iterate()` for large
        databases.
        """
        items: list[Any] = []
        async for item in self.iterate(page_size):
            items.append(item)
        return items

    async def iterate(self, page_size: int = DEFAULT_PAGE_SIZE) -> AsyncIterator[Any]:
        """
        Yield decoded results one by one, fetching pages on demand.

        The next page is only requested once the consumer asks for an item
        past the current page. Breaking out of the loop stops fetching.
        """
        cursor: str | None = None
        pages = 0
        while True:
            result = await self.page(cursor, page_size)
            pages += 1
            for item in result.results:
                yield item
            if not result.has_more:
                return
            if result.next_cursor is None:
                logger.warning(
                    "Query reported more results without a cursor after %d page(s); stopping",
                    pages,
                )
                return
            cursor = result.next_cursor

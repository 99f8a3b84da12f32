"""
Pagination Module
=================

Reusable page-walking helpers shared by the catalog reads, the workflow
scans and paged source APIs. Each helper stops on a short page.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator, Sequence
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
K = TypeVar("K")

DEFAULT_PAGE_SIZE = 1000


def iter_keyset_pages(
    fetch_after: Callable[[K | None, int], Sequence[T]],
    key: Callable[[T], K],
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Iterator[list[T]]:
    """
    Walk a keyset (cursor) source page by page.

    Args:
        fetch_after: Called as ``fetch_after(last_key, limit)``; ``last_key`` is
            None for the first page
        key: Extracts the cursor value from the last row of a page
        page_size: Rows requested per call

    Yields:
        Non-empty pages in cursor order
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    cursor: K | None = None
    while True:
        page = list(fetch_after(cursor, page_size))
        if not page:
            return
        yield page
        if len(page) < page_size:
            return
        cursor = key(page[-1])


async def aiter_numbered_pages(
    fetch_page: Callable[[int, int], Awaitable[Sequence[T]]],
    page_size: int,
    delay: float = 0.0,
    first_page: int = 1,
    max_pages: int = 1000,
) -> AsyncIterator[list[T]]:
    """
    Walk a page-numbered remote API (``?page=N&limit=M``).

    Args:
        fetch_page: Called as ``await fetch_page(page_number, page_size)``
        page_size: Items requested per page
        delay: Seconds to sleep between pages
        first_page: Number of the first page
        max_pages: Hard stop against APIs that never return a short page

    Yields:
        Non-empty pages in order
    """
    page_number = first_page
    for _ in range(max_pages):
        page = list(await fetch_page(page_number, page_size))
        if not page:
            return
        logger.debug(f"Page {page_number}: {len(page)} items")
        yield page
        if len(page) < page_size:
            return
        page_number += 1
        if delay:
            await asyncio.sleep(delay)
    logger.warning(f"Stopped paging after {max_pages} pages")

import logging
import math
from collections import defaultdict
from typing import Sequence, TypeVar

from .config import MAX_WORKS_PER_AUTHOR, NO_AUTHOR_KEY
from .models import CatalogItem, Page, RecommendationFilter
from .text_builder import AuthorLookup

logger = logging.getLogger(__name__)

T = TypeVar('T')


def limit_per_author(
    ranked_items: list[CatalogItem],
    author_lookup: AuthorLookup,
    max_per_author: int = MAX_WORKS_PER_AUTHOR,
) -> list[CatalogItem]:
    """Keep at most ``max_per_author`` items per primary author, preserving rank order."""
    results = []
    author_counts: dict[str, int] = defaultdict(int)

    for item in ranked_items:
        author = author_lookup(item.item_id)
        if author is None:
            author = NO_AUTHOR_KEY
        if author_counts[author] >= max_per_author:
            continue
        author_counts[author] += 1
        results.append(item)

    dropped = len(ranked_items) - len(results)
    if dropped:
        logger.debug(f"Author cap (max {max_per_author}) dropped {dropped} items")
    return results


def paginate(items: Sequence[T], page_index: int, page_size: int) -> tuple[list[T], int, int]:
    """
    Slice one page out of ``items``.

    Returns (page, effective page index, total pages). Page indexes outside
    [1, total_pages] fall back to the first page.
    """
    total_items = len(items)
    total_pages = math.ceil(total_items / page_size)
    if page_index > total_pages or page_index < 1:
        page_index = 1
    start = (page_index - 1) * page_size
    return list(items[start:start + page_size]), page_index, total_pages


def diversify_and_paginate(
    ranked_items: list[CatalogItem],
    rec_filter: RecommendationFilter,
    author_lookup: AuthorLookup,
) -> Page:
    """Apply the optional per-author cap, then cut the requested page."""
    rec_filter = rec_filter.normalized()
    if rec_filter.limit_works_per_author:
        ranked_items = limit_per_author(ranked_items, author_lookup)

    page_items, page_index, total_pages = paginate(ranked_items, rec_filter.page_index, rec_filter.page_size)
    return Page(
        items=page_items,
        page_index=page_index,
        page_size=rec_filter.page_size,
        total_pages=total_pages,
        total_items=len(ranked_items),
    )

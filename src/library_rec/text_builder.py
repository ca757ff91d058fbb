import logging
import re
from typing import Callable

from .classification import integer_part
from .models import CatalogItem, RecommendationFilter

logger = logging.getLogger(__name__)

AuthorLookup = Callable[[int], "str | None"]

_DIGITS = re.compile(r'\d')


def clean_title(title: str | None) -> str:
    """Strip digit characters (volume numbers, years) from a title."""
    return _DIGITS.sub('', title or '')


def build_text(item: CatalogItem, rec_filter: RecommendationFilter, author_lookup: AuthorLookup) -> str:
    """
    Assemble the recommendation document for one catalog item.

    Book-like items contribute title, cutter + author, classification class +
    genres and topical terms (each gated by the filter), in that order.
    Periodicals only ever contribute their title. When nothing is selected the
    author name is used, falling back to the title.
    """
    title = clean_title(item.title)
    ddc = integer_part(item.classification_number)
    author = author_lookup(item.item_id) or ''

    blocks: list[str] = []
    category = item.category
    if category.is_book:
        if rec_filter.include_title:
            blocks.append(title)
        if rec_filter.include_author:
            blocks.append(f"{item.cutter_number or ''} {author}")
        if rec_filter.include_genres:
            blocks.append(f"{ddc} {item.genres or ''}")
        if rec_filter.include_topical_terms:
            blocks.append(item.topical_terms or '')
    elif category.is_periodical:
        if rec_filter.include_title:
            blocks.append(title)

    text = ' '.join(blocks).strip()
    if not text:
        text = author.strip() or title.strip()
        logger.debug(f"Item {item.item_id} ({category.value}) using fallback text")
    return text

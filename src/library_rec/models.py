"""Value types shared by the recommender, its collaborators and the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .config import DEFAULT_PAGE_INDEX, DEFAULT_PAGE_SIZE


class ItemCategory(Enum):
    SINGLE_BOOK = "SingleBook"
    BOOK_SERIES = "BookSeries"
    REFERENCE_BOOK = "ReferenceBook"
    NEWSPAPER = "Newspaper"
    MAGAZINE = "Magazine"
    DIGITAL_BOOK = "DigitalBook"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: "ItemCategory | str | None") -> "ItemCategory":
        """Map a stored category name onto the enum; unknown names become OTHER."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.OTHER
        normalized = str(value).replace(" ", "").replace("_", "").lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        return cls.OTHER

    @property
    def is_book(self) -> bool:
        return self in (ItemCategory.SINGLE_BOOK, ItemCategory.BOOK_SERIES, ItemCategory.REFERENCE_BOOK)

    @property
    def is_periodical(self) -> bool:
        return self in (ItemCategory.NEWSPAPER, ItemCategory.MAGAZINE)


@dataclass(frozen=True)
class CatalogItem:
    """A catalog record as supplied by the catalog collaborator (read-only)."""
    item_id: int
    title: str
    category: ItemCategory = ItemCategory.SINGLE_BOOK
    classification_number: str | None = None
    cutter_number: str | None = None
    genres: str | None = None
    topical_terms: str | None = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "CatalogItem":
        return cls(
            item_id=int(payload["item_id"]),
            title=payload.get("title") or "",
            category=ItemCategory.parse(payload.get("category")),
            classification_number=payload.get("classification_number"),
            cutter_number=payload.get("cutter_number"),
            genres=payload.get("genres"),
            topical_terms=payload.get("topical_terms"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "title": self.title,
            "category": self.category.value,
            "classification_number": self.classification_number,
            "cutter_number": self.cutter_number,
            "genres": self.genres,
            "topical_terms": self.topical_terms,
        }


@dataclass(frozen=True)
class InteractionRecord:
    """One reader's engagement with one catalog item."""
    item_id: int
    borrowed: bool = False
    borrow_count: int = 0
    reserved: bool = False
    reserve_count: int = 0
    favorite: bool = False
    rating: int = 0  # 0 = unrated, otherwise 1-5

    @property
    def is_interacted(self) -> bool:
        return self.borrowed or self.reserved or self.rating > 0 or self.favorite

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "InteractionRecord":
        return cls(
            item_id=int(payload["item_id"]),
            borrowed=bool(payload.get("borrowed")),
            borrow_count=int(payload.get("borrow_count") or 0),
            reserved=bool(payload.get("reserved")),
            reserve_count=int(payload.get("reserve_count") or 0),
            favorite=bool(payload.get("favorite")),
            rating=int(payload.get("rating") or 0),
        )


@dataclass(frozen=True)
class RecommendationFilter:
    """Request-scoped switches controlling text building, diversity and paging."""
    include_title: bool = True
    include_author: bool = True
    include_genres: bool = True
    include_topical_terms: bool = True
    limit_works_per_author: bool = False
    page_index: int | None = DEFAULT_PAGE_INDEX
    page_size: int | None = DEFAULT_PAGE_SIZE

    def normalized(self) -> "RecommendationFilter":
        """Replace missing or non-positive paging values with the defaults."""
        page_index = self.page_index if self.page_index and self.page_index > 0 else DEFAULT_PAGE_INDEX
        page_size = self.page_size if self.page_size and self.page_size > 0 else DEFAULT_PAGE_SIZE
        return replace(self, page_index=page_index, page_size=page_size)

    @property
    def text_key(self) -> tuple[bool, bool, bool, bool]:
        """The toggles that affect item vectors (paging and diversity do not)."""
        return (self.include_title, self.include_author, self.include_genres, self.include_topical_terms)


@dataclass
class ItemVector:
    item_id: int
    weights: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ScoredItem:
    item_id: int
    score: float


@dataclass
class Page:
    """A page of catalog items plus pagination metadata."""
    items: list[CatalogItem]
    page_index: int
    page_size: int
    total_pages: int
    total_items: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "page_index": self.page_index,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
            "total_items": self.total_items,
        }

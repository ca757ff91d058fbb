"""
Content-based recommendation engine.

Given a reader and a filter, the engine loads the reader's activity and the
candidate catalog, builds TF-IDF vectors for every item, aggregates the
reader's interacted items into a profile vector, ranks unseen items by cosine
similarity (softened outside the reader's classification classes), applies the
optional per-author cap and returns one page. Readers that cannot be
personalized get the popularity ranking instead.
"""
import logging
from typing import Hashable, Protocol

from .cache import VectorCache
from .diversify import diversify_and_paginate
from .models import CatalogItem, InteractionRecord, Page, RecommendationFilter
from .profile import build_user_profile
from .ranking import score_and_rank
from .vectorizer import build_vectors

logger = logging.getLogger(__name__)


class CatalogSource(Protocol):
    def get_candidate_items(self) -> list[CatalogItem]: ...

    def get_primary_author(self, item_id: int) -> str | None: ...

    def get_classification_code(self, item_id: int) -> str | None: ...

    def get_classification_codes(self, item_ids: list[int]) -> list[str | None]: ...


class ActivitySource(Protocol):
    def get_reader_interactions(self, reader_id: str) -> list[InteractionRecord]: ...

    def reader_exists(self, reader_id: str) -> bool: ...


class PopularitySource(Protocol):
    def get_popular_items(self, page_index: int, page_size: int) -> Page: ...


class RecommendationEngine:
    """
    Stateless per call: every ``recommend`` rebuilds vectors from the current
    catalog unless the caller supplies a ``VectorCache`` and a catalog version.
    """

    def __init__(
        self,
        catalog: CatalogSource,
        activity: ActivitySource,
        popularity: PopularitySource,
        vector_cache: VectorCache | None = None,
    ):
        self.catalog = catalog
        self.activity = activity
        self.popularity = popularity
        self.vector_cache = vector_cache

    def _fallback(self, rec_filter: RecommendationFilter, reason: str) -> Page:
        logger.info(f"Falling back to popular items: {reason}")
        return self.popularity.get_popular_items(rec_filter.page_index, rec_filter.page_size)

    def recommend(
        self,
        reader_id: str,
        rec_filter: RecommendationFilter | None = None,
        catalog_version: Hashable | None = None,
    ) -> Page:
        """Return one page of recommended items for ``reader_id``."""
        rec_filter = (rec_filter or RecommendationFilter()).normalized()

        # All collaborator I/O happens before any vectorization
        try:
            if not self.activity.reader_exists(reader_id):
                return self._fallback(rec_filter, f"unknown reader '{reader_id}'")

            interactions = self.activity.get_reader_interactions(reader_id)
            if not interactions:
                return self._fallback(rec_filter, f"reader '{reader_id}' has no activity")

            items = self.catalog.get_candidate_items()
            if not items:
                return self._fallback(rec_filter, "candidate catalog is empty")

            item_ids = [item.item_id for item in items]
            authors = {item_id: self.catalog.get_primary_author(item_id) for item_id in item_ids}
            item_codes = dict(zip(item_ids, self.catalog.get_classification_codes(item_ids)))

            interacted_ids = list(dict.fromkeys(r.item_id for r in interactions if r.is_interacted))
            reader_codes = self.catalog.get_classification_codes(interacted_ids) if interacted_ids else []
        except Exception as e:
            logger.error(f"Collaborator lookup failed while recommending for '{reader_id}': {e}")
            raise

        author_lookup = authors.get

        def _build():
            return build_vectors(items, rec_filter, author_lookup)

        if self.vector_cache is not None and catalog_version is not None:
            item_vectors = self.vector_cache.get_or_build(catalog_version, rec_filter, _build)
        else:
            item_vectors = _build()

        user_profile = build_user_profile(item_vectors, interactions)
        if not user_profile:
            return self._fallback(rec_filter, f"reader '{reader_id}' has no qualifying interactions")

        ranked = score_and_rank(
            item_vectors,
            user_profile,
            interacted_ids,
            reader_codes=reader_codes,
            item_codes=item_codes,
        )

        items_by_id = {item.item_id: item for item in items}
        ranked_items = [items_by_id[s.item_id] for s in ranked if s.item_id in items_by_id]
        logger.debug(
            f"Reader '{reader_id}': {len(items)} candidates, {len(interactions)} interactions, "
            f"{len(ranked_items)} ranked"
        )

        return diversify_and_paginate(ranked_items, rec_filter, author_lookup)

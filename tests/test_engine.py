import logging

import pytest

from library_rec.cache import VectorCache
from library_rec.engine import RecommendationEngine
from library_rec.models import InteractionRecord, RecommendationFilter

FILLER_TITLES = ["Ocean Tides", "Forest Music", "Desert Winds", "Mountain Rivers"]


@pytest.fixture
def potter_catalog(make_item):
    items = [
        make_item(1, "Harry Potter and the Chamber of Secrets"),
        make_item(2, "Harry Potter and the Philosopher's Stone"),
        make_item(3, "Clean Code"),
    ]
    items += [make_item(10 + i, title) for i, title in enumerate(FILLER_TITLES)]
    authors = {1: "Rowling", 2: "Rowling", 3: "Martin"}
    authors.update({10 + i: f"Filler Author {chr(65 + i)}" for i in range(len(FILLER_TITLES))})
    return items, authors


@pytest.fixture
def build_engine(fakes, potter_catalog):
    FakeCatalog, FakeActivity, FakePopularity = fakes
    items, authors = potter_catalog

    def _build(interactions_by_reader, catalog_items=None, vector_cache=None, fail=False):
        catalog = FakeCatalog(items if catalog_items is None else catalog_items, authors, fail=fail)
        popularity = FakePopularity(list(reversed(items)))
        return RecommendationEngine(catalog, FakeActivity(interactions_by_reader), popularity, vector_cache)

    return _build


def test_rated_book_recommends_sibling_in_series(build_engine):
    engine = build_engine({"reader": [InteractionRecord(item_id=2, rating=5)]})

    page = engine.recommend("reader")

    ids = [item.item_id for item in page.items]
    assert ids[0] == 1
    # Rated item is excluded, unrelated items score zero and are dropped
    assert 2 not in ids
    assert 3 not in ids
    assert page.total_items == len(ids)
    assert engine.popularity.calls == []


def test_reader_without_interactions_gets_popular_items(build_engine):
    engine = build_engine({"reader": []})

    page = engine.recommend("reader", RecommendationFilter(page_index=3, page_size=2))

    assert page == engine.popularity.get_popular_items(3, 2)
    assert engine.catalog.calls == []


def test_zero_interaction_output_matches_first_popular_page(build_engine):
    engine = build_engine({"reader": []})

    page = engine.recommend("reader", RecommendationFilter(page_index=None, page_size=None))

    assert page == engine.popularity.get_popular_items(1, 5)


def test_unknown_reader_gets_popular_items(build_engine):
    engine = build_engine({})

    page = engine.recommend("nobody")

    assert engine.popularity.calls[0] == (1, 5)
    assert len(page.items) == 5
    assert engine.catalog.calls == []


def test_empty_catalog_gets_popular_items(build_engine):
    engine = build_engine({"reader": [InteractionRecord(item_id=2, rating=5)]}, catalog_items=[])

    engine.recommend("reader")

    assert engine.popularity.calls == [(1, 5)]


def test_profile_without_weight_gets_popular_items(build_engine):
    # Interaction with an item outside the candidate catalog contributes nothing
    engine = build_engine({"reader": [InteractionRecord(item_id=999, rating=5)]})

    engine.recommend("reader")

    assert engine.popularity.calls == [(1, 5)]


def test_recommendations_are_idempotent(build_engine):
    engine = build_engine({"reader": [InteractionRecord(item_id=2, rating=5, favorite=True)]})

    assert engine.recommend("reader") == engine.recommend("reader")


def test_interacted_items_never_recommended(build_engine):
    interactions = [
        InteractionRecord(item_id=2, rating=5),
        InteractionRecord(item_id=1, borrowed=True, borrow_count=1),
    ]
    engine = build_engine({"reader": interactions})

    page = engine.recommend("reader", RecommendationFilter(page_size=50))

    ids = {item.item_id for item in page.items}
    assert not ids & {1, 2}


def test_author_cap_limits_series(fakes, make_item):
    FakeCatalog, FakeActivity, FakePopularity = fakes
    volumes = ["Stone", "Chamber", "Prisoner", "Goblet", "Phoenix", "Prince", "Hallows", "Cursed"]
    items = [make_item(i + 1, f"Harry Potter {word}") for i, word in enumerate(volumes)]
    items += [make_item(20 + i, title) for i, title in enumerate(FILLER_TITLES + ["Quiet Lakes", "Iron Bridges"])]
    authors = {i + 1: "Rowling" for i in range(len(volumes))}

    engine = RecommendationEngine(
        FakeCatalog(items, authors),
        FakeActivity({"reader": [InteractionRecord(item_id=1, rating=5)]}),
        FakePopularity(items),
    )

    uncapped = engine.recommend("reader", RecommendationFilter(page_size=20))
    capped = engine.recommend("reader", RecommendationFilter(page_size=20, limit_works_per_author=True))

    assert uncapped.total_items == 7
    assert capped.total_items == 5
    assert [item.item_id for item in capped.items] == [item.item_id for item in uncapped.items][:5]


def test_toggles_change_the_document(build_engine):
    engine = build_engine({"reader": [InteractionRecord(item_id=2, rating=5)]})

    # Without titles the only shared signal left is the author
    page = engine.recommend("reader", RecommendationFilter(include_title=False))

    assert [item.item_id for item in page.items] == [1]


def test_paging_beyond_last_page_returns_first(build_engine):
    engine = build_engine({"reader": [InteractionRecord(item_id=2, rating=5)]})

    page = engine.recommend("reader", RecommendationFilter(page_index=9))

    assert page.page_index == 1
    assert page.items[0].item_id == 1


def test_collaborator_failure_propagates(build_engine, caplog):
    engine = build_engine({"reader": [InteractionRecord(item_id=2, rating=5)]}, fail=True)

    with caplog.at_level(logging.ERROR, logger="library_rec.engine"):
        with pytest.raises(ConnectionError):
            engine.recommend("reader")

    assert "catalog unavailable" in caplog.text
    assert engine.popularity.calls == []


def test_vector_cache_reused_for_same_catalog_version(build_engine):
    cache = VectorCache(max_entries=2)
    engine = build_engine({"reader": [InteractionRecord(item_id=2, rating=5)]}, vector_cache=cache)

    first = engine.recommend("reader", catalog_version="v1")
    second = engine.recommend("reader", RecommendationFilter(page_size=2), catalog_version="v1")
    engine.recommend("reader", catalog_version="v2")

    assert first.items[0] == second.items[0]
    assert cache.misses == 2
    assert cache.hits == 1


def test_vector_cache_ignored_without_version(build_engine):
    cache = VectorCache()
    engine = build_engine({"reader": [InteractionRecord(item_id=2, rating=5)]}, vector_cache=cache)

    engine.recommend("reader")

    assert len(cache) == 0

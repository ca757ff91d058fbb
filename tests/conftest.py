import importlib
import sys
from pathlib import Path

import pytest

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


@pytest.fixture
def fresh_db(monkeypatch, tmp_path):
    """
    Reload config/database modules with a temp DB and cleanly close the pool after use.
    """
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("LIBRARY_REC_DB", str(db_path))

    import library_rec.config as config
    import library_rec.database as database

    importlib.reload(config)
    importlib.reload(database)

    database.init_db()
    yield database
    database.close_pool()


@pytest.fixture
def make_item():
    from library_rec.models import CatalogItem, ItemCategory

    def _make(item_id, title, category=ItemCategory.SINGLE_BOOK, **kwargs):
        return CatalogItem(item_id=item_id, title=title, category=category, **kwargs)

    return _make


class FakeCatalog:
    """In-memory catalog collaborator recording every call it receives."""

    def __init__(self, items, authors=None, fail=False):
        self.items = list(items)
        self.authors = authors or {}
        self.fail = fail
        self.calls = []

    def get_candidate_items(self):
        self.calls.append("get_candidate_items")
        if self.fail:
            raise ConnectionError("catalog unavailable")
        return list(self.items)

    def get_primary_author(self, item_id):
        self.calls.append("get_primary_author")
        return self.authors.get(item_id)

    def get_classification_code(self, item_id):
        for item in self.items:
            if item.item_id == item_id:
                return item.classification_number
        return None

    def get_classification_codes(self, item_ids):
        self.calls.append("get_classification_codes")
        return [self.get_classification_code(item_id) for item_id in item_ids]


class FakeActivity:
    def __init__(self, interactions_by_reader):
        self.interactions_by_reader = interactions_by_reader

    def reader_exists(self, reader_id):
        return reader_id in self.interactions_by_reader

    def get_reader_interactions(self, reader_id):
        return list(self.interactions_by_reader.get(reader_id, []))


class FakePopularity:
    def __init__(self, items):
        self.items = list(items)
        self.calls = []

    def get_popular_items(self, page_index, page_size):
        from library_rec.diversify import paginate
        from library_rec.models import Page

        self.calls.append((page_index, page_size))
        page, page_index, total_pages = paginate(self.items, page_index, page_size)
        return Page(items=page, page_index=page_index, page_size=page_size,
                    total_pages=total_pages, total_items=len(self.items))


@pytest.fixture
def fakes():
    """Access to the in-memory collaborator classes."""
    return FakeCatalog, FakeActivity, FakePopularity

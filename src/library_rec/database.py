import sqlite3
import logging
import threading
from pathlib import Path
from contextlib import contextmanager
from typing import Iterable

from .classification import is_valid_classification, is_valid_cutter
from .config import DB_PATH
from .diversify import paginate
from .models import CatalogItem, InteractionRecord, ItemCategory, Page

logger = logging.getLogger(__name__)


class ConnectionPool:
    """
    One SQLite connection per thread, opened lazily.

    Collaborators mostly read, so nothing is health-checked or recycled; the
    pool only remembers what it opened so ``close_all`` can shut it down.
    Each thread also tracks how deeply ``transaction`` blocks are nested.
    """

    def __init__(self, db_path: Path):
        self._db_path = db_path
        self._local = threading.local()
        self._lock = threading.Lock()
        self._opened: list[sqlite3.Connection] = []

    def connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, 'conn', None)
        if conn is None:
            conn = sqlite3.connect(self._db_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA busy_timeout = 5000")
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA foreign_keys = ON")
            self._local.conn = conn
            self._local.depth = 0
            with self._lock:
                self._opened.append(conn)
            logger.debug(f"Opened {self._db_path} for thread {threading.get_ident()}")
        return conn

    @contextmanager
    def transaction(self, read_only: bool = False):
        conn = self.connection()
        outermost = self._local.depth == 0
        self._local.depth += 1
        try:
            yield conn
        except Exception:
            if outermost:
                conn.rollback()
            raise
        else:
            if outermost and not read_only:
                conn.commit()
        finally:
            self._local.depth -= 1

    def close_all(self) -> None:
        with self._lock:
            opened, self._opened = self._opened, []
        for conn in opened:
            conn.close()
        logger.debug(f"Closed {len(opened)} connection(s) to {self._db_path}")


_pool: ConnectionPool | None = None
_pool_lock = threading.Lock()


def _get_pool() -> ConnectionPool:
    global _pool
    with _pool_lock:
        if _pool is None:
            DB_PATH.parent.mkdir(exist_ok=True, parents=True)
            _pool = ConnectionPool(DB_PATH)
        return _pool


def get_db(read_only: bool = False):
    """
    Context manager yielding this thread's connection.

    Blocks nest: only the outermost one commits (unless ``read_only``) or
    rolls back on error.
    """
    return _get_pool().transaction(read_only)


def close_pool() -> None:
    global _pool
    with _pool_lock:
        pool, _pool = _pool, None
    if pool is not None:
        pool.close_all()


def init_db() -> None:
    DB_PATH.parent.mkdir(exist_ok=True, parents=True)
    with get_db() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS catalog_items (
                item_id INTEGER PRIMARY KEY,
                title TEXT NOT NULL,
                category TEXT,
                classification_number TEXT,
                cutter_number TEXT,
                genres TEXT,
                topical_terms TEXT,
                is_deleted INTEGER DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS authors (
                item_id INTEGER NOT NULL,
                position INTEGER NOT NULL DEFAULT 0,
                full_name TEXT NOT NULL,
                PRIMARY KEY (item_id, position),
                FOREIGN KEY (item_id) REFERENCES catalog_items(item_id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS readers (
                reader_id TEXT PRIMARY KEY,
                email TEXT
            );

            CREATE TABLE IF NOT EXISTS interactions (
                reader_id TEXT NOT NULL,
                item_id INTEGER NOT NULL,
                borrowed INTEGER DEFAULT 0,
                borrow_count INTEGER DEFAULT 0,
                reserved INTEGER DEFAULT 0,
                reserve_count INTEGER DEFAULT 0,
                favorite INTEGER DEFAULT 0,
                rating INTEGER DEFAULT 0,
                PRIMARY KEY (reader_id, item_id)
            );

            CREATE INDEX IF NOT EXISTS idx_interactions_item ON interactions(item_id);
            CREATE INDEX IF NOT EXISTS idx_readers_email ON readers(email);
        """)


def _row_to_item(row: sqlite3.Row) -> CatalogItem:
    return CatalogItem(
        item_id=row['item_id'],
        title=row['title'] or '',
        category=ItemCategory.parse(row['category']),
        classification_number=row['classification_number'],
        cutter_number=row['cutter_number'],
        genres=row['genres'],
        topical_terms=row['topical_terms'],
    )


def upsert_items(conn: sqlite3.Connection, items: Iterable[dict]) -> int:
    """
    Insert or replace catalog items (and their ordered author lists).

    Each dict follows ``CatalogItem.to_dict()`` plus optional ``authors``
    (list of names, primary first) and ``is_deleted``.
    """
    count = 0
    for payload in items:
        item = CatalogItem.from_dict(payload)
        if item.classification_number and not is_valid_classification(item.classification_number):
            logger.warning(f"Item {item.item_id}: unrecognized classification number '{item.classification_number}'")
        if item.cutter_number and not is_valid_cutter(item.cutter_number):
            logger.warning(f"Item {item.item_id}: unrecognized cutter number '{item.cutter_number}'")
        conn.execute("""
            INSERT OR REPLACE INTO catalog_items
            (item_id, title, category, classification_number, cutter_number, genres, topical_terms, is_deleted)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            item.item_id, item.title, item.category.value, item.classification_number,
            item.cutter_number, item.genres, item.topical_terms, int(bool(payload.get('is_deleted'))),
        ))
        conn.execute("DELETE FROM authors WHERE item_id = ?", (item.item_id,))
        conn.executemany(
            "INSERT INTO authors (item_id, position, full_name) VALUES (?, ?, ?)",
            [(item.item_id, pos, name) for pos, name in enumerate(payload.get('authors') or []) if name],
        )
        count += 1
    return count


def upsert_readers(conn: sqlite3.Connection, readers: Iterable[dict]) -> int:
    rows = [(str(r['reader_id']), r.get('email')) for r in readers]
    conn.executemany("INSERT OR REPLACE INTO readers (reader_id, email) VALUES (?, ?)", rows)
    return len(rows)


def upsert_interactions(conn: sqlite3.Connection, interactions: Iterable[dict]) -> int:
    rows = []
    for payload in interactions:
        record = InteractionRecord.from_dict(payload)
        rows.append((
            str(payload['reader_id']), record.item_id,
            int(record.borrowed), record.borrow_count,
            int(record.reserved), record.reserve_count,
            int(record.favorite), record.rating,
        ))
    conn.executemany("""
        INSERT OR REPLACE INTO interactions
        (reader_id, item_id, borrowed, borrow_count, reserved, reserve_count, favorite, rating)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    """, rows)
    return len(rows)


class SQLiteCatalog:
    """Catalog collaborator backed by the local database."""

    def get_candidate_items(self) -> list[CatalogItem]:
        with get_db(read_only=True) as conn:
            rows = conn.execute(
                "SELECT * FROM catalog_items WHERE is_deleted = 0 ORDER BY item_id"
            ).fetchall()
        return [_row_to_item(row) for row in rows]

    def get_primary_author(self, item_id: int) -> str | None:
        with get_db(read_only=True) as conn:
            row = conn.execute(
                "SELECT full_name FROM authors WHERE item_id = ? ORDER BY position LIMIT 1",
                (item_id,),
            ).fetchone()
        return row['full_name'] if row else None

    def get_classification_code(self, item_id: int) -> str | None:
        with get_db(read_only=True) as conn:
            row = conn.execute(
                "SELECT classification_number FROM catalog_items WHERE item_id = ?", (item_id,)
            ).fetchone()
        return row['classification_number'] if row else None

    def get_classification_codes(self, item_ids: list[int]) -> list[str | None]:
        """Codes in the same order as ``item_ids`` (None for unknown items)."""
        if not item_ids:
            return []
        codes: dict[int, str | None] = {}
        with get_db(read_only=True) as conn:
            # Stay under SQLite's bound-parameter limit
            for start in range(0, len(item_ids), 500):
                chunk = item_ids[start:start + 500]
                placeholders = ','.join('?' * len(chunk))
                for row in conn.execute(
                    f"SELECT item_id, classification_number FROM catalog_items WHERE item_id IN ({placeholders})",
                    chunk,
                ):
                    codes[row['item_id']] = row['classification_number']
        return [codes.get(item_id) for item_id in item_ids]


class SQLiteActivityStore:
    """Activity collaborator backed by the local database."""

    def reader_exists(self, reader_id: str) -> bool:
        with get_db(read_only=True) as conn:
            row = conn.execute(
                "SELECT 1 FROM readers WHERE reader_id = ? OR email = ?", (reader_id, reader_id)
            ).fetchone()
        return row is not None

    def get_reader_interactions(self, reader_id: str) -> list[InteractionRecord]:
        with get_db(read_only=True) as conn:
            rows = conn.execute("""
                SELECT i.* FROM interactions i
                JOIN readers r ON r.reader_id = i.reader_id
                WHERE r.reader_id = ? OR r.email = ?
                ORDER BY i.item_id
            """, (reader_id, reader_id)).fetchall()
        return [InteractionRecord.from_dict(dict(row)) for row in rows]


class SQLitePopularity:
    """Popularity fallback: items ranked by total borrows plus reservations."""

    def get_popular_items(self, page_index: int, page_size: int) -> Page:
        with get_db(read_only=True) as conn:
            rows = conn.execute("""
                SELECT c.*, COALESCE(SUM(i.borrow_count + i.reserve_count), 0) AS demand
                FROM catalog_items c
                LEFT JOIN interactions i ON i.item_id = c.item_id
                WHERE c.is_deleted = 0
                GROUP BY c.item_id
                ORDER BY demand DESC, c.item_id ASC
            """).fetchall()

        items = [_row_to_item(row) for row in rows]
        page_items, page_index, total_pages = paginate(items, page_index, page_size)
        return Page(
            items=page_items,
            page_index=page_index,
            page_size=page_size,
            total_pages=total_pages,
            total_items=len(items),
        )


def get_stats() -> dict[str, int]:
    with get_db(read_only=True) as conn:
        return {
            'items': conn.execute("SELECT COUNT(*) FROM catalog_items WHERE is_deleted = 0").fetchone()[0],
            'withdrawn': conn.execute("SELECT COUNT(*) FROM catalog_items WHERE is_deleted = 1").fetchone()[0],
            'readers': conn.execute("SELECT COUNT(*) FROM readers").fetchone()[0],
            'interactions': conn.execute("SELECT COUNT(*) FROM interactions").fetchone()[0],
            'rated': conn.execute("SELECT COUNT(*) FROM interactions WHERE rating > 0").fetchone()[0],
        }

import argparse
import atexit
import json
import logging
from pathlib import Path

from tqdm import tqdm

from .config import DEFAULT_PAGE_INDEX, DEFAULT_PAGE_SIZE, IMPORT_CHUNK_SIZE, API_BASE_URL
from .database import (
    init_db, get_db, close_pool, get_stats,
    upsert_items, upsert_readers, upsert_interactions,
    SQLiteCatalog, SQLiteActivityStore, SQLitePopularity,
)
from .engine import RecommendationEngine
from .models import Page, RecommendationFilter

logger = logging.getLogger(__name__)

# Register cleanup on exit
atexit.register(close_pool)


def _build_filter(args: argparse.Namespace) -> RecommendationFilter:
    return RecommendationFilter(
        include_title=not getattr(args, 'no_title', False),
        include_author=not getattr(args, 'no_author', False),
        include_genres=not getattr(args, 'no_genres', False),
        include_topical_terms=not getattr(args, 'no_topical_terms', False),
        limit_works_per_author=getattr(args, 'limit_per_author', False),
        page_index=args.page,
        page_size=args.page_size,
    ).normalized()


def _build_engine(args: argparse.Namespace) -> RecommendationEngine:
    """Wire the engine to the remote API when a URL is given, else to the local database."""
    api_url = getattr(args, 'api_url', None)
    if api_url:
        from .remote import LibraryApiClient

        client = LibraryApiClient(base_url=api_url)
        atexit.register(client.close)
        return RecommendationEngine(client, client, client)

    init_db()
    return RecommendationEngine(SQLiteCatalog(), SQLiteActivityStore(), SQLitePopularity())


def _output_page(page: Page, args: argparse.Namespace, author_lookup=None) -> None:
    """Format and log a page of items in the requested format."""
    if getattr(args, 'format', 'text') == 'json':
        logger.info(json.dumps(page.to_dict(), indent=2, ensure_ascii=False))
        return

    if not page.items:
        logger.info("No items to show.")
        return

    logger.info(f"\nPage {page.page_index}/{max(page.total_pages, 1)} ({page.total_items} items)\n")
    start = (page.page_index - 1) * page.page_size
    for rank, item in enumerate(page.items, start + 1):
        author = author_lookup(item.item_id) if author_lookup else None
        line = f"{rank:>3}. {item.title}"
        if author:
            line += f" - {author}"
        if item.classification_number:
            line += f" [{item.classification_number}]"
        logger.info(line)


def cmd_init_db(args: argparse.Namespace) -> None:
    """Create the database schema."""
    init_db()
    logger.info("Database initialized")


def cmd_import(args: argparse.Namespace) -> None:
    """Import catalog items, readers and interactions from a JSON file."""
    path = Path(args.file)
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    init_db()

    def _batched(items, size=IMPORT_CHUNK_SIZE):
        for i in range(0, len(items), size):
            yield items[i:i + size]

    sections = (
        ('items', upsert_items),
        ('readers', upsert_readers),
        ('interactions', upsert_interactions),
    )
    with get_db() as conn:
        for key, writer in sections:
            rows = data.get(key) or []
            if not rows:
                continue
            imported = 0
            with tqdm(total=len(rows), desc=f"Importing {key}", disable=args.quiet) as pbar:
                for chunk in _batched(rows):
                    imported += writer(conn, chunk)
                    pbar.update(len(chunk))
            logger.info(f"Imported {imported} {key}")

    logger.info(f"Import completed from {path}")


def cmd_recommend(args: argparse.Namespace) -> None:
    """Generate recommendations for a reader."""
    rec_filter = _build_filter(args)
    engine = _build_engine(args)

    page = engine.recommend(args.reader, rec_filter)
    _output_page(page, args, author_lookup=engine.catalog.get_primary_author)


def cmd_popular(args: argparse.Namespace) -> None:
    """Show the most borrowed/reserved items."""
    rec_filter = _build_filter(args)
    engine = _build_engine(args)

    page = engine.popularity.get_popular_items(rec_filter.page_index, rec_filter.page_size)
    _output_page(page, args, author_lookup=engine.catalog.get_primary_author)


def cmd_stats(args: argparse.Namespace) -> None:
    """Show database statistics."""
    init_db()
    stats = get_stats()

    logger.info("\nDatabase Statistics:")
    logger.info(f"  Items: {stats['items']} ({stats['withdrawn']} withdrawn)")
    logger.info(f"  Readers: {stats['readers']}")
    logger.info(f"  Interactions: {stats['interactions']} ({stats['rated']} rated)")


def _add_paging_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--page", type=int, default=DEFAULT_PAGE_INDEX, help="Page index (1-based)")
    parser.add_argument("--page-size", type=int, default=DEFAULT_PAGE_SIZE, help="Items per page")
    parser.add_argument("--format", choices=['text', 'json'], default='text', help="Output format")
    parser.add_argument("--api-url", default=API_BASE_URL or None,
                        help="Library API base URL (default: local database)")


def main():
    parser = argparse.ArgumentParser(description="Library Recommender")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Create the database schema")
    init_parser.set_defaults(func=cmd_init_db)

    import_parser = subparsers.add_parser("import", help="Import catalog and activity from JSON")
    import_parser.add_argument("file", help="JSON file with items, readers and interactions")
    import_parser.add_argument("--quiet", "-q", action="store_true", help="Hide progress bars")
    import_parser.set_defaults(func=cmd_import)

    rec_parser = subparsers.add_parser("recommend", help="Generate recommendations for a reader")
    rec_parser.add_argument("reader", help="Reader id or email")
    rec_parser.add_argument("--no-title", action="store_true", help="Ignore titles when matching")
    rec_parser.add_argument("--no-author", action="store_true", help="Ignore authors and cutter numbers")
    rec_parser.add_argument("--no-genres", action="store_true", help="Ignore genres and classification class")
    rec_parser.add_argument("--no-topical-terms", action="store_true", help="Ignore topical terms")
    rec_parser.add_argument("--limit-per-author", action="store_true",
                            help="Keep at most 5 works per author")
    _add_paging_args(rec_parser)
    rec_parser.set_defaults(func=cmd_recommend)

    popular_parser = subparsers.add_parser("popular", help="Show the most borrowed and reserved items")
    _add_paging_args(popular_parser)
    popular_parser.set_defaults(func=cmd_popular)

    stats_parser = subparsers.add_parser("stats", help="Show database statistics")
    stats_parser.set_defaults(func=cmd_stats)

    args = parser.parse_args()

    # Configure logging based on verbosity
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    args.func(args)

"""
Settings for the library recommender.

Operational settings (database location, API access, paging, cache size) can
be overridden through ``LIBRARY_REC_*`` environment variables; ranking
weights are fixed constants.
"""
import os
import logging
from pathlib import Path
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

N = TypeVar('N', int, float)


def _env_number(key: str, default: N, cast: Callable[[str], N], floor: N) -> N:
    """Read a numeric override, clamped to ``floor``; unparseable values keep ``default``."""
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning(f"Ignoring {key}={raw!r}: not a valid {cast.__name__}, keeping {default}")
        return default
    if value < floor:
        logger.warning(f"{key}={value} is below {floor}, clamping")
        return floor
    return value


# Database Configuration
DB_PATH = Path(os.environ.get("LIBRARY_REC_DB", "data/library.db"))

# Pagination
DEFAULT_PAGE_INDEX = 1
DEFAULT_PAGE_SIZE = _env_number("LIBRARY_REC_PAGE_SIZE", 5, int, 1)

# Remote library API
API_BASE_URL = os.environ.get("LIBRARY_REC_API_URL", "")
API_TOKEN = os.environ.get("LIBRARY_REC_API_TOKEN") or None
HTTP_TIMEOUT = _env_number("LIBRARY_REC_HTTP_TIMEOUT", 30.0, float, 1.0)
MAX_HTTP_RETRIES = _env_number("LIBRARY_REC_HTTP_RETRIES", 3, int, 1)
HTTP_RETRY_DELAY = 1.0  # Seconds before the first retry
HTTP_BACKOFF_FACTOR = 2.0

# Vector cache (owned by the caller, keyed by catalog version)
VECTOR_CACHE_SIZE = _env_number("LIBRARY_REC_VECTOR_CACHE_SIZE", 4, int, 1)

# Import batching
IMPORT_CHUNK_SIZE = 500

# Activity weights (hand-tuned, not learned)
WEIGHT_BORROWED = 1.5      # Currently borrowed, unrated
WEIGHT_RESERVED = 1.0      # Currently reserved, unrated
WEIGHT_FAVORITE = 2.0      # Added on top of any rating/consumption signal
RATING_OFFSET = 2          # Ratings 3/4/5 map to weights 1/2/3
CONSUMPTION_PENALTY = 0.8  # Rated, borrowed before, but no longer on loan

# Ranking
CLASSIFICATION_MISMATCH_PENALTY = 0.5  # Outside the reader's classification classes

# Diversity
MAX_WORKS_PER_AUTHOR = 5
NO_AUTHOR_KEY = "No Author"

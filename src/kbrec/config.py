"""
Settings for the knowledge-based recommender.

Module-level constants; the ones read from KBREC_* environment variables
fall back to their defaults when unset or unparsable and clamp to a floor.
"""
import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def _get_env(key: str, default, cast, min_val):
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        val = cast(raw)
    except ValueError:
        logger.warning(f"Invalid {key}='{raw}', using default {default}")
        return default
    if val < min_val:
        logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
        return min_val
    return val


def _get_float_env(key: str, default: float, min_val: float = 0.0) -> float:
    return _get_env(key, default, float, min_val)


def _get_int_env(key: str, default: int, min_val: int = 1) -> int:
    """Integer setting; "1.5" is rejected rather than truncated."""
    return _get_env(key, default, int, min_val)


# MovieLens feeds
DATA_DIR = Path(os.environ.get("KBREC_DATA_DIR", "Dataset"))
MOVIES_FILE = "movies.csv"
RATINGS_FILE = "ratings.csv"
TAGS_FILE = "tags.csv"

# Target user and what counts as "liked" (0-5 scale)
TARGET_USER_ID = _get_int_env("KBREC_TARGET_USER", 1, min_val=0)
LIKED_RATING_THRESHOLD = 3.0
MAX_RATING = 5.0

# Knowledge graph endpoint
SPARQL_ENDPOINT = os.environ.get("KBREC_SPARQL_ENDPOINT", "https://dbpedia.org/sparql")
HTTP_TIMEOUT = _get_float_env("KBREC_HTTP_TIMEOUT", 30.0, min_val=1.0)  # seconds
USER_AGENT = "Mozilla/5.0 (compatible; kbrec/0.1)"
SEARCH_RESULT_LIMIT = 100  # rows per unified search
PROPERTY_LOOKUP_LIMIT = 5  # rows per per-title property lookup

# Taste profile sizes
TOP_K = 3
TOP_YEARS = 5

# Release year proximity
YEAR_WINDOW = 5              # +/- years around a preferred year in searches
ENTITY_ERROR_YEAR_TOLERANCE = 2

# Softmax inverse temperature
SOFTMAX_ALPHA = _get_float_env("KBREC_SOFTMAX_ALPHA", 1.0, min_val=0.0)

# Parallel probe fan-out (1 = sequential)
DEFAULT_MAX_WORKERS = _get_int_env("KBREC_MAX_WORKERS", 1, min_val=1)

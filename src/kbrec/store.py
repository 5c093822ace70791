"""
Local profile store backed by the MovieLens CSV feeds.

Holds per-movie metadata (title, genres, tags), every rating seen per movie,
and the target user's own ratings and liked set. Loading is lenient: a
missing file skips that feed and a malformed row skips only that row.
"""
import csv
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path

from .config import (
    LIKED_RATING_THRESHOLD,
    MOVIES_FILE,
    RATINGS_FILE,
    TAGS_FILE,
    TARGET_USER_ID,
)
from .titles import strip_parentheticals

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MovieRecord:
    movie_id: int
    title: str
    genres: str = ""
    tags: frozenset[str] = field(default_factory=frozenset)

    @property
    def genre_list(self) -> list[str]:
        """Non-blank genre tokens from the pipe-delimited genre string."""
        return [g.strip() for g in self.genres.split("|") if g.strip()]


def _read_rows(path: Path):
    """
    Yield CSV rows after the header.

    Returns None (and logs) when the file cannot be opened so callers can
    skip the feed.
    """
    try:
        handle = open(path, newline="", encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.error(f"Cannot read {path}: {exc}")
        return None

    def _rows():
        with handle:
            reader = csv.reader(handle)
            next(reader, None)
            yield from reader

    return _rows()


class ProfileStore:
    """Movie metadata plus the target user's rating profile."""

    def __init__(self, target_user_id: int = TARGET_USER_ID,
                 liked_threshold: float = LIKED_RATING_THRESHOLD):
        self.target_user_id = target_user_id
        self.liked_threshold = liked_threshold

        self._titles: dict[int, str] = {}
        self._genres: dict[int, str] = {}
        self._tags: dict[int, set[str]] = defaultdict(set)
        self.ratings: dict[int, list[float]] = defaultdict(list)
        self.user_ratings: dict[int, float] = {}
        self.liked_ids: set[int] = set()

        self._title_index: dict[str, int] | None = None

    @classmethod
    def from_directory(cls, data_dir: str | Path, target_user_id: int = TARGET_USER_ID) -> "ProfileStore":
        """Load movies, tags and ratings from a MovieLens-style directory."""
        data_dir = Path(data_dir)
        store = cls(target_user_id=target_user_id)
        store.load_movies(data_dir / MOVIES_FILE)
        store.load_tags(data_dir / TAGS_FILE)
        store.load_ratings(data_dir / RATINGS_FILE)
        logger.info(
            f"Loaded {len(store._titles)} movies, {sum(len(t) for t in store._tags.values())} tags, "
            f"{len(store.liked_ids)} liked by user {target_user_id}"
        )
        return store

    # ------------------------------------------------------------------ loading

    def load_movies(self, path: str | Path) -> int:
        """
        Load (movieId, title, genres) rows.

        Quoted titles may contain commas. Rows with extra unquoted commas keep
        the last field as genres and rejoin the rest as the title.
        """
        rows = _read_rows(Path(path))
        if rows is None:
            return 0

        loaded = skipped = 0
        for row in rows:
            if len(row) < 3:
                skipped += 1
                continue
            try:
                movie_id = int(row[0])
            except ValueError:
                skipped += 1
                continue
            self._titles[movie_id] = ",".join(row[1:-1])
            self._genres[movie_id] = row[-1]
            loaded += 1

        self._title_index = None
        if skipped:
            logger.debug(f"Skipped {skipped} malformed rows in {path}")
        return loaded

    def load_tags(self, path: str | Path) -> int:
        """Load (userId, movieId, tag, ...) rows, de-duplicating tags per movie."""
        rows = _read_rows(Path(path))
        if rows is None:
            return 0

        loaded = skipped = 0
        for row in rows:
            if len(row) < 3:
                skipped += 1
                continue
            try:
                movie_id = int(row[1])
            except ValueError:
                skipped += 1
                continue
            self._tags[movie_id].add(row[2])
            loaded += 1

        if skipped:
            logger.debug(f"Skipped {skipped} malformed rows in {path}")
        return loaded

    def load_ratings(self, path: str | Path) -> int:
        """
        Load (userId, movieId, rating, timestamp) rows.

        Every rating is accumulated per movie; the target user's ratings are
        also remembered and those at or above the liked threshold populate
        the liked set.
        """
        rows = _read_rows(Path(path))
        if rows is None:
            return 0

        loaded = skipped = 0
        for row in rows:
            if len(row) < 4:
                skipped += 1
                continue
            try:
                user_id = int(row[0])
                movie_id = int(row[1])
                rating = float(row[2])
            except ValueError:
                skipped += 1
                continue

            self.ratings[movie_id].append(rating)
            if user_id == self.target_user_id:
                self.user_ratings[movie_id] = rating
                if rating >= self.liked_threshold:
                    self.liked_ids.add(movie_id)
            loaded += 1

        if skipped:
            logger.debug(f"Skipped {skipped} malformed rows in {path}")
        return loaded

    # ------------------------------------------------------------------ access

    def __len__(self) -> int:
        return len(self._titles)

    def __contains__(self, movie_id: int) -> bool:
        return movie_id in self._titles

    def record(self, movie_id: int) -> MovieRecord | None:
        if movie_id not in self._titles:
            return None
        return MovieRecord(
            movie_id=movie_id,
            title=self._titles[movie_id],
            genres=self._genres.get(movie_id, ""),
            tags=frozenset(self._tags.get(movie_id, ())),
        )

    def records(self) -> list[MovieRecord]:
        return [self.record(movie_id) for movie_id in sorted(self._titles)]

    def liked_records(self) -> list[MovieRecord]:
        """Liked movies that have metadata, in id order."""
        return [self.record(movie_id) for movie_id in sorted(self.liked_ids) if movie_id in self._titles]

    def user_rating(self, movie_id: int) -> float | None:
        return self.user_ratings.get(movie_id)

    def average_rating(self, movie_id: int) -> float | None:
        ratings = self.ratings.get(movie_id)
        if not ratings:
            return None
        return sum(ratings) / len(ratings)

    def resolve_title(self, title: str) -> int | None:
        """
        Find a local movie id for a title.

        Case-insensitive exact match against stored titles with their
        parenthesized segments stripped; the lowest id wins on duplicates.
        """
        if self._title_index is None:
            index: dict[str, int] = {}
            for movie_id in sorted(self._titles):
                key = strip_parentheticals(self._titles[movie_id]).lower()
                index.setdefault(key, movie_id)
            self._title_index = index

        return self._title_index.get(strip_parentheticals(title).lower())

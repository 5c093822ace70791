"""Entity error: how well a recommendation matches the user's profile (0 = perfect)."""
import logging
from dataclasses import dataclass

from .aspects import MAX_ASPECTS, CandidateAspectMap
from .config import ENTITY_ERROR_YEAR_TOLERANCE, MAX_RATING
from .frequency import TasteProfile
from .store import ProfileStore
from .titles import clean_tag, extract_year, normalize_title

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityErrorResult:
    error: float
    match_count: int = 0
    total_checks: int = 0
    method: str = "none"  # rating | aspects | aspect-map | none
    movie_id: int | None = None


class EntityErrorScorer:
    def __init__(self, store: ProfileStore, gateway, taste: TasteProfile,
                 year_tolerance: int = ENTITY_ERROR_YEAR_TOLERANCE):
        self.store = store
        self.gateway = gateway
        self.taste = taste
        self.year_tolerance = year_tolerance

    def _rating_error(self, movie_id: int | None) -> float | None:
        if movie_id is None or movie_id not in self.store.liked_ids:
            return None
        rating = self.store.user_rating(movie_id)
        if rating is None:
            return None
        return 1.0 - rating / MAX_RATING

    def _local_checks(self, movie_id: int) -> tuple[int, int]:
        record = self.store.record(movie_id)
        top_genres = set(self.taste.genres)
        top_tags = set(self.taste.tags)

        genres = set(record.genre_list)
        tags = {t for t in map(clean_tag, record.tags) if t}
        matches = len(genres & top_genres) + len(tags & top_tags)
        return matches, len(genres) + len(tags)

    def _knowledge_graph_checks(self, title: str) -> tuple[int, int]:
        facts = self.gateway.lookup_properties(title)
        top_actors = set(self.taste.actors)
        top_directors = set(self.taste.directors)

        matches = sum(1 for a in facts.actors if a in top_actors)
        matches += sum(1 for d in facts.directors if d in top_directors)
        return matches, len(facts.actors) + len(facts.directors)

    def _year_check(self, title: str) -> tuple[int, int]:
        year = extract_year(title)
        if year is None:
            return 0, 0
        close = any(abs(y - year) <= self.year_tolerance for y in self.taste.years)
        return int(close), 1

    def score(self, title: str, aspect_map: CandidateAspectMap) -> EntityErrorResult:
        """
        Entity error of a recommended title.

        A liked and rated movie scores 1 - rating/5. Otherwise the error is
        the share of unmatched checks: local genres and tags, knowledge-graph
        actors and directors, and release-year proximity. Titles unknown
        locally but present in the aspect map use their aspect count out of
        the five aspect kinds.
        """
        if not title:
            return EntityErrorResult(error=1.0)

        movie_id = self.store.resolve_title(title)

        rating_error = self._rating_error(movie_id)
        if rating_error is not None:
            return EntityErrorResult(
                error=min(1.0, max(0.0, rating_error)),
                method="rating",
                movie_id=movie_id,
            )

        if movie_id is None and title in aspect_map:
            match_count = len(aspect_map.aspects(title))
            total_checks = MAX_ASPECTS
            method = "aspect-map"
        else:
            match_count = total_checks = 0
            # Normalized titles carry no "(YYYY)"; the local record does
            dated_title = title
            if movie_id is not None:
                m, t = self._local_checks(movie_id)
                match_count += m
                total_checks += t
                dated_title = self.store.record(movie_id).title
            for m, t in (self._knowledge_graph_checks(title), self._year_check(dated_title)):
                match_count += m
                total_checks += t
            method = "aspects"

        logger.debug(f"Entity error checks for {normalize_title(title)!r}: {match_count}/{total_checks}")
        if total_checks == 0:
            return EntityErrorResult(error=1.0, movie_id=movie_id)
        return EntityErrorResult(
            error=1.0 - match_count / total_checks,
            match_count=match_count,
            total_checks=total_checks,
            method=method,
            movie_id=movie_id,
        )

"""
One recommendation run.

A session owns everything a run needs (profile store, knowledge-graph
gateway, random source, reporting sink), so several independent sessions
can live in the same process and tests can inject each collaborator.
"""
import logging
import random
from dataclasses import dataclass
from pathlib import Path

from .aspects import AggregationResult, aggregate_candidates
from .config import (
    DATA_DIR,
    DEFAULT_MAX_WORKERS,
    HTTP_TIMEOUT,
    SOFTMAX_ALPHA,
    SPARQL_ENDPOINT,
    TARGET_USER_ID,
)
from .entity_error import EntityErrorResult, EntityErrorScorer
from .frequency import FrequencyExtractor, TasteProfile, ranking_table
from .reporting import Reporter
from .selector import Selection, SoftmaxSelector
from .sparql import SparqlGateway
from .store import ProfileStore

logger = logging.getLogger(__name__)


@dataclass
class RecommendationResult:
    taste: TasteProfile
    aggregation: AggregationResult
    selection: Selection
    entity_error: EntityErrorResult | None = None

    @property
    def title(self) -> str | None:
        return self.selection.title


class RecommendationSession:
    def __init__(
        self,
        store: ProfileStore,
        gateway,
        rng=None,
        reporter: Reporter | None = None,
        alpha: float = SOFTMAX_ALPHA,
        max_workers: int = DEFAULT_MAX_WORKERS,
        show_progress: bool = False,
    ):
        self.store = store
        self.gateway = gateway
        self.rng = rng if rng is not None else random.Random()
        self.reporter = reporter or Reporter()
        self.alpha = alpha
        self.max_workers = max_workers
        self.extractor = FrequencyExtractor(store, gateway, show_progress=show_progress)
        self._tastes: dict[bool, TasteProfile] = {}

    @classmethod
    def from_data_dir(
        cls,
        data_dir: str | Path = DATA_DIR,
        user_id: int = TARGET_USER_ID,
        seed: int | None = None,
        endpoint: str = SPARQL_ENDPOINT,
        timeout: float = HTTP_TIMEOUT,
        **kwargs,
    ) -> "RecommendationSession":
        """Session over MovieLens feeds in ``data_dir`` and a live SPARQL endpoint."""
        store = ProfileStore.from_directory(data_dir, target_user_id=user_id)
        gateway = SparqlGateway(endpoint=endpoint, timeout=timeout)
        return cls(store, gateway, rng=random.Random(seed), **kwargs)

    def close(self):
        close = getattr(self.gateway, "close", None)
        if close is not None:
            close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def build_taste_profile(self, include_entities: bool = True) -> TasteProfile:
        """Derive (once) and report the user's preferred values per aspect."""
        cached = self._tastes.get(include_entities) or self._tastes.get(True)
        if cached is not None:
            return cached

        extractor = self.extractor
        self.reporter.frequency_table("Genre", ranking_table(extractor.genre_counts()))
        self.reporter.frequency_table("Tag", ranking_table(extractor.tag_counts()))

        taste = extractor.build_taste_profile(include_entities=include_entities)
        self.reporter.top_values("genres", taste.genres)
        self.reporter.top_values("tags", taste.tags)
        if include_entities:
            self.reporter.top_values("actors", taste.actors)
            self.reporter.top_values("directors", taste.directors)

        year_counts = extractor.year_counts()
        self.reporter.preferred_years([(year, year_counts[year]) for year in taste.years])

        self._tastes[include_entities] = taste
        return taste

    def aggregate(self, taste: TasteProfile | None = None) -> AggregationResult:
        taste = taste or self.build_taste_profile()
        result = aggregate_candidates(self.gateway, taste, self.reporter, max_workers=self.max_workers)
        self.reporter.candidates(result.aspect_map)
        return result

    def recommend(self) -> RecommendationResult:
        """Run the whole pipeline: profile, aggregation, softmax pick, entity error."""
        if not self.store.liked_ids:
            logger.warning(f"User {self.store.target_user_id} has no liked movies; profile will be empty")

        taste = self.build_taste_profile()
        aggregation = self.aggregate(taste)

        selector = SoftmaxSelector(alpha=self.alpha, rng=self.rng)
        selection = selector.select(aggregation.normalized_candidates(), aggregation.aspect_map)
        if selection.found:
            self.reporter.distribution(selection.distribution, aggregation.aspect_map)
        self.reporter.choice(selection.title)

        result = RecommendationResult(taste=taste, aggregation=aggregation, selection=selection)
        if selection.found:
            scorer = EntityErrorScorer(self.store, self.gateway, taste)
            result.entity_error = scorer.score(selection.title, aggregation.aspect_map)
            self.reporter.entity_error(result.entity_error)
        return result

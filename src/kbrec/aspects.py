"""
Candidate aggregation.

Every preferred value of every aspect kind is probed with a unified search;
each returned title is normalized and credited with the aspect kind that
surfaced it. The resulting map from normalized title to satisfied aspects is
what the softmax selector scores.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum

from .config import DEFAULT_MAX_WORKERS
from .frequency import TasteProfile
from .reporting import Reporter
from .titles import normalize_title

logger = logging.getLogger(__name__)


class AspectKind(Enum):
    """A reason a candidate matches the user's preferences."""

    GENRE = "genre"
    TAG = "tag"
    ACTOR = "actor"
    DIRECTOR = "director"
    YEAR = "year"

    @property
    def label(self) -> str:
        return self.value

    @property
    def search_field(self) -> str:
        """Keyword of ``unified_search`` that filters on this aspect."""
        return self.value + "s"


MAX_ASPECTS = len(AspectKind)


class CandidateAspectMap:
    """
    Normalized title -> set of satisfied aspect kinds.

    Grows by merging during aggregation; ``finalize`` drops empty entries and
    freezes the map.
    """

    def __init__(self):
        self._aspects: dict[str, set[AspectKind]] = {}
        self.finalized = False

    def add(self, title: str, kind: AspectKind) -> str | None:
        """Credit ``kind`` to the normalized form of ``title``; returns the key used."""
        if self.finalized:
            raise RuntimeError("Cannot add to a finalized aspect map")
        key = normalize_title(title)
        if not key:
            return None
        self._aspects.setdefault(key, set()).add(kind)
        return key

    def ensure(self, title: str) -> str:
        """Register a title with no aspects yet (removed again by ``finalize``)."""
        if self.finalized:
            raise RuntimeError("Cannot add to a finalized aspect map")
        key = normalize_title(title)
        self._aspects.setdefault(key, set())
        return key

    def finalize(self) -> list[str]:
        """Drop titles with no aspects and freeze the map. Returns the dropped keys."""
        empty = [key for key, kinds in self._aspects.items() if not kinds]
        for key in empty:
            del self._aspects[key]
        self.finalized = True
        return empty

    def aspects(self, title: str) -> frozenset[AspectKind]:
        return frozenset(self._aspects.get(normalize_title(title), ()))

    def score(self, title: str) -> int:
        return len(self._aspects.get(normalize_title(title), ()))

    def titles(self) -> list[str]:
        return sorted(self._aspects)

    def as_dict(self) -> dict[str, frozenset[AspectKind]]:
        return {key: frozenset(kinds) for key, kinds in sorted(self._aspects.items())}

    @classmethod
    def from_mapping(cls, mapping: dict) -> "CandidateAspectMap":
        """Build a finalized map from title -> iterable of AspectKind."""
        aspect_map = cls()
        for title, kinds in mapping.items():
            aspect_map.ensure(title)
            for kind in kinds:
                aspect_map.add(title, kind)
        aspect_map.finalize()
        return aspect_map

    def __contains__(self, title: str) -> bool:
        return normalize_title(title) in self._aspects

    def __len__(self) -> int:
        return len(self._aspects)

    def __repr__(self) -> str:
        return f"CandidateAspectMap({len(self)} titles, finalized={self.finalized})"


@dataclass(frozen=True)
class ProbeHit:
    kind: AspectKind
    value: str | None
    title: str


def taste_values(taste: TasteProfile, kind: AspectKind) -> list:
    return {
        AspectKind.GENRE: taste.genres,
        AspectKind.TAG: taste.tags,
        AspectKind.ACTOR: taste.actors,
        AspectKind.DIRECTOR: taste.directors,
        AspectKind.YEAR: taste.years,
    }[kind]


def probe(gateway, kind: AspectKind, values) -> list[ProbeHit]:
    """
    Search the knowledge graph for one aspect kind.

    Genres, tags, actors and directors get one search per distinct value;
    years get a single search across all values. Nothing is searched when
    there are no values.
    """
    if kind is AspectKind.YEAR:
        years = sorted(set(values))
        if not years:
            return []
        titles = gateway.unified_search(years=set(years))
        return [ProbeHit(kind, None, title) for title in sorted(titles)]

    cleaned = (str(v).replace('"', "").strip() for v in values)
    hits = []
    for value in dict.fromkeys(v for v in cleaned if v):
        titles = gateway.unified_search(**{kind.search_field: {value}})
        logger.debug(f"{kind.label} probe {value!r}: {len(titles)} titles")
        hits.extend(ProbeHit(kind, value, title) for title in sorted(titles))
    return hits


@dataclass
class AggregationResult:
    raw_titles: set[str] = field(default_factory=set)
    aspect_map: CandidateAspectMap = field(default_factory=CandidateAspectMap)
    totals: dict[AspectKind, int] = field(default_factory=dict)
    purged: list[str] = field(default_factory=list)

    def normalized_candidates(self) -> list[str]:
        """Distinct normalized candidate titles in sorted order."""
        return sorted({key for key in map(normalize_title, self.raw_titles) if key})


def aggregate_candidates(
    gateway,
    taste: TasteProfile,
    reporter: Reporter | None = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> AggregationResult:
    """
    Probe all five aspect kinds and merge the hits into one aspect map.

    With ``max_workers > 1`` the probes run on a thread pool. Hits are merged
    in aspect-kind order once every probe has returned, so the result does
    not depend on completion order.
    """
    reporter = reporter or Reporter()
    kinds = list(AspectKind)

    if max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [pool.submit(probe, gateway, kind, taste_values(taste, kind)) for kind in kinds]
            probe_results = [future.result() for future in futures]
    else:
        probe_results = [probe(gateway, kind, taste_values(taste, kind)) for kind in kinds]

    result = AggregationResult()
    for kind, hits in zip(kinds, probe_results):
        result.totals[kind] = len(hits)
        for hit in hits:
            if result.aspect_map.add(hit.title, kind) is None:
                continue
            result.raw_titles.add(hit.title)
            reporter.probe_hit(kind, hit.value, normalize_title(hit.title))

    result.purged = result.aspect_map.finalize()
    result.raw_titles = {
        title for title in result.raw_titles
        if result.aspect_map.score(title) > 0
    }
    if result.purged:
        logger.debug(f"Purged {len(result.purged)} candidates with no aspects")

    reporter.aspect_totals(result.totals)
    logger.info(f"Aggregated {len(result.aspect_map)} candidates from {sum(result.totals.values())} hits")
    return result

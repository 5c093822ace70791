"""
Frequency statistics over the target user's liked movies.

Top genres and tags come from local metadata; top actors and directors come
from knowledge-graph lookups of each liked title; preferred years come from
the "(YYYY)" embedded in liked titles.

Ties are broken deterministically: higher count first, then the value in
ascending order.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field

from tqdm import tqdm

from .config import TOP_K, TOP_YEARS
from .store import ProfileStore
from .titles import clean_frequency_key, clean_label, clean_liked_title, clean_tag, extract_year

logger = logging.getLogger(__name__)

ENTITY_KINDS = ("actor", "director")


def top_k(counts: Counter, n: int) -> list:
    """The n most frequent keys; count descending, then key ascending."""
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [key for key, _ in ranked[:n]]


def ranking_table(counts: Counter) -> list[tuple[str, int]]:
    """
    Display view of a frequency table.

    Keys are passed through ``clean_frequency_key`` and counts of keys that
    collapse together are summed. Blank keys are dropped.
    """
    merged: Counter = Counter()
    for key, count in counts.items():
        cleaned = clean_frequency_key(str(key))
        if cleaned:
            merged[cleaned] += count
    return sorted(merged.items(), key=lambda item: (-item[1], item[0]))


@dataclass
class TasteProfile:
    """Preferred values per aspect, derived once per run."""
    genres: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    actors: list[str] = field(default_factory=list)
    directors: list[str] = field(default_factory=list)
    years: list[int] = field(default_factory=list)


class FrequencyExtractor:
    def __init__(self, store: ProfileStore, gateway, show_progress: bool = False):
        self.store = store
        self.gateway = gateway
        self.show_progress = show_progress

    def genre_counts(self) -> Counter:
        counts: Counter = Counter()
        for record in self.store.liked_records():
            counts.update(record.genre_list)
        return counts

    def tag_counts(self) -> Counter:
        counts: Counter = Counter()
        for record in self.store.liked_records():
            for tag in record.tags:
                cleaned = clean_tag(tag)
                if cleaned:
                    counts[cleaned] += 1
        return counts

    def year_counts(self) -> Counter:
        counts: Counter = Counter()
        for record in self.store.liked_records():
            year = extract_year(record.title)
            if year is not None:
                counts[year] += 1
        return counts

    def liked_lookup_titles(self) -> list[str]:
        """Distinct cleaned liked titles, in liked-id order."""
        titles = (clean_liked_title(record.title) for record in self.store.liked_records())
        return list(dict.fromkeys(t for t in titles if t))

    def entity_counts(self, kind: str) -> Counter:
        """
        Tally actor or director labels across all liked titles.

        One gateway lookup per title; repeated calls (e.g. for the other
        kind) are served from the gateway cache.
        """
        if kind not in ENTITY_KINDS:
            raise ValueError(f"Unknown entity kind: {kind}")

        counts: Counter = Counter()
        titles = self.liked_lookup_titles()
        for title in tqdm(titles, desc=f"Looking up {kind}s", unit="film",
                          disable=not self.show_progress):
            facts = self.gateway.lookup_properties(title)
            for label in facts.labels(kind):
                cleaned = clean_label(label)
                if cleaned:
                    counts[cleaned] += 1
        logger.debug(f"Tallied {len(counts)} distinct {kind}s over {len(titles)} liked titles")
        return counts

    def top_genres(self, n: int = TOP_K) -> list[str]:
        return top_k(self.genre_counts(), n)

    def top_tags(self, n: int = TOP_K) -> list[str]:
        return top_k(self.tag_counts(), n)

    def top_entities(self, kind: str, n: int = TOP_K) -> list[str]:
        return top_k(self.entity_counts(kind), n)

    def preferred_years(self, n: int = TOP_YEARS) -> list[int]:
        return top_k(self.year_counts(), n)

    def build_taste_profile(self, include_entities: bool = True) -> TasteProfile:
        taste = TasteProfile(
            genres=self.top_genres(),
            tags=self.top_tags(),
            years=self.preferred_years(),
        )
        if include_entities:
            taste.actors = self.top_entities("actor")
            taste.directors = self.top_entities("director")
        return taste

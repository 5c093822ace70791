"""
Progress and diagnostic reporting.

Components report through a ``Reporter`` so tests can capture or silence the
output. The base class ignores everything; ``LoggingReporter`` writes the
human-readable listing through the logging module.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .aspects import AspectKind, CandidateAspectMap
    from .entity_error import EntityErrorResult
    from .selector import ScoreDistribution

logger = logging.getLogger(__name__)


class Reporter:
    """Reporting sink; every hook is a no-op."""

    def frequency_table(self, name: str, rows: list[tuple[str, int]]) -> None:
        pass

    def top_values(self, name: str, values: list) -> None:
        pass

    def preferred_years(self, rows: list[tuple[int, int]]) -> None:
        pass

    def probe_hit(self, kind: AspectKind, value: str | None, title: str) -> None:
        pass

    def aspect_totals(self, totals: dict[AspectKind, int]) -> None:
        pass

    def candidates(self, aspect_map: CandidateAspectMap) -> None:
        pass

    def distribution(self, distribution: ScoreDistribution, aspect_map: CandidateAspectMap) -> None:
        pass

    def choice(self, title: str | None) -> None:
        pass

    def entity_error(self, result: EntityErrorResult) -> None:
        pass


class LoggingReporter(Reporter):
    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logger

    def frequency_table(self, name, rows):
        self.log.info(f"{name} ranking:")
        for key, count in rows:
            self.log.info(f"  {key} -> {count}")

    def top_values(self, name, values):
        self.log.info(f"Top {name}: {', '.join(str(v) for v in values) or '(none)'}")

    def preferred_years(self, rows):
        self.log.info("Preferred years:")
        for year, count in rows:
            self.log.info(f"  {year} ({count} films)")

    def probe_hit(self, kind, value, title):
        label = f"{kind.label} -> {value}" if value is not None else kind.label
        self.log.info(f"  [{label}] {title}")

    def aspect_totals(self, totals):
        summary = " | ".join(f"{kind.label}: {count}" for kind, count in totals.items())
        self.log.info(f"Films found per aspect -> {summary}")

    def candidates(self, aspect_map):
        self.log.info(f"Candidates ({len(aspect_map)}) with satisfied aspects:")
        for title in aspect_map.titles():
            self.log.info(f"  {title} (aspects: {len(aspect_map.aspects(title))})")

    def distribution(self, distribution, aspect_map):
        self.log.info("Recommendation probabilities:")
        for title, probability in distribution.ranked():
            kinds = sorted(kind.label for kind in aspect_map.aspects(title))
            self.log.info(f"  \"{title}\" -> {probability:.4f} (aspects: {len(kinds)} -> {kinds})")

    def choice(self, title):
        if title is None:
            self.log.info("No candidate found")
        else:
            self.log.info(f"Chosen film (softmax): {title}")

    def entity_error(self, result):
        movie = result.movie_id if result.movie_id is not None else "none"
        self.log.info(f"Resolved movie id: {movie}")
        self.log.info(f"Matches: {result.match_count} / checks: {result.total_checks} ({result.method})")
        self.log.info(f"Entity error of recommended film: {result.error:.2f}")

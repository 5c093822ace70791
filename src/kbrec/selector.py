"""
Softmax selection over candidate aspect counts.

A candidate's score is the number of aspects it satisfies; its probability
is exp(alpha * score) normalized over all candidates. One uniform draw picks
the recommendation.
"""
import logging
import random
from dataclasses import dataclass, field

import numpy as np

from .aspects import AspectKind, CandidateAspectMap
from .config import SOFTMAX_ALPHA
from .titles import normalize_title

logger = logging.getLogger(__name__)


@dataclass
class ScoreDistribution:
    """Ordered title -> probability, with the raw scores it came from."""
    scores: dict[str, float] = field(default_factory=dict)
    probabilities: dict[str, float] = field(default_factory=dict)
    alpha: float = SOFTMAX_ALPHA

    def __len__(self) -> int:
        return len(self.probabilities)

    def __getitem__(self, title: str) -> float:
        return self.probabilities[title]

    def titles(self) -> list[str]:
        return list(self.probabilities)

    def total(self) -> float:
        return float(sum(self.probabilities.values()))

    def ranked(self) -> list[tuple[str, float]]:
        """Most probable first; equal probabilities keep candidate order."""
        return sorted(self.probabilities.items(), key=lambda item: -item[1])

    def most_likely(self) -> str | None:
        ranked = self.ranked()
        return ranked[0][0] if ranked else None


def softmax_distribution(scores: dict[str, float], alpha: float = SOFTMAX_ALPHA) -> ScoreDistribution:
    """
    exp(alpha * s_i) / sum_j exp(alpha * s_j), in the order of ``scores``.

    Scores are shifted by their maximum before exponentiation, which leaves
    the probabilities unchanged.
    """
    if not scores:
        return ScoreDistribution(alpha=alpha)

    titles = list(scores)
    values = np.array([scores[t] for t in titles], dtype=float)
    weights = np.exp(alpha * (values - values.max()))
    probs = weights / weights.sum()
    return ScoreDistribution(
        scores=dict(scores),
        probabilities={title: float(p) for title, p in zip(titles, probs)},
        alpha=alpha,
    )


def draw(distribution: ScoreDistribution, u: float) -> tuple[str | None, bool]:
    """
    Pick the first candidate whose cumulative probability reaches ``u``.

    Returns (title, fallback_used). If rounding leaves the cumulative sum
    short of ``u`` the most probable candidate is returned instead.
    """
    cumulative = 0.0
    for title, probability in distribution.probabilities.items():
        cumulative += probability
        if u <= cumulative:
            return title, False
    return distribution.most_likely(), True


@dataclass(frozen=True)
class Selection:
    title: str | None
    distribution: ScoreDistribution
    draw: float | None = None
    aspects: frozenset[AspectKind] = frozenset()
    fallback: bool = False

    @property
    def found(self) -> bool:
        return self.title is not None


# Returned when no candidate survives filtering
NO_CANDIDATE = Selection(title=None, distribution=ScoreDistribution())


class SoftmaxSelector:
    """
    Stochastic recommendation over candidate aspect counts.

    ``rng`` is anything with a ``random()`` method returning a float in
    [0, 1); pass a seeded ``random.Random`` or a stub for reproducible picks.
    """

    def __init__(self, alpha: float = SOFTMAX_ALPHA, rng=None):
        self.alpha = alpha
        self.rng = rng if rng is not None else random.Random()

    def eligible(self, candidates, aspect_map: CandidateAspectMap) -> list[str]:
        """Normalized, de-duplicated candidates that satisfy at least one aspect."""
        keys = (normalize_title(c) for c in candidates)
        return [key for key in dict.fromkeys(keys) if key and aspect_map.score(key) > 0]

    def distribution(self, candidates, aspect_map: CandidateAspectMap) -> ScoreDistribution:
        scores = {title: float(aspect_map.score(title)) for title in self.eligible(candidates, aspect_map)}
        return softmax_distribution(scores, self.alpha)

    def select(self, candidates, aspect_map: CandidateAspectMap) -> Selection:
        dist = self.distribution(candidates, aspect_map)
        if not dist:
            logger.info("No eligible candidates for softmax selection")
            return NO_CANDIDATE

        u = self.rng.random()
        title, fallback = draw(dist, u)
        if fallback:
            logger.debug(f"Cumulative probability fell short of draw {u}; using most likely")
        return Selection(
            title=title,
            distribution=dist,
            draw=u,
            aspects=aspect_map.aspects(title),
            fallback=fallback,
        )

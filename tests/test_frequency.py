from collections import Counter

import pytest

from kbrec.frequency import FrequencyExtractor, ranking_table, top_k


def test_top_k_breaks_ties_by_value():
    counts = Counter({"b": 2, "a": 2, "c": 5, "d": 1})
    assert top_k(counts, 3) == ["c", "a", "b"]
    assert top_k(Counter({1995: 1, 1994: 1}), 5) == [1994, 1995]
    assert top_k(Counter(), 3) == []


def test_top_genres_and_tags(store, make_gateway):
    extractor = FrequencyExtractor(store, make_gateway())

    assert extractor.genre_counts()["Adventure"] == 2
    assert extractor.top_genres() == ["Adventure", "Children", "Fantasy"]

    # Tags are de-duplicated per movie, then cleaned
    assert extractor.tag_counts() == Counter({"pixar": 1, "fun": 1, "board game": 1, "heist": 1})
    assert extractor.top_tags() == ["board game", "fun", "heist"]


def test_preferred_years(store, make_gateway):
    extractor = FrequencyExtractor(store, make_gateway())
    assert extractor.year_counts() == Counter({1995: 3})
    assert extractor.preferred_years() == [1995]


def test_top_entities_look_up_each_liked_title_once(store, make_gateway, liked_facts):
    gateway = make_gateway(facts=liked_facts)
    extractor = FrequencyExtractor(store, gateway)

    assert extractor.top_entities("actor") == ["Tom Hanks", "Al Pacino", "Kirsten Dunst"]
    assert gateway.lookups == ["Toy Story", "Jumanji", "Heat"]

    assert extractor.top_entities("director", n=2) == ["Joe Johnston", "John Lasseter"]


def test_entity_counts_rejects_unknown_kind(store, make_gateway):
    with pytest.raises(ValueError):
        FrequencyExtractor(store, make_gateway()).entity_counts("writer")


def test_build_taste_profile(store, make_gateway, liked_facts):
    extractor = FrequencyExtractor(store, make_gateway(facts=liked_facts))
    taste = extractor.build_taste_profile()

    assert taste.genres == ["Adventure", "Children", "Fantasy"]
    assert taste.tags == ["board game", "fun", "heist"]
    assert taste.actors[0] == "Tom Hanks"
    assert taste.directors == ["Joe Johnston", "John Lasseter", "Michael Mann"]
    assert taste.years == [1995]


def test_build_taste_profile_without_entities_skips_lookups(store, make_gateway):
    gateway = make_gateway()
    taste = FrequencyExtractor(store, gateway).build_taste_profile(include_entities=False)

    assert taste.actors == [] and taste.directors == []
    assert gateway.lookups == []


def test_ranking_table_merges_cleaned_keys():
    counts = Counter({'"Drama"@en': 2, "Drama": 1, "(no genres listed)": 4, "Comedy": 3})
    assert ranking_table(counts) == [("Comedy", 3), ("Drama", 3)]

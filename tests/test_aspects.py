import pytest

from kbrec.aspects import (
    AspectKind,
    CandidateAspectMap,
    aggregate_candidates,
    probe,
)
from kbrec.frequency import TasteProfile


def _searches():
    return {
        ("genres", "Comedy"): {'"Toy Story (1995)"@en', "Heat"},
        ("actors", "Tom Hanks"): {"Toy Story"},
        ("directors", "Michael Mann"): {"Heat (1995 film)"},
        ("years", 1995): {"Speed"},
    }


def _taste():
    return TasteProfile(
        genres=["Comedy"],
        tags=[],
        actors=["Tom Hanks"],
        directors=["Michael Mann"],
        years=[1995],
    )


def test_title_variants_merge_into_one_entry():
    aspect_map = CandidateAspectMap()
    aspect_map.add('"Heat (1995)"@en', AspectKind.GENRE)
    aspect_map.add("Heat", AspectKind.ACTOR)
    aspect_map.add("Heat", AspectKind.ACTOR)

    assert len(aspect_map) == 1
    assert aspect_map.aspects("Heat") == {AspectKind.GENRE, AspectKind.ACTOR}
    assert aspect_map.score('"Heat"@en') == 2


def test_finalize_drops_empty_entries_and_freezes():
    aspect_map = CandidateAspectMap()
    aspect_map.ensure("Nothing Matched")
    aspect_map.add("Speed", AspectKind.YEAR)

    dropped = aspect_map.finalize()

    assert dropped == ["Nothing Matched"]
    assert aspect_map.titles() == ["Speed"]
    assert all(aspect_map.aspects(t) for t in aspect_map.titles())
    with pytest.raises(RuntimeError):
        aspect_map.add("Heat", AspectKind.GENRE)


def test_blank_titles_are_not_inserted():
    aspect_map = CandidateAspectMap()
    assert aspect_map.add("(1995)", AspectKind.YEAR) is None
    assert len(aspect_map) == 0


def test_probe_runs_one_search_per_distinct_value(make_gateway):
    gateway = make_gateway(searches={("genres", "Comedy"): {"Heat"}})

    hits = probe(gateway, AspectKind.GENRE, ['"Comedy"', "Comedy ", "Drama", ""])

    assert gateway.search_calls == [{"genres": {"Comedy"}}, {"genres": {"Drama"}}]
    assert [(h.kind, h.value, h.title) for h in hits] == [(AspectKind.GENRE, "Comedy", "Heat")]


def test_probe_years_uses_one_combined_search(make_gateway):
    gateway = make_gateway(searches={("years", 1994): {"Speed"}, ("years", 1995): {"Heat"}})

    hits = probe(gateway, AspectKind.YEAR, [1995, 1994])

    assert gateway.search_calls == [{"years": {1994, 1995}}]
    assert sorted(h.title for h in hits) == ["Heat", "Speed"]


def test_probe_without_values_searches_nothing(make_gateway):
    gateway = make_gateway()
    assert probe(gateway, AspectKind.YEAR, []) == []
    assert probe(gateway, AspectKind.TAG, []) == []
    assert gateway.search_calls == []


def test_aggregate_candidates_merges_all_kinds(make_gateway, recording_reporter):
    gateway = make_gateway(searches=_searches())

    result = aggregate_candidates(gateway, _taste(), recording_reporter, max_workers=1)

    assert result.aspect_map.as_dict() == {
        "Heat": frozenset({AspectKind.GENRE, AspectKind.DIRECTOR}),
        "Speed": frozenset({AspectKind.YEAR}),
        "Toy Story": frozenset({AspectKind.GENRE, AspectKind.ACTOR}),
    }
    assert result.totals == {
        AspectKind.GENRE: 2,
        AspectKind.TAG: 0,
        AspectKind.ACTOR: 1,
        AspectKind.DIRECTOR: 1,
        AspectKind.YEAR: 1,
    }
    assert result.normalized_candidates() == ["Heat", "Speed", "Toy Story"]
    assert result.aspect_map.finalized

    hits = [e for e in recording_reporter.events if e[0] == "hit"]
    assert ("hit", AspectKind.ACTOR, "Tom Hanks", "Toy Story") in hits
    assert recording_reporter.events[-1] == ("totals", result.totals)


def test_parallel_aggregation_matches_sequential(make_gateway):
    sequential = aggregate_candidates(make_gateway(searches=_searches()), _taste(), max_workers=1)
    parallel = aggregate_candidates(make_gateway(searches=_searches()), _taste(), max_workers=4)

    assert parallel.aspect_map.as_dict() == sequential.aspect_map.as_dict()
    assert parallel.raw_titles == sequential.raw_titles
    assert parallel.totals == sequential.totals


def test_aggregate_with_empty_taste_yields_no_candidates(make_gateway):
    gateway = make_gateway(searches=_searches())
    result = aggregate_candidates(gateway, TasteProfile())

    assert len(result.aspect_map) == 0
    assert result.normalized_candidates() == []
    assert gateway.search_calls == []

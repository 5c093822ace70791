import sys
from pathlib import Path

import pytest

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from kbrec.reporting import Reporter  # noqa: E402
from kbrec.sparql import EntityFacts  # noqa: E402


MOVIES_CSV = """movieId,title,genres
1,Toy Story (1995),Adventure|Animation|Children|Comedy|Fantasy
2,Jumanji (1995),Adventure|Children|Fantasy
3,Heat (1995),Action|Crime|Thriller
4,"American President, The (1995)",Comedy|Drama|Romance
5,Speed (1994),Action|Romance|Thriller
bad,Broken Row,Drama
6,Too Few Fields
"""

TAGS_CSV = '''userId,movieId,tag,timestamp
1,1,pixar,1139045764
2,1,pixar,1139045765
1,1,"""fun"" - family",1139045766
1,2,board game,1139045767
1,3,heist - classic,1139045768
1,nope,broken,1139045769
'''

RATINGS_CSV = """userId,movieId,rating,timestamp
1,1,5.0,964982703
1,2,4.0,964981247
1,3,3.0,964982224
1,4,2.5,964983815
2,1,3.5,964982931
2,5,4.0,964982400
1,x,4.0,964982400
1,5
"""


@pytest.fixture
def data_dir(tmp_path):
    """A small MovieLens-style directory."""
    (tmp_path / "movies.csv").write_text(MOVIES_CSV)
    (tmp_path / "tags.csv").write_text(TAGS_CSV)
    (tmp_path / "ratings.csv").write_text(RATINGS_CSV)
    return tmp_path


@pytest.fixture
def store(data_dir):
    from kbrec.store import ProfileStore

    return ProfileStore.from_directory(data_dir, target_user_id=1)


class FakeGateway:
    """
    In-memory stand-in for the SPARQL gateway.

    ``facts`` maps a lookup title to EntityFacts; ``searches`` maps
    (field, value) pairs such as ("genres", "Comedy") or ("years", 1995) to
    the raw titles returned.
    """

    def __init__(self, facts=None, searches=None):
        self.facts = facts or {}
        self.searches = searches or {}
        self.lookups = []
        self.search_calls = []
        self.closed = False

    def lookup_properties(self, title):
        self.lookups.append(title)
        return self.facts.get(title, EntityFacts())

    def unified_search(self, genres=(), tags=(), actors=(), directors=(), years=()):
        call = {
            name: set(values)
            for name, values in (
                ("genres", genres),
                ("tags", tags),
                ("actors", actors),
                ("directors", directors),
                ("years", years),
            )
            if values
        }
        self.search_calls.append(call)

        titles = set()
        for name, values in call.items():
            for value in values:
                titles |= set(self.searches.get((name, value), ()))
        return titles

    def stats(self):
        return {"queries_sent": len(self.lookups) + len(self.search_calls), "cache_hits": 0}

    def close(self):
        self.closed = True


class RecordingReporter(Reporter):
    def __init__(self):
        self.events = []

    def probe_hit(self, kind, value, title):
        self.events.append(("hit", kind, value, title))

    def aspect_totals(self, totals):
        self.events.append(("totals", dict(totals)))

    def choice(self, title):
        self.events.append(("choice", title))

    def entity_error(self, result):
        self.events.append(("entity_error", result))


class FixedRng:
    """Random source that always returns the same draw."""

    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value


@pytest.fixture
def liked_facts():
    return {
        "Toy Story": EntityFacts(actors=["Tom Hanks", "Tim Allen"], directors=["John Lasseter"]),
        "Jumanji": EntityFacts(actors=["Robin Williams", "Kirsten Dunst"], directors=["Joe Johnston"]),
        "Heat": EntityFacts(actors=["Al Pacino", "Robert De Niro", "Tom Hanks"], directors=["Michael Mann"]),
    }


@pytest.fixture
def make_gateway():
    return FakeGateway


@pytest.fixture
def recording_reporter():
    return RecordingReporter()


@pytest.fixture
def fixed_rng():
    return FixedRng

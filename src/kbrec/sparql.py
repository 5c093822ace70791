"""
Knowledge-graph gateway over a SPARQL endpoint (DBpedia by default).

Two lookups are exposed: per-title actor/director properties, and a unified
multi-criteria film search. Transport or query failures never reach the
caller; they are logged and treated as "no results".
"""
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field

import httpx

from .config import (
    HTTP_TIMEOUT,
    PROPERTY_LOOKUP_LIMIT,
    SEARCH_RESULT_LIMIT,
    SPARQL_ENDPOINT,
    USER_AGENT,
    YEAR_WINDOW,
)
from .titles import clean_label, clean_lookup_title

logger = logging.getLogger(__name__)

PREFIXES = """PREFIX dbo: <http://dbpedia.org/ontology/>
PREFIX rdfs: <http://www.w3.org/2000/01/rdf-schema#>
"""


@dataclass
class EntityFacts:
    """Actor and director labels found for one title."""
    actors: list[str] = field(default_factory=list)
    directors: list[str] = field(default_factory=list)

    def labels(self, kind: str) -> list[str]:
        if kind == "actor":
            return self.actors
        if kind == "director":
            return self.directors
        raise ValueError(f"Unknown entity kind: {kind}")

    @property
    def empty(self) -> bool:
        return not self.actors and not self.directors


def sparql_literal(value: str) -> str:
    """Quote a value as a SPARQL string literal."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f'"{escaped}"'


def year_windows(years, window: int = YEAR_WINDOW) -> list[tuple[int, int]]:
    """Inclusive (low, high) release-year windows, one per target year."""
    return [(year - window, year + window) for year in sorted(set(years))]


def _contains_filter(variable: str, values) -> str:
    clauses = [
        f"CONTAINS(LCASE(STR({variable})), LCASE({sparql_literal(v)}))"
        for v in sorted(set(values))
    ]
    return "FILTER (" + " || ".join(clauses) + ")"


def build_property_query(clean_title: str, limit: int = PROPERTY_LOOKUP_LIMIT) -> str:
    """Query for the actors and directors of films whose label contains the title."""
    return PREFIXES + f"""SELECT ?actorLabel ?directorLabel WHERE {{
  ?film a ?type ;
        rdfs:label ?label .
  FILTER (?type IN (dbo:Film, dbo:Movie))
  FILTER (lang(?label) = 'en')
  FILTER CONTAINS(LCASE(?label), LCASE({sparql_literal(clean_title)}))
  OPTIONAL {{
    ?film dbo:starring ?actor .
    ?actor rdfs:label ?actorLabel .
    FILTER (lang(?actorLabel) = 'en')
  }}
  OPTIONAL {{
    ?film dbo:director ?director .
    ?director rdfs:label ?directorLabel .
    FILTER (lang(?directorLabel) = 'en')
  }}
}}
LIMIT {limit}
"""


def build_search_query(
    genres=(),
    tags=(),
    actors=(),
    directors=(),
    years=(),
    limit: int = SEARCH_RESULT_LIMIT,
) -> str:
    """
    Unified film search.

    Each non-empty field contributes one required block whose filter ORs the
    field's values; fields left empty contribute nothing. Blocks combine with
    AND. Tags match against the film title itself, and every year expands to
    an inclusive window of +/- YEAR_WINDOW.
    """
    blocks = []
    if actors:
        blocks.append(f"""  ?film dbo:starring ?actor .
  ?actor rdfs:label ?actorLabel .
  FILTER (lang(?actorLabel) = 'en')
  {_contains_filter("?actorLabel", actors)}""")
    if directors:
        blocks.append(f"""  ?film dbo:director ?director .
  ?director rdfs:label ?directorLabel .
  FILTER (lang(?directorLabel) = 'en')
  {_contains_filter("?directorLabel", directors)}""")
    if genres:
        blocks.append(f"""  ?film dbo:genre ?genre .
  ?genre rdfs:label ?genreLabel .
  FILTER (lang(?genreLabel) = 'en')
  {_contains_filter("?genreLabel", genres)}""")
    if years:
        ranges = " || ".join(
            f"(YEAR(?releaseDate) >= {low} && YEAR(?releaseDate) <= {high})"
            for low, high in year_windows(years)
        )
        blocks.append(f"""  ?film dbo:releaseDate ?releaseDate .
  FILTER ({ranges})""")
    if tags:
        blocks.append(f"  {_contains_filter('?filmTitle', tags)}")

    body = "\n".join(blocks)
    return PREFIXES + f"""SELECT DISTINCT ?filmTitle WHERE {{
  ?film a ?type ;
        rdfs:label ?filmTitle .
  FILTER (?type IN (dbo:Film, dbo:Movie))
  FILTER (lang(?filmTitle) = 'en')
{body}
}}
LIMIT {limit}
"""


def _check_bindings(bindings) -> None:
    """Raise TypeError unless bindings is a list of {variable: {"value": ...}} rows."""
    if not isinstance(bindings, list):
        raise TypeError("'bindings' is not a list")
    for binding in bindings:
        if not isinstance(binding, dict):
            raise TypeError(f"binding is not an object: {binding!r}")
        for variable, cell in binding.items():
            if not isinstance(cell, dict):
                raise TypeError(f"cell {variable!r} is not an object: {cell!r}")


def _binding_values(payload: dict, variable: str) -> list[str]:
    values = []
    for binding in payload["results"]["bindings"]:
        cell = binding.get(variable)
        if cell and "value" in cell:
            values.append(cell["value"])
    return values


class SparqlGateway:
    """
    Cache-backed access to the knowledge graph.

    ``lookup_properties`` results are cached per original title argument for
    the lifetime of the gateway, empty results included. Concurrent callers
    asking for the same title wait on the single in-flight lookup.
    """

    def __init__(
        self,
        endpoint: str = SPARQL_ENDPOINT,
        timeout: float = HTTP_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.endpoint = endpoint
        self.client = httpx.Client(
            headers={
                "User-Agent": USER_AGENT,
                "Accept": "application/sparql-results+json",
            },
            follow_redirects=True,
            timeout=timeout,
            transport=transport,
        )
        self._cache: dict[str, Future] = {}
        self._lock = threading.Lock()
        self.queries_sent = 0
        self.cache_hits = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self):
        self.client.close()

    def _select(self, query: str) -> dict | None:
        """Run a SELECT query; None on any transport, HTTP or decoding failure."""
        with self._lock:
            self.queries_sent += 1
        try:
            resp = self.client.get(
                self.endpoint,
                params={"query": query, "format": "application/sparql-results+json"},
            )
            resp.raise_for_status()
            payload = resp.json()
            _check_bindings(payload["results"]["bindings"])
            return payload
        except httpx.TimeoutException as e:
            logger.warning(f"SPARQL query timed out against {self.endpoint}: {e}")
        except httpx.HTTPError as e:
            logger.warning(f"SPARQL request failed against {self.endpoint}: {e}")
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Malformed SPARQL response from {self.endpoint}: {e}")
        return None

    def _fetch_properties(self, title: str) -> EntityFacts:
        clean_title = clean_lookup_title(title)
        logger.debug(f"Knowledge graph lookup: {clean_title!r}")

        payload = self._select(build_property_query(clean_title))
        if payload is None:
            logger.warning(f"Property lookup failed for {title!r}")
            return EntityFacts()

        facts = EntityFacts()
        for binding in payload["results"]["bindings"]:
            actor = binding.get("actorLabel", {}).get("value")
            if actor:
                facts.actors.append(clean_label(actor))
            director = binding.get("directorLabel", {}).get("value")
            if director:
                facts.directors.append(clean_label(director))
        return facts

    def lookup_properties(self, title: str) -> EntityFacts:
        """Actors and directors for a title; at most one query per title per gateway."""
        with self._lock:
            future = self._cache.get(title)
            owner = future is None
            if owner:
                future = Future()
                self._cache[title] = future
            else:
                self.cache_hits += 1

        if owner:
            try:
                future.set_result(self._fetch_properties(title))
            except BaseException as exc:
                future.set_exception(exc)
                raise

        return future.result()

    def unified_search(self, genres=(), tags=(), actors=(), directors=(), years=()) -> set[str]:
        """Raw titles of films matching the given criteria (empty field = no filter)."""
        query = build_search_query(genres, tags, actors, directors, years)
        payload = self._select(query)
        if payload is None:
            logger.warning("Unified search failed; treating as no results")
            return set()
        return set(_binding_values(payload, "filmTitle"))

    def stats(self) -> dict[str, int]:
        return {
            "queries_sent": self.queries_sent,
            "cache_hits": self.cache_hits,
            "cached_titles": len(self._cache),
        }

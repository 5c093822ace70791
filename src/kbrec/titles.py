"""
Title and label cleanup rules.

Every place that compares or keys a movie title goes through
``normalize_title``. The other helpers are narrower cleanups used for
building knowledge-graph lookups and for tallying tags and entity labels.
"""
import re

# Trailing RDF language tag, e.g. '@en' or '@en-GB'
_LANGUAGE_MARKER = re.compile(r'@[A-Za-z]{2,3}(?:-[A-Za-z0-9]+)*$')
_SURROUNDING_QUOTES = re.compile(r'^"+|"+$')
_PARENTHETICAL = re.compile(r'\(.*?\)')
_AKA_CLAUSE = re.compile(r'\(a\.k\.a\..*?\)')
_YEAR_PARENTHETICAL = re.compile(r'\(\d{4}\)')
_EMBEDDED_YEAR = re.compile(r'\((\d{4})\)')
_HYPHEN_SUFFIX = re.compile(r'\s*-.*')
_TRAILING_HYPHEN = re.compile(r'-.*')
_THROUGH_LAST_PAREN = re.compile(r'.*\)')
_LEADING_COMMAS = re.compile(r'^,+')
_QUOTED_SPAN = re.compile(r'.*"(.*)".*')
_WHITESPACE = re.compile(r'\s+')


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _normalize_once(title: str) -> str:
    title = _LANGUAGE_MARKER.sub("", title.strip())
    title = _SURROUNDING_QUOTES.sub("", title)
    title = _PARENTHETICAL.sub("", title)
    return _collapse(title)


def normalize_title(title: str | None) -> str:
    """
    Canonical de-duplication key for a movie title.

    Strips a trailing language marker, surrounding quotes and every
    parenthesized substring (alias notes and embedded years alike), then
    collapses whitespace. The rules are applied until the value stops
    changing, so the result is always a fixed point:

        >>> normalize_title('"Toy Story (1995)"@en')
        'Toy Story'
        >>> normalize_title('Toy Story')
        'Toy Story'
    """
    if not title:
        return ""

    current = title
    while True:
        cleaned = _normalize_once(current)
        if cleaned == current:
            return cleaned
        current = cleaned


def strip_parentheticals(title: str) -> str:
    """Remove parenthesized segments only (used for matching local titles)."""
    return _collapse(_PARENTHETICAL.sub("", title))


def clean_tag(tag: str) -> str:
    """
    Cleanup applied to user tags before counting.

    A tag containing a quoted span keeps only the quoted content; anything
    from the first hyphen onwards is dropped ("action - movie" -> "action").
    """
    match = _QUOTED_SPAN.fullmatch(tag)
    if match:
        tag = match.group(1)
    return _HYPHEN_SUFFIX.sub("", tag.strip()).strip()


def clean_liked_title(title: str) -> str:
    """Title used to query facts for a liked movie: no quotes, year or subtitle."""
    title = title.replace('"', "")
    title = _YEAR_PARENTHETICAL.sub("", title)
    title = _HYPHEN_SUFFIX.sub("", title)
    return _collapse(title)


def clean_lookup_title(title: str) -> str:
    """Title sent to the per-title property lookup."""
    title = _AKA_CLAUSE.sub("", title)
    title = _PARENTHETICAL.sub("", title)
    title = _TRAILING_HYPHEN.sub("", title)
    title = title.replace('"', "")
    return _collapse(title)


def clean_label(label: str) -> str:
    """Entity label as returned by the knowledge graph, without quotes or language tag."""
    label = _LANGUAGE_MARKER.sub("", label.strip())
    return _SURROUNDING_QUOTES.sub("", label).strip()


def clean_frequency_key(key: str) -> str:
    """Display key for frequency rankings."""
    key = _THROUGH_LAST_PAREN.sub("", key)
    key = key.replace('"', "").replace("@en", "")
    key = _HYPHEN_SUFFIX.sub("", key)
    key = _LEADING_COMMAS.sub("", key)
    return key.strip()


def extract_year(title: str | None) -> int | None:
    """Release year from a trailing '(YYYY)' in the title, if any."""
    if not title:
        return None
    years = _EMBEDDED_YEAR.findall(title)
    if not years:
        return None
    try:
        return int(years[-1])
    except ValueError:
        return None

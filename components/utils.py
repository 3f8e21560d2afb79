"""Text and date helpers shared by the classifiers, matchers and linkers."""

from __future__ import annotations

import re
import unicodedata
from collections import Counter
from datetime import date, datetime
from typing import Any, Iterable, Optional

SPANISH_DATE_RE = re.compile(r"^\s*(\d{1,2})/(\d{1,2})/(\d{4})\s*$")
EXPEDIENTE_IN_TEXT_RE = re.compile(r"\((\d{3}/\d{6})\)")
TOKEN_SPLIT_RE = re.compile(r"[\s,;]+")

# Common Spanish words excluded from key-term extraction
STOP_WORDS = frozenset({
    "de", "la", "el", "y", "a", "en", "un", "es", "se", "no", "te", "lo",
    "le", "da", "su", "por", "son", "con", "para", "al", "del", "las", "los",
    "una", "como", "pero", "sus", "me", "hasta", "hay", "donde", "han",
    "quien", "estan", "estado", "desde", "todo", "nos", "durante", "todos",
    "uno", "les", "ni", "contra", "otros", "ese", "eso", "ante", "ellos",
    "e", "esto", "mi", "antes", "algunos", "que", "unos", "yo", "otro",
    "otras", "otra", "tanto", "esa", "estos", "mucho", "quienes",
    "nada", "muchos", "cual", "poco", "ella", "estar", "estas", "algunas",
    "algo", "nosotros", "ley", "sobre",
})


def as_text(value: Any) -> str:
    """Coerce a raw feed value to a string ('' for None)."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return " ".join(as_text(v) for v in value)
    return str(value)


def strip_accents(text: str) -> str:
    """Remove combining diacritics (á -> a, ñ -> n)."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(text: Any) -> str:
    """Lower-case, strip accents and collapse whitespace.

    Args:
        text: Raw text (None and non-strings are tolerated)

    Returns:
        Normalized text, '' for empty input
    """
    cleaned = strip_accents(as_text(text)).lower()
    return " ".join(cleaned.split())


def normalize_for_matching(text: Any) -> str:
    """Normalize text and replace punctuation with spaces.

    Used by the similarity matcher so that "Ley 7/2025, de..." and
    "ley 7 2025 de" compare as the same words.
    """
    cleaned = re.sub(r"[^a-z0-9\s]", " ", normalize_text(text))
    return " ".join(cleaned.split())


def includes_any(text: str, keywords: Iterable[str]) -> bool:
    """Return True when any keyword occurs in the normalized text."""
    haystack = normalize_text(text)
    return any(keyword in haystack for keyword in keywords)


def parse_spanish_date(value: Any) -> Optional[date]:
    """Parse a feed date into a date object.

    Accepts DD/MM/YYYY (the feed's format), ISO YYYY-MM-DD, and
    date/datetime instances. Anything else, including impossible calendar
    dates such as 31/02/2024, yields None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = as_text(value).strip()
    if not text:
        return None
    match = SPANISH_DATE_RE.match(text)
    try:
        if match:
            day, month, year = (int(part) for part in match.groups())
            return date(year, month, day)
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def format_spanish_date(value: Optional[date]) -> str:
    """Format a date as DD/MM/YYYY ('' for None)."""
    if value is None:
        return ""
    return value.strftime("%d/%m/%Y")


def split_tokens(value: Any) -> list[str]:
    """Split a cross-reference field into expediente tokens.

    The feed delivers these either as a list or as a single string
    separated by spaces, commas or line breaks.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        tokens: list[str] = []
        for item in value:
            tokens.extend(split_tokens(item))
        return tokens
    return [token for token in TOKEN_SPLIT_RE.split(as_text(value)) if token]


def expedientes_in_text(text: Any) -> list[str]:
    """Find expedientes embedded in titles, e.g. '(621/000016)'."""
    return EXPEDIENTE_IN_TEXT_RE.findall(as_text(text))


def extract_key_terms(text: Any, limit: int = 10) -> list[str]:
    """Extract the most frequent meaningful words from a subject text.

    Args:
        text: Subject or title text
        limit: Maximum number of terms to return

    Returns:
        Terms ordered by frequency, then first appearance
    """
    words = [
        word
        for word in normalize_for_matching(text).split()
        if len(word) > 2 and word not in STOP_WORDS and not word.isdigit()
    ]
    return [word for word, _ in Counter(words).most_common(limit)]

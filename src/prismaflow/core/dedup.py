"""
Dedup key derivation.

DOI is authoritative when present. Otherwise a composite of normalised title,
first author and year is used, which tolerates casing, punctuation,
whitespace and diacritic differences between sources describing the same
work. Retitled preprints are not matched.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any, Mapping

_NON_ALNUM = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def normalize_for_key(value: str) -> str:
    """Strip diacritics, drop non-alphanumerics and lowercase."""
    decomposed = unicodedata.normalize("NFD", value)
    without_marks = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM.sub("", without_marks).lower()


def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def derive_key(record: Any) -> str:
    """
    Map a bibliographic record to a stable dedup key.

    Accepts any object (or mapping) exposing ``doi``, ``title``, ``authors``,
    ``year`` and ``id``.

    Returns:
        ``doi:<doi>`` or ``title:<t>|author:<a>|year:<y>``.
    """
    doi = _field(record, "doi")
    if doi and doi.strip():
        return f"doi:{doi.strip().lower()}"

    title = _field(record, "title")
    if title is None:
        title = _field(record, "id") or ""
    authors = _field(record, "authors") or []
    year = _field(record, "year")

    normalized_title = normalize_for_key(title)
    primary_author = normalize_for_key(authors[0]) if authors else "unknown"
    year_fragment = str(year) if year else "na"
    return f"title:{normalized_title}|author:{primary_author}|year:{year_fragment}"

"""String cleaning applied to citation fields before a registry lookup."""

import re
import unicodedata
from typing import Optional

_IDENTIFIER_MARKERS = ("doi:", "DOI:", "doi/", "DOI/")
_RESOLVER_PREFIX_RE = re.compile(r"^https?://(dx\.)?doi\.org/", re.IGNORECASE)
_RANGE_SEPARATOR_RE = re.compile(r"[-–]+")


def remove_accents(text: str) -> str:
    """Strip diacritics: 'Müller' -> 'Muller'."""
    nfkd = unicodedata.normalize("NFKD", text)
    return "".join(c for c in nfkd if not unicodedata.combining(c))


def clean_identifier(value: Optional[str]) -> Optional[str]:
    """Normalize a raw DOI string as extracted from a document.

    Drops quotes and newlines, a leading ``doi:``/``doi/`` marker or
    resolver URL, and any embedded spaces. Returns None when nothing is left.
    """
    if not value:
        return None
    doi = value.replace('"', "").replace("\n", "").replace("\r", "").strip()
    if doi.startswith(_IDENTIFIER_MARKERS):
        doi = doi[4:].strip()
    doi = _RESOLVER_PREFIX_RE.sub("", doi)
    doi = doi.replace(" ", "")
    return doi or None


def derive_first_page(begin_page: Optional[int], page_range: Optional[str]) -> Optional[str]:
    """First page of an article from an explicit begin page or a page range.

    '123--130' -> '123', '145' -> '145', '12-15-20' -> None.
    """
    if begin_page is not None and begin_page >= 0:
        return str(begin_page)
    if not page_range:
        return None

    tokens = [t.strip() for t in _RANGE_SEPARATOR_RE.split(page_range)]
    tokens = [t for t in tokens if t]
    if len(tokens) in (1, 2):
        return tokens[0]
    return None

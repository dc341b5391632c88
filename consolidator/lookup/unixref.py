"""Decode registry ``unixref`` XML envelopes into BiblioRecords."""

import logging
from typing import Optional
from xml.etree import ElementTree
from xml.etree.ElementTree import Element

from consolidator.core.errors import MalformedResponseError
from consolidator.lookup.models import BiblioRecord

logger = logging.getLogger(__name__)

# Elements that carry the metadata of the work itself, most specific first.
_WORK_TAGS = (
    "journal_article",
    "conference_paper",
    "content_item",
    "posted_content",
    "dataset",
    "book_metadata",
    "book_series_metadata",
)
_CONTAINER_TITLE_PATHS = (
    ".//journal_metadata/full_title",
    ".//proceedings_metadata/proceedings_title",
    ".//series_metadata/titles/title",
)


# ── Public API ───────────────────────────────────────────────────────


def parse_unixref(body: str | bytes) -> list[BiblioRecord]:
    """Decode every ``doi_record`` in a unixref document.

    A record whose body is an ``<error>`` element is returned with
    ``error=True`` so callers can tell a semantic miss from a hit.
    Raises MalformedResponseError when the body is not well-formed XML.
    """
    if isinstance(body, str):
        body = body.encode("utf-8")
    if not body or not body.strip():
        raise MalformedResponseError("Empty response body")

    try:
        root = ElementTree.fromstring(body)
    except ElementTree.ParseError as exc:
        raise MalformedResponseError(f"Unparseable unixref body: {exc}") from exc

    _strip_namespaces(root)

    if root.tag == "doi_record":
        doi_records = [root]
    else:
        doi_records = root.findall(".//doi_record")

    if not doi_records:
        error = root if root.tag == "error" else root.find(".//error")
        if error is not None:
            return [_error_record(error)]
        return []

    records = [_parse_doi_record(rec) for rec in doi_records]
    logger.debug("Decoded %d unixref record(s)", len(records))
    return records


# ── Record Parser ────────────────────────────────────────────────────


def _parse_doi_record(doi_record: Element) -> BiblioRecord:
    crossref = doi_record.find("crossref")
    scope = crossref if crossref is not None else doi_record

    error = scope.find("error")
    if error is not None:
        return _error_record(error)

    work = _find_work(scope)

    authors, first_surname = _parse_contributors(work)

    return BiblioRecord(
        doi=_text(work, "doi_data/doi") or _text(scope, ".//doi_data/doi"),
        url=_text(work, "doi_data/resource") or _text(scope, ".//doi_data/resource"),
        title=_title(work),
        authors=authors,
        first_author_surname=first_surname,
        journal=_first_text(scope, _CONTAINER_TITLE_PATHS),
        abbreviated_journal=_text(scope, ".//journal_metadata/abbrev_title"),
        issn=_text(scope, ".//issn"),
        volume=_text(scope, ".//volume"),
        issue=_text(scope, ".//issue"),
        first_page=_text(work, ".//pages/first_page"),
        last_page=_text(work, ".//pages/last_page"),
        year=_year(work) or _year(scope),
        publisher=_text(scope, ".//publisher/publisher_name"),
    )


def _find_work(scope: Element) -> Element:
    for tag in _WORK_TAGS:
        work = scope.find(f".//{tag}")
        if work is not None:
            return work
    return scope


def _parse_contributors(work: Element) -> tuple[list[str], Optional[str]]:
    """Author display names in order, plus the first author's surname."""
    authors: list[str] = []
    first_surname = None
    fallback_surname = None

    for person in work.findall(".//contributors/person_name"):
        role = person.get("contributor_role", "author")
        if role != "author":
            continue
        surname = _text(person, "surname")
        given = _text(person, "given_name")
        if not surname:
            continue
        authors.append(f"{given} {surname}" if given else surname)
        if fallback_surname is None:
            fallback_surname = surname
        if first_surname is None and person.get("sequence") == "first":
            first_surname = surname

    return authors, first_surname or fallback_surname


def _title(work: Element) -> Optional[str]:
    title = _text(work, "titles/title") or _text(work, ".//titles/title")
    subtitle = _text(work, "titles/subtitle")
    if title and subtitle:
        return f"{title}: {subtitle}"
    return title


def _year(scope: Element) -> Optional[int]:
    raw = _text(scope, "publication_date/year") or _text(scope, ".//publication_date/year")
    if not raw:
        return None
    try:
        return int(raw[:4])
    except ValueError:
        return None


def _error_record(error: Element) -> BiblioRecord:
    message = "".join(error.itertext()).strip() or "unspecified registry error"
    return BiblioRecord(error=True, error_message=message)


# ── XML Helpers ──────────────────────────────────────────────────────


def _strip_namespaces(root: Element) -> None:
    """Rewrite ``{uri}tag`` to ``tag`` in place; unixref ships several schemas."""
    for el in root.iter():
        if isinstance(el.tag, str) and "}" in el.tag:
            el.tag = el.tag.rsplit("}", 1)[1]
        for attr in list(el.attrib):
            if "}" in attr:
                el.attrib[attr.rsplit("}", 1)[1]] = el.attrib.pop(attr)


def _text(scope: Element, path: str) -> Optional[str]:
    el = scope.find(path)
    if el is None:
        return None
    text = " ".join("".join(el.itertext()).split())
    return text or None


def _first_text(scope: Element, paths: tuple[str, ...]) -> Optional[str]:
    for path in paths:
        value = _text(scope, path)
        if value:
            return value
    return None

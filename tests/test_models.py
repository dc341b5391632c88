"""Tests for lookup data models."""

import pytest
from pydantic import ValidationError

from consolidator.lookup.models import (
    BiblioRecord,
    CitationQuery,
    LookupResponse,
    LookupStatus,
    LookupStrategy,
)


# ── CitationQuery ────────────────────────────────────────────────────


def test_query_trims_and_blanks_to_none():
    q = CitationQuery(title="  A title \n", journal="   ", volume=12)
    assert q.title == "A title"
    assert q.journal is None
    assert q.volume == "12"


def test_query_is_immutable():
    q = CitationQuery(title="A")
    with pytest.raises(ValidationError):
        q.title = "B"


def test_effective_volume_falls_back_to_block():
    assert CitationQuery(volume_block="7").effective_volume == "7"
    assert CitationQuery(volume="3", volume_block="7").effective_volume == "3"


def test_begin_page_sentinel():
    assert CitationQuery(begin_page=-1).begin_page is None
    assert CitationQuery(begin_page="12").first_page == "12"


def test_first_page_from_range():
    assert CitationQuery(page_range="123--130").first_page == "123"
    assert CitationQuery(page_range="12-15-20").first_page is None


# ── Strategy Order ───────────────────────────────────────────────────


def test_strategy_declaration_order():
    assert list(LookupStrategy) == [
        LookupStrategy.BY_IDENTIFIER,
        LookupStrategy.BY_AUTHOR_TITLE,
        LookupStrategy.BY_JOURNAL_VOLUME_FIRST_PAGE,
    ]


# ── LookupResponse ───────────────────────────────────────────────────


def test_ok_response_counts_results():
    resp = LookupResponse.ok([BiblioRecord(doi="10.1/a"), BiblioRecord(doi="10.1/b")])
    assert resp.status is LookupStatus.OK
    assert resp.result_count == 2
    assert [r.doi for r in resp.results] == ["10.1/a", "10.1/b"]


def test_failure_response_is_empty():
    resp = LookupResponse.failure(LookupStatus.TRANSPORT_ERROR, "refused")
    assert resp.result_count == 0
    assert resp.results == ()
    assert resp.error_message == "refused"


def test_explicit_result_count_kept():
    resp = LookupResponse(status=LookupStatus.OK, result_count=0, results=(BiblioRecord(),))
    assert resp.result_count == 0


def test_response_is_immutable():
    resp = LookupResponse.ok([])
    with pytest.raises(ValidationError):
        resp.status = LookupStatus.ERROR

"""Shared data models for registry lookups."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from consolidator.lookup.normalize import derive_first_page


# ── Strategies ───────────────────────────────────────────────────────


class LookupStrategy(str, Enum):
    """Registry lookup methods, declared in order of decreasing precision."""

    BY_IDENTIFIER = "by_identifier"
    BY_AUTHOR_TITLE = "by_author_title"
    BY_JOURNAL_VOLUME_FIRST_PAGE = "by_journal_volume_first_page"


# ── Citation Query ───────────────────────────────────────────────────


class CitationQuery(BaseModel):
    """A partially-extracted citation to corroborate against the registry."""

    model_config = ConfigDict(frozen=True)

    doi: Optional[str] = None
    first_author_surname: Optional[str] = None
    title: Optional[str] = None
    journal: Optional[str] = None
    volume: Optional[str] = None
    volume_block: Optional[str] = None
    begin_page: Optional[int] = None
    page_range: Optional[str] = None

    @field_validator(
        "doi",
        "first_author_surname",
        "title",
        "journal",
        "volume",
        "volume_block",
        "page_range",
        mode="before",
    )
    @classmethod
    def trim(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("begin_page", mode="before")
    @classmethod
    def unset_begin_page(cls, v):
        # -1 and friends mean "no explicit begin page"
        if v is None or v == "":
            return None
        v = int(v)
        return v if v >= 0 else None

    @property
    def effective_volume(self) -> Optional[str]:
        return self.volume or self.volume_block

    @property
    def first_page(self) -> Optional[str]:
        return derive_first_page(self.begin_page, self.page_range)


# ── Registry Records ─────────────────────────────────────────────────


class BiblioRecord(BaseModel):
    """One candidate record decoded from a registry response."""

    doi: Optional[str] = None
    title: Optional[str] = None
    authors: list[str] = Field(default_factory=list)
    first_author_surname: Optional[str] = None
    journal: Optional[str] = None
    abbreviated_journal: Optional[str] = None
    issn: Optional[str] = None
    volume: Optional[str] = None
    issue: Optional[str] = None
    first_page: Optional[str] = None
    last_page: Optional[str] = None
    year: Optional[int] = None
    publisher: Optional[str] = None
    url: Optional[str] = None
    error: bool = False
    error_message: Optional[str] = None


class LookupStatus(str, Enum):
    OK = "ok"
    ERROR = "error"
    TRANSPORT_ERROR = "transport_error"
    MALFORMED_RESPONSE = "malformed_response"


class LookupResponse(BaseModel):
    """Result of a single registry lookup, as seen by the classifier."""

    model_config = ConfigDict(frozen=True)

    status: LookupStatus
    error_message: Optional[str] = None
    results: tuple[BiblioRecord, ...] = ()
    result_count: int = Field(default=0, ge=0)

    @model_validator(mode="before")
    @classmethod
    def default_result_count(cls, data):
        if isinstance(data, dict) and data.get("result_count") is None:
            data = {**data, "result_count": len(data.get("results") or ())}
        return data

    @classmethod
    def ok(cls, records: list[BiblioRecord]) -> "LookupResponse":
        return cls(status=LookupStatus.OK, results=tuple(records))

    @classmethod
    def failure(cls, status: LookupStatus, message: str) -> "LookupResponse":
        return cls(status=status, error_message=message)


# ── Outcome ──────────────────────────────────────────────────────────


class ConsolidationOutcome(BaseModel):
    """Terminal result of one consolidation call."""

    matched: bool
    strategy_used: Optional[LookupStrategy] = None
    enriched_records: list[BiblioRecord] = Field(default_factory=list)
    attempted: list[LookupStrategy] = Field(default_factory=list)

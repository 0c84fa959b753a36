"""Data models for the job crawler.

Every source, whatever its native payload looks like, ends up producing
`JobRecord` instances. The schema mirrors the JSON written to disk and served
over HTTP, so field names are part of the public contract.

This file uses Pydantic v2.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class JobRecord(BaseModel):
    """A canonical job listing.

    `title` and `url` are required to be non-empty; `url` must be absolute and
    is the identity used for deduplication.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    company: str = ""
    location: str = ""
    salary: str = ""
    date: Optional[str] = Field(default=None, description="Best-effort posting date as shown by the source.")
    url: str
    page: int = Field(..., ge=1, description="1-based result page the record was found on.")
    source: str = Field(..., description="Source identifier, e.g. '104'.")

    @field_validator("title", "url")
    @classmethod
    def _required_text(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("url")
    @classmethod
    def _absolute_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"not an absolute http(s) url: {v!r}")
        return v

    @field_validator("company", "location", "salary")
    @classmethod
    def _strip(cls, v: str) -> str:
        return (v or "").strip()


class QuerySpec(BaseModel):
    """Per-run query shared by every source."""

    model_config = ConfigDict(frozen=True)

    keyword: str
    page_budget: int = Field(default=1, ge=1)
    inter_page_delay_ms: int = Field(default=700, ge=0)
    debug: bool = False


class CrawlOptions(BaseModel):
    """Everything a single crawl run needs: the query plus which sources to hit."""

    keyword: str
    pages: int = Field(default=1, ge=1)
    delay: int = Field(default=700, ge=0, description="Inter-page delay in milliseconds.")
    providers: List[str] = Field(default_factory=list)
    debug: bool = False
    output: Optional[str] = Field(default=None, description="Output JSON path; None skips writing.")

    def query(self) -> QuerySpec:
        return QuerySpec(
            keyword=self.keyword,
            page_budget=self.pages,
            inter_page_delay_ms=self.delay,
            debug=self.debug,
        )


class StopReason(str, Enum):
    """Why pagination for a source ended."""

    BUDGET_REACHED = "budget_reached"
    EMPTY_PAGE = "empty_page"
    KNOWN_TOTAL_REACHED = "known_total_reached"
    ERROR = "error"
    UNKNOWN_SOURCE = "unknown_source"


class SourceReport(BaseModel):
    """Outcome of one source's pagination loop."""

    source: str
    stop_reason: StopReason
    pages_fetched: int = 0
    records: List[JobRecord] = Field(default_factory=list)
    error: Optional[str] = None


class CrawlResult(BaseModel):
    """Deduplicated records of a run plus the per-source reports."""

    records: List[JobRecord] = Field(default_factory=list)
    reports: List[SourceReport] = Field(default_factory=list)
    raw_count: int = 0


class PageResult(BaseModel):
    """Records extracted from one results page, plus any total-page hint."""

    records: List[JobRecord] = Field(default_factory=list)
    total_pages: Optional[int] = Field(default=None, ge=1)

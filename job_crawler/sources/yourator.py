"""Yourator source connector.

Yourator is a client-rendered app. We open the home page and search like a
visitor would, which makes the front end call its own jobs endpoint; that
response is captured and reused. Pages are also requested from the endpoint
directly, and the rendered job list is scraped as a last resort.
"""

from __future__ import annotations

import logging
from typing import List
from urllib.parse import quote

from ..models import QuerySpec
from ..normalize import FieldMap
from ..session import PageSession
from ..tactics import ApiEndpoint, DomScrape, PassiveCapture, StructuredCall, Tactic
from .base import JobSource

logger = logging.getLogger(__name__)

ORIGIN = "https://www.yourator.co"

SEARCH_INPUTS = (
    'input[name="term"]',
    "input#search-term",
    'form[action="/jobs"] input[type="text"]',
    'form[action="/jobs"] input[name="keyword"]',
)

JOB_ANCHORS = (
    '#normal-jobs a[href^="/companies/"][href*="/jobs/"], '
    '#scroll-monitored-jobs a[href^="/companies/"][href*="/jobs/"]'
)

FIELD_MAP = FieldMap(
    title=("name", "title"),
    company=("company.brand", "company.name", "companyName"),
    location=("location", "city", "company.area"),
    salary=("salary",),
    date=("updatedAt", "publishedAt"),
    url=("path", "url"),
)


def api_url(page: int, query: QuerySpec) -> str:
    return f"{ORIGIN}/api/v4/jobs?term[]={quote(query.keyword)}&page={page}&sort=most_related"


def results_url(page: int, query: QuerySpec) -> str:
    return f"{ORIGIN}/jobs?sort=most_related&term[]={quote(query.keyword)}&page={page}"


class YouratorSource(JobSource):
    """Fetch jobs from Yourator."""

    name = "yourator"
    origin = ORIGIN

    def tactics(self) -> List[Tactic]:
        endpoint = ApiEndpoint(
            source=self.name,
            origin=self.origin,
            url=api_url,
            headers=lambda query: {"Accept": "application/json", "Referer": results_url(1, query)},
            field_map=FIELD_MAP,
            listing_keys=("payload.jobs", "jobs", "data.jobs"),
            total_pages_keys=("payload.totalPage", "totalPage", "meta.totalPages"),
            capture_pattern=r"yourator\.co/api/v\d+/jobs",
        )
        return [
            StructuredCall(endpoint),
            PassiveCapture(endpoint),
            DomScrape(
                source=self.name,
                origin=self.origin,
                listing_url=results_url,
                item_selector=JOB_ANCHORS,
                wait_timeout_ms=8_000,
                network_idle_ms=10_000,
                scroll_rounds=6,
                scroll_pause_ms=800,
            ),
        ]

    def prepare(self, session: PageSession, query: QuerySpec) -> None:
        """Search from the home page; fall back to the results URL."""
        try:
            session.navigate(ORIGIN + "/")
            selector = next((s for s in SEARCH_INPUTS if session.exists(s)), None)
            if selector is not None:
                logger.debug(f"[{self.name}] searching via {selector}")
                session.fill_and_submit(selector, query.keyword)
                session.wait_for_url("**/jobs**", 15_000)
                return
            logger.debug(f"[{self.name}] no search box on home page")
        except Exception as e:
            logger.debug(f"[{self.name}] home page search failed: {e}")

        try:
            session.navigate(results_url(1, query))
        except Exception as e:
            logger.warning(f"[{self.name}] could not open results page: {e}")

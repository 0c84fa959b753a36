"""104 job bank source connector.

104 serves its search results from a JSON endpoint used by its own front end
(`/jobs/search/list`). We call it through the browser session with the
headers the site sends itself; the rendered search page is the fallback.
"""

from __future__ import annotations

from typing import Dict, List
from urllib.parse import quote

from ..models import QuerySpec
from ..normalize import FieldMap
from ..tactics import ApiEndpoint, DomScrape, PassiveCapture, StructuredCall, Tactic
from .base import JobSource

ORIGIN = "https://www.104.com.tw"
USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/118 Safari/537.36"

FIELD_MAP = FieldMap(
    title=("jobName",),
    company=("custName",),
    location=("jobAddrNoDesc", "jobAddress"),
    salary=("salaryDesc", "appearSalary"),
    date=("appearDate",),
    url_template=ORIGIN + "/job/{jobNo}",
)


def api_url(page: int, query: QuerySpec) -> str:
    return (
        f"{ORIGIN}/jobs/search/list?keyword={quote(query.keyword)}"
        f"&page={page}&mode=s&jobsource=2018indexpoc"
    )


def search_url(page: int, query: QuerySpec) -> str:
    return f"{ORIGIN}/jobs/search/?keyword={quote(query.keyword)}&page={page}"


def api_headers(query: QuerySpec) -> Dict[str, str]:
    return {
        "Referer": f"{ORIGIN}/jobs/search/?keyword={quote(query.keyword)}",
        "User-Agent": USER_AGENT,
        "Accept": "application/json, text/plain, */*",
    }


class Provider104Source(JobSource):
    """Fetch jobs from 104 and normalize them."""

    name = "104"
    origin = ORIGIN

    def tactics(self) -> List[Tactic]:
        endpoint = ApiEndpoint(
            source=self.name,
            origin=self.origin,
            url=api_url,
            headers=api_headers,
            field_map=FIELD_MAP,
            listing_keys=("data.list",),
            total_pages_keys=("data.page.totalPage", "data.totalPage"),
            capture_pattern=r"104\.com\.tw/jobs/search/list",
        )
        return [
            StructuredCall(endpoint),
            PassiveCapture(endpoint),
            DomScrape(
                source=self.name,
                origin=self.origin,
                listing_url=search_url,
                item_selector="article.job-list-item",
                link_selector="a.js-job-link",
                keep_query=False,
            ),
        ]

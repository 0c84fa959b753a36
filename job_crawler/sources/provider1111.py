"""1111 job bank source connector.

The search results page is rendered in the browser and read from the DOM;
1111 exposes no listing endpoint we rely on.

URL: https://www.1111.com.tw/search/job?ks=<keyword>&page=<n>
Each result is a `div.job-card` whose job link is `a[href^="/job/"]`.
"""

from __future__ import annotations

from typing import List
from urllib.parse import quote

from ..models import QuerySpec
from ..normalize import pick_date
from ..tactics import DomScrape, Tactic
from .base import JobSource

ORIGIN = "https://www.1111.com.tw"


def search_url(page: int, query: QuerySpec) -> str:
    return f"{ORIGIN}/search/job?ks={quote(query.keyword)}&page={page}"


class Provider1111Source(JobSource):
    """Scrape jobs from 1111 search result cards."""

    name = "1111"
    origin = ORIGIN

    def tactics(self) -> List[Tactic]:
        return [
            DomScrape(
                source=self.name,
                origin=self.origin,
                listing_url=search_url,
                item_selector=".job-card",
                link_selector='a[href^="/job/"]',
                wait_timeout_ms=12_000,
                scroll_rounds=3,
                scroll_pause_ms=700,
                date_picker=pick_date,
            ),
        ]

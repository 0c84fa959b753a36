"""Acquisition tactics for a single results page.

A tactic is a callable `(session, page, query) -> Optional[PageResult]`:

- `StructuredCall` asks the source's listing endpoint directly;
- `PassiveCapture` reuses a listing response the page itself already fetched;
- `DomScrape` reads the rendered results list and classifies its text.

A tactic returns None when it does not apply (nothing captured), an empty
result when the page genuinely holds no listings, and raises on failure.
`run_chain` tries them in order and stops at the first non-empty result.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple
from urllib.parse import parse_qs, urlsplit

from pydantic import ValidationError

from .errors import MalformedPayload, PageRequestFailure
from .models import JobRecord, PageResult, QuerySpec
from .normalize import FieldMap, classify_fragments, normalize_items
from .payload import JsonValue, find_listing, lookup_int
from .session import CapturedResponse, ElementText, PageSession
from .utils import as_int, normalize_url, text_fragments

logger = logging.getLogger(__name__)


class Tactic(Protocol):
    name: str

    def __call__(self, session: PageSession, page: int, query: QuerySpec) -> Optional[PageResult]: ...


@dataclass(frozen=True)
class ApiEndpoint:
    """A source's structured listing endpoint and how to decode its responses."""

    source: str
    origin: str
    url: Callable[[int, QuerySpec], str]
    field_map: FieldMap
    listing_keys: Tuple[str, ...] = ()
    total_pages_keys: Tuple[str, ...] = ()
    headers: Optional[Callable[[QuerySpec], Dict[str, str]]] = None
    capture_pattern: Optional[str] = None
    page_param: str = "page"

    def decode(self, payload: JsonValue, page: int) -> PageResult:
        items = find_listing(payload, self.listing_keys)
        records = normalize_items(items, self.field_map, self.source, page, self.origin)
        if len(records) < len(items):
            logger.debug(f"[{self.source}] page {page}: kept {len(records)}/{len(items)} items")
        return PageResult(records=records, total_pages=lookup_int(payload, self.total_pages_keys))


class StructuredCall:
    """Request the listing endpoint through the session."""

    name = "structured"

    def __init__(self, endpoint: ApiEndpoint) -> None:
        self.endpoint = endpoint

    def __call__(self, session: PageSession, page: int, query: QuerySpec) -> Optional[PageResult]:
        url = self.endpoint.url(page, query)
        headers = self.endpoint.headers(query) if self.endpoint.headers else None
        logger.debug(f"[{self.endpoint.source}] GET {url}")
        resp = session.request(url, headers=headers)
        if not resp.ok:
            raise PageRequestFailure(f"page {page} returned HTTP {resp.status}", status=resp.status)
        return self.endpoint.decode(resp.json(), page)


def page_from_url(url: str, param: str = "page") -> int:
    """Page index carried by a listing request URL; 1 when absent."""
    values = parse_qs(urlsplit(url).query).get(param)
    n = as_int(values[0]) if values else None
    return n or 1


class PassiveCapture:
    """Reuse listing responses observed while the page loads.

    `attach` subscribes to the session's responses; `detach` must run before
    the session is closed.
    """

    name = "passive"

    def __init__(self, endpoint: ApiEndpoint) -> None:
        if not endpoint.capture_pattern:
            raise ValueError(f"{endpoint.source}: passive capture needs a capture_pattern")
        self.endpoint = endpoint
        self._pattern = re.compile(endpoint.capture_pattern)
        self._captured: Dict[int, CapturedResponse] = {}
        self._session: Optional[PageSession] = None

    def attach(self, session: PageSession) -> None:
        self._captured.clear()
        session.on_response(self._on_response)
        self._session = session

    def detach(self) -> None:
        if self._session is not None:
            self._session.off_response(self._on_response)
            self._session = None
        self._captured.clear()

    def _on_response(self, resp: CapturedResponse) -> None:
        if not (200 <= resp.status < 300) or not self._pattern.search(resp.url):
            return
        page = page_from_url(resp.url, self.endpoint.page_param)
        logger.debug(f"[{self.endpoint.source}] captured listing response for page {page}")
        self._captured[page] = resp

    def __call__(self, session: PageSession, page: int, query: QuerySpec) -> Optional[PageResult]:
        resp = self._captured.pop(page, None)
        if resp is None:
            return None
        return self.endpoint.decode(resp.json(), page)


class DomScrape:
    """Scrape the human-facing results list.

    Each element matching `item_selector` becomes one candidate record: its
    visible text is split into fragments for `classify_fragments`, its link
    (the element itself or the first `link_selector` match inside) is the URL.
    """

    name = "dom"

    def __init__(
        self,
        source: str,
        origin: str,
        listing_url: Callable[[int, QuerySpec], str],
        item_selector: str,
        link_selector: Optional[str] = None,
        wait_selector: Optional[str] = None,
        wait_timeout_ms: int = 12_000,
        network_idle_ms: int = 0,
        scroll_rounds: int = 3,
        scroll_pause_ms: int = 700,
        date_picker: Optional[Callable[[Sequence[str]], Optional[str]]] = None,
        keep_query: bool = True,
    ) -> None:
        self.source = source
        self.origin = origin
        self.listing_url = listing_url
        self.item_selector = item_selector
        self.link_selector = link_selector
        self.wait_selector = wait_selector or item_selector
        self.wait_timeout_ms = wait_timeout_ms
        self.network_idle_ms = network_idle_ms
        self.scroll_rounds = scroll_rounds
        self.scroll_pause_ms = scroll_pause_ms
        self.date_picker = date_picker
        self.keep_query = keep_query

    def __call__(self, session: PageSession, page: int, query: QuerySpec) -> Optional[PageResult]:
        url = self.listing_url(page, query)
        if session.url != url:
            logger.debug(f"[{self.source}] navigating to {url}")
            session.navigate(url)
        if self.network_idle_ms:
            session.wait_for_load_state("networkidle", self.network_idle_ms)
        if not session.wait_for_selector(self.wait_selector, self.wait_timeout_ms):
            logger.debug(f"[{self.source}] page {page}: listing did not appear within {self.wait_timeout_ms}ms")

        self._load_lazy_items(session)

        elements = session.query_selector_all_text(self.item_selector, self.link_selector)
        records = [r for r in (self.build_record(el, page) for el in elements) if r is not None]
        logger.debug(f"[{self.source}] page {page}: {len(records)} records from {len(elements)} elements")
        return PageResult(records=records)

    def _load_lazy_items(self, session: PageSession) -> None:
        """Scroll until the item count stops growing or the rounds run out."""
        last = 0
        for _ in range(self.scroll_rounds):
            count = session.count(self.item_selector)
            if count <= last:
                break
            last = count
            session.scroll_to_bottom()
            session.pause(self.scroll_pause_ms)

    def build_record(self, element: ElementText, page: int) -> Optional[JobRecord]:
        fragments = text_fragments(element.text)
        fields = classify_fragments(fragments)
        try:
            return JobRecord(
                title=fields.title,
                company=fields.company,
                location=fields.location,
                salary=fields.salary,
                date=self.date_picker(fragments) if self.date_picker else None,
                url=normalize_url(element.href, self.origin, keep_query=self.keep_query),
                page=page,
                source=self.source,
            )
        except ValidationError:
            return None


def run_chain(
    tactics: Sequence[Tactic],
    session: PageSession,
    page: int,
    query: QuerySpec,
    source: str,
) -> PageResult:
    """Run tactics in order; the first one yielding records wins.

    A malformed payload only moves on to the next tactic and is never raised.
    The page counts as failed (PageRequestFailure) when no tactic produced
    records, at least one raised some other error, and none completed cleanly.
    """
    last_error: Optional[Exception] = None
    completed = False
    total_pages: Optional[int] = None

    for tactic in tactics:
        try:
            result = tactic(session, page, query)
        except MalformedPayload as exc:
            logger.warning(f"[{source}] {tactic.name}: malformed payload on page {page}: {exc}")
            continue
        except Exception as exc:
            logger.warning(f"[{source}] {tactic.name} failed on page {page}: {exc}")
            last_error = exc
            continue

        if result is None:
            continue
        if result.records:
            logger.debug(f"[{source}] page {page}: {len(result.records)} records via {tactic.name}")
            return result
        completed = True
        total_pages = total_pages or result.total_pages

    if last_error is not None and not completed:
        raise PageRequestFailure(f"all tactics failed on page {page}: {last_error}") from last_error
    return PageResult(total_pages=total_pages)


def chain_names(tactics: Sequence[Tactic]) -> List[str]:
    return [t.name for t in tactics]

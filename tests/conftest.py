from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Union

import pytest

from job_crawler.errors import PageRequestFailure
from job_crawler.models import JobRecord, PageResult
from job_crawler.session import CapturedResponse, ElementText, HttpResponse
from job_crawler.sources.base import JobSource


class FakeSession:
    """In-memory PageSession.

    - `responses`: url -> HttpResponse or exception, served by `request`.
    - `pages`: url -> list of ElementText shown after navigating there.
    - `captures`: url -> list of (response url, payload) the page "fetches"
      by itself when navigated to; delivered to `on_response` subscribers.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Union[HttpResponse, Exception]]] = None,
        pages: Optional[Dict[str, List[ElementText]]] = None,
        captures: Optional[Dict[str, List[tuple]]] = None,
        selectors: Optional[List[str]] = None,
        broken_urls: Optional[List[str]] = None,
    ) -> None:
        self.responses = responses or {}
        self.pages = pages or {}
        self.captures = captures or {}
        self.selectors = selectors or []
        self.broken_urls = broken_urls or []
        self.requests: List[str] = []
        self.navigations: List[str] = []
        self.filled: List[tuple] = []
        self.callbacks: List[Any] = []
        self.scrolls = 0
        self.closed = False
        self._url = "about:blank"

    @property
    def url(self) -> str:
        return self._url

    def navigate(self, url, wait_until="domcontentloaded", timeout_ms=60_000):
        self.navigations.append(url)
        if url in self.broken_urls:
            raise PageRequestFailure(f"navigation to {url} timed out")
        self._url = url
        for resp_url, payload in self.captures.get(url, []):
            captured = CapturedResponse(resp_url, 200, lambda p=payload: p)
            for cb in list(self.callbacks):
                cb(captured)

    def request(self, url, headers=None):
        self.requests.append(url)
        resp = self.responses.get(url)
        if isinstance(resp, Exception):
            raise resp
        if resp is None:
            return HttpResponse(status=404, body="", url=url)
        return resp

    def query_selector_all_text(self, selector, link_selector=None):
        return list(self.pages.get(self._url, []))

    def count(self, selector):
        return len(self.pages.get(self._url, []))

    def wait_for_selector(self, selector, timeout_ms):
        return bool(self.pages.get(self._url))

    def wait_for_load_state(self, state, timeout_ms):
        return True

    def wait_for_url(self, pattern, timeout_ms):
        return True

    def scroll_to_bottom(self):
        self.scrolls += 1

    def pause(self, ms):
        pass

    def evaluate(self, script):
        return None

    def exists(self, selector):
        return selector in self.selectors

    def fill_and_submit(self, selector, text):
        self.filled.append((selector, text))

    def content(self):
        return f"<html><!-- {self._url} --></html>"

    def on_response(self, callback):
        self.callbacks.append(callback)

    def off_response(self, callback):
        self.callbacks.remove(callback)

    def close(self):
        self.closed = True


def json_response(payload: Any, status: int = 200, url: str = "") -> HttpResponse:
    return HttpResponse(status=status, body=json.dumps(payload, ensure_ascii=False), url=url)


def make_record(url: str, title: str = "Frontend Engineer", source: str = "fake", page: int = 1) -> JobRecord:
    return JobRecord(title=title, company="ACME", location="台北市", salary="", url=url, page=page, source=source)


class ScriptedSource(JobSource):
    """Source whose pages are scripted: page -> record count or exception."""

    name = "fake"
    origin = "https://jobs.example.com"

    def __init__(self, script: Dict[int, Union[int, Exception]], total_pages: Optional[int] = None, name: str = "fake"):
        self.script = script
        self.total_pages = total_pages
        self.name = name
        self.requested: List[int] = []
        super().__init__()

    def tactics(self):
        return []

    def fetch_page(self, session, page, query):
        self.requested.append(page)
        outcome = self.script.get(page, 0)
        if isinstance(outcome, Exception):
            raise outcome
        records = [
            make_record(f"{self.origin}/{self.name}/job/{page}-{i}", source=self.name, page=page)
            for i in range(outcome)
        ]
        return PageResult(records=records, total_pages=self.total_pages if page == 1 else None)


@contextmanager
def fake_backend(sessions: List[FakeSession]):
    """Session backend yielding FakeSessions and remembering them."""

    def factory():
        s = FakeSession()
        sessions.append(s)
        return s

    yield factory


@pytest.fixture
def fake_session():
    return FakeSession()

"""Page/session capability consumed by the extraction tactics.

Tactics only talk to `PageSession`. Two backends implement it:

- `PlaywrightSession`: a rendered Chromium page (sync Playwright API). Raw
  requests go through `page.request`, so they carry the page's cookies.
- `HttpSession`: a plain `httpx.Client` for browser-less runs. Structured
  calls work, anything needing a DOM raises `SessionUnsupported`.

Browser process lifecycle lives in `launch_browser()`; the crawler itself
only ever asks a factory for a fresh session and closes it afterwards.
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, ContextManager, Dict, Iterator, List, Optional, Protocol

import httpx
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from .errors import MalformedPayload, PageRequestFailure, SessionUnsupported

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"accept-language": "zh-TW,zh;q=0.9"}
BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"]

NAVIGATION_TIMEOUT_MS = 60_000


@dataclass(frozen=True)
class HttpResponse:
    status: int
    body: str
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        try:
            return json.loads(self.body)
        except ValueError as exc:
            raise MalformedPayload(f"response from {self.url or 'request'} is not JSON") from exc


@dataclass(frozen=True)
class ElementText:
    """Visible text of a matched element plus the href of its link, if any."""

    text: str
    href: str = ""


class CapturedResponse:
    """A network response observed on the page, with its body read lazily."""

    def __init__(self, url: str, status: int, loader: Callable[[], Any]) -> None:
        self.url = url
        self.status = status
        self._loader = loader

    def json(self) -> Any:
        try:
            return self._loader()
        except (PlaywrightError, ValueError) as exc:
            raise MalformedPayload(f"captured response {self.url} has no JSON body") from exc


ResponseCallback = Callable[[CapturedResponse], None]


class PageSession(Protocol):
    """Operations the crawler needs from a browsing session."""

    @property
    def url(self) -> str: ...

    def navigate(self, url: str, wait_until: str = "domcontentloaded", timeout_ms: int = NAVIGATION_TIMEOUT_MS) -> None: ...

    def request(self, url: str, headers: Optional[Dict[str, str]] = None) -> HttpResponse: ...

    def query_selector_all_text(self, selector: str, link_selector: Optional[str] = None) -> List[ElementText]: ...

    def count(self, selector: str) -> int: ...

    def wait_for_selector(self, selector: str, timeout_ms: int) -> bool: ...

    def wait_for_load_state(self, state: str, timeout_ms: int) -> bool: ...

    def wait_for_url(self, pattern: str, timeout_ms: int) -> bool: ...

    def scroll_to_bottom(self) -> None: ...

    def pause(self, ms: int) -> None: ...

    def evaluate(self, script: str) -> Any: ...

    def exists(self, selector: str) -> bool: ...

    def fill_and_submit(self, selector: str, text: str) -> None: ...

    def content(self) -> str: ...

    def on_response(self, callback: ResponseCallback) -> None: ...

    def off_response(self, callback: ResponseCallback) -> None: ...

    def close(self) -> None: ...


SessionFactory = Callable[[], PageSession]


# Runs in the page. For anchors the element itself is the link; otherwise the
# first descendant matching `linkSel` (or any a[href]) is used.
_ELEMENTS_JS = """
(els, linkSel) => els.map((el) => {
  let link = null;
  if (el.matches('a[href]') && (!linkSel || el.matches(linkSel))) link = el;
  else link = el.querySelector(linkSel || 'a[href]');
  return {
    text: el.innerText || el.textContent || '',
    href: link ? (link.getAttribute('href') || '') : '',
  };
})
"""


class PlaywrightSession:
    """`PageSession` backed by a Playwright page."""

    def __init__(self, page: Page) -> None:
        self._page = page
        self._listeners: Dict[ResponseCallback, Callable[[Any], None]] = {}

    @property
    def url(self) -> str:
        return self._page.url

    def navigate(self, url: str, wait_until: str = "domcontentloaded", timeout_ms: int = NAVIGATION_TIMEOUT_MS) -> None:
        try:
            resp = self._page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        except PlaywrightError as exc:
            raise PageRequestFailure(f"navigation to {url} failed: {exc}") from exc
        if resp is not None and resp.status >= 400:
            raise PageRequestFailure(f"navigation to {url} returned {resp.status}", status=resp.status)

    def request(self, url: str, headers: Optional[Dict[str, str]] = None) -> HttpResponse:
        try:
            resp = self._page.request.get(url, headers=headers or {})
            return HttpResponse(status=resp.status, body=resp.text(), url=resp.url)
        except PlaywrightError as exc:
            raise PageRequestFailure(f"request to {url} failed: {exc}") from exc

    def query_selector_all_text(self, selector: str, link_selector: Optional[str] = None) -> List[ElementText]:
        rows = self._page.eval_on_selector_all(selector, _ELEMENTS_JS, link_selector)
        return [ElementText(text=r.get("text") or "", href=r.get("href") or "") for r in rows]

    def count(self, selector: str) -> int:
        return self._page.locator(selector).count()

    def wait_for_selector(self, selector: str, timeout_ms: int) -> bool:
        try:
            self._page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    def wait_for_load_state(self, state: str, timeout_ms: int) -> bool:
        try:
            self._page.wait_for_load_state(state, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    def wait_for_url(self, pattern: str, timeout_ms: int) -> bool:
        try:
            self._page.wait_for_url(pattern, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    def scroll_to_bottom(self) -> None:
        self._page.evaluate("() => window.scrollBy(0, document.body.scrollHeight)")

    def pause(self, ms: int) -> None:
        self._page.wait_for_timeout(ms)

    def evaluate(self, script: str) -> Any:
        return self._page.evaluate(script)

    def exists(self, selector: str) -> bool:
        return self._page.query_selector(selector) is not None

    def fill_and_submit(self, selector: str, text: str) -> None:
        self._page.fill(selector, text)
        self._page.keyboard.press("Enter")

    def content(self) -> str:
        return self._page.content()

    def on_response(self, callback: ResponseCallback) -> None:
        def listener(resp: Any) -> None:
            callback(CapturedResponse(resp.url, resp.status, resp.json))

        self._listeners[callback] = listener
        self._page.on("response", listener)

    def off_response(self, callback: ResponseCallback) -> None:
        listener = self._listeners.pop(callback, None)
        if listener is not None:
            self._page.remove_listener("response", listener)

    def close(self) -> None:
        try:
            self._page.close()
        except PlaywrightError as e:
            logger.warning(f"Error closing page: {e}")


class HttpSession:
    """`PageSession` over plain HTTP. No scripts run, so nothing is ever captured."""

    def __init__(self, timeout_s: float = 20.0) -> None:
        self._client = httpx.Client(timeout=timeout_s, follow_redirects=True, headers=DEFAULT_HEADERS)
        self._url = "about:blank"
        self._html = ""

    @property
    def url(self) -> str:
        return self._url

    def navigate(self, url: str, wait_until: str = "domcontentloaded", timeout_ms: int = NAVIGATION_TIMEOUT_MS) -> None:
        resp = self.request(url)
        if not resp.ok:
            raise PageRequestFailure(f"navigation to {url} returned {resp.status}", status=resp.status)
        self._url = resp.url or url
        self._html = resp.body

    def request(self, url: str, headers: Optional[Dict[str, str]] = None) -> HttpResponse:
        try:
            resp = self._client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise PageRequestFailure(f"request to {url} failed: {exc}") from exc
        return HttpResponse(status=resp.status_code, body=resp.text, url=str(resp.url))

    def _unsupported(self, op: str) -> SessionUnsupported:
        return SessionUnsupported(f"{op} needs a rendered page; run with a browser session")

    def query_selector_all_text(self, selector: str, link_selector: Optional[str] = None) -> List[ElementText]:
        raise self._unsupported("query_selector_all_text")

    def count(self, selector: str) -> int:
        raise self._unsupported("count")

    def wait_for_selector(self, selector: str, timeout_ms: int) -> bool:
        return False

    def wait_for_load_state(self, state: str, timeout_ms: int) -> bool:
        return True

    def wait_for_url(self, pattern: str, timeout_ms: int) -> bool:
        return False

    def scroll_to_bottom(self) -> None:
        raise self._unsupported("scroll_to_bottom")

    def pause(self, ms: int) -> None:
        time.sleep(ms / 1000.0)

    def evaluate(self, script: str) -> Any:
        raise self._unsupported("evaluate")

    def exists(self, selector: str) -> bool:
        return False

    def fill_and_submit(self, selector: str, text: str) -> None:
        raise self._unsupported("fill_and_submit")

    def content(self) -> str:
        return self._html

    def on_response(self, callback: ResponseCallback) -> None:
        pass

    def off_response(self, callback: ResponseCallback) -> None:
        pass

    def close(self) -> None:
        self._client.close()


@contextmanager
def launch_browser(headless: bool = True) -> Iterator[SessionFactory]:
    """Launch headless Chromium and yield a factory of fresh, isolated pages."""
    with sync_playwright() as pw:
        browser = pw.chromium.launch(headless=headless, args=BROWSER_ARGS)
        logger.info("Chromium launched")

        def new_session() -> PageSession:
            page = browser.new_page()
            page.set_extra_http_headers(DEFAULT_HEADERS)
            return PlaywrightSession(page)

        try:
            yield new_session
        finally:
            browser.close()
            logger.info("Chromium closed")


@contextmanager
def http_sessions(timeout_s: float = 20.0) -> Iterator[SessionFactory]:
    """Yield a factory of browser-less sessions."""
    yield lambda: HttpSession(timeout_s=timeout_s)


def open_sessions(use_browser: bool = True) -> ContextManager[SessionFactory]:
    """Pick the session backend."""
    return launch_browser() if use_browser else http_sessions()

"""
Tests for the acquisition tactics and the tactic chain, against FakeSession.
"""
import pytest
from conftest import FakeSession, json_response

from job_crawler.errors import PageRequestFailure
from job_crawler.models import PageResult, QuerySpec
from job_crawler.normalize import FieldMap
from job_crawler.session import ElementText, HttpResponse
from job_crawler.tactics import (
    ApiEndpoint,
    DomScrape,
    PassiveCapture,
    StructuredCall,
    page_from_url,
    run_chain,
)

ORIGIN = "https://jobs.example.com"
QUERY = QuerySpec(keyword="前端", page_budget=3, inter_page_delay_ms=0)


def api_url(page, query):
    return f"{ORIGIN}/api/jobs?q={query.keyword}&page={page}"


def listing_url(page, query):
    return f"{ORIGIN}/search?q={query.keyword}&page={page}"


ENDPOINT = ApiEndpoint(
    source="example",
    origin=ORIGIN,
    url=api_url,
    field_map=FieldMap(url_template=ORIGIN + "/job/{id}"),
    listing_keys=("data.list",),
    total_pages_keys=("data.totalPage",),
    capture_pattern=r"jobs\.example\.com/api/jobs",
)


def payload(n, total=None, start=0):
    body = {"data": {"list": [{"title": f"Engineer {i}", "company": "ACME", "id": str(i)} for i in range(start, start + n)]}}
    if total is not None:
        body["data"]["totalPage"] = total
    return body


def dom_scrape(**kwargs):
    return DomScrape(source="example", origin=ORIGIN, listing_url=listing_url, item_selector=".card", **kwargs)


class Named:
    """Tactic stub returning a fixed outcome."""

    def __init__(self, name, outcome):
        self.name = name
        self.outcome = outcome
        self.calls = 0

    def __call__(self, session, page, query):
        self.calls += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def test_structured_call_decodes_listing():
    session = FakeSession(responses={api_url(1, QUERY): json_response(payload(3, total=4))})
    result = StructuredCall(ENDPOINT)(session, 1, QUERY)
    assert [r.url for r in result.records] == [f"{ORIGIN}/job/0", f"{ORIGIN}/job/1", f"{ORIGIN}/job/2"]
    assert result.total_pages == 4
    assert all(r.page == 1 and r.source == "example" for r in result.records)


def test_structured_call_non_2xx_is_failure():
    session = FakeSession(responses={api_url(1, QUERY): HttpResponse(status=403, body="forbidden")})
    with pytest.raises(PageRequestFailure) as exc:
        StructuredCall(ENDPOINT)(session, 1, QUERY)
    assert exc.value.status == 403


def test_passive_capture_reuses_observed_payload():
    capture = PassiveCapture(ENDPOINT)
    session = FakeSession(
        captures={listing_url(2, QUERY): [(api_url(2, QUERY), payload(2, start=10))]}
    )
    capture.attach(session)
    assert capture(session, 2, QUERY) is None

    session.navigate(listing_url(2, QUERY))
    result = capture(session, 2, QUERY)
    assert [r.url for r in result.records] == [f"{ORIGIN}/job/10", f"{ORIGIN}/job/11"]
    assert session.requests == []

    capture.detach()
    assert session.callbacks == []


def test_passive_capture_drops_items_without_title_or_url():
    items = [
        {"title": "Engineer 1", "company": "ACME", "id": "1"},
        {"title": "Engineer 2", "company": "ACME"},
        {"title": "   ", "company": "ACME", "id": "3"},
        {"company": "ACME", "id": "4"},
    ]
    capture = PassiveCapture(ENDPOINT)
    session = FakeSession(captures={listing_url(1, QUERY): [(api_url(1, QUERY), {"data": {"list": items}})]})
    capture.attach(session)
    session.navigate(listing_url(1, QUERY))
    result = capture(session, 1, QUERY)
    capture.detach()

    assert [(r.title, r.url) for r in result.records] == [("Engineer 1", f"{ORIGIN}/job/1")]


def test_passive_capture_ignores_other_responses():
    capture = PassiveCapture(ENDPOINT)
    session = FakeSession(captures={listing_url(1, QUERY): [(f"{ORIGIN}/api/ads?page=1", payload(1))]})
    capture.attach(session)
    session.navigate(listing_url(1, QUERY))
    assert capture(session, 1, QUERY) is None
    capture.detach()


def test_page_from_url():
    assert page_from_url("https://x.example.com/api?page=3") == 3
    assert page_from_url("https://x.example.com/api") == 1
    assert page_from_url("https://x.example.com/api?p=4", param="p") == 4


def test_dom_scrape_classifies_and_filters():
    session = FakeSession(
        pages={
            listing_url(1, QUERY): [
                ElementText("前端工程師 (Frontend Engineer)\nACME Studio\n台北市\n月薪 60,000 - 80,000", "/job/1"),
                ElementText("Backend Engineer\nFoo Inc.", ""),
                ElementText("", "/job/3"),
            ]
        }
    )
    result = dom_scrape()(session, 1, QUERY)
    assert len(result.records) == 1
    rec = result.records[0]
    assert rec.title == "前端工程師 (Frontend Engineer)"
    assert rec.company == "ACME Studio"
    assert rec.location == "台北市"
    assert rec.salary == "月薪 60,000 - 80,000"
    assert rec.url == f"{ORIGIN}/job/1"
    assert session.navigations == [listing_url(1, QUERY)]


def test_dom_scrape_skips_navigation_when_already_there():
    session = FakeSession(pages={listing_url(1, QUERY): [ElementText("Data Engineer", "/job/9")]})
    session.navigate(listing_url(1, QUERY))
    dom_scrape()(session, 1, QUERY)
    assert session.navigations == [listing_url(1, QUERY)]


def test_dom_scroll_stops_when_count_stops_growing():
    session = FakeSession(pages={listing_url(1, QUERY): [ElementText("QA Engineer", "/job/1")]})
    dom_scrape(scroll_rounds=6)(session, 1, QUERY)
    # one scroll after the first count, then the unchanged count ends the loop
    assert session.scrolls == 1


def test_dom_scrape_date_picker():
    session = FakeSession(pages={listing_url(1, QUERY): [ElementText("QA Engineer\n09 / 17", "/job/1")]})
    from job_crawler.normalize import pick_date

    result = dom_scrape(date_picker=pick_date)(session, 1, QUERY)
    assert result.records[0].date == "09/17"


def test_chain_first_non_empty_wins():
    records = StructuredCall(ENDPOINT)(
        FakeSession(responses={api_url(1, QUERY): json_response(payload(1))}), 1, QUERY
    ).records
    first = Named("first", PageResult(records=records))
    second = Named("second", PageResult(records=records))
    result = run_chain([first, second], FakeSession(), 1, QUERY, "example")
    assert result.records == records
    assert second.calls == 0


def test_chain_falls_back_after_failure():
    session = FakeSession(
        responses={api_url(1, QUERY): PageRequestFailure("timeout")},
        pages={listing_url(1, QUERY): [ElementText("Data Engineer\nACME", "/job/5")]},
    )
    result = run_chain(
        [StructuredCall(ENDPOINT), PassiveCapture(ENDPOINT), dom_scrape()], session, 1, QUERY, "example"
    )
    assert [r.url for r in result.records] == [f"{ORIGIN}/job/5"]


def test_chain_falls_back_after_malformed_payload():
    session = FakeSession(
        responses={api_url(1, QUERY): HttpResponse(status=200, body="<html>captcha</html>")},
        pages={listing_url(1, QUERY): [ElementText("Data Engineer", "/job/5")]},
    )
    result = run_chain([StructuredCall(ENDPOINT), dom_scrape()], session, 1, QUERY, "example")
    assert len(result.records) == 1


def test_chain_malformed_only_is_empty_not_error():
    session = FakeSession(responses={api_url(1, QUERY): json_response({"error": "blocked"})})
    result = run_chain([StructuredCall(ENDPOINT)], session, 1, QUERY, "example")
    assert result.records == []


def test_chain_all_failed_raises():
    boom = Named("dom", RuntimeError("browser crashed"))
    session = FakeSession(responses={api_url(1, QUERY): PageRequestFailure("timeout")})
    with pytest.raises(PageRequestFailure):
        run_chain([StructuredCall(ENDPOINT), boom], session, 1, QUERY, "example")


def test_chain_clean_empty_beats_failure():
    session = FakeSession(responses={api_url(1, QUERY): json_response(payload(0))})
    boom = Named("dom", RuntimeError("browser crashed"))
    result = run_chain([StructuredCall(ENDPOINT), boom], session, 1, QUERY, "example")
    assert result.records == []
    assert boom.calls == 1

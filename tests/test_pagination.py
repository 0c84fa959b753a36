"""
Tests for the per-source page loop.
"""
from conftest import FakeSession, ScriptedSource, json_response

from job_crawler.errors import PageRequestFailure
from job_crawler.models import QuerySpec, StopReason
from job_crawler.pagination import paginate
from job_crawler.sources.provider104 import Provider104Source, api_url, search_url


def query(pages, delay_ms=0, debug=False):
    return QuerySpec(keyword="前端工程師", page_budget=pages, inter_page_delay_ms=delay_ms, debug=debug)


class Sleeps(list):
    def __call__(self, seconds):
        self.append(seconds)


def test_empty_page_stops_even_with_budget_left():
    source = ScriptedSource({1: 5, 2: 0, 3: 5})
    report = paginate(source, FakeSession(), query(5), sleep=Sleeps())
    assert len(report.records) == 5
    assert source.requested == [1, 2]
    assert report.stop_reason == StopReason.EMPTY_PAGE
    assert report.pages_fetched == 1


def test_learned_total_pages_stops_before_budget():
    source = ScriptedSource({p: 3 for p in range(1, 11)}, total_pages=2)
    report = paginate(source, FakeSession(), query(10), sleep=Sleeps())
    assert source.requested == [1, 2]
    assert len(report.records) == 6
    assert report.stop_reason == StopReason.KNOWN_TOTAL_REACHED


def test_budget_reached():
    source = ScriptedSource({p: 2 for p in range(1, 10)})
    report = paginate(source, FakeSession(), query(3), sleep=Sleeps())
    assert source.requested == [1, 2, 3]
    assert report.stop_reason == StopReason.BUDGET_REACHED
    assert [r.page for r in report.records] == [1, 1, 2, 2, 3, 3]


def test_failure_keeps_earlier_pages_and_does_not_retry():
    source = ScriptedSource({1: 4, 2: PageRequestFailure("timeout"), 3: 4})
    report = paginate(source, FakeSession(), query(5), sleep=Sleeps())
    assert len(report.records) == 4
    assert source.requested == [1, 2]
    assert report.stop_reason == StopReason.ERROR
    assert "timeout" in report.error


def test_failure_on_first_page():
    source = ScriptedSource({1: PageRequestFailure("HTTP 503")})
    report = paginate(source, FakeSession(), query(2), sleep=Sleeps())
    assert report.records == []
    assert report.stop_reason == StopReason.ERROR


def test_sleeps_only_between_pages():
    sleeps = Sleeps()
    paginate(ScriptedSource({1: 1, 2: 1, 3: 1}), FakeSession(), query(3, delay_ms=700), sleep=sleeps)
    assert sleeps == [0.7, 0.7]


def test_debug_dump_on_empty_page():
    dumps = []

    class Sink:
        def dump(self, source, tag, content):
            dumps.append((source, tag))

    paginate(ScriptedSource({1: 1, 2: 0}), FakeSession(), query(3, debug=True), sleep=Sleeps(), debug_sink=Sink())
    assert dumps == [("fake", "p2-empty")]


def test_broken_debug_sink_does_not_affect_results():
    class Sink:
        def dump(self, source, tag, content):
            raise OSError("disk full")

    report = paginate(
        ScriptedSource({1: PageRequestFailure("x")}), FakeSession(), query(1, debug=True), sleep=Sleeps(), debug_sink=Sink()
    )
    assert report.stop_reason == StopReason.ERROR


def test_capture_subscription_released_on_error():
    q = query(3)
    page1 = {"data": {"list": [{"jobName": "前端工程師", "custName": "ACME", "jobNo": "1"}], "page": {"totalPage": 9}}}
    session = FakeSession(
        responses={api_url(1, q): json_response(page1)},
        broken_urls=[search_url(2, q)],
    )
    report = paginate(Provider104Source(), session, q, sleep=Sleeps())
    assert [r.url for r in report.records] == ["https://www.104.com.tw/job/1"]
    assert report.stop_reason == StopReason.ERROR
    assert session.callbacks == []

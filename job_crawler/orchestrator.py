"""Runs the configured sources one after another and merges their output.

Each source gets its own fresh session, closed when the source finishes
however it finishes. A failing or unknown source is reported and skipped;
it never aborts the others. Only one run may be active per `Crawler`.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, ContextManager, List, Mapping, Optional

from .debug import DebugSink
from .dedupe import dedupe_by_url
from .errors import RunAlreadyInProgress, UnknownSource
from .models import CrawlOptions, CrawlResult, JobRecord, QuerySpec, SourceReport, StopReason
from .output import save_jobs
from .pagination import paginate
from .registry import REGISTRY, SourceDescriptor, resolve
from .session import PageSession, SessionFactory, open_sessions

logger = logging.getLogger(__name__)

SessionBackend = Callable[[], ContextManager[SessionFactory]]


class Crawler:
    """Single-flight crawl runner.

    Args:
        sessions: opens the session backend for a run and yields a factory
            of fresh sessions (e.g. `lambda: open_sessions(use_browser=True)`).
        registry: source table to resolve provider names against.
        sleep: inter-page sleep, injectable for tests.
        debug_sink: receives raw page dumps on debug runs.
    """

    def __init__(
        self,
        sessions: Optional[SessionBackend] = None,
        registry: Mapping[str, SourceDescriptor] = REGISTRY,
        sleep: Callable[[float], None] = time.sleep,
        debug_sink: Optional[DebugSink] = None,
    ) -> None:
        self._sessions = sessions or (lambda: open_sessions(use_browser=True))
        self._registry = registry
        self._sleep = sleep
        self._debug_sink = debug_sink
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def run(self, options: CrawlOptions) -> CrawlResult:
        """Crawl every configured source and return deduplicated records.

        Raises:
            RunAlreadyInProgress: another run on this crawler has not finished.
        """
        if not self._lock.acquire(blocking=False):
            raise RunAlreadyInProgress("a crawl run is already in progress")
        try:
            return self._run(options)
        finally:
            self._lock.release()

    def _run(self, options: CrawlOptions) -> CrawlResult:
        query = options.query()
        logger.info(
            f'keyword="{query.keyword}" pages={query.page_budget} delay={query.inter_page_delay_ms} '
            f"providers={','.join(options.providers)} debug={query.debug}"
        )
        reports: List[SourceReport] = []
        collected: List[JobRecord] = []

        try:
            with self._sessions() as new_session:
                for name in options.providers:
                    report = self._run_source(name, new_session, query)
                    reports.append(report)
                    collected.extend(report.records)
        except Exception as e:
            logger.exception(f"Session backend failed: {e}")

        records = dedupe_by_url(collected)
        logger.info(f"[SUMMARY] raw={len(collected)} deduped={len(records)}")
        return CrawlResult(records=records, reports=reports, raw_count=len(collected))

    def _run_source(self, name: str, new_session: SessionFactory, query: QuerySpec) -> SourceReport:
        descriptor = resolve(name, self._registry)
        if descriptor is None:
            logger.warning(f"{UnknownSource(name)} (skipped)")
            return SourceReport(source=name, stop_reason=StopReason.UNKNOWN_SOURCE, error=f"unknown source: {name}")

        logger.info(f"[{name}] starting")
        session: Optional[PageSession] = None
        try:
            source = descriptor.factory()
            session = new_session()
            report = paginate(source, session, query, sleep=self._sleep, debug_sink=self._debug_sink)
        except Exception as e:
            logger.exception(f"[{name}] aborted: {e}")
            report = SourceReport(source=name, stop_reason=StopReason.ERROR, error=str(e))
        finally:
            if session is not None:
                self._close(name, session)

        logger.info(
            f"[{name}] returned {len(report.records)} records "
            f"({report.pages_fetched} pages, stop={report.stop_reason.value})"
        )
        return report

    @staticmethod
    def _close(name: str, session: PageSession) -> None:
        """Close a source's session; a failing close never costs its records."""
        try:
            session.close()
        except Exception as e:
            logger.warning(f"[{name}] error closing session: {e}")


def run_crawler(options: CrawlOptions, crawler: Crawler) -> CrawlResult:
    """Run `crawler` and write the records to `options.output` when set."""
    result = crawler.run(options)
    if options.output:
        try:
            path = save_jobs(options.output, result.records)
            logger.info(f"Wrote {len(result.records)} jobs to: {path}")
        except OSError as e:
            logger.error(f"Failed to write {options.output}: {e}")
    return result

"""Per-source page loop.

Pages are requested one after another starting at 1. The loop stops when:

- a page yields no records (even with budget left);
- the total page count reported by the first successful page is reached;
- the caller's page budget is reached;
- a page fails. Records from earlier pages are kept; nothing is retried.

Between pages the loop sleeps for the configured inter-page delay.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from .debug import DebugSink, dump_page
from .errors import CrawlerError
from .models import JobRecord, QuerySpec, SourceReport, StopReason
from .session import PageSession
from .sources.base import JobSource

logger = logging.getLogger(__name__)


def paginate(
    source: JobSource,
    session: PageSession,
    query: QuerySpec,
    sleep: Callable[[float], None] = time.sleep,
    debug_sink: Optional[DebugSink] = None,
) -> SourceReport:
    """Drive `source` through its result pages and report why it stopped."""
    records: List[JobRecord] = []
    total_pages: Optional[int] = None
    pages_fetched = 0
    error: Optional[str] = None
    sink = debug_sink if query.debug else None

    with source.open(session, query):
        page = 1
        while True:
            try:
                result = source.fetch_page(session, page, query)
            except CrawlerError as exc:
                logger.warning(f"[{source.name}] page {page} failed, stopping: {exc}")
                dump_page(sink, session, source.name, f"p{page}-error")
                stop, error = StopReason.ERROR, str(exc)
                break

            if not result.records:
                logger.info(f"[{source.name}] page {page} is empty, stopping")
                dump_page(sink, session, source.name, f"p{page}-empty")
                stop = StopReason.EMPTY_PAGE
                break

            records.extend(result.records)
            pages_fetched += 1
            logger.info(f"[{source.name}] page {page}: {len(result.records)} records")

            if pages_fetched == 1 and result.total_pages is not None:
                total_pages = result.total_pages
                logger.debug(f"[{source.name}] total pages={total_pages}")

            if total_pages is not None and page >= total_pages:
                stop = StopReason.KNOWN_TOTAL_REACHED
                break
            if page >= query.page_budget:
                stop = StopReason.BUDGET_REACHED
                break

            sleep(query.inter_page_delay_ms / 1000.0)
            page += 1

    return SourceReport(
        source=source.name,
        stop_reason=stop,
        pages_fetched=pages_fetched,
        records=records,
        error=error,
    )

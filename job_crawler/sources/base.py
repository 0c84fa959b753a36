"""Base classes for source connectors."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List

from ..models import PageResult, QuerySpec
from ..session import PageSession
from ..tactics import PassiveCapture, Tactic, chain_names, run_chain

logger = logging.getLogger(__name__)


class JobSource(ABC):
    """Abstract base class for a job source connector.

    A source is built fresh for every run, so tactics may hold per-run state
    (captured responses).
    """

    name: str
    origin: str

    def __init__(self) -> None:
        self.chain: List[Tactic] = list(self.tactics())

    @abstractmethod
    def tactics(self) -> List[Tactic]:
        """Ordered acquisition tactics tried for every page."""
        raise NotImplementedError

    def prepare(self, session: PageSession, query: QuerySpec) -> None:
        """Hook run once per run, before page 1 is requested."""

    @contextmanager
    def open(self, session: PageSession, query: QuerySpec) -> Iterator["JobSource"]:
        """Subscribe passive captures to `session` for the duration of the block."""
        captures = [t for t in self.chain if isinstance(t, PassiveCapture)]
        for capture in captures:
            capture.attach(session)
        logger.debug(f"[{self.name}] tactic chain: {', '.join(chain_names(self.chain))}")
        try:
            self.prepare(session, query)
            yield self
        finally:
            for capture in captures:
                capture.detach()

    def fetch_page(self, session: PageSession, page: int, query: QuerySpec) -> PageResult:
        """Extract one results page; raises PageRequestFailure if every tactic failed."""
        return run_chain(self.chain, session, page, query, self.name)

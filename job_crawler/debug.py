"""Raw page dumps for diagnosing extraction problems (debug runs only)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol

from .session import PageSession

logger = logging.getLogger(__name__)


class DebugSink(Protocol):
    def dump(self, source: str, tag: str, content: str) -> None: ...


class FileDebugSink:
    """Writes `debug-<source>-<tag>.html` files into a directory."""

    def __init__(self, directory: str = ".") -> None:
        self.directory = Path(directory).expanduser()

    def dump(self, source: str, tag: str, content: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"debug-{source}-{tag}.html"
        path.write_text(content, encoding="utf-8")
        logger.debug(f"[{source}] wrote {path}")


def dump_page(sink: Optional[DebugSink], session: PageSession, source: str, tag: str) -> None:
    """Dump the session's current content. Failures never affect the crawl."""
    if sink is None:
        return
    try:
        sink.dump(source, tag, session.content())
    except Exception as e:
        logger.debug(f"[{source}] debug dump {tag} failed: {e}")

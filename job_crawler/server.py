"""HTTP wrapper around the crawler.

Endpoints:
    POST /crawl   run a crawl (409 while another run is active); output paths
                  are confined to the configured output directory
    GET  /health  liveness plus metadata of the last run
    GET  /last    the last written output file

Run with `job-crawler-server` or `uvicorn job_crawler.server:app`.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .config import get_settings, merge_options, setup_logging
from .debug import FileDebugSink
from .errors import RunAlreadyInProgress
from .orchestrator import Crawler, run_crawler
from .session import open_sessions

logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title="job-crawler")

crawler = Crawler(
    sessions=lambda: open_sessions(use_browser=settings.use_browser),
    debug_sink=FileDebugSink(settings.debug_dir),
)

_last_meta: Optional[Dict[str, Any]] = None


class CrawlRequest(BaseModel):
    keyword: Optional[str] = None
    pages: Optional[int] = None
    delay: Optional[int] = None
    providers: Optional[Union[str, List[str]]] = None
    debug: Optional[bool] = None
    output: Optional[str] = None


def _busy() -> JSONResponse:
    return JSONResponse(status_code=409, content={"ok": False, "message": "crawler is already running"})


def resolve_output(requested: Optional[str]) -> str:
    """Map a requested output path into the configured output directory.

    None means the configured file, "" disables writing. Relative paths are
    taken from the output directory; anything resolving outside it raises
    ValueError.
    """
    if requested == "":
        return ""
    default = Path(settings.output).expanduser().resolve()
    if requested is None:
        return str(default)
    target = (default.parent / Path(requested).expanduser()).resolve()
    if not target.is_relative_to(default.parent):
        raise ValueError(f"output must stay inside {default.parent}")
    return str(target)


@app.post("/crawl")
def crawl(body: Optional[CrawlRequest] = None):
    global _last_meta
    if crawler.running:
        return _busy()

    partial = body.model_dump(exclude_none=True) if body else {}
    try:
        partial["output"] = resolve_output(partial.get("output"))
    except ValueError as e:
        return JSONResponse(status_code=400, content={"ok": False, "error": str(e)})

    started = time.monotonic()
    try:
        options = merge_options(partial)
        result = run_crawler(options, crawler)
    except RunAlreadyInProgress:
        return _busy()
    except Exception as e:
        logger.exception(f"Crawl failed: {e}")
        return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})

    data = [r.model_dump(mode="json") for r in result.records]
    _last_meta = {"at": datetime.now(timezone.utc).isoformat(), "count": len(data)}
    return {
        "ok": True,
        "durationMs": int((time.monotonic() - started) * 1000),
        "count": len(data),
        "data": data,
        "sources": [
            {
                "source": r.source,
                "stop": r.stop_reason.value,
                "pages": r.pages_fetched,
                "count": len(r.records),
                "error": r.error,
            }
            for r in result.reports
        ],
    }


@app.get("/health")
def health():
    return {"ok": True, "running": crawler.running, "last": _last_meta}


@app.get("/last")
def last():
    path = Path(settings.output)
    if not path.exists():
        return JSONResponse(status_code=404, content={"ok": False, "message": "output file does not exist"})
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})
    return Response(content=text, media_type="application/json; charset=utf-8")


def main() -> None:
    setup_logging(settings.level)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()

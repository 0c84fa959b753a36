"""Writing crawl results to disk."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

from .models import JobRecord


def save_jobs(path: str, records: Iterable[JobRecord]) -> Path:
    """Write records as a pretty-printed JSON array and return the resolved path."""
    out_path = Path(path).expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)

    # mode="json" keeps the output identical to what the HTTP API returns
    data = [r.model_dump(mode="json") for r in records]
    out_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    return out_path

"""Cross-source deduplication."""

from __future__ import annotations

from typing import Iterable, List

from .models import JobRecord


def dedupe_by_url(records: Iterable[JobRecord]) -> List[JobRecord]:
    """Keep the first record seen for each url, preserving order."""
    seen = set()
    out: List[JobRecord] = []
    for rec in records:
        if rec.url in seen:
            continue
        seen.add(rec.url)
        out.append(rec)
    return out

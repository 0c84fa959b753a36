"""Utility helpers shared across the crawler."""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional, Sequence
from urllib.parse import urljoin, urlsplit, urlunsplit

_WS_RE = re.compile(r"\s+")


def collapse_ws(text: str) -> str:
    """Collapse runs of whitespace into single spaces and strip."""
    return _WS_RE.sub(" ", text or "").strip()


def uniq_preserve_order(items: Iterable[str]) -> List[str]:
    """Deduplicate while preserving first-seen order. Empty items are dropped."""
    seen = set()
    out: List[str] = []
    for it in items:
        if not it or it in seen:
            continue
        seen.add(it)
        out.append(it)
    return out


def text_fragments(text: str) -> List[str]:
    """Split rendered element text into ordered, distinct, whitespace-normalized lines."""
    return uniq_preserve_order(collapse_ws(line) for line in (text or "").splitlines())


def normalize_url(href: str, origin: str, keep_query: bool = True) -> str:
    """Resolve `href` against `origin` and normalize it.

    Scheme and host are lowercased, the fragment is dropped and, unless
    `keep_query` is set, so is the query string. Returns "" for empty or
    non-http(s) links.
    """
    href = (href or "").strip()
    if not href:
        return ""
    parts = urlsplit(urljoin(origin, href))
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return ""
    query = parts.query if keep_query else ""
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", query, ""))


def get_path(obj: Any, path: str) -> Any:
    """Follow a dotted key path (`"data.page.totalPage"`) through nested dicts.

    Returns None as soon as a step is missing or not a dict.
    """
    cur = obj
    for key in path.split("."):
        if not isinstance(cur, dict) or key not in cur:
            return None
        cur = cur[key]
    return cur


def first_text(obj: Any, paths: Sequence[str]) -> str:
    """Return the first non-empty scalar found at any of `paths`, as text."""
    for path in paths:
        val = get_path(obj, path)
        if isinstance(val, bool) or val is None:
            continue
        if isinstance(val, (int, float)):
            return str(val)
        if isinstance(val, str) and val.strip():
            return collapse_ws(val)
    return ""


def as_int(val: Any) -> Optional[int]:
    """Best-effort positive integer conversion; None when not applicable."""
    if isinstance(val, bool):
        return None
    if isinstance(val, int):
        return val if val > 0 else None
    if isinstance(val, float):
        return int(val) if val >= 1 else None
    if isinstance(val, str) and val.strip().isdigit():
        n = int(val.strip())
        return n if n > 0 else None
    return None

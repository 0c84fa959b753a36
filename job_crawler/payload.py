"""Locating the listing array inside a structured (JSON) response.

Job boards wrap their results in varying envelopes (`data.list`,
`payload.jobs`, a bare list, ...). Lookup happens in two ranks:

1. explicit dotted key paths declared by the source, in order;
2. a breadth-first walk of the JSON tree, bounded in depth, returning the
   first list whose first element looks like a job item.
"""

from __future__ import annotations

import re
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple, Union

from .errors import MalformedPayload
from .utils import as_int, get_path

JsonValue = Union[Dict[str, Any], List[Any], str, int, float, bool, None]

MAX_SEARCH_DEPTH = 5
JOB_KEY_RE = re.compile(r"(name|title|company|job)", re.IGNORECASE)


def looks_like_job(item: Any) -> bool:
    """True for a dict carrying at least one name/title/company-like key."""
    return isinstance(item, dict) and any(JOB_KEY_RE.search(str(k)) for k in item)


def _is_listing(val: Any) -> bool:
    return isinstance(val, list) and len(val) > 0 and looks_like_job(val[0])


def _children(node: JsonValue) -> List[Any]:
    if isinstance(node, dict):
        return list(node.values())
    if isinstance(node, list):
        return list(node)
    return []


def search_listing(payload: JsonValue, max_depth: int = MAX_SEARCH_DEPTH) -> Optional[List[Any]]:
    """Breadth-first search for the first job-shaped list, at most `max_depth` levels down."""
    queue: Deque[Tuple[Any, int]] = deque([(payload, 0)])
    while queue:
        node, depth = queue.popleft()
        if _is_listing(node):
            return node
        if depth >= max_depth:
            continue
        for child in _children(node):
            if isinstance(child, (dict, list)):
                queue.append((child, depth + 1))
    return None


def find_listing(
    payload: JsonValue,
    keys: Sequence[str] = (),
    max_depth: int = MAX_SEARCH_DEPTH,
) -> List[Any]:
    """Return the listing array of a structured response.

    Ranked `keys` win when they resolve to a list of dicts. An explicit key
    resolving to an empty list is an authoritative "no results" and is
    returned as such.

    Raises:
        MalformedPayload: no listing array could be located.
    """
    for path in keys:
        val = payload if path == "" else get_path(payload, path)
        if isinstance(val, list) and (not val or isinstance(val[0], dict)):
            return val

    found = search_listing(payload, max_depth)
    if found is None:
        raise MalformedPayload(f"no listing array found (probed keys={list(keys)})")
    return found


def lookup_int(payload: JsonValue, paths: Sequence[str]) -> Optional[int]:
    """First positive integer found at any of `paths`."""
    for path in paths:
        n = as_int(get_path(payload, path))
        if n is not None:
            return n
    return None

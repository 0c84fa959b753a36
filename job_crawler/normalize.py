"""Normalization & heuristics.

This module contains the deterministic mapping logic:
- field classification of rendered listing text (title/company/salary/location)
- best-effort posting date extraction
- mapping of source-native JSON items onto `JobRecord`

Patterns are tuned for Taiwanese job boards (Traditional Chinese with English
mixed in). Keeping them centralized makes the scrapers predictable and
testable without a browser.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from string import Formatter
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from pydantic import ValidationError

from .models import JobRecord
from .utils import first_text, normalize_url

logger = logging.getLogger(__name__)


TITLE_RE = re.compile(
    r"(工程師|Developer|Engineer|開發|設計|Designer|Manager|經理|主管|Product|產品|行銷|Marketing|PM|資料|Data|"
    r"Frontend|Backend|前端|後端|Full[- ]?Stack|全端|Mobile|行動|手機|iOS|Android|QA|DevOps)",
    re.IGNORECASE,
)

COMPANY_RE = re.compile(
    r"(股份有限公司|有限公司|公司|Studio|Team|Corp|Inc\.?|Co\.?|Limited|Ltd\.?)",
    re.IGNORECASE,
)
# Short brand names ("ACME", "91APP") carry no legal suffix.
COMPANY_SHORT_MAX_LEN = 20
LATIN_OR_DIGIT_RE = re.compile(r"[A-Za-z0-9]")

# k/K stay case-sensitive on purpose; the English words do not.
SALARY_UNIT_RE = re.compile(r"(月|年|萬|k|K|NT|薪|元|面議|USD|(?i:monthly|yearly|salary|negotiable))")
DIGIT_RE = re.compile(r"\d")

LOCATION_RE = re.compile(
    r"(市|區|縣|台北|臺北|新北|桃園|台中|臺中|台南|臺南|高雄|新竹|"
    r"Hsinchu|Taipei|Taichung|Kaohsiung|Remote|遠端)",
    re.IGNORECASE,
)

# "2024/09/17" full dates, then "09 / 17" style month/day stamps shown on listing cards.
FULL_DATE_RE = re.compile(r"\b(\d{4})\s*/\s*(1[0-2]|0?[1-9])\s*/\s*([0-2]?\d|3[01])\b")
DATE_RE = re.compile(r"\b(1[0-2]|0?[1-9])\s*/\s*([0-2]?\d|3[01])\b")


class ClassifiedFields(NamedTuple):
    title: str
    company: str
    location: str
    salary: str


def pick_title(fragments: Sequence[str]) -> str:
    for frag in fragments:
        if TITLE_RE.search(frag):
            return frag
    return fragments[0] if fragments else ""


def pick_company(fragments: Sequence[str], title: str) -> str:
    for frag in fragments:
        if frag == title:
            continue
        if COMPANY_RE.search(frag):
            return frag
        if len(frag) <= COMPANY_SHORT_MAX_LEN and LATIN_OR_DIGIT_RE.search(frag):
            return frag
    return ""


def pick_salary(fragments: Sequence[str]) -> str:
    for frag in fragments:
        if DIGIT_RE.search(frag) and SALARY_UNIT_RE.search(frag):
            return frag
    return ""


def pick_location(fragments: Sequence[str]) -> str:
    for frag in fragments:
        if LOCATION_RE.search(frag):
            return frag
    return ""


def classify_fragments(fragments: Sequence[str]) -> ClassifiedFields:
    """Assign listing text fragments to title/company/location/salary.

    Each field takes the first fragment matching its rule; rules run in the
    order title, company, salary, location. Only company excludes an earlier
    pick (the title). Fields without a match are "".
    """
    frags = [f for f in fragments if isinstance(f, str) and f]
    title = pick_title(frags)
    company = pick_company(frags, title)
    salary = pick_salary(frags)
    location = pick_location(frags)
    return ClassifiedFields(title=title, company=company, location=location, salary=salary)


def pick_date(fragments: Sequence[str]) -> Optional[str]:
    """Return the first date found in the fragments, spaces removed.

    A full `yyyy/mm/dd` date keeps its year; otherwise an `mm/dd` stamp.
    """
    for frag in fragments:
        m = FULL_DATE_RE.search(frag)
        if m:
            return f"{m.group(1)}/{m.group(2)}/{m.group(3)}"
        m = DATE_RE.search(frag)
        if m:
            return f"{m.group(1)}/{m.group(2)}"
    return None


@dataclass(frozen=True)
class FieldMap:
    """Where each canonical field lives inside a source-native JSON item.

    Each entry is a ranked list of dotted key paths. The URL comes either from
    `url_template` (formatted with the item's top-level keys) or from the
    first non-empty `url` path, resolved against the source origin.
    """

    title: Tuple[str, ...] = ("title", "name", "jobName")
    company: Tuple[str, ...] = ("company", "companyName", "custName")
    location: Tuple[str, ...] = ("location", "city")
    salary: Tuple[str, ...] = ("salary",)
    date: Tuple[str, ...] = ()
    url: Tuple[str, ...] = ("url", "link", "path")
    url_template: Optional[str] = None
    keep_query: bool = True

    def build_url(self, item: Dict[str, Any], origin: str) -> str:
        if self.url_template:
            names = [name for _, name, _, _ in Formatter().parse(self.url_template) if name]
            values = {name: first_text(item, (name,)) for name in names}
            if not all(values.values()):
                return ""
            href = self.url_template.format(**values)
        else:
            href = first_text(item, self.url)
        return normalize_url(href, origin, keep_query=self.keep_query)


def normalize_record(
    item: Any,
    field_map: FieldMap,
    source: str,
    page: int,
    origin: str,
) -> Optional[JobRecord]:
    """Map one source-native item onto a JobRecord; None if it is unusable."""
    if not isinstance(item, dict):
        return None
    date = first_text(item, field_map.date) or None
    try:
        return JobRecord(
            title=first_text(item, field_map.title),
            company=first_text(item, field_map.company),
            location=first_text(item, field_map.location),
            salary=first_text(item, field_map.salary),
            date=date,
            url=field_map.build_url(item, origin),
            page=page,
            source=source,
        )
    except ValidationError as exc:
        logger.debug(f"[{source}] discarding item on page {page}: {exc.errors()[0].get('msg')}")
        return None


def normalize_items(
    items: List[Any],
    field_map: FieldMap,
    source: str,
    page: int,
    origin: str,
) -> List[JobRecord]:
    """Normalize a listing array, dropping unusable items."""
    out: List[JobRecord] = []
    for item in items:
        rec = normalize_record(item, field_map, source, page, origin)
        if rec is not None:
            out.append(rec)
    return out

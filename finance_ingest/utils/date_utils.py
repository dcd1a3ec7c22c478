"""Date extraction and truncation utilities"""

import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

_MONTHS = "jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec"
_MONTH_NAMES = (
    "january|february|march|april|may|june|july|august|september|october|november|december|" + _MONTHS
)

# Ordered: most specific first. Numeric dates are day-first, as Indian banks write them.
DATE_PATTERNS: List[tuple[re.Pattern, List[str]]] = [
    (re.compile(r"\b(\d{4}-\d{1,2}-\d{1,2})\b"), ["%Y-%m-%d"]),
    (re.compile(r"\b(\d{1,2}[/-]\d{1,2}[/-]\d{4})\b"), ["%d/%m/%Y", "%d-%m-%Y"]),
    (re.compile(r"\b(\d{1,2}[/-]\d{1,2}[/-]\d{2})\b"), ["%d/%m/%y", "%d-%m-%y"]),
    (
        re.compile(rf"\b(\d{{1,2}}[\s-](?:{_MONTH_NAMES})[a-z]*,?[\s-]\d{{2,4}})\b", re.IGNORECASE),
        ["%d %b %Y", "%d %B %Y", "%d-%b-%Y", "%d-%b-%y", "%d %b %y", "%d-%B-%Y"],
    ),
    (
        re.compile(rf"\b((?:{_MONTH_NAMES})[a-z]*\s+\d{{1,2}},?\s+\d{{4}})\b", re.IGNORECASE),
        ["%b %d %Y", "%B %d %Y"],
    ),
    (re.compile(rf"\b(\d{{1,2}}\s+(?:{_MONTH_NAMES})[a-z]*)\b(?!\s*\d)", re.IGNORECASE), ["%d %b", "%d %B"]),
]

RELATIVE_DATE_PATTERN = re.compile(r"\b(today|yesterday)\b", re.IGNORECASE)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_with_formats(raw: str, formats: List[str], reference: datetime) -> Optional[datetime]:
    cleaned = re.sub(r"\s+", " ", raw.replace(",", "")).strip()
    cleaned = re.sub(r"(?i)\bsept\b", "Sep", cleaned)
    for fmt in formats:
        try:
            parsed = datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
        if "%Y" not in fmt and "%y" not in fmt:
            parsed = parsed.replace(year=reference.year)
        return parsed.replace(tzinfo=timezone.utc)
    return None


def extract_date(text: str, reference: Optional[datetime] = None) -> Optional[datetime]:
    """
    Find the first parseable date in free text.

    Dates without a year take the reference year; "today"/"yesterday" are resolved
    against the reference (default: now, UTC). Returned values are UTC midnight.
    """
    reference = as_utc(reference) if reference else datetime.now(timezone.utc)

    for pattern, formats in DATE_PATTERNS:
        for match in pattern.finditer(text):
            parsed = _parse_with_formats(match.group(1), formats, reference)
            if parsed:
                return parsed

    relative = RELATIVE_DATE_PATTERN.search(text)
    if relative:
        day = reference if relative.group(1).lower() == "today" else reference - timedelta(days=1)
        return truncate_datetime(day, "day")

    return None


def extract_date_strings(text: str) -> List[str]:
    """All date-looking substrings, de-duplicated in order of appearance"""
    found: List[str] = []
    for pattern, _ in DATE_PATTERNS:
        found.extend(m.group(1) for m in pattern.finditer(text))
    found.extend(m.group(1) for m in RELATIVE_DATE_PATTERN.finditer(text))
    return list(dict.fromkeys(found))


def truncate_datetime(value: datetime, granularity: str) -> datetime:
    """Truncate to "day", "minute" or "second" in UTC"""
    value = as_utc(value)
    if granularity == "day":
        return value.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity == "minute":
        return value.replace(second=0, microsecond=0)
    if granularity == "second":
        return value.replace(microsecond=0)
    raise ValueError(f"Unknown date granularity: {granularity}")

"""Field extraction dispatcher for declarative bank pattern rules

A FieldRule names its value source as data, either a capture group index or the
name of a registered extractor, plus an optional registered transform. Keeping the
callables in these registries lets bank configurations stay serializable.
"""

import re
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from finance_ingest.domain.models import FieldRule
from finance_ingest.utils.date_utils import extract_date

AMOUNT_PATTERN = re.compile(
    r"\b(?:amount|amt|rs|inr|usd|eur|gbp|jpy)\b\.?\s*[:.]?\s*(\d[\d,]*(?:\.\d{1,2})?)",
    re.IGNORECASE,
)
REFERENCE_PATTERN = re.compile(
    r"\b(?:reference|ref|utr|rrn|txn|transaction|id)\b\s*(?:no\.?|number|#)?\s*[:.\-]?\s*"
    r"(?=[A-Z0-9]*\d)([A-Z0-9]{4,})",
    re.IGNORECASE,
)
ACCOUNT_PATTERN = re.compile(
    r"\b(?:account|acct|a/c|ac)\b\s*(?:no\.?|number|ending(?:\s+with)?)?\s*[:.\-]?\s*([X*]*\d{3,})",
    re.IGNORECASE,
)
COUNTERPARTY_PATTERN = re.compile(
    r"\b(?i:to|from|at)\s+([A-Z][A-Za-z0-9&'.\-]*(?:\s+[A-Z][A-Za-z0-9&'.\-]*){0,4})"
)
CURRENCY_PATTERN = re.compile(r"\b(INR|USD|EUR|GBP|JPY|RS)\b", re.IGNORECASE)


def parse_amount(raw: str) -> Optional[float]:
    """Strip thousands separators and parse; non-positive amounts count as missing"""
    value = float(raw.replace(",", "").strip())
    return value if value > 0 else None


def find_amount(text: str) -> Optional[float]:
    match = AMOUNT_PATTERN.search(text)
    return parse_amount(match.group(1)) if match else None


def find_currency(text: str) -> Optional[str]:
    match = CURRENCY_PATTERN.search(text)
    if not match:
        return None
    code = match.group(1).upper()
    return "INR" if code == "RS" else code


def find_reference(text: str) -> Optional[str]:
    match = REFERENCE_PATTERN.search(text)
    return match.group(1) if match else None


def find_account(text: str) -> Optional[str]:
    match = ACCOUNT_PATTERN.search(text)
    return match.group(1) if match else None


def find_counterparty(text: str) -> Optional[str]:
    for match in COUNTERPARTY_PATTERN.finditer(text):
        name = match.group(1).rstrip(".")
        # Skip tokens the abbreviation stage produced or that are amounts/codes
        if name.split()[0].upper() in {"INR", "USD", "EUR", "GBP", "JPY"}:
            continue
        return name
    return None


NAMED_EXTRACTORS: Dict[str, Callable[[re.Match, str], Any]] = {
    "amount": lambda match, text: find_amount(text),
    "currency": lambda match, text: find_currency(text),
    "reference_number": lambda match, text: find_reference(text),
    "account_identifier": lambda match, text: find_account(text),
    "counterparty": lambda match, text: find_counterparty(text),
    "date": lambda match, text: extract_date(text),
    "whole_match": lambda match, text: match.group(0),
}

TRANSFORMS: Dict[str, Callable[[Any], Any]] = {
    "parse_amount": lambda value: parse_amount(str(value)),
    "upper": lambda value: str(value).upper(),
    "strip": lambda value: str(value).strip(),
    "last4": lambda value: str(value)[-4:],
    "parse_date": lambda value: value if isinstance(value, datetime) else extract_date(str(value)),
}


def apply_field_rule(rule: FieldRule, match: re.Match, text: str) -> Any:
    """
    Resolve one rule against a regex match.

    Returns None when the group did not participate or the extractor found nothing.
    Transform errors propagate; the detection engine decides what to do with them.
    """
    if rule.source.kind == "group":
        value = match.group(rule.source.index)
    elif rule.source.kind == "named":
        value = NAMED_EXTRACTORS[rule.source.ref](match, text)
    else:
        raise ValueError(f"Unknown rule source kind: {rule.source.kind}")

    if value in (None, ""):
        return None
    if rule.transform:
        value = TRANSFORMS[rule.transform](value)
    return value

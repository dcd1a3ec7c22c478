"""Bank configurations as plain data, plus the parser that validates them"""

import re
from typing import Any, Dict, List

from finance_ingest.domain.exceptions import InvalidBankConfigurationError
from finance_ingest.domain.extractors import NAMED_EXTRACTORS, TRANSFORMS
from finance_ingest.domain.models import (
    EXTRACTED_FIELDS,
    BankConfiguration,
    FieldRule,
    PatternRule,
    RuleSource,
    TransactionIntent,
)

# Patterns run against normalized text: currency symbols are already ISO codes
# and abbreviations (A/C, REF, TXN) are spelled out.
_AMOUNT = r"\b(?:inr|rs\.?)\s*(\d[\d,]*(?:\.\d{1,2})?)"

_STANDARD_FIELDS: List[Dict[str, Any]] = [
    {"field": "amount", "source": {"kind": "group", "index": 1}, "transform": "parse_amount", "required": True},
    {"field": "account_identifier", "source": {"kind": "named", "ref": "account_identifier"}},
    {"field": "reference_number", "source": {"kind": "named", "ref": "reference_number"}},
    {"field": "date", "source": {"kind": "named", "ref": "date"}},
    {"field": "counterparty", "source": {"kind": "named", "ref": "counterparty"}},
]


def _pattern(name: str, regex: str, intent: str, confidence: float) -> Dict[str, Any]:
    return {
        "name": name,
        "regex": regex,
        "intent": intent,
        "field_extraction": _STANDARD_FIELDS,
        "minimum_confidence": confidence,
        "active": True,
    }


DEFAULT_BANK_CONFIGURATIONS: List[Dict[str, Any]] = [
    {
        "id": "hdfc_bank",
        "name": "HDFC Bank",
        "sender_identifiers": ["1860", "9066", "hdfc"],
        "currency": "INR",
        "patterns": [
            _pattern("hdfc_debit", _AMOUNT + r"\s*(?:has been\s+|is\s+)?(?:debited|withdrawn|spent)", "Debit", 0.9),
            _pattern("hdfc_credit", _AMOUNT + r"\s*(?:has been\s+|is\s+)?(?:credited|added|deposited)", "Credit", 0.9),
        ],
    },
    {
        "id": "icici_bank",
        "name": "ICICI Bank",
        "sender_identifiers": ["9267", "9241", "icici"],
        "currency": "INR",
        "patterns": [
            _pattern("icici_debit", _AMOUNT + r"\s*(?:has been\s+|is\s+)?(?:debited|withdrawn|spent)", "Debit", 0.85),
            _pattern("icici_credit", _AMOUNT + r"\s*(?:has been\s+|is\s+)?(?:credited|deposited)", "Credit", 0.85),
        ],
    },
    {
        "id": "axis_bank",
        "name": "Axis Bank",
        "sender_identifiers": ["9876", "axis"],
        "currency": "INR",
        "patterns": [
            _pattern("axis_debit", r"(?:debited|spent|withdrawn)\D{0,40}?" + _AMOUNT, "Debit", 0.8),
            _pattern("axis_credit", r"(?:credited|deposited)\D{0,40}?" + _AMOUNT, "Credit", 0.8),
        ],
    },
    {
        "id": "sbi",
        "name": "State Bank of India",
        "sender_identifiers": ["sbiinb", "sbipsg", "sbi"],
        "currency": "INR",
        "patterns": [
            _pattern("sbi_debit", r"debited by\s*" + _AMOUNT, "Debit", 0.85),
            _pattern("sbi_credit", r"credited by\s*" + _AMOUNT, "Credit", 0.85),
            _pattern("sbi_transfer", _AMOUNT + r"\s*(?:transferred|sent) to", "Transfer", 0.8),
        ],
    },
    {
        "id": "kotak_bank",
        "name": "Kotak Mahindra Bank",
        "sender_identifiers": ["kotak", "kotakb"],
        "currency": "INR",
        "patterns": [
            _pattern("kotak_sent", r"sent\s*" + _AMOUNT, "Debit", 0.8),
            _pattern("kotak_received", r"received\s*" + _AMOUNT, "Credit", 0.8),
        ],
    },
]


def _require(raw: Dict[str, Any], key: str, where: str) -> Any:
    if key not in raw or raw[key] in (None, ""):
        raise InvalidBankConfigurationError(f"{where}: missing '{key}'")
    return raw[key]


def _parse_field_rule(raw: Dict[str, Any], group_count: int, where: str) -> FieldRule:
    field_name = _require(raw, "field", where)
    if field_name not in EXTRACTED_FIELDS:
        raise InvalidBankConfigurationError(f"{where}: unknown field '{field_name}'")

    source_raw = _require(raw, "source", where)
    kind = source_raw.get("kind")
    if kind == "group":
        index = source_raw.get("index")
        if not isinstance(index, int) or not 0 <= index <= group_count:
            raise InvalidBankConfigurationError(
                f"{where}: group index {index!r} outside pattern's {group_count} group(s)"
            )
        source = RuleSource(kind="group", index=index)
    elif kind == "named":
        ref = source_raw.get("ref")
        if ref not in NAMED_EXTRACTORS:
            raise InvalidBankConfigurationError(f"{where}: unknown extractor '{ref}'")
        source = RuleSource(kind="named", ref=ref)
    else:
        raise InvalidBankConfigurationError(f"{where}: unknown source kind '{kind}'")

    transform = raw.get("transform")
    if transform is not None and transform not in TRANSFORMS:
        raise InvalidBankConfigurationError(f"{where}: unknown transform '{transform}'")

    return FieldRule(field=field_name, source=source, transform=transform, required=bool(raw.get("required", False)))


def _parse_pattern(raw: Dict[str, Any], where: str) -> PatternRule:
    name = _require(raw, "name", where)
    where = f"{where}.{name}"
    regex = _require(raw, "regex", where)
    try:
        group_count = re.compile(regex).groups
    except re.error as e:
        raise InvalidBankConfigurationError(f"{where}: invalid regex: {e}") from e

    try:
        intent = TransactionIntent(_require(raw, "intent", where))
    except ValueError as e:
        raise InvalidBankConfigurationError(f"{where}: unknown intent '{raw['intent']}'") from e

    confidence = float(raw.get("minimum_confidence", 0.7))
    if not 0.0 <= confidence <= 1.0:
        raise InvalidBankConfigurationError(f"{where}: minimum_confidence {confidence} outside [0, 1]")

    return PatternRule(
        name=name,
        regex=regex,
        intent=intent,
        field_extraction=[_parse_field_rule(r, group_count, where) for r in raw.get("field_extraction", [])],
        minimum_confidence=confidence,
        active=bool(raw.get("active", True)),
    )


def parse_bank_configuration(raw: Dict[str, Any]) -> BankConfiguration:
    """
    Build a validated BankConfiguration from plain data (JSON, settings payloads).

    Raises:
        InvalidBankConfigurationError: On missing keys, bad regexes, out-of-range group
            indexes, unknown extractor/transform names or confidences outside [0, 1]
    """
    config_id = _require(raw, "id", "bank configuration")
    identifiers = _require(raw, "sender_identifiers", config_id)
    if isinstance(identifiers, str) or not all(isinstance(i, str) and i for i in identifiers):
        raise InvalidBankConfigurationError(f"{config_id}: sender_identifiers must be non-empty strings")

    return BankConfiguration(
        id=config_id,
        name=_require(raw, "name", config_id),
        sender_identifiers=list(identifiers),
        patterns=[_parse_pattern(p, config_id) for p in raw.get("patterns", [])],
        currency=raw.get("currency", "INR"),
        active=bool(raw.get("active", True)),
    )


def load_default_bank_configurations() -> List[BankConfiguration]:
    return [parse_bank_configuration(raw) for raw in DEFAULT_BANK_CONFIGURATIONS]

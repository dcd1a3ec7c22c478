"""Transaction detection engine - bank patterns first, generic heuristic as fallback"""

import logging
import re
from typing import Dict, List, Optional

from finance_ingest.domain import extractors
from finance_ingest.domain.bank_configs import load_default_bank_configurations
from finance_ingest.domain.models import (
    INTENT_TO_TYPE,
    BankConfiguration,
    ExtractedTransactionData,
    ExtractionDetails,
    NormalizedMessage,
    PatternRule,
    TransactionCandidate,
    TransactionIntent,
    clamp_unit,
)
from finance_ingest.utils.date_utils import extract_date

logger = logging.getLogger(__name__)

GENERIC_CONFIDENCE_FLOOR = 0.3
LOW_CONFIDENCE_WARNING_BELOW = 0.6
LOW_CONFIDENCE_WARNING = "Low confidence - manual review recommended"
DESCRIPTION_LIMIT = 200

# Checked in this order; the first list with a hit decides the intent.
INTENT_KEYWORDS = [
    (
        TransactionIntent.IGNORE,
        ["offer", "promotion", "promo", "campaign", "advertisement", "reminder", "call us",
         "% off", "click here", "shop now", "discount", "cashback offer", "sale", "win"],
    ),
    (TransactionIntent.TRANSFER, ["transfer", "transferred", "sent to", "received from"]),
    (
        TransactionIntent.CREDIT,
        ["credited", "deposited", "received", "added", "income", "salary", "refund", "inward"],
    ),
    (
        TransactionIntent.DEBIT,
        ["debited", "withdrawn", "paid", "sent", "expense", "deducted", "charged", "spent", "outward"],
    ),
]

GENERIC_FIELD_SCORES = {
    "type": 0.8,
    "amount": 0.9,
    "currency": 0.7,
    "date": 0.6,
    "bank_or_provider": 0.5,
    "account_identifier": 0.4,
    "reference_number": 0.5,
    "description": 0.7,
    "counterparty": 0.3,
}

PATTERN_FIELD_SCORES = {
    "type": 0.9,
    "amount": 0.95,
    "currency": 0.9,
    "date": 0.7,
    "bank_or_provider": 0.95,
    "account_identifier": 0.8,
    "reference_number": 0.85,
    "description": 0.8,
    "counterparty": 0.6,
}


def _keyword_present(text: str, keyword: str) -> bool:
    if keyword[0].isalnum() and keyword[-1].isalnum():
        return re.search(r"\b" + re.escape(keyword) + r"\b", text) is not None
    return keyword in text


def detect_intent(text: str) -> TransactionIntent:
    """Keyword precedence: Ignore > Transfer > Credit > Debit, defaulting to Debit"""
    lowered = text.lower()
    for intent, keywords in INTENT_KEYWORDS:
        if any(_keyword_present(lowered, kw) for kw in keywords):
            return intent
    return TransactionIntent.DEBIT


def matches_sender(actual: str, expected: str) -> bool:
    """Bidirectional, case-insensitive substring match; blanks never match"""
    actual, expected = actual.strip().lower(), expected.strip().lower()
    if not actual or not expected:
        return False
    return expected in actual or actual in expected


def _score_fields(data: ExtractedTransactionData, weights: Dict[str, float]) -> Dict[str, float]:
    return {name: (weight if getattr(data, name) is not None else 0.0) for name, weight in weights.items()}


class TransactionDetectionEngine:
    """
    Decides whether a normalized message describes a transaction.

    Bank configurations are keyed by id; custom configurations override defaults
    with the same id.
    """

    def __init__(self, bank_configurations: Optional[List[BankConfiguration]] = None, include_defaults: bool = True):
        self._default_configs: Dict[str, BankConfiguration] = {}
        if include_defaults:
            self._default_configs = {c.id: c for c in load_default_bank_configurations()}
        self._custom_configs: Dict[str, BankConfiguration] = {c.id: c for c in bank_configurations or []}

    @property
    def bank_configs(self) -> Dict[str, BankConfiguration]:
        return {**self._default_configs, **self._custom_configs}

    def detect_transaction(
        self,
        message: NormalizedMessage,
        confidence_threshold: float = 0.5,
    ) -> Optional[TransactionCandidate]:
        """
        Returns a candidate, or None when nothing transaction-like was found.

        A bank pattern match short-circuits everything else. The generic heuristic
        only answers when its confidence clears both the fixed floor and the caller's
        threshold.
        """
        candidate = self._match_bank_patterns(message)
        if candidate:
            return candidate

        candidate = self._detect_generic(message)
        if candidate is None or candidate.confidence_score < confidence_threshold:
            return None
        return candidate

    def _match_bank_patterns(self, message: NormalizedMessage) -> Optional[TransactionCandidate]:
        for config in self.get_active_bank_configs():
            if not any(matches_sender(message.sender_identifier, sid) for sid in config.sender_identifiers):
                continue

            for pattern in config.patterns:
                if not pattern.active:
                    continue
                match = pattern.compiled.search(message.clean_text)
                if not match:
                    continue
                candidate = self._candidate_from_pattern(message, match, pattern, config)
                if candidate:
                    return candidate
        return None

    def _candidate_from_pattern(
        self,
        message: NormalizedMessage,
        match: re.Match,
        pattern: PatternRule,
        config: BankConfiguration,
    ) -> Optional[TransactionCandidate]:
        text = message.clean_text
        data = ExtractedTransactionData(
            type=INTENT_TO_TYPE.get(pattern.intent),
            currency=config.currency,
            bank_or_provider=config.name,
            description=text[:DESCRIPTION_LIMIT],
        )
        warnings: List[str] = []

        for rule in pattern.field_extraction:
            try:
                value = extractors.apply_field_rule(rule, match, text)
            except (ValueError, IndexError, TypeError) as e:
                logger.debug(f"Pattern {pattern.name}: rule for {rule.field} failed: {e}")
                value = None

            if value is None:
                if rule.required:
                    logger.debug(f"Pattern {pattern.name} matched but required field {rule.field} is missing")
                    return None
                continue
            setattr(data, rule.field, value)

        if data.amount is None:
            return None

        confidence = min(1.0, pattern.minimum_confidence)
        if data.date is None:
            warnings.append("Date not found in message; using time received")
        if confidence < LOW_CONFIDENCE_WARNING_BELOW:
            warnings.append(LOW_CONFIDENCE_WARNING)

        return TransactionCandidate(
            message=message,
            intent=pattern.intent,
            confidence_score=confidence,
            extracted_data=data,
            extraction_details=ExtractionDetails(
                matched_patterns=[pattern.name],
                pattern_matches={pattern.name: match.group(0)},
                field_scores=_score_fields(data, PATTERN_FIELD_SCORES),
                overall_confidence=confidence,
                warnings=warnings,
            ),
        )

    def _detect_generic(self, message: NormalizedMessage) -> Optional[TransactionCandidate]:
        text = message.clean_text
        intent = detect_intent(text)
        if intent == TransactionIntent.IGNORE:
            return None

        data = self._extract_generic(text, intent, message)
        confidence = self.calculate_confidence(data, message.confidence_hint)
        if confidence < GENERIC_CONFIDENCE_FLOOR or data.amount is None:
            return None

        warnings = []
        if confidence < LOW_CONFIDENCE_WARNING_BELOW:
            warnings.append(LOW_CONFIDENCE_WARNING)

        return TransactionCandidate(
            message=message,
            intent=intent,
            confidence_score=confidence,
            extracted_data=data,
            extraction_details=ExtractionDetails(
                matched_patterns=["generic_detection"],
                field_scores=_score_fields(data, GENERIC_FIELD_SCORES),
                overall_confidence=confidence,
                warnings=warnings,
            ),
        )

    def _extract_generic(
        self,
        text: str,
        intent: TransactionIntent,
        message: NormalizedMessage,
    ) -> ExtractedTransactionData:
        try:
            amount = extractors.find_amount(text)
        except ValueError:
            amount = None

        return ExtractedTransactionData(
            type=INTENT_TO_TYPE.get(intent),
            amount=amount,
            currency=extractors.find_currency(text),
            date=extract_date(text, reference=message.timestamp),
            bank_or_provider=self._find_provider(text),
            account_identifier=extractors.find_account(text),
            reference_number=extractors.find_reference(text),
            description=text[:DESCRIPTION_LIMIT],
            counterparty=extractors.find_counterparty(text),
        )

    def _find_provider(self, text: str) -> Optional[str]:
        lowered = text.lower()
        for config in self.get_active_bank_configs():
            if _keyword_present(lowered, config.name.lower()):
                return config.name
        return None

    @staticmethod
    def calculate_confidence(data: ExtractedTransactionData, confidence_hint: float) -> float:
        score = confidence_hint
        if data.amount is not None:
            score += 0.2
        if data.currency:
            score += 0.1
        else:
            score -= 0.05
        if data.date:
            score += 0.1
        else:
            score -= 0.05
        if data.type:
            score += 0.15
        if data.bank_or_provider:
            score += 0.1
        return clamp_unit(score)

    def add_bank_config(self, config: BankConfiguration) -> None:
        self._custom_configs[config.id] = config

    def remove_bank_config(self, config_id: str) -> None:
        self._custom_configs.pop(config_id, None)

    def replace_custom_configs(self, configs: List[BankConfiguration]) -> None:
        self._custom_configs = {c.id: c for c in configs}

    def get_active_bank_configs(self) -> List[BankConfiguration]:
        return [c for c in self.bank_configs.values() if c.active]

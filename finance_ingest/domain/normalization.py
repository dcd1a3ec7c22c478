"""Message normalization - strips noise and standardizes tokens before detection"""

import re
from typing import List, Tuple

from finance_ingest.domain.models import NormalizedMessage, ProcessingMetadata, UnifiedMessage
from finance_ingest.utils import date_utils

NEAR_CHARS = 40

URL_PATTERN = re.compile(r"(?:https?://|www\.)\S+", re.IGNORECASE)
OTP_NUMBER_PATTERN = re.compile(r"\b\d{4,6}\b")
OTP_KEYWORD_PATTERN = re.compile(r"\b(?:otp|verify|verification|confirm|password|passcode)\b", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
EMAIL_CRITICAL_PATTERN = re.compile(r"\b(?:account|registered|associated|linked)\b", re.IGNORECASE)
HASHTAG_PATTERN = re.compile(r"#[A-Za-z0-9_]+")
WHITESPACE_PATTERN = re.compile(r"\s+")
SENTENCE_SPLIT_PATTERN = re.compile(r"(?<=[.!?])\s+")

ABBREVIATIONS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\bTXN\b", re.IGNORECASE), "transaction"),
    (re.compile(r"\bAMT\b", re.IGNORECASE), "amount"),
    (re.compile(r"\bA/C\b", re.IGNORECASE), "account"),
    (re.compile(r"\bACCT\b", re.IGNORECASE), "account"),
    (re.compile(r"\bREF\b", re.IGNORECASE), "reference"),
    (re.compile(r"\bINV\b", re.IGNORECASE), "invoice"),
    (re.compile(r"\bDT\b", re.IGNORECASE), "date"),
    (re.compile(r"\bBAL\b", re.IGNORECASE), "balance"),
    (re.compile(r"\bDEBIT\b", re.IGNORECASE), "debit"),
    (re.compile(r"\bCREDIT\b", re.IGNORECASE), "credit"),
    (re.compile(r"\bTRANSFER\b", re.IGNORECASE), "transfer"),
    (re.compile(r"\bACCOUNT\b", re.IGNORECASE), "account"),
]

CURRENCY_SYMBOLS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"₹\s*"), "INR "),
    (re.compile(r"\$\s*"), "USD "),
    (re.compile(r"€\s*"), "EUR "),
    (re.compile(r"£\s*"), "GBP "),
    (re.compile(r"¥\s*"), "JPY "),
]

PROMOTIONAL_PATTERN = re.compile(
    r"\b(?:offers?|deals?|discounts?|cashback|rewards|promotional|promo|limited time|limited period"
    r"|buy now|shop now|sale|click here|visit us)\b",
    re.IGNORECASE,
)


def _is_near(text: str, start: int, end: int, keywords: re.Pattern) -> bool:
    window = text[max(0, start - NEAR_CHARS):end + NEAR_CHARS]
    return keywords.search(window) is not None


class MessageNormalizationEngine:
    """
    Cleans raw message text into a form the detection engine can match reliably.

    Stages run in a fixed order and each one that fires is recorded in
    processing_metadata.normalizations. Everything stripped lands in noise_removed,
    which is diagnostic only.
    """

    def normalize(self, message: UnifiedMessage) -> NormalizedMessage:
        text = message.raw_text or ""
        noise: List[str] = []
        applied: List[str] = []

        # 1. URLs
        urls = URL_PATTERN.findall(text)
        if urls:
            noise.extend(urls)
            text = URL_PATTERN.sub("", text)
            applied.append("urls_removed")

        # 2. OTP-like numbers next to OTP keywords
        text, otps = self._strip_near(text, OTP_NUMBER_PATTERN, OTP_KEYWORD_PATTERN, remove_when_near=True)
        if otps:
            noise.extend(otps)
            applied.append("otp_removed")

        # 3. Emails, unless they identify the account
        text, emails = self._strip_near(text, EMAIL_PATTERN, EMAIL_CRITICAL_PATTERN, remove_when_near=False)
        if emails:
            noise.extend(emails)
            applied.append("emails_removed")

        # 4. Hashtags
        hashtags = HASHTAG_PATTERN.findall(text)
        if hashtags:
            noise.extend(hashtags)
            text = HASHTAG_PATTERN.sub("", text)
            applied.append("hashtags_removed")

        # 5. Whitespace
        text = WHITESPACE_PATTERN.sub(" ", text).strip()
        applied.append("whitespace_normalized")

        # 6. Abbreviations
        for pattern, replacement in ABBREVIATIONS:
            text = pattern.sub(replacement, text)
        applied.append("keywords_normalized")

        # 7. Currency symbols
        for pattern, code in CURRENCY_SYMBOLS:
            text = pattern.sub(code, text)
        text = WHITESPACE_PATTERN.sub(" ", text).strip()
        applied.append("currency_standardized")

        # 8. Dates are left untouched; detection parses them
        applied.append("dates_preserved")

        # 9. Promotional sentences
        text, promotional = self._strip_marketing(text)
        if promotional:
            noise.extend(promotional)
            applied.append("marketing_text_removed")

        return NormalizedMessage(
            message=message,
            clean_text=text,
            original_raw_text=message.raw_text,
            processing_metadata=ProcessingMetadata(noise_removed=noise, normalizations=applied),
        )

    def _strip_near(
        self,
        text: str,
        target: re.Pattern,
        keywords: re.Pattern,
        remove_when_near: bool,
    ) -> Tuple[str, List[str]]:
        """Remove target matches depending on whether a keyword sits within NEAR_CHARS"""
        removed: List[str] = []

        def replace(match: re.Match) -> str:
            near = _is_near(text, match.start(), match.end(), keywords)
            if near == remove_when_near:
                removed.append(match.group(0))
                return ""
            return match.group(0)

        return target.sub(replace, text), removed

    def _strip_marketing(self, text: str) -> Tuple[str, List[str]]:
        kept: List[str] = []
        removed: List[str] = []
        for sentence in SENTENCE_SPLIT_PATTERN.split(text):
            sentence = sentence.strip()
            if not sentence:
                continue
            if PROMOTIONAL_PATTERN.search(sentence):
                removed.append(sentence)
            else:
                kept.append(sentence)
        return " ".join(kept), removed

    def extract_numbers(self, text: str) -> List[float]:
        """All numbers in the text, thousands separators ignored"""
        return [float(n.replace(",", "")) for n in re.findall(r"\d[\d,]*(?:\.\d+)?", text)]

    def extract_date_strings(self, text: str) -> List[str]:
        return date_utils.extract_date_strings(text)

"""Category suggestion for detected transactions"""

import re
from typing import Dict, Optional, Protocol, Tuple

from finance_ingest.domain.models import ClassificationResult, TransactionCandidate

KEYWORD_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.3


class Classifier(Protocol):
    def classify(self, candidate: TransactionCandidate) -> ClassificationResult:
        ...


class KeywordClassifier:
    """
    Keyword rules over the candidate's description and counterparty.

    Keys are lowercase. Keywords of four characters or fewer only match on word
    boundaries so "act" does not fire inside "transaction".
    """

    def __init__(self, rules: Optional[Dict[str, str]] = None):
        self.rules: Dict[str, str] = rules if rules is not None else {
            # Food & Dining
            "swiggy": "Food",
            "zomato": "Food",
            "blinkit": "Food",
            "zepto": "Food",
            "pizza": "Food",
            "burger": "Food",
            "kfc": "Food",
            "mcdonald": "Food",
            "starbuck": "Food",
            "cafe": "Food",
            "restaurant": "Food",
            # Transport
            "uber": "Transport",
            "ola": "Transport",
            "rapido": "Transport",
            "metro": "Transport",
            "irctc": "Transport",
            "fuel": "Transport",
            "petrol": "Transport",
            # Shopping
            "amazon": "Shopping",
            "flipkart": "Shopping",
            "myntra": "Shopping",
            "ajio": "Shopping",
            "decathlon": "Shopping",
            # Entertainment
            "netflix": "Entertainment",
            "spotify": "Entertainment",
            "hotstar": "Entertainment",
            "youtube": "Entertainment",
            "bookmyshow": "Entertainment",
            # Utilities
            "airtel": "Utilities",
            "jio": "Utilities",
            "vodafone": "Utilities",
            "electricity": "Utilities",
            "bill": "Utilities",
            # Health
            "pharmacy": "Health",
            "apollo": "Health",
            "clinic": "Health",
            "hospital": "Health",
            "gym": "Health",
            # Finance
            "zerodha": "Finance",
            "groww": "Finance",
            "loan": "Finance",
            "emi": "Finance",
            "insurance": "Finance",
            # Income
            "salary": "Salary",
            "refund": "Refunds",
            "interest": "Interest",
        }

    def match(self, text: str) -> Optional[Tuple[str, str]]:
        """First (keyword, category) found in the text, in rule order"""
        if not text:
            return None

        text_lower = text.lower()
        for keyword, category in self.rules.items():
            if len(keyword) <= 4:
                if re.search(r"\b" + re.escape(keyword) + r"\b", text_lower):
                    return keyword, category
            elif keyword in text_lower:
                return keyword, category
        return None

    def classify(self, candidate: TransactionCandidate) -> ClassificationResult:
        data = candidate.extracted_data
        text = " ".join(filter(None, [data.counterparty, data.description]))

        found = self.match(text)
        if found:
            keyword, category = found
            return ClassificationResult(category=category, confidence=KEYWORD_CONFIDENCE, matched_keyword=keyword)

        if data.type == "income":
            return ClassificationResult(category="Income", confidence=FALLBACK_CONFIDENCE)
        if data.type == "transfer":
            return ClassificationResult(category="Transfer", confidence=FALLBACK_CONFIDENCE)
        return ClassificationResult(category="Uncategorized", confidence=0.0)

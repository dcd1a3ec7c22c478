"""Duplicate detection - exact fingerprint plus weighted fuzzy similarity"""

import hashlib
import json
from dataclasses import replace
from typing import Iterable, List, Optional, Tuple

from finance_ingest.domain.models import (
    DeduplicationRules,
    DuplicateCheckResult,
    ExistingRecord,
    TransactionCandidate,
)
from finance_ingest.utils.date_utils import as_utc, truncate_datetime

AMOUNT_WEIGHT = 0.35
TIME_WEIGHT = 0.30
ACCOUNT_WEIGHT = 0.20
PROVIDER_WEIGHT = 0.15
# A reference found in the record's notes adds more than it costs
REFERENCE_SCORE = 1.0
REFERENCE_WEIGHT = 0.5

# Float slack so that an exact 1% difference stays inside a 1% tolerance
_EPSILON = 1e-9


def _contains_either_way(a: str, b: str) -> bool:
    a, b = a.strip().lower(), b.strip().lower()
    if not a or not b:
        return False
    return a in b or b in a


class DeduplicationEngine:
    def __init__(self, rules: Optional[DeduplicationRules] = None):
        self.rules = rules or DeduplicationRules()

    def generate_hash(self, candidate: TransactionCandidate) -> str:
        """
        SHA-256 over a canonical JSON of the identifying fields.

        The date is truncated to rules.hash_date_granularity, so with the default
        ("day") two messages about the same purchase received seconds apart hash
        identically.
        """
        data = candidate.extracted_data
        payload = {
            "amount": f"{data.amount:.2f}" if data.amount is not None else None,
            "currency": data.currency,
            "date": truncate_datetime(candidate.effective_date, self.rules.hash_date_granularity).isoformat(),
            "bank_or_provider": data.bank_or_provider,
            "account_identifier": data.account_identifier,
            "reference_number": data.reference_number,
        }
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def check_by_hash(self, candidate: TransactionCandidate, known_hashes: Iterable[str]) -> bool:
        return self.generate_hash(candidate) in set(known_hashes)

    def calculate_similarity(self, candidate: TransactionCandidate, record: ExistingRecord) -> float:
        """
        Weighted match score normalized by the weights actually evaluated.

        A field missing on either side is skipped, not counted against the match.
        Returns a value in [0, 1]; 0.0 when nothing could be compared.
        """
        data = candidate.extracted_data
        score = 0.0
        evaluated = 0.0

        if data.amount is not None and record.amount is not None:
            evaluated += AMOUNT_WEIGHT
            if self._amounts_match(data.amount, record.amount):
                score += AMOUNT_WEIGHT

        # Only a date stated in the message is compared; time received is not
        if data.date is not None and record.transaction_date is not None:
            evaluated += TIME_WEIGHT
            delta = abs((as_utc(data.date) - as_utc(record.transaction_date)).total_seconds())
            if delta <= self.rules.time_window_seconds:
                score += TIME_WEIGHT

        if self.rules.require_account_match and data.account_identifier and record.account_identifier:
            evaluated += ACCOUNT_WEIGHT
            if _contains_either_way(data.account_identifier, record.account_identifier):
                score += ACCOUNT_WEIGHT

        if self.rules.require_provider_match and data.bank_or_provider and record.provider:
            evaluated += PROVIDER_WEIGHT
            if _contains_either_way(data.bank_or_provider, record.provider):
                score += PROVIDER_WEIGHT

        if data.reference_number and record.notes:
            evaluated += REFERENCE_WEIGHT
            if data.reference_number.lower() in record.notes.lower():
                score += REFERENCE_SCORE

        if evaluated == 0:
            return 0.0
        return min(1.0, score / evaluated)

    def _amounts_match(self, amount: float, existing: float) -> bool:
        return abs(amount - existing) <= abs(existing) * self.rules.amount_tolerance + _EPSILON

    def is_duplicate(
        self,
        candidate: TransactionCandidate,
        records: List[ExistingRecord],
        threshold: float = 0.85,
    ) -> DuplicateCheckResult:
        matches: List[Tuple[float, str]] = []
        best = 0.0
        for record in records:
            similarity = self.calculate_similarity(candidate, record)
            best = max(best, similarity)
            if similarity >= threshold:
                matches.append((similarity, record.id))

        if not matches:
            return DuplicateCheckResult(
                is_duplicate=False,
                duplicate_ids=[],
                similarity_score=best,
                reason=f"No similar transaction found (best similarity {best:.2f})",
            )

        matches.sort(key=lambda m: m[0], reverse=True)
        return DuplicateCheckResult(
            is_duplicate=True,
            duplicate_ids=[record_id for _, record_id in matches],
            similarity_score=matches[0][0],
            reason=f"Similar to {len(matches)} existing transaction(s) (similarity {matches[0][0]:.2f})",
        )

    def set_rules(self, rules: DeduplicationRules) -> None:
        self.rules = replace(rules)

    def get_rules(self) -> DeduplicationRules:
        return replace(self.rules)

"""Gated write of detected transactions - threshold, dedup, then insert"""

import asyncio
import logging
import weakref
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol

from finance_ingest.domain.deduplication import DeduplicationEngine
from finance_ingest.domain.exceptions import NoTransactionDetectedError, PersistenceRejectedError
from finance_ingest.domain.models import (
    ExistingRecord,
    FailureKind,
    FinalTransactionRecord,
    IngestionResult,
    TransactionCandidate,
)

logger = logging.getLogger(__name__)


class TransactionStore(Protocol):
    """Storage collaborator; every call may block on I/O"""

    def find_recent_records(self, account_id: str, start: datetime, end: datetime) -> List[ExistingRecord]:
        ...

    def hash_exists(self, account_id: str, dedup_hash: str) -> bool:
        ...

    def find_category_id(self, user_id: str, name: str) -> Optional[str]:
        ...

    def insert_record(self, record: FinalTransactionRecord) -> str:
        ...


def build_notes(candidate: TransactionCandidate) -> str:
    data = candidate.extracted_data
    notes = f"Auto-detected from {candidate.message.source_type.value}: {data.description or ''}".rstrip()
    if data.reference_number:
        notes += f" | Ref: {data.reference_number}"
    return notes


def build_source_metadata(candidate: TransactionCandidate) -> Dict[str, Any]:
    """Audit trail stored next to the record"""
    message = candidate.message.message
    details = candidate.extraction_details
    return {
        "source_type": message.source_type.value,
        "platform": message.platform.value if message.platform else None,
        "sender_identifier": message.sender_identifier,
        "message_id": message.message_id,
        "candidate_id": candidate.id,
        "intent": candidate.intent.value,
        "confidence_score": candidate.confidence_score,
        "matched_patterns": list(details.matched_patterns),
        "field_scores": dict(details.field_scores),
        "warnings": list(details.warnings),
        "normalizations": list(candidate.message.processing_metadata.normalizations),
        "counterparty": candidate.extracted_data.counterparty,
        "classification": asdict(candidate.classification) if candidate.classification else None,
    }


class PersistenceLayer:
    """
    Applies the confidence gate and deduplication, then writes.

    Dedup and insert run under one lock per account, so two sources reporting the
    same transaction concurrently cannot both pass the duplicate check. Store calls
    are synchronous and run in a worker thread.
    """

    def __init__(
        self,
        store: TransactionStore,
        dedup_engine: Optional[DeduplicationEngine] = None,
        similarity_threshold: float = 0.85,
        lookback_days: int = 3,
    ):
        self.store = store
        self.dedup_engine = dedup_engine or DeduplicationEngine()
        self.similarity_threshold = similarity_threshold
        self.lookback_days = lookback_days
        # Entries vanish once no create call holds the lock
        self._account_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    async def create_transaction_from_candidate(
        self,
        candidate: TransactionCandidate,
        user_id: str,
        account_id: str,
        confidence_threshold: float,
    ) -> IngestionResult:
        """
        Gate and persist one candidate.

        Raises:
            PersistenceRejectedError: Confidence below threshold or duplicate found
            NoTransactionDetectedError: Candidate carries no amount

        Store failures do not raise; they come back as an unsuccessful result.
        """
        message_id = candidate.message.message.message_id

        if candidate.confidence_score < confidence_threshold:
            raise PersistenceRejectedError(
                f"Confidence {candidate.confidence_score:.2f} below threshold {confidence_threshold:.2f}",
                reason="low-confidence",
            )
        if candidate.extracted_data.amount is None:
            raise NoTransactionDetectedError("Candidate has no amount")

        async with self._lock_for(account_id):
            try:
                dedup_hash = self.dedup_engine.generate_hash(candidate)
                self._check_duplicates(
                    candidate,
                    dedup_hash,
                    account_id,
                    await asyncio.to_thread(self.store.hash_exists, account_id, dedup_hash),
                    await self._recent_records(candidate, account_id),
                )

                record = await self._build_record(candidate, user_id, account_id, dedup_hash)
                record_id = await asyncio.to_thread(self.store.insert_record, record)
            except PersistenceRejectedError:
                raise
            except Exception as e:
                logger.error(f"Failed to persist transaction for account {account_id}: {e}")
                return IngestionResult(
                    success=False,
                    message_id=message_id,
                    error=str(e),
                    reason="persistence-failed",
                    failure=FailureKind.UNEXPECTED_ERROR,
                )

        logger.info(f"Transaction {record_id} created for account {account_id}")
        return IngestionResult(
            success=True,
            message_id=message_id,
            record_id=record_id,
            metadata={
                "confidence": candidate.confidence_score,
                "type": record.type,
                "amount": record.amount,
                "category": record.category_name,
                "dedup_hash": dedup_hash,
            },
        )

    def _lock_for(self, account_id: str) -> asyncio.Lock:
        lock = self._account_locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._account_locks[account_id] = lock
        return lock

    async def _recent_records(self, candidate: TransactionCandidate, account_id: str) -> List[ExistingRecord]:
        window = timedelta(days=self.lookback_days)
        anchor = candidate.effective_date
        return await asyncio.to_thread(self.store.find_recent_records, account_id, anchor - window, anchor + window)

    def _check_duplicates(
        self,
        candidate: TransactionCandidate,
        dedup_hash: str,
        account_id: str,
        hash_seen: bool,
        records: List[ExistingRecord],
    ) -> None:
        if hash_seen or any(r.dedup_hash == dedup_hash for r in records):
            raise PersistenceRejectedError(
                f"Transaction already recorded for account {account_id} (hash {dedup_hash[:12]})",
                reason="duplicate",
                metadata={"mechanism": "hash", "dedup_hash": dedup_hash},
            )

        result = self.dedup_engine.is_duplicate(candidate, records, self.similarity_threshold)
        if result.is_duplicate:
            raise PersistenceRejectedError(
                result.reason,
                reason="duplicate",
                metadata={
                    "mechanism": "similarity",
                    "duplicate_ids": result.duplicate_ids,
                    "similarity": result.similarity_score,
                },
            )

    async def _build_record(
        self,
        candidate: TransactionCandidate,
        user_id: str,
        account_id: str,
        dedup_hash: str,
    ) -> FinalTransactionRecord:
        data = candidate.extracted_data
        category_name = candidate.classification.category if candidate.classification else None
        category_id = None
        if category_name:
            category_id = await asyncio.to_thread(self.store.find_category_id, user_id, category_name)

        return FinalTransactionRecord(
            user_id=user_id,
            account_id=account_id,
            type=data.type or "expense",
            amount=data.amount,
            currency=data.currency,
            transaction_date=candidate.effective_date,
            dedup_hash=dedup_hash,
            notes=build_notes(candidate),
            provider=data.bank_or_provider,
            account_identifier=data.account_identifier,
            reference_number=data.reference_number,
            category_name=category_name,
            category_id=category_id,
            source_metadata=build_source_metadata(candidate),
        )

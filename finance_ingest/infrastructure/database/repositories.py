"""Data access layer for recorded transactions"""

from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from finance_ingest.domain.models import ExistingRecord, FinalTransactionRecord
from finance_ingest.infrastructure.database.models import Category, TransactionRecord
from finance_ingest.utils.date_utils import as_utc


class TransactionRepository:
    """Repository for final transactions and the categories they reference"""

    def __init__(self, db: Session):
        self.db = db

    def create_record(self, record: FinalTransactionRecord) -> TransactionRecord:
        """Add a transaction to the session and flush to get its id"""
        db_record = TransactionRecord(
            user_id=record.user_id,
            account_id=record.account_id,
            type=record.type,
            amount=record.amount,
            currency=record.currency,
            transaction_date=as_utc(record.transaction_date),
            notes=record.notes,
            provider=record.provider,
            account_identifier=record.account_identifier,
            reference_number=record.reference_number,
            category_name=record.category_name,
            category_id=record.category_id,
            dedup_hash=record.dedup_hash,
            source_metadata=record.source_metadata,
        )
        self.db.add(db_record)
        self.db.flush()  # Get ID without committing
        return db_record

    def get_records_in_window(self, account_id: str, start: datetime, end: datetime) -> List[TransactionRecord]:
        """Transactions for an account dated within [start, end]"""
        return (
            self.db.query(TransactionRecord)
            .filter(
                TransactionRecord.account_id == account_id,
                TransactionRecord.transaction_date >= as_utc(start),
                TransactionRecord.transaction_date <= as_utc(end),
            )
            .order_by(TransactionRecord.transaction_date.desc())
            .all()
        )

    def hash_exists(self, account_id: str, dedup_hash: str) -> bool:
        return (
            self.db.query(TransactionRecord.id)
            .filter(TransactionRecord.account_id == account_id, TransactionRecord.dedup_hash == dedup_hash)
            .first()
            is not None
        )

    def get_records_by_account(self, account_id: str, limit: int = 50) -> List[TransactionRecord]:
        """Most recently created transactions for an account"""
        return (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.account_id == account_id)
            .order_by(TransactionRecord.created_at.desc())
            .limit(limit)
            .all()
        )

    def get_category_id(self, user_id: str, name: str) -> Optional[str]:
        category = (
            self.db.query(Category)
            .filter(Category.user_id == user_id, func.lower(Category.name) == name.lower())
            .first()
        )
        return category.id if category else None


def to_existing_record(record: TransactionRecord) -> ExistingRecord:
    return ExistingRecord(
        id=record.id,
        amount=record.amount,
        transaction_date=as_utc(record.transaction_date) if record.transaction_date else None,
        currency=record.currency,
        account_identifier=record.account_identifier,
        provider=record.provider,
        notes=record.notes,
        dedup_hash=record.dedup_hash,
    )


class SqlTransactionStore:
    """
    TransactionStore backed by SQLAlchemy.

    Opens one session per operation so it can be called from worker threads.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def find_recent_records(self, account_id: str, start: datetime, end: datetime) -> List[ExistingRecord]:
        with self.session_factory() as db:
            records = TransactionRepository(db).get_records_in_window(account_id, start, end)
            return [to_existing_record(r) for r in records]

    def hash_exists(self, account_id: str, dedup_hash: str) -> bool:
        with self.session_factory() as db:
            return TransactionRepository(db).hash_exists(account_id, dedup_hash)

    def find_category_id(self, user_id: str, name: str) -> Optional[str]:
        with self.session_factory() as db:
            return TransactionRepository(db).get_category_id(user_id, name)

    def insert_record(self, record: FinalTransactionRecord) -> str:
        with self.session_factory() as db:
            try:
                db_record = TransactionRepository(db).create_record(record)
                record_id = db_record.id
                db.commit()
            except Exception:
                db.rollback()
                raise
            return record_id

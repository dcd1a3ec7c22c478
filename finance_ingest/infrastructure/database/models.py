"""SQLAlchemy ORM models for recorded transactions and categories"""

import uuid

from sqlalchemy import JSON, Column, DateTime, Float, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class TransactionRecord(Base):
    """Final transaction written by the ingestion pipeline"""

    __tablename__ = "final_transaction"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Text, nullable=False, index=True)
    account_id = Column(Text, nullable=False, index=True)
    type = Column(Text, nullable=False)  # income | expense | transfer
    amount = Column(Float, nullable=False)
    currency = Column(Text, nullable=True)
    transaction_date = Column(DateTime(timezone=True), nullable=False, index=True)
    notes = Column(Text, nullable=True)
    provider = Column(Text, nullable=True)
    account_identifier = Column(Text, nullable=True)
    reference_number = Column(Text, nullable=True)
    category_name = Column(Text, nullable=True)
    category_id = Column(String(36), nullable=True)
    dedup_hash = Column(String(64), nullable=False, index=True)
    source_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Category(Base):
    """User-owned category, read-only from the pipeline's side"""

    __tablename__ = "category"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    type = Column(Text, nullable=False, default="expense")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

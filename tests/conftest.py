"""Pytest fixtures for testing"""

from datetime import datetime, timezone
from typing import Callable, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from finance_ingest.api.main import create_app
from finance_ingest.domain.classification import KeywordClassifier
from finance_ingest.domain.deduplication import DeduplicationEngine
from finance_ingest.domain.detection import TransactionDetectionEngine
from finance_ingest.domain.models import (
    ExtractedTransactionData,
    ExtractionDetails,
    IngestionSettings,
    NormalizedMessage,
    ProcessingMetadata,
    SourceType,
    TransactionCandidate,
    TransactionIntent,
    UnifiedMessage,
)
from finance_ingest.domain.normalization import MessageNormalizationEngine
from finance_ingest.domain.persistence import PersistenceLayer
from finance_ingest.infrastructure.database.models import Base
from finance_ingest.infrastructure.database.repositories import SqlTransactionStore
from finance_ingest.services.ingestion import UnifiedIngestionService
from finance_ingest.services.manager import CrossPlatformIngestionManager
from finance_ingest.sources.android_sms import AndroidSmsListener
from finance_ingest.sources.base import LoopbackBridge, StaticPermissionProvider

HDFC_DEBIT_SMS = "HDFC Bank: Amount ₹5,000 debited from A/C XX1234. Ref: TXN123456. Date: 15 Dec 2025"
PROMO_TEXT = "50% off! Click here to shop now"
ICICI_CREDIT_TEXT = "ICICI Bank: ₹2,500 credited to your account. Balance: ₹45,000"


@pytest.fixture
def engine():
    """In-memory database shared across threads (store calls run in worker threads)"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def store(session_factory) -> SqlTransactionStore:
    return SqlTransactionStore(session_factory)


@pytest.fixture
def service(store) -> UnifiedIngestionService:
    """Fresh service per test; no pause between batch items"""
    return UnifiedIngestionService(
        normalizer=MessageNormalizationEngine(),
        detector=TransactionDetectionEngine(),
        classifier=KeywordClassifier(),
        persistence=PersistenceLayer(store, DeduplicationEngine()),
        settings=IngestionSettings(),
        batch_delay_seconds=0,
    )


@pytest.fixture
def bridge() -> LoopbackBridge:
    return LoopbackBridge()


@pytest.fixture
def sms_listener(bridge) -> AndroidSmsListener:
    return AndroidSmsListener(bridge=bridge, permissions=StaticPermissionProvider(granted=True))


@pytest.fixture
def created_results() -> list:
    return []


@pytest.fixture
def manager(service, sms_listener, created_results) -> CrossPlatformIngestionManager:
    return CrossPlatformIngestionManager(service, source=sms_listener, on_transaction_created=created_results.append)


@pytest.fixture
def client(manager) -> Generator[TestClient, None, None]:
    """FastAPI test client wired to the test manager and database"""
    app = create_app(manager)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sms_message() -> Callable[..., UnifiedMessage]:
    def build(text: str = HDFC_DEBIT_SMS, sender: str = "VM-HDFCBK", hint: float = 0.9) -> UnifiedMessage:
        return UnifiedMessage(
            raw_text=text,
            source_type=SourceType.SMS,
            sender_identifier=sender,
            confidence_hint=hint,
        )

    return build


@pytest.fixture
def candidate_factory() -> Callable[..., TransactionCandidate]:
    """Build candidates directly, bypassing normalization and detection"""

    def build(
        amount: Optional[float] = 500.0,
        currency: Optional[str] = "INR",
        date: Optional[datetime] = None,
        provider: Optional[str] = "HDFC Bank",
        account: Optional[str] = "XX1234",
        reference: Optional[str] = None,
        description: str = "INR 500 debited from account XX1234",
        counterparty: Optional[str] = None,
        type: Optional[str] = "expense",
        intent: TransactionIntent = TransactionIntent.DEBIT,
        confidence: float = 0.9,
        timestamp: Optional[datetime] = None,
        source_type: SourceType = SourceType.SMS,
    ) -> TransactionCandidate:
        message = UnifiedMessage(
            raw_text=description,
            source_type=source_type,
            sender_identifier="VM-HDFCBK",
            timestamp=timestamp or datetime(2025, 12, 15, 10, 0, tzinfo=timezone.utc),
        )
        normalized = NormalizedMessage(
            message=message,
            clean_text=description,
            original_raw_text=description,
            processing_metadata=ProcessingMetadata(normalizations=["whitespace_normalized"]),
        )
        return TransactionCandidate(
            message=normalized,
            intent=intent,
            confidence_score=confidence,
            extracted_data=ExtractedTransactionData(
                type=type,
                amount=amount,
                currency=currency,
                date=date,
                bank_or_provider=provider,
                account_identifier=account,
                reference_number=reference,
                description=description,
                counterparty=counterparty,
            ),
            extraction_details=ExtractionDetails(matched_patterns=["hdfc_debit"], overall_confidence=confidence),
        )

    return build

"""Builds the pipeline once at startup"""

from typing import Callable, Optional

from sqlalchemy.orm import Session

from finance_ingest.config import Settings, settings as default_settings
from finance_ingest.domain.classification import KeywordClassifier
from finance_ingest.domain.deduplication import DeduplicationEngine
from finance_ingest.domain.detection import TransactionDetectionEngine
from finance_ingest.domain.models import DeduplicationRules, IngestionSettings
from finance_ingest.domain.normalization import MessageNormalizationEngine
from finance_ingest.domain.persistence import PersistenceLayer
from finance_ingest.infrastructure.database.repositories import SqlTransactionStore
from finance_ingest.infrastructure.database.session import SessionLocal
from finance_ingest.services.ingestion import UnifiedIngestionService
from finance_ingest.services.manager import CrossPlatformIngestionManager, TransactionCallback
from finance_ingest.sources.base import MessageSource, NativeEventBridge, PermissionProvider
from finance_ingest.sources.platform import create_message_source, detect_platform


def create_ingestion_service(
    config: Settings,
    session_factory: Callable[[], Session],
) -> UnifiedIngestionService:
    dedup_engine = DeduplicationEngine(
        DeduplicationRules(
            amount_tolerance=config.amount_tolerance,
            time_window_seconds=config.duplicate_time_window_seconds,
            hash_date_granularity=config.hash_date_granularity,
        )
    )
    persistence = PersistenceLayer(
        SqlTransactionStore(session_factory),
        dedup_engine,
        similarity_threshold=config.similarity_threshold,
        lookback_days=config.dedup_lookback_days,
    )
    return UnifiedIngestionService(
        normalizer=MessageNormalizationEngine(),
        detector=TransactionDetectionEngine(),
        classifier=KeywordClassifier(),
        persistence=persistence,
        settings=IngestionSettings(confidence_threshold=config.default_confidence_threshold),
        batch_delay_seconds=config.batch_delay_seconds,
    )


def create_ingestion_manager(
    config: Optional[Settings] = None,
    session_factory: Optional[Callable[[], Session]] = None,
    source: Optional[MessageSource] = None,
    bridge: Optional[NativeEventBridge] = None,
    permissions: Optional[PermissionProvider] = None,
    on_transaction_created: Optional[TransactionCallback] = None,
) -> CrossPlatformIngestionManager:
    """
    Wire normalizer, detector, classifier, dedup and storage into one manager.

    Without an explicit source, the listener is chosen from the detected platform;
    on hosts that are neither Android nor iOS the manager runs without one.
    """
    config = config or default_settings
    session_factory = session_factory or SessionLocal

    if source is None:
        source = create_message_source(detect_platform(config.platform), bridge=bridge, permissions=permissions)

    return CrossPlatformIngestionManager(
        create_ingestion_service(config, session_factory),
        source=source,
        on_transaction_created=on_transaction_created,
    )
